"""Award orchestration: draw a reward and credit it to the user's ledger."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from .config import Settings
from .errors import StorageError, UserNotFoundError, ValidationError
from .ledger import Ledger, LedgerLimits
from .models import DrawResult, PointTransaction, TransactionKind
from .rewards import Catalog, RandomSource, check_point_limits, draw
from .store import PointStore

logger = logging.getLogger(__name__)

DRAW_DESCRIPTION_PREFIX = "Gacha reward: "


@dataclass(frozen=True)
class ReconciliationReport:
    """Comparison of a stored balance with the transaction log.

    Attributes
    ----------
    user_id : int
        User whose account was checked.
    stored_balance : int
        Balance column of the account (0 when no account exists).
    ledger_balance : int
        Credits minus debits recorded in ``point_transactions``.
    draw_count : int
        Number of persisted draw results.
    draw_credit_count : int
        Number of ``gacha`` ledger entries.
    """

    user_id: int
    stored_balance: int
    ledger_balance: int
    draw_count: int
    draw_credit_count: int

    @property
    def balance_difference(self) -> int:
        return self.stored_balance - self.ledger_balance

    @property
    def consistent(self) -> bool:
        return (
            self.balance_difference == 0
            and self.draw_count == self.draw_credit_count
        )


class AwardOrchestrator:
    """Runs draws and point operations for users within a caller-owned session.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session. The orchestrator flushes but never
        commits; wrap calls in ``with Session.begin() as session:``.
    catalog : Catalog
        Reward catalog loaded once at startup (see
        :func:`fortunespin.rewards.load_catalog`) and shared by reference.
    settings : Settings
        Ledger bounds and history defaults, also loaded once at startup.
    random_source : Optional[RandomSource], default: None
        Source of draw samples. Each draw uses a fresh
        :class:`random.SystemRandom` when omitted.

    Raises
    ------
    ValidationError
        If a reward in ``catalog`` cannot be credited under ``settings``.
    """

    def __init__(
        self,
        session: Session,
        *,
        catalog: Catalog,
        settings: Settings,
        random_source: Optional[RandomSource] = None,
    ) -> None:
        self._settings = settings
        limits = LedgerLimits.from_settings(settings)
        check_point_limits(catalog, limits)
        self._catalog = catalog
        self._random_source = random_source
        self.store = PointStore(session, limits=limits)
        self.ledger = Ledger(self.store, limits)

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    def _require_user(self, user_id: int) -> None:
        if self.store.find_user(user_id) is None:
            raise UserNotFoundError(user_id)

    def _resolve_limit(self, limit: Optional[int]) -> int:
        resolved = self._settings.history_default_limit if limit is None else limit
        if isinstance(resolved, bool) or not isinstance(resolved, int) or resolved <= 0:
            raise ValidationError("limit must be a positive integer")
        return resolved

    def execute_draw(self, user_id: int) -> DrawResult:
        """Draw a reward for ``user_id`` and credit its points.

        Notes
        -----
        The steps run in this order:

        1. Verify the user exists.
        2. Draw a reward from the catalog.
        3. Load (and lock) or lazily create the user's point account, then
           validate the credit before anything is written.
        4. Persist the :class:`DrawResult`.
        5. Apply the credit with a single conditional balance update.
        6. Persist the matching ``gacha`` :class:`PointTransaction`.

        Steps 3-6 run inside a savepoint: if any of them fails the draw
        result, balance change and ledger entry are all rolled back.

        Returns
        -------
        DrawResult
            The persisted draw result.

        Raises
        ------
        UserNotFoundError
            If ``user_id`` does not exist.
        ValidationError
            If the reward's points cannot be credited (e.g. balance cap).
        StorageError
            If persistence fails; the award must be treated as unconfirmed.
        """
        self._require_user(user_id)
        reward = draw(self._catalog, self._random_source)
        session = self.store.session

        try:
            with session.begin_nested():
                account = self.store.get_or_create_user_account(user_id)
                credited = self.ledger.credit(account, reward.points)
                transaction = self.ledger.record_transaction(
                    user_id,
                    reward.points,
                    TransactionKind.GACHA,
                    DRAW_DESCRIPTION_PREFIX + reward.name,
                )

                result = self.store.save_draw_result(DrawResult.for_reward(user_id, reward))
                updated = self.store.update_user_account(account, credited)
                transaction.draw_result_id = result.id
                self.store.save_transaction(transaction)
        except StorageError:
            logger.error(
                "Draw for user %s (reward %s) was rolled back after a storage failure",
                user_id,
                reward.id,
            )
            raise

        logger.info(
            "User %s drew %s (%s, %d points); balance now %d",
            user_id,
            reward.name,
            reward.rarity.label,
            reward.points,
            updated.balance,
        )
        return result

    def get_history(self, user_id: int, limit: Optional[int] = None) -> list[DrawResult]:
        """Return the most recent draws of ``user_id``, newest first."""
        resolved = self._resolve_limit(limit)
        self._require_user(user_id)
        return self.store.find_draw_results_by_user(user_id, resolved)

    def get_balance(self, user_id: int) -> int:
        """Return the point balance of ``user_id`` (0 before the first draw)."""
        self._require_user(user_id)
        account = self.store.get_user_account(user_id)
        return account.balance if account is not None else 0

    def get_transaction_history(
        self, user_id: int, limit: Optional[int] = None
    ) -> list[PointTransaction]:
        """Return the most recent ledger entries of ``user_id``, newest first."""
        resolved = self._resolve_limit(limit)
        self._require_user(user_id)
        return self.store.find_transactions_by_user(user_id, resolved)

    def spend_points(self, user_id: int, amount: int, description: str) -> PointTransaction:
        """Debit ``amount`` points and record a ``spend`` entry atomically.

        Raises
        ------
        UserNotFoundError
            If ``user_id`` does not exist.
        AccountNotFoundError
            If the user has never been credited.
        InsufficientBalanceError
            If the balance is lower than ``amount``.
        ValidationError
            If ``amount`` or ``description`` is invalid.
        """
        self._require_user(user_id)
        session = self.store.session
        try:
            with session.begin_nested():
                account = self.ledger.get_account(user_id, for_update=True)
                debited = self.ledger.debit(account, amount)
                transaction = self.ledger.record_transaction(
                    user_id, amount, TransactionKind.SPEND, description
                )
                updated = self.store.update_user_account(account, debited)
                self.store.save_transaction(transaction)
        except StorageError:
            logger.error(
                "Spend of %d points for user %s was rolled back after a storage failure",
                amount,
                user_id,
            )
            raise

        logger.info(
            "User %s spent %d points; balance now %d", user_id, amount, updated.balance
        )
        return transaction

    def reconcile_account(self, user_id: int) -> ReconciliationReport:
        """Compare the stored balance of ``user_id`` against the ledger.

        A mismatch means an award or spend was only partly applied; the
        transaction log is the source of truth when repairing it.
        """
        self._require_user(user_id)
        account = self.store.get_user_account(user_id)
        totals = self.store.ledger_totals(user_id)
        ledger_balance = sum(
            kind.sign * amount for kind, (_count, amount) in totals.items()
        )
        report = ReconciliationReport(
            user_id=user_id,
            stored_balance=account.balance if account is not None else 0,
            ledger_balance=ledger_balance,
            draw_count=self.store.count_draw_results(user_id),
            draw_credit_count=totals.get(TransactionKind.GACHA, (0, 0))[0],
        )
        if not report.consistent:
            logger.warning(
                "Ledger mismatch for user %s: stored=%d ledger=%d draws=%d credits=%d",
                user_id,
                report.stored_balance,
                report.ledger_balance,
                report.draw_count,
                report.draw_credit_count,
            )
        return report


__all__ = ["AwardOrchestrator", "ReconciliationReport", "DRAW_DESCRIPTION_PREFIX"]
