"""SQLAlchemy-backed persistence for draws, accounts and ledger entries."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import ConcurrentUpdateError, StorageError, ValidationError
from .ledger import AccountState, LedgerLimits
from .models import (
    DrawResult,
    PointTransaction,
    TransactionKind,
    User,
    UserPointAccount,
)

logger = logging.getLogger(__name__)


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    """Re-raise SQLAlchemy failures raised during ``operation`` as :class:`StorageError`."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.debug("Storage failure during %s: %s", operation, exc)
        raise StorageError(f"{operation} failed: {exc}") from exc


def _check_limit(limit: int) -> None:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise ValidationError("limit must be a positive integer")


class PointStore:
    """Persistence operations used by the ledger and the award workflow.

    Every method flushes but never commits; the caller owns the transaction
    (typically ``with Session.begin() as session: ...``).

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    limits : Optional[LedgerLimits], default: None
        Bounds re-checked inside the conditional balance update.
    """

    def __init__(self, session: Session, *, limits: Optional[LedgerLimits] = None) -> None:
        self._session = session
        self._limits = limits or LedgerLimits()

    @property
    def session(self) -> Session:
        return self._session

    # -------- users --------
    def find_user(self, user_id: int) -> Optional[User]:
        with _storage_errors("find_user"):
            return self._session.get(User, user_id)

    # -------- draw results --------
    def save_draw_result(self, result: DrawResult) -> DrawResult:
        with _storage_errors("save_draw_result"):
            self._session.add(result)
            self._session.flush()
        return result

    def find_draw_results_by_user(self, user_id: int, limit: int) -> list[DrawResult]:
        """Return up to ``limit`` draws of ``user_id``, newest first."""
        _check_limit(limit)
        stmt = (
            select(DrawResult)
            .where(DrawResult.user_id == user_id)
            .order_by(DrawResult.created_at.desc(), DrawResult.id.desc())
            .limit(limit)
        )
        with _storage_errors("find_draw_results_by_user"):
            return list(self._session.scalars(stmt).all())

    def count_draw_results(self, user_id: int) -> int:
        stmt = select(func.count(DrawResult.id)).where(DrawResult.user_id == user_id)
        with _storage_errors("count_draw_results"):
            return int(self._session.scalar(stmt) or 0)

    # -------- accounts --------
    def get_user_account(
        self, user_id: int, *, for_update: bool = False
    ) -> Optional[AccountState]:
        """Return the account of ``user_id`` or ``None``.

        ``for_update`` locks the row until the surrounding transaction ends on
        backends that support ``SELECT ... FOR UPDATE``.
        """
        stmt = select(UserPointAccount).where(UserPointAccount.user_id == user_id)
        if for_update:
            stmt = stmt.with_for_update()
        stmt = stmt.execution_options(populate_existing=True)
        with _storage_errors("get_user_account"):
            account = self._session.scalars(stmt).first()
        return AccountState.of(account) if account is not None else None

    def create_user_account(self, user_id: int) -> AccountState:
        """Insert a zero-balance account for ``user_id``.

        Raises ``IntegrityError`` unchanged when the account already exists so
        :meth:`get_or_create_user_account` can recover from the race.
        """
        account = UserPointAccount(user_id=user_id)
        self._session.add(account)
        try:
            self._session.flush()
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            logger.debug("Storage failure during create_user_account: %s", exc)
            raise StorageError(f"create_user_account failed: {exc}") from exc
        return AccountState.of(account)

    def get_or_create_user_account(self, user_id: int) -> AccountState:
        """Return the locked account of ``user_id``, creating it on first use.

        When another transaction creates the account concurrently the
        insert is rolled back to a savepoint and the winner's row is used.
        """
        existing = self.get_user_account(user_id, for_update=True)
        if existing is not None:
            return existing

        try:
            with self._session.begin_nested():
                created = self.create_user_account(user_id)
        except IntegrityError as exc:
            logger.warning(
                "Point account for user %s was created concurrently; reusing it", user_id
            )
            existing = self.get_user_account(user_id, for_update=True)
            if existing is None:
                raise StorageError(
                    f"create_user_account failed for user {user_id}: {exc}"
                ) from exc
            return existing
        except SQLAlchemyError as exc:
            raise StorageError(f"create_user_account failed: {exc}") from exc

        logger.info("Created point account for user %s", user_id)
        return created

    def update_user_account(self, before: AccountState, after: AccountState) -> AccountState:
        """Persist the balance change from ``before`` to ``after`` atomically.

        The change is applied as a single relative ``UPDATE`` guarded by the
        balance bounds, so concurrent updates on the same row add up instead
        of overwriting each other. Returns the stored account after the update.

        Raises
        ------
        ConcurrentUpdateError
            If the guarded update matched no row (account vanished or the
            stored balance would leave ``[0, max_balance]``).
        """
        if before.id is None or before.id != after.id or before.user_id != after.user_id:
            raise ValidationError("before and after must describe the same stored account")

        delta = after.balance - before.balance
        new_balance = UserPointAccount.balance + delta
        stmt = (
            update(UserPointAccount)
            .where(
                UserPointAccount.id == before.id,
                new_balance >= 0,
                new_balance <= self._limits.max_balance,
            )
            .values(
                balance=new_balance,
                version=UserPointAccount.version + 1,
                updated_at=after.updated_at,
            )
            .execution_options(synchronize_session=False)
        )
        with _storage_errors("update_user_account"):
            result = self._session.execute(stmt)
            if result.rowcount != 1:
                raise ConcurrentUpdateError(
                    f"balance update for user {before.user_id} by {delta:+d} was rejected"
                )
            stored = self._session.get(
                UserPointAccount, before.id, populate_existing=True
            )
        if stored is None:  # pragma: no cover - row was updated above
            raise ConcurrentUpdateError(f"account {before.id} disappeared")
        return AccountState.of(stored)

    # -------- transactions --------
    def save_transaction(self, transaction: PointTransaction) -> PointTransaction:
        with _storage_errors("save_transaction"):
            self._session.add(transaction)
            self._session.flush()
        return transaction

    def find_transactions_by_user(self, user_id: int, limit: int) -> list[PointTransaction]:
        """Return up to ``limit`` ledger entries of ``user_id``, newest first."""
        _check_limit(limit)
        stmt = (
            select(PointTransaction)
            .where(PointTransaction.user_id == user_id)
            .order_by(PointTransaction.created_at.desc(), PointTransaction.id.desc())
            .limit(limit)
        )
        with _storage_errors("find_transactions_by_user"):
            return list(self._session.scalars(stmt).all())

    def ledger_totals(self, user_id: int) -> dict[TransactionKind, tuple[int, int]]:
        """Return ``{kind: (entry_count, amount_sum)}`` for ``user_id``."""
        stmt = (
            select(
                PointTransaction.kind,
                func.count(PointTransaction.id),
                func.coalesce(func.sum(PointTransaction.amount), 0),
            )
            .where(PointTransaction.user_id == user_id)
            .group_by(PointTransaction.kind)
        )
        with _storage_errors("ledger_totals"):
            rows = self._session.execute(stmt).all()
        return {
            TransactionKind(kind): (int(count), int(total)) for kind, count, total in rows
        }


__all__ = ["PointStore"]
