"""Point ledger: bounded credit/debit arithmetic and transaction records.

``credit`` and ``debit`` are pure: they validate the request and return the
account value the caller should persist. Persisting the new balance and the
matching :class:`PointTransaction` is done together by the workflows through
:class:`fortunespin.store.PointStore`.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from .config import Settings
from .errors import AccountNotFoundError, InsufficientBalanceError, ValidationError
from .models import PointTransaction, TransactionKind, UserPointAccount

if TYPE_CHECKING:
    from .store import PointStore

MAX_DESCRIPTION_LENGTH = 255


@dataclass(frozen=True)
class LedgerLimits:
    """Bounds applied to every balance change."""

    min_tx_amount: int = 1
    max_tx_amount: int = 100_000
    max_balance: int = 1_000_000_000

    @classmethod
    def from_settings(cls, settings: Settings) -> "LedgerLimits":
        return cls(
            min_tx_amount=settings.min_tx_amount,
            max_tx_amount=settings.max_tx_amount,
            max_balance=settings.max_balance,
        )


@dataclass(frozen=True)
class AccountState:
    """Detached, immutable view of a :class:`UserPointAccount` row."""

    id: Optional[int]
    user_id: int
    balance: int
    version: int
    updated_at: datetime

    @classmethod
    def of(cls, account: UserPointAccount) -> "AccountState":
        return cls(
            id=account.id,
            user_id=account.user_id,
            balance=account.balance,
            version=account.version,
            updated_at=account.updated_at,
        )


class Ledger:
    """Balance rules for point accounts.

    Parameters
    ----------
    store : PointStore
        Store used by :meth:`get_account`.
    limits : Optional[LedgerLimits], default: None
        Amount and balance bounds; defaults to :class:`LedgerLimits()`.
    """

    def __init__(self, store: "PointStore", limits: Optional[LedgerLimits] = None) -> None:
        self._store = store
        self.limits = limits or LedgerLimits()

    def get_account(self, user_id: int, *, for_update: bool = False) -> AccountState:
        """Return the account of ``user_id``, optionally locking its row.

        Raises
        ------
        AccountNotFoundError
            If the user has no account yet.
        """
        account = self._store.get_user_account(user_id, for_update=for_update)
        if account is None:
            raise AccountNotFoundError(user_id)
        return account

    def validate_amount(self, amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValidationError(f"amount must be an integer, got {amount!r}")
        if amount <= 0:
            raise ValidationError("amount must be positive")
        if amount < self.limits.min_tx_amount:
            raise ValidationError(
                f"amount {amount} is below the minimum of {self.limits.min_tx_amount}"
            )
        if amount > self.limits.max_tx_amount:
            raise ValidationError(
                f"amount {amount} exceeds the maximum of {self.limits.max_tx_amount}"
            )

    def credit(self, account: AccountState, amount: int) -> AccountState:
        """Return ``account`` with ``amount`` points added.

        Raises
        ------
        ValidationError
            If ``amount`` is out of range or the new balance would exceed
            ``max_balance``. ``account`` itself is never modified.
        """
        self.validate_amount(amount)
        new_balance = account.balance + amount
        if new_balance > self.limits.max_balance:
            raise ValidationError(
                f"balance {account.balance} + {amount} exceeds the maximum of "
                f"{self.limits.max_balance}"
            )
        return replace(account, balance=new_balance, updated_at=_now())

    def debit(self, account: AccountState, amount: int) -> AccountState:
        """Return ``account`` with ``amount`` points removed.

        Raises
        ------
        ValidationError
            If ``amount`` is out of range.
        InsufficientBalanceError
            If the balance is lower than ``amount``.
        """
        self.validate_amount(amount)
        if account.balance < amount:
            raise InsufficientBalanceError(account.balance, amount)
        return replace(account, balance=account.balance - amount, updated_at=_now())

    def record_transaction(
        self,
        user_id: int,
        amount: int,
        kind: TransactionKind,
        description: str,
        *,
        draw_result_id: Optional[int] = None,
    ) -> PointTransaction:
        """Build a new, unsaved ledger entry stamped with the current time."""
        self.validate_amount(amount)
        if not isinstance(description, str) or not description.strip():
            raise ValidationError("transaction description cannot be empty")
        if len(description.strip()) > MAX_DESCRIPTION_LENGTH:
            raise ValidationError(
                f"transaction description longer than {MAX_DESCRIPTION_LENGTH} characters"
            )
        return PointTransaction(
            user_id=user_id,
            amount=amount,
            kind=TransactionKind(kind),
            description=description.strip(),
            draw_result_id=draw_result_id,
            created_at=_now(),
        )


def _now() -> datetime:
    return datetime.now(timezone.utc)


__all__ = ["AccountState", "Ledger", "LedgerLimits", "MAX_DESCRIPTION_LENGTH"]
