"""Exception hierarchy shared by the catalog, ledger, store and workflows."""

from __future__ import annotations


class FortuneSpinError(Exception):
    """Base class for every error raised by :mod:`fortunespin`."""


class ValidationError(FortuneSpinError, ValueError):
    """Malformed catalog entry, out-of-range amount, or bad request input."""


class InsufficientBalanceError(ValidationError):
    """A debit asked for more points than the account holds."""

    def __init__(self, balance: int, amount: int) -> None:
        super().__init__(
            f"insufficient balance: requested {amount}, available {balance}"
        )
        self.balance = balance
        self.amount = amount


class NotFoundError(FortuneSpinError, LookupError):
    """A user or point account does not exist."""


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: int) -> None:
        super().__init__(f"user {user_id} not found")
        self.user_id = user_id


class AccountNotFoundError(NotFoundError):
    def __init__(self, user_id: int) -> None:
        super().__init__(f"no point account for user {user_id}")
        self.user_id = user_id


class NoItemsAvailableError(FortuneSpinError):
    """The catalog handed to the draw engine has no entries."""


class StorageError(FortuneSpinError, RuntimeError):
    """The persistence layer failed; the operation must be treated as unconfirmed."""


class ConcurrentUpdateError(StorageError):
    """A conditional balance update matched no row."""


__all__ = [
    "FortuneSpinError",
    "ValidationError",
    "InsufficientBalanceError",
    "NotFoundError",
    "UserNotFoundError",
    "AccountNotFoundError",
    "NoItemsAvailableError",
    "StorageError",
    "ConcurrentUpdateError",
]
