"""Runtime settings read from the environment (and an optional ``.env``)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from fortunespin.db.utils import resolve_sqlite_url
from fortunespin.errors import ValidationError

# Project root directory (repo root)
ROOT_DIR = Path(__file__).resolve().parents[1]

DEFAULT_DB_URL = "sqlite:///./dev.db"
DEFAULT_MAX_BALANCE = 1_000_000_000
DEFAULT_MIN_TX_AMOUNT = 1
DEFAULT_MAX_TX_AMOUNT = 100_000
DEFAULT_HISTORY_LIMIT = 20


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration.

    Attributes
    ----------
    database_url : str
        SQLAlchemy URL; relative SQLite paths are resolved against the repo root.
    catalog_path : Optional[Path]
        JSON reward catalog. ``None`` selects the built-in catalog.
    max_balance : int
        Upper bound of any account balance.
    min_tx_amount : int
        Smallest amount accepted by a credit, debit or transaction.
    max_tx_amount : int
        Largest amount accepted by a credit, debit or transaction.
    history_default_limit : int
        Page size used by callers that do not supply a history ``limit``.
    """

    database_url: str = DEFAULT_DB_URL
    catalog_path: Optional[Path] = None
    max_balance: int = DEFAULT_MAX_BALANCE
    min_tx_amount: int = DEFAULT_MIN_TX_AMOUNT
    max_tx_amount: int = DEFAULT_MAX_TX_AMOUNT
    history_default_limit: int = DEFAULT_HISTORY_LIMIT

    def __post_init__(self) -> None:
        if self.min_tx_amount < 1:
            raise ValidationError("MIN_TX_AMOUNT must be at least 1")
        if self.max_tx_amount < self.min_tx_amount:
            raise ValidationError("MAX_TX_AMOUNT must not be below MIN_TX_AMOUNT")
        if self.max_balance < self.max_tx_amount:
            raise ValidationError("MAX_BALANCE must not be below MAX_TX_AMOUNT")
        if self.history_default_limit <= 0:
            raise ValidationError("HISTORY_DEFAULT_LIMIT must be a positive integer")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.strip().replace("_", ""))
    except ValueError as exc:
        raise ValidationError(f"{name} must be an integer, got {raw!r}") from exc


def load_settings() -> Settings:
    """Build :class:`Settings` from ``os.environ`` after loading ``.env``."""
    load_dotenv()
    catalog_path = os.getenv("REWARD_CATALOG_PATH")
    return Settings(
        database_url=resolve_sqlite_url(os.getenv("DB_URL", DEFAULT_DB_URL), ROOT_DIR),
        catalog_path=Path(catalog_path) if catalog_path else None,
        max_balance=_int_env("MAX_BALANCE", DEFAULT_MAX_BALANCE),
        min_tx_amount=_int_env("MIN_TX_AMOUNT", DEFAULT_MIN_TX_AMOUNT),
        max_tx_amount=_int_env("MAX_TX_AMOUNT", DEFAULT_MAX_TX_AMOUNT),
        history_default_limit=_int_env("HISTORY_DEFAULT_LIMIT", DEFAULT_HISTORY_LIMIT),
    )


__all__ = ["Settings", "load_settings", "ROOT_DIR"]
