"""Database models for point balances and the append-only ledger."""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.utils import dt_iso
from .base import Base
from .id_type import ID_TYPE

if TYPE_CHECKING:
    from .draw import DrawResult
    from .user import User


class TransactionKind(str, enum.Enum):
    """Direction of a ledger entry; the stored amount itself is always positive."""

    GACHA = "gacha"
    """Credit awarded by a draw."""

    SPEND = "spend"
    """Debit requested by the user."""

    @property
    def sign(self) -> int:
        return 1 if self is TransactionKind.GACHA else -1


class UserPointAccount(Base):
    """Running point balance of a single user.

    ``balance`` must only change through
    :meth:`fortunespin.store.PointStore.update_user_account`, which applies the
    change as one conditional ``UPDATE`` and bumps ``version``.
    """

    __tablename__ = "user_points"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    user_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    """Owner of the account; one account per user."""

    balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Current number of points."""

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Incremented by every balance update."""

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    """Timestamp of the last balance change."""

    user: Mapped["User"] = relationship(back_populates="point_account")

    __table_args__ = (CheckConstraint("balance >= 0", name="balance_non_negative"),)

    def __init__(
        self,
        *,
        user_id: int,
        balance: int = 0,
        version: int = 0,
        updated_at: Optional[datetime] = None,
    ) -> None:
        self.user_id = user_id
        self.balance = balance
        self.version = version
        if updated_at is not None:
            self.updated_at = updated_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<UserPointAccount(user_id={uid}, balance={bal}, version={ver})>".format(
            uid=self.user_id, bal=self.balance, ver=self.version
        )


class PointTransaction(Base):
    """Immutable ledger entry. Rows are inserted, never updated."""

    __tablename__ = "point_transactions"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )

    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    """Positive number of points moved; direction comes from ``kind``."""

    kind: Mapped[TransactionKind] = mapped_column(
        SAEnum(
            TransactionKind,
            name="transaction_kind",
            native_enum=False,
            length=20,
            values_callable=lambda kinds: [k.value for k in kinds],
        ),
        nullable=False,
    )

    description: Mapped[str] = mapped_column(String(255), nullable=False)

    draw_result_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE,
        ForeignKey("gacha_results.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )
    """Draw that produced this credit; ``None`` for spends."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    user: Mapped["User"] = relationship(back_populates="transactions")
    draw_result: Mapped[Optional["DrawResult"]] = relationship(
        back_populates="transaction"
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="amount_positive"),
        Index("ix_point_transactions_user_created", "user_id", "created_at"),
    )

    def __init__(
        self,
        *,
        user_id: int,
        amount: int,
        kind: TransactionKind,
        description: str,
        draw_result_id: Optional[int] = None,
        created_at: Optional[datetime] = None,
    ) -> None:
        self.user_id = user_id
        self.amount = amount
        self.kind = kind
        self.description = description
        self.draw_result_id = draw_result_id
        if created_at is not None:
            self.created_at = created_at

    @property
    def signed_amount(self) -> int:
        return self.amount * TransactionKind(self.kind).sign

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "amount": self.amount,
            "type": TransactionKind(self.kind).value,
            "description": self.description,
            "created_at": dt_iso(self.created_at),
        }

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<PointTransaction(id={id}, user_id={uid}, kind={kind}, amount={amt})>".format(
            id=self.id, uid=self.user_id, kind=self.kind, amt=self.amount
        )


__all__ = ["TransactionKind", "UserPointAccount", "PointTransaction"]
