from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, String, select
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import Base
from .id_type import ID_TYPE

if TYPE_CHECKING:
    from .draw import DrawResult
    from .points import PointTransaction, UserPointAccount


class User(Base):
    """A player who can spin for rewards.

    Profile management lives outside this package; the draw workflows only
    need to know that the user exists.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    point_account: Mapped[Optional["UserPointAccount"]] = relationship(
        back_populates="user", uselist=False
    )
    transactions: Mapped[list["PointTransaction"]] = relationship(
        back_populates="user"
    )
    draw_results: Mapped[list["DrawResult"]] = relationship(back_populates="user")

    def __init__(
        self,
        name: str,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ) -> None:
        self.name = name
        if created_at is not None:
            self.created_at = created_at
        if updated_at is not None:
            self.updated_at = updated_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<User(id={self.id}, name={self.name!r})>"

    @classmethod
    def get_by_name(cls, session: Session, name: str) -> Optional["User"]:
        """Return the first user called ``name`` if one exists."""

        return session.scalars(select(cls).where(cls.name == name)).first()
