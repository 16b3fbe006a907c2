"""Database model for persisted draw outcomes."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.utils import dt_iso
from ..rewards.catalog import Rarity, RewardDefinition
from .base import Base
from .id_type import ID_TYPE

if TYPE_CHECKING:
    from .points import PointTransaction
    from .user import User


class DrawResult(Base):
    """Immutable record of one draw awarded to a user.

    The reward's name, tier and points are copied at draw time so history
    stays intact when the catalog is reloaded.
    """

    __tablename__ = "gacha_results"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Surrogate primary key."""

    user_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    """User who performed the draw. Existing history blocks user deletion."""

    reward_id: Mapped[int] = mapped_column(Integer, nullable=False)
    """Catalog id of the drawn reward."""

    reward_name: Mapped[str] = mapped_column(String(255), nullable=False)

    rarity: Mapped[Rarity] = mapped_column(
        SAEnum(
            Rarity,
            name="rarity",
            native_enum=False,
            length=16,
            values_callable=lambda tiers: [t.label for t in tiers],
        ),
        nullable=False,
    )

    points_earned: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    """Timestamp when the draw happened."""

    user: Mapped["User"] = relationship(back_populates="draw_results")
    transaction: Mapped[Optional["PointTransaction"]] = relationship(
        back_populates="draw_result", uselist=False
    )
    """Ledger credit recorded for this draw."""

    __table_args__ = (
        Index("ix_gacha_results_user_created", "user_id", "created_at"),
    )

    def __init__(
        self,
        *,
        user_id: int,
        reward_id: int,
        reward_name: str,
        rarity: Rarity,
        points_earned: int,
        created_at: Optional[datetime] = None,
    ) -> None:
        self.user_id = user_id
        self.reward_id = reward_id
        self.reward_name = reward_name
        self.rarity = rarity
        self.points_earned = points_earned
        if created_at is not None:
            self.created_at = created_at

    @classmethod
    def for_reward(cls, user_id: int, reward: RewardDefinition) -> "DrawResult":
        """Snapshot ``reward`` as a new, not yet persisted, result for ``user_id``."""

        return cls(
            user_id=user_id,
            reward_id=reward.id,
            reward_name=reward.name,
            rarity=reward.rarity,
            points_earned=reward.points,
            created_at=datetime.now(timezone.utc),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "item_id": self.reward_id,
            "item_name": self.reward_name,
            "rarity": Rarity(self.rarity).label,
            "points_earned": self.points_earned,
            "created_at": dt_iso(self.created_at),
        }

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<DrawResult(id={id}, user_id={uid}, reward={name}, points={pts})>".format(
            id=self.id, uid=self.user_id, name=self.reward_name, pts=self.points_earned
        )


__all__ = ["DrawResult"]
