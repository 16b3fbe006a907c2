"""Reward definitions and the validated, immutable draw catalog."""

from __future__ import annotations

import enum
import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Iterator, Mapping, Optional, Sequence, Union

from ..errors import ValidationError

if TYPE_CHECKING:
    from ..ledger import LedgerLimits

PROBABILITY_TOLERANCE = 0.001
MAX_REWARD_NAME_LENGTH = 200


class Rarity(enum.IntEnum):
    """Rarity tier of a reward, ordered from most to least common."""

    COMMON = 1
    RARE = 2
    EPIC = 3
    LEGENDARY = 4

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @property
    def point_range(self) -> tuple[int, int]:
        """Inclusive ``(min, max)`` point value allowed for this tier."""
        return _TIER_POINT_RANGES[self]

    @classmethod
    def from_value(cls, value: Union["Rarity", int, str]) -> "Rarity":
        """Parse a tier from its name (any case) or its ordinal.

        Raises
        ------
        ValidationError
            If ``value`` does not name a tier.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise ValidationError(f"invalid rarity level: {value!r}")
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                raise ValidationError(f"invalid rarity level: {value!r}") from None
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValidationError(f"invalid rarity level: {value!r}") from None
        raise ValidationError(f"invalid rarity level: {value!r}")


_TIER_POINT_RANGES = {
    Rarity.COMMON: (1, 50),
    Rarity.RARE: (10, 200),
    Rarity.EPIC: (100, 1000),
    Rarity.LEGENDARY: (500, 5000),
}


@dataclass(frozen=True)
class RewardDefinition:
    """A single reward that can come out of a draw.

    Attributes
    ----------
    id : int
        Positive identifier, unique within a catalog.
    name : str
        Display name.
    rarity : Rarity
        Tier bounding ``points``.
    points : int
        Points credited when this reward is drawn.
    probability : float
        Chance of being drawn, in ``[0, 1]``.
    """

    id: int
    name: str
    rarity: Rarity
    points: int
    probability: float

    def validate(self) -> None:
        """Raise :class:`ValidationError` if the definition breaks a tier rule."""
        if isinstance(self.id, bool) or not isinstance(self.id, int) or self.id <= 0:
            raise ValidationError("reward ID must be positive")
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValidationError("reward name cannot be empty")
        if len(self.name) > MAX_REWARD_NAME_LENGTH:
            raise ValidationError(
                f"reward {self.id}: name longer than {MAX_REWARD_NAME_LENGTH} characters"
            )
        if not isinstance(self.rarity, Rarity):
            raise ValidationError("invalid rarity level")
        if isinstance(self.points, bool) or not isinstance(self.points, int):
            raise ValidationError(f"reward {self.id}: points must be an integer")
        low, high = self.rarity.point_range
        if not low <= self.points <= high:
            raise ValidationError(
                f"reward {self.id}: {self.points} points outside the "
                f"{self.rarity.label} range [{low}, {high}]"
            )
        if not isinstance(self.probability, (int, float)) or isinstance(
            self.probability, bool
        ):
            raise ValidationError(f"reward {self.id}: probability must be a number")
        if math.isnan(self.probability) or not 0.0 <= self.probability <= 1.0:
            raise ValidationError(
                f"reward {self.id}: probability must be between 0 and 1"
            )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "RewardDefinition":
        """Build a definition from a JSON-style mapping.

        Accepted keys are ``id``, ``name``, ``rarity``, ``points`` and
        ``probability``; validation is left to :func:`build_catalog`.
        """
        missing = [
            key
            for key in ("id", "name", "rarity", "points", "probability")
            if key not in data
        ]
        if missing:
            raise ValidationError(f"reward definition missing keys: {', '.join(missing)}")
        probability = data["probability"]
        if isinstance(probability, int) and not isinstance(probability, bool):
            probability = float(probability)
        return cls(
            id=data["id"],
            name=data["name"],
            rarity=Rarity.from_value(data["rarity"]),
            points=data["points"],
            probability=probability,
        )


class Catalog:
    """Ordered, validated, read-only sequence of reward definitions.

    Instances are safe to share between threads: nothing mutates them after
    :func:`build_catalog` returns.
    """

    __slots__ = ("_items", "_by_id")

    def __init__(self, items: Sequence[RewardDefinition]) -> None:
        self._items: tuple[RewardDefinition, ...] = tuple(items)
        self._by_id = {item.id: item for item in self._items}

    def __iter__(self) -> Iterator[RewardDefinition]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<Catalog({len(self._items)} rewards)>"

    @property
    def items(self) -> tuple[RewardDefinition, ...]:
        return self._items

    @property
    def total_probability(self) -> float:
        return math.fsum(item.probability for item in self._items)

    def get(self, reward_id: int) -> Optional[RewardDefinition]:
        """Return the definition with ``reward_id`` or ``None``."""
        return self._by_id.get(reward_id)

    def items_by_tier(self, rarity: Union[Rarity, int, str]) -> list[RewardDefinition]:
        """Return the rewards of ``rarity`` in catalog order (empty when none)."""
        tier = Rarity.from_value(rarity)
        return [item for item in self._items if item.rarity is tier]


DEFAULT_REWARDS: tuple[RewardDefinition, ...] = (
    RewardDefinition(1, "Bronze Coin", Rarity.COMMON, 10, 0.60),
    RewardDefinition(2, "Silver Coin", Rarity.RARE, 50, 0.30),
    RewardDefinition(3, "Gold Coin", Rarity.EPIC, 200, 0.08),
    RewardDefinition(4, "Diamond", Rarity.LEGENDARY, 1000, 0.02),
)


def check_point_limits(catalog: Catalog, limits: "LedgerLimits") -> None:
    """Ensure every reward in ``catalog`` can be credited under ``limits``.

    Raises
    ------
    ValidationError
        If a reward's points fall outside ``[min_tx_amount, max_tx_amount]``.
    """
    for item in catalog:
        if not limits.min_tx_amount <= item.points <= limits.max_tx_amount:
            raise ValidationError(
                f"reward {item.id} ({item.name}): {item.points} points outside the "
                f"transaction range [{limits.min_tx_amount}, {limits.max_tx_amount}]"
            )


def build_catalog(
    definitions: Iterable[RewardDefinition],
    *,
    limits: Optional["LedgerLimits"] = None,
) -> Catalog:
    """Validate ``definitions`` as a whole and freeze them into a :class:`Catalog`.

    Parameters
    ----------
    definitions : Iterable[RewardDefinition]
        Rewards in draw order.
    limits : Optional[LedgerLimits], default: None
        When given, every reward's points must also be a creditable amount.

    Raises
    ------
    ValidationError
        If any definition is invalid, two definitions share an id, the
        probabilities do not sum to 1.0 within :data:`PROBABILITY_TOLERANCE`,
        or a reward cannot be credited under ``limits``.
    """
    items = list(definitions)
    seen: set[int] = set()
    for item in items:
        item.validate()
        if item.id in seen:
            raise ValidationError(f"duplicate reward ID {item.id}")
        seen.add(item.id)

    catalog = Catalog(items)
    total = catalog.total_probability
    if abs(total - 1.0) > PROBABILITY_TOLERANCE:
        raise ValidationError(
            f"reward probabilities must sum to 1.0 (got {total:.6f})"
        )
    if limits is not None:
        check_point_limits(catalog, limits)
    return catalog


def load_catalog(
    path: Optional[Union[str, Path]] = None,
    *,
    limits: Optional["LedgerLimits"] = None,
) -> Catalog:
    """Load and validate the reward catalog.

    Call this once at startup and share the returned catalog.

    Parameters
    ----------
    path : Optional[str | Path], default: None
        JSON file holding a list of reward objects. When omitted the
        built-in :data:`DEFAULT_REWARDS` are used.
    limits : Optional[LedgerLimits], default: None
        Ledger bounds the rewards are checked against.

    Returns
    -------
    Catalog
        Immutable catalog to hand to the draw engine.

    Raises
    ------
    ValidationError
        If the file cannot be parsed or the catalog breaks any rule. Callers
        should treat this as fatal at startup.
    """
    if path is None:
        return build_catalog(DEFAULT_REWARDS, limits=limits)

    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ValidationError(f"cannot read reward catalog {path}: {exc}") from exc

    if isinstance(raw, Mapping):
        raw = raw.get("rewards")
    if not isinstance(raw, list):
        raise ValidationError("reward catalog must be a list of reward objects")
    definitions = []
    for entry in raw:
        if not isinstance(entry, Mapping):
            raise ValidationError("reward catalog entries must be objects")
        definitions.append(RewardDefinition.from_mapping(entry))
    return build_catalog(definitions, limits=limits)


__all__ = [
    "MAX_REWARD_NAME_LENGTH",
    "PROBABILITY_TOLERANCE",
    "Rarity",
    "RewardDefinition",
    "Catalog",
    "DEFAULT_REWARDS",
    "build_catalog",
    "check_point_limits",
    "load_catalog",
]
