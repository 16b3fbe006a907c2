"""Reward catalog and draw engine."""

from .catalog import (
    DEFAULT_REWARDS,
    MAX_REWARD_NAME_LENGTH,
    PROBABILITY_TOLERANCE,
    Catalog,
    Rarity,
    RewardDefinition,
    build_catalog,
    check_point_limits,
    load_catalog,
)
from .engine import RandomSource, default_random_source, draw

__all__ = [
    "Catalog",
    "DEFAULT_REWARDS",
    "MAX_REWARD_NAME_LENGTH",
    "PROBABILITY_TOLERANCE",
    "RandomSource",
    "Rarity",
    "RewardDefinition",
    "build_catalog",
    "check_point_limits",
    "default_random_source",
    "draw",
    "load_catalog",
]
