"""Weighted random selection of rewards from a catalog."""

from __future__ import annotations

import logging
import random
from typing import Optional, Protocol

from ..errors import NoItemsAvailableError, ValidationError
from .catalog import Catalog, RewardDefinition

logger = logging.getLogger(__name__)


class RandomSource(Protocol):
    """Anything with a ``random()`` method returning a float in ``[0, 1)``.

    :class:`random.Random` and :class:`random.SystemRandom` both qualify.
    """

    def random(self) -> float: ...


def default_random_source() -> RandomSource:
    """Return an OS-entropy source that keeps no state between draws."""
    return random.SystemRandom()


def draw(catalog: Catalog, random_source: Optional[RandomSource] = None) -> RewardDefinition:
    """Pick one reward from ``catalog`` according to its probabilities.

    Parameters
    ----------
    catalog : Catalog
        Validated catalog; items are walked in catalog order.
    random_source : Optional[RandomSource], default: None
        Source of the uniform sample. A fresh :class:`random.SystemRandom`
        is used when omitted; pass a seeded :class:`random.Random` for
        reproducible draws.

    Returns
    -------
    RewardDefinition
        The first item whose cumulative probability exceeds the sample.
        When floating-point drift leaves the sample at or beyond the final
        cumulative value, the last item with a positive probability is
        returned.

    Raises
    ------
    NoItemsAvailableError
        If the catalog is empty.
    ValidationError
        If the random source yields a value outside ``[0, 1)``.

    Notes
    -----
    A catalog is the only thing that can make a well-behaved source fail.
    The ``ValidationError`` above reports a broken random source and is
    never caused by drift. The fallback skips trailing zero-probability
    items, because a reward with probability 0 is never drawn. In a catalog
    without such items the fallback is the final item.
    """
    items = catalog.items
    if not items:
        raise NoItemsAvailableError("the reward catalog is empty")

    source = random_source if random_source is not None else default_random_source()
    u = source.random()
    if not 0.0 <= u < 1.0:
        raise ValidationError(f"random source returned {u!r}, expected a value in [0, 1)")

    cumulative = 0.0
    for item in items:
        cumulative += item.probability
        if u < cumulative:
            return item

    fallback = next(
        (item for item in reversed(items) if item.probability > 0.0), items[-1]
    )
    logger.debug(
        "Draw sample %.12f reached cumulative %.12f; falling back to reward %s",
        u,
        cumulative,
        fallback.id,
    )
    return fallback


__all__ = ["RandomSource", "default_random_source", "draw"]
