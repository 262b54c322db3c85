"""
Location Graph

Static mapping of (town, suburb A, suburb B) to an integer distance tier.
Tier 0 is the same suburb, tier 4 the far side of town. A pair with no entry
is NOT_FOUND, which callers must treat as unreachable rather than as "far".
"""

import logging
from typing import Iterable, Optional

from ...shared.validators import normalize_place

logger = logging.getLogger(__name__)

MIN_TIER = 0
MAX_TIER = 4

# Returned by LocationGraph.distance when the pair is not mapped
NOT_FOUND = None


class LocationGraph:
    """Read-only distance lookup. Entries are directional: (A, B) says nothing about (B, A)."""

    def __init__(self, entries: Iterable[tuple[str, str, str, int]] = ()):
        self._tiers: dict[tuple[str, str, str], int] = {}
        for town, suburb_a, suburb_b, tier in entries:
            if tier is None or tier < MIN_TIER or tier > MAX_TIER:
                raise ValueError(
                    f"Distance tier for {town}/{suburb_a}->{suburb_b} must be between "
                    f"{MIN_TIER} and {MAX_TIER}, got {tier}"
                )
            key = (normalize_place(town), normalize_place(suburb_a), normalize_place(suburb_b))
            self._tiers[key] = int(tier)

    def distance(self, town: str, suburb_a: str, suburb_b: str) -> Optional[int]:
        """Tier between two suburbs of a town, or NOT_FOUND"""
        if not town or not suburb_a or not suburb_b:
            return NOT_FOUND

        town_key = normalize_place(town)
        a_key = normalize_place(suburb_a)
        b_key = normalize_place(suburb_b)

        # Same suburb is always tier 0, stored or not
        if a_key == b_key:
            return 0

        return self._tiers.get((town_key, a_key, b_key), NOT_FOUND)

    def __len__(self) -> int:
        return len(self._tiers)
