"""
Assignment Selector

Ranks eligible providers by closest tier, then highest rating, then most
completed jobs, then lowest provider id, and picks the first.
"""

from dataclasses import dataclass
from typing import Union

from .directory import ProviderMatch


@dataclass(frozen=True)
class ProviderSelected:
    provider_id: int
    tier: int
    rating: float
    total_jobs_completed: int


@dataclass(frozen=True)
class NoEligibleProvider:
    reason: str = "No eligible provider for this location"


SelectionResult = Union[ProviderSelected, NoEligibleProvider]


def ranking_key(match: ProviderMatch) -> tuple:
    provider = match.provider
    return (
        match.tier,
        -(provider.rating or 0.0),
        -(provider.total_jobs_completed or 0),
        provider.id,
    )


def rank_candidates(matches: list[ProviderMatch]) -> list[ProviderMatch]:
    return sorted(matches, key=ranking_key)


def select_provider(matches: list[ProviderMatch]) -> SelectionResult:
    """Pick the best candidate, or NoEligibleProvider when there is none"""
    if not matches:
        return NoEligibleProvider()

    best = rank_candidates(matches)[0]
    return ProviderSelected(
        provider_id=best.provider.id,
        tier=best.tier,
        rating=best.provider.rating or 0.0,
        total_jobs_completed=best.provider.total_jobs_completed or 0,
    )
