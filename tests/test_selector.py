from types import SimpleNamespace

from booking_engine.domain.providers.directory import ProviderMatch
from booking_engine.domain.providers.selector import (
    NoEligibleProvider,
    ProviderSelected,
    rank_candidates,
    select_provider,
)


def match(provider_id, tier, rating, jobs):
    provider = SimpleNamespace(id=provider_id, rating=rating, total_jobs_completed=jobs)
    return ProviderMatch(provider=provider, tier=tier)


def test_empty_candidate_list_is_a_typed_result():
    result = select_provider([])
    assert isinstance(result, NoEligibleProvider)


def test_tie_on_tier_and_rating_goes_to_more_experience():
    result = select_provider([match(1, 1, 4.8, 12), match(2, 1, 4.8, 30)])

    assert isinstance(result, ProviderSelected)
    assert result.provider_id == 2
    assert result.total_jobs_completed == 30


def test_closer_tier_beats_better_rating():
    result = select_provider([match(1, 2, 5.0, 100), match(2, 1, 3.0, 1)])
    assert result.provider_id == 2
    assert result.tier == 1


def test_rating_beats_experience_within_a_tier():
    result = select_provider([match(1, 1, 4.2, 200), match(2, 1, 4.9, 3)])
    assert result.provider_id == 2


def test_full_tie_falls_back_to_lowest_id():
    ranked = rank_candidates([match(9, 1, 4.0, 5), match(3, 1, 4.0, 5), match(5, 1, 4.0, 5)])
    assert [m.provider.id for m in ranked] == [3, 5, 9]


def test_ranking_ignores_input_order():
    matches = [match(1, 2, 4.0, 5), match(2, 0, 3.5, 1), match(3, 1, 4.9, 40), match(4, 1, 4.9, 41)]
    expected = [2, 4, 3, 1]

    assert [m.provider.id for m in rank_candidates(matches)] == expected
    assert [m.provider.id for m in rank_candidates(list(reversed(matches)))] == expected


def test_missing_rating_and_jobs_rank_last():
    result = select_provider([match(1, 1, None, None), match(2, 1, 0.5, 0)])
    assert result.provider_id == 2
