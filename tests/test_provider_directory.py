from booking_engine.domain.locations.repository import LocationRepository
from booking_engine.domain.providers.directory import ProviderDirectory, TimeSlot, slots_overlap
from conftest import MONDAY


def eligible_ids(db, suburb="Olympia", **kwargs):
    directory = ProviderDirectory(db, LocationRepository.load_graph(db))
    return sorted(m.provider.id for m in directory.find_eligible("Windhoek", suburb, **kwargs))


def test_only_verified_active_available_providers_in_town(db, seed, windhoek):
    ok = seed.provider("Eros")
    seed.provider("Eros", verified=False)
    seed.provider("Eros", active=False)
    seed.provider("Eros", available=False)
    seed.provider("Eros", town="Swakopmund")

    assert eligible_ids(db) == [ok.id]


def test_town_match_ignores_case(db, seed, windhoek):
    provider = seed.provider("Eros", town=" windhoek ")
    assert eligible_ids(db) == [provider.id]


def test_tier_must_be_within_provider_radius(db, seed, windhoek):
    near = seed.provider("Eros", max_tier=1)
    at_limit = seed.provider("Katutura", max_tier=3)
    too_far = seed.provider("Katutura", max_tier=2)
    seed.provider("Khomasdal", max_tier=3)

    ids = eligible_ids(db)

    assert near.id in ids
    assert at_limit.id in ids
    assert too_far.id not in ids
    assert len(ids) == 2


def test_unmapped_suburb_pair_is_excluded(db, seed, windhoek):
    seed.provider("Ludwigsdorf", max_tier=4)
    assert eligible_ids(db) == []


def test_same_suburb_provider_is_tier_zero(db, seed, windhoek):
    provider = seed.provider("Olympia", max_tier=0)
    directory = ProviderDirectory(db, LocationRepository.load_graph(db))

    matches = directory.find_eligible("Windhoek", "Olympia")

    assert [(m.provider.id, m.tier) for m in matches] == [(provider.id, 0)]


def test_declared_specializations_restrict_services(db, seed, windhoek):
    deep_clean = windhoek["service"]
    windows = seed.service(name="Window Cleaning")
    generalist = seed.provider("Eros")
    specialist = seed.provider("Eros", services=[windows])

    assert eligible_ids(db, service_id=deep_clean.id) == [generalist.id]
    assert eligible_ids(db, service_id=windows.id) == [generalist.id, specialist.id]
    assert eligible_ids(db) == [generalist.id, specialist.id]


def test_excluded_providers_are_skipped(db, seed, windhoek):
    first = seed.provider("Eros")
    second = seed.provider("Klein Windhoek")

    assert eligible_ids(db, exclude_provider_ids=[first.id]) == [second.id]


def test_providers_with_overlapping_jobs_are_dropped(db, seed, windhoek):
    busy = seed.provider("Eros")
    free = seed.provider("Klein Windhoek")
    seed.booking(windhoek["client"], windhoek["service"], provider=busy, booking_time="09:00")

    slot = TimeSlot(MONDAY, "10:00", 60)
    assert eligible_ids(db, slot=slot) == [free.id]

    later = TimeSlot(MONDAY, "11:00", 60)
    assert eligible_ids(db, slot=later) == [busy.id, free.id]


def test_cancelled_jobs_do_not_block_the_calendar(db, seed, windhoek):
    provider = seed.provider("Eros")
    seed.booking(windhoek["client"], windhoek["service"], provider=provider, status="cancelled")

    assert eligible_ids(db, slot=TimeSlot(MONDAY, "09:30", 60)) == [provider.id]


def test_slot_overlap_is_half_open():
    nine_to_ten = TimeSlot(MONDAY, "09:00", 60)
    assert not slots_overlap(nine_to_ten, TimeSlot(MONDAY, "10:00", 30))
    assert slots_overlap(nine_to_ten, TimeSlot(MONDAY, "09:59", 30))
    assert slots_overlap(TimeSlot(MONDAY, "08:00", 240), nine_to_ten)
