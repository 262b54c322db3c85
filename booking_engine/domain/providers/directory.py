"""
Provider Directory Filter

Finds providers who may take a job at a client location:
- based in the same town, verified, active and available
- a known distance tier from their home suburb to the job suburb
- that tier within their own max distance tier
- offering the service (if they declared specializations)
- free at the requested time (if a slot is given)

An unmapped suburb pair excludes the provider. Unknown distance is never
treated as close.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Optional

from sqlalchemy.orm import Session

from ...models import Provider
from ...shared.validators import parse_booking_time
from ..locations.graph import NOT_FOUND, LocationGraph
from .repository import ProviderRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderMatch:
    provider: Provider
    tier: int


@dataclass(frozen=True)
class TimeSlot:
    booking_date: date
    booking_time: str  # HH:MM
    duration_minutes: int
    booking_id: Optional[int] = None  # The booking being placed, ignored when checking conflicts

    def bounds(self) -> tuple[datetime, datetime]:
        start = datetime.combine(self.booking_date, parse_booking_time(self.booking_time))
        return start, start + timedelta(minutes=self.duration_minutes or 60)


def provider_offers_service(provider: Provider, service_id: Optional[int]) -> bool:
    """Providers with no declared specializations offer every service"""
    if service_id is None or not provider.services:
        return True
    return any(s.id == service_id for s in provider.services)


def slots_overlap(a: TimeSlot, b: TimeSlot) -> bool:
    a_start, a_end = a.bounds()
    b_start, b_end = b.bounds()
    return a_start < b_end and a_end > b_start


class ProviderDirectory:
    """Eligibility filter over the provider directory"""

    def __init__(
        self,
        db: Session,
        graph: LocationGraph,
        service_filter: Callable[[Provider, Optional[int]], bool] = provider_offers_service,
    ):
        self.db = db
        self.graph = graph
        self.service_filter = service_filter
        self.repo = ProviderRepository()

    def find_eligible(
        self,
        town: str,
        suburb: str,
        service_id: Optional[int] = None,
        exclude_provider_ids: Iterable[int] = (),
        slot: Optional[TimeSlot] = None,
    ) -> list[ProviderMatch]:
        """Eligible (provider, tier) pairs for a job location, in directory order"""
        excluded = set(exclude_provider_ids)
        candidates = self.repo.get_candidate_providers(self.db, town)

        matches = []
        for provider in candidates:
            if provider.id in excluded:
                continue
            if not provider.suburb:
                continue

            tier = self.graph.distance(town, provider.suburb, suburb)
            if tier is NOT_FOUND:
                logger.debug(
                    f"No distance data for {provider.suburb} -> {suburb} in {town}, "
                    f"skipping provider {provider.id}"
                )
                continue

            if tier > provider.max_distance_tier:
                continue

            if not self.service_filter(provider, service_id):
                continue

            matches.append(ProviderMatch(provider=provider, tier=tier))

        if slot is not None and matches:
            matches = self._drop_conflicting(matches, slot)

        logger.info(
            f"📍 {len(matches)} eligible provider(s) for {town}/{suburb} "
            f"(service={service_id}, excluded={sorted(excluded)})"
        )
        return matches

    def _drop_conflicting(self, matches: list[ProviderMatch], slot: TimeSlot) -> list[ProviderMatch]:
        """Remove providers already booked for an overlapping time range"""
        busy = self.repo.get_busy_bookings(
            self.db,
            [m.provider.id for m in matches],
            slot.booking_date,
            exclude_booking_id=slot.booking_id,
        )
        busy_provider_ids = {
            b.provider_id
            for b in busy
            if slots_overlap(
                slot, TimeSlot(b.booking_date, b.booking_time, b.duration_minutes, b.id)
            )
        }
        if busy_provider_ids:
            logger.info(f"⏰ Providers with conflicting bookings: {sorted(busy_provider_ids)}")
        return [m for m in matches if m.provider.id not in busy_provider_ids]
