"""Provider service - Business logic for provider lookups"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import NotFoundError
from ...models import Booking
from ..locations.repository import LocationRepository
from .directory import ProviderDirectory, ProviderMatch
from .repository import ProviderRepository
from .selector import rank_candidates

logger = logging.getLogger(__name__)


class ProviderService:
    """Service layer for provider business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ProviderRepository()

    def find_ranked_candidates(
        self, town: str, suburb: str, service_id: Optional[int] = None
    ) -> list[ProviderMatch]:
        """Eligible providers for a location in the order automatic assignment would try them"""
        directory = ProviderDirectory(self.db, LocationRepository.load_graph(self.db))
        return rank_candidates(directory.find_eligible(town, suburb, service_id=service_id))

    def get_provider_bookings(self, provider_id: int, status: Optional[str] = None) -> list[Booking]:
        if not self.repo.get_provider_by_id(self.db, provider_id):
            raise NotFoundError("Provider", provider_id)
        return self.repo.get_provider_bookings(self.db, provider_id, status)
