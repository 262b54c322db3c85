"""Location repository - Database operations for the location map"""

import logging

from sqlalchemy.orm import Session

from ...models import LocationDistance
from .graph import LocationGraph

logger = logging.getLogger(__name__)


class LocationRepository:
    """Repository for location map database operations"""

    @staticmethod
    def load_graph(db: Session) -> LocationGraph:
        """Build a LocationGraph from every row of the location map"""
        rows = db.query(
            LocationDistance.town,
            LocationDistance.suburb_a,
            LocationDistance.suburb_b,
            LocationDistance.distance,
        ).all()
        graph = LocationGraph((r.town, r.suburb_a, r.suburb_b, r.distance) for r in rows)
        logger.debug(f"📍 Loaded location graph with {len(graph)} entries")
        return graph

    @staticmethod
    def add_distance(db: Session, town: str, suburb_a: str, suburb_b: str, distance: int) -> LocationDistance:
        """Insert one directional distance entry"""
        entry = LocationDistance(town=town, suburb_a=suburb_a, suburb_b=suburb_b, distance=distance)
        db.add(entry)
        db.commit()
        db.refresh(entry)
        return entry
