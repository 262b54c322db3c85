"""Location router - FastAPI endpoints for distance lookups"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ...database import get_db
from .repository import LocationRepository

router = APIRouter(prefix="/locations", tags=["Locations"])


class DistanceResponse(BaseModel):
    town: str
    suburb_a: str
    suburb_b: str
    tier: Optional[int]
    found: bool


@router.get("/distance", response_model=DistanceResponse)
async def get_distance(
    town: str = Query(...),
    suburb_a: str = Query(...),
    suburb_b: str = Query(...),
    db: Session = Depends(get_db),
):
    """Distance tier between two suburbs; tier is null when the pair is not mapped"""
    tier = LocationRepository.load_graph(db).distance(town, suburb_a, suburb_b)
    return DistanceResponse(
        town=town, suburb_a=suburb_a, suburb_b=suburb_b, tier=tier, found=tier is not None
    )
