"""Entitlement router - FastAPI endpoints for package quota"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...clock import Clock
from ...database import get_db
from ...dependencies import get_clock
from .schemas import (
    ActivatePackageRequest,
    ActivePackageResponse,
    ConsumeRequest,
    EntitlementResultResponse,
    ServiceUsageResponse,
)
from .service import Consumed, EntitlementLedger, Exhausted

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/entitlements", tags=["Entitlements"])


def get_entitlement_ledger(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> EntitlementLedger:
    """Dependency injection for EntitlementLedger"""
    return EntitlementLedger(db, clock=clock)


@router.post("/consume", response_model=EntitlementResultResponse)
async def consume_entitlement(
    data: ConsumeRequest,
    ledger: EntitlementLedger = Depends(get_entitlement_ledger),
):
    """Use one unit of a client's allowance. Exhausted and not entitled are answers, not errors."""
    result = ledger.try_consume(data.client_id, data.service_id)
    if isinstance(result, Consumed):
        return EntitlementResultResponse(
            outcome="consumed", remaining=result.remaining, package_id=result.package_id
        )
    if isinstance(result, Exhausted):
        return EntitlementResultResponse(
            outcome="exhausted",
            remaining=0,
            used=result.used,
            allowed=result.allowed,
            package_id=result.package_id,
        )
    return EntitlementResultResponse(outcome="not_entitled", reason=result.reason)


@router.get("/clients/{client_id}/usage", response_model=list[ServiceUsageResponse])
async def get_usage_summary(
    client_id: int,
    ledger: EntitlementLedger = Depends(get_entitlement_ledger),
):
    """Used and allowed counts per service of the client's active package"""
    return [
        ServiceUsageResponse(
            service_id=u.service_id,
            package_id=u.package_id,
            used_count=u.used_count,
            allowed_count=u.allowed_count,
            remaining=u.remaining,
            cycle_days=u.cycle_days,
        )
        for u in ledger.usage_summary(client_id)
    ]


@router.post(
    "/clients/{client_id}/packages", response_model=ActivePackageResponse, status_code=201
)
async def activate_package(
    client_id: int,
    data: ActivatePackageRequest,
    ledger: EntitlementLedger = Depends(get_entitlement_ledger),
):
    """Bind a package to a client; any package active before is superseded"""
    return ledger.activate_package(client_id, data.package_id, data.start_date)
