from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from src.careteam.api.v1.deps import get_services
from src.careteam.domain.models.communication import DispatchSummary, UrgentNotification
from src.careteam.security import get_api_key
from src.careteam.services.container import CareCoordinationServices


router = APIRouter(
    prefix="/notifications",
    tags=["notifications"],
    dependencies=[Depends(get_api_key)],
)


@router.get("/outbox", response_model=List[UrgentNotification])
async def pending_notifications(
    services: CareCoordinationServices = Depends(get_services),
) -> List[UrgentNotification]:
    return services.outbox.pending()


@router.post("/outbox/dispatch", response_model=DispatchSummary)
async def dispatch_notifications(
    services: CareCoordinationServices = Depends(get_services),
) -> DispatchSummary:
    """Retry delivery of every pending urgent notification."""
    return services.outbox.dispatch(services.notifier)
