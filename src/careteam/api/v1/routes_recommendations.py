from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from src.careteam.api.v1.deps import get_services
from src.careteam.domain.models.recommendation import PatientPreferences, Recommendation
from src.careteam.security import get_api_key
from src.careteam.services.container import CareCoordinationServices


router = APIRouter(
    prefix="/recommendations",
    tags=["recommendations"],
    dependencies=[Depends(get_api_key)],
)


@router.get("/", response_model=Recommendation)
async def suggest_provider(
    patient_id: str,
    service_type: str,
    preferred_specialization: Optional[str] = None,
    services: CareCoordinationServices = Depends(get_services),
) -> Recommendation:
    preferences = PatientPreferences(preferred_specialization=preferred_specialization)
    return services.recommendations.suggest(patient_id, service_type, preferences)
