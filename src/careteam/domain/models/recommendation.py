from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class PatientPreferences(BaseModel):
    preferred_specialization: Optional[str] = None


class ProviderAvailability(BaseModel):
    """Snapshot of one candidate provider used for scoring."""

    provider_id: str
    provider_name: str
    service_type: str
    current_patients: int
    max_patients: int
    specializations: List[str] = Field(default_factory=list)
    rating: float
    is_accepting_patients: bool


class ScoredProvider(BaseModel):
    provider_id: str
    score: float


class Recommendation(BaseModel):
    recommended_provider: Optional[str] = None
    alternative_providers: List[str] = Field(default_factory=list)
    reasoning: str
    scores: List[ScoredProvider] = Field(default_factory=list)
