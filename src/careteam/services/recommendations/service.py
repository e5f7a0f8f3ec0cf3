from __future__ import annotations

from typing import List, Optional

from src.careteam.domain.models.provider_identity import ProviderId, ProviderIdentity
from src.careteam.domain.models.recommendation import (
    PatientPreferences,
    ProviderAvailability,
    Recommendation,
    ScoredProvider,
)
from src.careteam.services.assignments.service import CareTeamAssignmentStore
from src.careteam.services.identity.registry import ProviderIdentityRegistry

AVAILABILITY_WEIGHT = 30.0
RATING_WEIGHT = 40.0
SPECIALIZATION_WEIGHT = 20.0
ACCEPTING_WEIGHT = 10.0

EXCELLENT_RATING = 4.8
# "Good availability" means fewer patients than this share of capacity.
GOOD_AVAILABILITY_LOAD = 0.8
MAX_ALTERNATIVES = 3


class ProviderRecommendationEngine:
    """Scores candidate providers for a patient and service type.

    Reads identities from the registry and live patient counts from the
    assignment store. Never writes anything.
    """

    def __init__(self, registry: ProviderIdentityRegistry, assignments: CareTeamAssignmentStore) -> None:
        self._registry = registry
        self._assignments = assignments

    def candidates(self, service_type: str) -> List[ProviderAvailability]:
        counts = self._assignments.current_patient_counts()
        results: List[ProviderAvailability] = []
        for profile in self._registry.search_by(is_active=True):
            if profile.role_type.value != service_type or not profile.is_accepting_patients:
                continue
            results.append(self._availability(profile, service_type, counts.get(profile.id, 0)))
        return results

    def _availability(self, profile: ProviderIdentity, service_type: str, current: int) -> ProviderAvailability:
        return ProviderAvailability(
            provider_id=profile.id,
            provider_name=profile.display_name,
            service_type=service_type,
            current_patients=current,
            max_patients=self._assignments.capacity_for(profile.id),
            specializations=list(profile.specializations),
            rating=profile.rating,
            is_accepting_patients=profile.is_accepting_patients,
        )

    @staticmethod
    def score(provider: ProviderAvailability, preferences: Optional[PatientPreferences] = None) -> float:
        ratio = (provider.max_patients - provider.current_patients) / provider.max_patients
        ratio = min(max(ratio, 0.0), 1.0)
        score = ratio * AVAILABILITY_WEIGHT
        score += (provider.rating / 5.0) * RATING_WEIGHT

        wanted = preferences.preferred_specialization if preferences else None
        if wanted:
            needle = wanted.lower()
            if any(needle in s.lower() for s in provider.specializations):
                score += SPECIALIZATION_WEIGHT

        if provider.is_accepting_patients:
            score += ACCEPTING_WEIGHT
        return score

    @staticmethod
    def reasoning(provider: Optional[ProviderAvailability]) -> str:
        if provider is None:
            return "No suitable providers available"

        reasons = []
        if provider.rating >= EXCELLENT_RATING:
            reasons.append("Excellent rating")
        if provider.current_patients < provider.max_patients * GOOD_AVAILABILITY_LOAD:
            reasons.append("Good availability")
        if len(provider.specializations) > 1:
            reasons.append("Multiple specializations")
        if not reasons:
            reasons.append("Highest overall score")
        return f"Recommended based on: {', '.join(reasons)}"

    def suggest(
        self,
        patient_id: str,
        service_type: str,
        preferences: Optional[PatientPreferences] = None,
    ) -> Recommendation:
        # Scores depend only on the provider snapshot, not on patient_id.
        scored = sorted(
            ((self.score(p, preferences), p) for p in self.candidates(service_type)),
            key=lambda pair: (-pair[0], ProviderId.parse(pair[1].provider_id).sequence),
        )
        if not scored:
            return Recommendation(reasoning=self.reasoning(None))

        best = scored[0][1]
        return Recommendation(
            recommended_provider=best.provider_id,
            alternative_providers=[p.provider_id for _, p in scored[1 : 1 + MAX_ALTERNATIVES]],
            reasoning=self.reasoning(best),
            scores=[ScoredProvider(provider_id=p.provider_id, score=round(s, 4)) for s, p in scored],
        )
