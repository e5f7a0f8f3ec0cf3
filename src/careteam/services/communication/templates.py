from __future__ import annotations

from typing import Dict, List, Tuple

from src.careteam.domain.models.provider_identity import RoleType


# Suggested subject lines keyed by (from_role, to_role).
QUICK_MESSAGES: Dict[Tuple[str, str], Tuple[str, ...]] = {
    (RoleType.NUTRITIONIST.value, RoleType.DOCTOR.value): (
        "Patient labs review needed for diet adjustment",
        "Requesting medication interaction check",
        "Patient reports concerning symptoms",
        "Diet plan approval needed",
    ),
    (RoleType.DOCTOR.value, RoleType.NUTRITIONIST.value): (
        "New lab results available",
        "Medication changes affecting diet",
        "Patient dietary restrictions updated",
        "Weight management priority",
    ),
    (RoleType.THERAPIST.value, RoleType.DOCTOR.value): (
        "Mental health concerns affecting treatment",
        "Medication side effects reported",
        "Patient compliance issues",
        "Risk assessment update needed",
    ),
    (RoleType.YOGA_INSTRUCTOR.value, RoleType.DOCTOR.value): (
        "Exercise clearance needed",
        "Patient reports pain during exercise",
        "Mobility limitations noted",
        "Physical therapy recommendation",
    ),
}


def quick_message_templates() -> Dict[Tuple[str, str], List[str]]:
    return {pair: list(subjects) for pair, subjects in QUICK_MESSAGES.items()}


def templates_for(from_role: str, to_role: str) -> List[str]:
    return list(QUICK_MESSAGES.get((from_role, to_role), ()))
