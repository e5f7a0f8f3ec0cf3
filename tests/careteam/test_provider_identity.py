import pytest

from src.careteam.domain.errors import CareTeamValidationError, ErrorCode, InvalidProviderId
from src.careteam.domain.models.provider_identity import ProviderDetails, ProviderId, RoleType, VerificationStatus
from src.careteam.infra.store.base import PROVIDER_SERVICES_KEY


def test_provider_id_splits_on_last_underscore():
    parsed = ProviderId.parse("yoga_instructor_012")
    assert parsed.role_type == "yoga_instructor"
    assert parsed.sequence == 12
    assert str(parsed) == "yoga_instructor_012"


def test_provider_id_keeps_wide_sequences():
    assert str(ProviderId.parse("doctor_1000")) == "doctor_1000"
    assert ProviderId.parse("doctor_1000").sequence > ProviderId.parse("doctor_999").sequence


@pytest.mark.parametrize("text", ["doctor", "doctor_abc", "_001", "doctor_000", "", "Doctor_001"])
def test_provider_id_rejects_malformed_text(text):
    with pytest.raises(InvalidProviderId):
        ProviderId.parse(text)


def test_sequences_are_per_role_type(services, register_provider):
    first = register_provider("doctor", "Asha Rao")
    second = register_provider("doctor", "Ben Ode")
    other = register_provider("nutritionist", "Cara Lim")

    assert first.id == "doctor_001"
    assert second.id == "doctor_002"
    assert other.id == "nutritionist_001"
    assert first.display_name == "Dr. Asha Rao"
    assert other.display_name == "Nutritionist Cara Lim"


def test_sequence_gaps_are_not_reused(services, register_provider):
    register_provider("therapist", "Dee Park")
    raw = services.store.get(PROVIDER_SERVICES_KEY)
    raw[0]["id"] = "therapist_007"
    services.store.set(PROVIDER_SERVICES_KEY, raw)

    nxt = register_provider("therapist", "Eli Moss")
    assert nxt.id == "therapist_008"


def test_create_profile_requires_display_name(services):
    with pytest.raises(CareTeamValidationError) as excinfo:
        services.registry.create_profile("user-1", RoleType.DOCTOR, ProviderDetails(display_name="  "))
    assert excinfo.value.field == "display_name"
    assert excinfo.value.code == ErrorCode.VALIDATION_ERROR


def test_verification_lifecycle(services, register_provider):
    profile = register_provider("doctor", "Asha Rao", approve=False)
    assert profile.verification_status == VerificationStatus.PENDING
    assert profile.is_active is False

    assert services.registry.approve(profile.id, "admin-1").success
    verified = services.registry.get_profile(profile.id)
    assert verified.verification_status == VerificationStatus.VERIFIED
    assert verified.is_active is True

    assert services.registry.suspend(profile.id, "admin-1", reason="license lapsed").success
    suspended = services.registry.get_profile(profile.id)
    assert suspended.is_active is False
    assert [c.to_status for c in suspended.status_history] == [
        VerificationStatus.VERIFIED,
        VerificationStatus.SUSPENDED,
    ]
    assert suspended.status_history[-1].reason == "license lapsed"

    again = services.registry.approve(profile.id, "admin-1")
    assert again.success is False
    assert again.error == ErrorCode.INVALID_TRANSITION


def test_transition_unknown_provider(services):
    result = services.registry.reject("doctor_404", "admin-1")
    assert result.error == ErrorCode.NOT_FOUND


def test_update_profile_validates_fields(services, register_provider):
    profile = register_provider("doctor", "Asha Rao")

    assert services.registry.update_profile(profile.id, rating=4.5, is_accepting_patients=False).success
    updated = services.registry.get_profile(profile.id)
    assert updated.rating == 4.5
    assert updated.is_accepting_patients is False

    assert services.registry.update_profile(profile.id, owner_user_id="someone").error == ErrorCode.VALIDATION_ERROR
    assert services.registry.update_profile(profile.id, rating=6).error == ErrorCode.VALIDATION_ERROR
    assert services.registry.get_profile(profile.id).rating == 4.5


def test_search_by_filters(services, register_provider):
    register_provider("doctor", "Asha Rao", rating=4.9, specializations=["High-Risk Pregnancy"])
    register_provider("doctor", "Ben Ode", rating=3.0, specializations=["General Obstetrics"])
    register_provider("nutritionist", "Cara Lim", rating=4.9, approve=False)

    by_spec = services.registry.search_by(specialization="pregnancy")
    assert [p.id for p in by_spec] == ["doctor_001"]

    active_doctors = services.registry.search_by(role_type=RoleType.DOCTOR, is_active=True, min_rating=4.0)
    assert [p.id for p in active_doctors] == ["doctor_001"]

    assert [p.id for p in services.registry.search_by(is_active=False)] == ["nutritionist_001"]


def test_profiles_for_user(services, register_provider):
    profile = register_provider("doctor", "Asha Rao")
    assert services.registry.get_provider_id_for_role(profile.owner_user_id, RoleType.DOCTOR) == profile.id
    assert services.registry.get_provider_id_for_role(profile.owner_user_id, RoleType.THERAPIST) is None
    assert [p.id for p in services.registry.get_profiles_for_user(profile.owner_user_id)] == [profile.id]
