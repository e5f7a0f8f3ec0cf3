import pytest

from src.careteam.domain.errors import ErrorCode
from src.careteam.domain.models.communication import MessageType, SharedDataType
from src.careteam.services.communication.templates import templates_for


@pytest.fixture
def care_team(services):
    assign = services.assignments.assign
    assign("pat-1", "Priya N", "doctor", "doctor_001", "Dr. Asha Rao", "admin-1")
    assign("pat-1", "Priya N", "nutritionist", "nutritionist_001", "Nutritionist Cara Lim", "admin-1")
    assign("pat-1", "Priya N", "yoga_instructor", "yoga_instructor_001", "Yoga Instructor Mo", "admin-1")
    return services


def test_send_routes_by_service_type(care_team):
    result = care_team.router.send(
        "pat-1",
        "doctor_001",
        "nutritionist",
        MessageType.CONSULTATION_REQUEST,
        "Weight management priority",
        "Please review the glucose trend before adjusting the diet plan.",
    )

    assert result.success
    assert result.target_provider == "nutritionist_001"
    assert result.target_provider_name == "Nutritionist Cara Lim"
    record = care_team.router.get(result.communication_id)
    assert record.from_provider_type == "doctor"
    assert record.to_provider_type == "nutritionist"
    assert record.requires_response is True
    assert record.is_urgent is False
    assert care_team.outbox.pending() == []


def test_send_to_unassigned_service_type(care_team):
    result = care_team.router.send("pat-1", "doctor_001", "therapist", "progress_note", "Update", "Doing well.")
    assert result.success is False
    assert result.error == ErrorCode.TARGET_NOT_ASSIGNED


def test_send_to_removed_provider(care_team):
    care_team.assignments.remove("pat-1", "nutritionist", "admin-1")
    result = care_team.router.send("pat-1", "doctor_001", "nutritionist", "lab_review", "Labs", "New labs.")
    assert result.error == ErrorCode.TARGET_NOT_ASSIGNED


@pytest.mark.parametrize(
    "sender, message_type",
    [("not-a-provider", "progress_note"), ("doctor_001", "gossip")],
)
def test_send_validates_input(care_team, sender, message_type):
    result = care_team.router.send("pat-1", sender, "nutritionist", message_type, "Subject", "Body")
    assert result.error == ErrorCode.VALIDATION_ERROR


def test_urgent_send_is_queued(care_team):
    result = care_team.router.send(
        "pat-1", "yoga_instructor_001", "doctor", "emergency_alert", "Patient reports pain", "Sharp pain.", is_urgent=True
    )

    pending = care_team.outbox.pending()
    assert len(pending) == 1
    assert pending[0].communication_id == result.communication_id
    assert pending[0].provider_id == "doctor_001"


def test_respond_requires_care_team_membership(care_team):
    sent = care_team.router.send("pat-1", "doctor_001", "nutritionist", "consultation_request", "Diet", "Review.")
    before = care_team.router.get(sent.communication_id)

    outsider = care_team.router.respond(sent.communication_id, "therapist_009", "I can help")
    assert outsider.error == ErrorCode.UNAUTHORIZED

    assert care_team.router.respond(sent.communication_id, "nutritionist_001", "Will adjust carbs").success
    assert care_team.router.respond(sent.communication_id, "yoga_instructor_001", "Noted").success

    record = care_team.router.get(sent.communication_id)
    assert [r.provider_id for r in record.responses] == ["nutritionist_001", "yoga_instructor_001"]
    assert record.responses[0].provider_type == "nutritionist"
    assert record.responses[0].timestamp <= record.responses[1].timestamp
    original_fields = {"subject", "content", "from_provider_id", "to_provider_id", "message_type", "created_at"}
    assert record.model_dump(include=original_fields) == before.model_dump(include=original_fields)


def test_respond_edge_cases(care_team):
    assert care_team.router.respond("comm_missing", "doctor_001", "hello").error == ErrorCode.NOT_FOUND
    assert care_team.router.respond("comm_missing", "doctor_001", "   ").error == ErrorCode.VALIDATION_ERROR


def test_listings_are_newest_first_and_gated(care_team):
    first = care_team.router.send("pat-1", "doctor_001", "nutritionist", "progress_note", "One", "First.")
    second = care_team.router.send("pat-1", "nutritionist_001", "doctor", "progress_note", "Two", "Second.")

    mine = care_team.router.list_for_provider("doctor_001")
    assert [r.id for r in mine] == [second.communication_id, first.communication_id]

    assert len(care_team.router.list_for_patient("pat-1", "yoga_instructor_001")) == 2
    assert care_team.router.list_for_patient("pat-1", "therapist_009") == []


def test_share_lab_report_notifies_rest_of_team(care_team):
    result = care_team.router.share_data("pat-1", "doctor_001", SharedDataType.LAB_REPORT, "lab-42")

    assert result.success
    assert sorted(result.notified_providers) == ["nutritionist_001", "yoga_instructor_001"]

    ledger = care_team.router.shared_data("pat-1")
    assert ledger.shared[SharedDataType.LAB_REPORT] == ["lab-42"]

    updates = care_team.router.list_for_provider("nutritionist_001")
    assert len(updates) == 1
    assert updates[0].message_type == MessageType.DATA_UPDATE
    assert updates[0].subject == "New lab report available"
    assert updates[0].related_data == {"data_type": "lab_report", "data_id": "lab-42"}
    assert updates[0].is_urgent is True
    assert len(care_team.outbox.pending()) == 2


def test_share_without_notification(care_team):
    result = care_team.router.share_data("pat-1", "doctor_001", "treatment_plan", "plan-1", notify_team=False)
    assert result.success
    assert result.notified_providers == []
    assert care_team.router.list_for_provider("nutritionist_001") == []


def test_share_for_patient_without_team(services):
    result = services.router.share_data("pat-404", "doctor_001", "prescription", "rx-1")
    assert result.error == ErrorCode.NOT_FOUND


def test_quick_message_templates():
    assert "Exercise clearance needed" in templates_for("yoga_instructor", "doctor")
    assert templates_for("pharmacy", "doctor") == []


def test_share_rejects_malformed_sender_before_writing(care_team):
    result = care_team.router.share_data("pat-1", "not a provider", SharedDataType.LAB_REPORT, "lab-1")

    assert result.success is False
    assert result.error == ErrorCode.VALIDATION_ERROR
    assert care_team.router.shared_data("pat-1") is None
    assert care_team.outbox.pending() == []
