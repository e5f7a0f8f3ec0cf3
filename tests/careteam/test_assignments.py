from src.careteam.domain.errors import ErrorCode
from src.careteam.domain.models.care_team import AssignmentStatus, BulkAssignItem


def test_assign_and_replace_keeps_history(services):
    store = services.assignments
    assert store.assign("pat-1", "Priya N", "doctor", "doctor_001", "Dr. Asha Rao", "admin-1").success
    assert store.assign("pat-1", "Priya N", "doctor", "doctor_002", "Dr. Ben Ode", "admin-1", notes="second opinion").success

    care_team = store.get_assignment("pat-1")
    assert care_team.patient_name == "Priya N"
    assert care_team.assignments["doctor"].provider_id == "doctor_002"
    assert care_team.assignments["doctor"].notes == "second opinion"
    assert [r.provider_id for r in store.get_history("pat-1", "doctor")] == ["doctor_001", "doctor_002"]
    assert store.is_active_member("pat-1", "doctor_002")
    assert not store.is_active_member("pat-1", "doctor_001")


def test_assign_requires_identifiers(services):
    result = services.assignments.assign("pat-1", "Priya N", "doctor", "", "Dr. Nobody", "admin-1")
    assert result.success is False
    assert result.error == ErrorCode.VALIDATION_ERROR
    assert "provider_id" in result.message
    assert services.assignments.get_assignment("pat-1") is None


def test_remove_deactivates_and_records_history(services):
    store = services.assignments
    store.assign("pat-1", "Priya N", "nutritionist", "nutritionist_001", "Nutritionist Cara Lim", "admin-1")

    assert store.remove("pat-1", "nutritionist", "admin-2").success

    record = store.get_assignment("pat-1").assignments["nutritionist"]
    assert record.status == AssignmentStatus.INACTIVE
    assert record.notes == "Removed by admin"
    assert record.removed_by == "admin-2"
    assert record.removed_at is not None
    history = store.get_history("pat-1", "nutritionist")
    assert [r.status for r in history] == [AssignmentStatus.ACTIVE, AssignmentStatus.INACTIVE]
    assert not store.is_active_member("pat-1", "nutritionist_001")
    assert store.team_members("pat-1") == []


def test_remove_unknown_slot(services):
    services.assignments.assign("pat-1", "Priya N", "doctor", "doctor_001", "Dr. Asha Rao", "admin-1")
    assert services.assignments.remove("pat-1", "therapist", "admin-1").error == ErrorCode.NOT_FOUND
    assert services.assignments.remove("pat-9", "doctor", "admin-1").error == ErrorCode.NOT_FOUND


def test_team_members_and_provider_views(services):
    store = services.assignments
    store.assign("pat-1", "Priya N", "doctor", "doctor_001", "Dr. Asha Rao", "admin-1")
    store.assign("pat-1", "Priya N", "yoga_instructor", "yoga_instructor_001", "Yoga Instructor Mo", "admin-1")
    store.assign("pat-2", "Lena K", "doctor", "doctor_001", "Dr. Asha Rao", "admin-1")

    others = store.team_members("pat-1", exclude_provider_id="doctor_001")
    assert [(m.service_type, m.provider_id) for m in others] == [("yoga_instructor", "yoga_instructor_001")]

    patients = store.get_provider_patients("doctor_001")
    assert sorted(p.patient_id for p in patients) == ["pat-1", "pat-2"]

    workload = store.workload("doctor_001")
    assert workload.total_patients == 2
    assert workload.service_types == ["doctor"]


def test_bulk_assign_continues_past_failures(services, register_provider):
    register_provider("therapist", "Dee Park")
    items = [
        BulkAssignItem(patient_id="pat-1", service_type="therapist", provider_id="therapist_001"),
        BulkAssignItem(patient_id="pat-2", service_type="therapist", provider_id=""),
        BulkAssignItem(patient_id="pat-3", service_type="therapist", provider_id="therapist_001", patient_name="Ola"),
    ]

    result = services.assignments.bulk_assign(items, "admin-1")

    assert result.success == 2
    assert result.failed == 1
    assert len(result.errors) == 1
    assert result.errors[0].startswith("item 1: ValidationError")
    record = services.assignments.get_assignment("pat-1").assignments["therapist"]
    assert record.provider_name == "Therapist Dee Park"
    assert services.assignments.get_assignment("pat-3").patient_name == "Ola"


def test_report_counts_and_overload(services, register_provider):
    register_provider("doctor", "Asha Rao", max_patients=2)
    store = services.assignments
    store.assign("pat-1", "Priya N", "doctor", "doctor_001", "Dr. Asha Rao", "admin-1")
    store.assign("pat-2", "Lena K", "doctor", "doctor_001", "Dr. Asha Rao", "admin-1")
    store.assign("pat-2", "Lena K", "nutritionist", "nutritionist_001", "Nutritionist Cara Lim", "admin-1")
    store.assign("pat-3", "Ola M", "therapist", "therapist_001", "Therapist Dee Park", "admin-1")
    store.remove("pat-3", "therapist", "admin-1")

    report = store.report()

    assert report.total_patients == 3
    assert report.total_providers == 2
    assert report.unassigned_patients == 1
    assert report.assignments_by_service == {
        "doctor": 2,
        "nutritionist": 1,
        "therapist": 0,
        "yoga_instructor": 0,
    }
    assert report.overloaded_providers == ["doctor_001"]
    assert [r.patient_id for r in report.recent_assignments] == ["pat-3", "pat-2", "pat-1"]


def test_report_uses_default_capacity(services):
    services.assignments.assign("pat-1", "Priya N", "doctor", "doctor_001", "Dr. Asha Rao", "admin-1")
    assert services.assignments.capacity_for("doctor_001") == services.settings.default_max_patients
    assert services.assignments.report().overloaded_providers == []


def test_remove_twice_keeps_first_removal(services):
    store = services.assignments
    store.assign("pat-1", "Priya N", "therapist", "therapist_001", "Therapist Dee Park", "admin-1")
    assert store.remove("pat-1", "therapist", "admin-1", reason="moved away").success

    again = store.remove("pat-1", "therapist", "admin-2")

    assert again.success is False
    assert again.error == ErrorCode.INVALID_TRANSITION
    record = store.get_assignment("pat-1").assignments["therapist"]
    assert record.removed_by == "admin-1"
    assert record.notes == "moved away"
    assert len(store.get_history("pat-1", "therapist")) == 2
