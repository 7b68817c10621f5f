import math

import pytest
from model_bakery import baker

from SchoolManagementApp.core.choices import (
    AssignmentCategory, AttemptStatus, Resolution, SubmissionStatus, UserRole,
)
from SchoolManagementApp.core.exceptions import InconsistentMatchError, NotFoundError, ValidationError
from SchoolManagementApp.domain.services import catalog_service, classroom_service, reconciliation_service
from SchoolManagementApp.learning.models import Attempt, Submission
from SchoolManagementApp.reconciliation.models import PendingReport

pytestmark = pytest.mark.django_db

SENT_AT = "2026-03-01T10:00:00Z"


def _ingest(payload, **kwargs):
    return reconciliation_service.ingest_completion_report(payload, **kwargs)


# ---------- automatic matching ----------
def test_unique_consistent_report_is_auto_confirmed(assignment, student, report):
    result = _ingest(report())
    assert result.created is True
    assert result.resolution == Resolution.AUTO_CONFIRMED

    pending = PendingReport.objects.get(pk=result.report_id)
    assert pending.resolved_student == student
    assert pending.resolved_assignment == assignment
    assert pending.resolved_at is not None

    sub = Submission.objects.get(assignment=assignment, student=student)
    assert sub.status == SubmissionStatus.SUBMITTED
    assert [a.score for a in sub.attempts.all()] == [80]
    assert pending.resolved_attempt == sub.attempts.get()

def test_matching_ignores_case_and_surrounding_spaces(assignment, student, report):
    result = _ingest(report(
        student_name_attempt="  nguyen VAN a ",
        class_name_attempt="class 10a",
        assignment_title_attempt="ESSAY draft 1",
    ))
    assert result.resolution == Resolution.AUTO_CONFIRMED

def test_duplicate_student_name_stays_unresolved(assignment, student, make_student, teacher, classroom, report):
    twin = make_student("Nguyen Van A")
    classroom_service.add_student(teacher, classroom, twin)
    result = _ingest(report())
    assert result.resolution == Resolution.UNRESOLVED
    pending = PendingReport.objects.get(pk=result.report_id)
    assert "student_name" in pending.last_match_error
    assert not Submission.objects.exists()
    assert not Attempt.objects.exists()

def test_student_not_enrolled_stays_unresolved(assignment, make_student, report):
    make_student("Pham Van D")
    result = _ingest(report(student_name_attempt="Pham Van D"))
    assert result.resolution == Resolution.UNRESOLVED
    assert "not enrolled" in PendingReport.objects.get(pk=result.report_id).last_match_error
    assert not Submission.objects.exists()

def test_assignment_from_another_class_stays_unresolved(teacher, student, assignment, report):
    other = classroom_service.create_classroom(teacher, "Class 11B")
    classroom_service.create_assignment(teacher, other, "Listening 3", AssignmentCategory.LISTENING)
    result = _ingest(report(assignment_title_attempt="Listening 3"))
    assert result.resolution == Resolution.UNRESOLVED
    assert not Submission.objects.exists()

def test_unknown_names_stay_unresolved(assignment, student, report):
    result = _ingest(report(assignment_title_attempt="Nonexistent"))
    assert result.resolution == Resolution.UNRESOLVED
    assert "assignment_title" in PendingReport.objects.get(pk=result.report_id).last_match_error

def test_restricted_assignment_blocks_untargeted_student(teacher, classroom, student, make_student, report):
    chosen = make_student("Le Thi C")
    classroom_service.add_student(teacher, classroom, chosen)
    classroom_service.create_assignment(
        teacher, classroom, "Reading 2", AssignmentCategory.READING, assigned_students=[chosen]
    )
    blocked = _ingest(report(assignment_title_attempt="Reading 2"))
    assert blocked.resolution == Resolution.UNRESOLVED
    allowed = _ingest(report(student_name_attempt="Le Thi C", assignment_title_attempt="Reading 2"))
    assert allowed.resolution == Resolution.AUTO_CONFIRMED

def test_score_outside_scale_keeps_report_unresolved(assignment, student, report):
    result = _ingest(report(score=140))
    assert result.resolution == Resolution.UNRESOLVED
    pending = PendingReport.objects.get(pk=result.report_id)
    assert "score" in pending.last_match_error
    assert not Submission.objects.exists()

def test_category_details_are_carried_onto_the_attempt(teacher, classroom, student, report):
    classroom_service.create_assignment(teacher, classroom, "Listening 1", AssignmentCategory.LISTENING)
    result = _ingest(report(
        assignment_title_attempt="Listening 1",
        details={"attempt_count": 2, "stage2_wrong_answers": ["b", "d"]},
        detected_errors=["missed the date"],
        retry_count=4,
    ))
    assert result.resolution == Resolution.AUTO_CONFIRMED
    attempt = Attempt.objects.get()
    assert attempt.details == {
        "kind": "listening",
        "attempt_count": 2,
        "stage2_wrong_answers": ["b", "d"],
        "stage3_wrong_answers": [],
    }
    assert attempt.detected_errors == [{"message": "missed the date"}]


# ---------- intake ----------
def test_redelivered_report_creates_nothing_new(assignment, student, report):
    first = _ingest(report(submitted_at=SENT_AT))
    again = _ingest(report(submitted_at=SENT_AT, student_name_attempt="NGUYEN VAN A"))
    assert again.created is False
    assert again.report_id == first.report_id
    assert again.resolution == Resolution.AUTO_CONFIRMED
    assert PendingReport.objects.count() == 1
    assert Attempt.objects.count() == 1

def test_idempotency_key_wins_over_content(assignment, student, report):
    first = _ingest(report(score=50), report_key="evt-1")
    again = _ingest(report(score=60), report_key="evt-1")
    assert again.report_id == first.report_id
    assert Attempt.objects.count() == 1
    _ingest(report(score=60), report_key="evt-2")
    assert Attempt.objects.count() == 2

@pytest.mark.parametrize(
    "override",
    [
        {"student_name_attempt": "   "},
        {"score": -5},
        {"score": "80"},
        {"score": math.nan},
        {"score": math.inf},
        {"completion_status": "maybe"},
        {"submitted_at": "yesterday"},
        {"time_spent_seconds": -1},
    ],
)
def test_malformed_reports_are_rejected_before_queueing(report, override):
    with pytest.raises(ValidationError):
        _ingest(report(**override))
    assert not PendingReport.objects.exists()

def test_status_aliases(assignment, student, report):
    result = _ingest(report(completion_status="Not Completed"))
    assert PendingReport.objects.get(pk=result.report_id).completion_status == AttemptStatus.INCOMPLETE


# ---------- manual resolution ----------
def test_confirm_binds_report_to_chosen_pair(assignment, student, make_student, teacher, classroom, report):
    twin = make_student("Nguyen Van A")
    classroom_service.add_student(teacher, classroom, twin)
    pending_id = _ingest(report()).report_id

    confirmed = reconciliation_service.confirm_match(pending_id, twin.id, assignment.id, resolved_by=teacher)
    assert confirmed.resolution == Resolution.MANUALLY_CONFIRMED
    assert confirmed.resolved_student == twin
    assert confirmed.resolved_by == teacher
    assert Submission.objects.get().student == twin
    assert not reconciliation_service.list_unresolved_reports().exists()

def test_confirm_rejects_ineligible_student_and_changes_nothing(assignment, make_student, report):
    outsider = make_student("Pham Van D")
    pending_id = _ingest(report(student_name_attempt="Pham Van D")).report_id
    with pytest.raises(InconsistentMatchError):
        reconciliation_service.confirm_match(pending_id, outsider.id, assignment.id)
    pending = PendingReport.objects.get(pk=pending_id)
    assert pending.resolution == Resolution.UNRESOLVED
    assert pending.resolved_student is None
    assert not Submission.objects.exists()

def test_confirm_unknown_ids(assignment, student, report):
    pending_id = _ingest(report(assignment_title_attempt="???")).report_id
    with pytest.raises(NotFoundError):
        reconciliation_service.confirm_match(pending_id, student.id, 987654)
    with pytest.raises(NotFoundError):
        reconciliation_service.confirm_match(pending_id, 987654, assignment.id)
    with pytest.raises(NotFoundError):
        reconciliation_service.confirm_match(987654, student.id, assignment.id)

def test_reject_is_terminal_and_touches_no_submission(assignment, student, teacher, report):
    pending_id = _ingest(report(assignment_title_attempt="???")).report_id
    rejected = reconciliation_service.reject(pending_id, resolved_by=teacher)
    assert rejected.resolution == Resolution.REJECTED
    assert rejected.resolved_student is None
    assert not Submission.objects.exists()

    again = reconciliation_service.confirm_match(pending_id, student.id, assignment.id)
    assert again.resolution == Resolution.REJECTED
    assert not Submission.objects.exists()

def test_confirm_twice_records_one_attempt(assignment, student, report):
    pending_id = _ingest(report(assignment_title_attempt="???")).report_id
    reconciliation_service.confirm_match(pending_id, student.id, assignment.id)
    second = reconciliation_service.confirm_match(pending_id, student.id, assignment.id)
    assert second.resolution == Resolution.MANUALLY_CONFIRMED
    assert Attempt.objects.count() == 1
    assert reconciliation_service.reject(pending_id).resolution == Resolution.MANUALLY_CONFIRMED

def test_unresolved_queue_is_oldest_first(assignment, student, report):
    ids = [_ingest(report(assignment_title_attempt=f"missing {n}")).report_id for n in range(3)]
    assert list(reconciliation_service.list_unresolved_reports().values_list("id", flat=True)) == ids
    with pytest.raises(NotFoundError):
        reconciliation_service.get_report(123456)

def test_queue_is_scoped_to_taught_classes(assignment, student, teacher, report):
    other = baker.make("users.User", role=UserRole.TEACHER, display_name="Do Van G")
    classroom_service.create_classroom(other, "Class 12C")
    own = _ingest(report(class_name_attempt="  class 10a", assignment_title_attempt="???")).report_id
    orphan = _ingest(report(class_name_attempt="Class 99Z")).report_id

    def queue(user):
        return list(reconciliation_service.list_unresolved_reports(teacher=user).values_list("id", flat=True))

    assert queue(teacher) == [own, orphan]
    assert queue(other) == [orphan]

    with pytest.raises(NotFoundError):
        reconciliation_service.get_report(own, teacher=other)
    with pytest.raises(NotFoundError):
        reconciliation_service.reject(own, resolved_by=other)
    with pytest.raises(NotFoundError):
        reconciliation_service.confirm_match(own, student.id, assignment.id, resolved_by=other)
    assert PendingReport.objects.get(pk=own).resolution == Resolution.UNRESOLVED
    assert reconciliation_service.get_report(own, teacher=teacher).pk == own

    assert reconciliation_service.reject(orphan, resolved_by=other).resolution == Resolution.REJECTED


# ---------- retry ----------
def test_reconcile_pending_picks_up_later_enrollment(assignment, make_student, teacher, classroom, report):
    late_joiner = make_student("Pham Van D")
    pending_id = _ingest(report(student_name_attempt="Pham Van D")).report_id
    assert reconciliation_service.reconcile_pending() == 0

    classroom_service.add_student(teacher, classroom, late_joiner)
    assert reconciliation_service.reconcile_pending() == 1
    pending = PendingReport.objects.get(pk=pending_id)
    assert pending.resolution == Resolution.AUTO_CONFIRMED
    assert pending.last_match_error == ""
    assert reconciliation_service.reconcile_pending() == 0


# ---------- catalog ----------
def test_catalog_lookups(assignment, student, classroom):
    assert catalog_service.list_classes() == [{"id": classroom.id, "name": "Class 10A"}]
    assert catalog_service.list_enrolled_students(classroom.id) == [{"id": student.id, "name": "Nguyen Van A"}]
    assert catalog_service.list_assignments(classroom.id) == [
        {"id": assignment.id, "title": "Essay Draft 1", "classId": classroom.id}
    ]
    with pytest.raises(NotFoundError):
        catalog_service.list_enrolled_students(424242)

def test_snapshot_keeps_unenrolled_students_on_the_roster(assignment, student, make_student, classroom):
    drifter = make_student("Pham Van D")
    snapshot = catalog_service.build_snapshot()
    roster = {s.id: s for s in snapshot.students}
    assert roster[student.id].class_ids == frozenset({classroom.id})
    assert roster[drifter.id].class_ids == frozenset()
    assert [(a.id, a.class_id) for a in snapshot.assignments] == [(assignment.id, classroom.id)]
