"""Domain service functions for the submission lifecycle.

State machine per (assignment, student) pair:
    (no row) -> SUBMITTED -> GRADED [-> redo flag set -> SUBMITTED ...]
A link submission is allowed unless the submission is graded without a redo
request. An exercise attempt is always appended, whatever the grading state,
so the attempt ledger stays a complete history. Grading sets the redo flag
to exactly the value given.

Every write runs in one transaction and locks the submission row, so
attempts and grades for the same pair are applied one after another.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone

from SchoolManagementApp.core.choices import SubmissionStatus
from SchoolManagementApp.core.exceptions import (
    AmbiguousMatchError, NotFoundError, SubmissionLockedError, ValidationError,
)
from SchoolManagementApp.core.validators import validate_in_scale, validate_link
from SchoolManagementApp.domain.payloads import AttemptData, details_to_json
from SchoolManagementApp.learning.models import Assignment, Attempt, Submission
from SchoolManagementApp.domain.services import catalog_service
from SchoolManagementApp.reconciliation.matching import find_assignment, find_student

logger = logging.getLogger(__name__)

User = get_user_model()


def _get_assignment(assignment_id) -> Assignment:
    try:
        return Assignment.objects.get(pk=assignment_id)
    except Assignment.DoesNotExist:
        raise NotFoundError(f"Assignment {assignment_id} not found")

def _get_student(student_id):
    try:
        return User.objects.get(pk=student_id)
    except User.DoesNotExist:
        raise NotFoundError(f"Student {student_id} not found")

def _is_late(assignment: Assignment, when: datetime) -> bool:
    return bool(assignment.due_at and when > assignment.due_at)

def _lock_submission(assignment: Assignment, student, now: datetime) -> tuple[Submission, bool]:
    """Fetch (or create) the pair's submission with a row lock held until commit."""
    return Submission.objects.select_for_update().get_or_create(
        assignment=assignment,
        student=student,
        defaults={
            "status": SubmissionStatus.SUBMITTED,
            "submitted_at": now,
            "is_late": _is_late(assignment, now),
        },
    )

def _mark_submitted(submission: Submission, now: datetime) -> None:
    submission.status = SubmissionStatus.SUBMITTED
    submission.is_redo_required = False
    submission.submitted_at = now
    submission.is_late = _is_late(submission.assignment, now)


@transaction.atomic
def submit_link(assignment_id, student_id, link: str) -> Submission:
    """Submit (or resubmit) work as a link; no attempt is recorded.

    Raises:
        NotFoundError: Unknown assignment or student.
        ValidationError: Link missing or not an absolute http(s) URL.
        SubmissionLockedError: Submission is graded and no redo was requested.
    """
    link = validate_link(link)
    assignment = _get_assignment(assignment_id)
    student = _get_student(student_id)
    now = timezone.now()
    submission, created = _lock_submission(assignment, student, now)
    if not created and submission.is_locked:
        logger.warning(
            "Rejected link resubmission for locked submission %s (assignment=%s, student=%s)",
            submission.pk, assignment.pk, student.pk,
        )
        raise SubmissionLockedError()
    _mark_submitted(submission, now)
    submission.submission_link = link
    submission.save()
    logger.info(
        "Link %s for assignment=%s student=%s",
        "submitted" if created else "resubmitted", assignment.pk, student.pk,
    )
    return submission


@transaction.atomic
def record_attempt(assignment_id, student_id, attempt_data: AttemptData) -> Attempt:
    """Append an exercise attempt and move the submission back to SUBMITTED.

    The attempt's score becomes the submission's AI-suggested grade. The
    previous teacher grade stays visible until the work is graded again.

    Raises:
        NotFoundError: Unknown assignment or student.
        ValidationError: Score outside the assignment's grade scale.
    """
    assignment = _get_assignment(assignment_id)
    student = _get_student(student_id)
    score = validate_in_scale(attempt_data.score, assignment.grade_scale, field="score")
    now = timezone.now()
    submission, _ = _lock_submission(assignment, student, now)
    index = submission.attempts.count()
    attempt = Attempt.objects.create(
        submission=submission,
        attempt_index=index,
        score=score,
        status=attempt_data.status,
        completed_artifact=attempt_data.completed_artifact,
        detected_errors=list(attempt_data.detected_errors),
        time_spent_seconds=attempt_data.time_spent_seconds,
        details=details_to_json(attempt_data.details),
    )
    _mark_submitted(submission, now)
    submission.ai_suggested_grade = score
    submission.save()
    logger.info(
        "Recorded attempt #%s (score=%s) for assignment=%s student=%s",
        index, score, assignment.pk, student.pk,
    )
    return attempt


@transaction.atomic
def grade_submission(
    submission_id,
    grade,
    feedback: str = "",
    is_redo_required: bool = False,
    drive_link: str = "",
    graded_by=None,
) -> Submission:
    """Grade a submission; the redo flag is set to exactly ``is_redo_required``.

    Raises:
        NotFoundError: Unknown submission.
        ValidationError: Grade outside the assignment's scale (never clamped),
            non-boolean redo flag or malformed drive link.
    """
    try:
        submission = (
            Submission.objects.select_for_update()
            .select_related("assignment")
            .get(pk=submission_id)
        )
    except Submission.DoesNotExist:
        raise NotFoundError(f"Submission {submission_id} not found")
    value = validate_in_scale(grade, submission.assignment.grade_scale)
    if not isinstance(is_redo_required, bool):
        raise ValidationError({"is_redo_required": "Must be a boolean."})
    drive_link = validate_link(drive_link, field="drive_link", allow_blank=True)

    submission.status = SubmissionStatus.GRADED
    submission.grade = value
    submission.teacher_feedback = feedback or ""
    submission.graded_drive_link = drive_link
    submission.is_redo_required = is_redo_required
    submission.graded_at = timezone.now()
    submission.graded_by = graded_by
    submission.save()
    logger.info(
        "Graded submission %s: %s (redo=%s)", submission.pk, value, is_redo_required
    )
    return submission


def get_submission(assignment_id, student_id) -> Submission | None:
    """The pair's submission, or None while the student has not submitted."""
    assignment = _get_assignment(assignment_id)
    return (
        Submission.objects.filter(assignment=assignment, student_id=student_id)
        .prefetch_related("attempts")
        .first()
    )

def list_submissions_for_assignment(assignment_id) -> QuerySet[Submission]:
    """All submissions for an assignment, attempts prefetched."""
    assignment = _get_assignment(assignment_id)
    return (
        Submission.objects.filter(assignment=assignment)
        .select_related("student")
        .prefetch_related("attempts")
        .order_by("student_id")
    )


@dataclass(frozen=True)
class SubmissionStatusView:
    status: str
    message: str
    grade: float | None = None
    submitted_at: datetime | None = None


def get_submission_status(student_name: str, assignment_title: str) -> SubmissionStatusView:
    """Look up a submission by names, as a quick status answer.

    Names match the way report reconciliation matches them. Returns
    ``not_found`` unless each name identifies exactly one roster entry.
    """
    not_found = SubmissionStatusView(
        status="not_found",
        message=f"No unique match for {student_name!r} / {assignment_title!r}.",
    )
    title = (assignment_title or "").strip()
    if not title or not Assignment.objects.filter(title__iexact=title).exists():
        return not_found
    snapshot = catalog_service.build_snapshot()
    try:
        student = find_student(student_name, snapshot)
        assignment = find_assignment(assignment_title, snapshot)
    except AmbiguousMatchError:
        return not_found
    submission = Submission.objects.filter(
        assignment_id=assignment.id, student_id=student.id
    ).first()
    if submission is None:
        return SubmissionStatusView(status="not_submitted", message="Not submitted yet.")
    if submission.status == SubmissionStatus.GRADED:
        return SubmissionStatusView(
            status="graded",
            message="Redo requested." if submission.is_redo_required else "Graded.",
            grade=submission.grade,
            submitted_at=submission.submitted_at,
        )
    return SubmissionStatusView(
        status="submitted", message="Awaiting grading.", submitted_at=submission.submitted_at
    )
