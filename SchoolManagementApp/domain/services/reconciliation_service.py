"""Domain service functions for the completion-report queue.

Reports from the external exercise surface arrive with free-text identity.
Each is stored as a PendingReport first, so nothing is lost, then matched
against a catalog snapshot. A unique, consistent match is recorded as an
attempt and the report becomes AUTO_CONFIRMED; anything else stays
UNRESOLVED for a teacher to confirm or reject. Every report ends in exactly
one terminal state; repeating a confirm/reject, or redelivering the same
report, returns the existing outcome.
"""

import hashlib
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone
from typing import Any, Mapping

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from SchoolManagementApp.classrooms.models import Classroom, ClassMembership
from SchoolManagementApp.core.choices import AttemptStatus, Resolution
from SchoolManagementApp.core.exceptions import (
    AmbiguousMatchError, InconsistentMatchError, NotFoundError, ValidationError,
)
from SchoolManagementApp.core.validators import validate_non_negative
from SchoolManagementApp.domain.payloads import (
    DETAIL_KEYS, AttemptData, ListeningDetails, ReadingDetails, WritingDetails,
    details_for_category, normalize_errors,
)
from SchoolManagementApp.domain.services import catalog_service, submission_service
from SchoolManagementApp.learning.models import Assignment
from SchoolManagementApp.reconciliation.catalog import AssignmentEntry, CatalogSnapshot, StudentEntry
from SchoolManagementApp.reconciliation.matching import (
    ReportIdentity, check_eligibility, match_identity, normalize,
)
from SchoolManagementApp.reconciliation.models import PendingReport

logger = logging.getLogger(__name__)

User = get_user_model()

IDENTITY_FIELDS = ("student_name_attempt", "class_name_attempt", "assignment_title_attempt")
ENVELOPE_DETAIL_KEYS = frozenset({"completed_artifact", "detected_errors"})

_STATUS_ALIASES = {
    "completed": AttemptStatus.COMPLETED,
    "complete": AttemptStatus.COMPLETED,
    "incomplete": AttemptStatus.INCOMPLETE,
    "not completed": AttemptStatus.INCOMPLETE,
    "not_completed": AttemptStatus.INCOMPLETE,
}


@dataclass(frozen=True)
class IngestResult:
    """Outcome of ingesting one report; ``created`` is False for a redelivery."""
    report_id: int
    resolution: str
    created: bool


def parse_completion_status(value: Any) -> str:
    if isinstance(value, str):
        if value in AttemptStatus.values:
            return value
        alias = _STATUS_ALIASES.get(value.strip().lower())
        if alias:
            return alias
    raise ValidationError({"completion_status": f"Unknown completion status {value!r}."})


def _parse_submitted_at(value: Any) -> datetime:
    if value is None or value == "":
        return timezone.now()
    if isinstance(value, str):
        parsed = parse_datetime(value)
        if parsed is None:
            raise ValidationError({"submitted_at": f"Not an ISO-8601 timestamp: {value!r}."})
        value = parsed
    if not isinstance(value, datetime):
        raise ValidationError({"submitted_at": "Must be a timestamp."})
    if timezone.is_naive(value):
        value = timezone.make_aware(value, dt_timezone.utc)
    return value


def _extract_details(report: Mapping[str, Any]) -> dict[str, Any]:
    """Collect envelope extras and category fields, checking every variant's types."""
    source = dict(report.get("details") or {})
    for key in DETAIL_KEYS | ENVELOPE_DETAIL_KEYS:
        if key in report and report[key] is not None:
            source.setdefault(key, report[key])
    details = {k: v for k, v in source.items() if k in DETAIL_KEYS | ENVELOPE_DETAIL_KEYS}
    for variant in (WritingDetails, ListeningDetails, ReadingDetails):
        variant.from_mapping(details)
    if "detected_errors" in details:
        details["detected_errors"] = list(normalize_errors(details["detected_errors"]))
    if "completed_artifact" in details:
        details["completed_artifact"] = str(details["completed_artifact"])
    return details


def clean_report(report: Mapping[str, Any]) -> dict[str, Any]:
    """Validate an incoming report into PendingReport field values.

    Raises:
        ValidationError: Identity field missing or blank, score not a
            non-negative number, unknown completion status, bad timestamp.
    """
    errors = {}
    cleaned: dict[str, Any] = {}
    for name in IDENTITY_FIELDS:
        value = report.get(name)
        if not isinstance(value, str) or not value.strip():
            errors[name] = "This field is required."
        else:
            cleaned[name] = value.strip()
    score = report.get("score")
    if isinstance(score, bool) or not isinstance(score, (int, float)) \
            or not math.isfinite(score) or score < 0:
        errors["score"] = "Must be a non-negative number."
    if errors:
        raise ValidationError(errors)
    cleaned["score"] = float(score)
    cleaned["completion_status"] = parse_completion_status(
        report.get("completion_status", AttemptStatus.COMPLETED)
    )
    cleaned["time_spent_seconds"] = validate_non_negative(
        report.get("time_spent_seconds", 0) or 0, "time_spent_seconds"
    )
    cleaned["submitted_at"] = _parse_submitted_at(report.get("submitted_at"))
    cleaned["details"] = _extract_details(report)
    return cleaned


def compute_dedup_key(cleaned: Mapping[str, Any], report_key: str | None = None) -> str:
    """Digest identifying one real completion event.

    A caller-supplied ``report_key`` wins; otherwise normalized identity,
    score, status and timestamp are hashed.
    """
    if report_key:
        raw = f"key\x1f{report_key}"
    else:
        raw = "\x1f".join([
            *(normalize(cleaned[name]) for name in IDENTITY_FIELDS),
            f"{cleaned['score']:g}",
            cleaned["completion_status"],
            cleaned["submitted_at"].isoformat(),
        ])
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def ingest_completion_report(
    report: Mapping[str, Any],
    snapshot: CatalogSnapshot | None = None,
    report_key: str | None = None,
) -> IngestResult:
    """Queue a completion report and try to reconcile it right away.

    The report is committed before matching, so a failed match never loses it.
    """
    cleaned = clean_report(report)
    key = compute_dedup_key(cleaned, report_key)
    with transaction.atomic():
        pending, created = PendingReport.objects.get_or_create(dedup_key=key, defaults=cleaned)
    if not created:
        logger.info("Duplicate delivery of report %s ignored (%s)", pending.pk, pending.resolution)
        return IngestResult(report_id=pending.pk, resolution=pending.resolution, created=False)
    logger.info(
        "Queued report %s: %r / %r / %r score=%s",
        pending.pk, pending.student_name_attempt, pending.class_name_attempt,
        pending.assignment_title_attempt, pending.score,
    )
    if snapshot is None:
        snapshot = catalog_service.build_snapshot()
    resolution = auto_reconcile(pending.pk, snapshot)
    return IngestResult(report_id=pending.pk, resolution=resolution, created=True)


def _lock_report(pending_id) -> PendingReport:
    try:
        return PendingReport.objects.select_for_update().get(pk=pending_id)
    except PendingReport.DoesNotExist:
        raise NotFoundError(f"Pending report {pending_id} not found")


def _class_keys(classrooms) -> set[str]:
    return {normalize(name) for name in classrooms.values_list("name", flat=True)}

def _teacher_scope(teacher) -> tuple[set[str], set[str]]:
    """Normalized names of the classes ``teacher`` teaches, and of every class."""
    return _class_keys(Classroom.objects.taught_by(teacher)), _class_keys(Classroom.objects.all())

def _in_scope(class_name: str, taught: set[str], known: set[str]) -> bool:
    # A class name that matches no class at all is shared by every teacher.
    key = normalize(class_name)
    return key in taught or key not in known

def _ensure_in_scope(pending: PendingReport, teacher) -> None:
    """Hide reports of other teachers' classes as if they did not exist."""
    if teacher is None:
        return
    if not _in_scope(pending.class_name_attempt, *_teacher_scope(teacher)):
        raise NotFoundError(f"Pending report {pending.pk} not found")


def _attempt_data(pending: PendingReport, category: str) -> AttemptData:
    raw = pending.details or {}
    return AttemptData(
        score=pending.score,
        status=pending.completion_status,
        time_spent_seconds=pending.time_spent_seconds,
        completed_artifact=raw.get("completed_artifact") or "",
        detected_errors=raw.get("detected_errors") or (),
        details=details_for_category(category, raw),
    )


def _bind(pending: PendingReport, student_id, assignment: Assignment, resolution: str, resolved_by=None) -> None:
    attempt = submission_service.record_attempt(
        assignment.pk, student_id, _attempt_data(pending, assignment.category)
    )
    pending.resolution = resolution
    pending.resolved_student_id = student_id
    pending.resolved_assignment = assignment
    pending.resolved_attempt = attempt
    pending.resolved_by = resolved_by
    pending.resolved_at = timezone.now()
    pending.last_match_error = ""
    pending.save()


def auto_reconcile(pending_id, snapshot: CatalogSnapshot) -> str:
    """Match one report against the snapshot; returns its resulting resolution."""
    with transaction.atomic():
        pending = _lock_report(pending_id)
        if pending.is_resolved:
            return pending.resolution
        identity = ReportIdentity(
            student_name=pending.student_name_attempt,
            class_name=pending.class_name_attempt,
            assignment_title=pending.assignment_title_attempt,
        )
        try:
            match = match_identity(identity, snapshot)
            assignment = Assignment.objects.get(pk=match.assignment_id)
            with transaction.atomic():
                _bind(pending, match.student_id, assignment, Resolution.AUTO_CONFIRMED)
        except (AmbiguousMatchError, InconsistentMatchError, NotFoundError, ValidationError) as exc:
            _leave_unresolved(pending, exc)
        except Assignment.DoesNotExist:
            _leave_unresolved(pending, NotFoundError("Matched assignment no longer exists"))
        else:
            logger.info(
                "Report %s auto-confirmed as student=%s assignment=%s",
                pending.pk, match.student_id, match.assignment_id,
            )
        return pending.resolution


def _leave_unresolved(pending: PendingReport, exc: Exception) -> None:
    detail = getattr(exc, "detail", exc)
    pending.refresh_from_db()
    pending.last_match_error = str(detail)
    pending.save(update_fields=["last_match_error"])
    logger.warning("Report %s left for manual resolution: %s", pending.pk, detail)


@transaction.atomic
def confirm_match(pending_id, student_id, assignment_id, resolved_by=None) -> PendingReport:
    """Teacher-chosen binding; the class is the assignment's class.

    A report that is already resolved is returned unchanged.

    Raises:
        NotFoundError: Unknown report, student or assignment, or a report
            naming a class ``resolved_by`` does not teach.
        InconsistentMatchError: Student not enrolled in the assignment's class
            (or not targeted by a restricted assignment). Nothing changes.
    """
    pending = _lock_report(pending_id)
    _ensure_in_scope(pending, resolved_by)
    if pending.is_resolved:
        logger.info("Report %s already %s; confirm ignored", pending.pk, pending.resolution)
        return pending
    try:
        assignment = Assignment.objects.get(pk=assignment_id)
    except Assignment.DoesNotExist:
        raise NotFoundError(f"Assignment {assignment_id} not found")
    try:
        student = User.objects.get(pk=student_id)
    except User.DoesNotExist:
        raise NotFoundError(f"Student {student_id} not found")

    enrolled = frozenset(
        ClassMembership.objects.students().filter(user=student).values_list("classroom_id", flat=True)
    )
    check_eligibility(
        StudentEntry(id=student.pk, name=student.roster_name, class_ids=enrolled),
        AssignmentEntry(
            id=assignment.pk,
            title=assignment.title,
            class_id=assignment.classroom_id,
            student_ids=frozenset(assignment.assigned_students.values_list("pk", flat=True)),
        ),
    )
    _bind(pending, student.pk, assignment, Resolution.MANUALLY_CONFIRMED, resolved_by=resolved_by)
    logger.info(
        "Report %s manually confirmed as student=%s assignment=%s",
        pending.pk, student.pk, assignment.pk,
    )
    return pending


@transaction.atomic
def reject(pending_id, resolved_by=None) -> PendingReport:
    """Discard a report for good; no submission is touched.

    A report that is already resolved is returned unchanged. With
    ``resolved_by`` given, reports naming a class they do not teach raise
    NotFoundError.
    """
    pending = _lock_report(pending_id)
    _ensure_in_scope(pending, resolved_by)
    if pending.is_resolved:
        logger.info("Report %s already %s; reject ignored", pending.pk, pending.resolution)
        return pending
    pending.resolution = Resolution.REJECTED
    pending.resolved_by = resolved_by
    pending.resolved_at = timezone.now()
    pending.save()
    logger.info("Report %s rejected", pending.pk)
    return pending


def list_unresolved_reports(teacher=None) -> QuerySet[PendingReport]:
    """Reports waiting for a teacher, oldest first.

    With ``teacher`` given, only reports naming a class that teacher teaches,
    plus reports whose class name matches no class.
    """
    qs = PendingReport.objects.unresolved().order_by("received_at", "id")
    if teacher is None:
        return qs
    taught, known = _teacher_scope(teacher)
    visible = [
        pk for pk, class_name in qs.values_list("id", "class_name_attempt")
        if _in_scope(class_name, taught, known)
    ]
    return qs.filter(pk__in=visible)


def get_report(pending_id, teacher=None) -> PendingReport:
    try:
        pending = PendingReport.objects.get(pk=pending_id)
    except PendingReport.DoesNotExist:
        raise NotFoundError(f"Pending report {pending_id} not found")
    _ensure_in_scope(pending, teacher)
    return pending


def reconcile_pending(snapshot: CatalogSnapshot | None = None) -> int:
    """Retry automatic matching for every unresolved report; returns how many were confirmed."""
    if snapshot is None:
        snapshot = catalog_service.build_snapshot()
    confirmed = 0
    for pending_id in list(list_unresolved_reports().values_list("id", flat=True)):
        if auto_reconcile(pending_id, snapshot) == Resolution.AUTO_CONFIRMED:
            confirmed += 1
    return confirmed
