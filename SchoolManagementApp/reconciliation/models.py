"""Pending completion reports from the external exercise surface."""

from django.db import models
from django.db.models import Q
from django.conf import settings

from simple_history.models import HistoricalRecords

from SchoolManagementApp.core.choices import TERMINAL_RESOLUTIONS, AttemptStatus, Resolution
from SchoolManagementApp.learning.models import Assignment, Attempt

User = settings.AUTH_USER_MODEL


class PendingReportQuerySet(models.QuerySet):
    def unresolved(self):
        return self.filter(resolution=Resolution.UNRESOLVED)


class PendingReport(models.Model):
    """A completion notice whose identity is still free text.

    The ``*_attempt`` fields hold what the external surface typed; they are
    never used as foreign keys. Only a confirmed report carries
    ``resolved_student`` / ``resolved_assignment``.

    Fields:
        dedup_key: Digest of identity, score, status and timestamp; a
            redelivered report maps onto the existing row.
        details: Raw category-specific fields, interpreted once the
            assignment (and so its category) is known.
        last_match_error: Why automatic matching left the report unresolved.
    """
    student_name_attempt = models.CharField(max_length=255)
    class_name_attempt = models.CharField(max_length=255)
    assignment_title_attempt = models.CharField(max_length=255)
    score = models.FloatField()
    completion_status = models.CharField(max_length=16, choices=AttemptStatus.choices)
    time_spent_seconds = models.PositiveIntegerField(default=0)
    submitted_at = models.DateTimeField()
    details = models.JSONField(default=dict, blank=True)
    dedup_key = models.CharField(max_length=64, unique=True)

    resolution = models.CharField(max_length=24, choices=Resolution.choices, default=Resolution.UNRESOLVED)
    last_match_error = models.TextField(blank=True)
    resolved_student = models.ForeignKey(
        User, on_delete=models.PROTECT, null=True, blank=True, related_name="resolved_reports"
    )
    resolved_assignment = models.ForeignKey(
        Assignment, on_delete=models.PROTECT, null=True, blank=True, related_name="resolved_reports"
    )
    resolved_attempt = models.OneToOneField(
        Attempt, on_delete=models.PROTECT, null=True, blank=True, related_name="source_report"
    )
    resolved_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="reports_resolved"
    )
    resolved_at = models.DateTimeField(null=True, blank=True)
    received_at = models.DateTimeField(auto_now_add=True)
    history = HistoricalRecords()

    objects = PendingReportQuerySet.as_manager()

    class Meta:
        ordering = ["received_at", "id"]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(resolution__in=[Resolution.AUTO_CONFIRMED, Resolution.MANUALLY_CONFIRMED],
                      resolved_student__isnull=False, resolved_assignment__isnull=False)
                    | Q(resolution__in=[Resolution.UNRESOLVED, Resolution.REJECTED],
                        resolved_student__isnull=True, resolved_assignment__isnull=True)
                ),
                name="ck_confirmed_report_is_bound",
            ),
        ]

    def __str__(self) -> str:
        return (
            f"PendingReport(#{self.pk} {self.student_name_attempt!r} / "
            f"{self.class_name_attempt!r} / {self.assignment_title_attempt!r}, {self.resolution})"
        )

    @property
    def is_resolved(self) -> bool:
        return self.resolution in TERMINAL_RESOLUTIONS
