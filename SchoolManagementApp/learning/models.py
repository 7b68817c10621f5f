"""Learning domain models: Assignment, Submission and the append-only Attempt ledger."""

from django.db import models
from django.db.models import Q
from django.conf import settings

from simple_history.models import HistoricalRecords

from SchoolManagementApp.classrooms.models import Classroom
from SchoolManagementApp.core.choices import (
    AssignmentCategory, AttemptStatus, GradeScale, SubmissionStatus,
)
from SchoolManagementApp.learning.querysets import (
    AssignmentQuerySet, AttemptQuerySet, AttemptWriteError, SubmissionQuerySet,
)

User = settings.AUTH_USER_MODEL


class Assignment(models.Model):
    """A task issued to a class, optionally restricted to a subset of its students."""
    classroom = models.ForeignKey(Classroom, on_delete=models.CASCADE, related_name="assignments")
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=32, choices=AssignmentCategory.choices)
    grade_scale = models.CharField(max_length=16, choices=GradeScale.choices, default=GradeScale.PERCENT)
    due_at = models.DateTimeField(null=True, blank=True)
    assigned_students = models.ManyToManyField(User, blank=True, related_name="restricted_assignments")
    created_by = models.ForeignKey(User, on_delete=models.PROTECT, related_name="created_assignments")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    objects = AssignmentQuerySet.as_manager()

    def __str__(self) -> str:
        return f"{self.title} (#{self.pk})"


class Submission(models.Model):
    """A student's record of work on one assignment (unique per assignment+student).

    No row means the student has not submitted. ``is_redo_required`` may only be
    set while the submission is graded.
    """
    assignment = models.ForeignKey(Assignment, on_delete=models.CASCADE, related_name="submissions")
    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="submissions")
    status = models.CharField(max_length=16, choices=SubmissionStatus.choices, default=SubmissionStatus.SUBMITTED)
    is_redo_required = models.BooleanField(default=False)
    grade = models.FloatField(null=True, blank=True)
    ai_suggested_grade = models.FloatField(null=True, blank=True)
    teacher_feedback = models.TextField(blank=True)
    graded_drive_link = models.URLField(max_length=500, blank=True)
    submission_link = models.URLField(max_length=500, blank=True)
    submitted_at = models.DateTimeField()
    is_late = models.BooleanField(default=False)
    graded_at = models.DateTimeField(null=True, blank=True)
    graded_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="graded_submissions"
    )
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    objects = SubmissionQuerySet.as_manager()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["assignment", "student"], name="uq_assignment_student"),
            models.CheckConstraint(
                condition=Q(is_redo_required=False) | Q(status=SubmissionStatus.GRADED),
                name="ck_redo_requires_graded",
            ),
        ]

    def __str__(self) -> str:
        return f"Submission(assignment={self.assignment_id}, student={self.student_id}, {self.status})"

    @property
    def is_locked(self) -> bool:
        """Graded work the teacher accepted; the student may not resubmit."""
        return self.status == SubmissionStatus.GRADED and not self.is_redo_required


class Attempt(models.Model):
    """One immutable exercise run, appended to a submission's ledger.

    ``attempt_index`` is the row's position in the ledger (0-based). Rows are
    written once and never updated or deleted.
    """
    submission = models.ForeignKey(Submission, on_delete=models.PROTECT, related_name="attempts")
    attempt_index = models.PositiveIntegerField()
    score = models.FloatField()
    status = models.CharField(max_length=16, choices=AttemptStatus.choices)
    completed_artifact = models.TextField(blank=True)
    detected_errors = models.JSONField(default=list, blank=True)
    time_spent_seconds = models.PositiveIntegerField(default=0)
    details = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = AttemptQuerySet.as_manager()

    class Meta:
        ordering = ["attempt_index"]
        constraints = [
            models.UniqueConstraint(fields=["submission", "attempt_index"], name="uq_submission_attempt_index"),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise AttemptWriteError("Attempts are immutable once written")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise AttemptWriteError("Attempts cannot be deleted")
