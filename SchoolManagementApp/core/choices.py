"""Typed enumerations (TextChoices) for roles, assignment categories, submission and report states."""
from django.db import models

class UserRole(models.TextChoices):
    """System-level role assigned to a user account."""
    TEACHER = "TEACHER", "Teacher"
    STUDENT = "STUDENT", "Student"

class MemberRole(models.TextChoices):
    """Role of a user within a specific class."""
    TEACHER = "TEACHER", "Teacher"
    STUDENT = "STUDENT", "Student"

class AssignmentCategory(models.TextChoices):
    """Exercise category; selects the shape of an attempt's detail payload."""
    GRAMMAR = "GRAMMAR", "Grammar"
    VOCABULARY = "VOCABULARY", "Vocabulary"
    LISTENING = "LISTENING", "Listening"
    SPEAKING = "SPEAKING", "Speaking"
    READING = "READING", "Reading"
    WRITING = "WRITING", "Writing"
    WRITING_TASK_1 = "WRITING_TASK_1", "Writing Task 1"
    WRITING_TASK_2 = "WRITING_TASK_2", "Writing Task 2"

class GradeScale(models.TextChoices):
    """Numeric range a grade (or attempt score) must fall in."""
    PERCENT = "PERCENT", "0-100"
    BAND = "BAND", "0-9.0"

GRADE_SCALE_BOUNDS: dict[str, tuple[float, float]] = {
    GradeScale.PERCENT: (0.0, 100.0),
    GradeScale.BAND: (0.0, 9.0),
}

class SubmissionStatus(models.TextChoices):
    """Lifecycle states for a submission (no row means unsubmitted)."""
    SUBMITTED = "SUBMITTED", "Submitted"
    GRADED = "GRADED", "Graded"

class AttemptStatus(models.TextChoices):
    """Whether an exercise run was finished."""
    COMPLETED = "COMPLETED", "Completed"
    INCOMPLETE = "INCOMPLETE", "Incomplete"

class Resolution(models.TextChoices):
    """Reconciliation state of a pending completion report."""
    UNRESOLVED = "UNRESOLVED", "Unresolved"
    AUTO_CONFIRMED = "AUTO_CONFIRMED", "Auto-confirmed"
    MANUALLY_CONFIRMED = "MANUALLY_CONFIRMED", "Manually confirmed"
    REJECTED = "REJECTED", "Rejected"

TERMINAL_RESOLUTIONS = frozenset({
    Resolution.AUTO_CONFIRMED,
    Resolution.MANUALLY_CONFIRMED,
    Resolution.REJECTED,
})
