"""Custom querysets for assignments, submissions and attempts."""

from django.db.models import QuerySet, Q
from typing import Self

from SchoolManagementApp.core.choices import MemberRole, SubmissionStatus


class AttemptWriteError(Exception):
    """Raised when code tries to change or remove an Attempt row."""


class AssignmentQuerySet(QuerySet):
    """QuerySet helpers for assignment visibility."""

    def for_classroom(self, classroom_id) -> Self:
        return self.filter(classroom_id=classroom_id)

    def visible_to(self, user) -> Self:
        """Assignments visible to user:
        - Teacher: all assignments of classes they teach
        - Student: assignments of enrolled classes that target the whole class or them
        """
        return self.filter(
            Q(classroom__teacher=user) |
            Q(classroom__memberships__user=user,
              classroom__memberships__role=MemberRole.TEACHER) |
            Q(classroom__memberships__user=user,
              classroom__memberships__role=MemberRole.STUDENT,
              assigned_students__isnull=True) |
            Q(classroom__memberships__user=user,
              classroom__memberships__role=MemberRole.STUDENT,
              assigned_students=user)
        ).distinct()


class SubmissionQuerySet(QuerySet):
    """QuerySet helpers for filtering submissions by role and grading state."""

    def awaiting_grading(self) -> Self:
        """Submitted work the teacher has not graded yet."""
        return self.filter(status=SubmissionStatus.SUBMITTED)

    def redo_requested(self) -> Self:
        return self.filter(status=SubmissionStatus.GRADED, is_redo_required=True)


class AttemptQuerySet(QuerySet):
    """Attempts are append-only: bulk update and delete are refused."""

    def update(self, **kwargs):
        raise AttemptWriteError("Attempts are immutable once written")

    def delete(self):
        raise AttemptWriteError("Attempts cannot be deleted")
