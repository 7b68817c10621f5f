"""Custom querysets for class membership lookups."""

from django.db.models import QuerySet, Q
from typing import Self

from SchoolManagementApp.core.choices import MemberRole

class ClassroomQuerySet(QuerySet):
    """QuerySet helpers for classes."""

    def taught_by(self, user) -> Self:
        """Classes owned by the user or where the user is a teacher member."""
        return self.filter(
            Q(teacher=user) |
            Q(memberships__user=user, memberships__role=MemberRole.TEACHER)
        ).distinct()


class ClassMembershipQuerySet(QuerySet):
    """QuerySet helpers for enrollment checks."""

    def students(self) -> Self:
        return self.filter(role=MemberRole.STUDENT)

    def teachers(self) -> Self:
        return self.filter(role=MemberRole.TEACHER)

    def is_enrolled(self, user_id, classroom_id) -> bool:
        """True if the user is a student member of the class."""
        return self.students().filter(user_id=user_id, classroom_id=classroom_id).exists()

    def is_teacher(self, user_id, classroom_id) -> bool:
        return self.teachers().filter(user_id=user_id, classroom_id=classroom_id).exists()
