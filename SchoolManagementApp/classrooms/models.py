"""Class domain models: Classroom and ClassMembership."""

from django.db import models
from django.conf import settings

from simple_history.models import HistoricalRecords

from SchoolManagementApp.core.choices import MemberRole
from SchoolManagementApp.classrooms.querysets import ClassroomQuerySet, ClassMembershipQuerySet


User = settings.AUTH_USER_MODEL

class Classroom(models.Model):
    """A class taught by a teacher; students join through memberships.

    Fields:
        name: Human readable class name (matched case-insensitively by reconciliation).
        teacher: Homeroom teacher who owns the class.
        created_at / updated_at: Timestamps.
        history: Audit history (django-simple-history).
    """
    name = models.CharField(max_length=200)
    teacher = models.ForeignKey(User, on_delete=models.PROTECT, related_name="owned_classrooms")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    objects = ClassroomQuerySet.as_manager()

    def __str__(self) -> str:
        return f"{self.name} (#{self.pk})"

class ClassMembership(models.Model):
    """Enrollment of a user in a class with a role (teacher or student).

    Constraints:
        uq_classroom_user: Prevent duplicate membership rows.
    """
    classroom = models.ForeignKey(Classroom, on_delete=models.CASCADE, related_name="memberships")
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="class_memberships")
    role = models.CharField(max_length=16, choices=MemberRole.choices)
    added_by = models.ForeignKey(User, on_delete=models.PROTECT, related_name="members_added")
    created_at = models.DateTimeField(auto_now_add=True)
    history = HistoricalRecords()

    objects = ClassMembershipQuerySet.as_manager()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["classroom", "user"], name="uq_classroom_user"),
        ]

    def __str__(self) -> str:
        return f"{self.user} -> {self.classroom} ({self.role})"
