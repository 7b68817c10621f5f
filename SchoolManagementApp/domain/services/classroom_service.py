"""Domain service functions for classes, enrollment and assignment creation.

These helpers encapsulate business rules (only class teachers manage
membership or issue assignments) and keep view layers thin. All mutating
operations run inside atomic transactions.
"""
from typing import Iterable

from django.db import transaction
from rest_framework.exceptions import PermissionDenied

from SchoolManagementApp.classrooms.models import Classroom, ClassMembership
from SchoolManagementApp.core.choices import AssignmentCategory, GradeScale, MemberRole
from SchoolManagementApp.core.exceptions import ValidationError
from SchoolManagementApp.learning.models import Assignment


def _ensure_class_teacher(user, classroom: Classroom) -> None:
    """Raise PermissionDenied if user is not a teacher of the class."""
    if not ClassMembership.objects.is_teacher(user.pk, classroom.pk):
        raise PermissionDenied("Teacher role required")

@transaction.atomic
def create_classroom(teacher, name: str) -> Classroom:
    """Create a class and auto-enroll its teacher as a teacher member."""
    classroom = Classroom.objects.create(name=name, teacher=teacher)
    ClassMembership.objects.create(
        classroom=classroom, user=teacher, role=MemberRole.TEACHER, added_by=teacher
    )
    return classroom

@transaction.atomic
def add_student(actor, classroom: Classroom, student_user) -> ClassMembership:
    """Enroll a student in the class (idempotent).

    Args:
        actor: Must be a teacher of the class.
        classroom: Target class.
        student_user: User to enroll.
    """
    _ensure_class_teacher(actor, classroom)
    membership, _ = ClassMembership.objects.get_or_create(
        classroom=classroom,
        user=student_user,
        defaults={"role": MemberRole.STUDENT, "added_by": actor},
    )
    return membership

@transaction.atomic
def remove_member(actor, classroom: Classroom, member_user) -> None:
    """Remove any membership record for the given user from the class."""
    _ensure_class_teacher(actor, classroom)
    ClassMembership.objects.filter(classroom=classroom, user=member_user).delete()

@transaction.atomic
def create_assignment(
    teacher,
    classroom: Classroom,
    title: str,
    category: str,
    due_at=None,
    grade_scale: str = GradeScale.PERCENT,
    description: str = "",
    assigned_students: Iterable | None = None,
) -> Assignment:
    """Issue an assignment to a class (teacher only).

    ``assigned_students`` restricts the assignment to some enrolled students;
    each must be a student member of the class.
    """
    _ensure_class_teacher(teacher, classroom)
    if not title or not title.strip():
        raise ValidationError({"title": "This field is required."})
    if category not in AssignmentCategory.values:
        raise ValidationError({"category": f"Unknown category {category!r}."})
    if grade_scale not in GradeScale.values:
        raise ValidationError({"grade_scale": f"Unknown grade scale {grade_scale!r}."})
    assignment = Assignment.objects.create(
        classroom=classroom,
        title=title.strip(),
        description=description,
        category=category,
        grade_scale=grade_scale,
        due_at=due_at,
        created_by=teacher,
    )
    students = list(assigned_students or [])
    if students:
        enrolled = set(
            ClassMembership.objects.students()
            .filter(classroom=classroom, user__in=students)
            .values_list("user_id", flat=True)
        )
        outsiders = [s.pk for s in students if s.pk not in enrolled]
        if outsiders:
            raise ValidationError({"assigned_students": f"Not enrolled in class: {outsiders}"})
        assignment.assigned_students.set(students)
    return assignment
