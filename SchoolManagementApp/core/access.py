"""Role & object access helpers."""

from typing import Any

from SchoolManagementApp.classrooms.models import Classroom, ClassMembership
from SchoolManagementApp.core.choices import MemberRole, UserRole
from SchoolManagementApp.learning.models import Assignment, Submission, Attempt


def classroom_from(obj: Any) -> Classroom | None:
    if obj is None:
        return None
    if isinstance(obj, Classroom):
        return obj
    if isinstance(obj, Assignment):
        return obj.classroom
    if isinstance(obj, Submission):
        return obj.assignment.classroom
    if isinstance(obj, Attempt):
        return obj.submission.assignment.classroom
    return getattr(obj, "classroom", None)


def is_teacher(user, classroom: Classroom | None) -> bool:
    if not (user and classroom):
        return False
    if classroom.teacher_id == user.id:
        return True
    return ClassMembership.objects.filter(
        classroom=classroom, user=user, role=MemberRole.TEACHER
    ).exists()


def is_student(user, classroom: Classroom | None) -> bool:
    if not (user and classroom):
        return False
    return ClassMembership.objects.is_enrolled(user.id, classroom.id)


def is_any_teacher(user) -> bool:
    """User teaches at least one class (or holds the teacher account role)."""
    if not (user and user.is_authenticated):
        return False
    return user.role == UserRole.TEACHER or Classroom.objects.taught_by(user).exists()


def is_submission_participant(user, obj: Any) -> bool:
    """User owns the submission/attempt or teaches its class."""
    classroom = classroom_from(obj)
    if not classroom:
        return False
    if isinstance(obj, Submission) and obj.student_id == user.id:
        return True
    if isinstance(obj, Attempt) and obj.submission.student_id == user.id:
        return True
    return is_teacher(user, classroom)
