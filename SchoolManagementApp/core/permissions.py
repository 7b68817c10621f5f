"""Custom DRF permission classes for assignment, submission and report access control."""

from typing import Any

from django.shortcuts import get_object_or_404
from rest_framework.permissions import BasePermission
from rest_framework.request import Request

from SchoolManagementApp.learning.models import Assignment
from SchoolManagementApp.core.access import (
    is_any_teacher, is_student, is_submission_participant, is_teacher,
)


def _assignment_from_view(view: Any) -> Assignment | None:
    assignment = getattr(view, "_resolved_assignment", None)
    if assignment:
        return assignment
    pk = getattr(view, "kwargs", {}).get("assignment_pk")
    if pk is None:
        return None
    assignment = get_object_or_404(Assignment.objects.select_related("classroom"), pk=pk)
    view._resolved_assignment = assignment
    return assignment


class IsAssignmentTeacher(BasePermission):
    """Access limited to teachers of the assignment's class."""

    def has_permission(self, request: Request, view: Any) -> bool:
        assignment = _assignment_from_view(view)
        return bool(assignment and is_teacher(request.user, assignment.classroom))


class IsAssignmentMember(BasePermission):
    """Teachers of the assignment's class, or its enrolled students."""

    def has_permission(self, request: Request, view: Any) -> bool:
        assignment = _assignment_from_view(view)
        if assignment is None:
            return True
        classroom = assignment.classroom
        return is_teacher(request.user, classroom) or is_student(request.user, classroom)


class ParticipantPermission(BasePermission):
    """Submission owner or a teacher of its class."""

    def has_object_permission(self, request: Request, view: Any, obj: Any) -> bool:
        return is_submission_participant(request.user, obj)


class IsTeacher(BasePermission):
    """Any teacher; used for the manual resolution queue."""

    def has_permission(self, request: Request, view: Any) -> bool:
        return is_any_teacher(request.user)
