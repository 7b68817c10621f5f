"""Roster, class and assignment lookups, and the snapshot built from them."""

from collections import defaultdict

from django.contrib.auth import get_user_model
from django.db.models import Q

from SchoolManagementApp.classrooms.models import Classroom, ClassMembership
from SchoolManagementApp.core.choices import MemberRole, UserRole
from SchoolManagementApp.core.exceptions import NotFoundError
from SchoolManagementApp.learning.models import Assignment
from SchoolManagementApp.reconciliation.catalog import (
    AssignmentEntry, CatalogSnapshot, ClassEntry, StudentEntry,
)

User = get_user_model()


def list_classes() -> list[dict]:
    """All classes as ``{"id", "name"}``."""
    return [{"id": c.id, "name": c.name} for c in Classroom.objects.order_by("id")]


def list_enrolled_students(class_id: int) -> list[dict]:
    """Students enrolled in the class as ``{"id", "name"}``."""
    if not Classroom.objects.filter(pk=class_id).exists():
        raise NotFoundError(f"Class {class_id} not found")
    memberships = (
        ClassMembership.objects.students()
        .filter(classroom_id=class_id)
        .select_related("user")
        .order_by("user_id")
    )
    return [{"id": m.user_id, "name": m.user.roster_name} for m in memberships]


def list_assignments(class_id: int | None = None) -> list[dict]:
    """Assignments as ``{"id", "title", "classId"}``, optionally for one class."""
    qs = Assignment.objects.order_by("id")
    if class_id is not None:
        qs = qs.for_classroom(class_id)
    return [{"id": a.id, "title": a.title, "classId": a.classroom_id} for a in qs]


def build_snapshot() -> CatalogSnapshot:
    """Load the whole catalog once into an immutable snapshot."""
    class_ids: dict[int, set[int]] = defaultdict(set)
    for m in ClassMembership.objects.students().values("user_id", "classroom_id"):
        class_ids[m["user_id"]].add(m["classroom_id"])
    # Unenrolled students stay on the roster so a name hit fails the enrollment check.
    roster = User.objects.filter(
        Q(role=UserRole.STUDENT) | Q(class_memberships__role=MemberRole.STUDENT)
    ).distinct()
    names = {u.id: u.roster_name for u in roster}

    restrictions: dict[int, set[int]] = defaultdict(set)
    through = Assignment.assigned_students.through
    for row in through.objects.values("assignment_id", "user_id"):
        restrictions[row["assignment_id"]].add(row["user_id"])

    return CatalogSnapshot(
        students=tuple(
            StudentEntry(id=uid, name=name, class_ids=frozenset(class_ids.get(uid, ())))
            for uid, name in sorted(names.items())
        ),
        classes=tuple(ClassEntry(id=c["id"], name=c["name"]) for c in list_classes()),
        assignments=tuple(
            AssignmentEntry(
                id=a["id"],
                title=a["title"],
                class_id=a["classId"],
                student_ids=frozenset(restrictions.get(a["id"], ())),
            )
            for a in list_assignments()
        ),
    )
