"""Deterministic identity matching for completion reports.

Pure functions over a ``CatalogSnapshot``; no database access. Matching is
exact and case-insensitive (surrounding whitespace ignored). There is no
fuzzy scoring: two students sharing a name always fall through to manual
resolution.
"""

from dataclasses import dataclass
from typing import Iterable, TypeVar

from SchoolManagementApp.core.exceptions import AmbiguousMatchError, InconsistentMatchError
from SchoolManagementApp.reconciliation.catalog import (
    AssignmentEntry, CatalogSnapshot, StudentEntry,
)

T = TypeVar("T")


@dataclass(frozen=True)
class ReportIdentity:
    student_name: str
    class_name: str
    assignment_title: str


@dataclass(frozen=True)
class Match:
    student_id: int
    class_id: int
    assignment_id: int


def normalize(text: str) -> str:
    """Key used for comparisons: trimmed and casefolded."""
    return (text or "").strip().casefold()


def _unique(field: str, wanted: str, entries: Iterable[T], label) -> T:
    key = normalize(wanted)
    hits = [e for e in entries if key and normalize(label(e)) == key]
    if len(hits) != 1:
        raise AmbiguousMatchError(field, len(hits))
    return hits[0]


def check_eligibility(student: StudentEntry, assignment: AssignmentEntry) -> None:
    """Raise InconsistentMatchError unless the student may be credited for the assignment."""
    if assignment.class_id not in student.class_ids:
        raise InconsistentMatchError(
            f"Student {student.id} is not enrolled in class {assignment.class_id} "
            f"of assignment {assignment.id}."
        )
    if not assignment.targets(student.id):
        raise InconsistentMatchError(
            f"Assignment {assignment.id} is restricted and does not target student {student.id}."
        )


def find_student(name: str, snapshot: CatalogSnapshot) -> StudentEntry:
    return _unique("student_name", name, snapshot.students, lambda s: s.name)


def find_assignment(title: str, snapshot: CatalogSnapshot) -> AssignmentEntry:
    return _unique("assignment_title", title, snapshot.assignments, lambda a: a.title)


def match_identity(identity: ReportIdentity, snapshot: CatalogSnapshot) -> Match:
    """Bind free-text identity to record ids.

    Raises:
        AmbiguousMatchError: A field matched zero or several entries.
        InconsistentMatchError: Each field matched, but the student is not
            enrolled in the class, the assignment belongs to another class,
            or the assignment is restricted to other students.
    """
    student = find_student(identity.student_name, snapshot)
    klass = _unique("class_name", identity.class_name, snapshot.classes, lambda c: c.name)
    assignment = find_assignment(identity.assignment_title, snapshot)
    if assignment.class_id != klass.id:
        raise InconsistentMatchError(
            f"Assignment {assignment.id} does not belong to class {klass.id}."
        )
    check_eligibility(student, assignment)
    return Match(student_id=student.id, class_id=klass.id, assignment_id=assignment.id)
