"""Read-only catalog snapshot handed to the matcher for one reconciliation pass."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class StudentEntry:
    """A roster row: a student and the classes they are enrolled in."""
    id: int
    name: str
    class_ids: frozenset[int] = field(default_factory=frozenset)


@dataclass(frozen=True)
class ClassEntry:
    id: int
    name: str


@dataclass(frozen=True)
class AssignmentEntry:
    """An assignment and, when restricted, the students it targets."""
    id: int
    title: str
    class_id: int
    student_ids: frozenset[int] = field(default_factory=frozenset)

    def targets(self, student_id: int) -> bool:
        return not self.student_ids or student_id in self.student_ids


@dataclass(frozen=True)
class CatalogSnapshot:
    """Students, classes and assignments as they were when the pass started."""
    students: tuple[StudentEntry, ...] = ()
    classes: tuple[ClassEntry, ...] = ()
    assignments: tuple[AssignmentEntry, ...] = ()
