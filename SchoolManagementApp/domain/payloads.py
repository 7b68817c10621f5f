"""Attempt payloads: a common envelope plus a category-specific detail variant.

Each exercise category reports different optional fields. Rather than one
loose record, ``details_for_category`` picks the variant for the assignment's
category and drops keys that variant does not know.
"""

import math
from dataclasses import asdict, dataclass, field, fields
from typing import Any, ClassVar, Mapping

from SchoolManagementApp.core.choices import AssignmentCategory, AttemptStatus
from SchoolManagementApp.core.exceptions import ValidationError


def _str_list(value: Any, name: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ValidationError({name: "Must be a list of strings."})
    return tuple(str(v) for v in value)


def _opt_number(value: Any, name: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValidationError({name: "Must be a number."})
    return float(value)


def _opt_int(value: Any, name: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError({name: "Must be a non-negative integer."})
    return value


@dataclass(frozen=True)
class NoDetails:
    """Categories without extra fields (grammar, vocabulary, speaking)."""
    kind: ClassVar[str] = "none"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "NoDetails":
        return cls()


@dataclass(frozen=True)
class WritingDetails:
    kind: ClassVar[str] = "writing"
    retry_count: int | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "WritingDetails":
        return cls(retry_count=_opt_int(data.get("retry_count"), "retry_count"))


@dataclass(frozen=True)
class ListeningDetails:
    kind: ClassVar[str] = "listening"
    attempt_count: int | None = None
    stage2_wrong_answers: tuple[str, ...] = ()
    stage3_wrong_answers: tuple[str, ...] = ()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ListeningDetails":
        return cls(
            attempt_count=_opt_int(data.get("attempt_count"), "attempt_count"),
            stage2_wrong_answers=_str_list(data.get("stage2_wrong_answers"), "stage2_wrong_answers"),
            stage3_wrong_answers=_str_list(data.get("stage3_wrong_answers"), "stage3_wrong_answers"),
        )


@dataclass(frozen=True)
class ReadingDetails:
    kind: ClassVar[str] = "reading"
    common_mistakes: tuple[str, ...] = ()
    vocabulary_list: tuple[str, ...] = ()
    translation_stage_3_0_score: float | None = None
    translation_stage_3_5_score: float | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ReadingDetails":
        return cls(
            common_mistakes=_str_list(data.get("common_mistakes"), "common_mistakes"),
            vocabulary_list=_str_list(data.get("vocabulary_list"), "vocabulary_list"),
            translation_stage_3_0_score=_opt_number(
                data.get("translation_stage_3_0_score"), "translation_stage_3_0_score"
            ),
            translation_stage_3_5_score=_opt_number(
                data.get("translation_stage_3_5_score"), "translation_stage_3_5_score"
            ),
        )


AttemptDetails = NoDetails | WritingDetails | ListeningDetails | ReadingDetails

DETAILS_BY_CATEGORY: dict[str, type] = {
    AssignmentCategory.GRAMMAR: NoDetails,
    AssignmentCategory.VOCABULARY: NoDetails,
    AssignmentCategory.SPEAKING: NoDetails,
    AssignmentCategory.LISTENING: ListeningDetails,
    AssignmentCategory.READING: ReadingDetails,
    AssignmentCategory.WRITING: WritingDetails,
    AssignmentCategory.WRITING_TASK_1: WritingDetails,
    AssignmentCategory.WRITING_TASK_2: WritingDetails,
}

DETAIL_KEYS: frozenset[str] = frozenset(
    f.name for variant in (WritingDetails, ListeningDetails, ReadingDetails) for f in fields(variant)
)


def details_for_category(category: str, data: Mapping[str, Any] | None) -> AttemptDetails:
    """Build the detail variant matching an assignment category."""
    variant = DETAILS_BY_CATEGORY.get(category, NoDetails)
    return variant.from_mapping(data or {})


def details_to_json(details: AttemptDetails) -> dict[str, Any]:
    """JSON form stored on Attempt.details, tagged with the variant kind."""
    payload = {k: list(v) if isinstance(v, tuple) else v for k, v in asdict(details).items()}
    return {"kind": details.kind, **payload}


@dataclass(frozen=True)
class AttemptData:
    """Envelope shared by every exercise completion.

    ``detected_errors`` holds structured descriptors (dicts such as
    ``{"phrase": ..., "explanation": ...}``); plain strings are wrapped as
    ``{"message": ...}``.
    """
    score: float
    status: str = AttemptStatus.COMPLETED
    time_spent_seconds: int = 0
    completed_artifact: str = ""
    detected_errors: tuple[dict[str, Any], ...] = ()
    details: AttemptDetails = field(default_factory=NoDetails)

    def __post_init__(self):
        if isinstance(self.score, bool) or not isinstance(self.score, (int, float)) \
                or not math.isfinite(self.score):
            raise ValidationError({"score": "Must be a number."})
        if self.status not in AttemptStatus.values:
            raise ValidationError({"status": f"Unknown attempt status {self.status!r}."})
        if isinstance(self.time_spent_seconds, bool) or not isinstance(self.time_spent_seconds, int) \
                or self.time_spent_seconds < 0:
            raise ValidationError({"time_spent_seconds": "Must be a non-negative integer."})
        object.__setattr__(self, "detected_errors", normalize_errors(self.detected_errors))


def normalize_errors(errors: Any) -> tuple[dict[str, Any], ...]:
    if not errors:
        return ()
    if isinstance(errors, (str, dict)) or not isinstance(errors, (list, tuple)):
        raise ValidationError({"detected_errors": "Must be a list."})
    return tuple(e if isinstance(e, dict) else {"message": str(e)} for e in errors)
