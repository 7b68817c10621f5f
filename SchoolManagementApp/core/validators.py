"""Validation helpers for grades, scores and external links."""

import math
from urllib.parse import urlparse
from django.conf import settings

from SchoolManagementApp.core.choices import GRADE_SCALE_BOUNDS, GradeScale
from SchoolManagementApp.core.exceptions import ValidationError

def validate_in_scale(value, scale: str, field: str = "grade") -> float:
    """Ensure value is numeric and within the scale's inclusive bounds; never clamps."""
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValidationError({field: f"Must be a number, got {value!r}."})
    low, high = GRADE_SCALE_BOUNDS.get(scale, GRADE_SCALE_BOUNDS[GradeScale.PERCENT])
    if not (low <= value <= high):
        raise ValidationError({field: f"{value} outside {scale} range {low:g}-{high:g}."})
    return float(value)

def validate_link(url: str, field: str = "link", allow_blank: bool = False) -> str:
    """Ensure url is an absolute link with an allowed scheme."""
    if not url:
        if allow_blank:
            return ""
        raise ValidationError({field: "This field is required."})
    result = urlparse(url)
    allowed = getattr(settings, "ALLOWED_LINK_SCHEMES", ("https",))
    if result.scheme not in allowed or not result.netloc:
        raise ValidationError({field: "Link must be an absolute http(s) URL."})
    return url

def validate_non_negative(value, field: str) -> int:
    """Ensure value is a non-negative integer (durations, counts)."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError({field: "Must be a non-negative integer."})
    return value
