"""Domain error taxonomy.

Built on DRF exceptions so that service errors surface through the API with
the right status code and no per-view translation.
"""

from rest_framework import status
from rest_framework import exceptions


class NotFoundError(exceptions.NotFound):
    """Referenced assignment, student, class, submission or report is absent."""
    default_code = "not_found"


class ValidationError(exceptions.ValidationError):
    """Grade or score out of range, or a required field missing."""
    default_code = "invalid"


class SubmissionLockedError(exceptions.APIException):
    """Resubmission attempted on a graded submission without a redo request."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Submission is graded and locked."
    default_code = "submission_locked"


class AmbiguousMatchError(exceptions.APIException):
    """A free-text identity field matched zero or several catalog entries."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Identity could not be matched uniquely."
    default_code = "ambiguous_match"

    def __init__(self, field: str, candidates: int):
        self.field = field
        self.candidates = candidates
        super().__init__(f"{field}: {candidates} candidates (exactly one required)")


class InconsistentMatchError(exceptions.APIException):
    """Student, class and assignment do not belong together."""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = "Student is not eligible for this assignment."
    default_code = "inconsistent_match"
