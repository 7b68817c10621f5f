"""API throttling classes."""

from rest_framework.throttling import UserRateThrottle

class ReportIngestRateThrottle(UserRateThrottle):
    """Throttle limiting completion-report intake per user (rate from settings)."""
    scope = "report_ingest"
