"""Learning app configuration (registers signal handlers)."""

from django.apps import AppConfig

class LearningConfig(AppConfig):
    """AppConfig for the learning domain (assignments, submissions, attempts)."""
    default_auto_field = "django.db.models.BigAutoField"
    name = "SchoolManagementApp.learning"
    label = "learning"

    def ready(self):
        """Import signal handlers to connect Django model signals."""
        from SchoolManagementApp.learning import signals  # noqa: F401
