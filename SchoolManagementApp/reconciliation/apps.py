from django.apps import AppConfig

class ReconciliationConfig(AppConfig):
    """AppConfig for the completion-report queue and matcher."""
    default_auto_field = "django.db.models.BigAutoField"
    name = "SchoolManagementApp.reconciliation"
    label = "reconciliation"
