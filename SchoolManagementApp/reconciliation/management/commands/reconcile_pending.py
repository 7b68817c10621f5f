from django.core.management.base import BaseCommand

from SchoolManagementApp.domain.services import reconciliation_service

class Command(BaseCommand):
    help = "Retry automatic matching for all unresolved completion reports."

    def handle(self, *args, **options):
        before = reconciliation_service.list_unresolved_reports().count()
        confirmed = reconciliation_service.reconcile_pending()
        self.stdout.write(self.style.SUCCESS(
            f"Auto-confirmed {confirmed} of {before} unresolved reports"
        ))
