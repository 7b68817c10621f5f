from django.core.management.base import BaseCommand

from SchoolManagementApp.learning.models import Assignment
from SchoolManagementApp.learning.signals import apply_due_date


class Command(BaseCommand):
    help = "Re-flag late submissions against their assignment's current due date."

    def add_arguments(self, parser):
        parser.add_argument(
            "--assignment", type=int, action="append", dest="assignments",
            help="Only this assignment id (repeatable).",
        )

    def handle(self, *args, assignments=None, **options):
        qs = Assignment.objects.order_by("id")
        if assignments:
            qs = qs.filter(pk__in=assignments)
        updated = sum(apply_due_date(pk, due_at) for pk, due_at in qs.values_list("pk", "due_at"))
        self.stdout.write(self.style.SUCCESS(f"Updated {updated} submissions"))
