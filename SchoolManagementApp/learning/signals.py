"""Keep ``Submission.is_late`` in step with its assignment's due date."""

from typing import Any

from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver

from SchoolManagementApp.learning.models import Assignment, Submission


def apply_due_date(assignment_id: int, due_at) -> int:
    """Re-flag the assignment's submissions against ``due_at``; returns rows changed."""
    subs = Submission.objects.filter(assignment_id=assignment_id)
    if due_at is None:
        return subs.filter(is_late=True).update(is_late=False)
    return (
        subs.filter(submitted_at__gt=due_at, is_late=False).update(is_late=True)
        + subs.filter(submitted_at__lte=due_at, is_late=True).update(is_late=False)
    )


@receiver(pre_save, sender=Assignment)
def remember_previous_due_date(sender: type[Assignment], instance: Assignment, **kwargs: Any) -> None:
    if instance.pk is None:
        return
    instance._previous_due_at = (
        Assignment.objects.filter(pk=instance.pk).values_list("due_at", flat=True).first()
    )


@receiver(post_save, sender=Assignment)
def recompute_submission_lateness(
    sender: type[Assignment],
    instance: Assignment,
    created: bool,
    update_fields=None,
    **kwargs: Any,
) -> None:
    if created:
        return
    if update_fields is not None and "due_at" not in update_fields:
        return
    if getattr(instance, "_previous_due_at", None) == instance.due_at:
        return
    apply_due_date(instance.pk, instance.due_at)
    instance._previous_due_at = instance.due_at
