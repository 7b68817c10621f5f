"""Serializers for assignments, submissions, attempts and completion reports."""

from rest_framework import serializers
from django.contrib.auth import get_user_model

from SchoolManagementApp.core.choices import AttemptStatus
from SchoolManagementApp.learning.models import Assignment, Attempt, Submission
from SchoolManagementApp.reconciliation.models import PendingReport

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    """Public, safe representation of a user."""
    name = serializers.CharField(source="roster_name", read_only=True)

    class Meta:
        model = User
        fields = ["id", "email", "name", "role"]


class AssignmentReadSerializer(serializers.ModelSerializer):
    class Meta:
        model = Assignment
        fields = [
            "id", "classroom", "title", "description", "category",
            "grade_scale", "due_at", "assigned_students", "created_at",
        ]


class AttemptReadSerializer(serializers.ModelSerializer):
    class Meta:
        model = Attempt
        fields = [
            "attempt_index", "score", "status", "completed_artifact",
            "detected_errors", "time_spent_seconds", "details", "created_at",
        ]


class SubmissionReadSerializer(serializers.ModelSerializer):
    """Submission with its full attempt ledger."""
    student = UserSerializer(read_only=True)
    attempts = AttemptReadSerializer(many=True, read_only=True)

    class Meta:
        model = Submission
        fields = [
            "id", "assignment", "student", "status", "is_redo_required", "grade",
            "ai_suggested_grade", "teacher_feedback", "graded_drive_link",
            "submission_link", "submitted_at", "is_late", "graded_at", "attempts",
        ]


class SubmitLinkSerializer(serializers.Serializer):
    link = serializers.URLField(help_text="Link to the student's work (e.g. a shared document).")


class AttemptWriteSerializer(serializers.Serializer):
    """Envelope of a directly recorded exercise attempt."""
    score = serializers.FloatField()
    status = serializers.ChoiceField(choices=AttemptStatus.choices, default=AttemptStatus.COMPLETED)
    time_spent_seconds = serializers.IntegerField(min_value=0, default=0)
    completed_artifact = serializers.CharField(required=False, allow_blank=True, default="")
    detected_errors = serializers.ListField(child=serializers.JSONField(), required=False, default=list)
    details = serializers.DictField(required=False, default=dict)


class GradeWriteSerializer(serializers.Serializer):
    grade = serializers.FloatField(help_text="Grade within the assignment's scale (0-100 or 0-9).")
    feedback = serializers.CharField(required=False, allow_blank=True, default="")
    is_redo_required = serializers.BooleanField(default=False)
    drive_link = serializers.URLField(required=False, allow_blank=True, default="")


class CompletionReportSerializer(serializers.Serializer):
    """Completion report as posted by the external exercise surface."""
    student_name_attempt = serializers.CharField(max_length=255)
    class_name_attempt = serializers.CharField(max_length=255)
    assignment_title_attempt = serializers.CharField(max_length=255)
    score = serializers.FloatField(min_value=0)
    completion_status = serializers.CharField(default=AttemptStatus.COMPLETED)
    time_spent_seconds = serializers.IntegerField(min_value=0, default=0)
    submitted_at = serializers.DateTimeField(
        required=False,
        help_text="When the exercise was completed. Redeliveries are recognised by this timestamp "
                  "unless an Idempotency-Key header is sent.",
    )
    completed_artifact = serializers.CharField(required=False, allow_blank=True)
    detected_errors = serializers.ListField(child=serializers.JSONField(), required=False)
    details = serializers.DictField(required=False)


class PendingReportReadSerializer(serializers.ModelSerializer):
    class Meta:
        model = PendingReport
        fields = [
            "id", "student_name_attempt", "class_name_attempt", "assignment_title_attempt",
            "score", "completion_status", "time_spent_seconds", "submitted_at", "details",
            "resolution", "last_match_error", "resolved_student", "resolved_assignment",
            "resolved_at", "received_at",
        ]


class IngestResultSerializer(serializers.Serializer):
    id = serializers.IntegerField(source="report_id")
    resolution = serializers.CharField()
    created = serializers.BooleanField()


class ConfirmMatchSerializer(serializers.Serializer):
    student_id = serializers.IntegerField()
    assignment_id = serializers.IntegerField()
