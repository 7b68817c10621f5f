"""REST API views for assignments, submissions, grading and completion reports."""

from django.shortcuts import get_object_or_404

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
    extend_schema_view,
)

from SchoolManagementApp.api.mixins import PaginationMixin
from SchoolManagementApp.api.throttles import ReportIngestRateThrottle
from SchoolManagementApp.api.serializers import (
    AssignmentReadSerializer,
    AttemptReadSerializer,
    AttemptWriteSerializer,
    CompletionReportSerializer,
    ConfirmMatchSerializer,
    GradeWriteSerializer,
    IngestResultSerializer,
    PendingReportReadSerializer,
    SubmissionReadSerializer,
    SubmitLinkSerializer,
)
from SchoolManagementApp.core.access import is_student, is_teacher
from SchoolManagementApp.core.permissions import (
    IsAssignmentMember,
    IsAssignmentTeacher,
    IsTeacher,
    ParticipantPermission,
)
from SchoolManagementApp.domain.payloads import AttemptData, details_for_category
from SchoolManagementApp.domain.services import reconciliation_service, submission_service
from SchoolManagementApp.learning.models import Assignment, Submission

AUTH_RESPONSES = {
    401: OpenApiResponse(description="Authentication required."),
    403: OpenApiResponse(description="Forbidden"),
    404: OpenApiResponse(description="Not Found"),
}

VALIDATION_RESPONSE = {
    400: OpenApiResponse(description="Validation error."),
}

CONFLICT_RESPONSE = {
    409: OpenApiResponse(description="Submission is graded and locked."),
}

MATCH_RESPONSE = {
    422: OpenApiResponse(description="Student is not eligible for the chosen assignment."),
}


# ---------- Assignments ----------
@extend_schema_view(
    list=extend_schema(tags=["Assignments"], responses={200: AssignmentReadSerializer(many=True), **AUTH_RESPONSES}),
    retrieve=extend_schema(tags=["Assignments"], responses={200: AssignmentReadSerializer, **AUTH_RESPONSES}),
)
class AssignmentViewSet(PaginationMixin, viewsets.ReadOnlyModelViewSet):
    """Assignments visible to the requesting teacher or student."""
    serializer_class = AssignmentReadSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        return Assignment.objects.visible_to(self.request.user).order_by("id")

    def list(self, request: Request, *args, **kwargs) -> Response:
        return self.paginate_and_respond(self.get_queryset())


# ---------- Submissions ----------
@extend_schema_view(
    list=extend_schema(
        tags=["Submissions"],
        parameters=[OpenApiParameter("student", int, OpenApiParameter.QUERY, required=False,
                                     description="Only this student's submission.")],
        responses={200: SubmissionReadSerializer(many=True), **AUTH_RESPONSES},
    ),
    retrieve=extend_schema(tags=["Submissions"], responses={200: SubmissionReadSerializer, **AUTH_RESPONSES}),
)
@extend_schema(parameters=[OpenApiParameter("assignment_pk", int, OpenApiParameter.PATH)])
class SubmissionViewSet(
    PaginationMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Submission listing, link submission, attempts and grading for one assignment."""

    permission_classes = [IsAuthenticated, IsAssignmentMember, ParticipantPermission]
    serializer_class = SubmissionReadSerializer

    @property
    def assignment(self) -> Assignment:
        return get_object_or_404(
            Assignment.objects.select_related("classroom"), pk=self.kwargs["assignment_pk"]
        )

    def get_queryset(self):
        """Teachers see every submission of the assignment; students only their own."""
        assignment = self.assignment
        qs = submission_service.list_submissions_for_assignment(assignment.pk)
        if not is_teacher(self.request.user, assignment.classroom):
            qs = qs.filter(student=self.request.user)
        return qs

    def list(self, request: Request, *args, **kwargs) -> Response:
        qs = self.get_queryset()
        student_id = request.query_params.get("student")
        if student_id:
            qs = qs.filter(student_id=student_id)
        return self.paginate_and_respond(qs)

    def _ensure_enrolled_student(self, assignment: Assignment) -> None:
        if not is_student(self.request.user, assignment.classroom):
            raise PermissionDenied("Only enrolled students submit work")

    @extend_schema(
        tags=["Submissions"],
        request=SubmitLinkSerializer,
        responses={200: SubmissionReadSerializer, **VALIDATION_RESPONSE, **CONFLICT_RESPONSE, **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["student"], "ownership": "self"}},
    )
    @action(detail=False, methods=["post"], url_path="submit-link")
    def submit_link(self, request: Request, *args, **kwargs) -> Response:
        """Submit or resubmit a link to the student's work."""
        assignment = self.assignment
        self._ensure_enrolled_student(assignment)
        ser = SubmitLinkSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        submission = submission_service.submit_link(
            assignment.pk, request.user.pk, ser.validated_data["link"]
        )
        return Response(SubmissionReadSerializer(submission).data)

    @extend_schema(
        tags=["Submissions"],
        request=AttemptWriteSerializer,
        responses={201: AttemptReadSerializer, **VALIDATION_RESPONSE, **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["student"], "ownership": "self"}},
    )
    @action(detail=False, methods=["post"], url_path="attempts")
    def record_attempt(self, request: Request, *args, **kwargs) -> Response:
        """Append an interactive-exercise attempt for the requesting student."""
        assignment = self.assignment
        self._ensure_enrolled_student(assignment)
        ser = AttemptWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data
        attempt = submission_service.record_attempt(
            assignment.pk,
            request.user.pk,
            AttemptData(
                score=data["score"],
                status=data["status"],
                time_spent_seconds=data["time_spent_seconds"],
                completed_artifact=data["completed_artifact"],
                detected_errors=tuple(data["detected_errors"]),
                details=details_for_category(assignment.category, data["details"]),
            ),
        )
        return Response(AttemptReadSerializer(attempt).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        tags=["Grades"],
        request=GradeWriteSerializer,
        responses={200: SubmissionReadSerializer, **VALIDATION_RESPONSE, **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["teacher"], "ownership": "class-teacher"}},
    )
    @action(detail=True, methods=["post"], url_path="grade",
            permission_classes=[IsAuthenticated, IsAssignmentTeacher])
    def grade(self, request: Request, pk: int | None = None, *args, **kwargs) -> Response:
        """Grade a submission and set (or clear) the redo request."""
        submission = get_object_or_404(Submission, pk=pk, assignment_id=self.kwargs["assignment_pk"])
        ser = GradeWriteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        graded = submission_service.grade_submission(
            submission.pk,
            ser.validated_data["grade"],
            feedback=ser.validated_data["feedback"],
            is_redo_required=ser.validated_data["is_redo_required"],
            drive_link=ser.validated_data["drive_link"],
            graded_by=request.user,
        )
        return Response(SubmissionReadSerializer(graded).data)


# ---------- Completion reports ----------
@extend_schema_view(
    list=extend_schema(
        tags=["Reports"],
        description=(
            "Unresolved completion reports awaiting manual resolution, oldest first. Only "
            "reports naming a class the requesting teacher teaches are listed, plus reports "
            "whose class name matches no class."
        ),
        responses={200: PendingReportReadSerializer(many=True), **AUTH_RESPONSES},
    ),
    retrieve=extend_schema(tags=["Reports"], responses={200: PendingReportReadSerializer, **AUTH_RESPONSES}),
    create=extend_schema(
        tags=["Reports"],
        request=CompletionReportSerializer,
        description=(
            "Ingest a completion report from the exercise surface. Redelivering the same "
            "report returns the original outcome, provided the report carries an "
            "`Idempotency-Key` header or a `submitted_at` timestamp. Without either, each "
            "delivery is stored as a new report."
        ),
        parameters=[
            OpenApiParameter("Idempotency-Key", str, OpenApiParameter.HEADER, required=False,
                             description="Client-provided key identifying one completion event. "
                                         "Needed for deduplication when `submitted_at` is absent.")
        ],
        responses={
            201: IngestResultSerializer,
            200: IngestResultSerializer,
            429: OpenApiResponse(description="Too many requests / throttled."),
            **VALIDATION_RESPONSE,
            **AUTH_RESPONSES,
        },
    ),
)
class PendingReportViewSet(
    PaginationMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    """Intake and manual resolution of completion reports."""

    serializer_class = PendingReportReadSerializer

    def get_permissions(self) -> list:
        if self.action == "create":
            return [IsAuthenticated()]
        return [IsAuthenticated(), IsTeacher()]

    def get_throttles(self):
        """Apply rate throttle only on intake."""
        if self.action == "create":
            self.throttle_classes = [ReportIngestRateThrottle]
        return super().get_throttles()

    def get_queryset(self):
        return reconciliation_service.list_unresolved_reports(teacher=self.request.user)

    def retrieve(self, request: Request, pk: int | None = None, *args, **kwargs) -> Response:
        report = reconciliation_service.get_report(pk, teacher=request.user)
        return Response(PendingReportReadSerializer(report).data)

    def create(self, request: Request, *args, **kwargs) -> Response:
        ser = CompletionReportSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        result = reconciliation_service.ingest_completion_report(
            ser.validated_data,
            report_key=request.headers.get("Idempotency-Key"),
        )
        code = status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
        return Response(IngestResultSerializer(result).data, status=code)

    def _ensure_can_resolve(self, assignment_id: int) -> None:
        assignment = get_object_or_404(Assignment.objects.select_related("classroom"), pk=assignment_id)
        if not is_teacher(self.request.user, assignment.classroom):
            raise PermissionDenied("Teacher of the assignment's class required")

    @extend_schema(
        tags=["Reports"],
        request=ConfirmMatchSerializer,
        responses={200: PendingReportReadSerializer, **MATCH_RESPONSE, **AUTH_RESPONSES},
        extensions={"x-permissions": {"required_roles": ["teacher"], "ownership": "class-teacher"}},
    )
    @action(detail=True, methods=["post"])
    def confirm(self, request: Request, pk: int | None = None) -> Response:
        """Bind a report to a student and assignment chosen by the teacher."""
        ser = ConfirmMatchSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        self._ensure_can_resolve(ser.validated_data["assignment_id"])
        report = reconciliation_service.confirm_match(
            pk,
            ser.validated_data["student_id"],
            ser.validated_data["assignment_id"],
            resolved_by=request.user,
        )
        return Response(PendingReportReadSerializer(report).data)

    @extend_schema(
        tags=["Reports"],
        request=None,
        responses={200: PendingReportReadSerializer, **AUTH_RESPONSES},
    )
    @action(detail=True, methods=["post"])
    def reject(self, request: Request, pk: int | None = None) -> Response:
        """Reject a report; no submission is created or changed."""
        report = reconciliation_service.reject(pk, resolved_by=request.user)
        return Response(PendingReportReadSerializer(report).data)
