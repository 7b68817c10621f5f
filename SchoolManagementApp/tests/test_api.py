import pytest
from model_bakery import baker
from rest_framework.test import APIClient

from SchoolManagementApp.core.choices import Resolution, SubmissionStatus, UserRole
from SchoolManagementApp.domain.services import classroom_service
from SchoolManagementApp.learning.models import Attempt, Submission
from SchoolManagementApp.reconciliation.models import PendingReport

pytestmark = pytest.mark.django_db

LINK = "https://drive.example.com/essay-1"


def login(user):
    client = APIClient()
    token = client.post("/api/v1/auth/token/", {"email": user.email, "password": "pass1234"}, format="json").data["access"]
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    return client

def submissions_url(assignment):
    return f"/api/v1/assignments/{assignment.id}/submissions/"


def test_anonymous_requests_are_refused(assignment):
    assert APIClient().get("/api/v1/assignments/").status_code == 401
    assert APIClient().post("/api/v1/reports/", {}, format="json").status_code == 401

def test_student_sees_class_assignments(assignment, student):
    resp = login(student).get("/api/v1/assignments/")
    assert resp.status_code == 200
    assert [a["id"] for a in resp.data["results"]] == [assignment.id]

def test_submit_link_then_grade_then_locked(assignment, student, teacher):
    s_client = login(student)
    post = s_client.post(submissions_url(assignment) + "submit-link/", {"link": LINK}, format="json")
    assert post.status_code == 200
    assert post.data["status"] == SubmissionStatus.SUBMITTED
    assert post.data["attempts"] == []
    submission_id = post.data["id"]

    t_client = login(teacher)
    graded = t_client.post(
        submissions_url(assignment) + f"{submission_id}/grade/",
        {"grade": 92, "feedback": "Great", "is_redo_required": False},
        format="json",
    )
    assert graded.status_code == 200
    assert graded.data["grade"] == 92
    assert graded.data["status"] == SubmissionStatus.GRADED

    again = s_client.post(submissions_url(assignment) + "submit-link/", {"link": LINK + "-v2"}, format="json")
    assert again.status_code == 409
    assert Submission.objects.get().submission_link == LINK

def test_redo_request_reopens_submission(assignment, student, teacher):
    s_client = login(student)
    submission_id = s_client.post(
        submissions_url(assignment) + "submit-link/", {"link": LINK}, format="json"
    ).data["id"]
    login(teacher).post(
        submissions_url(assignment) + f"{submission_id}/grade/",
        {"grade": 40, "feedback": "Redo", "is_redo_required": True},
        format="json",
    )
    resp = s_client.post(submissions_url(assignment) + "submit-link/", {"link": LINK + "-redo"}, format="json")
    assert resp.status_code == 200
    assert resp.data["is_redo_required"] is False

def test_student_cannot_grade(assignment, student):
    s_client = login(student)
    submission_id = s_client.post(
        submissions_url(assignment) + "submit-link/", {"link": LINK}, format="json"
    ).data["id"]
    resp = s_client.post(submissions_url(assignment) + f"{submission_id}/grade/", {"grade": 100}, format="json")
    assert resp.status_code == 403

def test_grade_out_of_range_is_400(assignment, student, teacher):
    submission_id = login(student).post(
        submissions_url(assignment) + "submit-link/", {"link": LINK}, format="json"
    ).data["id"]
    resp = login(teacher).post(submissions_url(assignment) + f"{submission_id}/grade/", {"grade": 101}, format="json")
    assert resp.status_code == 400
    assert Submission.objects.get().status == SubmissionStatus.SUBMITTED

def test_outsider_cannot_submit(assignment, make_student):
    outsider = make_student("Pham Van D")
    resp = login(outsider).post(submissions_url(assignment) + "submit-link/", {"link": LINK}, format="json")
    assert resp.status_code == 403
    assert not Submission.objects.exists()

def test_record_attempt_endpoint(assignment, student):
    s_client = login(student)
    resp = s_client.post(
        submissions_url(assignment) + "attempts/",
        {"score": 72, "time_spent_seconds": 300, "details": {"retry_count": 1}},
        format="json",
    )
    assert resp.status_code == 201
    assert resp.data["attempt_index"] == 0
    assert resp.data["details"] == {"kind": "writing", "retry_count": 1}

    bad = s_client.post(submissions_url(assignment) + "attempts/", {"score": 150}, format="json")
    assert bad.status_code == 400
    assert Attempt.objects.count() == 1

def test_teacher_lists_submissions_student_sees_own(assignment, student, make_student, teacher, classroom):
    other = make_student("Le Thi C")
    classroom_service.add_student(teacher, classroom, other)
    login(student).post(submissions_url(assignment) + "submit-link/", {"link": LINK}, format="json")
    login(other).post(submissions_url(assignment) + "submit-link/", {"link": LINK + "-c"}, format="json")

    assert login(teacher).get(submissions_url(assignment)).data["count"] == 2
    own = login(student).get(submissions_url(assignment)).data
    assert own["count"] == 1
    assert own["results"][0]["student"]["name"] == "Nguyen Van A"


# ---------- reports ----------
def test_report_ingest_and_redelivery(assignment, student, report):
    client = login(student)
    first = client.post("/api/v1/reports/", report(), format="json", HTTP_IDEMPOTENCY_KEY="evt-9")
    assert first.status_code == 201
    assert first.data["resolution"] == Resolution.AUTO_CONFIRMED

    again = client.post("/api/v1/reports/", report(), format="json", HTTP_IDEMPOTENCY_KEY="evt-9")
    assert again.status_code == 200
    assert again.data["id"] == first.data["id"]
    assert again.data["created"] is False
    assert Attempt.objects.count() == 1

def test_report_with_missing_identity_is_400(student, report):
    resp = login(student).post("/api/v1/reports/", report(class_name_attempt=""), format="json")
    assert resp.status_code == 400
    assert not PendingReport.objects.exists()

def test_manual_queue_is_for_teachers(assignment, student, teacher, report):
    client = login(student)
    client.post("/api/v1/reports/", report(assignment_title_attempt="Unknown"), format="json")
    assert client.get("/api/v1/reports/").status_code == 403

    queue = login(teacher).get("/api/v1/reports/")
    assert queue.status_code == 200
    assert queue.data["count"] == 1
    assert "assignment_title" in queue.data["results"][0]["last_match_error"]

def test_confirm_and_reject_over_api(assignment, student, make_student, teacher, report):
    s_client = login(student)
    t_client = login(teacher)
    outsider = make_student("Pham Van D")

    first = s_client.post("/api/v1/reports/", report(assignment_title_attempt="Unknown"), format="json").data["id"]
    bad = t_client.post(
        f"/api/v1/reports/{first}/confirm/",
        {"student_id": outsider.id, "assignment_id": assignment.id},
        format="json",
    )
    assert bad.status_code == 422
    ok = t_client.post(
        f"/api/v1/reports/{first}/confirm/",
        {"student_id": student.id, "assignment_id": assignment.id},
        format="json",
    )
    assert ok.status_code == 200
    assert ok.data["resolution"] == Resolution.MANUALLY_CONFIRMED

    second = s_client.post("/api/v1/reports/", report(assignment_title_attempt="Other"), format="json").data["id"]
    rejected = t_client.post(f"/api/v1/reports/{second}/reject/")
    assert rejected.status_code == 200
    assert rejected.data["resolution"] == Resolution.REJECTED
    assert Attempt.objects.count() == 1

def test_teacher_of_another_class_cannot_see_or_reject(assignment, student, teacher, report):
    other = baker.make("users.User", role=UserRole.TEACHER, display_name="Do Van G")
    other.set_password("pass1234")
    other.save()
    classroom_service.create_classroom(other, "Class 12C")
    report_id = login(student).post(
        "/api/v1/reports/", report(assignment_title_attempt="Unknown"), format="json"
    ).data["id"]

    o_client = login(other)
    assert o_client.get("/api/v1/reports/").data["count"] == 0
    assert o_client.get(f"/api/v1/reports/{report_id}/").status_code == 404
    assert o_client.post(f"/api/v1/reports/{report_id}/reject/").status_code == 404
    assert PendingReport.objects.get(pk=report_id).resolution == Resolution.UNRESOLVED

    assert login(teacher).get(f"/api/v1/reports/{report_id}/").status_code == 200

def test_schema_states_the_redelivery_guarantee(db):
    resp = APIClient().get("/api/v1/schema/", {"format": "json"})
    assert resp.status_code == 200
    assert "Without either, each delivery is stored as a new report." in resp.content.decode()
