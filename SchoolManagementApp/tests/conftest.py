import pytest
from django.core.cache import cache
from model_bakery import baker

from SchoolManagementApp.core.choices import AssignmentCategory, UserRole
from SchoolManagementApp.domain.services import classroom_service


@pytest.fixture(autouse=True)
def _clear_throttle_cache():
    """Throttle history lives in the cache; start each test with a clean slate."""
    cache.clear()
    yield
    cache.clear()

@pytest.fixture
def teacher():
    u = baker.make("users.User", email="teacher@example.com", role=UserRole.TEACHER, display_name="Tran Thi B")
    u.set_password("pass1234"); u.save()
    return u

@pytest.fixture
def make_student():
    def _make(name: str):
        u = baker.make("users.User", role=UserRole.STUDENT, display_name=name)
        u.set_password("pass1234"); u.save()
        return u
    return _make

@pytest.fixture
def classroom(teacher):
    return classroom_service.create_classroom(teacher, "Class 10A")

@pytest.fixture
def student(make_student, classroom, teacher):
    s = make_student("Nguyen Van A")
    classroom_service.add_student(teacher, classroom, s)
    return s

@pytest.fixture
def assignment(teacher, classroom):
    return classroom_service.create_assignment(
        teacher, classroom, "Essay Draft 1", AssignmentCategory.WRITING
    )

@pytest.fixture
def report():
    """Factory for completion report payloads (defaults: Scenario A)."""
    def _make(**overrides):
        payload = {
            "student_name_attempt": "Nguyen Van A",
            "class_name_attempt": "Class 10A",
            "assignment_title_attempt": "Essay Draft 1",
            "score": 80,
            "completion_status": "completed",
            "time_spent_seconds": 600,
        }
        payload.update(overrides)
        return payload
    return _make
