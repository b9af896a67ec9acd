import asyncio
from datetime import date

import cache
from api_client import ApiError
from schemas import (
    GroupWriteIn,
    MessageOut,
    PasswordResetIn,
    PaymentListItem,
    PaymentPeriodIn,
    StudentCreateOut,
    StudentOut,
    TeacherCreateOut,
    TeacherOut,
    TeacherWriteIn,
)
from workflows.base import SubmitOutcome, Workflow
from workflows.payments import (
    BADGE_ACTIVE,
    BADGE_EXPIRED,
    BADGE_EXPIRING,
    BADGE_UNKNOWN,
    PaymentsScreen,
    payment_badge,
)
from workflows.students import StudentsScreen, filter_students
from workflows.teachers import TeachersScreen
from fakes import FakeApi, build

PAYMENT = PaymentListItem(id=3, student_name="Kamola", start_date=date(2025, 1, 1), end_date=date(2025, 2, 1),
                          days_remaining=-5, status="expired")


# ---------------------------
# Students
# ---------------------------
def test_filter_students_by_status_and_text():
    students = [
        StudentOut(id=1, name="Dilnoza", phone="998911000042", status="NEW_STUDENT"),
        StudentOut(id=2, name="Sardor", phone="998911000011", status="ACTIVE"),
        StudentOut(id=3, name="Sara", phone="998911000012", status="ACTIVE", email="sara@example.com"),
    ]
    assert [s.id for s in filter_students(students, status="ACTIVE")] == [2, 3]
    assert [s.id for s in filter_students(students, query="SAR")] == [2, 3]
    assert [s.id for s in filter_students(students, query="example.com", status="ACTIVE")] == [3]


def test_create_student_keeps_dialog_open_with_password():
    api = FakeApi(create_student=StudentCreateOut(student=StudentOut(id=50, name="New"), password="s3cret"))
    dialog = build(StudentsScreen, api).create_dialog()
    dialog.set_field("name", " Ana Silva ")
    dialog.set_field("phone", "998901234567")

    assert asyncio.run(dialog.submit()) == SubmitOutcome.SUCCEEDED
    (body,), = api.called("create_student")
    assert body.name == "Ana Silva"
    assert body.email is None
    assert dialog.is_open is True
    assert dialog.created_password == "s3cret"
    assert not dialog.cache.is_fresh(cache.STUDENTS)

    dialog.close()
    assert dialog.created_password is None


def test_invalid_phone_blocks_student_create():
    api = FakeApi()
    dialog = build(StudentsScreen, api).create_dialog()
    dialog.set_field("name", "Ana")
    dialog.set_field("phone", "+99890123456")
    assert asyncio.run(dialog.submit()) == SubmitOutcome.INVALID
    assert dialog.form.visible_errors["phone"] == "Phone number must be exactly 12 digits"
    assert api.calls == []


def test_student_form_bounds_match_request_body():
    api = FakeApi()
    dialog = build(StudentsScreen, api).create_dialog()
    dialog.set_field("name", "A" * 121)
    dialog.set_field("phone", "998901234567")
    dialog.set_field("status", "ARCHIVED")

    assert asyncio.run(dialog.submit()) == SubmitOutcome.INVALID
    assert dialog.form.visible_errors == {
        "name": "Full name must be at most 120 characters",
        "status": "Invalid status",
    }
    assert api.calls == []


def test_edit_student_closes_dialog():
    student = StudentOut(id=11, name="Sardor", phone="998911000011", status="ACTIVE")
    api = FakeApi(update_student=MessageOut(message="ok"))
    dialog = build(StudentsScreen, api).edit_dialog(student)
    dialog.set_field("email", "sardor@example.com")

    assert asyncio.run(dialog.submit()) == SubmitOutcome.SUCCEEDED
    (student_id, body), = api.called("update_student")
    assert student_id == 11
    assert body.email == "sardor@example.com"
    assert body.status == "ACTIVE"
    assert dialog.is_open is False


# ---------------------------
# Teachers
# ---------------------------
def test_create_teacher_requires_role_and_reports_password():
    api = FakeApi(create_teacher=TeacherCreateOut(user_id=9, password="init-pass"))
    dialog = build(TeachersScreen, api).create_dialog()
    dialog.set_field("name", "Malika")
    dialog.set_field("email", "malika@example.com")
    dialog.set_field("phone", "998901112255")
    assert asyncio.run(dialog.submit()) == SubmitOutcome.INVALID

    dialog.set_field("teacher_type", "main")
    assert asyncio.run(dialog.submit()) == SubmitOutcome.SUCCEEDED
    assert api.called("create_teacher") == [(
        TeacherWriteIn(name="Malika", email="malika@example.com", phone="998901112255", teacher_type="main"),
    )]
    assert dialog.created_password == "init-pass"


def test_overlong_teacher_email_is_rejected():
    api = FakeApi()
    dialog = build(TeachersScreen, api).create_dialog()
    dialog.set_field("name", "Malika")
    dialog.set_field("email", "m" * 146 + "@x.io")
    dialog.set_field("phone", "998901112255")
    dialog.set_field("teacher_type", "main")

    assert asyncio.run(dialog.submit()) == SubmitOutcome.INVALID
    assert dialog.form.visible_errors == {"email": "Email must be at most 150 characters"}
    assert api.calls == []


def test_teacher_record_prefill_maps_position():
    teacher = TeacherOut(id=2, name="Bekzod", email="b@example.com", phone="998901112244", position="Assistant")
    dialog = build(TeachersScreen, FakeApi()).edit_dialog(teacher)
    assert dialog.form.get("teacher_type") == "assistant"


def test_password_reset_invalidates_nothing():
    api = FakeApi(update_teacher=MessageOut(), reset_teacher_password=MessageOut(message="ok"),
                  list_teachers=[TeacherOut(id=2, name="Bekzod")])
    screen = build(TeachersScreen, api)
    reset = screen.password_reset(2)

    async def run():
        await screen.load()
        reset.form.set("new_password", "abc")
        short = await reset.submit()
        reset.form.set("new_password", "abcdef")
        return short, await reset.submit()

    short, outcome = asyncio.run(run())
    assert short == SubmitOutcome.INVALID
    assert outcome == SubmitOutcome.SUCCEEDED
    assert api.called("reset_teacher_password") == [(2, PasswordResetIn(new_password="abcdef"))]
    assert screen.cache.is_fresh(cache.TEACHERS)
    assert reset.form.get("new_password") == ""


# ---------------------------
# Payments
# ---------------------------
def test_payment_badges():
    def item(days, status="active"):
        return PaymentListItem(id=1, days_remaining=days, status=status)

    assert payment_badge(item(-1)) == BADGE_EXPIRED
    assert payment_badge(item(30, "blocked")) == BADGE_EXPIRED
    assert payment_badge(item(0)) == BADGE_EXPIRING
    assert payment_badge(item(7)) == BADGE_EXPIRING
    assert payment_badge(item(8)) == BADGE_ACTIVE
    assert payment_badge(item(None)) == BADGE_UNKNOWN


def test_payment_period_prefill_and_update():
    api = FakeApi(update_payment_period=MessageOut(message="ok"))
    screen = build(PaymentsScreen, api)
    workflow = screen.edit_period(PAYMENT)
    assert workflow.form.get("start_date") == "2025-01-01"

    workflow.set_dates(end_date="2025-03-01")
    assert asyncio.run(workflow.submit()) == SubmitOutcome.SUCCEEDED
    assert api.called("update_payment_period") == [
        (3, PaymentPeriodIn(start_date=date(2025, 1, 1), end_date=date(2025, 3, 1)))
    ]
    assert not screen.cache.is_fresh(cache.PAYMENTS)
    assert not screen.cache.is_fresh(cache.PAYMENT_STATS)
    assert workflow.is_open is False


def test_payment_period_end_before_start_is_rejected():
    api = FakeApi()
    workflow = build(PaymentsScreen, api).edit_period(PAYMENT)
    workflow.set_dates(start_date="2025-03-01", end_date="2025-02-01")
    assert asyncio.run(workflow.submit()) == SubmitOutcome.INVALID
    assert workflow.form.visible_errors == {"end_date": "End date cannot be before start date"}
    assert api.calls == []


def test_payment_period_failure_uses_server_message():
    api = FakeApi()
    api.errors["update_payment_period"] = ApiError("Request failed with status code 404", 404, {"message": "Payment not found"})
    workflow = build(PaymentsScreen, api).edit_period(PAYMENT)
    assert asyncio.run(workflow.submit()) == SubmitOutcome.FAILED
    assert workflow.notifier.last.message == "Payment not found"
    assert workflow.is_open is True


# ---------------------------
# Request bodies
# ---------------------------
def test_rejected_request_body_counts_as_invalid_input():
    workflow = build(Workflow, FakeApi())
    body, outcome = workflow._build(lambda: GroupWriteIn(name="", level="B1", main_teacher_id=1))
    assert body is None
    assert outcome == SubmitOutcome.INVALID
    assert set(workflow.body_errors) == {"name"}

    body, outcome = workflow._build(lambda: int("abc"))
    assert (body, outcome) == (None, SubmitOutcome.INVALID)
    assert "form" in workflow.body_errors

    body, outcome = workflow._build(lambda: GroupWriteIn(name="B1", level="B1", main_teacher_id=1))
    assert outcome is None
    assert body.main_teacher_id == 1
    assert workflow.body_errors == {}
