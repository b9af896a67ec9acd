import logging

import pytest

import admin_cli
import config
from api_client import ApiError
from schemas import (
    GroupListItem,
    MessageOut,
    NewStudent,
    NewStudentsOut,
    PaymentListItem,
    PaymentPeriodIn,
    RemoveStudentIn,
    TeacherGroupStudent,
)
from fakes import FakeApi


# ---------------------------
# Config
# ---------------------------
def test_dev_allows_plain_http():
    config.validate_client_settings(env="dev", base_url="http://127.0.0.1:8000")


@pytest.mark.parametrize("url", ["", "http://lms.example.com"])
def test_production_requires_https(url):
    with pytest.raises(RuntimeError):
        config.validate_client_settings(env="prod", base_url=url)


def test_production_https_is_accepted():
    config.validate_client_settings(env="cloud", base_url="https://lms.example.com")


def test_configure_logging_writes_to_file(tmp_path):
    root = logging.getLogger()
    saved = root.handlers[:]
    root.handlers = []
    try:
        target = tmp_path / "client.log"
        config.configure_logging(level="DEBUG", filename=str(target))
        logging.getLogger("lms_admin.test").info("hello")
        for handler in root.handlers:
            handler.flush()
        assert "| INFO | lms_admin.test | hello" in target.read_text(encoding="utf-8")
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers = saved


# ---------------------------
# CLI
# ---------------------------
def _api():
    return FakeApi(
        new_students=NewStudentsOut(new_students=[NewStudent(id=42, full_name="Dilnoza", phone="998911000042")]),
        list_groups=[GroupListItem(id=7, name="B1 Morning", level="B1")],
        activate_student=MessageOut(message="ok"),
        remove_student_from_group=MessageOut(message="ok"),
        list_payments=[PaymentListItem(id=3, student_name="Kamola")],
        update_payment_period=MessageOut(message="ok"),
        group_students=lambda group_id: [TeacherGroupStudent(id=1), TeacherGroupStudent(id=2)],
        submit_attendance=MessageOut(message="ok"),
    )


def test_activate_command(capsys):
    api = _api()
    assert admin_cli.main(["activate", "--student-id", "42", "--group-id", "7"], api=api) == admin_cli.EXIT_OK
    (body,), = api.called("activate_student")
    assert body.level == "B1"
    assert "Student activated" in capsys.readouterr().out


def test_activate_unknown_student_is_input_error():
    api = _api()
    assert admin_cli.main(["activate", "--student-id", "99", "--group-id", "7"], api=api) == admin_cli.EXIT_INPUT_ERROR
    assert api.called("activate_student") == []


def test_activate_unknown_group_is_input_error():
    api = _api()
    assert admin_cli.main(["activate", "--student-id", "42", "--group-id", "8"], api=api) == admin_cli.EXIT_INPUT_ERROR


def test_api_failure_exit_code(capsys):
    api = _api()
    api.errors["activate_student"] = ApiError("Request failed with status code 400", 400, {"message": "Group is full"})
    assert admin_cli.main(["activate", "--student-id", "42", "--group-id", "7"], api=api) == admin_cli.EXIT_API_ERROR
    assert "Group is full" in capsys.readouterr().out


def test_read_failure_exit_code(capsys):
    api = _api()
    api.errors["new_students"] = ApiError("Cannot reach API server: refused")
    assert admin_cli.main(["new-students"], api=api) == admin_cli.EXIT_API_ERROR
    assert "Cannot reach API server" in capsys.readouterr().out


def test_remove_asks_for_confirmation(monkeypatch):
    api = _api()
    monkeypatch.setattr("builtins.input", lambda _prompt: "n")
    assert admin_cli.main(["remove-from-group", "--group-id", "7", "--student-id", "11"], api=api) == admin_cli.EXIT_OK
    assert api.called("remove_student_from_group") == []

    assert admin_cli.main(["remove-from-group", "--group-id", "7", "--student-id", "11", "--yes"], api=api) == 0
    assert api.called("remove_student_from_group") == [(RemoveStudentIn(group_id=7, student_id=11),)]


def test_payment_period_command():
    api = _api()
    argv = ["payment-period", "--payment-id", "3", "--start", "2025-03-01", "--end", "2025-04-01"]
    assert admin_cli.main(argv, api=api) == admin_cli.EXIT_OK
    assert api.called("update_payment_period") == [(3, PaymentPeriodIn(start_date="2025-03-01", end_date="2025-04-01"))]

    bad = ["payment-period", "--payment-id", "3", "--start", "2025-04-01", "--end", "2025-03-01"]
    assert admin_cli.main(bad, api=api) == admin_cli.EXIT_INPUT_ERROR


def test_attendance_command(capsys):
    api = _api()
    argv = ["attendance", "--group-id", "7", "--date", "2025-03-10", "--absent", "2"]
    assert admin_cli.main(argv, api=api) == admin_cli.EXIT_OK
    (body,), = api.called("submit_attendance")
    assert [(m.student_id, m.is_present) for m in body.attendance] == [(1, True), (2, False)]
    assert "present=1 absent=1" in capsys.readouterr().out
