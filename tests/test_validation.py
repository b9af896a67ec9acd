import pytest
from datetime import date

from pydantic import ValidationError as PydanticValidationError
from schemas import ActivationIn, AddStudentsIn, GradeIn, StudentWriteIn
from validation_middleware import (
    ACTIVATION_SCHEMA,
    ASSISTANT_MUST_DIFFER,
    GRADE_SCHEMA,
    GROUP_DETAIL_SCHEMA,
    GROUP_SCHEMA,
    LOGIN_SCHEMA,
    NO_ASSISTANT,
    PAYMENT_PERIOD_SCHEMA,
    STUDENT_SCHEMA,
    TEACHER_SCHEMA,
    ValidationError,
    validate_email,
    validate_iso_date,
    validate_optional_email,
    validate_phone,
    validate_positive_id,
    validate_required,
)

# ---------------------------
# Validation helper tests
# ---------------------------
def test_validate_required_ok():
    validate_required("John", "Name")

def test_validate_required_whitespace():
    with pytest.raises(ValidationError):
        validate_required("   ", "Name")

def test_validate_email_ok():
    validate_email("test@example.com")

def test_validate_email_invalid():
    with pytest.raises(ValidationError):
        validate_email("not-an-email")

def test_validate_optional_email_blank_is_fine():
    validate_optional_email("")
    validate_optional_email(None)

def test_validate_phone_exactly_twelve_digits():
    validate_phone("998901234567")

@pytest.mark.parametrize("phone", ["99890123456", "9989012345678", "+99890123456", "998 90123456", "99890123456a", "998901234567\n"])
def test_validate_phone_rejects(phone):
    with pytest.raises(ValidationError) as exc:
        validate_phone(phone)
    assert str(exc.value) == "Phone number must be exactly 12 digits"

def test_validate_iso_date():
    validate_iso_date("2025-03-01")
    validate_iso_date(date(2025, 3, 1))
    with pytest.raises(ValidationError):
        validate_iso_date("2025-02-30")
    with pytest.raises(ValidationError):
        validate_iso_date("01.03.2025")

def test_validate_positive_id():
    validate_positive_id("7", "Group")
    for value in ("", "0", "-3", "abc", None, True):
        with pytest.raises(ValidationError):
            validate_positive_id(value, "Group")


# ---------------------------
# Schema tests
# ---------------------------
def test_student_schema_valid():
    result = STUDENT_SCHEMA.validate({"name": "Ana Silva", "phone": "998901234567", "email": ""})
    assert result.ok

def test_student_schema_reports_each_field():
    result = STUDENT_SCHEMA.validate({"name": "  ", "phone": "12345", "email": "bad"})
    assert result.errors == {
        "name": "Full name is required",
        "phone": "Phone number must be exactly 12 digits",
        "email": "Invalid email",
    }

def test_schema_with_non_dict_never_raises():
    result = STUDENT_SCHEMA.validate(None)
    assert not result.ok
    assert set(result.errors) == set(STUDENT_SCHEMA.field_names)

def test_teacher_schema_requires_role():
    result = TEACHER_SCHEMA.validate({"name": "T", "email": "t@example.com", "phone": "998901234567", "teacher_type": ""})
    assert result.errors == {"teacher_type": "Role is required"}

def test_group_schema_assistant_must_differ():
    result = GROUP_SCHEMA.validate({
        "name": "B1 Morning",
        "level": "B1",
        "main_teacher_id": "3",
        "assistant_teacher_id": "3",
    })
    assert result.error_for("assistant_teacher_id") == ASSISTANT_MUST_DIFFER

def test_group_schema_whitespace_name_rejected():
    result = GROUP_SCHEMA.validate({"name": "   ", "level": "B1", "main_teacher_id": "3"})
    assert result.errors == {"name": "Group name is required"}

def test_group_schema_teacher_ids_must_be_positive_numbers():
    base = {"name": "B1 Morning", "level": "B1"}
    assert GROUP_SCHEMA.validate({**base, "main_teacher_id": "abc"}).errors == {"main_teacher_id": "Main teacher is required"}
    assert GROUP_SCHEMA.validate({**base, "main_teacher_id": "0"}).error_for("main_teacher_id")
    assert GROUP_SCHEMA.validate({**base, "main_teacher_id": "3", "assistant_teacher_id": NO_ASSISTANT}).ok
    assert GROUP_SCHEMA.validate({**base, "main_teacher_id": "3", "assistant_teacher_id": "-2"}).errors == {
        "assistant_teacher_id": "Invalid assistant teacher"
    }

def test_group_schema_name_upper_bound():
    base = {"level": "B1", "main_teacher_id": "1"}
    assert GROUP_SCHEMA.validate({**base, "name": "x" * 80}).ok
    assert GROUP_SCHEMA.validate({**base, "name": "x" * 81}).error_for("name")

def test_group_detail_schema_length_bounds():
    base = {"level": "B1", "main_teacher_id": "1"}
    assert GROUP_DETAIL_SCHEMA.validate({**base, "name": "A"}).error_for("name")
    assert GROUP_DETAIL_SCHEMA.validate({**base, "name": "x" * 81}).error_for("name")
    assert GROUP_DETAIL_SCHEMA.validate({**base, "name": "AB"}).ok

def test_activation_schema_requires_group_and_level():
    result = ACTIVATION_SCHEMA.validate({"student_id": 42, "group_id": "", "level": ""})
    assert result.errors == {"group_id": "Group is required", "level": "Level is required"}

def test_login_schema():
    assert LOGIN_SCHEMA.validate({"phone": "998901234567", "password": "secret1"}).ok
    assert LOGIN_SCHEMA.validate({"phone": "998901234567", "password": "short"}).error_for("password")

def test_grade_schema_range():
    assert GRADE_SCHEMA.validate({"grade": "88"}).ok
    assert GRADE_SCHEMA.validate({"grade": 101}).error_for("grade") == "Grade must be between 0 and 100"
    assert GRADE_SCHEMA.validate({"grade": "abc"}).error_for("grade") == "Grade must be between 0 and 100"
    assert GRADE_SCHEMA.validate({"grade": None}).error_for("grade") == "Grade is required"

def test_payment_period_end_not_before_start():
    result = PAYMENT_PERIOD_SCHEMA.validate({"start_date": "2025-03-10", "end_date": "2025-03-01"})
    assert result.error_for("end_date") == "End date cannot be before start date"
    assert PAYMENT_PERIOD_SCHEMA.validate({"start_date": "2025-03-01", "end_date": "2025-03-01"}).ok


# ---------------------------
# Request body models
# ---------------------------
def test_activation_body_rejects_non_positive_ids():
    with pytest.raises(PydanticValidationError):
        ActivationIn(student_id=0, group_id=7, level="B1")

def test_add_students_body_caps_batch():
    AddStudentsIn(group_id=7, student_ids=list(range(1, 101)))
    with pytest.raises(PydanticValidationError):
        AddStudentsIn(group_id=7, student_ids=list(range(1, 102)))
    with pytest.raises(PydanticValidationError):
        AddStudentsIn(group_id=7, student_ids=[])

def test_student_body_phone_pattern():
    with pytest.raises(PydanticValidationError):
        StudentWriteIn(name="Ana", phone="+99890123456")

def test_grade_body_bounds():
    with pytest.raises(PydanticValidationError):
        GradeIn(grade=-1)
