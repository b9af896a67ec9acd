from dataclasses import dataclass, field
from datetime import date
import re


PHONE_PATTERN = re.compile(r"[0-9]{12}")
EMAIL_PATTERN = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")
ISO_DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")

ASSISTANT_MUST_DIFFER = "Assistant teacher must differ from main teacher"

# Explicit "no assistant teacher" choice. An empty string means nothing chosen yet.
NO_ASSISTANT = "none"

STUDENT_STATUSES = ("NEW_STUDENT", "ACTIVE", "BLOCKED", "EXPIRED")


class ValidationError(Exception):
    """Controlled validation error (business rules)"""
    pass


# =====================================================
# RAISING HELPERS
# =====================================================
def is_blank(value):
    return value is None or str(value).strip() == ""


def validate_required(value, field_name):
    if is_blank(value):
        raise ValidationError(f"{field_name} is required")


def validate_email(email):
    validate_required(email, "Email")
    if not isinstance(email, str) or not EMAIL_PATTERN.fullmatch(email.strip()):
        raise ValidationError("Invalid email")


def validate_optional_email(email):
    if is_blank(email):
        return
    validate_email(email)


def validate_phone(phone):
    # Exactly twelve ASCII digits: no "+", spaces or dashes.
    if not isinstance(phone, str) or not PHONE_PATTERN.fullmatch(phone):
        raise ValidationError("Phone number must be exactly 12 digits")


def validate_iso_date(value, message="Invalid date"):
    if isinstance(value, date):
        return
    if not isinstance(value, str) or not ISO_DATE_PATTERN.fullmatch(value):
        raise ValidationError(message)
    try:
        date.fromisoformat(value)
    except ValueError:
        raise ValidationError(message)


def validate_positive_id(value, field_name):
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} is required")
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} is required")
    if number <= 0:
        raise ValidationError(f"{field_name} is required")


# =====================================================
# COMPOSABLE SCHEMAS
# =====================================================
@dataclass(frozen=True)
class Rule:
    check: object
    message: str = ""

    @classmethod
    def from_check(cls, func, *args):
        """Wrap a raising helper; its ValidationError text becomes the message."""

        def _check(value):
            func(value, *args)
            return True

        return cls(_check)

    def apply(self, value):
        try:
            ok = self.check(value)
        except ValidationError as exc:
            return str(exc) or self.message
        except (TypeError, ValueError, AttributeError):
            return self.message or "Invalid value"
        return None if ok else self.message


@dataclass(frozen=True)
class FieldSpec:
    name: str
    rules: tuple = ()
    optional: bool = False
    strip: bool = True

    def prepare(self, value):
        if self.strip and isinstance(value, str):
            return value.strip()
        return value

    def first_error(self, value):
        value = self.prepare(value)
        if self.optional and is_blank(value):
            return None
        for rule in self.rules:
            message = rule.apply(value)
            if message:
                return message
        return None


@dataclass
class ValidationResult:
    errors: dict = field(default_factory=dict)

    @property
    def ok(self):
        return not self.errors

    def error_for(self, field_name):
        return self.errors.get(field_name, "")


class Schema:
    def __init__(self, fields, checks=()):
        self.fields = tuple(fields)
        self.checks = tuple(checks)

    @property
    def field_names(self):
        return [spec.name for spec in self.fields]

    def validate(self, data):
        if not isinstance(data, dict):
            return ValidationResult({spec.name: "Invalid value" for spec in self.fields})

        errors = {}
        for spec in self.fields:
            message = spec.first_error(data.get(spec.name))
            if message:
                errors[spec.name] = message

        for check in self.checks:
            try:
                found = check(data) or {}
            except (TypeError, ValueError, AttributeError):
                continue
            for name, message in found.items():
                errors.setdefault(name, message)
        return ValidationResult(errors)


def required(message):
    return Rule(lambda value: not is_blank(value), message)


def min_length(size, message):
    return Rule(lambda value: len(str(value).strip()) >= size, message)


def max_length(size, message):
    return Rule(lambda value: len(str(value).strip()) <= size, message)


def one_of(choices, message):
    return Rule(lambda value: value in choices, message)


def _assistant_differs(data):
    assistant = str(data.get("assistant_teacher_id") or "").strip()
    main = str(data.get("main_teacher_id") or "").strip()
    if assistant and assistant == main:
        return {"assistant_teacher_id": ASSISTANT_MUST_DIFFER}
    return {}


def _period_in_order(data):
    start = date.fromisoformat(str(data.get("start_date")).strip())
    end = date.fromisoformat(str(data.get("end_date")).strip())
    if end < start:
        return {"end_date": "End date cannot be before start date"}
    return {}


def _assistant_choice(value):
    if value == NO_ASSISTANT:
        return True
    try:
        validate_positive_id(value, "Assistant teacher")
    except ValidationError:
        return False
    return True


def _grade_in_range(value):
    number = float(value)
    return 0 <= number <= 100


# ---------- Form schemas ----------
STUDENT_SCHEMA = Schema([
    FieldSpec("name", (
        required("Full name is required"),
        max_length(120, "Full name must be at most 120 characters"),
    )),
    FieldSpec("phone", (Rule.from_check(validate_phone),), strip=False),
    FieldSpec("email", (Rule.from_check(validate_email),), optional=True),
    FieldSpec("payment_expiry", (Rule.from_check(validate_iso_date),), optional=True),
    FieldSpec("status", (one_of(STUDENT_STATUSES, "Invalid status"),), optional=True),
])

TEACHER_SCHEMA = Schema([
    FieldSpec("name", (
        required("Full name is required"),
        max_length(120, "Full name must be at most 120 characters"),
    )),
    FieldSpec("email", (
        Rule.from_check(validate_email),
        max_length(150, "Email must be at most 150 characters"),
    )),
    FieldSpec("phone", (Rule.from_check(validate_phone),), strip=False),
    FieldSpec("teacher_type", (one_of({"main", "assistant"}, "Role is required"),)),
])

GROUP_SCHEMA = Schema(
    [
        FieldSpec("name", (
            required("Group name is required"),
            max_length(80, "Group name must be at most 80 characters"),
        )),
        FieldSpec("level", (required("Level is required"),)),
        FieldSpec("main_teacher_id", (Rule.from_check(validate_positive_id, "Main teacher"),)),
        FieldSpec("assistant_teacher_id", (Rule(_assistant_choice, "Invalid assistant teacher"),), optional=True),
    ],
    checks=(_assistant_differs,),
)

GROUP_DETAIL_SCHEMA = Schema(
    [
        FieldSpec("name", (
            required("Group name is required"),
            min_length(2, "Group name must be at least 2 characters"),
            max_length(80, "Group name must be at most 80 characters"),
        )),
        FieldSpec("level", (required("Level is required"),)),
        FieldSpec("main_teacher_id", (Rule.from_check(validate_positive_id, "Main teacher"),)),
        FieldSpec("assistant_teacher_id", (Rule(_assistant_choice, "Invalid assistant teacher"),), optional=True),
    ],
    checks=(_assistant_differs,),
)

ACTIVATION_SCHEMA = Schema([
    FieldSpec("student_id", (Rule.from_check(validate_positive_id, "Student"),)),
    FieldSpec("group_id", (required("Group is required"),)),
    FieldSpec("level", (required("Level is required"),)),
])

LOGIN_SCHEMA = Schema([
    FieldSpec("phone", (Rule.from_check(validate_phone),), strip=False),
    FieldSpec("password", (
        min_length(6, "Password must be at least 6 characters"),
        max_length(256, "Password must be at most 256 characters"),
    ), strip=False),
])

PASSWORD_RESET_SCHEMA = Schema([
    FieldSpec("new_password", (
        min_length(6, "Password must be at least 6 characters"),
        max_length(256, "Password must be at most 256 characters"),
    ), strip=False),
])

ASSIGNMENT_SCHEMA = Schema([
    FieldSpec("title", (
        required("Title is required"),
        max_length(200, "Title must be at most 200 characters"),
    )),
    FieldSpec("group_id", (Rule.from_check(validate_positive_id, "Group"),)),
    FieldSpec("due_date", (
        required("Due date is required"),
        Rule.from_check(validate_iso_date),
    )),
])

GRADE_SCHEMA = Schema([
    FieldSpec("grade", (
        required("Grade is required"),
        Rule(_grade_in_range, "Grade must be between 0 and 100"),
    )),
])

PAYMENT_PERIOD_SCHEMA = Schema(
    [
        FieldSpec("start_date", (required("Start date is required"), Rule.from_check(validate_iso_date))),
        FieldSpec("end_date", (required("End date is required"), Rule.from_check(validate_iso_date))),
    ],
    checks=(_period_in_order,),
)
