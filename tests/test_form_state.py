from form_state import FormState, normalize_value
from validation_middleware import GROUP_SCHEMA, STUDENT_SCHEMA


def test_errors_hidden_until_touched():
    form = FormState(STUDENT_SCHEMA, {"name": "", "phone": ""})
    assert form.errors["name"] == "Full name is required"
    assert form.visible_errors == {}

    form.set("name", "   ")
    assert form.visible_errors == {"name": "Full name is required"}

    form.touch_all()
    assert set(form.visible_errors) == {"name", "phone"}


def test_cross_field_error_follows_either_field():
    form = FormState(GROUP_SCHEMA, {"name": "B1", "level": "B1", "main_teacher_id": "1", "assistant_teacher_id": "2"})
    assert form.is_valid

    form.set("main_teacher_id", "2")
    assert form.errors == {"assistant_teacher_id": "Assistant teacher must differ from main teacher"}

    form.set("assistant_teacher_id", "3")
    assert form.is_valid


def test_reset_restores_initial_values_and_clears_touched():
    form = FormState(STUDENT_SCHEMA, {"name": "Ana", "phone": "998901234567"})
    form.set("name", "Other")
    form.reset({"name": "Ana", "phone": "998901234567"})
    assert form.get("name") == "Ana"
    assert not any(state.touched for state in form.fields.values())


def test_dirty_check_ignores_whitespace_and_id_types():
    initial = {"name": "B1 Morning", "level": "B1", "main_teacher_id": 1, "assistant_teacher_id": None}
    form = FormState(GROUP_SCHEMA, initial)
    form.set("name", "  B1 Morning ")
    form.set("main_teacher_id", "1")
    assert not form.is_dirty(initial)

    form.set("level", "B2")
    assert form.is_dirty(initial)


def test_normalize_value():
    assert normalize_value(None) == ""
    assert normalize_value(" x ") == "x"
    assert normalize_value(7) == "7"
    assert normalize_value(True) is True
