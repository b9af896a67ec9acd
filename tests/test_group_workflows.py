import asyncio

import cache
from schemas import (
    GroupDetail,
    GroupListItem,
    GroupStudent,
    GroupWriteIn,
    LevelOption,
    MessageOut,
    RemoveStudentIn,
    TeacherOption,
    TeacherOptionsOut,
    TeacherRef,
)
from workflows.base import SubmitOutcome
from workflows.group_detail import GroupDetailScreen
from workflows.groups import NO_ASSISTANT, GroupsScreen
from fakes import FakeApi, build, start

DETAIL = GroupDetail(
    id=7,
    name="B1 Morning",
    level="B1",
    main_teacher=TeacherRef(id=1, name="Aziza Karimova"),
    assistant_teacher=None,
    students=[GroupStudent(id=11, name="Sardor Aliyev"), GroupStudent(id=12, name="Nilufar Rashidova")],
)


def _api():
    return FakeApi(
        list_groups=[GroupListItem(id=7, name="B1 Morning", level="B1")],
        list_levels=[LevelOption(id=3, name="B1"), LevelOption(id=4, name="B2")],
        teacher_options=TeacherOptionsOut(
            teachers=[TeacherOption(id=1, full_name="Aziza Karimova"), TeacherOption(id=3, full_name="Malika Yusupova")],
            assistants=[TeacherOption(id=1, full_name="Aziza Karimova"), TeacherOption(id=2, full_name="Bekzod Tursunov")],
        ),
        get_group=DETAIL,
        create_group=MessageOut(message="Group created"),
        update_group=MessageOut(message="Group updated"),
        remove_student_from_group=MessageOut(message="removed"),
    )


def _fill(dialog, **values):
    for name, value in values.items():
        dialog.set_field(name, value)


# ---------------------------
# Create / edit dialog
# ---------------------------
def test_whitespace_name_is_rejected_without_request():
    api = _api()
    dialog = build(GroupsScreen, api).create_dialog()

    async def run():
        await dialog.open()
        _fill(dialog, name="  ", level="B1", main_teacher_id="1")
        dialog.select_assistant(None)
        return await dialog.submit()

    assert asyncio.run(run()) == SubmitOutcome.INVALID
    assert dialog.form.visible_errors == {"name": "Group name is required"}
    assert api.called("create_group") == []


def test_assistant_equal_to_main_is_rejected():
    api = _api()
    dialog = build(GroupsScreen, api).create_dialog()

    async def run():
        await dialog.open()
        _fill(dialog, name="B2 Evening", level="B2", main_teacher_id="1")
        dialog.select_assistant(1)
        return await dialog.submit()

    assert asyncio.run(run()) == SubmitOutcome.INVALID
    assert dialog.form.errors == {"assistant_teacher_id": "Assistant teacher must differ from main teacher"}
    assert api.called("create_group") == []


def test_form_rejects_values_the_request_body_cannot_hold():
    api = _api()
    dialog = build(GroupsScreen, api).create_dialog()

    async def run():
        await dialog.open()
        _fill(dialog, name="G" * 81, level="A1", main_teacher_id="abc", assistant_teacher_id="x")
        return await dialog.submit()

    assert asyncio.run(run()) == SubmitOutcome.INVALID
    assert dialog.form.visible_errors == {
        "name": "Group name must be at most 80 characters",
        "main_teacher_id": "Main teacher is required",
        "assistant_teacher_id": "Invalid assistant teacher",
    }
    assert api.called("create_group") == []


def test_assistant_choices_exclude_main_teacher():
    dialog = build(GroupsScreen, _api()).create_dialog()
    asyncio.run(dialog.open())
    dialog.set_field("main_teacher_id", "1")
    assert dialog.assistant_choices == [NO_ASSISTANT, "2"]


def test_create_sends_trimmed_payload_and_refreshes_list():
    api = _api()
    screen = build(GroupsScreen, api)
    dialog = screen.create_dialog()

    async def run():
        await screen.load()
        await dialog.open()
        _fill(dialog, name="  B2 Evening ", level="B2", main_teacher_id="3")
        dialog.select_assistant(None)
        return await dialog.submit()

    assert asyncio.run(run()) == SubmitOutcome.SUCCEEDED
    assert api.called("create_group") == [
        (GroupWriteIn(name="B2 Evening", level="B2", main_teacher_id=3, assistant_teacher_id=None),)
    ]
    assert not screen.cache.is_fresh(cache.GROUPS)
    assert dialog.is_open is False


def test_edit_prefills_explicit_no_assistant_and_refreshes_detail():
    api = _api()
    screen = build(GroupsScreen, api)
    dialog = screen.edit_dialog(7)

    async def run():
        assert await dialog.submit() == SubmitOutcome.INVALID
        await dialog.open()
        assert dialog.assistant_selection == NO_ASSISTANT
        assert dialog.form.get("name") == "B1 Morning"
        dialog.select_assistant(2)
        return await dialog.submit()

    assert asyncio.run(run()) == SubmitOutcome.SUCCEEDED
    assert api.called("update_group") == [
        (7, GroupWriteIn(name="B1 Morning", level="B1", main_teacher_id=1, assistant_teacher_id=2))
    ]
    assert not screen.cache.is_fresh(cache.group_detail(7))
    assert not screen.cache.is_fresh(cache.GROUPS)


def test_prefill_dropped_when_dialog_closes_first():
    api = _api()
    dialog = build(GroupsScreen, api).edit_dialog(7)

    async def run():
        api.gates["get_group"] = asyncio.Event()
        pending = await start(dialog.open())
        dialog.close()
        api.gates["get_group"].set()
        return await pending

    assert asyncio.run(run()) is False
    assert dialog.is_loaded is False
    assert dialog.form.get("name") == ""


# ---------------------------
# Group detail
# ---------------------------
def test_remove_requires_confirmation():
    api = _api()
    screen = build(GroupDetailScreen, api, group_id=7)
    prompts = []

    def decline(text):
        prompts.append(text)
        return False

    async def run():
        await screen.load()
        return await screen.remove_student(11, decline)

    assert asyncio.run(run()) == SubmitOutcome.CANCELLED
    assert prompts == ["Remove this student from the group?"]
    assert api.called("remove_student_from_group") == []
    assert screen.cache.is_fresh(cache.group_detail(7))


def test_remove_with_malformed_group_id_is_invalid():
    api = _api()
    screen = build(GroupDetailScreen, api, group_id="abc")
    prompts = []

    def confirm(text):
        prompts.append(text)
        return True

    assert asyncio.run(screen.remove_student(11, confirm)) == SubmitOutcome.INVALID
    assert prompts == []
    assert api.called("remove_student_from_group") == []


def test_confirmed_remove_refreshes_only_that_group():
    api = _api()
    screen = build(GroupDetailScreen, api, group_id=7)

    async def run():
        await screen.load()
        await screen.cache.fetch(cache.GROUPS, api.list_groups)
        return await screen.remove_student(11, lambda _text: True)

    assert asyncio.run(run()) == SubmitOutcome.SUCCEEDED
    assert api.called("remove_student_from_group") == [(RemoveStudentIn(group_id=7, student_id=11),)]
    assert not screen.cache.is_fresh(cache.group_detail(7))
    assert screen.cache.is_fresh(cache.GROUPS)


def test_detail_edit_without_changes_sends_nothing():
    api = _api()
    edit = build(GroupDetailScreen, api, group_id=7).edit()

    async def run():
        await edit.open()
        edit.set_field("name", "  B1 Morning  ")
        return await edit.submit()

    assert asyncio.run(run()) == SubmitOutcome.UNCHANGED
    assert api.called("update_group") == []
    assert edit.notifier.last.title == "No changes"


def test_detail_edit_name_length_and_update():
    api = _api()
    edit = build(GroupDetailScreen, api, group_id=7).edit()

    async def run():
        await edit.open()
        edit.set_field("name", "B")
        short = await edit.submit()
        edit.set_field("name", "B1 Morning Plus")
        return short, await edit.submit()

    short, outcome = asyncio.run(run())
    assert short == SubmitOutcome.INVALID
    assert outcome == SubmitOutcome.SUCCEEDED
    assert api.called("update_group") == [
        ("7", GroupWriteIn(name="B1 Morning Plus", level="B1", main_teacher_id=1, assistant_teacher_id=None))
    ]
    assert not edit.cache.is_fresh(cache.group_detail(7))
