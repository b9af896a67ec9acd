import cache
from form_state import FormState
from mutations import Mutation
from schemas import GroupWriteIn
from validation_middleware import GROUP_SCHEMA, NO_ASSISTANT
from workflows.base import SubmitOutcome, Workflow

EMPTY_GROUP_FORM = {
    "name": "",
    "level": "",
    "main_teacher_id": "",
    "assistant_teacher_id": "",
}


def normalize_assistant(value):
    if value is None or value == NO_ASSISTANT:
        return ""
    return str(value).strip()


def normalized_group_form(values):
    return {
        "name": str(values.get("name") or "").strip(),
        "level": str(values.get("level") or "").strip(),
        "main_teacher_id": str(values.get("main_teacher_id") or "").strip(),
        "assistant_teacher_id": normalize_assistant(values.get("assistant_teacher_id")),
    }


def group_form_from_detail(detail):
    return {
        "name": detail.name,
        "level": detail.level or "",
        "main_teacher_id": str(detail.main_teacher.id) if detail.main_teacher else "",
        "assistant_teacher_id": str(detail.assistant_teacher.id) if detail.assistant_teacher else NO_ASSISTANT,
    }


def group_payload(values):
    clean = normalized_group_form(values)
    assistant = clean["assistant_teacher_id"]
    return GroupWriteIn(
        name=clean["name"],
        level=clean["level"],
        main_teacher_id=int(clean["main_teacher_id"]),
        assistant_teacher_id=int(assistant) if assistant else None,
    )


class GroupsScreen(Workflow):
    context = "groups"

    async def load(self):
        groups, _current = await self._read(cache.GROUPS, self.api.list_groups)
        return groups

    def create_dialog(self):
        return self._child(GroupDialog)

    def edit_dialog(self, group_id):
        return self._child(GroupDialog, group_id=group_id)


class GroupDialog(Workflow):
    context = "group_dialog"

    def __init__(self, api, query_cache, coordinator=None, notifier=None, scope=None, group_id=None):
        super().__init__(api, query_cache, coordinator, notifier, scope)
        self.group_id = group_id
        self.form = FormState(GROUP_SCHEMA, EMPTY_GROUP_FORM)
        self.levels = []
        self.teachers = []
        self.assistants = []
        self.is_open = False
        self.is_loaded = group_id is None

    @property
    def is_edit(self):
        return self.group_id is not None

    async def open(self):
        self.is_open = True
        ticket = self.scope.ticket()
        levels = await self.cache.fetch(cache.LEVELS, self.api.list_levels)
        options = await self.cache.fetch(cache.TEACHER_OPTIONS, self.api.teacher_options)
        if not self.scope.is_current(ticket):
            return False
        self.levels = list(levels)
        self.teachers = list(options.teachers)
        self.assistants = list(options.assistants)

        if self.is_edit:
            # Prefill once the current detail arrives; until then submit is refused.
            detail = await self.cache.fetch(cache.group_detail(self.group_id), lambda: self.api.get_group(self.group_id))
            if not self.scope.is_current(ticket):
                return False
            self.form.reset(group_form_from_detail(detail))
            self.is_loaded = True
        return True

    def set_field(self, name, value):
        self.form.set(name, value)

    def select_assistant(self, teacher_id):
        self.form.set("assistant_teacher_id", NO_ASSISTANT if teacher_id is None else str(teacher_id))

    @property
    def assistant_selection(self):
        return self.form.get("assistant_teacher_id")

    @property
    def assistant_choices(self):
        main = str(self.form.get("main_teacher_id") or "")
        return [NO_ASSISTANT] + [str(t.id) for t in self.assistants if str(t.id) != main]

    @property
    def can_submit(self):
        return self.is_loaded and self.form.is_valid and not self.in_flight

    async def submit(self):
        if self.in_flight:
            return SubmitOutcome.REJECTED_BUSY
        if not self.is_loaded:
            return self._invalid(errors={"form": "Group details are still loading"})
        if not self.form.is_valid:
            return self._invalid(self.form)

        body, invalid = self._build(lambda: group_payload(self.form.values()))
        if invalid:
            return invalid
        if self.is_edit:
            return await self._submit(
                Mutation.UPDATE_GROUP,
                lambda: self.api.update_group(self.group_id, body),
                context={"group_id": self.group_id},
                on_success=lambda _result: self.close(),
                success_message="Group updated",
                failure_message="Could not update the group",
            )
        return await self._submit(
            Mutation.CREATE_GROUP,
            lambda: self.api.create_group(body),
            on_success=lambda _result: self.close(),
            success_message="Group created",
            failure_message="Could not create the group",
        )

    def close(self):
        self.scope.reset()
        self.is_open = False
        self.form.reset(EMPTY_GROUP_FORM)
        self.is_loaded = self.group_id is None
