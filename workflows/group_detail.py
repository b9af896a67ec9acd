import logging

import cache
from form_state import FormState
from mutations import Mutation
from schemas import MAX_BATCH_STUDENTS, AddStudentsIn, RemoveStudentIn
from validation_middleware import GROUP_DETAIL_SCHEMA
from workflows.base import SubmitOutcome, Workflow
from workflows.groups import EMPTY_GROUP_FORM, group_form_from_detail, group_payload, normalized_group_form

logger = logging.getLogger("lms_admin.workflows.group_detail")

REMOVE_CONFIRM_TEXT = "Remove this student from the group?"
SELECT_AT_LEAST_ONE = "Select at least one student"
MAX_STUDENTS_ERROR = f"You can add at most {MAX_BATCH_STUDENTS} students at once"
INVALID_GROUP_ID = "Invalid group"


def _positive_int(value):
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


class GroupDetailScreen(Workflow):
    context = "group_detail"

    def __init__(self, api, query_cache, coordinator=None, notifier=None, scope=None, group_id=None):
        super().__init__(api, query_cache, coordinator, notifier, scope)
        self.group_id = str(group_id)
        self.group = None

    async def load(self):
        detail, current = await self._read(
            cache.group_detail(self.group_id), lambda: self.api.get_group(self.group_id)
        )
        if current:
            self.group = detail
        return detail

    async def remove_student(self, student_id, confirm):
        """Remove one student after the operator confirms; refreshes this group's detail only."""
        group_id = _positive_int(self.group_id)
        if group_id is None:
            return self._invalid(errors={"group_id": INVALID_GROUP_ID})
        student_number = _positive_int(student_id)
        if student_number is None:
            return self._invalid(errors={"student_id": "Invalid student"})
        if not confirm(REMOVE_CONFIRM_TEXT):
            logger.info("Removal of student %s from group %s not confirmed", student_id, self.group_id)
            return SubmitOutcome.CANCELLED

        body = RemoveStudentIn(group_id=group_id, student_id=student_number)
        return await self._submit(
            Mutation.REMOVE_STUDENT_FROM_GROUP,
            lambda: self.api.remove_student_from_group(body),
            context={"group_id": self.group_id},
            success_message="Student removed from the group",
            failure_message="Could not remove the student from the group",
        )

    def edit(self):
        return self._child(GroupEditWorkflow, group_id=self.group_id)

    def add_students(self):
        return self._child(AddStudentsWorkflow, group_id=self.group_id)


class GroupEditWorkflow(Workflow):
    context = "group_edit"

    def __init__(self, api, query_cache, coordinator=None, notifier=None, scope=None, group_id=None):
        super().__init__(api, query_cache, coordinator, notifier, scope)
        self.group_id = str(group_id)
        self.form = FormState(GROUP_DETAIL_SCHEMA, EMPTY_GROUP_FORM)
        self.initial = None
        self.is_open = False

    async def open(self):
        self.is_open = True
        ticket = self.scope.ticket()
        detail = await self.cache.fetch(
            cache.group_detail(self.group_id), lambda: self.api.get_group(self.group_id)
        )
        if not self.scope.is_current(ticket):
            return False
        values = group_form_from_detail(detail)
        self.form.reset(values)
        self.initial = dict(values)
        return True

    @property
    def is_loaded(self):
        return self.initial is not None

    @property
    def is_dirty(self):
        if self.initial is None:
            return False
        return normalized_group_form(self.form.values()) != normalized_group_form(self.initial)

    def set_field(self, name, value):
        self.form.set(name, value)

    async def submit(self):
        if self.in_flight:
            return SubmitOutcome.REJECTED_BUSY
        if not self.is_loaded:
            return self._invalid(errors={"form": "Group details are still loading"})
        if not self.form.is_valid:
            return self._invalid(self.form)
        if not self.is_dirty:
            self.notifier.info("No changes", "Nothing to update")
            return SubmitOutcome.UNCHANGED

        body, invalid = self._build(lambda: group_payload(self.form.values()))
        if invalid:
            return invalid
        return await self._submit(
            Mutation.UPDATE_GROUP,
            lambda: self.api.update_group(self.group_id, body),
            context={"group_id": self.group_id},
            on_success=lambda _result: self.close(),
            success_message="Group updated",
            failure_message="Could not update the group",
        )

    def close(self):
        self.scope.reset()
        self.is_open = False
        self.initial = None
        self.form.reset(EMPTY_GROUP_FORM)


class AddStudentsWorkflow(Workflow):
    context = "add_students"

    def __init__(self, api, query_cache, coordinator=None, notifier=None, scope=None, group_id=None):
        super().__init__(api, query_cache, coordinator, notifier, scope)
        self.group_id = str(group_id)
        self.pool = None
        self.search = ""
        self.selected = []
        self.selection_error = ""
        self.is_open = False

    async def open(self):
        self.is_open = True
        pool, current = await self._read(cache.NEW_STUDENTS, self.api.new_students)
        if current:
            self.pool = pool
        return current

    @property
    def available(self):
        if self.pool is None:
            return []
        seen = set()
        students = []
        for student in list(self.pool.new_students) + list(self.pool.students_without_group):
            if student.id not in seen:
                seen.add(student.id)
                students.append(student)
        return students

    @property
    def filtered(self):
        query = self.search.strip()
        if not query:
            return self.available
        lowered = query.lower()
        return [
            s for s in self.available
            if lowered in (s.full_name or "").lower() or query in (s.phone or "")
        ]

    def set_search(self, text):
        self.search = text or ""

    def toggle(self, student_id):
        self.selection_error = ""
        if student_id in self.selected:
            self.selected = [sid for sid in self.selected if sid != student_id]
        else:
            self.selected = self.selected + [student_id]

    def select_all_filtered(self):
        self.selection_error = ""
        merged = list(dict.fromkeys(self.selected + [s.id for s in self.filtered]))
        if len(merged) > MAX_BATCH_STUDENTS:
            self.selection_error = MAX_STUDENTS_ERROR
            return False
        self.selected = merged
        return True

    def clear_selection(self):
        self.selection_error = ""
        self.selected = []

    async def submit(self):
        if self.in_flight:
            return SubmitOutcome.REJECTED_BUSY
        group_id = _positive_int(self.group_id)
        if group_id is None:
            self.selection_error = INVALID_GROUP_ID
            return self._invalid(errors={"group_id": INVALID_GROUP_ID})
        unique_ids = list(dict.fromkeys(self.selected))
        if not unique_ids:
            self.selection_error = SELECT_AT_LEAST_ONE
            return self._invalid(errors={"student_ids": SELECT_AT_LEAST_ONE})
        if len(unique_ids) > MAX_BATCH_STUDENTS:
            self.selection_error = MAX_STUDENTS_ERROR
            return self._invalid(errors={"student_ids": MAX_STUDENTS_ERROR})

        body, invalid = self._build(lambda: AddStudentsIn(group_id=group_id, student_ids=unique_ids))
        if invalid:
            return invalid
        return await self._submit(
            Mutation.ADD_STUDENTS_TO_GROUP,
            lambda: self.api.add_students_to_group(body),
            context={"group_id": self.group_id},
            on_success=lambda _result: self.close(force=True),
            success_message="Students added to the group",
            failure_message="Could not add students to the group",
        )

    def close(self, force=False):
        if self.in_flight and not force:
            return False
        self.scope.reset()
        self.is_open = False
        self.selection_error = ""
        self.selected = []
        self.search = ""
        return True
