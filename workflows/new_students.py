import logging
from enum import Enum

import cache
from mutations import Mutation
from schemas import ActivationIn
from validation_middleware import ACTIVATION_SCHEMA
from workflows.base import SubmitOutcome, Workflow

logger = logging.getLogger("lms_admin.workflows.new_students")

NEW_STUDENT = "NEW_STUDENT"


class ActivationState(str, Enum):
    IDLE = "idle"
    NEW = "new"
    ACTIVATING = "activating"
    ACTIVE = "active"


class NewStudentsScreen(Workflow):
    context = "new_students"

    def __init__(self, api, query_cache, coordinator=None, notifier=None, scope=None):
        super().__init__(api, query_cache, coordinator, notifier, scope)
        self.pool = None

    async def load(self):
        pool, current = await self._read(cache.NEW_STUDENTS, self.api.new_students)
        if current:
            self.pool = pool
        return pool

    @property
    def new_students(self):
        return list(self.pool.new_students) if self.pool else []

    @property
    def students_without_group(self):
        return list(self.pool.students_without_group) if self.pool else []

    def activation(self):
        return self._child(ActivationWorkflow)


class ActivationWorkflow(Workflow):
    """NEW -> ACTIVATING -> ACTIVE for one newly registered student.

    The level is never chosen directly: it is read from the selected group's
    record, so a group switch always carries its own level.
    """

    context = "activate_student"
    failure_message = "Could not activate the student. Please try again."

    def __init__(self, api, query_cache, coordinator=None, notifier=None, scope=None):
        super().__init__(api, query_cache, coordinator, notifier, scope)
        self.state = ActivationState.IDLE
        self.student = None
        self.group_id = ""
        self.groups = []
        self.group_touched = False
        self.is_open = False
        self.activated = None

    async def load_groups(self):
        groups, current = await self._read(cache.GROUPS, self.api.list_groups)
        if current:
            self.groups = list(groups)
        return groups

    def open(self, student):
        status = getattr(student, "status", None) or NEW_STUDENT
        if status != NEW_STUDENT:
            raise ValueError(f"Only new students can be activated (status={status})")
        self.scope.reset()
        self.student = student
        self.group_id = ""
        self.group_touched = False
        self.is_open = True
        self.state = ActivationState.NEW

    def select_group(self, group_id):
        self.group_touched = True
        self.group_id = "" if group_id is None else str(group_id)

    @property
    def selected_group(self):
        for group in self.groups:
            if str(group.id) == self.group_id:
                return group
        return None

    @property
    def level(self):
        group = self.selected_group
        return (group.level or "") if group else ""

    def values(self):
        return {
            "student_id": self.student.id if self.student is not None else 0,
            "group_id": self.group_id,
            "level": self.level,
        }

    @property
    def validation(self):
        return ACTIVATION_SCHEMA.validate(self.values())

    @property
    def group_error(self):
        return self.validation.error_for("group_id") if self.group_touched else ""

    @property
    def can_submit(self):
        return self.state == ActivationState.NEW and self.validation.ok and not self.in_flight

    async def submit(self):
        if self.in_flight or self.state == ActivationState.ACTIVATING:
            logger.info("Activation already in progress, ignoring resubmission")
            return SubmitOutcome.REJECTED_BUSY
        if self.state != ActivationState.NEW:
            return self._invalid(errors={"student_id": "No student selected"})

        result = self.validation
        if not result.ok:
            self.group_touched = True
            return self._invalid(errors=result.errors)

        group = self.selected_group
        body, invalid = self._build(
            lambda: ActivationIn(student_id=self.student.id, group_id=int(group.id), level=self.level)
        )
        if invalid:
            return invalid
        self.state = ActivationState.ACTIVATING
        outcome = await self._submit(
            Mutation.ACTIVATE_STUDENT,
            lambda: self.api.activate_student(body),
            on_success=lambda _result: self._finish(),
            success_message="Student activated",
        )
        if outcome == SubmitOutcome.FAILED:
            # Inputs stay as they were so the operator can retry.
            self.state = ActivationState.NEW
        return outcome

    def _finish(self):
        self.activated = self.student
        self.state = ActivationState.ACTIVE
        self.student = None
        self.group_id = ""
        self.group_touched = False
        self.is_open = False
        self.scope.reset()

    def close(self):
        self.scope.reset()
        self.is_open = False
        self.student = None
        self.group_id = ""
        self.group_touched = False
        self.state = ActivationState.IDLE
