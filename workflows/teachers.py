import cache
from form_state import FormState
from mutations import Mutation
from schemas import PasswordResetIn, TeacherWriteIn
from validation_middleware import PASSWORD_RESET_SCHEMA, TEACHER_SCHEMA
from workflows.base import SubmitOutcome, Workflow

EMPTY_TEACHER_FORM = {"name": "", "email": "", "phone": "", "teacher_type": ""}


def teacher_form_from_record(teacher):
    position = (teacher.position or "").strip().lower()
    return {
        "name": teacher.name or "",
        "email": teacher.email or "",
        "phone": teacher.phone or "",
        "teacher_type": position if position in ("main", "assistant") else "",
    }


class TeachersScreen(Workflow):
    context = "teachers"

    async def load(self):
        teachers, _current = await self._read(cache.TEACHERS, self.api.list_teachers)
        return teachers

    def create_dialog(self):
        return self._child(TeacherDialog)

    def edit_dialog(self, teacher):
        return self._child(TeacherDialog, teacher=teacher)

    def password_reset(self, teacher_id):
        return self._child(PasswordResetWorkflow, teacher_id=teacher_id)


class TeacherDialog(Workflow):
    context = "teacher_dialog"

    def __init__(self, api, query_cache, coordinator=None, notifier=None, scope=None, teacher=None):
        super().__init__(api, query_cache, coordinator, notifier, scope)
        self.teacher = teacher
        initial = teacher_form_from_record(teacher) if teacher is not None else EMPTY_TEACHER_FORM
        self.form = FormState(TEACHER_SCHEMA, initial)
        self.created_password = None
        self.is_open = True

    def set_field(self, name, value):
        self.form.set(name, value)

    async def submit(self):
        if self.in_flight:
            return SubmitOutcome.REJECTED_BUSY
        if not self.form.is_valid:
            return self._invalid(self.form)

        values = self.form.values()
        body, invalid = self._build(lambda: TeacherWriteIn(
            name=values["name"].strip(),
            email=values["email"].strip(),
            phone=values["phone"],
            teacher_type=values["teacher_type"],
        ))
        if invalid:
            return invalid
        if self.teacher is not None:
            return await self._submit(
                Mutation.UPDATE_TEACHER,
                lambda: self.api.update_teacher(self.teacher.id, body),
                on_success=lambda _result: self.close(),
                success_message="Teacher updated",
                failure_message="Could not update the teacher",
            )
        return await self._submit(
            Mutation.CREATE_TEACHER,
            lambda: self.api.create_teacher(body),
            on_success=self._created,
            success_message="Teacher created",
            failure_message="Could not create the teacher",
        )

    def _created(self, result):
        self.created_password = result.password

    def close(self):
        self.scope.reset()
        self.is_open = False
        self.created_password = None


class PasswordResetWorkflow(Workflow):
    context = "teacher_password_reset"

    def __init__(self, api, query_cache, coordinator=None, notifier=None, scope=None, teacher_id=None):
        super().__init__(api, query_cache, coordinator, notifier, scope)
        self.teacher_id = teacher_id
        self.form = FormState(PASSWORD_RESET_SCHEMA, {"new_password": ""})

    async def submit(self):
        if self.in_flight:
            return SubmitOutcome.REJECTED_BUSY
        if not self.form.is_valid:
            return self._invalid(self.form)

        body, invalid = self._build(lambda: PasswordResetIn(new_password=self.form.get("new_password")))
        if invalid:
            return invalid
        return await self._submit(
            Mutation.RESET_TEACHER_PASSWORD,
            lambda: self.api.reset_teacher_password(self.teacher_id, body),
            on_success=lambda _result: self.form.reset({"new_password": ""}),
            success_message="Password updated",
            failure_message="Could not reset the password",
        )
