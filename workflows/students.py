import cache
from form_state import FormState
from mutations import Mutation
from schemas import StudentWriteIn
from validation_middleware import STUDENT_SCHEMA, is_blank
from workflows.base import SubmitOutcome, Workflow

STATUS_FILTERS = ("ALL", "NEW_STUDENT", "ACTIVE", "BLOCKED", "EXPIRED")

EMPTY_STUDENT_FORM = {
    "name": "",
    "phone": "",
    "email": "",
    "payment_expiry": "",
    "avatar_url": "",
    "status": "NEW_STUDENT",
}


def student_form_from_record(student):
    return {
        "name": student.name or "",
        "phone": student.phone or "",
        "email": student.email or "",
        "payment_expiry": student.payment_expiry.isoformat() if student.payment_expiry else "",
        "avatar_url": student.avatar_url or "",
        "status": student.status or "NEW_STUDENT",
    }


def student_payload(values):
    return StudentWriteIn(
        name=values["name"].strip(),
        phone=values["phone"],
        email=None if is_blank(values.get("email")) else values["email"].strip(),
        payment_expiry=None if is_blank(values.get("payment_expiry")) else values["payment_expiry"].strip(),
        avatar_url=None if is_blank(values.get("avatar_url")) else values["avatar_url"],
        status=values.get("status") or None,
    )


def filter_students(students, query="", status="ALL"):
    text = (query or "").strip().lower()
    rows = []
    for student in students:
        if status != "ALL" and student.status != status:
            continue
        if text:
            haystack = " ".join([student.name or "", student.phone or "", student.email or ""]).lower()
            if text not in haystack:
                continue
        rows.append(student)
    return rows


class StudentsScreen(Workflow):
    context = "students"

    def __init__(self, api, query_cache, coordinator=None, notifier=None, scope=None):
        super().__init__(api, query_cache, coordinator, notifier, scope)
        self.students = []
        self.query = ""
        self.status_filter = "ALL"

    async def load(self):
        students, current = await self._read(cache.STUDENTS, self.api.list_students)
        if current:
            self.students = list(students)
        return students

    @property
    def rows(self):
        return filter_students(self.students, self.query, self.status_filter)

    def create_dialog(self):
        return self._child(StudentDialog)

    def edit_dialog(self, student):
        return self._child(StudentDialog, student=student)


class StudentDialog(Workflow):
    context = "student_dialog"

    def __init__(self, api, query_cache, coordinator=None, notifier=None, scope=None, student=None):
        super().__init__(api, query_cache, coordinator, notifier, scope)
        self.student = student
        initial = student_form_from_record(student) if student is not None else EMPTY_STUDENT_FORM
        self.form = FormState(STUDENT_SCHEMA, initial)
        self.is_open = True
        self.created_password = None

    @property
    def is_edit(self):
        return self.student is not None

    def set_field(self, name, value):
        self.form.set(name, value)

    async def submit(self):
        if self.in_flight:
            return SubmitOutcome.REJECTED_BUSY
        if not self.form.is_valid:
            return self._invalid(self.form)

        body, invalid = self._build(lambda: student_payload(self.form.values()))
        if invalid:
            return invalid
        if self.is_edit:
            return await self._submit(
                Mutation.UPDATE_STUDENT,
                lambda: self.api.update_student(self.student.id, body),
                on_success=lambda _result: self.close(),
                success_message="Student updated",
                failure_message="Could not update the student",
            )
        # The dialog stays open after a create to show the generated password.
        return await self._submit(
            Mutation.CREATE_STUDENT,
            lambda: self.api.create_student(body),
            on_success=self._created,
            success_message="Student created",
            failure_message="Could not create the student",
        )

    def _created(self, result):
        self.created_password = result.password

    def close(self):
        self.scope.reset()
        self.is_open = False
        self.created_password = None
