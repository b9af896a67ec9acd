from datetime import date

import cache
from mutations import Mutation
from schemas import AttendanceIn, AttendanceMark
from validation_middleware import ValidationError, validate_iso_date, validate_positive_id
from workflows.base import SubmitOutcome, Workflow


class AttendanceSheet(Workflow):
    """Attendance marks for one group and date, kept in this session only.

    There is no endpoint to read saved attendance back, so the marks held here
    are the only record of what was sent during the session.
    """

    context = "attendance"
    failure_message = "Could not save attendance"

    def __init__(self, api, query_cache, coordinator=None, notifier=None, scope=None, today=None):
        super().__init__(api, query_cache, coordinator, notifier, scope)
        self.groups = []
        self.group_id = ""
        self.date = (today or date.today()).isoformat()
        self.students = []
        self.marks = {}
        self.saved = set()

    @property
    def key(self):
        return (self.group_id, self.date) if self.group_id else None

    async def load_groups(self):
        groups, current = await self._read(cache.TEACHER_GROUPS, self.api.teacher_groups)
        if current:
            self.groups = list(groups)
            if not self.group_id and self.groups:
                self.group_id = str(self.groups[0].id)
        return groups

    def select_group(self, group_id):
        self.group_id = "" if group_id is None else str(group_id)
        self.students = []

    def select_date(self, value):
        self.date = value
        self._ensure_defaults()

    async def load_students(self):
        if not self.group_id:
            return []
        group_id = self.group_id
        students, current = await self._read(
            cache.group_students(group_id), lambda: self.api.group_students(group_id)
        )
        if not current or group_id != self.group_id:
            return students
        self.students = list(students)
        self._ensure_defaults()
        return students

    def _ensure_defaults(self):
        key = self.key
        if key is None or not self.students or key in self.marks:
            return
        # Everyone starts present; the teacher marks absences.
        self.marks[key] = {s.id: True for s in self.students}

    @property
    def current_marks(self):
        return self.marks.get(self.key, {}) if self.key else {}

    def set_presence(self, student_id, present):
        if self.key is None:
            return
        self.marks.setdefault(self.key, {})[student_id] = bool(present)

    def mark_all(self, present):
        for student in self.students:
            self.set_presence(student.id, present)

    @property
    def present_count(self):
        return sum(1 for value in self.current_marks.values() if value is True)

    @property
    def absent_count(self):
        return sum(1 for value in self.current_marks.values() if value is False)

    @property
    def unmarked_count(self):
        return max(0, len(self.students) - self.present_count - self.absent_count)

    def payload(self):
        marks = self.current_marks
        return AttendanceIn(
            group_id=int(self.group_id),
            date=self.date,
            attendance=[
                AttendanceMark(student_id=s.id, is_present=marks.get(s.id, True) is True)
                for s in self.students
            ],
        )

    async def submit(self):
        if self.in_flight:
            return SubmitOutcome.REJECTED_BUSY
        errors = {}
        try:
            validate_positive_id(self.group_id, "Group")
        except ValidationError as exc:
            errors["group_id"] = str(exc)
        try:
            validate_iso_date(self.date)
        except ValidationError as exc:
            errors["date"] = str(exc)
        if not self.students:
            errors["attendance"] = "No students to mark"
        if errors:
            return self._invalid(errors=errors)

        key = self.key
        body, invalid = self._build(self.payload)
        if invalid:
            return invalid
        return await self._submit(
            Mutation.SAVE_ATTENDANCE,
            lambda: self.api.submit_attendance(body),
            on_success=lambda _result: self.saved.add(key),
            success_message="Attendance saved",
        )
