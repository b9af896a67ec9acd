import cache
from form_state import FormState
from mutations import Mutation
from schemas import AssignmentIn, GradeIn
from validation_middleware import ASSIGNMENT_SCHEMA, GRADE_SCHEMA
from workflows.base import SubmitOutcome, Workflow

EMPTY_ASSIGNMENT_FORM = {"title": "", "content": "", "group_id": "", "due_date": ""}


class AssignmentsScreen(Workflow):
    context = "assignments"

    async def load(self, group_id=None):
        if group_id is None:
            rows, _current = await self._read(cache.ASSIGNMENTS, self.api.list_assignments)
        else:
            rows, _current = await self._read(
                cache.group_assignments(group_id), lambda: self.api.list_assignments(group_id)
            )
        return rows

    def create_dialog(self, group_id=None):
        return self._child(AssignmentCreateWorkflow, group_id=group_id)

    def review(self, assignment_id):
        return self._child(SubmissionReview, assignment_id=assignment_id)


class AssignmentCreateWorkflow(Workflow):
    context = "assignment_create"

    def __init__(self, api, query_cache, coordinator=None, notifier=None, scope=None, group_id=None):
        super().__init__(api, query_cache, coordinator, notifier, scope)
        initial = dict(EMPTY_ASSIGNMENT_FORM)
        if group_id is not None:
            initial["group_id"] = str(group_id)
        self.form = FormState(ASSIGNMENT_SCHEMA, initial)
        self.is_open = True

    def set_field(self, name, value):
        self.form.set(name, value)

    async def submit(self):
        if self.in_flight:
            return SubmitOutcome.REJECTED_BUSY
        if not self.form.is_valid:
            return self._invalid(self.form)

        values = self.form.values()
        group_id = str(values["group_id"]).strip()
        body, invalid = self._build(lambda: AssignmentIn(
            title=values["title"].strip(),
            content=(values.get("content") or "").strip(),
            group_id=int(group_id),
            due_date=values["due_date"].strip(),
        ))
        if invalid:
            return invalid
        return await self._submit(
            Mutation.CREATE_ASSIGNMENT,
            lambda: self.api.create_assignment(body),
            context={"group_id": group_id},
            on_success=lambda _result: self.close(),
            success_message="Assignment created",
            failure_message="Could not create the assignment",
        )

    def close(self):
        self.scope.reset()
        self.is_open = False
        self.form.reset(EMPTY_ASSIGNMENT_FORM)


class SubmissionReview(Workflow):
    """Pending grades and feedback per submission, held until saved one by one."""

    context = "submission_review"

    def __init__(self, api, query_cache, coordinator=None, notifier=None, scope=None, assignment_id=None):
        super().__init__(api, query_cache, coordinator, notifier, scope)
        self.assignment_id = str(assignment_id)
        self.submissions = []
        self.pending_grades = {}
        self.feedback = {}

    async def load(self):
        rows, current = await self._read(
            cache.assignment_submissions(self.assignment_id),
            lambda: self.api.assignment_submissions(self.assignment_id),
        )
        if current:
            self.submissions = list(rows)
        return rows

    def set_grade(self, submission_id, grade):
        self.pending_grades[submission_id] = grade

    def set_feedback(self, submission_id, text):
        self.feedback[submission_id] = text

    def grade_for(self, submission_id):
        if submission_id in self.pending_grades:
            return self.pending_grades[submission_id]
        for submission in self.submissions:
            if submission.id == submission_id:
                return submission.grade
        return None

    async def save(self, submission_id):
        if self.in_flight:
            return SubmitOutcome.REJECTED_BUSY
        grade = self.grade_for(submission_id)
        result = GRADE_SCHEMA.validate({"grade": grade})
        if not result.ok:
            return self._invalid(errors=result.errors)

        body, invalid = self._build(
            lambda: GradeIn(grade=float(grade), teacher_feedback=self.feedback.get(submission_id, ""))
        )
        if invalid:
            return invalid
        return await self._submit(
            Mutation.GRADE_SUBMISSION,
            lambda: self.api.grade_submission(submission_id, body),
            context={"assignment_id": self.assignment_id},
            on_success=lambda _result: self.pending_grades.pop(submission_id, None),
            success_message="Grade saved",
            failure_message="Could not save the grade",
        )
