import asyncio
import http.client
import json
import logging
import os
import urllib.error
import urllib.parse
import urllib.request

import keyring
from keyring.errors import KeyringError
from pydantic import TypeAdapter, ValidationError as PydanticValidationError

import config
from schemas import (
    ActivationIn,
    AddStudentsIn,
    AdminStats,
    AssignmentIn,
    AssignmentOut,
    AttendanceIn,
    GradeIn,
    GradeSummary,
    GroupDetail,
    GroupListItem,
    GroupWriteIn,
    LevelOption,
    LoginIn,
    MessageOut,
    NewStudentsOut,
    PasswordResetIn,
    PaymentListItem,
    PaymentPeriodIn,
    PaymentStats,
    RemoveStudentIn,
    StudentCreateOut,
    StudentOut,
    StudentWriteIn,
    SubmissionOut,
    TeacherCreateOut,
    TeacherGroup,
    TeacherGroupStudent,
    TeacherOptionsOut,
    TeacherOut,
    TeacherStats,
    TeacherWriteIn,
    TokenOut,
)

logger = logging.getLogger("lms_admin.api")

ALLOWED_METHODS = ("GET", "POST", "PUT", "PATCH")
_KEYRING_TOKEN_KEY = "__bearer_token__"


class ApiError(Exception):
    def __init__(self, transport_message, status=None, payload=None):
        super().__init__(transport_message)
        self.transport_message = transport_message
        self.status = status
        self.payload = payload

    def message(self, fallback=""):
        payload = self.payload if isinstance(self.payload, dict) else {}
        for key in ("message", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value
        return self.transport_message or fallback


def error_message(exc, fallback=""):
    if isinstance(exc, ApiError):
        return exc.message(fallback)
    return str(exc) or fallback


# =====================================================
# CREDENTIALS
# =====================================================
def _keyring_token():
    try:
        return keyring.get_password(config.API_KEYRING_SERVICE, _KEYRING_TOKEN_KEY)
    except KeyringError as exc:
        logger.warning("Keyring unavailable, continuing without stored token: %s", exc)
        return None


def default_token_provider():
    return os.getenv("API_TOKEN") or config.API_TOKEN or _keyring_token()


def remember_token(token):
    keyring.set_password(config.API_KEYRING_SERVICE, _KEYRING_TOKEN_KEY, token)


def clear_session_credentials():
    try:
        keyring.delete_password(config.API_KEYRING_SERVICE, _KEYRING_TOKEN_KEY)
    except KeyringError as exc:
        logger.warning("Could not clear stored token from keyring: %s", exc)


def is_api_configured(base_url=None):
    return bool((base_url if base_url is not None else config.API_BASE_URL).strip())


# =====================================================
# TRANSPORT
# =====================================================
def urllib_transport(method, url, headers, body, timeout):
    req = urllib.request.Request(url=url, data=body, headers=headers, method=method)
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            return resp.status, resp.read()
    except urllib.error.HTTPError as exc:
        return exc.code, exc.read()
    except urllib.error.URLError as exc:
        raise ApiError(f"Cannot reach API server: {exc.reason}") from exc
    except TimeoutError as exc:
        raise ApiError("API request timed out") from exc
    except (OSError, http.client.HTTPException) as exc:
        raise ApiError(f"Cannot reach API server: {exc}") from exc


def _decode(raw):
    text = raw.decode("utf-8", errors="replace") if raw else ""
    if not text:
        return {}
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return {"raw": text}


def _parse(schema, data):
    try:
        if isinstance(schema, TypeAdapter):
            return schema.validate_python(data)
        return schema.model_validate(data)
    except PydanticValidationError as exc:
        raise ApiError("Unexpected response from API") from exc


class ApiClient:
    def __init__(self, base_url=None, token_provider=default_token_provider, transport=urllib_transport, timeout=None):
        self.base_url = (base_url if base_url is not None else config.API_BASE_URL).rstrip("/")
        self.token_provider = token_provider
        self.transport = transport
        self.timeout = timeout if timeout is not None else config.API_TIMEOUT_SECONDS

    def _url(self, path, params=None):
        url = f"{self.base_url}{path}"
        if params:
            clean = {key: value for key, value in params.items() if value is not None}
            if clean:
                url = f"{url}?{urllib.parse.urlencode(clean)}"
        return url

    def _request(self, method, path, payload=None, params=None):
        method = method.upper()
        if method not in ALLOWED_METHODS:
            raise ValueError(f"Unsupported HTTP method: {method}")
        if not self.base_url:
            raise ApiError("API base_url is not configured (API_BASE_URL or app_settings.json api.base_url).")

        body = None
        headers = {"Accept": "application/json"}
        if payload is not None:
            body = json.dumps(payload, default=str).encode("utf-8")
            headers["Content-Type"] = "application/json"
        token = self.token_provider() if self.token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"

        status, raw = self.transport(method, self._url(path, params), headers, body, self.timeout)
        data = _decode(raw)
        if 200 <= status < 300:
            return data
        logger.debug("API %s %s -> %s", method, path, status)
        raise ApiError(f"Request failed with status code {status}", status=status, payload=data)

    async def request(self, method, path, payload=None, params=None):
        return await asyncio.to_thread(self._request, method, path, payload, params)

    async def get(self, path, params=None):
        return await self.request("GET", path, params=params)

    async def post(self, path, payload=None):
        return await self.request("POST", path, payload=payload)

    async def put(self, path, payload=None):
        return await self.request("PUT", path, payload=payload)

    async def patch(self, path, payload=None):
        return await self.request("PATCH", path, payload=payload)

    # ---------- Auth ----------
    async def login(self, body: LoginIn):
        data = await self.post("/auth/login", body.model_dump(mode="json"))
        token = _parse(TokenOut, data)
        if not token.access_token:
            raise ApiError("API login did not return access_token.")
        return token

    # ---------- Students ----------
    async def list_students(self):
        return _parse(_STUDENTS, await self.get("/admin/students"))

    async def create_student(self, body: StudentWriteIn):
        data = await self.post("/admin/students", body.model_dump(mode="json", exclude_none=True))
        return _parse(StudentCreateOut, data)

    async def update_student(self, student_id, body: StudentWriteIn):
        data = await self.put(f"/admin/students/{int(student_id)}", body.model_dump(mode="json", exclude_none=True))
        return _parse(MessageOut, data)

    async def new_students(self):
        return _parse(NewStudentsOut, await self.get("/admin/new-students"))

    async def activate_student(self, body: ActivationIn):
        return _parse(MessageOut, await self.post("/admin/activate-student", body.model_dump(mode="json")))

    # ---------- Groups ----------
    async def list_groups(self):
        return _parse(_GROUPS, await self.get("/admin/groups"))

    async def get_group(self, group_id):
        return _parse(GroupDetail, await self.get(f"/admin/groups/{int(group_id)}"))

    async def create_group(self, body: GroupWriteIn):
        return _parse(MessageOut, await self.post("/admin/groups", body.model_dump(mode="json")))

    async def update_group(self, group_id, body: GroupWriteIn):
        data = await self.put(f"/admin/groups/{int(group_id)}", body.model_dump(mode="json"))
        return _parse(MessageOut, data)

    async def add_students_to_group(self, body: AddStudentsIn):
        return _parse(MessageOut, await self.post("/admin/groups/add-students", body.model_dump(mode="json")))

    async def remove_student_from_group(self, body: RemoveStudentIn):
        data = await self.post("/admin/groups/remove-student", body.model_dump(mode="json"))
        return _parse(MessageOut, data)

    async def list_levels(self):
        return _parse(_LEVELS, await self.get("/admin/levels"))

    async def teacher_options(self):
        return _parse(TeacherOptionsOut, await self.get("/admin/teacher-and-assistants"))

    # ---------- Teachers ----------
    async def list_teachers(self):
        return _parse(_TEACHERS, await self.get("/admin/teachers-list"))

    async def create_teacher(self, body: TeacherWriteIn):
        return _parse(TeacherCreateOut, await self.post("/admin/teachers", body.model_dump(mode="json")))

    async def update_teacher(self, teacher_id, body: TeacherWriteIn):
        data = await self.put(f"/admin/teachers/{int(teacher_id)}", body.model_dump(mode="json"))
        return _parse(MessageOut, data)

    async def reset_teacher_password(self, teacher_id, body: PasswordResetIn):
        data = await self.patch(f"/admin/teachers/{int(teacher_id)}/password", body.model_dump(mode="json"))
        return _parse(MessageOut, data)

    # ---------- Payments ----------
    async def list_payments(self):
        return _parse(_PAYMENTS, await self.get("/admin/payments"))

    async def payment_stats(self):
        return _parse(PaymentStats, await self.get("/admin/payments/stats"))

    async def update_payment_period(self, payment_id, body: PaymentPeriodIn):
        data = await self.put(f"/admin/payments/{int(payment_id)}", body.model_dump(mode="json"))
        return _parse(MessageOut, data)

    # ---------- Stats ----------
    async def admin_stats(self):
        return _parse(AdminStats, await self.get("/admin/stats"))

    async def teacher_stats(self):
        return _parse(TeacherStats, await self.get("/teacher/stats"))

    # ---------- Teacher side ----------
    async def teacher_groups(self):
        return _parse(_TEACHER_GROUPS, await self.get("/teacher/groups"))

    async def group_students(self, group_id):
        return _parse(_GROUP_STUDENTS, await self.get(f"/teacher/groups/{int(group_id)}/students"))

    async def group_grades(self, group_id):
        return _parse(_GRADES, await self.get(f"/teacher/groups/{int(group_id)}/grades"))

    async def submit_attendance(self, body: AttendanceIn):
        return _parse(MessageOut, await self.post("/teacher/attendance", body.model_dump(mode="json")))

    async def list_assignments(self, group_id=None):
        params = {"group_id": int(group_id)} if group_id is not None else None
        return _parse(_ASSIGNMENTS, await self.get("/teacher/assignments", params=params))

    async def create_assignment(self, body: AssignmentIn):
        return _parse(MessageOut, await self.post("/teacher/assignments", body.model_dump(mode="json")))

    async def assignment_submissions(self, assignment_id):
        data = await self.get(f"/teacher/assignments/{int(assignment_id)}/submissions")
        return _parse(_SUBMISSIONS, data)

    async def grade_submission(self, submission_id, body: GradeIn):
        data = await self.put(f"/teacher/submissions/{int(submission_id)}/grade", body.model_dump(mode="json"))
        return _parse(MessageOut, data)


_STUDENTS = TypeAdapter(list[StudentOut])
_GROUPS = TypeAdapter(list[GroupListItem])
_LEVELS = TypeAdapter(list[LevelOption])
_TEACHERS = TypeAdapter(list[TeacherOut])
_PAYMENTS = TypeAdapter(list[PaymentListItem])
_TEACHER_GROUPS = TypeAdapter(list[TeacherGroup])
_GROUP_STUDENTS = TypeAdapter(list[TeacherGroupStudent])
_GRADES = TypeAdapter(list[GradeSummary])
_ASSIGNMENTS = TypeAdapter(list[AssignmentOut])
_SUBMISSIONS = TypeAdapter(list[SubmissionOut])
