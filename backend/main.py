import logging
from datetime import date
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend import store
from backend.config import API_TOKEN_MINUTES, validate_security_settings
from backend.security import create_access_token, verify_access_token, verify_password
from version import __version__
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

logger = logging.getLogger("lms_admin.backend")

app = FastAPI(title="LMS API (stub)", version=__version__)
auth_scheme = HTTPBearer(auto_error=True)

validate_security_settings()


# =====================================================
# ERRORS
# =====================================================
@app.exception_handler(StarletteHTTPException)
def http_error(_request: Request, exc: StarletteHTTPException):
    return JSONResponse({"message": str(exc.detail)}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(RequestValidationError)
def request_validation_error(_request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        {"message": f"{field}: {message}" if field else message},
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
    )


@app.exception_handler(store.NotFound)
def not_found(_request: Request, exc: store.NotFound):
    return JSONResponse({"message": str(exc)}, status_code=status.HTTP_404_NOT_FOUND)


@app.exception_handler(store.Conflict)
def conflict(_request: Request, exc: store.Conflict):
    return JSONResponse({"message": str(exc)}, status_code=status.HTTP_409_CONFLICT)


def _bad_request(message: str):
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


# =====================================================
# AUTH
# =====================================================
def _require_auth(credentials: HTTPAuthorizationCredentials = Depends(auth_scheme)) -> dict:
    claims = verify_access_token(credentials.credentials)
    user = store.current().user(claims["sub"])
    if not user or not user.get("active"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
    return user


def _require_admin(user: dict = Depends(_require_auth)) -> dict:
    if user["role"] != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return user


def _require_teacher(user: dict = Depends(_require_auth)) -> dict:
    if user["role"] not in ("admin", "teacher"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Teacher role required")
    return user


def _visible_groups(user: dict) -> list:
    groups = store.current().groups.values()
    if user["role"] == "admin":
        return list(groups)
    teacher_id = user.get("teacher_id")
    return [g for g in groups if teacher_id in (g["main_teacher_id"], g["assistant_teacher_id"])]


def _teacher_group(user: dict, group_id: int) -> dict:
    group = store.current().group(group_id)
    if group not in _visible_groups(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your group")
    return group


@app.get("/health")
def health():
    return {"status": "ok", "service": "lms-api-stub"}


@app.post("/auth/login", response_model=TokenOut)
def login(payload: LoginIn):
    user = store.current().user(payload.phone)
    if not user or not verify_password(payload.password, user["password_hash"]):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not user.get("active"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
    return TokenOut(
        access_token=create_access_token(subject=user["phone"], role=user["role"]),
        expires_in_minutes=API_TOKEN_MINUTES,
        role=user["role"],
    )


# =====================================================
# STUDENTS
# =====================================================
@app.get("/admin/students", response_model=list[StudentOut])
def list_students(_: dict = Depends(_require_admin)):
    db = store.current()
    return [db.student_row(s) for s in db.students.values()]


@app.post("/admin/students", response_model=StudentCreateOut, status_code=201)
def create_student(payload: StudentWriteIn, _: dict = Depends(_require_admin)):
    db = store.current()
    with db.lock:
        student, password = db.create_student(payload.model_dump())
    return {"message": "Student created", "student": db.student_row(student), "password": password}


@app.put("/admin/students/{student_id}")
def update_student(student_id: int, payload: StudentWriteIn, _: dict = Depends(_require_admin)):
    db = store.current()
    with db.lock:
        student = db.student(student_id)
        updates = payload.model_dump(exclude_none=True)
        student.update(updates)
    return {"message": "Student updated"}


@app.get("/admin/new-students", response_model=NewStudentsOut)
def new_students(_: dict = Depends(_require_admin)):
    students = store.current().students.values()
    return {
        "new_students": [s for s in students if s["status"] == "NEW_STUDENT"],
        "students_without_group": [
            s for s in students if s["status"] != "NEW_STUDENT" and s["group_id"] is None
        ],
    }


@app.post("/admin/activate-student")
def activate_student(payload: ActivationIn, _: dict = Depends(_require_admin)):
    db = store.current()
    with db.lock:
        student = db.student(payload.student_id)
        if student["status"] != "NEW_STUDENT":
            raise _bad_request("Student is not waiting for activation")
        group = db.group(payload.group_id)
        if group["level"] != payload.level:
            raise _bad_request("Level does not match the selected group")
        student["status"] = "ACTIVE"
        student["group_id"] = group["id"]
    logger.info("Activated student %s into group %s", payload.student_id, payload.group_id)
    return {"message": "Student activated"}


# =====================================================
# GROUPS
# =====================================================
def _check_group_payload(db, payload: GroupWriteIn) -> None:
    db.teacher(payload.main_teacher_id)
    if payload.assistant_teacher_id is not None:
        if payload.assistant_teacher_id == payload.main_teacher_id:
            raise _bad_request("Assistant teacher must differ from main teacher")
        db.teacher(payload.assistant_teacher_id)
    if payload.level not in db.level_names():
        raise _bad_request("Unknown level")


@app.get("/admin/groups", response_model=list[GroupListItem])
def list_groups(_: dict = Depends(_require_admin)):
    db = store.current()
    return [db.group_row(g) for g in db.groups.values()]


@app.get("/admin/groups/{group_id}", response_model=GroupDetail)
def get_group(group_id: int, _: dict = Depends(_require_admin)):
    db = store.current()
    return db.group_detail(db.group(group_id))


@app.post("/admin/groups", status_code=201)
def create_group(payload: GroupWriteIn, _: dict = Depends(_require_admin)):
    db = store.current()
    with db.lock:
        _check_group_payload(db, payload)
        group_id = db.next_id("groups")
        db.groups[group_id] = {"id": group_id, **payload.model_dump()}
    return {"message": "Group created", "id": group_id}


@app.put("/admin/groups/{group_id}")
def update_group(group_id: int, payload: GroupWriteIn, _: dict = Depends(_require_admin)):
    db = store.current()
    with db.lock:
        group = db.group(group_id)
        _check_group_payload(db, payload)
        group.update(payload.model_dump())
    return {"message": "Group updated"}


@app.post("/admin/groups/add-students")
def add_students_to_group(payload: AddStudentsIn, _: dict = Depends(_require_admin)):
    db = store.current()
    with db.lock:
        group = db.group(payload.group_id)
        students = [db.student(student_id) for student_id in dict.fromkeys(payload.student_ids)]
        for student in students:
            student["group_id"] = group["id"]
            if student["status"] == "NEW_STUDENT":
                student["status"] = "ACTIVE"
    return {"message": f"{len(students)} students added"}


@app.post("/admin/groups/remove-student")
def remove_student_from_group(payload: RemoveStudentIn, _: dict = Depends(_require_admin)):
    db = store.current()
    with db.lock:
        db.group(payload.group_id)
        student = db.student(payload.student_id)
        if student["group_id"] != payload.group_id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student is not in this group")
        student["group_id"] = None
    return {"message": "Student removed from the group"}


@app.get("/admin/levels", response_model=list[LevelOption])
def list_levels(_: dict = Depends(_require_admin)):
    return store.current().levels


@app.get("/admin/teacher-and-assistants", response_model=TeacherOptionsOut)
def teacher_options(_: dict = Depends(_require_admin)):
    teachers = store.current().teachers.values()

    def options(position):
        return [{"id": t["id"], "full_name": t["name"]} for t in teachers if t["position"] == position]

    return {"teachers": options("main"), "assistants": options("assistant")}


# =====================================================
# TEACHERS
# =====================================================
@app.get("/admin/teachers-list", response_model=list[TeacherOut])
def list_teachers(_: dict = Depends(_require_admin)):
    db = store.current()
    return [db.teacher_row(t) for t in db.teachers.values()]


@app.post("/admin/teachers", response_model=TeacherCreateOut, status_code=201)
def create_teacher(payload: TeacherWriteIn, _: dict = Depends(_require_admin)):
    db = store.current()
    with db.lock:
        teacher_id, password = db.create_teacher(payload.model_dump())
    return {"message": "Teacher created", "user_id": teacher_id, "password": password}


@app.put("/admin/teachers/{teacher_id}")
def update_teacher(teacher_id: int, payload: TeacherWriteIn, _: dict = Depends(_require_admin)):
    db = store.current()
    with db.lock:
        teacher = db.teacher(teacher_id)
        data = payload.model_dump()
        teacher.update({
            "name": data["name"],
            "email": data["email"],
            "phone": data["phone"],
            "position": data["teacher_type"],
        })
    return {"message": "Teacher updated"}


@app.patch("/admin/teachers/{teacher_id}/password")
def reset_teacher_password(teacher_id: int, payload: PasswordResetIn, _: dict = Depends(_require_admin)):
    db = store.current()
    with db.lock:
        db.set_teacher_password(teacher_id, payload.new_password)
    return {"message": "Password updated"}


# =====================================================
# PAYMENTS
# =====================================================
@app.get("/admin/payments", response_model=list[PaymentListItem])
def list_payments(_: dict = Depends(_require_admin)):
    db = store.current()
    return [db.payment_row(p) for p in db.payments.values()]


@app.get("/admin/payments/stats", response_model=PaymentStats)
def payment_stats(_: dict = Depends(_require_admin)):
    db = store.current()
    rows = [db.payment_row(p) for p in db.payments.values()]
    return {
        "active_payments": sum(1 for r in rows if r["status"] != "expired"),
        "expired_payments": sum(1 for r in rows if r["status"] == "expired"),
        "expiring_soon": sum(1 for r in rows if r["status"] == "expiring"),
    }


@app.put("/admin/payments/{payment_id}")
def update_payment_period(payment_id: int, payload: PaymentPeriodIn, _: dict = Depends(_require_admin)):
    if payload.end_date < payload.start_date:
        raise _bad_request("End date must be on or after start date")
    db = store.current()
    with db.lock:
        payment = db.payment(payment_id)
        payment["start_date"] = payload.start_date
        payment["end_date"] = payload.end_date
        student = db.students.get(payment["student_id"])
        if student is not None:
            student["payment_expiry"] = payload.end_date
    return {"message": "Payment period updated"}


# =====================================================
# STATS
# =====================================================
@app.get("/admin/stats", response_model=AdminStats)
def admin_stats(_: dict = Depends(_require_admin)):
    db = store.current()
    return {
        "total_students": len(db.students),
        "student_growth_rate": 0,
        "active_groups": len(db.groups),
        "total_teachers": len(db.teachers),
        "blocked_users": sum(1 for s in db.students.values() if s["status"] == "BLOCKED"),
    }


@app.get("/teacher/stats", response_model=TeacherStats)
def teacher_stats(user: dict = Depends(_require_teacher)):
    db = store.current()
    group_ids = {g["id"] for g in _visible_groups(user)}
    assignments = [a for a in db.assignments.values() if a["group_id"] in group_ids]
    assignment_ids = {a["id"] for a in assignments}
    return {
        "groups_count": len(group_ids),
        "total_students": sum(len(db.group_students(gid)) for gid in group_ids),
        "active_assignments": sum(1 for a in assignments if a["due_date"] >= date.today()),
        "pending_reviews": sum(
            1 for s in db.submissions.values() if s["assignment_id"] in assignment_ids and s["grade"] is None
        ),
    }


# =====================================================
# TEACHER SIDE
# =====================================================
@app.get("/teacher/groups", response_model=list[TeacherGroup])
def teacher_groups(user: dict = Depends(_require_teacher)):
    db = store.current()
    teacher_id = user.get("teacher_id")
    rows = []
    for group in _visible_groups(user):
        role = "main" if group["main_teacher_id"] == teacher_id else "assistant"
        rows.append({
            "id": group["id"],
            "name": group["name"],
            "level": group["level"],
            "max_students": None,
            "teacher_role": role if teacher_id is not None else None,
            "student_count": len(db.group_students(group["id"])),
        })
    return rows


@app.get("/teacher/groups/{group_id}/students", response_model=list[TeacherGroupStudent])
def group_students(group_id: int, user: dict = Depends(_require_teacher)):
    db = store.current()
    _teacher_group(user, group_id)
    return [
        {
            "id": s["id"],
            "full_name": s["name"],
            "avatar": s.get("avatar_url"),
            "phone": s["phone"],
            "attendance_rate": s.get("attendance_rate") or 0,
            "total_score": s.get("total_score") or 0,
        }
        for s in db.group_students(group_id)
    ]


@app.get("/teacher/groups/{group_id}/grades", response_model=list[GradeSummary])
def group_grades(group_id: int, user: dict = Depends(_require_teacher)):
    _teacher_group(user, group_id)
    return store.current().grade_rows(group_id)


@app.post("/teacher/attendance")
def submit_attendance(payload: AttendanceIn, user: dict = Depends(_require_teacher)):
    db = store.current()
    _teacher_group(user, payload.group_id)
    members = {s["id"] for s in db.group_students(payload.group_id)}
    unknown = [m.student_id for m in payload.attendance if m.student_id not in members]
    if unknown:
        raise _bad_request(f"Students not in group: {', '.join(str(sid) for sid in unknown)}")
    with db.lock:
        db.attendance = [
            row for row in db.attendance
            if not (row["group_id"] == payload.group_id and row["date"] == payload.date)
        ]
        for mark in payload.attendance:
            db.attendance.append({
                "group_id": payload.group_id,
                "date": payload.date,
                "student_id": mark.student_id,
                "is_present": mark.is_present,
            })
    return {"message": "Attendance saved", "count": len(payload.attendance)}


@app.get("/teacher/assignments", response_model=list[AssignmentOut])
def list_assignments(group_id: Optional[int] = Query(default=None), user: dict = Depends(_require_teacher)):
    db = store.current()
    group_ids = {g["id"] for g in _visible_groups(user)}
    rows = [a for a in db.assignments.values() if a["group_id"] in group_ids]
    if group_id is not None:
        rows = [a for a in rows if a["group_id"] == group_id]
    return [db.assignment_row(a) for a in rows]


@app.post("/teacher/assignments", status_code=201)
def create_assignment(payload: AssignmentIn, user: dict = Depends(_require_teacher)):
    db = store.current()
    _teacher_group(user, payload.group_id)
    with db.lock:
        assignment_id = db.next_id("assignments")
        db.assignments[assignment_id] = {"id": assignment_id, **payload.model_dump()}
    return {"message": "Assignment created", "id": assignment_id}


@app.get("/teacher/assignments/{assignment_id}/submissions", response_model=list[SubmissionOut])
def assignment_submissions(assignment_id: int, user: dict = Depends(_require_teacher)):
    db = store.current()
    assignment = db.assignment(assignment_id)
    _teacher_group(user, assignment["group_id"])
    rows = []
    for submission in db.submissions.values():
        if submission["assignment_id"] != assignment_id:
            continue
        student = db.students.get(submission["student_id"])
        rows.append({
            **submission,
            "full_name": student["name"] if student else "",
            "avatar_url": student.get("avatar_url") if student else None,
        })
    return rows


@app.put("/teacher/submissions/{submission_id}/grade")
def grade_submission(submission_id: int, payload: GradeIn, user: dict = Depends(_require_teacher)):
    db = store.current()
    submission = db.submission(submission_id)
    _teacher_group(user, db.assignment(submission["assignment_id"])["group_id"])
    with db.lock:
        submission["grade"] = payload.grade
        submission["teacher_feedback"] = payload.teacher_feedback
    return {"message": "Grade saved"}
