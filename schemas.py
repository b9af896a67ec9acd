from datetime import date, datetime
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

StudentStatus = Literal["NEW_STUDENT", "ACTIVE", "BLOCKED", "EXPIRED"]
TeacherType = Literal["main", "assistant"]

MAX_BATCH_STUDENTS = 100


class MessageOut(BaseModel):
    message: str = ""

    model_config = ConfigDict(extra="allow")


# ---------- Students ----------
class StudentOut(BaseModel):
    id: int
    name: Optional[str] = Field(default=None, validation_alias=AliasChoices("name", "full_name"))
    email: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = Field(default=None, validation_alias=AliasChoices("avatar_url", "avatar"))
    status: Optional[StudentStatus] = None
    attendance_rate: Optional[float] = None
    total_score: Optional[float] = None
    payment_expiry: Optional[date] = None
    group_id: Optional[int] = None
    group_name: Optional[str] = None
    teacher_name: Optional[str] = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class NewStudent(BaseModel):
    id: int
    full_name: str = Field(default="", validation_alias=AliasChoices("full_name", "name"))
    phone: str = ""
    email: Optional[str] = None
    status: Optional[str] = "NEW_STUDENT"
    created_at: Optional[datetime] = None
    avatar_url: Optional[str] = Field(default=None, validation_alias=AliasChoices("avatar_url", "avatar"))

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class NewStudentsOut(BaseModel):
    new_students: list[NewStudent] = Field(default_factory=list)
    students_without_group: list[NewStudent] = Field(default_factory=list)


class StudentWriteIn(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    phone: str = Field(pattern=r"^[0-9]{12}$")
    email: Optional[str] = None
    payment_expiry: Optional[date] = None
    avatar_url: Optional[str] = None
    status: Optional[StudentStatus] = None


class StudentCreateOut(BaseModel):
    message: str = ""
    student: StudentOut
    password: str


# ---------- Groups ----------
class TeacherRef(BaseModel):
    id: int
    name: str = ""
    avatar: Optional[str] = None


class GroupListItem(BaseModel):
    id: int
    name: str
    level: str = ""
    main_teacher: Optional[str] = None
    assistant_teacher: Optional[str] = None
    student_count: int = 0

    model_config = ConfigDict(extra="ignore")


class GroupStudent(BaseModel):
    id: int
    name: str = Field(default="", validation_alias=AliasChoices("name", "full_name"))
    avatar: Optional[str] = None
    phone: str = ""
    status: Optional[str] = None
    attendance_rate: Optional[float] = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class GroupDetail(BaseModel):
    id: int
    name: str
    level: Optional[str] = None
    main_teacher: Optional[TeacherRef] = None
    assistant_teacher: Optional[TeacherRef] = None
    students: list[GroupStudent] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class GroupWriteIn(BaseModel):
    name: str = Field(min_length=1, max_length=80)
    level: str = Field(min_length=1)
    main_teacher_id: int
    assistant_teacher_id: Optional[int] = None


class LevelOption(BaseModel):
    id: int
    name: str
    description: Optional[str] = None


class TeacherOption(BaseModel):
    id: int
    full_name: str


class TeacherOptionsOut(BaseModel):
    teachers: list[TeacherOption] = Field(default_factory=list)
    assistants: list[TeacherOption] = Field(default_factory=list)


# ---------- Lifecycle ----------
class ActivationIn(BaseModel):
    student_id: int = Field(gt=0)
    group_id: int = Field(gt=0)
    level: str = Field(min_length=1)


class AddStudentsIn(BaseModel):
    group_id: int = Field(gt=0)
    student_ids: list[int] = Field(min_length=1, max_length=MAX_BATCH_STUDENTS)


class RemoveStudentIn(BaseModel):
    group_id: int = Field(gt=0)
    student_id: int = Field(gt=0)


# ---------- Teachers ----------
class TeacherOut(BaseModel):
    id: int
    name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    role: Optional[str] = None
    position: Optional[str] = None
    created_at: Optional[datetime] = None
    main_groups: Optional[str] = None
    assistant_groups: Optional[str] = None
    assigned_groups_count: int = 0

    model_config = ConfigDict(extra="ignore")


class TeacherWriteIn(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    email: str = Field(min_length=3, max_length=150)
    phone: str = Field(pattern=r"^[0-9]{12}$")
    teacher_type: TeacherType


class TeacherCreateOut(BaseModel):
    message: str = ""
    user_id: int
    password: str


class PasswordResetIn(BaseModel):
    new_password: str = Field(min_length=6, max_length=256)


# ---------- Payments ----------
class PaymentListItem(BaseModel):
    id: int
    student_name: str = ""
    group_name: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    days_remaining: Optional[int] = None
    status: str = ""


class PaymentStats(BaseModel):
    active_payments: int = 0
    expired_payments: int = 0
    expiring_soon: int = 0


class PaymentPeriodIn(BaseModel):
    start_date: date
    end_date: date


# ---------- Teacher side ----------
class TeacherGroup(BaseModel):
    id: int
    name: str
    level: str = ""
    max_students: Optional[int] = None
    teacher_role: Optional[str] = None
    student_count: int = 0


class TeacherGroupStudent(BaseModel):
    id: int
    full_name: str = Field(default="", validation_alias=AliasChoices("full_name", "name"))
    avatar: Optional[str] = None
    phone: str = ""
    attendance_rate: float = 0
    total_score: float = 0

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class AttendanceMark(BaseModel):
    student_id: int
    is_present: bool


class AttendanceIn(BaseModel):
    group_id: int = Field(gt=0)
    date: date
    attendance: list[AttendanceMark] = Field(min_length=1)


class AssignmentOut(BaseModel):
    id: int
    title: str
    group_name: Optional[str] = None
    due_date: Optional[date] = None
    submission_ratio: Optional[str] = None
    waiting_for_review: int = 0
    status: Optional[str] = None


class AssignmentIn(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    content: str = ""
    group_id: int = Field(gt=0)
    due_date: date


class SubmissionOut(BaseModel):
    id: int
    full_name: str = ""
    avatar_url: Optional[str] = None
    submitted_at: Optional[datetime] = None
    content: str = ""
    file_url: Optional[str] = None
    grade: Optional[float] = None
    teacher_feedback: Optional[str] = None


class GradeIn(BaseModel):
    grade: float = Field(ge=0, le=100)
    teacher_feedback: str = ""


class GradeSummary(BaseModel):
    id: int
    name: str
    avatar_url: Optional[str] = None
    last_assignment_score: float = 0
    attendance_score: float = 0
    average_assignment: float = 0


# ---------- Stats ----------
class AdminStats(BaseModel):
    total_students: int = 0
    student_growth_rate: float = 0
    active_groups: int = 0
    total_teachers: int = 0
    blocked_users: int = 0


class TeacherStats(BaseModel):
    groups_count: int = 0
    total_students: int = 0
    active_assignments: int = 0
    pending_reviews: int = 0


# ---------- Auth ----------
class LoginIn(BaseModel):
    phone: str = Field(pattern=r"^[0-9]{12}$")
    password: str = Field(min_length=6, max_length=256)


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in_minutes: int = 60
    role: str = ""
