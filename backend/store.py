import secrets
import threading
from datetime import date, datetime, timedelta

from backend.config import API_ADMIN_PASSWORD, API_ADMIN_PHONE, API_TEACHER_PASSWORD, API_TEACHER_PHONE
from backend.security import hash_password

EXPIRING_SOON_DAYS = 7


class NotFound(Exception):
    pass


class Conflict(Exception):
    pass


def generate_password() -> str:
    return secrets.token_urlsafe(9)


class Store:
    """In-memory stand-in for the LMS database, seeded with a small school."""

    def __init__(self):
        self.lock = threading.Lock()
        self.users = {}
        self.students = {}
        self.teachers = {}
        self.groups = {}
        self.levels = []
        self.payments = {}
        self.assignments = {}
        self.submissions = {}
        self.attendance = []
        self._ids = {}

    def next_id(self, table: str) -> int:
        current = self._ids.get(table, 0) + 1
        self._ids[table] = current
        return current

    def _bump(self, table: str, value: int) -> None:
        self._ids[table] = max(self._ids.get(table, 0), value)

    # ---------- users ----------
    def add_user(self, phone: str, password: str, role: str, teacher_id=None) -> dict:
        user = {
            "phone": phone,
            "password_hash": hash_password(password),
            "role": role,
            "teacher_id": teacher_id,
            "active": True,
        }
        self.users[phone] = user
        return user

    def user(self, phone: str):
        return self.users.get(phone)

    # ---------- lookups ----------
    def student(self, student_id: int) -> dict:
        row = self.students.get(student_id)
        if row is None:
            raise NotFound("Student not found")
        return row

    def teacher(self, teacher_id: int) -> dict:
        row = self.teachers.get(teacher_id)
        if row is None:
            raise NotFound("Teacher not found")
        return row

    def group(self, group_id: int) -> dict:
        row = self.groups.get(group_id)
        if row is None:
            raise NotFound("Group not found")
        return row

    def payment(self, payment_id: int) -> dict:
        row = self.payments.get(payment_id)
        if row is None:
            raise NotFound("Payment not found")
        return row

    def assignment(self, assignment_id: int) -> dict:
        row = self.assignments.get(assignment_id)
        if row is None:
            raise NotFound("Assignment not found")
        return row

    def submission(self, submission_id: int) -> dict:
        row = self.submissions.get(submission_id)
        if row is None:
            raise NotFound("Submission not found")
        return row

    def level_names(self) -> set:
        return {level["name"] for level in self.levels}

    def teacher_name(self, teacher_id):
        row = self.teachers.get(teacher_id) if teacher_id is not None else None
        return row["name"] if row else None

    def group_students(self, group_id: int) -> list:
        return [s for s in self.students.values() if s["group_id"] == group_id]

    # ---------- rows ----------
    def student_row(self, student: dict) -> dict:
        group = self.groups.get(student["group_id"]) if student["group_id"] else None
        return {
            **student,
            "group_name": group["name"] if group else None,
            "teacher_name": self.teacher_name(group["main_teacher_id"]) if group else None,
        }

    def group_row(self, group: dict) -> dict:
        return {
            "id": group["id"],
            "name": group["name"],
            "level": group["level"],
            "main_teacher": self.teacher_name(group["main_teacher_id"]),
            "assistant_teacher": self.teacher_name(group["assistant_teacher_id"]),
            "student_count": len(self.group_students(group["id"])),
        }

    def group_detail(self, group: dict) -> dict:
        def ref(teacher_id):
            row = self.teachers.get(teacher_id) if teacher_id is not None else None
            return {"id": row["id"], "name": row["name"], "avatar": row.get("avatar_url")} if row else None

        return {
            "id": group["id"],
            "name": group["name"],
            "level": group["level"],
            "main_teacher": ref(group["main_teacher_id"]),
            "assistant_teacher": ref(group["assistant_teacher_id"]),
            "students": [
                {
                    "id": s["id"],
                    "name": s["name"],
                    "avatar": s.get("avatar_url"),
                    "phone": s["phone"],
                    "status": s["status"],
                    "attendance_rate": s.get("attendance_rate"),
                }
                for s in self.group_students(group["id"])
            ],
        }

    def teacher_row(self, teacher: dict) -> dict:
        main = [g["name"] for g in self.groups.values() if g["main_teacher_id"] == teacher["id"]]
        assistant = [g["name"] for g in self.groups.values() if g["assistant_teacher_id"] == teacher["id"]]
        return {
            **teacher,
            "role": "teacher",
            "main_groups": ", ".join(main) or None,
            "assistant_groups": ", ".join(assistant) or None,
            "assigned_groups_count": len(main) + len(assistant),
        }

    def payment_row(self, payment: dict, today=None) -> dict:
        today = today or date.today()
        student = self.students.get(payment["student_id"])
        group = self.groups.get(student["group_id"]) if student and student["group_id"] else None
        days = (payment["end_date"] - today).days
        if days < 0:
            status = "expired"
        elif days <= EXPIRING_SOON_DAYS:
            status = "expiring"
        else:
            status = "active"
        return {
            "id": payment["id"],
            "student_name": student["name"] if student else "",
            "group_name": group["name"] if group else None,
            "start_date": payment["start_date"],
            "end_date": payment["end_date"],
            "days_remaining": days,
            "status": status,
        }

    def assignment_row(self, assignment: dict) -> dict:
        group = self.groups.get(assignment["group_id"])
        submissions = [s for s in self.submissions.values() if s["assignment_id"] == assignment["id"]]
        total = len(self.group_students(assignment["group_id"]))
        waiting = sum(1 for s in submissions if s["grade"] is None)
        return {
            "id": assignment["id"],
            "title": assignment["title"],
            "group_name": group["name"] if group else None,
            "due_date": assignment["due_date"],
            "submission_ratio": f"{len(submissions)}/{total}",
            "waiting_for_review": waiting,
            "status": "active" if assignment["due_date"] >= date.today() else "closed",
        }

    def grade_rows(self, group_id: int) -> list:
        rows = []
        for student in self.group_students(group_id):
            grades = [
                s["grade"]
                for s in self.submissions.values()
                if s["student_id"] == student["id"] and s["grade"] is not None
            ]
            rows.append({
                "id": student["id"],
                "name": student["name"],
                "avatar_url": student.get("avatar_url"),
                "last_assignment_score": grades[-1] if grades else 0,
                "attendance_score": student.get("attendance_rate") or 0,
                "average_assignment": round(sum(grades) / len(grades), 2) if grades else 0,
            })
        return rows

    # ---------- writes ----------
    def create_student(self, data: dict):
        if any(s["phone"] == data["phone"] for s in self.students.values()):
            raise Conflict("Phone number already registered")
        student_id = self.next_id("students")
        password = generate_password()
        student = {
            "id": student_id,
            "name": data["name"],
            "phone": data["phone"],
            "email": data.get("email"),
            "avatar_url": data.get("avatar_url"),
            "status": data.get("status") or "NEW_STUDENT",
            "payment_expiry": data.get("payment_expiry"),
            "attendance_rate": None,
            "total_score": None,
            "group_id": None,
            "created_at": datetime.now(),
        }
        self.students[student_id] = student
        self.add_user(data["phone"], password, "student")
        return student, password

    def create_teacher(self, data: dict):
        if any(t["phone"] == data["phone"] for t in self.teachers.values()):
            raise Conflict("Phone number already registered")
        teacher_id = self.next_id("teachers")
        password = generate_password()
        self.teachers[teacher_id] = {
            "id": teacher_id,
            "name": data["name"],
            "email": data["email"],
            "phone": data["phone"],
            "avatar_url": None,
            "position": data["teacher_type"],
            "created_at": datetime.now(),
        }
        self.add_user(data["phone"], password, "teacher", teacher_id=teacher_id)
        return teacher_id, password

    def set_teacher_password(self, teacher_id: int, password: str) -> None:
        teacher = self.teacher(teacher_id)
        user = self.users.get(teacher["phone"])
        if user is None:
            user = self.add_user(teacher["phone"], password, "teacher", teacher_id=teacher_id)
        user["password_hash"] = hash_password(password)


def seeded_store(today=None) -> Store:
    today = today or date.today()
    store = Store()
    store.levels = [
        {"id": 1, "name": "A1", "description": "Beginner"},
        {"id": 2, "name": "A2", "description": "Elementary"},
        {"id": 3, "name": "B1", "description": "Intermediate"},
        {"id": 4, "name": "B2", "description": "Upper intermediate"},
    ]
    store.teachers = {
        1: {"id": 1, "name": "Aziza Karimova", "email": "aziza@example.com", "phone": "998901112233",
            "avatar_url": None, "position": "main", "created_at": datetime(2024, 9, 1)},
        2: {"id": 2, "name": "Bekzod Tursunov", "email": "bekzod@example.com", "phone": "998901112244",
            "avatar_url": None, "position": "assistant", "created_at": datetime(2024, 9, 1)},
        3: {"id": 3, "name": "Malika Yusupova", "email": "malika@example.com", "phone": "998901112255",
            "avatar_url": None, "position": "main", "created_at": datetime(2025, 1, 15)},
    }
    store._bump("teachers", 3)
    store.groups = {
        5: {"id": 5, "name": "A2 Evening", "level": "A2", "main_teacher_id": 3, "assistant_teacher_id": None},
        7: {"id": 7, "name": "B1 Morning", "level": "B1", "main_teacher_id": 1, "assistant_teacher_id": 2},
    }
    store._bump("groups", 7)

    def student(student_id, name, phone, status, group_id=None, rate=None):
        return {
            "id": student_id, "name": name, "phone": phone, "email": None, "avatar_url": None,
            "status": status, "payment_expiry": None, "attendance_rate": rate, "total_score": None,
            "group_id": group_id, "created_at": datetime(2025, 2, 1),
        }

    store.students = {
        11: student(11, "Sardor Aliyev", "998911000011", "ACTIVE", 7, 92.0),
        12: student(12, "Nilufar Rashidova", "998911000012", "ACTIVE", 7, 85.0),
        13: student(13, "Jasur Ergashev", "998911000013", "ACTIVE", 7, 70.0),
        14: student(14, "Kamola Nazarova", "998911000014", "ACTIVE", 5, 88.0),
        20: student(20, "Otabek Saidov", "998911000020", "ACTIVE"),
        42: student(42, "Dilnoza Hamidova", "998911000042", "NEW_STUDENT"),
        43: student(43, "Rustam Qodirov", "998911000043", "NEW_STUDENT"),
    }
    store._bump("students", 43)
    store.payments = {
        1: {"id": 1, "student_id": 11, "start_date": today - timedelta(days=20), "end_date": today + timedelta(days=10)},
        2: {"id": 2, "student_id": 12, "start_date": today - timedelta(days=28), "end_date": today + timedelta(days=2)},
        3: {"id": 3, "student_id": 14, "start_date": today - timedelta(days=40), "end_date": today - timedelta(days=5)},
    }
    store._bump("payments", 3)
    store.assignments = {
        1: {"id": 1, "title": "Essay: my city", "content": "", "group_id": 7, "due_date": today + timedelta(days=3)},
    }
    store._bump("assignments", 1)
    store.submissions = {
        1: {"id": 1, "assignment_id": 1, "student_id": 11, "content": "My city is Tashkent.",
            "file_url": None, "submitted_at": datetime(2025, 3, 1, 10, 0), "grade": 88.0, "teacher_feedback": "Good"},
        2: {"id": 2, "assignment_id": 1, "student_id": 12, "content": "I live in Samarkand.",
            "file_url": None, "submitted_at": datetime(2025, 3, 1, 11, 0), "grade": None, "teacher_feedback": None},
    }
    store._bump("submissions", 2)

    store.add_user(API_ADMIN_PHONE, API_ADMIN_PASSWORD, "admin")
    store.add_user(API_TEACHER_PHONE, API_TEACHER_PASSWORD, "teacher", teacher_id=1)
    return store


_STORE = None


def current() -> Store:
    global _STORE
    if _STORE is None:
        _STORE = seeded_store()
    return _STORE


def reset(today=None) -> Store:
    global _STORE
    _STORE = seeded_store(today)
    return _STORE
