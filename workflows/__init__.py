from . import assignments
from . import attendance
from . import base
from . import dashboard
from . import grades
from . import group_detail
from . import groups
from . import new_students
from . import payments
from . import students
from . import teachers

__all__ = [
    "assignments",
    "attendance",
    "base",
    "dashboard",
    "grades",
    "group_detail",
    "groups",
    "new_students",
    "payments",
    "students",
    "teachers",
]
