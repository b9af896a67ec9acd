import asyncio
import logging

logger = logging.getLogger("lms_admin.cache")

FRESH = "fresh"
STALE = "stale"
FETCHING = "fetching"
EMPTY = "empty"

# A load that keeps getting invalidated while in flight gives up after this many tries
# and leaves the entry stale for the next reader.
_MAX_LOAD_ATTEMPTS = 3


# =====================================================
# QUERY KEYS
# =====================================================
STUDENTS = ("adminStudents",)
NEW_STUDENTS = ("newStudents",)
GROUPS = ("adminGroups",)
LEVELS = ("adminLevels",)
TEACHER_OPTIONS = ("adminTeachers",)
TEACHERS = ("adminTeachersList",)
PAYMENTS = ("adminPayments",)
PAYMENT_STATS = ("adminPaymentStats",)
ADMIN_STATS = ("adminStats",)
TEACHER_STATS = ("teacherStats",)
TEACHER_GROUPS = ("teacherGroups",)
ASSIGNMENTS = ("teacherAssignments",)


def group_detail(group_id):
    return ("adminGroupDetail", str(group_id))


def group_students(group_id):
    return ("teacherGroupStudents", str(group_id))


def group_grades(group_id):
    return ("teacherGroupGrades", str(group_id))


def group_assignments(group_id):
    return ("teacherAssignments", str(group_id))


def assignment_submissions(assignment_id):
    return ("teacherAssignmentSubmissions", str(assignment_id))


# =====================================================
# CACHE
# =====================================================
class CacheEntry:
    def __init__(self):
        self.data = None
        self.has_data = False
        self.stale = True
        self.generation = 0
        self.task = None

    @property
    def status(self):
        if self.task is not None and not self.task.done():
            return FETCHING
        if not self.has_data:
            return EMPTY
        return STALE if self.stale else FRESH


class QueryCache:
    """Short-lived read cache keyed by query identity, scoped to one mounted view."""

    def __init__(self):
        self._entries = {}

    def peek(self, key):
        return self._entries.get(tuple(key))

    def is_fresh(self, key):
        entry = self.peek(key)
        return entry is not None and entry.status == FRESH

    async def fetch(self, key, loader):
        key = tuple(key)
        entry = self._entries.setdefault(key, CacheEntry())
        if entry.has_data and not entry.stale:
            return entry.data
        if entry.task is None or entry.task.done():
            entry.task = asyncio.ensure_future(self._load(key, entry, loader))
        # Shielded so a reader that goes away does not cancel the shared request.
        return await asyncio.shield(entry.task)

    async def _load(self, key, entry, loader):
        data = None
        for _attempt in range(_MAX_LOAD_ATTEMPTS):
            generation = entry.generation
            data = await loader()
            entry.data = data
            entry.has_data = True
            if entry.generation == generation:
                entry.stale = False
                break
            logger.debug("Query %s invalidated while loading, refetching", key)
        return data

    def invalidate(self, key):
        key = tuple(key)
        entry = self._entries.setdefault(key, CacheEntry())
        entry.stale = True
        entry.generation += 1
        logger.debug("Invalidated query %s", key)

    def keys(self):
        return list(self._entries)

    def clear(self):
        self._entries.clear()
