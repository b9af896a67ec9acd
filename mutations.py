import logging
from enum import Enum

import cache

logger = logging.getLogger("lms_admin.mutations")


class Mutation(str, Enum):
    CREATE_STUDENT = "create_student"
    UPDATE_STUDENT = "update_student"
    CREATE_TEACHER = "create_teacher"
    UPDATE_TEACHER = "update_teacher"
    RESET_TEACHER_PASSWORD = "reset_teacher_password"
    CREATE_GROUP = "create_group"
    UPDATE_GROUP = "update_group"
    ADD_STUDENTS_TO_GROUP = "add_students_to_group"
    REMOVE_STUDENT_FROM_GROUP = "remove_student_from_group"
    ACTIVATE_STUDENT = "activate_student"
    UPDATE_PAYMENT_PERIOD = "update_payment_period"
    CREATE_ASSIGNMENT = "create_assignment"
    GRADE_SUBMISSION = "grade_submission"
    SAVE_ATTENDANCE = "save_attendance"


# Which cached collections each successful mutation makes stale.
# Plain tuples are fixed keys; callables build a key from the mutation context.
INVALIDATION_TABLE = {
    Mutation.CREATE_STUDENT: (cache.STUDENTS, cache.NEW_STUDENTS),
    Mutation.UPDATE_STUDENT: (cache.STUDENTS, cache.NEW_STUDENTS),
    Mutation.CREATE_TEACHER: (cache.TEACHERS,),
    Mutation.UPDATE_TEACHER: (cache.TEACHERS,),
    Mutation.RESET_TEACHER_PASSWORD: (),
    Mutation.CREATE_GROUP: (cache.GROUPS,),
    Mutation.UPDATE_GROUP: (cache.GROUPS, lambda ctx: cache.group_detail(ctx["group_id"])),
    Mutation.ADD_STUDENTS_TO_GROUP: (lambda ctx: cache.group_detail(ctx["group_id"]), cache.NEW_STUDENTS),
    Mutation.REMOVE_STUDENT_FROM_GROUP: (lambda ctx: cache.group_detail(ctx["group_id"]),),
    Mutation.ACTIVATE_STUDENT: (cache.NEW_STUDENTS, cache.STUDENTS, cache.GROUPS),
    Mutation.UPDATE_PAYMENT_PERIOD: (cache.PAYMENTS, cache.PAYMENT_STATS),
    Mutation.CREATE_ASSIGNMENT: (lambda ctx: cache.group_assignments(ctx["group_id"]), cache.ASSIGNMENTS),
    Mutation.GRADE_SUBMISSION: (
        lambda ctx: cache.assignment_submissions(ctx["assignment_id"]),
        cache.ASSIGNMENTS,
    ),
    Mutation.SAVE_ATTENDANCE: (),
}


def keys_for(mutation, table=None, **context):
    entries = (table or INVALIDATION_TABLE)[Mutation(mutation)]
    return [entry(context) if callable(entry) else entry for entry in entries]


class MutationCoordinator:
    """The single place that turns a successful write into cache invalidations."""

    def __init__(self, query_cache, table=None):
        self.cache = query_cache
        self.table = table or INVALIDATION_TABLE

    def keys_for(self, mutation, **context):
        return keys_for(mutation, self.table, **context)

    def settle(self, mutation, **context):
        keys = self.keys_for(mutation, **context)
        for key in keys:
            self.cache.invalidate(key)
        logger.info("Mutation %s settled, invalidated %s", Mutation(mutation).value, keys)
        return keys

    async def run(self, mutation, call, **context):
        # Resolve keys first so a missing context value fails before any request.
        self.keys_for(mutation, **context)
        result = await call()
        self.settle(mutation, **context)
        return result
