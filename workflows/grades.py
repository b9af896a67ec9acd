import cache
from workflows.base import Workflow

BAND_HIGH = "high"
BAND_MEDIUM = "medium"
BAND_LOW = "low"


def score_band(score):
    value = float(score or 0)
    if value >= 80:
        return BAND_HIGH
    if value >= 60:
        return BAND_MEDIUM
    return BAND_LOW


def rank_grades(rows):
    return sorted(rows, key=lambda r: (-(r.average_assignment or 0), -(r.attendance_score or 0)))


class GradesView(Workflow):
    context = "grades"

    def __init__(self, api, query_cache, coordinator=None, notifier=None, scope=None, group_id=None):
        super().__init__(api, query_cache, coordinator, notifier, scope)
        self.group_id = "" if group_id is None else str(group_id)
        self.rows = []

    async def load(self):
        if not self.group_id:
            return []
        group_id = self.group_id
        rows, current = await self._read(cache.group_grades(group_id), lambda: self.api.group_grades(group_id))
        if current:
            self.rows = rank_grades(rows)
        return rows

    def bands(self):
        return {row.id: score_band(row.average_assignment) for row in self.rows}
