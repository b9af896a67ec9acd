from dataclasses import dataclass


@dataclass
class FieldState:
    value: object = ""
    touched: bool = False
    error: str = ""


def normalize_value(value):
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    return value


class FormState:
    """Per-field (value, touched, error) record driven by a pure schema.

    Every change re-runs the schema over the whole record, so cross-field
    errors (assistant vs. main teacher) never go stale.
    """

    def __init__(self, schema, initial=None):
        self.schema = schema
        self.fields = {}
        self.reset(initial)

    def reset(self, initial=None):
        initial = initial or {}
        names = list(self.schema.field_names) + [k for k in initial if k not in self.schema.field_names]
        self.fields = {name: FieldState(value=initial.get(name, "")) for name in names}
        self._revalidate()

    def set(self, name, value, touch=True):
        state = self.fields.setdefault(name, FieldState())
        state.value = value
        if touch:
            state.touched = True
        self._revalidate()

    def get(self, name, default=""):
        state = self.fields.get(name)
        return state.value if state else default

    def touch_all(self):
        for state in self.fields.values():
            state.touched = True

    def values(self):
        return {name: state.value for name, state in self.fields.items()}

    def normalized(self):
        return {name: normalize_value(value) for name, value in self.values().items()}

    def is_dirty(self, initial):
        baseline = {name: normalize_value((initial or {}).get(name)) for name in self.fields}
        return self.normalized() != baseline

    @property
    def errors(self):
        return {name: state.error for name, state in self.fields.items() if state.error}

    @property
    def visible_errors(self):
        return {name: state.error for name, state in self.fields.items() if state.error and state.touched}

    @property
    def is_valid(self):
        return not self.errors

    def _revalidate(self):
        result = self.schema.validate(self.values())
        for name, state in self.fields.items():
            state.error = result.error_for(name)
