import logging
from dataclasses import dataclass

logger = logging.getLogger("lms_admin.notifications")

SUCCESS = "success"
ERROR = "error"
INFO = "info"


@dataclass(frozen=True)
class Notification:
    kind: str
    title: str
    message: str = ""


class Notifier:
    """Collects user-facing notifications; front ends subscribe to show them."""

    def __init__(self, listener=None):
        self.history = []
        self._listener = listener

    def notify(self, kind, title, message=""):
        item = Notification(kind, title, message)
        self.history.append(item)
        level = logging.WARNING if kind == ERROR else logging.INFO
        logger.log(level, "%s | %s | %s", kind, title, message)
        if self._listener is not None:
            self._listener(item)
        return item

    def success(self, title, message=""):
        return self.notify(SUCCESS, title, message)

    def error(self, title, message=""):
        return self.notify(ERROR, title, message)

    def info(self, title, message=""):
        return self.notify(INFO, title, message)

    @property
    def errors(self):
        return [item for item in self.history if item.kind == ERROR]

    @property
    def last(self):
        return self.history[-1] if self.history else None
