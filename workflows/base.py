import logging
from enum import Enum

from pydantic import ValidationError as PydanticValidationError

from api_client import ApiError
from error_middleware import handle_api_error, log_validation_error
from mutations import MutationCoordinator
from notifications import Notifier

logger = logging.getLogger("lms_admin.workflows")


class SubmitOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    INVALID = "invalid"
    REJECTED_BUSY = "rejected_busy"
    FAILED = "failed"
    CANCELLED = "cancelled"
    STALE = "stale"
    UNCHANGED = "unchanged"


class ViewScope:
    """Stale-response guard for one mounted view.

    Closing a dialog or unmounting the view bumps the generation; responses
    that arrive for an older ticket are not applied to workflow state.
    """

    def __init__(self, parent=None):
        self.parent = parent
        self.generation = 0
        self._mounted = True

    @property
    def mounted(self):
        if self.parent is not None and not self.parent.mounted:
            return False
        return self._mounted

    def child(self):
        return ViewScope(parent=self)

    def ticket(self):
        parent = self.parent.ticket() if self.parent is not None else None
        return (self.generation, parent)

    def is_current(self, ticket):
        return self.mounted and ticket == self.ticket()

    def reset(self):
        self.generation += 1

    def unmount(self):
        self._mounted = False
        self.generation += 1


class Workflow:
    context = "workflow"
    failure_message = "The operation could not be completed"

    def __init__(self, api, query_cache, coordinator=None, notifier=None, scope=None):
        self.api = api
        self.cache = query_cache
        self.coordinator = coordinator or MutationCoordinator(query_cache)
        self.notifier = notifier or Notifier()
        self.scope = scope or ViewScope()
        self.in_flight = False
        self.last_error = ""
        self.body_errors = {}

    @property
    def is_submitting(self):
        return self.in_flight

    def _invalid(self, form=None, errors=None):
        if form is not None:
            form.touch_all()
            errors = form.errors
        log_validation_error(self.context, errors or {})
        return SubmitOutcome.INVALID

    def _build(self, factory):
        """Build a request body; returns (body, None) or (None, INVALID)."""
        self.body_errors = {}
        try:
            return factory(), None
        except PydanticValidationError as exc:
            for error in exc.errors():
                name = ".".join(str(part) for part in error.get("loc", ())) or "form"
                self.body_errors.setdefault(name, error.get("msg", "Invalid value"))
        except (TypeError, ValueError) as exc:
            self.body_errors["form"] = str(exc) or "Invalid value"
        return None, self._invalid(errors=self.body_errors)

    async def _submit(self, mutation, call, context=None, on_success=None, success_message="", failure_message=""):
        # validate (caller) -> submit -> invalidate, never out of order.
        if self.in_flight:
            logger.info("%s: submission rejected, previous request still in flight", self.context)
            return SubmitOutcome.REJECTED_BUSY

        self.in_flight = True
        self.last_error = ""
        ticket = self.scope.ticket()
        try:
            result = await self.coordinator.run(mutation, call, **(context or {}))
        except ApiError as exc:
            if not self.scope.is_current(ticket):
                logger.info("%s: dropping late failure for closed view: %s", self.context, exc)
                return SubmitOutcome.STALE
            self.last_error = handle_api_error(
                exc, self.context, failure_message or self.failure_message, self.notifier
            )
            return SubmitOutcome.FAILED
        finally:
            self.in_flight = False

        if not self.scope.is_current(ticket):
            logger.info("%s: response arrived after the view closed, state left untouched", self.context)
            return SubmitOutcome.STALE
        if on_success is not None:
            on_success(result)
        if success_message:
            self.notifier.success("Success", success_message)
        return SubmitOutcome.SUCCEEDED

    async def _read(self, key, loader):
        ticket = self.scope.ticket()
        data = await self.cache.fetch(key, loader)
        return data, self.scope.is_current(ticket)

    def _child(self, workflow_cls, **kwargs):
        return workflow_cls(
            self.api,
            self.cache,
            coordinator=self.coordinator,
            notifier=self.notifier,
            scope=self.scope.child(),
            **kwargs,
        )

    def unmount(self):
        self.scope.unmount()
