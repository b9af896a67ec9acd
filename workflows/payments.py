import cache
from form_state import FormState
from mutations import Mutation
from schemas import PaymentPeriodIn
from validation_middleware import PAYMENT_PERIOD_SCHEMA
from workflows.base import SubmitOutcome, Workflow

EXPIRING_SOON_DAYS = 7

BADGE_EXPIRED = "expired"
BADGE_EXPIRING = "expiring"
BADGE_ACTIVE = "active"
BADGE_UNKNOWN = "unknown"


# Display classification only; days_remaining and status are computed server-side.
def payment_badge(item):
    status = (item.status or "").strip().lower()
    if status in ("expired", "blocked"):
        return BADGE_EXPIRED
    days = item.days_remaining
    if days is None:
        return BADGE_UNKNOWN
    if days < 0:
        return BADGE_EXPIRED
    if days <= EXPIRING_SOON_DAYS:
        return BADGE_EXPIRING
    return BADGE_ACTIVE


class PaymentsScreen(Workflow):
    context = "payments"

    async def load(self):
        payments, _current = await self._read(cache.PAYMENTS, self.api.list_payments)
        return payments

    async def load_stats(self):
        stats, _current = await self._read(cache.PAYMENT_STATS, self.api.payment_stats)
        return stats

    def edit_period(self, payment):
        return self._child(PaymentPeriodWorkflow, payment=payment)


class PaymentPeriodWorkflow(Workflow):
    context = "payment_period"

    def __init__(self, api, query_cache, coordinator=None, notifier=None, scope=None, payment=None):
        super().__init__(api, query_cache, coordinator, notifier, scope)
        self.payment = payment
        self.form = FormState(PAYMENT_PERIOD_SCHEMA, {
            "start_date": payment.start_date.isoformat() if payment and payment.start_date else "",
            "end_date": payment.end_date.isoformat() if payment and payment.end_date else "",
        })
        self.is_open = True

    def set_dates(self, start_date=None, end_date=None):
        if start_date is not None:
            self.form.set("start_date", start_date)
        if end_date is not None:
            self.form.set("end_date", end_date)

    async def submit(self):
        if self.in_flight:
            return SubmitOutcome.REJECTED_BUSY
        if not self.form.is_valid:
            return self._invalid(self.form)

        body, invalid = self._build(lambda: PaymentPeriodIn(
            start_date=self.form.get("start_date").strip(),
            end_date=self.form.get("end_date").strip(),
        ))
        if invalid:
            return invalid
        return await self._submit(
            Mutation.UPDATE_PAYMENT_PERIOD,
            lambda: self.api.update_payment_period(self.payment.id, body),
            on_success=lambda _result: self.close(),
            success_message="Payment period updated",
            failure_message="Could not update the payment period",
        )

    def close(self):
        self.scope.reset()
        self.is_open = False
