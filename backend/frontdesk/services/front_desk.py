"""
Front desk console: the operator actions behind the screen.
"""

import logging
from datetime import date, datetime
from typing import Optional

from ..exceptions import LedgerUnavailable, ScopeNotSelected, WriteRejected
from ..models.ledger import DoctorFeeSchedule, VisitHistoryPage
from ..models.queue import (
    DEFAULT_REFERRAL_SOURCE,
    SPEED_NORMAL,
    SPEED_URGENT,
    Bill,
    PatientIntake,
    PaymentMethod,
    PaymentStatus,
    QueueEntry,
    QueueStatus,
    QueueView,
    Scope,
)
from .ledger_client import LedgerClient
from .order_pointer import OrderPointerController
from .payments import PaymentCommitProtocol
from .queue_sync import QueueSynchronizer
from .reconciliation import DetachedTaskRunner, ReconciliationClient, RetryPolicy
from .store import ChangeFeed, QueueStore

logger = logging.getLogger(__name__)


class FrontDeskConsole:
    """One operator's console for one clinic."""

    def __init__(
        self,
        store: QueueStore,
        feed: ChangeFeed,
        ledger: LedgerClient,
        clinic_id: str,
        assistant_id: str = "",
        retry_policy: Optional[RetryPolicy] = None,
        default_referral_source: str = DEFAULT_REFERRAL_SOURCE
    ):
        self.store = store
        self.ledger = ledger
        self.clinic_id = clinic_id
        self.assistant_id = assistant_id
        self.default_referral_source = default_referral_source
        self.doctor_name: Optional[str] = None

        self.runner = DetachedTaskRunner(retry_policy)
        self.synchronizer = QueueSynchronizer(feed)
        self.pointer = OrderPointerController(store, self.synchronizer)
        self.payments = PaymentCommitProtocol(store, ledger, self.runner, payer_id=assistant_id)
        self.reconciliation = ReconciliationClient(ledger, self.runner, assistant_id=assistant_id)

    @classmethod
    def from_settings(cls, settings, store: QueueStore, feed: ChangeFeed,
                      ledger: Optional[LedgerClient] = None) -> "FrontDeskConsole":
        return cls(
            store=store,
            feed=feed,
            ledger=ledger or LedgerClient.from_settings(settings),
            clinic_id=settings.CLINIC_ID,
            assistant_id=settings.ASSISTANT_ID,
            retry_policy=RetryPolicy(max_attempts=settings.LEDGER_MAX_ATTEMPTS),
            default_referral_source=settings.DEFAULT_REFERRAL_SOURCE,
        )

    async def start(self) -> None:
        if self.assistant_id:
            self.synchronizer.watch_messages(self.assistant_id)

    async def close(self) -> None:
        await self.synchronizer.close()
        await self.runner.drain()
        await self.ledger.aclose()

    # ------------------------------------------------------------------ scope

    async def select_scope(
        self,
        doctor_id: str,
        day: Optional[date] = None,
        doctor_name: Optional[str] = None
    ) -> Scope:
        scope = Scope(clinic_id=self.clinic_id, doctor_id=doctor_id, day=day or date.today())
        self.doctor_name = doctor_name
        await self.synchronizer.select_scope(scope)
        return scope

    async def resubscribe(self) -> None:
        """Re-open failed streams. The queue streams need a selected scope."""
        if self.synchronizer.scope is None and self.synchronizer.message_fault is None:
            raise ScopeNotSelected("Select a doctor and day first")
        await self.synchronizer.resubscribe()

    def require_scope(self) -> Scope:
        if self.synchronizer.scope is None:
            raise ScopeNotSelected("Select a doctor and day first")
        return self.synchronizer.scope

    def queue_view(self) -> Optional[QueueView]:
        return self.synchronizer.view()

    def get_entry(self, entry_id: str) -> QueueEntry:
        entry = self.synchronizer.get_entry(entry_id)
        if entry is None:
            raise WriteRejected("Queue entry not found", entry_id=entry_id)
        return entry

    # ---------------------------------------------------------------- patients

    async def fee_schedule(self, doctor_id: str) -> DoctorFeeSchedule:
        return await self.ledger.get_fee_schedule(doctor_id)

    async def add_patient(self, intake: PatientIntake, now: Optional[datetime] = None) -> QueueEntry:
        """Register a walk-in; the store assigns the queue position."""
        scope = self.require_scope()

        fee = intake.fee
        if fee is None:
            try:
                schedule = await self.ledger.get_fee_schedule(scope.doctor_id)
                fee = schedule.fee_for(intake.visit_type, intake.urgent)
            except LedgerUnavailable as e:
                logger.warning("No fee schedule, registering with fee 0: %s", e)
                fee = 0

        now = now or datetime.now()
        patient_doc = {
            "patient_name": intake.name,
            "patient_phone": intake.phone,
            "doctor_id": scope.doctor_id,
            "doctor_name": self.doctor_name,
            "clinic_id": scope.clinic_id,
            "date": scope.day.isoformat(),
            "time": now.strftime("%I:%M %p"),
            "status": QueueStatus.WAITING.value,
            "age": intake.age,
            "address": intake.address,
            "visit_type": intake.visit_type.label,
            "visit_speed": SPEED_URGENT if intake.urgent else SPEED_NORMAL,
            "referral_source": intake.referral_source or self.default_referral_source,
            "createdAt": int(now.timestamp() * 1000),
            "consultationPayment": {
                "amount": fee,
                "paymentStatus": PaymentStatus.PENDING.value,
                "paymentMethod": None,
                "consultationType": intake.visit_type.label,
                "paidAt": None,
                "paidBy": None,
            },
            "bills": [],
        }

        entry = await self.store.create_entry(scope, patient_doc)
        logger.info("Added %s at position %s on %s", entry.id, entry.position, scope.key)
        return entry

    async def change_status(self, entry_id: str, status: QueueStatus) -> QueueEntry:
        """Write the new status; reconcile FINISHED and advance past terminal entries."""
        entry = self.get_entry(entry_id)
        # Auto-advance works from the queue as it was before this change
        entries = list(self.synchronizer.entries)

        await self.store.update_status(entry.id, status)

        if entry.status is status:
            return entry
        if status is QueueStatus.FINISHED:
            self.reconciliation.finished(entry.model_copy(update={"status": status}))
        if status.is_terminal:
            await self.pointer.auto_advance(entry.id, entries)
        return entry

    # ------------------------------------------------------------------ pointer

    async def increment_order(self) -> int:
        return await self.pointer.increment()

    async def decrement_order(self) -> Optional[int]:
        return await self.pointer.decrement()

    async def reset_order(self) -> int:
        return await self.pointer.reset()

    # ----------------------------------------------------------------- payments

    async def pay_consultation(self, entry_id: str, method: PaymentMethod) -> str:
        return await self.payments.pay_consultation(self.get_entry(entry_id), method)

    async def pay_bill(self, entry_id: str, billing_id: str, method: PaymentMethod) -> Bill:
        return await self.payments.pay_bill(self.get_entry(entry_id), billing_id, method)

    # ------------------------------------------------------------------ history

    async def history(
        self,
        doctor_id: str,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20
    ) -> VisitHistoryPage:
        return await self.ledger.get_history(doctor_id, search=search, page=page, limit=limit)
