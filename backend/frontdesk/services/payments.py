"""
Payment commit protocol.

Step 1 writes the settlement to the primary store and is the only step the
operator waits for. Step 2 mirrors it to the billing ledger as a detached,
best-effort write that can neither block nor undo step 1.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from ..exceptions import WriteRejected
from ..models.ledger import BillSettlement, ConsultationBilling
from ..models.queue import Bill, PaymentMethod, PaymentStatus, QueueEntry
from .ledger_client import LedgerClient
from .reconciliation import DetachedTaskRunner
from .store import QueueStore


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# Older clients wrote these in snake_case; left behind they would shadow the update
STALE_PAYMENT_KEYS = ("payment_status", "payment_method", "paid_at")


def settle_bill(
    bill_documents: Sequence[Dict[str, Any]],
    billing_id: str,
    method: PaymentMethod,
    paid_at: str
) -> List[Dict[str, Any]]:
    """The stored bill list with ``billing_id`` settled in place.

    Only the payment fields of the matching bill change; every other bill is
    returned as the very same document.
    """
    settled = []
    for document in bill_documents:
        if str(document.get("billing_id", "")) != billing_id:
            settled.append(document)
            continue
        document = {k: v for k, v in document.items() if k not in STALE_PAYMENT_KEYS}
        document.update({
            "paymentStatus": PaymentStatus.PAID.value,
            "paymentMethod": method.value,
            "paidAt": paid_at,
        })
        settled.append(document)
    return settled


class PaymentCommitProtocol:
    """Consultation and bill payments."""

    def __init__(
        self,
        store: QueueStore,
        ledger: LedgerClient,
        runner: DetachedTaskRunner,
        payer_id: str = ""
    ):
        self.store = store
        self.ledger = ledger
        self.runner = runner
        self.payer_id = payer_id

    async def pay_consultation(
        self,
        entry: QueueEntry,
        method: PaymentMethod,
        paid_at: Optional[str] = None
    ) -> str:
        if entry.consultation_payment.payment_status is PaymentStatus.PAID:
            raise WriteRejected("Consultation is already paid", entry_id=entry.id)

        paid_at = paid_at or utc_now_iso()
        await self.store.update_consultation_payment(entry.id, {
            "paymentStatus": PaymentStatus.PAID.value,
            "paymentMethod": method.value,
            "paidAt": paid_at,
            "paidBy": self.payer_id,
        })

        billing = ConsultationBilling.from_entry(entry, method)
        self.runner.submit(
            f"record consultation payment {entry.id}",
            lambda: self.ledger.record_consultation(billing)
        )
        return paid_at

    async def pay_bill(
        self,
        entry: QueueEntry,
        billing_id: str,
        method: PaymentMethod,
        paid_at: Optional[str] = None
    ) -> Bill:
        bill = next((b for b in entry.bills if b.billing_id == billing_id), None)
        if bill is None:
            raise WriteRejected(f"Bill {billing_id} not found", entry_id=entry.id)
        if bill.payment_status is PaymentStatus.PAID:
            raise WriteRejected(f"Bill {billing_id} is already paid", entry_id=entry.id)

        paid_at = paid_at or utc_now_iso()
        bills = settle_bill(entry.bill_documents, billing_id, method, paid_at)
        await self.store.replace_bills(entry.id, bills)

        settlement = BillSettlement.from_bill(bill, method)
        self.runner.submit(
            f"settle bill {billing_id}",
            lambda: self.ledger.settle_bill(entry.doctor_id, billing_id, settlement)
        )
        return bill.settled(method, paid_at)
