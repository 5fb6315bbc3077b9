"""
Shared builders for queue documents and a recording stand-in for the ledger API.
"""

import asyncio
from datetime import date
from typing import Any, Dict, List, Optional

import httpx

from frontdesk.models.queue import Scope
from frontdesk.services.ledger_client import LedgerClient

CLINIC_ID = "clinic-1"
DOCTOR_ID = "doc-1"
TODAY = date(2026, 10, 17)
SCOPE = Scope(clinic_id=CLINIC_ID, doctor_id=DOCTOR_ID, day=TODAY)
OTHER_SCOPE = Scope(clinic_id=CLINIC_ID, doctor_id="doc-2", day=TODAY)

BASE_TIME = 1_792_000_000_000  # epoch ms


def entry_doc(
    entry_id: str,
    position: int,
    created_at: Any = None,
    status: str = "WAITING",
    bills: Optional[List[Dict[str, Any]]] = None,
    scope: Scope = SCOPE,
    **extra
) -> Dict[str, Any]:
    doc = {
        "_id": entry_id,
        "patient_name": f"Patient {entry_id}",
        "patient_phone": "01000000000",
        "status": status,
        "position": position,
        "user_order_in_queue": position,
        "visit_type": "consultation",
        "visit_speed": "normal",
        "consultationPayment": {"amount": 200, "paymentStatus": "pending"},
        "bills": bills or [],
    }
    doc.update(scope.as_filter())
    if created_at is not None:
        doc["createdAt"] = created_at
    doc.update(extra)
    return doc


def bill_doc(billing_id: str, status: str = "pending", total: float = 100, **extra) -> Dict[str, Any]:
    doc = {
        "billing_id": billing_id,
        "consultationFee": 0,
        "services": [{"service_name": "X-ray", "price": total, "quantity": 1}],
        "totalAmount": total,
        "paymentStatus": status,
    }
    doc.update(extra)
    return doc


async def settle(rounds: int = 20) -> None:
    """Let subscription tasks drain whatever the store has pushed."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class LedgerStub:
    """Answers the ledger API through ``httpx.MockTransport`` and records calls."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.write_status = 200
        self.network_down = False
        self.fee_schedule = {
            "consultationFee": 200,
            "revisitFee": 100,
            "estisharaFee": 50,
            "urgentFee": 300,
        }
        self.settings_status = 200
        self.history_body = {
            "success": True,
            "data": [{"patient_name": "Old Patient", "total_visits": 3}],
            "pagination": {"totalPages": 4, "totalItems": 61},
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.network_down:
            raise httpx.ConnectError("ledger unreachable", request=request)
        path = request.url.path
        if request.method == "GET" and path.endswith("/settings"):
            return httpx.Response(self.settings_status, json={"settings": self.fee_schedule})
        if request.method == "GET" and path.endswith("/history"):
            return httpx.Response(200, json=self.history_body)
        return httpx.Response(self.write_status, json={"success": self.write_status < 400})

    def client(self) -> LedgerClient:
        return LedgerClient(httpx.AsyncClient(
            base_url="http://ledger.test/api",
            transport=httpx.MockTransport(self.handler),
        ))

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and r.url.path == "/api" + path
        ]
