"""
HTTP client for the secondary record store (visit history and billing ledger).
"""

from typing import Optional

import httpx

from ..exceptions import LedgerUnavailable
from ..models.ledger import (
    BillSettlement,
    ConsultationBilling,
    DoctorFeeSchedule,
    FinishedPatientRecord,
    VisitHistoryPage,
)


class LedgerClient:
    """Thin wrapper over the secondary store's REST API.

    Writes raise ``httpx.HTTPError`` on transport errors and non-2xx answers;
    retry policy is left to the caller. Reads raise ``LedgerUnavailable``.
    """

    def __init__(self, http_client: httpx.AsyncClient):
        self.http_client = http_client

    @classmethod
    def from_settings(cls, settings) -> "LedgerClient":
        return cls(httpx.AsyncClient(
            base_url=settings.LEDGER_API_URL,
            timeout=settings.LEDGER_TIMEOUT_SECONDS,
            headers={"Content-Type": "application/json"},
        ))

    async def post_finished_patient(self, record: FinishedPatientRecord) -> None:
        response = await self.http_client.post("/patients", json=record.model_dump(mode="json"))
        response.raise_for_status()

    async def record_consultation(self, billing: ConsultationBilling) -> None:
        response = await self.http_client.post(
            "/billing/consultation",
            json=billing.model_dump(by_alias=True, mode="json")
        )
        response.raise_for_status()

    async def settle_bill(self, doctor_id: str, billing_id: str, settlement: BillSettlement) -> None:
        response = await self.http_client.put(
            f"/billing/doctor/{doctor_id}/{billing_id}",
            json=settlement.model_dump(by_alias=True, mode="json")
        )
        response.raise_for_status()

    async def get_fee_schedule(self, doctor_id: str) -> DoctorFeeSchedule:
        try:
            response = await self.http_client.get(f"/doctors/{doctor_id}/settings")
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise LedgerUnavailable(f"Fee schedule for doctor {doctor_id} unavailable: {e}") from e

        # Some deployments wrap the schedule in {"settings": {...}}
        if isinstance(data, dict) and isinstance(data.get("settings"), dict):
            data = data["settings"]
        return DoctorFeeSchedule.model_validate(data or {})

    async def get_history(
        self,
        doctor_id: str,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20
    ) -> VisitHistoryPage:
        """Past visits of a doctor's patients, newest first."""
        params = {
            "doctor_id": doctor_id,
            "page": page,
            "limit": limit,
            "sortBy": "date",
            "sortOrder": "desc",
        }
        if search and search.strip():
            params["search"] = search.strip()

        try:
            response = await self.http_client.get("/history", params=params)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise LedgerUnavailable(f"History unavailable: {e}") from e

        if not body.get("success"):
            raise LedgerUnavailable("History request was not successful")

        pagination = body.get("pagination") or {}
        return VisitHistoryPage(
            patients=body.get("data") or [],
            page=page,
            total_pages=pagination.get("totalPages", 1),
            total_items=pagination.get("totalItems", 0),
        )

    async def aclose(self) -> None:
        await self.http_client.aclose()
