"""
Front desk console API routes.
"""

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, status

from ..models.ledger import DoctorFeeSchedule, VisitHistoryPage
from ..models.queue import (
    Bill,
    PatientIntake,
    PaymentRequest,
    QueueEntry,
    QueueView,
    Scope,
    ScopeRequest,
    StatusUpdateRequest,
)
from ..services.front_desk import FrontDeskConsole
from .dependencies import get_console, require_scope

router = APIRouter(prefix="/console", tags=["Front Desk"])


@router.put("/scope", response_model=Scope)
async def select_scope(
    request: ScopeRequest,
    console: FrontDeskConsole = Depends(get_console)
):
    """Show the queue of a doctor on a day (today by default)."""
    return await console.select_scope(request.doctor_id, request.day, request.doctor_name)


@router.get("/queue", response_model=QueueView, response_model_by_alias=False)
async def get_queue(console: FrontDeskConsole = Depends(require_scope)):
    """Get the ordered queue and the current number."""
    view = console.queue_view()
    if view is None:
        fault = console.synchronizer.fault
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(fault) if fault else "Queue is loading"
        )
    return view


@router.post("/resubscribe", status_code=status.HTTP_202_ACCEPTED)
async def resubscribe(console: FrontDeskConsole = Depends(get_console)):
    """Re-open the streams after a subscription fault."""
    await console.resubscribe()
    scope = console.synchronizer.scope
    return {"scope": scope.key if scope else None}


@router.post(
    "/patients",
    response_model=QueueEntry,
    response_model_by_alias=False,
    status_code=status.HTTP_201_CREATED
)
async def add_patient(
    intake: PatientIntake,
    console: FrontDeskConsole = Depends(require_scope)
):
    """Register a walk-in patient at the end of the queue."""
    return await console.add_patient(intake)


@router.put("/patients/{entry_id}/status")
async def update_status(
    entry_id: str,
    request: StatusUpdateRequest,
    console: FrontDeskConsole = Depends(require_scope)
):
    """Mark a patient waiting, finished or canceled."""
    await console.change_status(entry_id, request.status)
    return {"id": entry_id, "status": request.status}


@router.post("/order/increment")
async def increment_order(console: FrontDeskConsole = Depends(require_scope)):
    return {"requested_order": await console.increment_order()}


@router.post("/order/decrement")
async def decrement_order(console: FrontDeskConsole = Depends(require_scope)):
    return {"requested_order": await console.decrement_order()}


@router.post("/order/reset")
async def reset_order(console: FrontDeskConsole = Depends(require_scope)):
    return {"requested_order": await console.reset_order()}


@router.post("/patients/{entry_id}/consultation/pay")
async def pay_consultation(
    entry_id: str,
    request: PaymentRequest,
    console: FrontDeskConsole = Depends(require_scope)
):
    """Settle the consultation fee."""
    paid_at = await console.pay_consultation(entry_id, request.method)
    return {"id": entry_id, "method": request.method, "paid_at": paid_at}


@router.post(
    "/patients/{entry_id}/bills/{billing_id}/pay",
    response_model=Bill,
    response_model_by_alias=False
)
async def pay_bill(
    entry_id: str,
    billing_id: str,
    request: PaymentRequest,
    console: FrontDeskConsole = Depends(require_scope)
):
    """Settle one doctor bill."""
    return await console.pay_bill(entry_id, billing_id, request.method)


@router.get("/doctors/{doctor_id}/fees", response_model=DoctorFeeSchedule, response_model_by_alias=False)
async def get_fee_schedule(
    doctor_id: str,
    console: FrontDeskConsole = Depends(get_console)
):
    """Get a doctor's fee schedule."""
    return await console.fee_schedule(doctor_id)


@router.get("/history", response_model=VisitHistoryPage)
async def get_history(
    doctor_id: str,
    search: Optional[str] = Query(None, description="Search by name or phone"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    console: FrontDeskConsole = Depends(get_console)
):
    """Past visits of a doctor's patients, newest first."""
    return await console.history(doctor_id, search=search, page=page, limit=limit)


@router.websocket("/ws")
async def console_stream(websocket: WebSocket, console: FrontDeskConsole = Depends(get_console)):
    """Push queue views, notifications and faults to the screen."""
    await websocket.accept()
    events: asyncio.Queue = asyncio.Queue()

    async def forward():
        view = console.queue_view()
        if view is not None:
            await websocket.send_json(view.model_dump(mode="json"))
        while True:
            event = await events.get()
            await websocket.send_json(event.model_dump(mode="json"))

    console.synchronizer.add_listener(events.put_nowait)
    sender = asyncio.create_task(forward())
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    finally:
        console.synchronizer.remove_listener(events.put_nowait)
        sender.cancel()
        await asyncio.gather(sender, return_exceptions=True)
