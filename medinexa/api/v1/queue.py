from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from uuid import UUID

from medinexa.api.deps import Identity, require_clinic
from medinexa.api.v1.appointments import construct_response
from medinexa.db.session import get_session
from medinexa.schemas.appointment import AppointmentResponse
from medinexa.schemas.queue import QueueActionResponse
from medinexa.services.appointment_service import AppointmentService
from medinexa.services.lifecycle import parse_status
from medinexa.services.queue_service import QueueService

router = APIRouter()

async def get_queue_service(session: AsyncSession = Depends(get_session)) -> QueueService:
    return QueueService(session)

@router.get("/appointments", response_model=List[AppointmentResponse])
async def read_clinic_appointments(
    status: Optional[str] = None,
    identity: Identity = Depends(require_clinic),
    session: AsyncSession = Depends(get_session),
):
    status_filter = None
    if status is not None:
        try:
            status_filter = parse_status(status)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc))

    service = AppointmentService(session)
    clinic = await service.store.load_clinic(identity.account_id)
    appointments = await service.get_clinic_appointments(clinic, status_filter)
    return [construct_response(a, clinic) for a in appointments]

@router.post("/call-next", response_model=QueueActionResponse)
async def call_next_patient(
    identity: Identity = Depends(require_clinic),
    service: QueueService = Depends(get_queue_service),
):
    clinic, appointment = await service.call_next_patient(identity.account_id)
    return QueueActionResponse(
        current_token=clinic.current_token,
        total_tokens=clinic.total_tokens,
        appointment=construct_response(appointment, clinic),
    )

@router.post("/complete", response_model=QueueActionResponse)
async def complete_current_patient(
    identity: Identity = Depends(require_clinic),
    service: QueueService = Depends(get_queue_service),
):
    clinic, appointment = await service.complete_current_patient(identity.account_id)
    return QueueActionResponse(
        current_token=clinic.current_token,
        total_tokens=clinic.total_tokens,
        appointment=construct_response(appointment, clinic),
    )

@router.post("/reset", response_model=QueueActionResponse)
async def reset_queue(
    identity: Identity = Depends(require_clinic),
    service: QueueService = Depends(get_queue_service),
):
    clinic = await service.reset_queue(identity.account_id)
    return QueueActionResponse(current_token=clinic.current_token, total_tokens=clinic.total_tokens)

@router.post("/appointments/{appointment_id}/no-show", response_model=AppointmentResponse)
async def mark_no_show(
    appointment_id: UUID,
    identity: Identity = Depends(require_clinic),
    service: QueueService = Depends(get_queue_service),
):
    appointment = await service.mark_no_show(identity.account_id, appointment_id)
    clinic = await service.store.load_clinic(identity.account_id)
    return construct_response(appointment, clinic)
