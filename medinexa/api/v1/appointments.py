from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from uuid import UUID

from medinexa.api.deps import CLINIC_ROLE, Identity, get_current_identity, require_patient
from medinexa.core.exceptions import AppointmentNotFound
from medinexa.db.models import Appointment, Clinic
from medinexa.db.session import get_session
from medinexa.schemas.appointment import AppointmentCreate, AppointmentResponse, WaitEstimateResponse
from medinexa.services.appointment_service import AppointmentService
from medinexa.services.lifecycle import is_terminal
from medinexa.services.wait_estimator import estimate_wait

router = APIRouter()

async def get_appointment_service(session: AsyncSession = Depends(get_session)) -> AppointmentService:
    return AppointmentService(session)

def construct_response(appointment: Appointment, clinic: Optional[Clinic]) -> AppointmentResponse:
    response = AppointmentResponse.model_validate(appointment)
    if clinic is None:
        return response

    response.current_token = clinic.current_token
    # Estimates only make sense for patients still in the line
    if not is_terminal(appointment.status):
        estimate = estimate_wait(clinic, appointment.token)
        response.wait = WaitEstimateResponse(
            remaining=max(estimate.remaining, 0),
            eta_minutes=estimate.eta_minutes,
            label=estimate.label,
        )
    return response

@router.post("/", response_model=AppointmentResponse)
async def book_appointment(
    request: AppointmentCreate,
    identity: Identity = Depends(require_patient),
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment = await service.book_appointment(
        request.clinic_id,
        identity.account_id,
        request.patient_name or identity.name,
    )
    clinic = await service.store.load_clinic(appointment.clinic_id)
    return construct_response(appointment, clinic)

@router.get("/me", response_model=List[AppointmentResponse])
async def read_my_appointments(
    include_past: bool = False,
    identity: Identity = Depends(require_patient),
    service: AppointmentService = Depends(get_appointment_service),
):
    appointments = await service.get_patient_appointments(identity.account_id, active_only=not include_past)
    clinics = {}
    responses = []
    for appointment in appointments:
        if appointment.clinic_id not in clinics:
            clinics[appointment.clinic_id] = await service.session.get(Clinic, appointment.clinic_id)
        responses.append(construct_response(appointment, clinics[appointment.clinic_id]))
    return responses

@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def read_appointment(
    appointment_id: UUID,
    identity: Identity = Depends(get_current_identity),
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment = await service.get_appointment(appointment_id)
    owner = appointment.clinic_id if identity.role == CLINIC_ROLE else appointment.patient_id
    if owner != identity.account_id:
        raise AppointmentNotFound()
    clinic = await service.session.get(Clinic, appointment.clinic_id)
    return construct_response(appointment, clinic)

@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: UUID,
    identity: Identity = Depends(require_patient),
    service: AppointmentService = Depends(get_appointment_service),
):
    appointment = await service.cancel_appointment(appointment_id, identity.account_id)
    clinic = await service.session.get(Clinic, appointment.clinic_id)
    return construct_response(appointment, clinic)
