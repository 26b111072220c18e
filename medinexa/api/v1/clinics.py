from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from medinexa.api.deps import Identity, require_clinic
from medinexa.db.session import get_session
from medinexa.schemas.clinic import ClinicResponse, ClinicSearchResult, ClinicSettingsUpdate
from medinexa.schemas.queue import QueueStatusResponse
from medinexa.services.clinic_service import ClinicService

router = APIRouter()

async def get_clinic_service(session: AsyncSession = Depends(get_session)) -> ClinicService:
    return ClinicService(session)

@router.get("/", response_model=List[ClinicSearchResult])
async def search_clinics(
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    service: ClinicService = Depends(get_clinic_service),
):
    if (lat is None) != (lng is None):
        raise HTTPException(status_code=400, detail="Provide both lat and lng, or neither")
    origin = (lat, lng) if lat is not None else None
    return await service.search_clinics(origin)

@router.put("/me", response_model=ClinicResponse)
async def update_my_clinic(
    data: ClinicSettingsUpdate,
    identity: Identity = Depends(require_clinic),
    service: ClinicService = Depends(get_clinic_service),
):
    clinic = await service.upsert_settings(identity.account_id, data)
    return service.to_response(clinic)

@router.get("/{clinic_id}", response_model=ClinicResponse)
async def read_clinic(clinic_id: str, service: ClinicService = Depends(get_clinic_service)):
    clinic = await service.get_clinic(clinic_id)
    return service.to_response(clinic)

@router.get("/{clinic_id}/queue", response_model=QueueStatusResponse)
async def read_queue_status(clinic_id: str, service: ClinicService = Depends(get_clinic_service)):
    return await service.get_queue_status(clinic_id)
