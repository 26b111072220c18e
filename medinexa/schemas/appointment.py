from pydantic import BaseModel
from uuid import UUID
from datetime import date, datetime
from typing import Optional

from medinexa.db.models.appointment import AppointmentStatus

class AppointmentCreate(BaseModel):
    clinic_id: str
    # Falls back to the name carried by the caller's identity
    patient_name: Optional[str] = None

class WaitEstimateResponse(BaseModel):
    remaining: int
    eta_minutes: int
    label: str

class AppointmentResponse(BaseModel):
    id: UUID
    clinic_id: str
    clinic_name: Optional[str] = None
    patient_id: str
    patient_name: str
    token: int
    status: AppointmentStatus
    queue_date: date
    created_at: datetime
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    current_token: Optional[int] = None
    wait: Optional[WaitEstimateResponse] = None

    class Config:
        from_attributes = True
