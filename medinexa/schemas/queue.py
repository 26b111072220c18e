from pydantic import BaseModel
from datetime import date
from typing import Optional

from medinexa.schemas.appointment import AppointmentResponse

class QueueStatusResponse(BaseModel):
    clinic_id: str
    queue_date: date
    current_token: int
    total_tokens: int
    waiting_count: int = 0
    now_serving: Optional[int] = None
    next_token: Optional[int] = None
    avg_time_per_patient: int
    estimated_clear_minutes: int = 0

class QueueActionResponse(BaseModel):
    current_token: int
    total_tokens: int
    appointment: Optional[AppointmentResponse] = None
