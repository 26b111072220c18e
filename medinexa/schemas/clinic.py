from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime, time

from medinexa.core.config import settings

class ClinicBase(BaseModel):
    name: str
    address: Optional[str] = None
    fees: Optional[float] = Field(default=None, ge=0)
    open_time: Optional[time] = None
    close_time: Optional[time] = None
    avg_time_per_patient: int = Field(default_factory=lambda: settings.DEFAULT_AVG_TIME_PER_PATIENT, gt=0)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)

class ClinicSettingsUpdate(ClinicBase):
    pass

class ClinicResponse(ClinicBase):
    id: str
    current_token: int
    total_tokens: int
    queue_date: date
    is_open: bool = False
    created_at: datetime

    class Config:
        from_attributes = True

class ClinicSearchResult(BaseModel):
    id: str
    name: str
    address: Optional[str] = None
    fees: Optional[float] = None
    open_time: Optional[time] = None
    close_time: Optional[time] = None
    is_open: bool
    current_token: int
    waiting_count: int
    avg_time_per_patient: int
    estimated_wait_minutes: int
    distance_km: Optional[float] = None
