from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, List, TYPE_CHECKING
from datetime import date, datetime, time
from sqlalchemy import DateTime

from medinexa.core.config import settings
from medinexa.core.utils import utc_now

if TYPE_CHECKING:
    from .appointment import Appointment

class Clinic(SQLModel, table=True):
    __tablename__ = "clinics"
    # Same id as the owning doctor's account
    id: str = Field(primary_key=True)
    name: str
    address: Optional[str] = None
    fees: Optional[float] = None
    open_time: Optional[time] = None
    close_time: Optional[time] = None
    avg_time_per_patient: int = Field(default_factory=lambda: settings.DEFAULT_AVG_TIME_PER_PATIENT, gt=0)
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    # Queue state, only written through the version compare-and-set
    current_token: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)
    queue_date: date = Field(default_factory=date.today)
    version: int = Field(default=0)

    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))

    appointments: List["Appointment"] = Relationship(back_populates="clinic")
