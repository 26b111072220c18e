from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, TYPE_CHECKING
from datetime import date, datetime
from enum import Enum
from uuid import UUID, uuid4
from sqlalchemy import DateTime, Index, text

from medinexa.core.utils import utc_now

if TYPE_CHECKING:
    from .clinic import Clinic

class AppointmentStatus(str, Enum):
    waiting = "waiting"
    serving = "serving"
    completed = "completed"
    cancelled = "cancelled"

class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    __table_args__ = (
        # Live tokens are unique within a clinic's queue day
        Index(
            "uq_appointments_live_token",
            "clinic_id", "queue_date", "token",
            unique=True,
            postgresql_where=text("status != 'cancelled'"),
            sqlite_where=text("status != 'cancelled'"),
        ),
        # One serving patient per clinic
        Index(
            "uq_appointments_serving",
            "clinic_id",
            unique=True,
            postgresql_where=text("status = 'serving'"),
            sqlite_where=text("status = 'serving'"),
        ),
        # One active booking per patient per clinic
        Index(
            "uq_appointments_active_patient",
            "clinic_id", "patient_id",
            unique=True,
            postgresql_where=text("status IN ('waiting', 'serving')"),
            sqlite_where=text("status IN ('waiting', 'serving')"),
        ),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    clinic_id: str = Field(foreign_key="clinics.id", index=True)
    patient_id: str = Field(index=True)
    patient_name: str = Field(default="Patient")
    clinic_name: Optional[str] = None
    token: int = Field(ge=1)
    status: AppointmentStatus = Field(default=AppointmentStatus.waiting)
    queue_date: date
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    started_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    ended_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    cancelled_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    duration_seconds: Optional[int] = None

    clinic: "Clinic" = Relationship(back_populates="appointments")
