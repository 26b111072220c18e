from sqlmodel import SQLModel
from .clinic import Clinic
from .appointment import Appointment, AppointmentStatus
from .audit_log import AuditLog

__all__ = [
    "SQLModel",
    "Clinic",
    "Appointment",
    "AppointmentStatus",
    "AuditLog",
]
