from datetime import datetime
from typing import Optional

from medinexa.core.utils import as_utc, utc_now
from medinexa.db.models.appointment import Appointment, AppointmentStatus

# waiting -> serving -> completed, waiting -> cancelled
ALLOWED_TRANSITIONS = {
    AppointmentStatus.waiting: {AppointmentStatus.serving, AppointmentStatus.cancelled},
    AppointmentStatus.serving: {AppointmentStatus.completed},
    AppointmentStatus.completed: set(),
    AppointmentStatus.cancelled: set(),
}

ACTIVE_STATUSES = (AppointmentStatus.waiting, AppointmentStatus.serving)


class InvalidTransition(Exception):
    def __init__(self, current: AppointmentStatus, target: AppointmentStatus):
        super().__init__(f"Cannot move appointment from {current.value} to {target.value}")
        self.current = current
        self.target = target


def parse_status(value: str) -> AppointmentStatus:
    """Map an incoming status string onto the enum.

    Legacy vocabulary such as ``active`` is rejected rather than guessed at.
    """
    try:
        return AppointmentStatus(value.strip().lower())
    except ValueError:
        allowed = ", ".join(s.value for s in AppointmentStatus)
        raise ValueError(f"Unknown appointment status '{value}'. Expected one of: {allowed}")


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def is_terminal(status: AppointmentStatus) -> bool:
    return not ALLOWED_TRANSITIONS[status]


def apply_transition(
    appointment: Appointment,
    target: AppointmentStatus,
    now: Optional[datetime] = None,
) -> Appointment:
    """Move an appointment to ``target`` and stamp the matching timestamp."""
    current = AppointmentStatus(appointment.status)
    if not can_transition(current, target):
        raise InvalidTransition(current, target)

    now = now or utc_now()
    appointment.status = target
    if target == AppointmentStatus.serving:
        appointment.started_at = now
    elif target == AppointmentStatus.completed:
        appointment.ended_at = now
        if appointment.started_at:
            elapsed = as_utc(now) - as_utc(appointment.started_at)
            appointment.duration_seconds = int(elapsed.total_seconds())
    elif target == AppointmentStatus.cancelled:
        appointment.cancelled_at = now
    return appointment
