"""Derived queue figures: per-patient wait, clinic backlog and search ranking.

Nothing here touches the database; callers pass in the clinic state they
already loaded.
"""

from dataclasses import dataclass
from datetime import datetime, time
from typing import Optional, Sequence, Tuple

from medinexa.core.config import settings
from medinexa.core.utils import haversine_km, time_in_range
from medinexa.db.models import Clinic


@dataclass(frozen=True)
class WaitEstimate:
    remaining: int
    eta_minutes: int
    label: str
    is_serving: bool = False
    is_next: bool = False


def estimate_wait(clinic: Clinic, appointment_token: int) -> WaitEstimate:
    avg = clinic.avg_time_per_patient or settings.DEFAULT_AVG_TIME_PER_PATIENT
    remaining = appointment_token - clinic.current_token - 1

    if remaining < 0:
        return WaitEstimate(remaining=remaining, eta_minutes=0, label="Being served now", is_serving=True)
    if remaining == 0:
        return WaitEstimate(remaining=0, eta_minutes=avg, label="You're next", is_next=True)

    eta = remaining * avg
    return WaitEstimate(remaining=remaining, eta_minutes=eta, label=f"~{eta} mins")


def estimated_clinic_wait(waiting_count: int, avg_time_per_patient: int) -> int:
    """Minutes until a patient booking now would be seen."""
    return max(waiting_count, 0) * avg_time_per_patient


def is_clinic_open(clinic: Clinic, now: Optional[time] = None, enforce_hours: Optional[bool] = None) -> bool:
    """A clinic is bookable once both opening and closing times are set.

    With ``ENFORCE_OPENING_HOURS`` the wall-clock time must also fall inside
    them.
    """
    if clinic.open_time is None or clinic.close_time is None:
        return False
    enforce_hours = settings.ENFORCE_OPENING_HOURS if enforce_hours is None else enforce_hours
    if not enforce_hours:
        return True
    now = now or datetime.now().time()
    return time_in_range(now, clinic.open_time, clinic.close_time)


def clinic_distance_km(clinic: Clinic, origin: Optional[Tuple[float, float]]) -> Optional[float]:
    if origin is None or clinic.latitude is None or clinic.longitude is None:
        return None
    return haversine_km(origin[0], origin[1], clinic.latitude, clinic.longitude)


def clinic_rank_key(distance_km: Optional[float], fees: Optional[float], estimated_wait: int):
    # distance -> fees -> wait; missing values sort last within their key
    return (
        distance_km is None,
        distance_km if distance_km is not None else 0.0,
        fees is None,
        fees if fees is not None else 0.0,
        estimated_wait,
    )


def rank_clinics(entries: Sequence) -> list:
    """Sort search entries exposing ``distance_km``, ``fees`` and ``estimated_wait_minutes``."""
    return sorted(
        entries,
        key=lambda e: clinic_rank_key(e.distance_km, e.fees, e.estimated_wait_minutes),
    )
