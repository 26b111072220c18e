import math
from datetime import datetime, time, timezone
from typing import Optional

EARTH_RADIUS_KM = 6371.0

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands timestamps back without tzinfo; they were written as UTC
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)

def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    # Great-circle distance between two points given in degrees
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))

def time_in_range(now: time, start: Optional[time], end: Optional[time]) -> bool:
    if start is None or end is None:
        return False
    if start <= end:
        return start <= now <= end
    # Overnight hours, e.g. 20:00 - 02:00
    return now >= start or now <= end
