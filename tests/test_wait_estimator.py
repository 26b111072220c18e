from datetime import time

import pytest

from medinexa.db.models import Clinic
from medinexa.core.config import settings
from medinexa.schemas.clinic import ClinicSearchResult, ClinicSettingsUpdate
from medinexa.core.utils import haversine_km
from medinexa.services.wait_estimator import (
    estimate_wait,
    estimated_clinic_wait,
    is_clinic_open,
    rank_clinics,
)

def clinic(**overrides) -> Clinic:
    fields = {
        "id": "clinic-1",
        "name": "City Care",
        "avg_time_per_patient": 10,
        "current_token": 2,
        "total_tokens": 6,
        "open_time": time(9, 0),
        "close_time": time(17, 0),
    }
    fields.update(overrides)
    return Clinic(**fields)

def test_estimate_for_patient_further_back():
    estimate = estimate_wait(clinic(), 5)
    assert estimate.remaining == 2
    assert estimate.eta_minutes == 20
    assert estimate.label == "~20 mins"

def test_estimate_for_next_patient():
    estimate = estimate_wait(clinic(), 3)
    assert estimate.remaining == 0
    assert estimate.is_next
    assert estimate.eta_minutes == 10
    assert estimate.label == "You're next"

def test_estimate_for_patient_in_the_room():
    estimate = estimate_wait(clinic(), 2)
    assert estimate.remaining < 0
    assert estimate.is_serving
    assert estimate.eta_minutes == 0
    assert estimate.label == "Being served now"

def test_estimated_clinic_wait_never_negative():
    assert estimated_clinic_wait(4, 15) == 60
    assert estimated_clinic_wait(-1, 15) == 0

def test_clinic_without_hours_is_closed():
    assert not is_clinic_open(clinic(open_time=None))
    assert not is_clinic_open(clinic(close_time=None))
    # Hours set is enough unless wall-clock checking is switched on
    assert is_clinic_open(clinic(), now=time(23, 0), enforce_hours=False)

def test_enforced_hours_compare_wall_clock():
    assert is_clinic_open(clinic(), now=time(10, 30), enforce_hours=True)
    assert not is_clinic_open(clinic(), now=time(18, 0), enforce_hours=True)

def test_enforced_overnight_hours():
    night = clinic(open_time=time(20, 0), close_time=time(2, 0))
    assert is_clinic_open(night, now=time(23, 30), enforce_hours=True)
    assert is_clinic_open(night, now=time(1, 0), enforce_hours=True)
    assert not is_clinic_open(night, now=time(12, 0), enforce_hours=True)

def test_haversine_known_distance():
    # Bengaluru to Chennai, roughly 290 km
    assert haversine_km(12.9716, 77.5946, 13.0827, 80.2707) == pytest.approx(290, abs=10)

def search_entry(clinic_id, fees, wait, distance=None) -> ClinicSearchResult:
    return ClinicSearchResult(
        id=clinic_id,
        name=clinic_id,
        fees=fees,
        is_open=True,
        current_token=0,
        waiting_count=wait // 10,
        avg_time_per_patient=10,
        estimated_wait_minutes=wait,
        distance_km=distance,
    )

def test_ranking_without_location_uses_fees_then_wait():
    entries = [
        search_entry("pricey", 500, 0),
        search_entry("cheap-busy", 200, 40),
        search_entry("cheap-quiet", 200, 10),
        search_entry("no-fees", None, 0),
    ]
    ranked = [e.id for e in rank_clinics(entries)]
    assert ranked == ["cheap-quiet", "cheap-busy", "pricey", "no-fees"]

def test_ranking_with_location_puts_distance_first():
    entries = [
        search_entry("far-cheap", 100, 0, distance=12.0),
        search_entry("near-pricey", 900, 50, distance=1.5),
        search_entry("unmapped", 50, 0, distance=None),
    ]
    ranked = [e.id for e in rank_clinics(entries)]
    assert ranked == ["near-pricey", "far-cheap", "unmapped"]

def test_configured_default_consult_time(monkeypatch):
    monkeypatch.setattr(settings, "DEFAULT_AVG_TIME_PER_PATIENT", 12)

    assert Clinic(id="clinic-1", name="City Care").avg_time_per_patient == 12
    assert ClinicSettingsUpdate(name="City Care").avg_time_per_patient == 12
    # An explicit value still wins
    assert ClinicSettingsUpdate(name="City Care", avg_time_per_patient=5).avg_time_per_patient == 5
