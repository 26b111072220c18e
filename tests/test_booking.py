import uuid
from datetime import date, timedelta

import pytest
from sqlmodel import select

from medinexa.core.exceptions import (
    AlreadyBooked,
    AppointmentNotFound,
    CannotCancel,
    ClinicClosed,
    ClinicNotFound,
    QueueEmpty,
)
from medinexa.db.models import Appointment, AppointmentStatus, AuditLog, Clinic
from medinexa.services.appointment_service import AppointmentService
from medinexa.services.queue_service import QueueService

async def live_tokens(session, clinic_id="clinic-1"):
    result = await session.execute(
        select(Appointment.token).where(
            Appointment.clinic_id == clinic_id,
            Appointment.status != AppointmentStatus.cancelled,
        )
    )
    return sorted(result.scalars().all())

@pytest.mark.asyncio
async def test_first_booking_gets_token_one(session, make_clinic, published):
    await make_clinic()
    service = AppointmentService(session)

    appointment = await service.book_appointment("clinic-1", "patient-1", "Asha")

    assert appointment.token == 1
    assert appointment.status == AppointmentStatus.waiting
    assert appointment.clinic_name == "City Care Clinic"
    clinic = await session.get(Clinic, "clinic-1", populate_existing=True)
    assert clinic.total_tokens == 1
    assert clinic.current_token == 0
    assert published[-1]["event"] == "appointment.booked"
    assert published[-1]["token"] == 1

@pytest.mark.asyncio
async def test_tokens_are_sequential(session, make_clinic):
    await make_clinic()
    service = AppointmentService(session)

    tokens = [
        (await service.book_appointment("clinic-1", f"patient-{i}")).token
        for i in range(1, 5)
    ]
    assert tokens == [1, 2, 3, 4]

@pytest.mark.asyncio
async def test_double_booking_rejected_without_writing(session, make_clinic):
    await make_clinic()
    service = AppointmentService(session)
    await service.book_appointment("clinic-1", "patient-1")

    with pytest.raises(AlreadyBooked):
        await service.book_appointment("clinic-1", "patient-1")

    assert await live_tokens(session) == [1]
    clinic = await session.get(Clinic, "clinic-1", populate_existing=True)
    assert clinic.total_tokens == 1

@pytest.mark.asyncio
async def test_double_booking_rejected_while_serving(session, make_clinic):
    await make_clinic()
    await AppointmentService(session).book_appointment("clinic-1", "patient-1")
    await QueueService(session).call_next_patient("clinic-1")

    with pytest.raises(AlreadyBooked):
        await AppointmentService(session).book_appointment("clinic-1", "patient-1")

@pytest.mark.asyncio
async def test_same_patient_may_book_different_clinics(session, make_clinic):
    await make_clinic("clinic-1")
    await make_clinic("clinic-2", name="Lake View Clinic")
    service = AppointmentService(session)

    first = await service.book_appointment("clinic-1", "patient-1")
    second = await service.book_appointment("clinic-2", "patient-1")
    assert (first.token, second.token) == (1, 1)

@pytest.mark.asyncio
async def test_unknown_clinic(session):
    with pytest.raises(ClinicNotFound):
        await AppointmentService(session).book_appointment("nope", "patient-1")

@pytest.mark.asyncio
async def test_clinic_without_hours_is_closed(session, make_clinic):
    await make_clinic(close_time=None)
    with pytest.raises(ClinicClosed):
        await AppointmentService(session).book_appointment("clinic-1", "patient-1")
    assert await live_tokens(session) == []

@pytest.mark.asyncio
async def test_cancelled_hole_never_duplicates_a_live_token(session, make_clinic):
    await make_clinic()
    service = AppointmentService(session)
    first = await service.book_appointment("clinic-1", "patient-1")
    await service.book_appointment("clinic-1", "patient-2")

    await service.cancel_appointment(first.id, "patient-1")
    third = await service.book_appointment("clinic-1", "patient-3")

    assert third.token == 3
    assert await live_tokens(session) == [2, 3]
    clinic = await session.get(Clinic, "clinic-1", populate_existing=True)
    # Issued counter is never decremented by cancellations
    assert clinic.total_tokens == 3

@pytest.mark.asyncio
async def test_trailing_cancellation_reuses_token(session, make_clinic):
    await make_clinic()
    service = AppointmentService(session)
    await service.book_appointment("clinic-1", "patient-1")
    second = await service.book_appointment("clinic-1", "patient-2")

    await service.cancel_appointment(second.id, "patient-2")
    again = await service.book_appointment("clinic-1", "patient-2")

    assert again.token == 2
    assert await live_tokens(session) == [1, 2]

@pytest.mark.asyncio
async def test_cancel_waiting_appointment(session, make_clinic, published):
    await make_clinic()
    service = AppointmentService(session)
    appointment = await service.book_appointment("clinic-1", "patient-1")

    cancelled = await service.cancel_appointment(appointment.id, "patient-1")

    assert cancelled.status == AppointmentStatus.cancelled
    assert cancelled.cancelled_at is not None
    assert [e["event"] for e in published] == ["appointment.booked", "appointment.cancelled"]

@pytest.mark.asyncio
async def test_cancel_is_terminal(session, make_clinic):
    await make_clinic()
    service = AppointmentService(session)
    appointment = await service.book_appointment("clinic-1", "patient-1")
    # A failed operation rolls the session back and expires loaded rows
    appointment_id = appointment.id
    await service.cancel_appointment(appointment_id, "patient-1")

    with pytest.raises(CannotCancel):
        await service.cancel_appointment(appointment_id, "patient-1")

    # The queue never picks it up either
    with pytest.raises(QueueEmpty):
        await QueueService(session).call_next_patient("clinic-1")
    reloaded = await session.get(Appointment, appointment_id)
    assert reloaded.status == AppointmentStatus.cancelled

@pytest.mark.asyncio
async def test_cannot_cancel_once_serving_or_completed(session, make_clinic):
    await make_clinic()
    service = AppointmentService(session)
    queue = QueueService(session)
    appointment_id = (await service.book_appointment("clinic-1", "patient-1")).id

    await queue.call_next_patient("clinic-1")
    with pytest.raises(CannotCancel):
        await service.cancel_appointment(appointment_id, "patient-1")

    await queue.complete_current_patient("clinic-1")
    with pytest.raises(CannotCancel):
        await service.cancel_appointment(appointment_id, "patient-1")

    reloaded = await session.get(Appointment, appointment_id)
    assert reloaded.status == AppointmentStatus.completed

@pytest.mark.asyncio
async def test_only_owner_can_cancel(session, make_clinic):
    await make_clinic()
    service = AppointmentService(session)
    appointment = await service.book_appointment("clinic-1", "patient-1")

    with pytest.raises(AppointmentNotFound):
        await service.cancel_appointment(appointment.id, "patient-2")
    with pytest.raises(AppointmentNotFound):
        await service.cancel_appointment(uuid.uuid4(), "patient-1")

@pytest.mark.asyncio
async def test_booking_and_cancel_are_audited(session, make_clinic):
    await make_clinic()
    service = AppointmentService(session)
    appointment = await service.book_appointment("clinic-1", "patient-1")
    await service.cancel_appointment(appointment.id, "patient-1")

    result = await session.execute(select(AuditLog))
    entries = {e.action: e for e in result.scalars().all()}
    assert set(entries) == {"appointment.booked", "appointment.cancelled"}
    assert entries["appointment.booked"].payload["token"] == 1
    assert entries["appointment.cancelled"].actor_id == "patient-1"
    assert entries["appointment.cancelled"].clinic_id == "clinic-1"

@pytest.mark.asyncio
async def test_patient_appointments_lists_active_only(session, make_clinic):
    await make_clinic("clinic-1")
    await make_clinic("clinic-2", name="Lake View Clinic")
    service = AppointmentService(session)
    first = await service.book_appointment("clinic-1", "patient-1")
    await service.book_appointment("clinic-2", "patient-1")
    await service.cancel_appointment(first.id, "patient-1")

    active = await service.get_patient_appointments("patient-1")
    everything = await service.get_patient_appointments("patient-1", active_only=False)

    assert [a.clinic_id for a in active] == ["clinic-2"]
    assert len(everything) == 2

@pytest.mark.asyncio
async def test_first_booking_of_a_new_day_rolls_the_queue_over(session, make_clinic, published):
    yesterday = date.today() - timedelta(days=1)
    await make_clinic(queue_date=yesterday, current_token=7, total_tokens=7)

    appointment = await AppointmentService(session).book_appointment("clinic-1", "patient-1")

    assert appointment.token == 1
    assert appointment.queue_date == date.today()
    clinic = await session.get(Clinic, "clinic-1", populate_existing=True)
    assert clinic.queue_date == date.today()
    assert (clinic.current_token, clinic.total_tokens) == (0, 1)

    result = await session.execute(select(AuditLog).where(AuditLog.action == "queue.rolled_over"))
    assert result.scalars().one().payload == {
        "queue_date": yesterday.isoformat(),
        "current_token": 7,
        "total_tokens": 7,
    }
    assert [e["event"] for e in published] == ["appointment.booked"]

@pytest.mark.asyncio
async def test_unfinished_previous_day_keeps_its_queue(session, make_clinic):
    yesterday = date.today() - timedelta(days=1)
    await make_clinic(queue_date=yesterday, total_tokens=1)
    session.add(Appointment(
        clinic_id="clinic-1",
        patient_id="patient-1",
        token=1,
        status=AppointmentStatus.waiting,
        queue_date=yesterday,
    ))
    await session.commit()

    appointment = await AppointmentService(session).book_appointment("clinic-1", "patient-2")

    assert appointment.token == 2
    assert appointment.queue_date == yesterday
