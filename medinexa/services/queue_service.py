from datetime import date
from typing import Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from medinexa.core.exceptions import (
    AppointmentNotFound,
    CannotCancel,
    NoPatientServing,
    PatientAlreadyServing,
    QueueEmpty,
    QueueNotEmpty,
)
from medinexa.core.logger import logger
from medinexa.core.redis import redis_client
from medinexa.core.utils import utc_now
from medinexa.db.models import Appointment, AppointmentStatus, Clinic
from medinexa.services.lifecycle import apply_transition, can_transition
from medinexa.services.queue_store import QueueStateStore

class QueueService:
    """Doctor-side queue advancement.

    Advancement is an explicit pair: ``call_next_patient`` brings the lowest
    waiting token into the room, ``complete_current_patient`` closes it. A
    call never completes the previous patient on its own.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.store = QueueStateStore(session)

    async def call_next_patient(self, clinic_id: str) -> Tuple[Clinic, Appointment]:
        async def attempt() -> Tuple[Clinic, Appointment]:
            clinic = await self.store.load_clinic(clinic_id)
            if await self.store.get_serving(clinic.id):
                raise PatientAlreadyServing()

            appointment = await self.store.get_next_waiting(clinic)
            if not appointment:
                raise QueueEmpty()

            await self.store.compare_and_set(
                clinic,
                current_token=appointment.token,
                updated_at=utc_now(),
            )
            apply_transition(appointment, AppointmentStatus.serving)
            self.session.add(appointment)
            self.store.record(
                "queue.called",
                clinic.id,
                clinic.id,
                {"appointment_id": str(appointment.id), "token": appointment.token},
            )
            await self.session.flush()
            return clinic, appointment

        clinic, appointment = await self.store.run_atomic("call_next_patient", clinic_id, attempt)
        logger.info(f"Clinic {clinic_id} now serving token {appointment.token}")
        await redis_client.publish_queue_event(
            clinic_id,
            "queue.called",
            {
                "appointment_id": str(appointment.id),
                "token": appointment.token,
                "current_token": clinic.current_token,
            },
        )
        return clinic, appointment

    async def complete_current_patient(self, clinic_id: str) -> Tuple[Clinic, Appointment]:
        async def attempt() -> Tuple[Clinic, Appointment]:
            clinic = await self.store.load_clinic(clinic_id)
            appointment = await self.store.get_serving(clinic.id)
            if not appointment:
                raise NoPatientServing()

            await self.store.compare_and_set(clinic, updated_at=utc_now())
            apply_transition(appointment, AppointmentStatus.completed)
            self.session.add(appointment)
            self.store.record(
                "queue.completed",
                clinic.id,
                clinic.id,
                {
                    "appointment_id": str(appointment.id),
                    "token": appointment.token,
                    "duration_seconds": appointment.duration_seconds,
                },
            )
            await self.session.flush()
            return clinic, appointment

        clinic, appointment = await self.store.run_atomic("complete_current_patient", clinic_id, attempt)
        logger.info(f"Clinic {clinic_id} completed token {appointment.token}")
        await redis_client.publish_queue_event(
            clinic_id,
            "queue.completed",
            {"appointment_id": str(appointment.id), "token": appointment.token},
        )
        return clinic, appointment

    async def mark_no_show(self, clinic_id: str, appointment_id: UUID) -> Appointment:
        """Drop a waiting patient who never turned up.

        The row ends ``cancelled`` like a patient-side cancel, so its token is
        skipped by the next call and it no longer blocks ``reset_queue``.
        """
        async def attempt() -> Appointment:
            clinic = await self.store.load_clinic(clinic_id)
            appointment = await self.store.load_appointment(appointment_id)
            if appointment.clinic_id != clinic.id:
                raise AppointmentNotFound()
            if not can_transition(appointment.status, AppointmentStatus.cancelled):
                raise CannotCancel()

            await self.store.compare_and_set(clinic, updated_at=utc_now())
            apply_transition(appointment, AppointmentStatus.cancelled)
            self.session.add(appointment)
            self.store.record(
                "appointment.no_show",
                clinic.id,
                clinic.id,
                {"appointment_id": str(appointment.id), "token": appointment.token},
            )
            await self.session.flush()
            return appointment

        appointment = await self.store.run_atomic("mark_no_show", clinic_id, attempt)
        logger.info(f"Clinic {clinic_id} marked token {appointment.token} as no-show")
        await redis_client.publish_queue_event(
            clinic_id,
            "appointment.no_show",
            {"appointment_id": str(appointment.id), "token": appointment.token},
        )
        return appointment

    async def reset_queue(self, clinic_id: str) -> Clinic:
        """Open today's queue: tokens restart at 1 and the pointer goes back to 0.

        Refused while yesterday's patients are still waiting or being served;
        patients who never turned up are cleared with ``mark_no_show``.
        """
        async def attempt() -> Tuple[Clinic, bool]:
            clinic = await self.store.load_clinic(clinic_id)
            # Counters cover a whole day, so a second reset on the same day is a no-op
            if clinic.queue_date >= date.today():
                return clinic, False
            if await self.store.count_active(clinic.id):
                raise QueueNotEmpty()

            previous = {
                "queue_date": clinic.queue_date.isoformat(),
                "current_token": clinic.current_token,
                "total_tokens": clinic.total_tokens,
            }
            await self.store.compare_and_set(
                clinic,
                current_token=0,
                total_tokens=0,
                queue_date=date.today(),
                updated_at=utc_now(),
            )
            self.store.record("queue.reset", clinic.id, clinic.id, previous)
            return clinic, True

        clinic, changed = await self.store.run_atomic("reset_queue", clinic_id, attempt)
        if not changed:
            return clinic
        logger.info(f"Clinic {clinic_id} opened queue day {clinic.queue_date}")
        await redis_client.publish_queue_event(
            clinic_id,
            "queue.reset",
            {"queue_date": clinic.queue_date.isoformat(), "current_token": 0},
        )
        return clinic
