from datetime import date
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from medinexa.core.exceptions import AlreadyBooked, AppointmentNotFound, CannotCancel, ClinicClosed
from medinexa.core.logger import logger
from medinexa.core.redis import redis_client
from medinexa.core.utils import utc_now
from medinexa.db.models import Appointment, AppointmentStatus, Clinic
from medinexa.services.lifecycle import ACTIVE_STATUSES, apply_transition, can_transition
from medinexa.services.queue_store import QueueStateStore
from medinexa.services.wait_estimator import is_clinic_open

class AppointmentService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.store = QueueStateStore(session)

    async def book_appointment(self, clinic_id: str, patient_id: str, patient_name: Optional[str] = None) -> Appointment:
        async def attempt() -> Appointment:
            # 1. Validate Clinic
            clinic = await self.store.load_clinic(clinic_id)
            if not is_clinic_open(clinic):
                raise ClinicClosed()

            # 2. One active booking per patient per clinic
            if await self.store.get_active_for_patient(clinic_id, patient_id):
                raise AlreadyBooked()

            # 3. First booking after the previous day drained opens today's queue
            today = date.today()
            rollover = {}
            if clinic.queue_date < today and not await self.store.count_active(clinic.id):
                rollover = {
                    "queue_date": clinic.queue_date.isoformat(),
                    "current_token": clinic.current_token,
                    "total_tokens": clinic.total_tokens,
                }

            # 4. Assign Token. A cancelled token leaves a hole, so never go
            # below the highest live token.
            if rollover:
                token, issued = 1, 0
                day_values = {"queue_date": today, "current_token": 0}
            else:
                live_count = await self.store.count_live(clinic)
                highest = await self.store.max_live_token(clinic)
                token, issued = max(live_count, highest) + 1, clinic.total_tokens
                day_values = {}

            # 5. Claim the clinic row and bump the issued counter
            await self.store.compare_and_set(
                clinic,
                total_tokens=issued + 1,
                updated_at=utc_now(),
                **day_values,
            )
            if rollover:
                self.store.record("queue.rolled_over", clinic.id, patient_id, rollover)

            # 6. Create Appointment
            appointment = Appointment(
                clinic_id=clinic.id,
                clinic_name=clinic.name,
                patient_id=patient_id,
                patient_name=patient_name or "Patient",
                token=token,
                status=AppointmentStatus.waiting,
                queue_date=today if rollover else clinic.queue_date,
            )
            self.session.add(appointment)
            self.store.record(
                "appointment.booked",
                clinic.id,
                patient_id,
                {"appointment_id": str(appointment.id), "token": token},
            )
            await self.session.flush()
            return appointment

        appointment = await self.store.run_atomic("book_appointment", clinic_id, attempt)
        logger.info(f"Booked token {appointment.token} at clinic {clinic_id} for patient {patient_id}")
        await redis_client.publish_queue_event(
            clinic_id,
            "appointment.booked",
            {"appointment_id": str(appointment.id), "token": appointment.token},
        )
        return appointment

    async def cancel_appointment(self, appointment_id: UUID, patient_id: str) -> Appointment:
        existing = await self.get_appointment(appointment_id)
        if existing.patient_id != patient_id:
            raise AppointmentNotFound()
        clinic_id = existing.clinic_id

        async def attempt() -> Appointment:
            # Clinic first: any change committed after this read fails the compare-and-set
            clinic = await self.store.load_clinic(clinic_id)
            appointment = await self.store.load_appointment(appointment_id)
            if not can_transition(appointment.status, AppointmentStatus.cancelled):
                raise CannotCancel()

            await self.store.compare_and_set(clinic, updated_at=utc_now())
            apply_transition(appointment, AppointmentStatus.cancelled)
            self.session.add(appointment)
            self.store.record(
                "appointment.cancelled",
                clinic_id,
                patient_id,
                {"appointment_id": str(appointment.id), "token": appointment.token},
            )
            await self.session.flush()
            return appointment

        appointment = await self.store.run_atomic("cancel_appointment", clinic_id, attempt)
        logger.info(f"Cancelled token {appointment.token} at clinic {clinic_id}")
        await redis_client.publish_queue_event(
            clinic_id,
            "appointment.cancelled",
            {"appointment_id": str(appointment.id), "token": appointment.token},
        )
        return appointment

    async def get_appointment(self, appointment_id: UUID) -> Appointment:
        appointment = await self.session.get(Appointment, appointment_id)
        if not appointment:
            raise AppointmentNotFound()
        return appointment

    async def get_patient_appointments(self, patient_id: str, active_only: bool = True) -> List[Appointment]:
        stmt = select(Appointment).where(Appointment.patient_id == patient_id)
        if active_only:
            stmt = stmt.where(Appointment.status.in_(ACTIVE_STATUSES))
        stmt = stmt.order_by(Appointment.created_at.desc())
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def get_clinic_appointments(
        self,
        clinic: Clinic,
        status: Optional[AppointmentStatus] = None,
    ) -> List[Appointment]:
        stmt = select(Appointment).where(
            Appointment.clinic_id == clinic.id,
            Appointment.queue_date == clinic.queue_date,
        )
        if status:
            stmt = stmt.where(Appointment.status == status)
        else:
            stmt = stmt.where(Appointment.status != AppointmentStatus.cancelled)
        stmt = stmt.order_by(Appointment.token.desc())
        result = await self.session.execute(stmt)
        return result.scalars().all()
