from typing import Awaitable, Callable, Dict, List, Optional, TypeVar
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select, func

from medinexa.core.config import settings
from medinexa.core.exceptions import AppointmentNotFound, ClinicNotFound, ConcurrentConflict
from medinexa.core.logger import logger
from medinexa.db.models import Appointment, AppointmentStatus, AuditLog, Clinic
from medinexa.services.lifecycle import ACTIVE_STATUSES

T = TypeVar("T")


class QueueStateStore:
    """Reads and guarded writes of a clinic's queue state.

    Every queue mutation goes through :meth:`compare_and_set`, which bumps
    ``Clinic.version`` only if nobody else did since the clinic was read.
    :meth:`run_atomic` wraps one read-decide-write unit in a transaction and
    replays it when the guard trips.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def load_clinic(self, clinic_id: str) -> Clinic:
        # populate_existing so a retry never decides on a stale identity-map copy
        stmt = select(Clinic).where(Clinic.id == clinic_id).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        clinic = result.scalars().first()
        if not clinic:
            raise ClinicNotFound()
        return clinic

    async def compare_and_set(self, clinic: Clinic, **values) -> Clinic:
        stmt = (
            update(Clinic)
            .where(Clinic.id == clinic.id, Clinic.version == clinic.version)
            .values(version=clinic.version + 1, **values)
        )
        result = await self.session.execute(stmt)
        if result.rowcount != 1:
            raise ConcurrentConflict()
        return clinic

    def record(self, action: str, clinic_id: str, actor_id: Optional[str], payload: dict) -> AuditLog:
        entry = AuditLog(actor_id=actor_id, clinic_id=clinic_id, action=action, payload=payload)
        self.session.add(entry)
        return entry

    async def run_atomic(
        self,
        action: str,
        clinic_id: str,
        operation: Callable[[], Awaitable[T]],
        retries: Optional[int] = None,
    ) -> T:
        retries = settings.QUEUE_CONFLICT_RETRIES if retries is None else retries
        attempt = 0
        while True:
            attempt += 1
            try:
                result = await operation()
                await self.session.commit()
                return result
            except IntegrityError as exc:
                # A unique index caught a racing writer
                await self.session.rollback()
                conflict = ConcurrentConflict()
                conflict.__cause__ = exc
            except ConcurrentConflict as exc:
                await self.session.rollback()
                conflict = exc
            except Exception:
                await self.session.rollback()
                raise

            if attempt > retries:
                logger.error(f"{action} for clinic {clinic_id} gave up after {attempt} attempts")
                raise conflict
            logger.warning(f"{action} for clinic {clinic_id} lost a race, retrying ({attempt}/{retries})")

    # Queries

    async def load_appointment(self, appointment_id: UUID) -> Appointment:
        stmt = select(Appointment).where(Appointment.id == appointment_id).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        appointment = result.scalars().first()
        if not appointment:
            raise AppointmentNotFound()
        return appointment

    async def get_serving(self, clinic_id: str) -> Optional[Appointment]:
        stmt = select(Appointment).where(
            Appointment.clinic_id == clinic_id,
            Appointment.status == AppointmentStatus.serving,
        ).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_next_waiting(self, clinic: Clinic) -> Optional[Appointment]:
        stmt = select(Appointment).where(
            Appointment.clinic_id == clinic.id,
            Appointment.queue_date == clinic.queue_date,
            Appointment.status == AppointmentStatus.waiting,
        ).order_by(Appointment.token).limit(1).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def get_active_for_patient(self, clinic_id: str, patient_id: str) -> Optional[Appointment]:
        stmt = select(Appointment).where(
            Appointment.clinic_id == clinic_id,
            Appointment.patient_id == patient_id,
            Appointment.status.in_(ACTIVE_STATUSES),
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def count_live(self, clinic: Clinic) -> int:
        stmt = select(func.count(Appointment.id)).where(
            Appointment.clinic_id == clinic.id,
            Appointment.queue_date == clinic.queue_date,
            Appointment.status != AppointmentStatus.cancelled,
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def max_live_token(self, clinic: Clinic) -> int:
        stmt = select(func.max(Appointment.token)).where(
            Appointment.clinic_id == clinic.id,
            Appointment.queue_date == clinic.queue_date,
            Appointment.status != AppointmentStatus.cancelled,
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def count_active(self, clinic_id: str) -> int:
        stmt = select(func.count(Appointment.id)).where(
            Appointment.clinic_id == clinic_id,
            Appointment.status.in_(ACTIVE_STATUSES),
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def waiting_counts(self, clinic_ids: Optional[List[str]] = None) -> Dict[str, int]:
        stmt = select(Appointment.clinic_id, func.count(Appointment.id)).where(
            Appointment.status == AppointmentStatus.waiting
        ).group_by(Appointment.clinic_id)
        if clinic_ids is not None:
            stmt = stmt.where(Appointment.clinic_id.in_(clinic_ids))
        result = await self.session.execute(stmt)
        return {clinic_id: count for clinic_id, count in result.all()}
