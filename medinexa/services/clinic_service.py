from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from medinexa.core.exceptions import ClinicNotFound
from medinexa.core.logger import logger
from medinexa.core.utils import utc_now
from medinexa.db.models import Clinic
from medinexa.schemas.clinic import ClinicResponse, ClinicSearchResult, ClinicSettingsUpdate
from medinexa.schemas.queue import QueueStatusResponse
from medinexa.services.queue_store import QueueStateStore
from medinexa.services.wait_estimator import (
    clinic_distance_km,
    estimated_clinic_wait,
    is_clinic_open,
    rank_clinics,
)

class ClinicService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.store = QueueStateStore(session)

    async def get_clinic(self, clinic_id: str) -> Clinic:
        clinic = await self.session.get(Clinic, clinic_id)
        if not clinic:
            raise ClinicNotFound()
        return clinic

    def to_response(self, clinic: Clinic) -> ClinicResponse:
        response = ClinicResponse.model_validate(clinic)
        response.is_open = is_clinic_open(clinic)
        return response

    async def upsert_settings(self, clinic_id: str, data: ClinicSettingsUpdate) -> Clinic:
        # Profile fields only; queue counters are never written from here
        clinic = await self.session.get(Clinic, clinic_id)
        if not clinic:
            clinic = Clinic(id=clinic_id, **data.model_dump())
            logger.info(f"Created clinic profile {clinic_id}")
        else:
            for key, value in data.model_dump(exclude_unset=True).items():
                setattr(clinic, key, value)
            clinic.updated_at = utc_now()

        self.session.add(clinic)
        await self.session.commit()
        await self.session.refresh(clinic)
        return clinic

    async def search_clinics(self, origin: Optional[Tuple[float, float]] = None) -> List[ClinicSearchResult]:
        result = await self.session.execute(select(Clinic))
        clinics = result.scalars().all()
        waiting = await self.store.waiting_counts([c.id for c in clinics])

        entries = []
        for clinic in clinics:
            waiting_count = waiting.get(clinic.id, 0)
            entries.append(ClinicSearchResult(
                id=clinic.id,
                name=clinic.name,
                address=clinic.address,
                fees=clinic.fees,
                open_time=clinic.open_time,
                close_time=clinic.close_time,
                is_open=is_clinic_open(clinic),
                current_token=clinic.current_token,
                waiting_count=waiting_count,
                avg_time_per_patient=clinic.avg_time_per_patient,
                estimated_wait_minutes=estimated_clinic_wait(waiting_count, clinic.avg_time_per_patient),
                distance_km=clinic_distance_km(clinic, origin),
            ))
        return rank_clinics(entries)

    async def get_queue_status(self, clinic_id: str) -> QueueStatusResponse:
        clinic = await self.store.load_clinic(clinic_id)
        serving = await self.store.get_serving(clinic.id)
        next_up = await self.store.get_next_waiting(clinic)
        waiting_count = (await self.store.waiting_counts([clinic.id])).get(clinic.id, 0)

        return QueueStatusResponse(
            clinic_id=clinic.id,
            queue_date=clinic.queue_date,
            current_token=clinic.current_token,
            total_tokens=clinic.total_tokens,
            waiting_count=waiting_count,
            now_serving=serving.token if serving else None,
            next_token=next_up.token if next_up else None,
            avg_time_per_patient=clinic.avg_time_per_patient,
            estimated_clear_minutes=estimated_clinic_wait(waiting_count, clinic.avg_time_per_patient),
        )
