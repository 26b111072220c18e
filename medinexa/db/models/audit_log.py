from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from uuid import UUID, uuid4
from sqlalchemy import JSON, Column, DateTime
from sqlalchemy.dialects.postgresql import JSONB

from medinexa.core.utils import utc_now

class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    actor_id: Optional[str] = None
    clinic_id: Optional[str] = Field(default=None, index=True)
    action: str
    payload: Optional[dict] = Field(
        default=None, sa_column=Column(JSON().with_variant(JSONB(), "postgresql"))
    )
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
