from datetime import datetime
import uuid

from sqlalchemy import Boolean, Column, DateTime, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID

from core.database import Base


class Hub(Base):
    """Origin / destination facility a manifest travels between."""
    __tablename__ = "hubs"

    __table_args__ = (
        UniqueConstraint("org_id", "code", name="uq_hub_org_code"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(UUID(as_uuid=True), index=True, nullable=False)
    code = Column(String(10), nullable=False, doc="Short hub code, e.g. DEL or BOM")
    name = Column(String(120), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
