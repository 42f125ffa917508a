from datetime import datetime
import json
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID

from core.database import Base


class TrackingEvent(Base):
    """
    Shipment tracking event emitted by manifest status cascades.

    The (manifest_id, shipment_id, event_code) key makes emission idempotent:
    replaying a departure or arrival never produces a second event.
    """
    __tablename__ = "tracking_events"

    __table_args__ = (
        UniqueConstraint("manifest_id", "shipment_id", "event_code", name="uq_tracking_event_key"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(UUID(as_uuid=True), index=True, nullable=False)
    shipment_id = Column(UUID(as_uuid=True), ForeignKey("shipments.id", ondelete="CASCADE"), nullable=False, index=True)
    manifest_id = Column(UUID(as_uuid=True), ForeignKey("manifests.id", ondelete="CASCADE"), nullable=True)
    awb_number = Column(String(32), index=True, nullable=False)
    event_code = Column(String(40), nullable=False)
    hub_id = Column(UUID(as_uuid=True), ForeignKey("hubs.id"), nullable=True)
    actor_id = Column(UUID(as_uuid=True), nullable=True)
    source = Column(String(20), nullable=False, default="SYSTEM")
    meta_json = Column(Text, nullable=True)
    event_time = Column(DateTime(timezone=True), default=datetime.utcnow, index=True, nullable=False)

    @property
    def meta(self) -> dict:
        raw_value = getattr(self, "meta_json", None)
        if not raw_value:
            return {}
        payload = json.loads(str(raw_value))
        return payload if isinstance(payload, dict) else {}
