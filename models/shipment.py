"""
Shipment model. Owned by the wider dashboard; the manifest engine only
moves its status and manifest reference.
"""
from __future__ import annotations
from datetime import datetime
from enum import Enum as PyEnum
import uuid

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID

from core.database import Base


class ShipmentStatus(PyEnum):
    """Shipment lifecycle status."""
    CREATED = "CREATED"
    PICKED_UP = "PICKED_UP"
    RECEIVED_AT_ORIGIN = "RECEIVED_AT_ORIGIN"
    MANIFESTED = "MANIFESTED"
    IN_TRANSIT = "IN_TRANSIT"
    RECEIVED_AT_DEST = "RECEIVED_AT_DEST"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    EXCEPTION = "EXCEPTION"
    CANCELLED = "CANCELLED"


# Statuses a shipment may be in before it is scanned onto a manifest
PRE_MANIFEST_STATUSES = {
    ShipmentStatus.CREATED,
    ShipmentStatus.PICKED_UP,
    ShipmentStatus.RECEIVED_AT_ORIGIN,
}


class Shipment(Base):
    __tablename__ = "shipments"

    __table_args__ = (
        UniqueConstraint("org_id", "awb_number", name="uq_shipment_org_awb"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, nullable=False)
    org_id = Column(UUID(as_uuid=True), index=True, nullable=False)

    awb_number = Column(
        String(32),
        nullable=False,
        index=True,
        doc="Air waybill number, stored in normalized scan-token form"
    )

    status = Column(
        Enum(ShipmentStatus, native_enum=False),
        nullable=False,
        default=ShipmentStatus.CREATED,
    )

    origin_hub_id = Column(UUID(as_uuid=True), ForeignKey("hubs.id"), nullable=True)
    destination_hub_id = Column(UUID(as_uuid=True), ForeignKey("hubs.id"), nullable=True)

    package_count = Column(Integer, nullable=False, default=1)
    total_weight = Column(Float, nullable=False, default=0.0, doc="Total weight in kg")

    receiver_name = Column(String(120), nullable=True)
    sender_name = Column(String(120), nullable=True)

    # Current manifest membership; moved only by the manifest engine
    manifest_id = Column(
        UUID(as_uuid=True),
        ForeignKey("manifests.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Shipment(id={self.id}, awb_number={self.awb_number}, status={self.status.value})>"
