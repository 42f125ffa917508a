"""
Manifest SQLAlchemy models with strict state transitions.
"""
from __future__ import annotations
from datetime import datetime
from enum import Enum as PyEnum
from typing import Dict, List, Optional, cast
import uuid

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from core.database import Base
from models.shipment import ShipmentStatus


class ManifestType(PyEnum):
    """Transport mode of a manifest."""
    AIR = "AIR"
    TRUCK = "TRUCK"


class ManifestStatus(PyEnum):
    """Enum for manifest status with strict state transition rules."""
    DRAFT = "DRAFT"
    OPEN = "OPEN"
    BUILDING = "BUILDING"
    CLOSED = "CLOSED"
    DEPARTED = "DEPARTED"
    ARRIVED = "ARRIVED"
    RECONCILED = "RECONCILED"


class ScanSource(PyEnum):
    """How a scan token was captured at the terminal."""
    CAMERA = "CAMERA"
    MANUAL = "MANUAL"
    BARCODE_SCANNER = "BARCODE_SCANNER"


# State transition rules: which states can transition to which
VALID_STATE_TRANSITIONS = {
    ManifestStatus.DRAFT: [
        ManifestStatus.BUILDING,
        ManifestStatus.OPEN,
        ManifestStatus.CLOSED,
    ],
    ManifestStatus.OPEN: [
        ManifestStatus.BUILDING,
        ManifestStatus.CLOSED,
    ],
    ManifestStatus.BUILDING: [
        ManifestStatus.OPEN,
        ManifestStatus.CLOSED,
    ],
    ManifestStatus.CLOSED: [
        ManifestStatus.DEPARTED,
    ],
    ManifestStatus.DEPARTED: [
        ManifestStatus.ARRIVED,
    ],
    ManifestStatus.ARRIVED: [
        ManifestStatus.RECONCILED,
    ],
    ManifestStatus.RECONCILED: [],  # Terminal state
}

# Items may only be added or removed while the manifest is in one of these
EDITABLE_STATUSES = {
    ManifestStatus.DRAFT,
    ManifestStatus.OPEN,
    ManifestStatus.BUILDING,
}

# A membership in a manifest with one of these statuses blocks the shipment
# from being scanned onto any other manifest
ACTIVE_MEMBERSHIP_STATUSES = EDITABLE_STATUSES | {
    ManifestStatus.CLOSED,
    ManifestStatus.DEPARTED,
}

# Manifests whose members are free to be scanned onto a new manifest
RELEASED_STATUSES = [ManifestStatus.ARRIVED, ManifestStatus.RECONCILED]

# Timestamp / actor columns stamped on entering a status
STATUS_STAMP_FIELDS = {
    ManifestStatus.CLOSED: ("closed_at", "closed_by"),
    ManifestStatus.DEPARTED: ("departed_at", "departed_by"),
    ManifestStatus.ARRIVED: ("arrived_at", "arrived_by"),
    ManifestStatus.RECONCILED: ("reconciled_at", "reconciled_by"),
}

# Shipment status each member is advanced to, and the tracking event code
# emitted, when a manifest enters a status
STATUS_CASCADES = {
    ManifestStatus.DEPARTED: (ShipmentStatus.IN_TRANSIT, "DEPARTED"),
    ManifestStatus.ARRIVED: (ShipmentStatus.RECEIVED_AT_DEST, "ARRIVED"),
}


class InvalidTransition(ValueError):
    """Raised when a status change is not in VALID_STATE_TRANSITIONS."""

    def __init__(self, current: ManifestStatus, target: ManifestStatus):
        self.current = current
        self.target = target
        valid = [s.value for s in VALID_STATE_TRANSITIONS.get(current, [])]
        super().__init__(
            f"Cannot transition from {current.value} to {target.value}. "
            f"Valid transitions: {valid}"
        )


class ManifestNotEditable(ValueError):
    """Raised when membership changes are attempted outside EDITABLE_STATUSES."""

    def __init__(self, manifest_no: str, status: ManifestStatus):
        self.manifest_no = manifest_no
        self.status = status
        super().__init__(
            f"Manifest {manifest_no} is {status.value}; items can only be changed while "
            f"{sorted(s.value for s in EDITABLE_STATUSES)}"
        )


class Manifest(Base):
    """
    A bundle of shipments travelling together by air or by truck.

    Totals are derived from the current ManifestItem set by the totals
    service and are never edited by hand. Manifests are soft-retired via
    deleted_at, never physically deleted.
    """
    __tablename__ = "manifests"

    __table_args__ = (
        UniqueConstraint("org_id", "manifest_no", name="uq_manifest_org_no"),
        UniqueConstraint("org_id", "sequence", name="uq_manifest_org_sequence"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, nullable=False)
    org_id = Column(UUID(as_uuid=True), index=True, nullable=False)

    sequence = Column(Integer, nullable=False, doc="Per-org running number behind manifest_no")
    manifest_no = Column(String(32), nullable=False, doc="Human readable number, e.g. MNF-2026-000042")

    type = Column(Enum(ManifestType, native_enum=False), nullable=False)
    status = Column(
        Enum(ManifestStatus, native_enum=False),
        nullable=False,
        default=ManifestStatus.DRAFT,
        index=True,
    )

    from_hub_id = Column(UUID(as_uuid=True), ForeignKey("hubs.id"), nullable=False)
    to_hub_id = Column(UUID(as_uuid=True), ForeignKey("hubs.id"), nullable=False)

    # AIR metadata
    flight_number = Column(String(20), nullable=True)
    flight_date = Column(Date, nullable=True)
    airline_code = Column(String(10), nullable=True)

    # TRUCK metadata
    vehicle_number = Column(String(20), nullable=True)
    driver_name = Column(String(120), nullable=True)
    driver_phone = Column(String(32), nullable=True)
    dispatch_at = Column(DateTime(timezone=True), nullable=True)

    etd = Column(DateTime(timezone=True), nullable=True)
    eta = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)

    # Derived totals
    total_shipments = Column(Integer, nullable=False, default=0)
    total_packages = Column(Integer, nullable=False, default=0)
    total_weight = Column(Float, nullable=False, default=0.0)

    # Lifecycle audit trail
    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    created_by = Column(UUID(as_uuid=True), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    closed_by = Column(UUID(as_uuid=True), nullable=True)
    departed_at = Column(DateTime(timezone=True), nullable=True)
    departed_by = Column(UUID(as_uuid=True), nullable=True)
    arrived_at = Column(DateTime(timezone=True), nullable=True)
    arrived_by = Column(UUID(as_uuid=True), nullable=True)
    reconciled_at = Column(DateTime(timezone=True), nullable=True)
    reconciled_by = Column(UUID(as_uuid=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    items = relationship("ManifestItem", back_populates="manifest")
    from_hub = relationship("Hub", foreign_keys=[from_hub_id])
    to_hub = relationship("Hub", foreign_keys=[to_hub_id])

    @property
    def is_editable(self) -> bool:
        return cast(ManifestStatus, self.status) in EDITABLE_STATUSES

    def ensure_editable(self) -> None:
        if not self.is_editable:
            raise ManifestNotEditable(str(self.manifest_no), cast(ManifestStatus, self.status))

    def can_transition_to(self, new_status: ManifestStatus) -> bool:
        current_status = cast(ManifestStatus, self.status)
        return new_status in VALID_STATE_TRANSITIONS.get(current_status, [])

    def transition_changes(
        self,
        new_status: ManifestStatus,
        user_id: Optional[uuid.UUID] = None,
        at_time: Optional[datetime] = None,
    ) -> Dict[str, object]:
        """Validate a status change and return the column values it writes."""
        current_status = cast(ManifestStatus, self.status)
        if not self.can_transition_to(new_status):
            raise InvalidTransition(current_status, new_status)

        now = at_time or datetime.utcnow()
        changes: Dict[str, object] = {"status": new_status, "updated_at": now}
        stamp = STATUS_STAMP_FIELDS.get(new_status)
        if stamp:
            at_field, by_field = stamp
            changes[at_field] = now
            changes[by_field] = user_id
        return changes

    def get_valid_next_states(self) -> List[ManifestStatus]:
        current_status = cast(ManifestStatus, self.status)
        return VALID_STATE_TRANSITIONS.get(current_status, [])

    def __repr__(self) -> str:
        return (
            f"<Manifest(id={self.id}, manifest_no={self.manifest_no}, "
            f"type={self.type.value}, status={self.status.value})>"
        )


class ManifestItem(Base):
    """Membership edge between a manifest and a shipment."""
    __tablename__ = "manifest_items"

    __table_args__ = (
        UniqueConstraint("manifest_id", "shipment_id", name="uq_manifest_item"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, nullable=False)
    org_id = Column(UUID(as_uuid=True), index=True, nullable=False)
    manifest_id = Column(
        UUID(as_uuid=True),
        ForeignKey("manifests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    shipment_id = Column(
        UUID(as_uuid=True),
        ForeignKey("shipments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    scanned_by = Column(UUID(as_uuid=True), nullable=True)
    scanned_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    scan_source = Column(Enum(ScanSource, native_enum=False), nullable=False, default=ScanSource.MANUAL)
    prior_shipment_status = Column(
        Enum(ShipmentStatus, native_enum=False),
        nullable=True,
        doc="Shipment status before it was manifested; restored on removal"
    )

    manifest = relationship("Manifest", back_populates="items")
    shipment = relationship("Shipment")
