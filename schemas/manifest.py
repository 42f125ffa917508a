"""
Pydantic schemas for manifests, membership and status transitions.
Integrates with models.manifest for single source of truth on Enums.
"""
from datetime import date, datetime
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from models.manifest import ManifestStatus, ManifestType, ScanSource
from models.shipment import ShipmentStatus

_AIR_FIELDS = ("flight_number", "flight_date", "airline_code")
_TRUCK_FIELDS = ("vehicle_number", "driver_name", "driver_phone", "dispatch_at")


class ManifestCreate(BaseModel):
    """Schema for opening a new manifest."""
    type: ManifestType
    from_hub_id: UUID
    to_hub_id: UUID
    status: ManifestStatus = Field(
        ManifestStatus.DRAFT,
        description="Initial status; only DRAFT or OPEN are accepted"
    )

    # AIR specific
    flight_number: Optional[str] = Field(None, max_length=20)
    flight_date: Optional[date] = None
    airline_code: Optional[str] = Field(None, max_length=10)

    # TRUCK specific
    vehicle_number: Optional[str] = Field(None, max_length=20)
    driver_name: Optional[str] = Field(None, max_length=120)
    driver_phone: Optional[str] = Field(None, max_length=32)
    dispatch_at: Optional[datetime] = None

    etd: Optional[datetime] = None
    eta: Optional[datetime] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_transport_shape(self) -> "ManifestCreate":
        """Vehicle metadata must match the transport type and nothing else."""
        if self.status not in (ManifestStatus.DRAFT, ManifestStatus.OPEN):
            raise ValueError("A manifest can only be created as DRAFT or OPEN")

        if self.from_hub_id == self.to_hub_id:
            raise ValueError("Destination must be different from origin")

        if self.type == ManifestType.AIR:
            if not self.flight_number or len(self.flight_number.strip()) < 3:
                raise ValueError("Flight number is required for AIR manifest (min 3 chars)")
            stray = [name for name in _TRUCK_FIELDS if getattr(self, name) is not None]
        else:
            if not self.vehicle_number or len(self.vehicle_number.strip()) < 4:
                raise ValueError("Vehicle number is required for TRUCK manifest (min 4 chars)")
            stray = [name for name in _AIR_FIELDS if getattr(self, name) is not None]

        if stray:
            raise ValueError(f"Fields not allowed on a {self.type.value} manifest: {stray}")
        return self


class ManifestResponse(BaseModel):
    """Full representation of a manifest for API responses."""
    id: UUID
    manifest_no: str
    type: ManifestType
    status: ManifestStatus
    from_hub_id: UUID
    to_hub_id: UUID

    flight_number: Optional[str] = None
    flight_date: Optional[date] = None
    airline_code: Optional[str] = None
    vehicle_number: Optional[str] = None
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    dispatch_at: Optional[datetime] = None
    etd: Optional[datetime] = None
    eta: Optional[datetime] = None
    notes: Optional[str] = None

    total_shipments: int = 0
    total_packages: int = 0
    total_weight: float = 0.0

    created_at: datetime
    created_by: Optional[UUID] = None
    closed_at: Optional[datetime] = None
    closed_by: Optional[UUID] = None
    departed_at: Optional[datetime] = None
    departed_by: Optional[UUID] = None
    arrived_at: Optional[datetime] = None
    arrived_by: Optional[UUID] = None
    reconciled_at: Optional[datetime] = None
    reconciled_by: Optional[UUID] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ManifestTransitionRequest(BaseModel):
    status: ManifestStatus


class ManifestItemShipment(BaseModel):
    id: UUID
    awb_number: str
    status: ShipmentStatus
    receiver_name: Optional[str] = None
    sender_name: Optional[str] = None
    package_count: int
    total_weight: float
    destination_hub_id: Optional[UUID] = None
    model_config = ConfigDict(from_attributes=True)


class ManifestItemResponse(BaseModel):
    id: UUID
    manifest_id: UUID
    shipment_id: UUID
    scanned_by: Optional[UUID] = None
    scanned_at: datetime
    scan_source: ScanSource
    shipment: Optional[ManifestItemShipment] = None
    model_config = ConfigDict(from_attributes=True)


class ManifestTotalsResponse(BaseModel):
    manifest_id: UUID
    total_shipments: int
    total_packages: int
    total_weight: float


class ManifestListResponse(BaseModel):
    items: List[ManifestResponse]
    total: int


class ManifestLabelResponse(BaseModel):
    manifest_id: UUID
    manifest_no: str
    qr_payload: str
