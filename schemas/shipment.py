"""
Pydantic schemas for the shipment store and tracking events.
"""
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.shipment import ShipmentStatus
from services.scan_token import normalize_scan_token


class ShipmentCreate(BaseModel):
    awb_number: str = Field(..., min_length=3, max_length=32)
    origin_hub_id: Optional[UUID] = None
    destination_hub_id: Optional[UUID] = None
    package_count: int = Field(1, ge=1)
    total_weight: float = Field(0.0, ge=0)
    receiver_name: Optional[str] = Field(None, max_length=120)
    sender_name: Optional[str] = Field(None, max_length=120)
    status: ShipmentStatus = ShipmentStatus.CREATED

    @field_validator("awb_number", mode="before")
    @classmethod
    def normalize_awb(cls, v: str) -> str:
        """Store AWBs in the same canonical form scans are normalized to."""
        if not isinstance(v, str):
            raise ValueError("AWB number must be a string")
        normalized = normalize_scan_token(v)
        if not normalized:
            raise ValueError("AWB number cannot be blank")
        return normalized


class ShipmentResponse(BaseModel):
    id: UUID
    awb_number: str
    status: ShipmentStatus
    origin_hub_id: Optional[UUID] = None
    destination_hub_id: Optional[UUID] = None
    package_count: int
    total_weight: float
    receiver_name: Optional[str] = None
    sender_name: Optional[str] = None
    manifest_id: Optional[UUID] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class TrackingEventResponse(BaseModel):
    id: UUID
    shipment_id: UUID
    manifest_id: Optional[UUID] = None
    awb_number: str
    event_code: str
    hub_id: Optional[UUID] = None
    actor_id: Optional[UUID] = None
    source: str
    meta: dict[str, Any] = {}
    event_time: datetime
    model_config = ConfigDict(from_attributes=True)


class ShipmentLabelResponse(BaseModel):
    shipment_id: UUID
    awb_number: str
    qr_payload: str
