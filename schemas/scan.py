from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from models.manifest import ScanSource
from models.scan_log import ScanResult
from models.shipment import ShipmentStatus


class ScanRequest(BaseModel):
    """One decoded barcode / QR token from a warehouse terminal."""
    token: str = Field(..., min_length=1, max_length=512)
    source: ScanSource = ScanSource.MANUAL
    validate_destination: Optional[bool] = Field(
        None, description="Check destination hub; defaults to DEFAULT_VALIDATE_DESTINATION"
    )
    validate_status: Optional[bool] = Field(
        None, description="Check shipment status; defaults to DEFAULT_VALIDATE_STATUS"
    )


class ScanOutcomeResponse(BaseModel):
    result: ScanResult
    success: bool
    duplicate: bool = False
    message: str
    normalized_token: Optional[str] = None
    shipment_id: Optional[UUID] = None
    awb_number: Optional[str] = None
    manifest_item_id: Optional[UUID] = None
    current_status: Optional[ShipmentStatus] = None
    conflicting_manifest_no: Optional[str] = None
    receiver_name: Optional[str] = None
    sender_name: Optional[str] = None
    package_count: Optional[int] = None
    total_weight: Optional[float] = None
    manifest_total_shipments: Optional[int] = None
    manifest_total_packages: Optional[int] = None
    manifest_total_weight: Optional[float] = None


class RemoveShipmentResponse(BaseModel):
    removed: bool


class ScanLogResponse(BaseModel):
    id: UUID
    manifest_id: Optional[UUID] = None
    shipment_id: Optional[UUID] = None
    raw_scan_token: str
    normalized_token: Optional[str] = None
    scan_result: ScanResult
    scanned_by: Optional[UUID] = None
    scan_source: ScanSource
    error_message: Optional[str] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class ScanLogListResponse(BaseModel):
    total: int
    count: int
    logs: list[ScanLogResponse]


class ScanSummaryResponse(BaseModel):
    manifest_id: UUID
    scan_count: int
    success_count: int
    duplicate_count: int
    error_count: int
    by_result: dict[str, int]
