from uuid import UUID
from typing import cast

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from core.database import get_db
from core.security import get_current_user
from models.user import User
from schemas.shipment import ShipmentCreate, ShipmentLabelResponse, ShipmentResponse, TrackingEventResponse
from services.scan_token import InvalidScanToken, build_shipment_qr_payload, extract_scan_token
from services.shipment_service import ShipmentService
from services.tracking_service import TrackingService

router = APIRouter(prefix="/shipments", tags=["shipments"])


@router.post("/", response_model=ShipmentResponse)
def create_shipment(
    shipment: ShipmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Book a shipment so it can be scanned onto manifests."""
    return ShipmentService.create_shipment(cast(UUID, current_user.org_id), shipment, db)


@router.get("/lookup/{token}", response_model=ShipmentResponse)
def lookup_shipment(
    token: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Resolve a raw AWB or QR token the same way a scan would."""
    try:
        normalized = extract_scan_token(token)
    except InvalidScanToken as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    shipment = ShipmentService.resolve_token(cast(UUID, current_user.org_id), normalized, db)
    if shipment is None:
        raise HTTPException(status_code=404, detail=f"No shipment found matching: {normalized}")
    return shipment


@router.get("/{shipment_id}", response_model=ShipmentResponse)
def get_shipment(
    shipment_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return ShipmentService.get_shipment(cast(UUID, current_user.org_id), shipment_id, db)


@router.get("/{shipment_id}/tracking", response_model=list[TrackingEventResponse])
def get_tracking(
    shipment_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Tracking events for a shipment, newest first."""
    org_id = cast(UUID, current_user.org_id)
    shipment = ShipmentService.get_shipment(org_id, shipment_id, db)
    return TrackingService.list_for_shipment(org_id, shipment.id, db)


@router.get("/{shipment_id}/label", response_model=ShipmentLabelResponse)
def get_shipment_label(
    shipment_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """QR payload printed on the shipment label; scans read it back."""
    shipment = ShipmentService.get_shipment(cast(UUID, current_user.org_id), shipment_id, db)
    return {
        "shipment_id": shipment.id,
        "awb_number": shipment.awb_number,
        "qr_payload": build_shipment_qr_payload(shipment.awb_number),
    }
