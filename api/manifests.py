import asyncio
import logging
from contextlib import suppress
from threading import Event
from typing import Optional, cast
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from api.dependencies import require_operator, require_supervisor
from core.database import get_db
from core.security import get_current_user
from models.manifest import InvalidTransition, ManifestNotEditable, ManifestStatus, ManifestType
from models.scan_log import ScanResult
from models.user import User
from schemas.manifest import (
    ManifestCreate,
    ManifestItemResponse,
    ManifestLabelResponse,
    ManifestListResponse,
    ManifestResponse,
    ManifestTotalsResponse,
    ManifestTransitionRequest,
)
from schemas.scan import (
    RemoveShipmentResponse,
    ScanLogListResponse,
    ScanOutcomeResponse,
    ScanRequest,
    ScanSummaryResponse,
)
from schemas.shipment import ShipmentResponse
from services.config_service import get_scan_log_max_limit
from services.manifest_service import ManifestService
from services.scan_service import ScanService
from services.scan_token import build_manifest_qr_payload
from services.shipment_service import ShipmentService
from services.totals_service import TotalsService

log = logging.getLogger(__name__)

router = APIRouter(prefix="/manifests", tags=["manifests"])

# How often an in-flight scan checks whether the terminal hung up
DISCONNECT_POLL_SECONDS = 0.2


async def _cancel_on_disconnect(request: Request, cancel_event: Event) -> None:
    while not cancel_event.is_set():
        if await request.is_disconnected():
            log.info("Client disconnected during scan on %s, cancelling", request.url.path)
            cancel_event.set()
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


@router.post("/", response_model=ManifestResponse)
def create_manifest(
    manifest: ManifestCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_operator)
):
    """Open a new AIR or TRUCK manifest."""
    return ManifestService.create_manifest(
        cast(UUID, current_user.org_id), manifest, cast(UUID, current_user.id), db
    )


@router.get("/", response_model=ManifestListResponse)
def list_manifests(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    status: Optional[ManifestStatus] = Query(default=None),
    from_hub_id: Optional[UUID] = Query(default=None),
    to_hub_id: Optional[UUID] = Query(default=None),
    type: Optional[ManifestType] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1, le=500),
):
    manifests = ManifestService.list_manifests(
        cast(UUID, current_user.org_id),
        db,
        status=status,
        from_hub_id=from_hub_id,
        to_hub_id=to_hub_id,
        manifest_type=type,
        limit=limit,
    )
    return {"items": manifests, "total": len(manifests)}


@router.get("/by-number/{manifest_no}", response_model=ManifestResponse)
def get_manifest_by_number(
    manifest_no: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return ManifestService.get_by_number(cast(UUID, current_user.org_id), manifest_no, db)


@router.get("/{manifest_id}", response_model=ManifestResponse)
def get_manifest(
    manifest_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return ManifestService.get_manifest(cast(UUID, current_user.org_id), manifest_id, db)


@router.get("/{manifest_id}/next-states", response_model=list[ManifestStatus])
def get_next_states(
    manifest_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Statuses the manifest may move to from where it is now."""
    manifest = ManifestService.get_manifest(cast(UUID, current_user.org_id), manifest_id, db)
    return manifest.get_valid_next_states()


@router.get("/{manifest_id}/items", response_model=list[ManifestItemResponse])
def list_manifest_items(
    manifest_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Current members of the manifest with shipment detail, newest scan first."""
    manifest = ManifestService.get_manifest(cast(UUID, current_user.org_id), manifest_id, db)
    return ManifestService.list_items(manifest, db)


@router.get("/{manifest_id}/available-shipments", response_model=list[ShipmentResponse])
def list_available_shipments(
    manifest_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    only_ready: bool = Query(default=True),
    match_destination: bool = Query(default=True),
):
    """Shipments waiting at the manifest's origin hub that could be scanned onto it."""
    org_id = cast(UUID, current_user.org_id)
    manifest = ManifestService.get_manifest(org_id, manifest_id, db)
    return ShipmentService.list_available(
        org_id,
        manifest.from_hub_id,
        db,
        destination_hub_id=manifest.to_hub_id if match_destination else None,
        only_ready=only_ready,
    )


@router.get("/{manifest_id}/label", response_model=ManifestLabelResponse)
def get_manifest_label(
    manifest_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """QR payload printed on the manifest cover sheet."""
    manifest = ManifestService.get_manifest(cast(UUID, current_user.org_id), manifest_id, db)
    payload = build_manifest_qr_payload(
        str(manifest.id), manifest.manifest_no, manifest.from_hub.code, manifest.to_hub.code
    )
    return {"manifest_id": manifest.id, "manifest_no": manifest.manifest_no, "qr_payload": payload}


@router.post("/{manifest_id}/scan", response_model=ScanOutcomeResponse)
async def scan_into_manifest(
    manifest_id: str,
    payload: ScanRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_operator)
):
    """
    Scan one AWB or QR token into a manifest.

    Rejections come back as 200 with success=false so terminals can show
    the reason. If the client disconnects before the scan commits, nothing
    is written except a CANCELLED scan log row.
    """
    cancel_event = Event()
    watcher = asyncio.create_task(_cancel_on_disconnect(request, cancel_event))
    try:
        outcome = await asyncio.to_thread(
            ScanService.ingest_scan,
            cast(UUID, current_user.org_id),
            manifest_id,
            payload.token,
            cast(UUID, current_user.id),
            payload.source,
            db,
            payload.validate_destination,
            payload.validate_status,
            cancel_event,
        )
    finally:
        watcher.cancel()
        with suppress(asyncio.CancelledError):
            await watcher

    return outcome.to_dict()


@router.delete("/{manifest_id}/items/{shipment_id}", response_model=RemoveShipmentResponse)
def remove_shipment(
    manifest_id: str,
    shipment_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_operator)
):
    """Take a shipment off an editable manifest."""
    try:
        return ScanService.remove_shipment(
            cast(UUID, current_user.org_id), manifest_id, shipment_id, cast(UUID, current_user.id), db
        )
    except ManifestNotEditable as exc:
        raise HTTPException(status_code=409, detail=str(exc))


@router.post("/{manifest_id}/transition", response_model=ManifestResponse)
def transition_manifest(
    manifest_id: str,
    payload: ManifestTransitionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_operator)
):
    """Move a manifest through its lifecycle (close, depart, arrive, reconcile)."""
    try:
        return ManifestService.transition_status(
            cast(UUID, current_user.org_id), manifest_id, payload.status, cast(UUID, current_user.id), db
        )
    except InvalidTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc))


@router.post("/{manifest_id}/recompute-totals", response_model=ManifestTotalsResponse)
def recompute_manifest_totals(
    manifest_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_supervisor)
):
    """Rebuild stored totals from current membership."""
    manifest = ManifestService.get_manifest(cast(UUID, current_user.org_id), manifest_id, db)
    totals = TotalsService.recompute(manifest.id, db)
    return {"manifest_id": manifest.id, **totals}


@router.get("/{manifest_id}/scan-logs", response_model=ScanLogListResponse)
def list_scan_logs(
    manifest_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    limit: int = Query(default=100, ge=1),
    offset: int = Query(default=0, ge=0),
    result: Optional[ScanResult] = Query(default=None),
):
    org_id = cast(UUID, current_user.org_id)
    manifest = ManifestService.get_manifest(org_id, manifest_id, db)
    total, logs = ScanService.list_scan_logs(
        org_id,
        manifest.id,
        db,
        limit=min(limit, get_scan_log_max_limit()),
        offset=offset,
        result=result,
    )
    return {"total": total, "count": len(logs), "logs": logs}


@router.get("/{manifest_id}/scan-summary", response_model=ScanSummaryResponse)
def get_scan_summary(
    manifest_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    org_id = cast(UUID, current_user.org_id)
    manifest = ManifestService.get_manifest(org_id, manifest_id, db)
    return ScanService.summarize_scan_logs(org_id, manifest.id, db)


@router.delete("/{manifest_id}")
def retire_manifest(
    manifest_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_supervisor)
):
    """Soft-retire an empty manifest that has not been closed."""
    try:
        manifest = ManifestService.retire_manifest(
            cast(UUID, current_user.org_id), manifest_id, cast(UUID, current_user.id), db
        )
    except ManifestNotEditable as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return {"retired": True, "manifest_no": manifest.manifest_no}
