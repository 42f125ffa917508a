"""
Scan ingestion: attaches scanned shipments to a manifest.

Every attempt ends in exactly one classified ScanOutcome and exactly one
ManifestScanLog row. Correctness under concurrent terminals comes from
storage, not from in-process locks:

- the (manifest_id, shipment_id) unique constraint on manifest_items makes
  the insert idempotent; losing that race is reported as a duplicate success;
- a compare-and-swap on shipments.manifest_id keeps a shipment on at most
  one active manifest;
- a conditional touch of the manifest row keeps scans from landing on a
  manifest that was closed after we read it.
"""
import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime
from threading import Event
from typing import Optional, Union, cast

from fastapi import HTTPException
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.manifest import (
    EDITABLE_STATUSES,
    Manifest,
    ManifestItem,
    ManifestNotEditable,
    ManifestStatus,
    ScanSource,
)
from models.scan_log import SUCCESS_RESULTS, ManifestScanLog, ScanResult
from models.shipment import Shipment, ShipmentStatus
from services.audit_service import AuditService
from services.config_service import resolve_validation_flags
from services.eligibility_service import EligibilityService
from services.manifest_service import ManifestService
from services.scan_token import InvalidScanToken, extract_scan_token
from services.shipment_service import ShipmentService
from services.totals_service import TotalsService

log = logging.getLogger(__name__)


class ScanCancelled(Exception):
    """The caller went away before the scan committed."""


class _ManifestLocked(Exception):
    pass


class _ShipmentClaimed(Exception):
    pass


@dataclass
class ScanOutcome:
    result: ScanResult
    message: str
    normalized_token: Optional[str] = None
    shipment_id: Optional[uuid.UUID] = None
    awb_number: Optional[str] = None
    manifest_item_id: Optional[uuid.UUID] = None
    current_status: Optional[ShipmentStatus] = None
    conflicting_manifest_no: Optional[str] = None
    receiver_name: Optional[str] = None
    sender_name: Optional[str] = None
    package_count: Optional[int] = None
    total_weight: Optional[float] = None
    manifest_total_shipments: Optional[int] = None
    manifest_total_packages: Optional[int] = None
    manifest_total_weight: Optional[float] = None

    @property
    def success(self) -> bool:
        return self.result in SUCCESS_RESULTS

    @property
    def duplicate(self) -> bool:
        return self.result == ScanResult.SUCCESS_DUPLICATE

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload["success"] = self.success
        payload["duplicate"] = self.duplicate
        return payload


def _checkpoint(cancel_event: Optional[Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise ScanCancelled()


def _parse_uuid(value: Union[str, uuid.UUID, None]) -> Optional[uuid.UUID]:
    if value is None or isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class ScanService:

    @staticmethod
    def find_item(manifest_id: uuid.UUID, shipment_id: uuid.UUID, db: Session) -> Optional[ManifestItem]:
        return db.query(ManifestItem).filter(
            ManifestItem.manifest_id == manifest_id,
            ManifestItem.shipment_id == shipment_id,
        ).first()

    @staticmethod
    def _lock_editable(manifest: Manifest, db: Session) -> bool:
        """Touch the manifest row only if it is still editable."""
        updated = db.query(Manifest).filter(
            Manifest.id == manifest.id,
            Manifest.status.in_(list(EDITABLE_STATUSES)),
            Manifest.deleted_at.is_(None),
        ).update({"updated_at": datetime.utcnow()}, synchronize_session=False)
        return updated == 1

    @staticmethod
    def _claim_shipment(manifest: Manifest, shipment: Shipment, db: Session) -> bool:
        """
        Compare-and-swap the shipment onto this manifest.

        Succeeds only if the shipment is unassigned, already ours, or still
        points at a manifest that has arrived or been retired.
        """
        released = ShipmentService.released_manifest_ids()
        updated = db.query(Shipment).filter(
            Shipment.id == shipment.id,
            or_(
                Shipment.manifest_id.is_(None),
                Shipment.manifest_id == manifest.id,
                Shipment.manifest_id.in_(released),
            ),
        ).update(
            {
                "manifest_id": manifest.id,
                "status": ShipmentStatus.MANIFESTED,
                "updated_at": datetime.utcnow(),
            },
            synchronize_session=False,
        )
        return updated == 1

    @staticmethod
    def _duplicate(manifest: Manifest, shipment: Shipment, item: ManifestItem, concurrent: bool = False) -> ScanOutcome:
        return ScanOutcome(
            result=ScanResult.SUCCESS_DUPLICATE,
            message="Shipment already in manifest (concurrent scan)" if concurrent else "Shipment already in manifest",
            shipment_id=shipment.id,
            awb_number=shipment.awb_number,
            manifest_item_id=item.id,
            manifest_total_shipments=manifest.total_shipments,
            manifest_total_packages=manifest.total_packages,
            manifest_total_weight=manifest.total_weight,
        )

    @staticmethod
    def _attach(
        org_id: uuid.UUID,
        manifest_id: Optional[uuid.UUID],
        token: str,
        actor_id: Optional[uuid.UUID],
        source: ScanSource,
        db: Session,
        validate_destination: bool,
        validate_status: bool,
        cancel_event: Optional[Event],
    ) -> ScanOutcome:
        """Run one scan inside the current transaction, without committing."""
        _checkpoint(cancel_event)
        manifest = ManifestService.find_manifest(org_id, manifest_id, db) if manifest_id else None
        if manifest is None:
            return ScanOutcome(ScanResult.MANIFEST_NOT_FOUND, "Manifest not found or access denied")
        if not manifest.is_editable:
            return ScanOutcome(
                ScanResult.MANIFEST_CLOSED,
                f"Cannot add items to manifest {manifest.manifest_no} ({manifest.status.value})",
            )

        _checkpoint(cancel_event)
        shipment = ShipmentService.resolve_token(org_id, token, db)
        if shipment is None:
            return ScanOutcome(ScanResult.NOT_FOUND, f"No shipment found matching: {token}")

        # Re-scans are checked before eligibility: a manifested shipment
        # would otherwise fail the status rule on its own manifest.
        existing = ScanService.find_item(manifest.id, shipment.id, db)
        if existing is not None:
            return ScanService._duplicate(manifest, shipment, existing)

        eligibility = EligibilityService.evaluate(
            shipment, manifest, db,
            validate_destination=validate_destination,
            validate_status=validate_status,
        )
        if not eligibility.eligible:
            return ScanOutcome(
                result=cast(ScanResult, eligibility.result),
                message=eligibility.message,
                shipment_id=shipment.id,
                awb_number=shipment.awb_number,
                current_status=eligibility.current_status,
                conflicting_manifest_no=eligibility.conflicting_manifest_no,
            )

        _checkpoint(cancel_event)
        item = ManifestItem(
            org_id=org_id,
            manifest_id=manifest.id,
            shipment_id=shipment.id,
            scanned_by=actor_id,
            scanned_at=datetime.utcnow(),
            scan_source=source,
            prior_shipment_status=shipment.status,
        )
        try:
            with db.begin_nested():
                if not ScanService._lock_editable(manifest, db):
                    raise _ManifestLocked()
                db.add(item)
                db.flush()
                if not ScanService._claim_shipment(manifest, shipment, db):
                    raise _ShipmentClaimed()
        except IntegrityError:
            winner = ScanService.find_item(manifest.id, shipment.id, db)
            if winner is None:
                raise
            return ScanService._duplicate(manifest, shipment, winner, concurrent=True)
        except _ManifestLocked:
            db.refresh(manifest)
            return ScanOutcome(
                ScanResult.MANIFEST_CLOSED,
                f"Manifest {manifest.manifest_no} was closed while scanning ({manifest.status.value})",
                shipment_id=shipment.id,
                awb_number=shipment.awb_number,
            )
        except _ShipmentClaimed:
            return ScanOutcome(
                ScanResult.ALREADY_MANIFESTED,
                "Shipment was claimed by another manifest while scanning",
                shipment_id=shipment.id,
                awb_number=shipment.awb_number,
            )

        totals = TotalsService.recompute(manifest.id, db, commit=False)
        return ScanOutcome(
            result=ScanResult.SUCCESS,
            message="Shipment added to manifest",
            shipment_id=shipment.id,
            awb_number=shipment.awb_number,
            manifest_item_id=item.id,
            receiver_name=shipment.receiver_name,
            sender_name=shipment.sender_name,
            package_count=shipment.package_count,
            total_weight=shipment.total_weight,
            manifest_total_shipments=totals["total_shipments"],
            manifest_total_packages=totals["total_packages"],
            manifest_total_weight=totals["total_weight"],
        )

    @staticmethod
    def ingest_scan(
        org_id: uuid.UUID,
        manifest_id: Union[str, uuid.UUID],
        raw_token: str,
        actor_id: Optional[uuid.UUID],
        source: ScanSource,
        db: Session,
        validate_destination: Optional[bool] = None,
        validate_status: Optional[bool] = None,
        cancel_event: Optional[Event] = None,
    ) -> ScanOutcome:
        """
        Scan one token into a manifest. Safe to call repeatedly with the
        same arguments: repeats come back as SUCCESS_DUPLICATE.

        Validation flags left as None fall back to configuration. Setting
        cancel_event before the commit rolls everything back and yields
        CANCELLED.
        """
        validate_destination, validate_status = resolve_validation_flags(validate_destination, validate_status)
        manifest_uuid = _parse_uuid(manifest_id)
        raw = raw_token or ""

        normalized: Optional[str] = None
        try:
            normalized = extract_scan_token(raw)
        except InvalidScanToken as exc:
            outcome = ScanOutcome(ScanResult.INVALID_TOKEN, str(exc))
        else:
            try:
                outcome = ScanService._attach(
                    org_id, manifest_uuid, normalized, actor_id, source, db,
                    validate_destination, validate_status, cancel_event,
                )
                _checkpoint(cancel_event)
            except ScanCancelled:
                db.rollback()
                outcome = ScanOutcome(ScanResult.CANCELLED, "Scan was cancelled before it completed")
            except Exception as exc:
                db.rollback()
                log.error("Scan of %r into manifest %s failed: %s", raw, manifest_id, exc, exc_info=True)
                raise

        outcome.normalized_token = normalized
        try:
            db.add(ManifestScanLog(
                org_id=org_id,
                manifest_id=manifest_uuid,
                shipment_id=outcome.shipment_id if outcome.result != ScanResult.CANCELLED else None,
                raw_scan_token=raw[:512],
                normalized_token=normalized,
                scan_result=outcome.result,
                scanned_by=actor_id,
                scan_source=source,
                error_message=None if outcome.success or outcome.result == ScanResult.CANCELLED else outcome.message,
            ))
            db.commit()
        except Exception as exc:
            db.rollback()
            log.error("Could not record scan of %r into manifest %s: %s", raw, manifest_id, exc, exc_info=True)
            raise

        if outcome.result == ScanResult.SUCCESS:
            log.info("Scanned %s into manifest %s", outcome.awb_number, manifest_id)
        elif outcome.success or outcome.result == ScanResult.CANCELLED:
            log.debug("Scan %r into manifest %s: %s", raw, manifest_id, outcome.result.value)
        else:
            log.warning("Rejected scan %r into manifest %s: %s (%s)", raw, manifest_id, outcome.result.value, outcome.message)
        return outcome

    @staticmethod
    def remove_shipment(
        org_id: uuid.UUID,
        manifest_id: str,
        shipment_id: str,
        actor_id: Optional[uuid.UUID],
        db: Session,
    ) -> dict:
        """
        Take a shipment off an editable manifest and restore its prior status.

        Removing a shipment that is not on the manifest is a no-op.
        """
        manifest = ManifestService.get_manifest(org_id, manifest_id, db)
        manifest.ensure_editable()

        shipment_uuid = _parse_uuid(shipment_id)
        if shipment_uuid is None:
            raise HTTPException(status_code=400, detail="Invalid Shipment UUID format")

        item = ScanService.find_item(manifest.id, shipment_uuid, db)
        if item is None:
            return {"removed": False}

        try:
            if not ScanService._lock_editable(manifest, db):
                db.rollback()
                db.refresh(manifest)
                raise ManifestNotEditable(str(manifest.manifest_no), cast(ManifestStatus, manifest.status))

            restored = item.prior_shipment_status or ShipmentStatus.RECEIVED_AT_ORIGIN
            db.delete(item)
            db.query(Shipment).filter(
                Shipment.id == shipment_uuid,
                Shipment.manifest_id == manifest.id,
            ).update(
                {"manifest_id": None, "status": restored, "updated_at": datetime.utcnow()},
                synchronize_session=False,
            )
            db.flush()
            TotalsService.recompute(manifest.id, db, commit=False)
            AuditService.create_log(
                db,
                action="manifest.item_removed",
                org_id=org_id,
                entity_type="manifest",
                entity_id=manifest.id,
                actor_id=actor_id,
                message=f"Shipment {shipment_uuid} removed from manifest {manifest.manifest_no}",
                metadata={"shipment_id": str(shipment_uuid), "restored_status": restored.value},
                commit=False,
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        log.info("Removed shipment %s from manifest %s", shipment_uuid, manifest.manifest_no)
        return {"removed": True}

    @staticmethod
    def list_scan_logs(
        org_id: uuid.UUID,
        manifest_id: uuid.UUID,
        db: Session,
        limit: int = 100,
        offset: int = 0,
        result: Optional[ScanResult] = None,
    ) -> tuple[int, list[ManifestScanLog]]:
        query = db.query(ManifestScanLog).filter(
            ManifestScanLog.org_id == org_id,
            ManifestScanLog.manifest_id == manifest_id,
        )
        if result is not None:
            query = query.filter(ManifestScanLog.scan_result == result)

        total = query.count()
        logs = query.order_by(ManifestScanLog.created_at.desc()).offset(offset).limit(limit).all()
        return total, logs

    @staticmethod
    def summarize_scan_logs(org_id: uuid.UUID, manifest_id: uuid.UUID, db: Session) -> dict:
        rows = (
            db.query(ManifestScanLog.scan_result, func.count(ManifestScanLog.id))
            .filter(ManifestScanLog.org_id == org_id, ManifestScanLog.manifest_id == manifest_id)
            .group_by(ManifestScanLog.scan_result)
            .all()
        )
        by_result = {result.value: 0 for result in ScanResult}
        for result, count in rows:
            by_result[result.value] = int(count)

        success = by_result[ScanResult.SUCCESS.value]
        duplicate = by_result[ScanResult.SUCCESS_DUPLICATE.value]
        cancelled = by_result[ScanResult.CANCELLED.value]
        scan_count = sum(by_result.values())
        return {
            "manifest_id": manifest_id,
            "scan_count": scan_count,
            "success_count": success,
            "duplicate_count": duplicate,
            "error_count": scan_count - success - duplicate - cancelled,
            "by_result": by_result,
        }
