import logging
import uuid
from datetime import datetime
from typing import List, Optional, cast

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from models.manifest import (
    STATUS_CASCADES,
    InvalidTransition,
    Manifest,
    ManifestItem,
    ManifestStatus,
    ManifestType,
)
from schemas.manifest import ManifestCreate
from services.audit_service import AuditService
from services.config_service import get_manifest_number_prefix
from services.hub_service import HubService
from services.totals_service import TotalsService
from services.tracking_service import TrackingService

log = logging.getLogger(__name__)

# Attempts at claiming the next manifest number before giving up
MANIFEST_NUMBER_ATTEMPTS = 5


class ManifestService:
    """Service layer for manifest creation and the status state machine."""

    @staticmethod
    def format_manifest_no(sequence: int, at_time: Optional[datetime] = None) -> str:
        year = (at_time or datetime.utcnow()).year
        return f"{get_manifest_number_prefix()}-{year}-{sequence:06d}"

    @staticmethod
    def _next_sequence(org_id: uuid.UUID, db: Session) -> int:
        current = db.query(func.max(Manifest.sequence)).filter(Manifest.org_id == org_id).scalar()
        return int(current or 0) + 1

    @staticmethod
    def create_manifest(
        org_id: uuid.UUID,
        manifest_data: ManifestCreate,
        user_id: Optional[uuid.UUID],
        db: Session,
    ) -> Manifest:
        """
        Open a new manifest and assign its number.

        Numbers come from the per-org (org_id, sequence) unique constraint: a
        concurrent creator that claims the same sequence makes our insert
        fail, and we retry with the next one.
        """
        HubService.get_hub(org_id, manifest_data.from_hub_id, db)
        HubService.get_hub(org_id, manifest_data.to_hub_id, db)

        data = manifest_data.model_dump()
        for attempt in range(MANIFEST_NUMBER_ATTEMPTS):
            sequence = ManifestService._next_sequence(org_id, db)
            manifest = Manifest(
                org_id=org_id,
                sequence=sequence,
                manifest_no=ManifestService.format_manifest_no(sequence),
                created_by=user_id,
                total_shipments=0,
                total_packages=0,
                total_weight=0.0,
                **data,
            )
            try:
                with db.begin_nested():
                    db.add(manifest)
            except IntegrityError:
                log.warning("Manifest sequence %s taken for org %s, retrying", sequence, org_id)
                continue

            AuditService.create_log(
                db,
                action="manifest.created",
                org_id=org_id,
                entity_type="manifest",
                entity_id=manifest.id,
                actor_id=user_id,
                message=f"Manifest {manifest.manifest_no} created as {manifest.status.value}",
                metadata={"type": manifest.type.value, "manifest_no": manifest.manifest_no},
                commit=False,
            )
            db.commit()
            db.refresh(manifest)
            log.info("Created manifest %s (%s)", manifest.manifest_no, manifest.type.value)
            return manifest

        db.rollback()
        raise HTTPException(status_code=409, detail="Could not allocate a manifest number, please retry")

    @staticmethod
    def get_manifest(org_id: uuid.UUID, manifest_id: str, db: Session) -> Manifest:
        """Fetch a live manifest by ID with UUID validation."""
        try:
            manifest_uuid = uuid.UUID(str(manifest_id))
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid Manifest UUID format")

        manifest = ManifestService.find_manifest(org_id, manifest_uuid, db)
        if not manifest:
            raise HTTPException(status_code=404, detail="Manifest not found")
        return manifest

    @staticmethod
    def find_manifest(org_id: uuid.UUID, manifest_id: uuid.UUID, db: Session) -> Optional[Manifest]:
        return db.query(Manifest).filter(
            Manifest.org_id == org_id,
            Manifest.id == manifest_id,
            Manifest.deleted_at.is_(None),
        ).first()

    @staticmethod
    def get_by_number(org_id: uuid.UUID, manifest_no: str, db: Session) -> Manifest:
        manifest = db.query(Manifest).filter(
            Manifest.org_id == org_id,
            Manifest.manifest_no == manifest_no.strip().upper(),
            Manifest.deleted_at.is_(None),
        ).first()
        if not manifest:
            raise HTTPException(status_code=404, detail="Manifest not found")
        return manifest

    @staticmethod
    def list_manifests(
        org_id: uuid.UUID,
        db: Session,
        status: Optional[ManifestStatus] = None,
        from_hub_id: Optional[uuid.UUID] = None,
        to_hub_id: Optional[uuid.UUID] = None,
        manifest_type: Optional[ManifestType] = None,
        limit: Optional[int] = None,
    ) -> List[Manifest]:
        query = db.query(Manifest).filter(Manifest.org_id == org_id, Manifest.deleted_at.is_(None))

        if status is not None:
            query = query.filter(Manifest.status == status)
        if from_hub_id is not None:
            query = query.filter(Manifest.from_hub_id == from_hub_id)
        if to_hub_id is not None:
            query = query.filter(Manifest.to_hub_id == to_hub_id)
        if manifest_type is not None:
            query = query.filter(Manifest.type == manifest_type)

        query = query.order_by(Manifest.created_at.desc(), Manifest.sequence.desc())
        if limit:
            query = query.limit(limit)
        return query.all()

    @staticmethod
    def list_items(manifest: Manifest, db: Session) -> List[ManifestItem]:
        return (
            db.query(ManifestItem)
            .options(joinedload(ManifestItem.shipment))
            .filter(ManifestItem.manifest_id == manifest.id)
            .order_by(ManifestItem.scanned_at.desc())
            .all()
        )

    @staticmethod
    def _apply_cascade(manifest: Manifest, new_status: ManifestStatus, user_id: Optional[uuid.UUID], db: Session) -> int:
        """Advance member shipments and emit one tracking event per shipment."""
        shipment_status, event_code = STATUS_CASCADES[new_status]
        hub_id = manifest.from_hub_id if new_status == ManifestStatus.DEPARTED else manifest.to_hub_id

        emitted = 0
        for item in ManifestService.list_items(manifest, db):
            shipment = item.shipment
            shipment.status = shipment_status
            shipment.updated_at = datetime.utcnow()
            if TrackingService.emit_manifest_event(manifest, shipment, event_code, hub_id, user_id, db):
                emitted += 1
        return emitted

    @staticmethod
    def transition_status(
        org_id: uuid.UUID,
        manifest_id: str,
        new_status: ManifestStatus,
        user_id: Optional[uuid.UUID],
        db: Session,
    ) -> Manifest:
        """
        Move a manifest to new_status and apply that status's side effects.

        The status row is updated with a compare-and-swap on the status we
        read, so of two racing transitions only one applies. The status
        change, shipment cascade and tracking events commit together.
        """
        manifest = ManifestService.get_manifest(org_id, manifest_id, db)
        observed = cast(ManifestStatus, manifest.status)

        try:
            changes = manifest.transition_changes(new_status, user_id)
        except InvalidTransition:
            log.warning(
                "Refused transition of manifest %s from %s to %s",
                manifest.manifest_no, observed.value, new_status.value,
            )
            raise

        try:
            updated = db.query(Manifest).filter(
                Manifest.id == manifest.id,
                Manifest.status == observed,
            ).update(changes, synchronize_session=False)
            if updated != 1:
                db.rollback()
                db.refresh(manifest)
                raise InvalidTransition(cast(ManifestStatus, manifest.status), new_status)

            emitted = 0
            if new_status == ManifestStatus.CLOSED:
                TotalsService.recompute(manifest.id, db, commit=False)
            elif new_status in STATUS_CASCADES:
                emitted = ManifestService._apply_cascade(manifest, new_status, user_id, db)

            AuditService.create_log(
                db,
                action=f"manifest.{new_status.value.lower()}",
                org_id=org_id,
                entity_type="manifest",
                entity_id=manifest.id,
                actor_id=user_id,
                message=f"Manifest {manifest.manifest_no}: {observed.value} -> {new_status.value}",
                metadata={"from": observed.value, "to": new_status.value, "tracking_events": emitted},
                commit=False,
            )
            db.commit()
        except InvalidTransition:
            raise
        except Exception as exc:
            db.rollback()
            log.error("Transition of manifest %s to %s failed: %s", manifest_id, new_status.value, exc, exc_info=True)
            raise

        db.refresh(manifest)
        log.info(
            "Manifest %s moved %s -> %s (%s tracking events)",
            manifest.manifest_no, observed.value, new_status.value, emitted,
        )
        return manifest

    @staticmethod
    def retire_manifest(org_id: uuid.UUID, manifest_id: str, user_id: Optional[uuid.UUID], db: Session) -> Manifest:
        """Soft-retire an editable manifest that has no items."""
        manifest = ManifestService.get_manifest(org_id, manifest_id, db)
        manifest.ensure_editable()

        item_count = db.query(ManifestItem).filter(ManifestItem.manifest_id == manifest.id).count()
        if item_count:
            raise HTTPException(
                status_code=409,
                detail=f"Manifest still holds {item_count} shipment(s); remove them first",
            )

        manifest.deleted_at = datetime.utcnow()
        AuditService.create_log(
            db,
            action="manifest.retired",
            org_id=org_id,
            entity_type="manifest",
            entity_id=manifest.id,
            actor_id=user_id,
            message=f"Manifest {manifest.manifest_no} retired",
            commit=False,
        )
        db.commit()
        db.refresh(manifest)
        return manifest
