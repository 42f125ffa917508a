import json
import logging
import uuid
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.manifest import Manifest
from models.shipment import Shipment
from models.tracking_event import TrackingEvent

log = logging.getLogger(__name__)


class TrackingService:
    """Idempotent sink for shipment tracking events."""

    @staticmethod
    def find_event(
        manifest_id: uuid.UUID,
        shipment_id: uuid.UUID,
        event_code: str,
        db: Session,
    ) -> Optional[TrackingEvent]:
        return db.query(TrackingEvent).filter(
            TrackingEvent.manifest_id == manifest_id,
            TrackingEvent.shipment_id == shipment_id,
            TrackingEvent.event_code == event_code,
        ).first()

    @staticmethod
    def emit_manifest_event(
        manifest: Manifest,
        shipment: Shipment,
        event_code: str,
        hub_id: Optional[uuid.UUID],
        actor_id: Optional[uuid.UUID],
        db: Session,
    ) -> bool:
        """
        Append one event keyed by (manifest, shipment, event_code).

        Returns False when the key already exists. Does not commit; the
        caller owns the transaction.
        """
        manifest_id = manifest.id
        shipment_id = shipment.id
        if TrackingService.find_event(manifest_id, shipment_id, event_code, db):
            return False

        event = TrackingEvent(
            org_id=manifest.org_id,
            shipment_id=shipment_id,
            manifest_id=manifest_id,
            awb_number=shipment.awb_number,
            event_code=event_code,
            hub_id=hub_id,
            actor_id=actor_id,
            source="SYSTEM",
            meta_json=json.dumps({"manifest_no": manifest.manifest_no}),
        )
        try:
            with db.begin_nested():
                db.add(event)
        except IntegrityError:
            log.info(
                "Tracking event %s for shipment %s on manifest %s already recorded",
                event_code, shipment_id, manifest.manifest_no,
            )
            return False
        return True

    @staticmethod
    def list_for_shipment(org_id: uuid.UUID, shipment_id: uuid.UUID, db: Session) -> List[TrackingEvent]:
        return (
            db.query(TrackingEvent)
            .filter(TrackingEvent.org_id == org_id, TrackingEvent.shipment_id == shipment_id)
            .order_by(TrackingEvent.event_time.desc())
            .all()
        )
