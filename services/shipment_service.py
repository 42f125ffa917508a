"""
Shipment store used by the manifest engine.
"""
import uuid
from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from models.manifest import RELEASED_STATUSES, Manifest
from models.shipment import PRE_MANIFEST_STATUSES, Shipment, ShipmentStatus
from schemas.shipment import ShipmentCreate
from services.hub_service import HubService
from services.scan_token import parse_shipment_uuid

# Never offered as manifest candidates, even with only_ready off
CLOSED_SHIPMENT_STATUSES = [ShipmentStatus.CANCELLED, ShipmentStatus.DELIVERED]


class ShipmentService:

    @staticmethod
    def create_shipment(org_id: uuid.UUID, shipment_data: ShipmentCreate, db: Session) -> Shipment:
        existing = db.query(Shipment).filter(
            Shipment.org_id == org_id,
            Shipment.awb_number == shipment_data.awb_number,
        ).first()
        if existing:
            raise HTTPException(status_code=400, detail="Shipment with this AWB already exists.")

        for hub_id in (shipment_data.origin_hub_id, shipment_data.destination_hub_id):
            if hub_id is not None:
                HubService.get_hub(org_id, hub_id, db)

        shipment = Shipment(org_id=org_id, **shipment_data.model_dump())
        db.add(shipment)
        db.commit()
        db.refresh(shipment)
        return shipment

    @staticmethod
    def get_shipment(org_id: uuid.UUID, shipment_id: str, db: Session) -> Shipment:
        """Fetch shipment by ID with UUID validation."""
        try:
            shipment_uuid = uuid.UUID(str(shipment_id))
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid Shipment UUID format")

        shipment = db.query(Shipment).filter(
            Shipment.org_id == org_id,
            Shipment.id == shipment_uuid,
            Shipment.deleted_at.is_(None),
        ).first()
        if not shipment:
            raise HTTPException(status_code=404, detail="Shipment not found")
        return shipment

    @staticmethod
    def find_by_token(org_id: uuid.UUID, token: str, db: Session) -> List[Shipment]:
        """
        Shipments a normalized scan token could refer to.

        Tokens match on AWB number or, when the token is a UUID, on id.
        Callers treat anything other than exactly one match as not found.
        """
        if not token:
            return []

        conditions = [Shipment.awb_number == token]
        shipment_uuid = parse_shipment_uuid(token)
        if shipment_uuid is not None:
            conditions.append(Shipment.id == shipment_uuid)

        return (
            db.query(Shipment)
            .filter(
                Shipment.org_id == org_id,
                Shipment.deleted_at.is_(None),
                or_(*conditions),
            )
            .limit(2)
            .all()
        )

    @staticmethod
    def resolve_token(org_id: uuid.UUID, token: str, db: Session) -> Optional[Shipment]:
        matches = ShipmentService.find_by_token(org_id, token, db)
        return matches[0] if len(matches) == 1 else None

    @staticmethod
    def released_manifest_ids():
        """Manifests that no longer hold their members: arrived, reconciled or retired."""
        return select(Manifest.id).where(
            or_(Manifest.status.in_(RELEASED_STATUSES), Manifest.deleted_at.isnot(None))
        )

    @staticmethod
    def list_available(
        org_id: uuid.UUID,
        origin_hub_id: uuid.UUID,
        db: Session,
        destination_hub_id: Optional[uuid.UUID] = None,
        only_ready: bool = True,
    ) -> List[Shipment]:
        """
        Shipments waiting at an origin hub that a scan could claim.

        A shipment qualifies when it has no manifest or its manifest has been
        released. only_ready keeps pre-manifest statuses only; otherwise just
        cancelled and delivered shipments are left out. Oldest first.
        """
        query = db.query(Shipment).filter(
            Shipment.org_id == org_id,
            Shipment.deleted_at.is_(None),
            Shipment.origin_hub_id == origin_hub_id,
            or_(
                Shipment.manifest_id.is_(None),
                Shipment.manifest_id.in_(ShipmentService.released_manifest_ids()),
            ),
        )
        if only_ready:
            query = query.filter(Shipment.status.in_(list(PRE_MANIFEST_STATUSES)))
        else:
            query = query.filter(Shipment.status.notin_(CLOSED_SHIPMENT_STATUSES))
        if destination_hub_id is not None:
            query = query.filter(Shipment.destination_hub_id == destination_hub_id)

        return query.order_by(Shipment.created_at.asc()).all()
