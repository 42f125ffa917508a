"""
Manifest totals aggregation.

Totals are always rebuilt from the full current membership instead of being
incremented and decremented. A rebuild is idempotent, so running it again
after a crash between an item insert and the totals write repairs the row,
and concurrent rebuilds each write a value that matches some real snapshot
of membership.
"""
import logging
import uuid
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from models.manifest import Manifest, ManifestItem
from models.shipment import Shipment

log = logging.getLogger(__name__)


class TotalsService:

    @staticmethod
    def compute(manifest_id: uuid.UUID, db: Session) -> dict:
        """Aggregate shipment count, packages and weight over current items."""
        shipments, packages, weight = (
            db.query(
                func.count(ManifestItem.id),
                func.coalesce(func.sum(Shipment.package_count), 0),
                func.coalesce(func.sum(Shipment.total_weight), 0.0),
            )
            .join(Shipment, Shipment.id == ManifestItem.shipment_id)
            .filter(ManifestItem.manifest_id == manifest_id)
            .one()
        )
        return {
            "total_shipments": int(shipments or 0),
            "total_packages": int(packages or 0),
            "total_weight": round(float(weight or 0.0), 3),
        }

    @staticmethod
    def recompute(manifest_id: uuid.UUID, db: Session, commit: bool = True) -> dict:
        """
        Rebuild and store the three totals of a manifest in one UPDATE.

        With commit=False the write joins the caller's transaction. Unknown
        and retired manifests raise 404 and nothing is written.
        """
        totals = TotalsService.compute(manifest_id, db)
        updated = db.query(Manifest).filter(
            Manifest.id == manifest_id,
            Manifest.deleted_at.is_(None),
        ).update(dict(totals), synchronize_session="fetch")
        if updated == 0:
            log.warning("Totals recompute skipped, manifest %s not found", manifest_id)
            raise HTTPException(status_code=404, detail="Manifest not found")
        if commit:
            db.commit()
        log.debug("Recomputed totals for manifest %s: %s", manifest_id, totals)
        return totals

    @staticmethod
    def recompute_all(db: Session, org_id: Optional[uuid.UUID] = None) -> int:
        """Backfill totals for every live manifest; returns how many were rewritten."""
        query = db.query(Manifest.id).filter(Manifest.deleted_at.is_(None))
        if org_id is not None:
            query = query.filter(Manifest.org_id == org_id)

        count = 0
        for (manifest_id,) in query.all():
            TotalsService.recompute(manifest_id, db)
            count += 1

        log.info("Recomputed totals for %s manifests", count)
        return count
