"""
Decides whether a scanned shipment may join a manifest.
"""
from dataclasses import dataclass
from typing import Optional, cast

from sqlalchemy.orm import Session

from models.manifest import ACTIVE_MEMBERSHIP_STATUSES, Manifest, ManifestItem
from models.scan_log import ScanResult
from models.shipment import PRE_MANIFEST_STATUSES, Shipment, ShipmentStatus


@dataclass(frozen=True)
class EligibilityResult:
    result: Optional[ScanResult] = None
    message: str = ""
    current_status: Optional[ShipmentStatus] = None
    conflicting_manifest_no: Optional[str] = None

    @property
    def eligible(self) -> bool:
        return self.result is None


ELIGIBLE = EligibilityResult()


class EligibilityService:
    """
    Rules are evaluated in order and stop at the first failure:
    existence, exclusive active membership, destination match
    (optional) and status eligibility (optional).
    """

    @staticmethod
    def find_active_membership(shipment: Shipment, manifest: Manifest, db: Session) -> Optional[Manifest]:
        """Another live manifest that still holds this shipment, if any."""
        return (
            db.query(Manifest)
            .join(ManifestItem, ManifestItem.manifest_id == Manifest.id)
            .filter(
                ManifestItem.shipment_id == shipment.id,
                Manifest.id != manifest.id,
                Manifest.deleted_at.is_(None),
                Manifest.status.in_(list(ACTIVE_MEMBERSHIP_STATUSES)),
            )
            .first()
        )

    @staticmethod
    def check_membership(shipment: Shipment, manifest: Manifest, db: Session) -> EligibilityResult:
        other = EligibilityService.find_active_membership(shipment, manifest, db)
        if other is None:
            return ELIGIBLE
        return EligibilityResult(
            result=ScanResult.ALREADY_MANIFESTED,
            message=f"Shipment is already on manifest {other.manifest_no} ({other.status.value})",
            conflicting_manifest_no=str(other.manifest_no),
        )

    @staticmethod
    def check_destination(shipment: Shipment, manifest: Manifest) -> EligibilityResult:
        if shipment.destination_hub_id == manifest.to_hub_id:
            return ELIGIBLE
        return EligibilityResult(
            result=ScanResult.WRONG_DESTINATION,
            message="Shipment destination does not match manifest destination",
        )

    @staticmethod
    def check_status(shipment: Shipment) -> EligibilityResult:
        current = cast(ShipmentStatus, shipment.status)
        if current in PRE_MANIFEST_STATUSES:
            return ELIGIBLE
        return EligibilityResult(
            result=ScanResult.WRONG_STATUS,
            message=f"Shipment status is not eligible for manifesting: {current.value}",
            current_status=current,
        )

    @staticmethod
    def evaluate(
        shipment: Optional[Shipment],
        manifest: Manifest,
        db: Session,
        validate_destination: bool = True,
        validate_status: bool = True,
    ) -> EligibilityResult:
        if shipment is None:
            return EligibilityResult(
                result=ScanResult.NOT_FOUND,
                message="No shipment found for this scan",
            )

        outcome = EligibilityService.check_membership(shipment, manifest, db)
        if not outcome.eligible:
            return outcome

        if validate_destination:
            outcome = EligibilityService.check_destination(shipment, manifest)
            if not outcome.eligible:
                return outcome

        if validate_status:
            outcome = EligibilityService.check_status(shipment)
            if not outcome.eligible:
                return outcome

        return ELIGIBLE
