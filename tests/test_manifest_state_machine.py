import uuid

import pytest
from fastapi import HTTPException

from models.manifest import (
    VALID_STATE_TRANSITIONS,
    InvalidTransition,
    Manifest,
    ManifestNotEditable,
    ManifestStatus,
    ScanSource,
)
from models.scan_log import ScanResult
from models.shipment import ShipmentStatus
from services.audit_service import AuditService
from services.manifest_service import ManifestService
from services.scan_service import ScanService
from services.tracking_service import TrackingService

from conftest import ORG_ID, USER_ID


def advance(db, manifest, *statuses):
    for status in statuses:
        manifest = ManifestService.transition_status(ORG_ID, str(manifest.id), status, USER_ID, db)
    return manifest


def test_transition_table_matches_lifecycle():
    manifest = Manifest(status=ManifestStatus.OPEN)
    assert manifest.get_valid_next_states() == [ManifestStatus.BUILDING, ManifestStatus.CLOSED]
    assert not manifest.can_transition_to(ManifestStatus.DEPARTED)
    assert VALID_STATE_TRANSITIONS[ManifestStatus.RECONCILED] == []


def test_transition_changes_stamp_status_actor():
    manifest = Manifest(status=ManifestStatus.CLOSED)
    changes = manifest.transition_changes(ManifestStatus.DEPARTED, USER_ID)
    assert changes["status"] == ManifestStatus.DEPARTED
    assert changes["departed_by"] == USER_ID
    assert changes["departed_at"] == changes["updated_at"]


def test_invalid_transition_names_both_states():
    manifest = Manifest(status=ManifestStatus.ARRIVED)
    with pytest.raises(InvalidTransition) as exc_info:
        manifest.transition_changes(ManifestStatus.OPEN)
    assert exc_info.value.current == ManifestStatus.ARRIVED
    assert exc_info.value.target == ManifestStatus.OPEN
    assert "ARRIVED" in str(exc_info.value) and "OPEN" in str(exc_info.value)


def test_manifest_numbers_are_sequential(db_session, make_manifest):
    first = make_manifest()
    second = make_manifest()
    assert second.sequence == first.sequence + 1
    assert first.manifest_no.startswith("MNF-")
    assert first.manifest_no.endswith("-000001")
    assert ManifestService.get_by_number(ORG_ID, first.manifest_no.lower(), db_session).id == first.id


def test_full_lifecycle_cascades_and_stamps(db_session, make_manifest, make_shipment):
    manifest = make_manifest(status=ManifestStatus.DRAFT)
    shipments = [make_shipment(f"607-5000000{i}", package_count=i, total_weight=float(i)) for i in (1, 2)]
    for shipment in shipments:
        ScanService.ingest_scan(ORG_ID, manifest.id, shipment.awb_number, USER_ID, ScanSource.MANUAL, db_session)

    closed = advance(db_session, manifest, ManifestStatus.BUILDING, ManifestStatus.CLOSED)
    assert closed.closed_by == USER_ID and closed.closed_at is not None
    assert (closed.total_shipments, closed.total_packages, closed.total_weight) == (2, 3, 3.0)

    advance(db_session, closed, ManifestStatus.DEPARTED)
    arrived = advance(db_session, closed, ManifestStatus.ARRIVED)
    assert arrived.arrived_by == USER_ID

    for shipment in shipments:
        db_session.refresh(shipment)
        assert shipment.status == ShipmentStatus.RECEIVED_AT_DEST
        events = TrackingService.list_for_shipment(ORG_ID, shipment.id, db_session)
        assert sorted(e.event_code for e in events) == ["ARRIVED", "DEPARTED"]
        arrival = next(e for e in events if e.event_code == "ARRIVED")
        assert arrival.hub_id == manifest.to_hub_id
        assert arrival.meta["manifest_no"] == manifest.manifest_no

    reconciled = advance(db_session, arrived, ManifestStatus.RECONCILED)
    assert reconciled.status == ManifestStatus.RECONCILED
    assert reconciled.reconciled_at is not None

    _, audit_logs = AuditService.list_logs(db_session, limit=50, offset=0, org_id=ORG_ID, entity_id=manifest.id)
    actions = {entry.action for entry in audit_logs}
    assert {"manifest.created", "manifest.closed", "manifest.departed", "manifest.reconciled"} <= actions


def test_illegal_transition_leaves_manifest_unchanged(db_session, make_manifest):
    manifest = make_manifest()
    arrived = advance(db_session, manifest, ManifestStatus.CLOSED, ManifestStatus.DEPARTED, ManifestStatus.ARRIVED)
    arrived_at = arrived.arrived_at

    with pytest.raises(InvalidTransition):
        ManifestService.transition_status(ORG_ID, str(manifest.id), ManifestStatus.OPEN, USER_ID, db_session)

    db_session.refresh(arrived)
    assert arrived.status == ManifestStatus.ARRIVED
    assert arrived.arrived_at == arrived_at


def test_stale_transition_loses_compare_and_swap(db_session, make_manifest):
    manifest = make_manifest()
    stale = db_session.get(Manifest, manifest.id)

    # Another writer closes the manifest behind our back
    db_session.query(Manifest).filter(Manifest.id == manifest.id).update(
        {"status": ManifestStatus.CLOSED}, synchronize_session=False
    )
    db_session.commit()
    stale.status = ManifestStatus.OPEN

    with pytest.raises(InvalidTransition) as exc_info:
        ManifestService.transition_status(ORG_ID, str(stale.id), ManifestStatus.BUILDING, USER_ID, db_session)
    assert exc_info.value.current == ManifestStatus.CLOSED


def test_no_membership_change_after_close(db_session, make_manifest, make_shipment):
    manifest = make_manifest()
    member = make_shipment("607-50000010")
    newcomer = make_shipment("607-50000011")
    ScanService.ingest_scan(ORG_ID, manifest.id, member.awb_number, USER_ID, ScanSource.MANUAL, db_session)

    for status in (ManifestStatus.CLOSED, ManifestStatus.DEPARTED, ManifestStatus.ARRIVED, ManifestStatus.RECONCILED):
        advance(db_session, manifest, status)

        outcome = ScanService.ingest_scan(ORG_ID, manifest.id, newcomer.awb_number, USER_ID, ScanSource.MANUAL, db_session)
        assert outcome.result == ScanResult.MANIFEST_CLOSED
        with pytest.raises(ManifestNotEditable):
            ScanService.remove_shipment(ORG_ID, str(manifest.id), str(member.id), USER_ID, db_session)

    assert [item.shipment_id for item in ManifestService.list_items(manifest, db_session)] == [member.id]


def test_retire_requires_empty_editable_manifest(db_session, make_manifest, make_shipment):
    manifest = make_manifest()
    shipment = make_shipment("607-50000012")
    ScanService.ingest_scan(ORG_ID, manifest.id, shipment.awb_number, USER_ID, ScanSource.MANUAL, db_session)

    with pytest.raises(HTTPException) as exc_info:
        ManifestService.retire_manifest(ORG_ID, str(manifest.id), USER_ID, db_session)
    assert exc_info.value.status_code == 409

    ScanService.remove_shipment(ORG_ID, str(manifest.id), str(shipment.id), USER_ID, db_session)
    retired = ManifestService.retire_manifest(ORG_ID, str(manifest.id), USER_ID, db_session)
    assert retired.deleted_at is not None

    with pytest.raises(HTTPException) as exc_info:
        ManifestService.get_manifest(ORG_ID, str(manifest.id), db_session)
    assert exc_info.value.status_code == 404


def test_get_manifest_rejects_bad_ids(db_session):
    with pytest.raises(HTTPException) as exc_info:
        ManifestService.get_manifest(ORG_ID, "nope", db_session)
    assert exc_info.value.status_code == 400

    with pytest.raises(HTTPException) as exc_info:
        ManifestService.get_manifest(ORG_ID, str(uuid.uuid4()), db_session)
    assert exc_info.value.status_code == 404
