import uuid

import pytest
from fastapi import HTTPException

from models.manifest import Manifest, ScanSource
from services.manifest_service import ManifestService
from services.scan_service import ScanService
from services.totals_service import TotalsService

from conftest import ORG_ID, USER_ID


def test_totals_converge_after_adds_and_removes(db_session, make_manifest, make_shipment):
    manifest = make_manifest()
    shipments = [
        make_shipment("607-60000001", package_count=1, total_weight=0.5),
        make_shipment("607-60000002", package_count=4, total_weight=10.125),
        make_shipment("607-60000003", package_count=2, total_weight=3.3),
    ]
    for shipment in shipments:
        ScanService.ingest_scan(ORG_ID, manifest.id, shipment.awb_number, USER_ID, ScanSource.MANUAL, db_session)
    ScanService.remove_shipment(ORG_ID, str(manifest.id), str(shipments[1].id), USER_ID, db_session)
    ScanService.ingest_scan(ORG_ID, manifest.id, shipments[1].awb_number, USER_ID, ScanSource.MANUAL, db_session)
    ScanService.remove_shipment(ORG_ID, str(manifest.id), str(shipments[0].id), USER_ID, db_session)

    expected = {"total_shipments": 2, "total_packages": 6, "total_weight": 13.425}
    assert TotalsService.compute(manifest.id, db_session) == expected

    db_session.refresh(manifest)
    assert manifest.total_shipments == 2
    assert manifest.total_packages == 6
    assert manifest.total_weight == 13.425


def test_recompute_repairs_drifted_totals(db_session, make_manifest, make_shipment):
    manifest = make_manifest()
    shipment = make_shipment("607-60000004", package_count=3, total_weight=2.0)
    ScanService.ingest_scan(ORG_ID, manifest.id, shipment.awb_number, USER_ID, ScanSource.MANUAL, db_session)

    db_session.query(Manifest).filter(Manifest.id == manifest.id).update(
        {"total_shipments": 99, "total_packages": 0, "total_weight": -1.0}, synchronize_session=False
    )
    db_session.commit()

    totals = TotalsService.recompute(manifest.id, db_session)
    assert totals == {"total_shipments": 1, "total_packages": 3, "total_weight": 2.0}
    db_session.refresh(manifest)
    assert manifest.total_shipments == 1


def test_empty_manifest_totals_are_zero(db_session, make_manifest):
    manifest = make_manifest()
    assert TotalsService.compute(manifest.id, db_session) == {
        "total_shipments": 0,
        "total_packages": 0,
        "total_weight": 0.0,
    }


def test_recompute_all_scopes_to_org(db_session, make_manifest):
    make_manifest()
    make_manifest()
    assert TotalsService.recompute_all(db_session, org_id=ORG_ID) == 2
    assert TotalsService.recompute_all(db_session, org_id=USER_ID) == 0


def test_recompute_refuses_unknown_and_retired_manifests(db_session, make_manifest):
    with pytest.raises(HTTPException) as exc_info:
        TotalsService.recompute(uuid.uuid4(), db_session)
    assert exc_info.value.status_code == 404

    manifest = make_manifest()
    ManifestService.retire_manifest(ORG_ID, str(manifest.id), USER_ID, db_session)
    db_session.query(Manifest).filter(Manifest.id == manifest.id).update(
        {"total_shipments": 5}, synchronize_session=False
    )
    db_session.commit()

    with pytest.raises(HTTPException) as exc_info:
        TotalsService.recompute(manifest.id, db_session)
    assert exc_info.value.status_code == 404
    db_session.rollback()
    db_session.refresh(manifest)
    assert manifest.total_shipments == 5
