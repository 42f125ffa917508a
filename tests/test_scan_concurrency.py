from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy.orm import sessionmaker

from core.database import Base
from models.manifest import Manifest, ManifestItem, ScanSource
from models.scan_log import ManifestScanLog, ScanResult
from models.shipment import Shipment
from services.scan_service import ScanService

from conftest import ORG_ID, USER_ID, build_engine, seed_hubs, seed_manifest, seed_shipment


@pytest.fixture
def file_sessions(tmp_path):
    engine = build_engine(f"sqlite+pysqlite:///{tmp_path / 'scans.db'}")
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    try:
        yield Session
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


def _scan_in_own_session(Session, manifest_id, token):
    with Session() as db:
        return ScanService.ingest_scan(ORG_ID, manifest_id, token, USER_ID, ScanSource.CAMERA, db).result


def test_parallel_rescans_produce_one_item(file_sessions):
    with file_sessions() as db:
        hubs = seed_hubs(db)
        shipment = seed_shipment(db, hubs, "607-40000001", package_count=2, total_weight=3.5)
        manifest = seed_manifest(db, hubs)
        manifest_id, awb = manifest.id, shipment.awb_number

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: _scan_in_own_session(file_sessions, manifest_id, awb), range(16)))

    assert results.count(ScanResult.SUCCESS) == 1
    assert results.count(ScanResult.SUCCESS_DUPLICATE) == 15

    with file_sessions() as db:
        assert db.query(ManifestItem).filter(ManifestItem.manifest_id == manifest_id).count() == 1
        assert db.query(ManifestScanLog).filter(ManifestScanLog.manifest_id == manifest_id).count() == 16
        stored = db.get(Manifest, manifest_id)
        assert (stored.total_shipments, stored.total_packages, stored.total_weight) == (1, 2, 3.5)


def test_parallel_scans_into_two_manifests_claim_once(file_sessions):
    with file_sessions() as db:
        hubs = seed_hubs(db)
        shipment = seed_shipment(db, hubs, "607-40000002")
        first = seed_manifest(db, hubs)
        second = seed_manifest(db, hubs)
        shipment_id, awb = shipment.id, shipment.awb_number
        targets = [first.id, second.id] * 4

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda mid: _scan_in_own_session(file_sessions, mid, awb), targets))

    assert results.count(ScanResult.SUCCESS) == 1
    assert results.count(ScanResult.SUCCESS_DUPLICATE) == 3
    assert results.count(ScanResult.ALREADY_MANIFESTED) == 4

    with file_sessions() as db:
        assert db.query(ManifestItem).filter(ManifestItem.shipment_id == shipment_id).count() == 1
        owner = db.get(Shipment, shipment_id).manifest_id
        item = db.query(ManifestItem).filter(ManifestItem.shipment_id == shipment_id).one()
        assert owner == item.manifest_id
