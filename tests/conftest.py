import os
import sys
import uuid
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))


@compiles(PG_UUID, "sqlite")
def _compile_uuid_sqlite(type_, compiler, **kwargs):
    return "CHAR(36)"


from main import app  # noqa: E402
from core.database import Base, enable_sqlite_immediate_transactions, get_db  # noqa: E402
from core.security import get_current_user  # noqa: E402
from models.manifest import ManifestStatus, ManifestType  # noqa: E402
from models.shipment import ShipmentStatus  # noqa: E402
from schemas.hub import HubCreate  # noqa: E402
from schemas.manifest import ManifestCreate  # noqa: E402
from schemas.shipment import ShipmentCreate  # noqa: E402
from services.hub_service import HubService  # noqa: E402
from services.manifest_service import ManifestService  # noqa: E402
from services.shipment_service import ShipmentService  # noqa: E402

ORG_ID = uuid.UUID("00000000-0000-0000-0000-00000000a001")
OTHER_ORG_ID = uuid.UUID("00000000-0000-0000-0000-00000000b002")
USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")


class MockUser:
    def __init__(self, role: str, org_id: uuid.UUID = ORG_ID) -> None:
        self.id = USER_ID
        self.org_id = org_id
        self.role = role
        self.email = "test@example.com"
        self.username = "test-user"


def build_engine(url: str = "sqlite+pysqlite:///:memory:"):
    if url.endswith(":memory:"):
        engine = create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    else:
        engine = create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})
    enable_sqlite_immediate_transactions(engine)
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture(scope="function")
def engine():
    engine = build_engine()
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def db_session(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def client(db_session):
    def _override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_current_user] = lambda: MockUser("SUPERVISOR")

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def seed_hubs(db, org_id=ORG_ID):
    return {
        code: HubService.create_hub(org_id, HubCreate(code=code, name=f"{code} Gateway"), db)
        for code in ("BLR", "DEL", "BOM")
    }


def seed_shipment(db, hubs, awb, destination="DEL", status=ShipmentStatus.CREATED,
                  package_count=1, total_weight=1.0, org_id=ORG_ID):
    return ShipmentService.create_shipment(
        org_id,
        ShipmentCreate(
            awb_number=awb,
            origin_hub_id=hubs["BLR"].id,
            destination_hub_id=hubs[destination].id,
            package_count=package_count,
            total_weight=total_weight,
            receiver_name="Receiver",
            sender_name="Sender",
            status=status,
        ),
        db,
    )


def seed_manifest(db, hubs, destination="DEL", status=ManifestStatus.OPEN, org_id=ORG_ID):
    return ManifestService.create_manifest(
        org_id,
        ManifestCreate(
            type=ManifestType.TRUCK,
            from_hub_id=hubs["BLR"].id,
            to_hub_id=hubs[destination].id,
            vehicle_number="KA01AB1234",
            driver_name="Driver",
            status=status,
        ),
        USER_ID,
        db,
    )


@pytest.fixture
def hubs(db_session):
    return seed_hubs(db_session)


@pytest.fixture
def make_shipment(db_session, hubs):
    def _make(awb, **kwargs):
        return seed_shipment(db_session, hubs, awb, **kwargs)
    return _make


@pytest.fixture
def make_manifest(db_session, hubs):
    def _make(**kwargs):
        return seed_manifest(db_session, hubs, **kwargs)
    return _make
