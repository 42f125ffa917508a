import uuid

import pytest
from sqlalchemy.orm import sessionmaker

import recompute_totals
from models.manifest import Manifest

from conftest import ORG_ID


def test_script_recomputes_org_manifests(engine, db_session, make_manifest, monkeypatch):
    manifest = make_manifest()
    db_session.query(Manifest).filter(Manifest.id == manifest.id).update(
        {"total_shipments": 7}, synchronize_session=False
    )
    db_session.commit()
    monkeypatch.setattr(recompute_totals, "SessionLocal", sessionmaker(bind=engine, autoflush=False))

    assert recompute_totals.main(["--org", str(ORG_ID)]) == 0

    db_session.refresh(manifest)
    assert manifest.total_shipments == 0


def test_script_rejects_conflicting_scopes():
    with pytest.raises(SystemExit) as exc_info:
        recompute_totals.main(["--org", str(ORG_ID), "--manifest", str(ORG_ID)])
    assert exc_info.value.code == 2


def test_script_reports_unknown_manifest(engine, monkeypatch, capsys):
    monkeypatch.setattr(recompute_totals, "SessionLocal", sessionmaker(bind=engine, autoflush=False))

    assert recompute_totals.main(["--manifest", str(uuid.uuid4())]) == 1
    assert "Manifest not found" in capsys.readouterr().out
