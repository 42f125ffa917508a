"""
Rebuilds stored manifest totals from current membership.

Totals are normally kept in step by every scan and removal. Run this after
a crash, a manual data fix, or an import that bypassed the API.

Usage:
    python recompute_totals.py                 # every live manifest
    python recompute_totals.py --org <uuid>    # one organization
    python recompute_totals.py --manifest <uuid>
"""

import argparse
import logging
import os
import sys
import uuid

from fastapi import HTTPException

from core.database import SessionLocal
# Import all models to register them
from models.audit_log import AuditLog  # noqa: F401
from models.hub import Hub  # noqa: F401
from models.manifest import Manifest, ManifestItem  # noqa: F401
from models.scan_log import ManifestScanLog  # noqa: F401
from models.shipment import Shipment  # noqa: F401
from models.tracking_event import TrackingEvent  # noqa: F401
from services.totals_service import TotalsService

log = logging.getLogger("recompute_totals")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Recompute manifest totals")
    scope = parser.add_mutually_exclusive_group()
    scope.add_argument("--org", type=uuid.UUID, help="Only manifests of this organization")
    scope.add_argument("--manifest", type=uuid.UUID, help="Only this manifest")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args = parse_args(argv)

    db = SessionLocal()
    try:
        if args.manifest:
            totals = TotalsService.recompute(args.manifest, db)
            print(f"✅ Manifest {args.manifest}: {totals}")
        else:
            count = TotalsService.recompute_all(db, org_id=args.org)
            print(f"✅ Recomputed totals for {count} manifest(s)")
        return 0
    except HTTPException as exc:
        db.rollback()
        print(f"❌ Manifest {args.manifest}: {exc.detail}")
        return 1
    except Exception as exc:
        db.rollback()
        log.error("Totals recompute failed: %s", exc, exc_info=True)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
