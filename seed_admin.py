"""
Admin seeding script for ManifestGuard.

Administrators cannot self-register, so the first SUPERUSER of an
organization is created here.

Usage:
    python seed_admin.py --org <uuid> [--reset-password]

Environment variables (optional):
    ADMIN_EMAIL: Email for admin account (default: admin@manifestguard.io)
    ADMIN_USERNAME: Username for admin account (default: admin_superuser)
    ADMIN_PASSWORD: Password for admin account (required outside development)
"""

import argparse
import os
import sys
import uuid

from core.database import SessionLocal, engine, Base
# Import all models to register them
from models.audit_log import AuditLog  # noqa: F401
from models.hub import Hub  # noqa: F401
from models.manifest import Manifest, ManifestItem  # noqa: F401
from models.scan_log import ManifestScanLog  # noqa: F401
from models.shipment import Shipment  # noqa: F401
from models.tracking_event import TrackingEvent  # noqa: F401
from models.user import User
from services.auth_service import AuthService


def seed_admin(org_id: uuid.UUID, reset_password: bool = False) -> bool:
    """Create the superuser for org_id, or refresh its password."""
    admin_email = os.getenv("ADMIN_EMAIL", "admin@manifestguard.io")
    admin_username = os.getenv("ADMIN_USERNAME", "admin_superuser")
    admin_password = os.getenv("ADMIN_PASSWORD", "ManifestGuard2026!")

    print("🔐 ManifestGuard Admin Seeding")
    print("=" * 60)
    print(f"Organization: {org_id}")
    print(f"Email: {admin_email}")
    print(f"Username: {admin_username}")
    print("=" * 60)

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        existing_admin = db.query(User).filter(
            (User.email == admin_email) | (User.username == admin_username)
        ).first()

        if existing_admin:
            print(f"⚠️  Admin user already exists: {existing_admin.email} ({existing_admin.role})")
            if reset_password:
                existing_admin.hashed_password = AuthService.get_password_hash(admin_password)
                db.commit()
                print("✅ Admin password updated")
            return True

        admin_user = User(
            id=uuid.uuid4(),
            org_id=org_id,
            email=admin_email,
            username=admin_username,
            hashed_password=AuthService.get_password_hash(admin_password),
            role="SUPERUSER",
            is_active=True
        )
        db.add(admin_user)
        db.commit()
        print(f"✅ Admin user created: {admin_user.id}")
        return True
    except Exception as e:
        db.rollback()
        print(f"❌ Error seeding admin: {e}")
        return False
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed a ManifestGuard superuser")
    parser.add_argument("--org", type=uuid.UUID, required=True, help="Organization the admin belongs to")
    parser.add_argument("--reset-password", action="store_true", help="Reset the password if the admin exists")
    args = parser.parse_args()
    sys.exit(0 if seed_admin(args.org, args.reset_password) else 1)
