from __future__ import annotations

import json
from datetime import datetime, timedelta
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from models.audit_log import AuditLog
from models.user import User
from services.config_service import get_audit_retention_days


class AuditService:
    """Operational audit trail for manifest lifecycle actions."""

    LEVELS = {"DEBUG", "INFO", "WARN", "ERROR", "CRITICAL"}

    @staticmethod
    def generate_reference(at_time: datetime | None = None) -> str:
        timestamp = (at_time or datetime.utcnow()).strftime("%Y%m%d")
        return f"AUD-{timestamp}-{uuid4().hex[:8].upper()}"

    @staticmethod
    def _safe_level(level: str | None) -> str:
        normalized = (level or "INFO").strip().upper()
        return normalized if normalized in AuditService.LEVELS else "INFO"

    @staticmethod
    def create_log(
        db: Session,
        *,
        action: str,
        org_id: UUID | None = None,
        category: str = "manifest",
        level: str = "INFO",
        message: str | None = None,
        entity_type: str | None = None,
        entity_id: UUID | None = None,
        actor: User | None = None,
        actor_id: UUID | None = None,
        metadata: dict | None = None,
        commit: bool = True,
    ) -> AuditLog:
        entry = AuditLog(
            reference=AuditService.generate_reference(),
            org_id=org_id,
            level=AuditService._safe_level(level),
            category=(category or "system").strip().lower(),
            action=action,
            message=message,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=getattr(actor, "id", None) or actor_id,
            actor_email=getattr(actor, "email", None),
            actor_role=getattr(actor, "role", None),
            metadata_json=json.dumps(metadata or {}, default=str),
        )

        db.add(entry)
        if commit:
            db.commit()
            db.refresh(entry)
        return entry

    @staticmethod
    def prune_old_logs(db: Session, org_id: UUID | None = None) -> int:
        cutoff = datetime.utcnow() - timedelta(days=get_audit_retention_days())

        query = db.query(AuditLog).filter(AuditLog.event_time < cutoff)  # type: ignore[arg-type]
        if org_id is not None:
            query = query.filter(AuditLog.org_id == org_id)
        deleted = query.delete(synchronize_session=False)
        db.commit()
        return int(deleted or 0)

    @staticmethod
    def list_logs(
        db: Session,
        *,
        limit: int,
        offset: int,
        org_id: UUID | None = None,
        level: str | None = None,
        category: str | None = None,
        action: str | None = None,
        entity_id: UUID | None = None,
        actor_email: str | None = None,
        from_time: datetime | None = None,
        to_time: datetime | None = None,
    ) -> tuple[int, list[AuditLog]]:
        query = db.query(AuditLog)

        if org_id is not None:
            query = query.filter(AuditLog.org_id == org_id)
        if level:
            query = query.filter(AuditLog.level == level.strip().upper())
        if category:
            query = query.filter(AuditLog.category == category.strip().lower())
        if action:
            query = query.filter(AuditLog.action == action.strip())
        if entity_id is not None:
            query = query.filter(AuditLog.entity_id == entity_id)
        if actor_email:
            query = query.filter(AuditLog.actor_email.ilike(f"%{actor_email.strip()}%"))
        if from_time is not None:
            query = query.filter(AuditLog.event_time >= from_time)
        if to_time is not None:
            query = query.filter(AuditLog.event_time <= to_time)

        total = query.count()
        logs = query.order_by(AuditLog.event_time.desc()).offset(offset).limit(limit).all()
        return total, logs


__all__ = ["AuditService"]
