from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.dependencies import require_admin
from core.database import get_db
from models.user import User
from schemas.audit_log import AuditLogListResponse
from services.audit_service import AuditService
from services.config_service import get_audit_max_limit

router = APIRouter(prefix="/admin/audit", tags=["audit"])


@router.get("/logs", response_model=AuditLogListResponse)
def list_audit_logs(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
    limit: int = Query(default=50, ge=1),
    offset: int = Query(default=0, ge=0),
    level: str | None = Query(default=None),
    category: str | None = Query(default=None),
    action: str | None = Query(default=None),
    entity_id: UUID | None = Query(default=None),
    actor_email: str | None = Query(default=None),
    from_time: datetime | None = Query(default=None),
    to_time: datetime | None = Query(default=None),
):
    bounded_limit = min(limit, get_audit_max_limit())
    total, logs = AuditService.list_logs(
        db,
        limit=bounded_limit,
        offset=offset,
        org_id=current_user.org_id,
        level=level,
        category=category,
        action=action,
        entity_id=entity_id,
        actor_email=actor_email,
        from_time=from_time,
        to_time=to_time,
    )

    return {
        "total": total,
        "count": len(logs),
        "logs": [
            {
                "id": item.id,
                "reference": item.reference,
                "event_time": item.event_time,
                "level": item.level,
                "category": item.category,
                "action": item.action,
                "message": item.message,
                "entity_type": item.entity_type,
                "entity_id": item.entity_id,
                "actor_id": item.actor_id,
                "actor_email": item.actor_email,
                "actor_role": item.actor_role,
                "metadata": item.metadata_dict,
            }
            for item in logs
        ],
    }


@router.post("/prune")
def prune_audit_logs(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    deleted = AuditService.prune_old_logs(db, org_id=current_user.org_id)
    return {"deleted": deleted}
