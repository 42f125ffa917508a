from uuid import UUID
from typing import cast

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.dependencies import require_supervisor
from core.database import get_db
from core.security import get_current_user
from models.user import User
from schemas.hub import HubCreate, HubResponse
from services.hub_service import HubService

router = APIRouter(prefix="/hubs", tags=["hubs"])


@router.post("/", response_model=HubResponse)
def create_hub(
    hub: HubCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_supervisor)
):
    """Register a hub for the caller's organization."""
    return HubService.create_hub(cast(UUID, current_user.org_id), hub, db)


@router.get("/", response_model=list[HubResponse])
def list_hubs(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return HubService.list_hubs(cast(UUID, current_user.org_id), db)
