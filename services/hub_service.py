import uuid
from typing import List

from fastapi import HTTPException
from sqlalchemy.orm import Session

from models.hub import Hub
from schemas.hub import HubCreate


class HubService:
    """Service layer for origin / destination hubs."""

    @staticmethod
    def create_hub(org_id: uuid.UUID, hub_data: HubCreate, db: Session) -> Hub:
        existing = db.query(Hub).filter(Hub.org_id == org_id, Hub.code == hub_data.code).first()
        if existing:
            raise HTTPException(status_code=400, detail=f"Hub {hub_data.code} already exists.")

        hub = Hub(org_id=org_id, code=hub_data.code, name=hub_data.name.strip())
        db.add(hub)
        db.commit()
        db.refresh(hub)
        return hub

    @staticmethod
    def list_hubs(org_id: uuid.UUID, db: Session) -> List[Hub]:
        return db.query(Hub).filter(Hub.org_id == org_id).order_by(Hub.code).all()

    @staticmethod
    def get_hub(org_id: uuid.UUID, hub_id: uuid.UUID, db: Session) -> Hub:
        hub = db.query(Hub).filter(Hub.org_id == org_id, Hub.id == hub_id).first()
        if not hub:
            raise HTTPException(status_code=404, detail="Hub not found")
        return hub
