import logging
import os

from fastapi import FastAPI

from core.database import engine, Base

# Import all models to register them
from models.user import User
from models.hub import Hub
from models.shipment import Shipment
from models.manifest import Manifest, ManifestItem
from models.scan_log import ManifestScanLog
from models.tracking_event import TrackingEvent
from models.audit_log import AuditLog

# Import routers
from api import auth, audit, hubs, manifests, shipments

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Create database tables
Base.metadata.create_all(bind=engine)

# Initialize FastAPI app
app = FastAPI(
    title="ManifestGuard",
    description="Manifest lifecycle and scan ingestion for courier hubs",
    version="1.0.0"
)

# Register routers
app.include_router(auth.router)
app.include_router(hubs.router, prefix="/api")
app.include_router(shipments.router, prefix="/api")
app.include_router(manifests.router, prefix="/api")
app.include_router(audit.router, prefix="/api")


# ==================== HEALTH CHECK ====================
@app.get("/health")
def health_check():
    """Health check endpoint for Docker and Kubernetes."""
    return {
        "status": "healthy",
        "service": "ManifestGuard",
        "version": "1.0.0"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
