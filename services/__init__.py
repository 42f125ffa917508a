"""
Services module - Business logic layer for ManifestGuard.
"""
from services.auth_service import AuthService
from services.manifest_service import ManifestService
from services.scan_service import ScanService

__all__ = ["AuthService", "ManifestService", "ScanService"]
