from datetime import datetime
from enum import Enum as PyEnum
import uuid

from sqlalchemy import Column, DateTime, Enum, String, Text
from sqlalchemy.dialects.postgresql import UUID

from core.database import Base
from models.manifest import ScanSource


class ScanResult(PyEnum):
    """Classified outcome of one scan attempt."""
    SUCCESS = "SUCCESS"
    SUCCESS_DUPLICATE = "SUCCESS_DUPLICATE"
    NOT_FOUND = "NOT_FOUND"
    INVALID_TOKEN = "INVALID_TOKEN"
    WRONG_DESTINATION = "WRONG_DESTINATION"
    WRONG_STATUS = "WRONG_STATUS"
    ALREADY_MANIFESTED = "ALREADY_MANIFESTED"
    MANIFEST_CLOSED = "MANIFEST_CLOSED"
    MANIFEST_NOT_FOUND = "MANIFEST_NOT_FOUND"
    CANCELLED = "CANCELLED"


SUCCESS_RESULTS = {ScanResult.SUCCESS, ScanResult.SUCCESS_DUPLICATE}


class ManifestScanLog(Base):
    """
    Append-only record of a single scan attempt, successful or not.

    Rows are never updated or deleted; they exist for dispute resolution.
    manifest_id is deliberately not a foreign key so attempts against
    unknown manifests are still recorded.
    """
    __tablename__ = "manifest_scan_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(UUID(as_uuid=True), index=True, nullable=False)
    manifest_id = Column(UUID(as_uuid=True), index=True, nullable=True)
    shipment_id = Column(UUID(as_uuid=True), nullable=True)
    raw_scan_token = Column(String(512), nullable=False)
    normalized_token = Column(String(512), nullable=True)
    scan_result = Column(Enum(ScanResult, native_enum=False), index=True, nullable=False)
    scanned_by = Column(UUID(as_uuid=True), nullable=True)
    scan_source = Column(Enum(ScanSource, native_enum=False), nullable=False, default=ScanSource.MANUAL)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, index=True, nullable=False)
