"""
Configuration service for runtime system settings.
"""
import os
from typing import Optional


_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}

_DEFAULT_MANIFEST_PREFIX = "MNF"


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    normalized = raw.strip().lower()
    if normalized in _TRUTHY:
        return True
    if normalized in _FALSY:
        return False
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def default_validate_destination() -> bool:
    """Whether scans check destination hub when the caller does not say."""
    return _env_flag("DEFAULT_VALIDATE_DESTINATION", True)


def default_validate_status() -> bool:
    """Whether scans check shipment status when the caller does not say."""
    return _env_flag("DEFAULT_VALIDATE_STATUS", True)


def resolve_validation_flags(
    validate_destination: Optional[bool],
    validate_status: Optional[bool],
) -> tuple[bool, bool]:
    if validate_destination is None:
        validate_destination = default_validate_destination()
    if validate_status is None:
        validate_status = default_validate_status()
    return validate_destination, validate_status


def get_manifest_number_prefix() -> str:
    value = (os.getenv("MANIFEST_NUMBER_PREFIX") or _DEFAULT_MANIFEST_PREFIX).strip().upper()
    return value or _DEFAULT_MANIFEST_PREFIX


def get_audit_retention_days() -> int:
    return _env_int("AUDIT_LOG_RETENTION_DAYS", 180)


def get_audit_max_limit() -> int:
    return _env_int("AUDIT_LOG_MAX_LIMIT", 200)


def get_scan_log_max_limit() -> int:
    return _env_int("SCAN_LOG_MAX_LIMIT", 500)
