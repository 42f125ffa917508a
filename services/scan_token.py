"""
Scan token normalization and QR payload parsing.

Warehouse terminals send whatever the scanner decoded: a bare AWB with
stray spaces or dashes, an internal reference, or a v1 JSON QR payload
printed on our own labels. Everything is reduced to one canonical token
before it is compared against shipment storage.
"""
import json
import re
import uuid
from typing import Optional

_STRIP_CHARS = re.compile(r"[\s\-_]")
_AWB_DIGITS = re.compile(r"^(\d{3})(\d{8})$")
_AWB_SHAPE = re.compile(r"^\d{3}-?\d{8}$")

QR_PAYLOAD_VERSION = 1

# Width of the normalized_token column in the scan log
MAX_TOKEN_LENGTH = 512


class InvalidScanToken(ValueError):
    """The scanned input cannot be turned into a shipment token."""


def normalize_scan_token(token: Optional[str]) -> str:
    """
    Canonicalize a scanned string.

    Surrounding and interior whitespace, hyphens and underscores are
    removed and the result uppercased. An 11 digit result is treated as an
    IATA air waybill and re-hyphenated as XXX-XXXXXXXX.
    """
    if not token:
        return ""

    normalized = _STRIP_CHARS.sub("", token.strip()).upper()

    awb_match = _AWB_DIGITS.match(normalized)
    if awb_match:
        return f"{awb_match.group(1)}-{awb_match.group(2)}"

    return normalized


def is_valid_awb_format(token: Optional[str]) -> bool:
    """Format check only: 3 digit prefix, optional hyphen, 8 digit serial."""
    return bool(_AWB_SHAPE.match(normalize_scan_token(token)))


def extract_scan_token(raw: Optional[str]) -> str:
    """
    Return the normalized shipment token carried by a raw scan.

    Accepts a bare token or a v1 shipment QR payload such as
    {"v": 1, "awb": "607-12345678"} or {"v": 1, "id": "<shipment uuid>"}.
    Shipment UUIDs are returned in canonical lowercase form.
    """
    trimmed = (raw or "").strip()
    if not trimmed:
        raise InvalidScanToken("Empty scan input")

    if not trimmed.startswith("{"):
        return _bounded(normalize_scan_token(trimmed), "Empty scan input")

    try:
        payload = json.loads(trimmed)
    except ValueError as exc:
        raise InvalidScanToken("Invalid JSON in scan input") from exc

    if not isinstance(payload, dict):
        raise InvalidScanToken("Invalid scan payload structure")
    if payload.get("v") != QR_PAYLOAD_VERSION:
        raise InvalidScanToken("Unsupported scan payload version")

    payload_type = payload.get("type") or "shipment"
    if payload_type != "shipment":
        raise InvalidScanToken(f"Expected a shipment label, got a {payload_type} code")

    awb = payload.get("awb")
    if awb:
        return _bounded(normalize_scan_token(str(awb)), "Empty AWB in scan payload")

    shipment_id = payload.get("id")
    if shipment_id:
        try:
            return str(uuid.UUID(str(shipment_id)))
        except ValueError as exc:
            raise InvalidScanToken("Invalid shipment id in scan payload") from exc

    raise InvalidScanToken("Scan payload has neither awb nor id")


def _bounded(normalized: str, empty_message: str) -> str:
    if not normalized:
        raise InvalidScanToken(empty_message)
    if len(normalized) > MAX_TOKEN_LENGTH:
        raise InvalidScanToken(f"Scan input longer than {MAX_TOKEN_LENGTH} characters")
    return normalized


def parse_shipment_uuid(token: str) -> Optional[uuid.UUID]:
    """Shipment UUID carried by a token, if the token is one."""
    try:
        return uuid.UUID(token)
    except ValueError:
        return None


def build_shipment_qr_payload(awb: str) -> str:
    return json.dumps({"v": QR_PAYLOAD_VERSION, "awb": normalize_scan_token(awb)})


def build_manifest_qr_payload(
    manifest_id: str,
    manifest_no: str,
    from_hub_code: str,
    to_hub_code: str,
) -> str:
    return json.dumps({
        "v": QR_PAYLOAD_VERSION,
        "type": "manifest",
        "id": manifest_id,
        "manifestNo": manifest_no,
        "route": f"{from_hub_code}-{to_hub_code}",
    })
