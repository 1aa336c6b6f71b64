"""
Verification of signed webhook payloads.

The signature header looks like ``t=1492774577,v1=5257a8...,v1=...``: a
timestamp followed by one or more HMAC-SHA256 signatures of
``"<timestamp>.<payload>"``. Several ``v1`` entries appear while a signing
secret is being rolled.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from typing import (
    Any,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Type,
    TypeVar,
    Union,
)

from .errors import InvalidPayloadError, SignatureVerificationError
from .objects import ResponseMeta, StripeObject

__all__ = [
    "DEFAULT_TOLERANCE",
    "EXPECTED_SCHEME",
    "Event",
    "ThinEvent",
    "compute_signature",
    "construct_event",
    "event_summary",
    "generate_test_header_string",
    "parse_thin_event",
    "verify_header",
]

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 300
EXPECTED_SCHEME = "v1"

Payload = Union[bytes, str]
Secrets = Union[str, Sequence[str]]

E = TypeVar("E", bound=StripeObject)


class Event(StripeObject):
    """A fully decoded webhook event."""


class ThinEvent(StripeObject):
    """
    The minimal event envelope.

    Values are kept exactly as delivered; the related object is referenced,
    not expanded.
    """

    @classmethod
    def construct_from(
        cls,
        values: Mapping[str, Any],
        last_response: Optional[ResponseMeta] = None,
    ) -> "ThinEvent":
        instance = cls(values)
        instance.last_response = last_response
        return instance


def _payload_bytes(payload: Payload) -> bytes:
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload)
    return payload.encode("utf-8")


def _payload_text(payload: Payload) -> str:
    """Printable form of ``payload`` for error reporting only."""
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload).decode("utf-8", errors="replace")
    return payload


def _secret_list(secret: Secrets) -> List[str]:
    secrets = [secret] if isinstance(secret, str) else list(secret)
    if not secrets or not all(isinstance(item, str) and item for item in secrets):
        raise ValueError("At least one non-empty webhook secret is required")
    return secrets


def compute_signature(payload: Payload, secret: str) -> str:
    mac = hmac.new(secret.encode("utf-8"), msg=_payload_bytes(payload), digestmod=hashlib.sha256)
    return mac.hexdigest()


def _parse_header(header: str, scheme: str) -> Tuple[int, List[str]]:
    timestamp: Optional[int] = None
    signatures: List[str] = []
    for item in header.split(","):
        key, sep, value = item.strip().partition("=")
        if not sep:
            continue
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                timestamp = None
        elif key == scheme:
            signatures.append(value)
    if timestamp is None:
        raise ValueError("missing timestamp")
    return timestamp, signatures


def verify_header(
    payload: Payload,
    header: str,
    secret: Secrets,
    tolerance: Optional[int] = DEFAULT_TOLERANCE,
    *,
    now: Optional[float] = None,
) -> bool:
    """
    Check ``header`` against ``payload`` and every secret in ``secret``.

    ``tolerance`` is the allowed clock skew in seconds; ``None`` selects the
    default and a value of ``0`` or less disables the timestamp check.
    """
    text = _payload_text(payload)
    secrets = _secret_list(secret)
    if tolerance is None:
        tolerance = DEFAULT_TOLERANCE

    if not isinstance(header, str):
        raise SignatureVerificationError("No signature header provided", header, text)
    try:
        timestamp, signatures = _parse_header(header, EXPECTED_SCHEME)
    except ValueError as exc:
        raise SignatureVerificationError(
            "Unable to extract timestamp and signatures from header", header, text
        ) from exc

    if not signatures:
        raise SignatureVerificationError(
            "No signatures found with expected scheme", header, text
        )

    # Signatures are compared as bytes; header values may be arbitrary text.
    signed_payload = f"{timestamp}.".encode("ascii") + _payload_bytes(payload)
    received = [signature.encode("utf-8", errors="replace") for signature in signatures]
    matched = any(
        hmac.compare_digest(compute_signature(signed_payload, candidate).encode("ascii"), signature)
        for candidate in secrets
        for signature in received
    )
    if not matched:
        raise SignatureVerificationError(
            "No signatures found matching the expected signature for payload",
            header,
            text,
        )

    current = time.time() if now is None else now
    if tolerance > 0 and abs(current - timestamp) > tolerance:
        raise SignatureVerificationError(
            f"Timestamp outside the tolerance zone ({timestamp})", header, text
        )

    logger.debug("Webhook signature verified for timestamp %d", timestamp)
    return True


def _decode(payload: Payload, event_cls: Type[E]) -> E:
    try:
        text = _payload_bytes(payload).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidPayloadError("Webhook payload is not valid UTF-8") from exc
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidPayloadError(f"Invalid webhook payload: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise InvalidPayloadError("Webhook payload must be a JSON object")
    return event_cls.construct_from(data)


def construct_event(
    payload: Payload,
    sig_header: str,
    secret: Secrets,
    tolerance: Optional[int] = DEFAULT_TOLERANCE,
    *,
    now: Optional[float] = None,
) -> Event:
    verify_header(payload, sig_header, secret, tolerance, now=now)
    return _decode(payload, Event)


def parse_thin_event(
    payload: Payload,
    sig_header: str,
    secret: Secrets,
    tolerance: Optional[int] = DEFAULT_TOLERANCE,
    *,
    now: Optional[float] = None,
) -> ThinEvent:
    """
    Verify ``payload`` and return only its envelope.

    Same checks as :func:`construct_event`; the object the event refers to is
    not decoded into nested objects or fetched.
    """
    verify_header(payload, sig_header, secret, tolerance, now=now)
    return _decode(payload, ThinEvent)


def generate_test_header_string(
    payload: Payload,
    secret: str,
    timestamp: Optional[int] = None,
    scheme: str = EXPECTED_SCHEME,
    signature: Optional[str] = None,
) -> str:
    """
    Build a valid signature header for test fixtures.
    """
    if timestamp is None:
        timestamp = int(time.time())
    if signature is None:
        signature = compute_signature(f"{timestamp}.".encode("ascii") + _payload_bytes(payload), secret)
    return f"t={timestamp},{scheme}={signature}"


def event_summary(event: Dict[str, Any]) -> Dict[str, Any]:
    """Fields worth logging for a verified event."""
    return {
        "id": event.get("id"),
        "type": event.get("type") or event.get("event_type"),
        "created": event.get("created"),
    }
