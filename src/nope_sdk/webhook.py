"""Webhook signing and verification.

NOPE signs every webhook delivery with HMAC-SHA256 over
``<timestamp>.<raw body>`` using the endpoint's signing secret, and sends::

    X-NOPE-Signature: sha256=<hex digest>
    X-NOPE-Timestamp: <unix seconds>

Verify against the raw request body exactly as received. Passing an already
parsed dict only works when it re-serializes to the same bytes the producer
signed (see ``canonical_json``), so prefer the raw body whenever the web
framework exposes it.

Example::

    from nope_sdk import NopeError, verify_webhook

    try:
        event = verify_webhook(
            await request.body(),
            request.headers.get("x-nope-signature"),
            request.headers.get("x-nope-timestamp"),
            settings.NOPE_WEBHOOK_SECRET,
        )
    except NopeError:
        return Response(status_code=401)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import hashlib
import hmac
import json
import logging
import time
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from nope_sdk.config import NopeSettings, load_settings
from nope_sdk.errors import ErrorKind, NopeError

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-NOPE-Signature"
TIMESTAMP_HEADER = "X-NOPE-Timestamp"
SIGNATURE_PREFIX = "sha256="
DEFAULT_MAX_AGE_SECONDS = 300

WebhookEventType = Literal["risk.elevated", "risk.critical", "test.ping"]
WebhookRiskLevel = Literal["none", "low", "medium", "high", "critical"]

WebhookBody = str | bytes | Mapping[str, Any]


class _WebhookModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class WebhookRiskSummary(_WebhookModel):
    overall_severity: str | None = None
    overall_imminence: str | None = None
    primary_domain: str | None = None
    confidence: Any = None
    primary_concerns: Any = None


class WebhookDomainAssessment(_WebhookModel):
    domain: str | None = None
    severity: str | None = None
    imminence: str | None = None


class WebhookFlags(_WebhookModel):
    intimate_partner_violence: Any = None
    child_safeguarding: Any = None
    third_party_threat: Any = None


class WebhookResourceProvided(_WebhookModel):
    name: str | None = None
    type: str | None = None
    country: str | None = None


class WebhookConversation(_WebhookModel):
    included: Any = None
    message_count: Any = None
    latest_user_message: Any = None
    truncated: Any = None


class WebhookPayload(_WebhookModel):
    event: WebhookEventType
    event_id: str
    timestamp: str
    api_version: Literal["2025-01"]
    conversation_id: str | None = None
    user_id: str | None = None
    risk_summary: WebhookRiskSummary | None = None
    domains: list[WebhookDomainAssessment] = Field(default_factory=list)
    flags: WebhookFlags | None = None
    resources_provided: list[WebhookResourceProvided] = Field(default_factory=list)
    conversation: WebhookConversation | None = None


@dataclass(frozen=True)
class SignedWebhook:
    signature: str
    timestamp: str

    def headers(self) -> dict[str, str]:
        return {SIGNATURE_HEADER: self.signature, TIMESTAMP_HEADER: self.timestamp}


def canonical_json(payload: Mapping[str, Any]) -> str:
    """Compact JSON in insertion order; the form producers sign dict payloads in."""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def _payload_bytes(payload: WebhookBody) -> bytes:
    if isinstance(payload, bytes):
        return payload
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return canonical_json(payload).encode("utf-8")


def _to_bytes(value: str | bytes) -> bytes:
    return value if isinstance(value, bytes) else value.encode("utf-8")


def compute_signature(secret: str | bytes, timestamp: str, payload: WebhookBody) -> str:
    message = f"{timestamp}.".encode("utf-8") + _payload_bytes(payload)
    return hmac.new(_to_bytes(secret), message, hashlib.sha256).hexdigest()


def sign_webhook(payload: WebhookBody, secret: str | bytes, timestamp: int | None = None) -> SignedWebhook:
    """Sign a payload the way NOPE does. Meant for producers and tests."""
    if not secret:
        raise NopeError(ErrorKind.WEBHOOK_SIGNATURE, "Webhook secret is required")
    ts = str(timestamp if timestamp is not None else int(time.time()))
    return SignedWebhook(signature=f"{SIGNATURE_PREFIX}{compute_signature(secret, ts, payload)}", timestamp=ts)


def _reject(reason: str) -> NopeError:
    logger.warning("webhook_signature_rejected", extra={"component": "nope_sdk", "reason": reason})
    return NopeError(ErrorKind.WEBHOOK_SIGNATURE, reason)


def _signatures_match(expected: str, received: str) -> bool:
    expected_bytes = expected.encode("utf-8")
    received_bytes = received.encode("utf-8", errors="surrogatepass")
    # Length is not secret; only equal-length values reach the constant-time compare.
    if len(expected_bytes) != len(received_bytes):
        return False
    return hmac.compare_digest(expected_bytes, received_bytes)


def verify_webhook(
    payload: WebhookBody,
    signature: str | None,
    timestamp: str | None,
    secret: str | bytes | None,
    *,
    max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
    now: int | None = None,
) -> WebhookPayload:
    """Verify a webhook delivery and return the parsed event.

    Args:
        payload: Raw request body (bytes or str), or a dict that serializes
            with ``canonical_json`` to exactly what was signed.
        signature: ``X-NOPE-Signature`` header value, with or without the
            ``sha256=`` prefix.
        timestamp: ``X-NOPE-Timestamp`` header value (unix seconds).
        secret: The webhook signing secret.
        max_age_seconds: Accepted clock distance, in both directions, between
            ``now`` and the signed timestamp. ``0`` disables the check, which
            allows unlimited replay and is not recommended.
        now: Current unix time; defaults to the system clock.

    Raises:
        NopeError: ``ErrorKind.WEBHOOK_SIGNATURE`` for any verification
            failure, ``ErrorKind.API`` when a correctly signed body is not a
            valid webhook payload.
    """
    if not signature:
        raise _reject(f"Missing {SIGNATURE_HEADER} header")
    if not timestamp:
        raise _reject(f"Missing {TIMESTAMP_HEADER} header")
    if not secret:
        raise _reject("Webhook secret is required")

    try:
        signed_at = int(timestamp)
    except ValueError as exc:
        raise _reject("Invalid timestamp format") from exc

    if max_age_seconds > 0:
        current = int(time.time()) if now is None else now
        age = current - signed_at
        if age > max_age_seconds:
            raise _reject(f"Timestamp too old: {age}s ago (max: {max_age_seconds}s)")
        if age < -max_age_seconds:
            raise _reject(f"Timestamp too far in future: {-age}s ahead (max: {max_age_seconds}s)")

    try:
        body = _payload_bytes(payload)
        expected = compute_signature(secret, timestamp, body)
    except (TypeError, ValueError) as exc:
        raise _reject("Payload could not be serialized") from exc
    received = signature.removeprefix(SIGNATURE_PREFIX)
    if not _signatures_match(expected, received):
        raise _reject("Signature verification failed")

    try:
        if isinstance(payload, Mapping):
            return WebhookPayload.model_validate(payload)
        return WebhookPayload.model_validate_json(body)
    except ValidationError as exc:
        raise NopeError(ErrorKind.API, "Invalid webhook payload") from exc


def _header(headers: Mapping[str, str], name: str) -> str | None:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


def verify_webhook_headers(
    payload: WebhookBody,
    headers: Mapping[str, str],
    secret: str | bytes | None,
    *,
    max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
    now: int | None = None,
) -> WebhookPayload:
    return verify_webhook(
        payload,
        _header(headers, SIGNATURE_HEADER),
        _header(headers, TIMESTAMP_HEADER),
        secret,
        max_age_seconds=max_age_seconds,
        now=now,
    )


def verify_webhook_from_env(
    payload: WebhookBody,
    headers: Mapping[str, str],
    *,
    settings: NopeSettings | None = None,
    now: int | None = None,
) -> WebhookPayload:
    """Verify with ``NOPE_WEBHOOK_SECRET`` and ``NOPE_WEBHOOK_MAX_AGE_SECONDS``."""
    settings = settings or load_settings()
    return verify_webhook_headers(
        payload,
        headers,
        settings.NOPE_WEBHOOK_SECRET,
        max_age_seconds=settings.NOPE_WEBHOOK_MAX_AGE_SECONDS,
        now=now,
    )
