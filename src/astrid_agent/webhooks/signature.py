"""HMAC-SHA256 signing and verification for Astrid webhooks.

The signed bytes are ``timestamp``, a dot, then the raw request body, where
``timestamp`` is Unix time in milliseconds. Bodies are signed as received,
without decoding, so a body that is not valid UTF-8 still verifies.
Signatures travel as ``sha256=<hex>`` in ``X-Astrid-Signature``.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass

logger = logging.getLogger("astrid_agent.webhooks")

SIGNATURE_HEADER = "X-Astrid-Signature"
TIMESTAMP_HEADER = "X-Astrid-Timestamp"
EVENT_HEADER = "X-Astrid-Event"
USER_AGENT = "Astrid-Webhooks/1.0"
SIGNATURE_PREFIX = "sha256="

DEFAULT_MAX_AGE_MS = 5 * 60 * 1000
MAX_FUTURE_SKEW_MS = 60 * 1000
DEFAULT_EVENT = "task.assigned"


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a signature check."""

    valid: bool
    error: str | None = None


@dataclass(frozen=True)
class WebhookHeaders:
    """Signature headers pulled from a request."""

    signature: str
    timestamp: str
    event: str = "unknown"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _as_bytes(payload: bytes | str) -> bytes:
    return payload.encode() if isinstance(payload, str) else payload


def sign(payload: bytes | str, secret: str, timestamp: str) -> str:
    """Compute the hex HMAC-SHA256 of ``timestamp.payload``.

    A str payload is UTF-8 encoded; bytes are used as-is.
    """
    message = timestamp.encode() + b"." + _as_bytes(payload)
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def verify(
    payload: bytes | str,
    signature: str | None,
    secret: str | None,
    timestamp: str | None,
    max_age_ms: int = DEFAULT_MAX_AGE_MS,
    now_ms: int | None = None,
) -> VerificationResult:
    """Verify a webhook signature.

    Args:
        payload: Raw request body exactly as received.
        signature: Header value, with or without the ``sha256=`` prefix.
        secret: Shared secret.
        timestamp: Header value, Unix milliseconds as a string.
        max_age_ms: Oldest acceptable timestamp.
        now_ms: Current time override for tests.

    Returns:
        VerificationResult; ``error`` names the first failed check.
    """
    if not payload or not signature or not secret or not timestamp:
        return VerificationResult(False, "Missing required parameters")

    try:
        sent_at = int(timestamp)
    except ValueError:
        return VerificationResult(False, "Invalid timestamp format")

    now = _now_ms() if now_ms is None else now_ms
    age = now - sent_at
    if age > max_age_ms:
        return VerificationResult(False, "Timestamp expired")
    if age < -MAX_FUTURE_SKEW_MS:
        return VerificationResult(False, "Timestamp too far in future")

    provided = signature.removeprefix(SIGNATURE_PREFIX)
    expected = sign(payload, secret, timestamp)
    if not hmac.compare_digest(provided.encode(), expected.encode()):
        return VerificationResult(False, "Invalid signature")
    return VerificationResult(True)


def verify_with_fallback(
    payload: bytes | str,
    signature: str | None,
    timestamp: str | None,
    primary_secret: str | None,
    fallback_secret: str | None,
    now_ms: int | None = None,
) -> tuple[VerificationResult, str | None]:
    """Verify against a per-user secret, then the environment secret.

    Returns:
        The result and which secret matched (``"user_config"`` or ``"env"``);
        on failure the source is the last one tried, or None when no secret
        was available at all.
    """
    attempts = [("user_config", primary_secret), ("env", fallback_secret)]
    result = VerificationResult(False, "No webhook secret configured")
    source: str | None = None
    for name, secret in attempts:
        if not secret:
            continue
        source = name
        result = verify(payload, signature, secret, timestamp, now_ms=now_ms)
        if result.valid:
            logger.info("Webhook signature verified via %s", name)
            return result, name

    logger.warning("Webhook signature verification failed (source: %s): %s", source, result.error)
    return result, source


def build_headers(
    payload: bytes | str,
    secret: str,
    event: str = DEFAULT_EVENT,
    timestamp: str | None = None,
) -> dict[str, str]:
    """Headers for an outbound signed webhook."""
    timestamp = timestamp or str(_now_ms())
    return {
        "Content-Type": "application/json",
        SIGNATURE_HEADER: SIGNATURE_PREFIX + sign(payload, secret, timestamp),
        TIMESTAMP_HEADER: timestamp,
        EVENT_HEADER: event,
        "User-Agent": USER_AGENT,
    }


def _header(headers: Mapping[str, str], name: str) -> str | None:
    value = headers.get(name)
    if value is None:
        value = headers.get(name.lower())
    return value


def extract_headers(headers: Mapping[str, str]) -> WebhookHeaders | None:
    """Pull signature, timestamp and event from request headers.

    Returns None when the signature or the timestamp is missing.
    """
    signature = _header(headers, SIGNATURE_HEADER)
    timestamp = _header(headers, TIMESTAMP_HEADER)
    if not signature or not timestamp:
        return None
    return WebhookHeaders(
        signature=signature,
        timestamp=timestamp,
        event=_header(headers, EVENT_HEADER) or "unknown",
    )
