"""Webhooks - signed callbacks between the engine and remote executors."""

from astrid_agent.webhooks.client import WebhookClient
from astrid_agent.webhooks.exceptions import SignatureVerificationError, WebhookError
from astrid_agent.webhooks.models import CallbackData, CallbackPayload, DeliveryResult
from astrid_agent.webhooks.signature import (
    EVENT_HEADER,
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    VerificationResult,
    WebhookHeaders,
    build_headers,
    extract_headers,
    sign,
    verify,
    verify_with_fallback,
)

__all__ = [
    "EVENT_HEADER",
    "SIGNATURE_HEADER",
    "TIMESTAMP_HEADER",
    "CallbackData",
    "CallbackPayload",
    "DeliveryResult",
    "SignatureVerificationError",
    "VerificationResult",
    "WebhookClient",
    "WebhookError",
    "WebhookHeaders",
    "build_headers",
    "extract_headers",
    "sign",
    "verify",
    "verify_with_fallback",
]
