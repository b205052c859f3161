"""Custom exceptions for webhooks."""


class WebhookError(Exception):
    """Base exception for webhook errors."""


class SignatureVerificationError(WebhookError):
    """An inbound webhook failed signature verification."""

    def __init__(self, message: str, source: str | None = None) -> None:
        super().__init__(message)
        self.source = source
