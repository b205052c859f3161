"""Outbound signed webhook delivery."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from typing import Any

import httpx

from astrid_agent.webhooks.models import DeliveryResult
from astrid_agent.webhooks.signature import DEFAULT_EVENT, build_headers

logger = logging.getLogger("astrid_agent.webhooks")

MAX_ATTEMPTS = 3
INITIAL_BACKOFF = 1.0
DEFAULT_TIMEOUT = 10.0


class WebhookClient:
    """Delivers signed JSON webhooks with retry.

    Failed attempts back off 1s, 2s, 4s... Client errors other than 429 are
    not retried. Delivery never raises; the outcome is a DeliveryResult.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        max_attempts: int = MAX_ATTEMPTS,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.timeout = timeout
        self.max_attempts = max_attempts
        self._client = http_client
        self._sleep: Callable[[float], None] = time.sleep

    @property
    def client(self) -> httpx.Client:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout)
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def deliver(
        self,
        url: str,
        secret: str,
        payload: dict[str, Any],
        event: str | None = None,
    ) -> DeliveryResult:
        """POST a signed payload to ``url``.

        Args:
            url: Receiver endpoint.
            secret: Shared signing secret.
            payload: JSON-serializable body.
            event: Value for X-Astrid-Event. Defaults to ``payload["event"]``.

        Returns:
            DeliveryResult with the number of attempts made.
        """
        event = event or payload.get("event") or DEFAULT_EVENT
        body = json.dumps(payload)
        status_code: int | None = None
        error: str | None = None

        attempt = 0
        while attempt < self.max_attempts:
            attempt += 1
            # Fresh timestamp per attempt so retries stay inside the receiver's window
            headers = build_headers(body, secret, event)
            try:
                response = self.client.post(url, content=body, headers=headers)
            except httpx.TimeoutException:
                error = f"Request timed out after {self.timeout}s"
            except httpx.HTTPError as e:
                error = str(e)
            else:
                status_code = response.status_code
                if response.is_success:
                    logger.info("Webhook %s delivered to %s (attempt %d)", event, url, attempt)
                    return DeliveryResult(True, attempt, status_code)
                error = f"HTTP {status_code}: {response.text[:200]}"
                if 400 <= status_code < 500 and status_code != 429:
                    logger.warning("Webhook client error, not retrying: %s", error)
                    break

            logger.warning(
                "Webhook attempt %d/%d to %s failed: %s", attempt, self.max_attempts, url, error
            )
            if attempt < self.max_attempts:
                self._sleep(INITIAL_BACKOFF * 2 ** (attempt - 1))

        logger.error("Webhook %s to %s failed after %d attempts: %s", event, url, attempt, error)
        return DeliveryResult(False, attempt, status_code, error)
