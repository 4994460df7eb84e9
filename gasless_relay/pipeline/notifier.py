"""
Fire-and-forget webhook for confirmed relays.

Posts a relay.transfer.confirmed event signed with HMAC-SHA256 (hex) in
X-Relay-Signature. Delivery runs as a background task; the relay response
never waits for it and failures are only logged.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import uuid
from datetime import datetime, timezone
from typing import Any

import httpx

from gasless_relay.relay_logging import get_logger, short

logger = get_logger(__name__)

EVENT_TRANSFER_CONFIRMED = "relay.transfer.confirmed"
DELIVERY_TIMEOUT_SEC = 10.0


def sign_payload(secret: str, payload: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


class WebhookNotifier:
    def __init__(
        self,
        url: str,
        secret: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._secret = secret
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(DELIVERY_TIMEOUT_SEC))
        self._pending: set[asyncio.Task[None]] = set()

    def build_event(self, signature: str, data: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": str(uuid.uuid4()),
            "type": EVENT_TRANSFER_CONFIRMED,
            "createdAt": datetime.now(timezone.utc).isoformat(),
            "data": {"signature": signature, **data},
        }

    async def _deliver(self, event: dict[str, Any]) -> None:
        payload = json.dumps(event, separators=(",", ":")).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "X-Relay-Event": event["type"],
            "X-Relay-Delivery": event["id"],
            "X-Relay-Timestamp": event["createdAt"],
        }
        if self._secret:
            headers["X-Relay-Signature"] = sign_payload(self._secret, payload)
        signature = event["data"].get("signature", "")
        try:
            resp = await self._client.post(self._url, content=payload, headers=headers)
            if resp.status_code >= 400:
                logger.warning("relay_webhook_rejected", signature=short(signature, 16), status_code=resp.status_code)
            else:
                logger.info("relay_webhook_delivered", signature=short(signature, 16), status_code=resp.status_code)
        except httpx.HTTPError as e:
            logger.warning("relay_webhook_failed", signature=short(signature, 16), error=str(e))

    def notify_confirmed(self, signature: str, **data: Any) -> asyncio.Task[None]:
        """Schedule delivery and return immediately."""
        task = asyncio.get_running_loop().create_task(self._deliver(self.build_event(signature, data)))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def aclose(self) -> None:
        if self._pending:
            await asyncio.wait(self._pending, timeout=DELIVERY_TIMEOUT_SEC)
        await self._client.aclose()
