"""Fire-and-forget lockout notifications."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol, Set

import httpx

from ...infra.logging import get_logger

__all__ = [
    "BeaconLockoutNotifier",
    "LOCKOUT_EVENT",
    "LockoutNotifier",
    "LoggingLockoutNotifier",
    "build_lockout_notifier",
]

logger = get_logger(__name__)

LOCKOUT_EVENT = "password_locked"


class LockoutNotifier(Protocol):  # pragma: no cover - interface only
    """Reports a gate lockout; must never raise into the caller."""

    def notify_lockout(self, page_url: str) -> None: ...


@dataclass
class LoggingLockoutNotifier(LockoutNotifier):
    """Used when no notification endpoint is configured."""

    def notify_lockout(self, page_url: str) -> None:
        logger.info("lockout_beacon_skipped", extra={"url": page_url})


class BeaconLockoutNotifier(LockoutNotifier):
    """POSTs ``{url, event, occurred_at}`` to an external endpoint in the background."""

    def __init__(
        self,
        endpoint: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 5.0,
    ) -> None:
        self._endpoint = endpoint
        self._client = client
        self._timeout = timeout
        self._pending: Set[asyncio.Task[None]] = set()

    def notify_lockout(self, page_url: str) -> None:
        payload = {
            "url": page_url,
            "event": LOCKOUT_EVENT,
            "occurred_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("lockout_beacon_no_event_loop", extra={"url": page_url})
            return
        task = loop.create_task(self._send(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for in-flight beacons (tests and shutdown)."""

        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _send(self, payload: Dict[str, Any]) -> None:
        try:
            if self._client is not None:
                response = await self._client.post(self._endpoint, json=payload)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self._endpoint, json=payload)
            logger.info(
                "lockout_beacon_sent",
                extra={"endpoint": self._endpoint, "status": response.status_code},
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "lockout_beacon_failed",
                extra={"endpoint": self._endpoint, "error": str(exc)},
            )


def build_lockout_notifier(
    endpoint: Optional[str], *, client: Optional[httpx.AsyncClient] = None
) -> LockoutNotifier:
    if endpoint:
        return BeaconLockoutNotifier(endpoint, client=client)
    return LoggingLockoutNotifier()
