"""
Launch feed: ``logsSubscribe`` on the launch program over websockets.

Each successful transaction whose logs contain ``Instruction: Create`` is
turned into a :class:`LaunchEvent` and handed to the ``on_launch``
callback.  The connection is re-established with exponential backoff
whenever it drops; a failing callback never tears the stream down.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Optional

import websockets

from ..models import LaunchEvent

logger = logging.getLogger(__name__)

_CREATE_MARKER = "Instruction: Create"

# Receive timeout before a keep-alive ping (seconds)
_RECV_TIMEOUT = 30.0
# Signatures remembered to drop replays after a reconnect
_RECENT_SIGNATURES = 4096

LaunchCallback = Callable[[LaunchEvent], Awaitable[Any]]


def build_subscribe_request(program_id: str, request_id: int = 1) -> dict:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "logsSubscribe",
        "params": [
            {"mentions": [program_id]},
            {"commitment": "confirmed"},
        ],
    }


def parse_log_notification(message: Any) -> Optional[LaunchEvent]:
    """Return a LaunchEvent for a successful Create notification, else None.

    Subscription acks, failed transactions and non-create logs all map
    to ``None``.
    """
    if not isinstance(message, dict) or message.get("method") != "logsNotification":
        return None
    result = (message.get("params") or {}).get("result") or {}
    value = result.get("value") or {}
    slot = (result.get("context") or {}).get("slot")
    signature = value.get("signature")
    logs = value.get("logs") or []

    if value.get("err") is not None or not signature or not isinstance(slot, int):
        return None
    if not any(isinstance(line, str) and _CREATE_MARKER in line for line in logs):
        return None
    return LaunchEvent(creation_signature=signature, slot=slot)


class LaunchLogStream:
    """Reconnecting ``logsSubscribe`` client for one program."""

    def __init__(
        self,
        ws_url: str,
        program_id: str,
        *,
        reconnect_delay: float = 2.0,
        max_reconnect_delay: float = 60.0,
    ) -> None:
        self._ws_url = ws_url
        self._program_id = program_id
        self._reconnect_delay = reconnect_delay
        self._max_reconnect_delay = max_reconnect_delay
        self._running = False
        self._recent: deque[str] = deque(maxlen=_RECENT_SIGNATURES)
        self._recent_set: set[str] = set()
        self.reconnect_count = 0

    def stop(self) -> None:
        self._running = False

    def _is_replay(self, signature: str) -> bool:
        if signature in self._recent_set:
            return True
        if len(self._recent) == self._recent.maxlen:
            self._recent_set.discard(self._recent[0])
        self._recent.append(signature)
        self._recent_set.add(signature)
        return False

    async def run(self, on_launch: LaunchCallback) -> None:
        """Stream launches into *on_launch* until :meth:`stop` is called."""
        self._running = True
        attempt = 0
        while self._running:
            try:
                async with websockets.connect(
                    self._ws_url,
                    ping_interval=20,
                    ping_timeout=10,
                    close_timeout=5,
                ) as ws:
                    await ws.send(json.dumps(build_subscribe_request(self._program_id)))
                    logger.info("Subscribed to logs of %s", self._program_id)
                    attempt = 0
                    await self._consume(ws, on_launch)
            except asyncio.CancelledError:
                raise
            except (OSError, websockets.WebSocketException) as exc:
                logger.warning("Log stream connection lost: %s", exc)

            if not self._running:
                break
            self.reconnect_count += 1
            delay = min(self._reconnect_delay * (2 ** attempt), self._max_reconnect_delay)
            attempt += 1
            logger.info("Reconnecting log stream in %.1fs (attempt #%d)", delay, self.reconnect_count)
            await asyncio.sleep(delay)

    async def _consume(self, ws: Any, on_launch: LaunchCallback) -> None:
        while self._running:
            try:
                raw = await asyncio.wait_for(ws.recv(), timeout=_RECV_TIMEOUT)
            except asyncio.TimeoutError:
                await ws.ping()
                continue

            try:
                message = json.loads(raw)
            except (TypeError, ValueError):
                logger.debug("Dropping non-JSON frame")
                continue

            if isinstance(message, dict) and "result" in message and "id" in message:
                logger.info("Log subscription confirmed – id %s", message["result"])
                continue

            event = parse_log_notification(message)
            if event is None or self._is_replay(event.creation_signature):
                continue
            try:
                await on_launch(event)
            except Exception:
                logger.exception("Launch callback failed for %s", event.creation_signature)
