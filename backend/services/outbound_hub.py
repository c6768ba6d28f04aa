from __future__ import annotations

import asyncio
import logging
from typing import Any

logger = logging.getLogger(__name__)

Message = dict[str, Any]


class OutboundHub:
    """
    Per-connection outboxes for server -> client events.

    Each WebSocket registers one bounded asyncio.Queue and drains it from a
    writer task. Two delivery modes:
      - send(): relays and notifications. A full outbox drops its oldest
        message to make room (latest-wins).
      - send_best_effort(): droppable traffic (snapshots). A full outbox drops
        the new message instead; nothing is retried.
    """

    def __init__(self, *, maxsize: int = 32) -> None:
        self._lock = asyncio.Lock()
        self._maxsize = maxsize
        self._outboxes: dict[str, asyncio.Queue[Message]] = {}

    def __len__(self) -> int:
        return len(self._outboxes)

    async def register(self, connection_id: str) -> asyncio.Queue[Message]:
        q: asyncio.Queue[Message] = asyncio.Queue(maxsize=self._maxsize)
        async with self._lock:
            self._outboxes[connection_id] = q
        return q

    async def unregister(self, connection_id: str) -> None:
        async with self._lock:
            self._outboxes.pop(connection_id, None)

    async def send(self, connection_id: str, event: str, data: Any = None) -> bool:
        q = await self._outbox(connection_id)
        if q is None:
            return False
        message = {"event": event, "data": data}
        if q.full():
            try:
                dropped = q.get_nowait()
                logger.warning(
                    "[outbound_hub] Outbox full for %s; dropped queued %s",
                    connection_id,
                    dropped.get("event"),
                )
            except asyncio.QueueEmpty:
                pass
        try:
            q.put_nowait(message)
        except asyncio.QueueFull:
            # Raced between the full-check and the put.
            logger.warning("[outbound_hub] Dropped %s for %s", event, connection_id)
            return False
        return True

    async def send_best_effort(self, connection_id: str, event: str, data: Any = None) -> bool:
        q = await self._outbox(connection_id)
        if q is None:
            return False
        try:
            q.put_nowait({"event": event, "data": data})
        except asyncio.QueueFull:
            logger.debug("[outbound_hub] Best-effort %s dropped for %s", event, connection_id)
            return False
        return True

    async def _outbox(self, connection_id: str) -> asyncio.Queue[Message] | None:
        async with self._lock:
            return self._outboxes.get(connection_id)
