from __future__ import annotations

import asyncio
import logging
from contextlib import suppress

from app.models import RoomClosed, ServerEvent
from models import RoomView
from services.outbound_hub import OutboundHub
from services.registry import SessionRegistry

logger = logging.getLogger(__name__)


class RoomSweeper:
    """Periodic eviction of empty or long-vacant rooms."""

    def __init__(self, registry: SessionRegistry, hub: OutboundHub, *, interval_seconds: float = 60.0) -> None:
        self._registry = registry
        self._hub = hub
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="room-sweeper")
        logger.info("[sweeper] Started (interval=%.0fs, grace=%.0fs)", self._interval, self._registry.grace_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("[sweeper] Stopped")

    async def sweep_once(self, now: float | None = None) -> list[RoomView]:
        evicted = await self._registry.sweep(now)
        for view in evicted:
            notice = RoomClosed(code=view.code).to_wire()
            for member in sorted(view.members):
                await self._hub.send(member, ServerEvent.ROOM_CLOSED, notice)
        return evicted

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                evicted = await self.sweep_once()
            except Exception:
                logger.exception("[sweeper] Sweep pass failed")
                continue
            if evicted:
                logger.info("[sweeper] Evicted %d room(s); %d live", len(evicted), len(self._registry))
