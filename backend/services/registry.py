"""In-memory room registry. Keyed by room code, single process."""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from collections.abc import Callable
from typing import Any

from models import MAX_MEMBERS, Departure, DepartureSignal, JoinResult, Role, Room, RoomView
from services.errors import CodeSpaceExhausted, RoomFull, RoomNotFound

logger = logging.getLogger(__name__)

# No 0/O or 1/I so codes survive being read aloud or typed from a screen.
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 5
MAX_CODE_ATTEMPTS = 64


def generate_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def normalize_code(code: str) -> str:
    return code.strip().upper()


class SessionRegistry:
    """
    Owns every Room. Callers only ever hold a room code and re-resolve it
    per operation; reads return frozen RoomView copies.

    - One asyncio.Lock guards the whole map (sweep included).
    - `_room_by_connection` mirrors membership so disconnect cleanup needs no scan.
    """

    def __init__(
        self,
        *,
        grace_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
        code_factory: Callable[[], str] = generate_code,
    ) -> None:
        self._lock = asyncio.Lock()
        self._rooms: dict[str, Room] = {}
        self._room_by_connection: dict[str, str] = {}
        self._grace_seconds = grace_seconds
        self._clock = clock
        self._code_factory = code_factory

    @property
    def grace_seconds(self) -> float:
        return self._grace_seconds

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, code: object) -> bool:
        return code in self._rooms

    def lookup(self, code: str) -> RoomView | None:
        room = self._rooms.get(code)
        return room.view() if room else None

    def room_of(self, connection_id: str) -> str | None:
        return self._room_by_connection.get(connection_id)

    async def create(self, connection_id: str) -> str:
        async with self._lock:
            code = self._fresh_code()
            self._rooms[code] = Room(
                code=code,
                host_connection_id=connection_id,
                members={connection_id},
                last_active_at=self._clock(),
            )
            self._room_by_connection[connection_id] = code
        logger.info("[registry] Room created code=%s host=%s", code, connection_id)
        return code

    async def join(self, code: str, connection_id: str) -> JoinResult:
        async with self._lock:
            room = self._rooms.get(code)
            if room is None:
                raise RoomNotFound(code)

            if room.host_connection_id is None:
                room.host_connection_id = connection_id
                room.members.add(connection_id)
                room.last_active_at = self._clock()
                self._room_by_connection[connection_id] = code
                logger.info("[registry] Host resumed code=%s host=%s", code, connection_id)
                return JoinResult(role=Role.HOST, resumed=True)

            if connection_id in room.members:
                role = Role.HOST if connection_id == room.host_connection_id else Role.GUEST
                return JoinResult(role=role, already_member=True)

            if len(room.members) >= MAX_MEMBERS:
                raise RoomFull(code)

            room.members.add(connection_id)
            room.last_active_at = self._clock()
            self._room_by_connection[connection_id] = code
        logger.info("[registry] Guest joined code=%s guest=%s", code, connection_id)
        return JoinResult(role=Role.GUEST)

    async def record_activity(self, code: str) -> None:
        async with self._lock:
            room = self._rooms.get(code)
            if room is not None:
                room.last_active_at = self._clock()

    async def publish_snapshot(self, code: str, connection_id: str, payload: Any) -> None:
        """Cache write only; role is the caller's concern."""
        async with self._lock:
            room = self._rooms.get(code)
            if room is None:
                return
            room.last_state = payload
            room.last_active_at = self._clock()
        logger.debug("[registry] Snapshot stored code=%s from=%s", code, connection_id)

    async def fetch_snapshot(self, code: str) -> Any:
        async with self._lock:
            room = self._rooms.get(code)
            return room.last_state if room else None

    async def departure(self, code: str, connection_id: str) -> Departure | None:
        async with self._lock:
            room = self._rooms.get(code)
            if room is None or connection_id not in room.members:
                if self._room_by_connection.get(connection_id) == code:
                    self._room_by_connection.pop(connection_id, None)
                return None

            room.members.discard(connection_id)
            if self._room_by_connection.get(connection_id) == code:
                del self._room_by_connection[connection_id]
            # Grace window for a vacant host counts from the moment it left.
            room.last_active_at = self._clock()

            if room.host_connection_id == connection_id:
                room.host_connection_id = None
                signal = DepartureSignal.HOST_LEFT
            else:
                signal = DepartureSignal.PEER_LEFT

            closed = not room.members
            if closed:
                del self._rooms[code]
            remaining = frozenset(room.members)

        logger.info(
            "[registry] Departure code=%s connection=%s signal=%s closed=%s",
            code,
            connection_id,
            signal.value,
            closed,
        )
        return Departure(signal=signal, remaining=remaining, closed=closed)

    async def sweep(self, now: float | None = None) -> list[RoomView]:
        """Evict empty rooms and rooms whose host slot outlived the grace window."""
        if now is None:
            now = self._clock()
        evicted: list[RoomView] = []
        async with self._lock:
            for code, room in list(self._rooms.items()):
                if not self._is_stale(room, now):
                    continue
                evicted.append(room.view())
                del self._rooms[code]
                for member in room.members:
                    if self._room_by_connection.get(member) == code:
                        del self._room_by_connection[member]
        for view in evicted:
            logger.info("[registry] Evicted code=%s members=%d", view.code, len(view.members))
        return evicted

    def _is_stale(self, room: Room, now: float) -> bool:
        if not room.members:
            return True
        if room.host_connection_id is not None:
            return False
        if room.last_active_at is None:
            return True
        return now - room.last_active_at > self._grace_seconds

    def _fresh_code(self) -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = self._code_factory()
            if code not in self._rooms:
                return code
        raise CodeSpaceExhausted(MAX_CODE_ATTEMPTS)
