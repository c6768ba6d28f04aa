"""Per-connection relay protocol: room create/join, peer relays, departure."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, ValidationError

from app.models import (
    ClientEvent,
    ClientInputPayload,
    Envelope,
    FailureAck,
    HostSnapshotPayload,
    PauseStatePayload,
    PeerLeft,
    RoomAck,
    RoomPayload,
    ServerEvent,
)
from models import Role, RoomView
from services.errors import RelayError, RoomFull, RoomNotFound
from services.outbound_hub import OutboundHub
from services.registry import SessionRegistry, normalize_code

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    UNATTACHED = "unattached"
    ATTACHED = "attached"
    DETACHED = "detached"


def _failure(reason: str, error: str) -> dict[str, Any]:
    return FailureAck(error=error, reason=reason).to_wire()


INTERNAL_FAILURE = _failure(RelayError.reason, RelayError.message)
BAD_REQUEST = _failure("bad_request", "Malformed request.")


class RelayHandler:
    """
    Relay logic for one client connection.

    Holds only the connection id and the code of the room it is in; the room
    itself is looked up in the registry on every event, since the sweeper may
    evict it between messages.

    States: UNATTACHED -> ATTACHED(host|guest) -> DETACHED (terminal).
    """

    def __init__(self, connection_id: str, registry: SessionRegistry, hub: OutboundHub) -> None:
        self.connection_id = connection_id
        self.code: str | None = None
        self._registry = registry
        self._hub = hub
        self._detached = False

    @property
    def state(self) -> ConnectionState:
        if self._detached:
            return ConnectionState.DETACHED
        return ConnectionState.ATTACHED if self.code else ConnectionState.UNATTACHED

    @property
    def role(self) -> Role | None:
        if self.code is None:
            return None
        view = self._registry.lookup(self.code)
        return view.role_of(self.connection_id) if view else None

    async def dispatch(self, envelope: Envelope) -> dict[str, Any] | None:
        """Route one inbound frame. Returns the ack body for createRoom/joinRoom."""
        if self._detached:
            return None
        event = envelope.event
        if event == ClientEvent.CREATE_ROOM:
            return await self.create_room()
        if event == ClientEvent.JOIN_ROOM:
            code = envelope.data.get("code") if isinstance(envelope.data, dict) else envelope.data
            if not isinstance(code, str):
                logger.warning("[relay] joinRoom without a usable code from %s", self.connection_id)
                return BAD_REQUEST if envelope.ack is not None else None
            return await self.join_room(code)

        relays = {
            ClientEvent.CLIENT_INPUT: (ClientInputPayload, self.client_input),
            ClientEvent.HOST_SNAPSHOT: (HostSnapshotPayload, self.host_snapshot),
            ClientEvent.PAUSE_STATE: (PauseStatePayload, self.pause_state),
            ClientEvent.REQUEST_SNAPSHOT: (RoomPayload, self.request_snapshot),
        }
        if event not in relays:
            logger.warning("[relay] Unknown event %r from %s", event, self.connection_id)
            return BAD_REQUEST if envelope.ack is not None else None
        schema, method = relays[ClientEvent(event)]
        payload = self._parse(schema, envelope.data)
        if payload is not None:
            await method(payload)
        return None

    async def create_room(self) -> dict[str, Any]:
        previous = self.code
        try:
            code = await self._registry.create(self.connection_id)
        except Exception:
            logger.exception("[relay] createRoom failed for %s", self.connection_id)
            return INTERNAL_FAILURE
        self.code = code
        if previous and previous != code:
            await self._depart(previous)
        return RoomAck(code=code, is_host=True, player_index=Role.HOST.player_index).to_wire()

    async def join_room(self, raw_code: str) -> dict[str, Any]:
        code = normalize_code(raw_code)
        try:
            result = await self._registry.join(code, self.connection_id)
        except (RoomNotFound, RoomFull) as e:
            logger.info("[relay] joinRoom refused code=%s connection=%s reason=%s", code, self.connection_id, e.reason)
            return _failure(e.reason, e.message)
        except Exception:
            logger.exception("[relay] joinRoom failed code=%s connection=%s", code, self.connection_id)
            return INTERNAL_FAILURE

        previous = self.code
        self.code = code
        if previous and previous != code:
            await self._depart(previous)

        if result.role is Role.GUEST and not result.already_member:
            view = self._registry.lookup(code)
            if view and view.host_connection_id:
                await self._hub.send(view.host_connection_id, ServerEvent.PEER_JOINED)

        return RoomAck(
            code=code,
            is_host=result.role is Role.HOST,
            player_index=result.role.player_index,
            resumed=True if result.resumed else None,
        ).to_wire()

    async def client_input(self, payload: ClientInputPayload) -> None:
        view = self._resolve(payload.code)
        if view is None or view.host_connection_id is None:
            return
        await self._hub.send(
            view.host_connection_id,
            ServerEvent.CLIENT_INPUT,
            {"id": self.connection_id, "input": payload.input},
        )
        await self._registry.record_activity(view.code)

    async def host_snapshot(self, payload: HostSnapshotPayload) -> None:
        view = self._resolve(payload.code)
        if view is None:
            return
        if view.host_connection_id != self.connection_id:
            logger.debug("[relay] Ignoring snapshot from non-host %s in %s", self.connection_id, view.code)
            return
        await self._registry.publish_snapshot(view.code, self.connection_id, payload.state)
        for other in view.others(self.connection_id):
            await self._hub.send_best_effort(other, ServerEvent.HOST_SNAPSHOT, payload.state)

    async def pause_state(self, payload: PauseStatePayload) -> None:
        view = self._resolve(payload.code)
        if view is None:
            return
        for other in view.others(self.connection_id):
            await self._hub.send(other, ServerEvent.PAUSE_STATE, {"paused": payload.paused, "player": payload.player})
        await self._registry.record_activity(view.code)

    async def request_snapshot(self, payload: RoomPayload) -> None:
        view = self._resolve(payload.code)
        if view is None:
            return
        state = await self._registry.fetch_snapshot(view.code)
        if state is None:
            return
        logger.info("[relay] Sending resume snapshot to %s (room %s)", self.connection_id, view.code)
        await self._hub.send_best_effort(self.connection_id, ServerEvent.HOST_SNAPSHOT, state)

    async def connection_lost(self) -> None:
        if self._detached:
            return
        self._detached = True
        code = self.code or self._registry.room_of(self.connection_id)
        self.code = None
        if code:
            await self._depart(code)

    async def _depart(self, code: str) -> None:
        departure = await self._registry.departure(code, self.connection_id)
        if departure is None:
            return
        notice = PeerLeft(reason=departure.signal.value).to_wire()
        for member in sorted(departure.remaining):
            await self._hub.send(member, ServerEvent.PEER_LEFT, notice)

    def _resolve(self, requested_code: str | None) -> RoomView | None:
        if self.code is None:
            return None
        if requested_code is not None and normalize_code(requested_code) != self.code:
            logger.debug("[relay] %s addressed room %r but is in %s", self.connection_id, requested_code, self.code)
            return None
        view = self._registry.lookup(self.code)
        if view is None or self.connection_id not in view.members:
            logger.info("[relay] Room %s is gone; %s is unattached", self.code, self.connection_id)
            self.code = None
            return None
        return view

    def _parse(self, schema: type[BaseModel], data: Any) -> Any:
        try:
            return schema.model_validate(data if data is not None else {})
        except ValidationError as e:
            logger.warning("[relay] Malformed payload from %s: %s", self.connection_id, e.errors()[0].get("msg"))
            return None
