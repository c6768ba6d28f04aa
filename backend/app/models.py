from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ClientEvent(StrEnum):
    CREATE_ROOM = "createRoom"
    JOIN_ROOM = "joinRoom"
    CLIENT_INPUT = "clientInput"
    HOST_SNAPSHOT = "hostSnapshot"
    PAUSE_STATE = "pauseState"
    REQUEST_SNAPSHOT = "requestSnapshot"


class ServerEvent(StrEnum):
    ACK = "ack"
    CLIENT_INPUT = "clientInput"
    HOST_SNAPSHOT = "hostSnapshot"
    PAUSE_STATE = "pauseState"
    PEER_JOINED = "peerJoined"
    PEER_LEFT = "peerLeft"
    ROOM_CLOSED = "roomClosed"


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Envelope(BaseModel):
    """One inbound frame: {"event": ..., "data": ..., "ack": ...}."""

    event: str
    data: Any = None
    ack: int | str | None = None


class RoomPayload(BaseModel):
    code: str | None = None


class ClientInputPayload(RoomPayload):
    input: Any = None


class HostSnapshotPayload(RoomPayload):
    state: Any = None


class PauseStatePayload(RoomPayload):
    paused: Any = None
    player: Any = None


class RoomAck(WireModel):
    ok: bool = True
    code: str
    is_host: bool
    player_index: int
    resumed: bool | None = None


class FailureAck(WireModel):
    ok: bool = False
    error: str
    reason: str


class PeerLeft(WireModel):
    reason: str


class RoomClosed(WireModel):
    code: str


class HealthResponse(BaseModel):
    status: str = "ok"
    rooms: int = Field(ge=0)
    connections: int = Field(ge=0)
