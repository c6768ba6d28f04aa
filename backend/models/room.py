from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class Role(str, Enum):
    HOST = "host"
    GUEST = "guest"

    @property
    def player_index(self) -> int:
        return 0 if self is Role.HOST else 1


class DepartureSignal(str, Enum):
    HOST_LEFT = "host_left"
    PEER_LEFT = "peer_left"


MAX_MEMBERS = 2


@dataclass
class Room:
    """Registry-owned record. Never handed out; readers get a RoomView."""

    code: str                              # 5 chars, unambiguous alphabet
    host_connection_id: str | None
    members: set[str] = field(default_factory=set)
    last_state: Any = None                 # opaque host snapshot
    last_active_at: float | None = None    # monotonic seconds, eviction only
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def view(self) -> "RoomView":
        return RoomView(
            code=self.code,
            host_connection_id=self.host_connection_id,
            members=frozenset(self.members),
            has_snapshot=self.last_state is not None,
            last_active_at=self.last_active_at,
        )


@dataclass(frozen=True)
class RoomView:
    code: str
    host_connection_id: str | None
    members: frozenset[str]
    has_snapshot: bool
    last_active_at: float | None

    def role_of(self, connection_id: str) -> Role | None:
        if connection_id not in self.members:
            return None
        return Role.HOST if connection_id == self.host_connection_id else Role.GUEST

    def others(self, connection_id: str) -> list[str]:
        return sorted(m for m in self.members if m != connection_id)


@dataclass(frozen=True)
class JoinResult:
    role: Role
    resumed: bool = False
    already_member: bool = False         # idempotent re-join, nothing changed


@dataclass(frozen=True)
class Departure:
    signal: DepartureSignal
    remaining: frozenset[str]
    closed: bool                           # room deleted because it emptied
