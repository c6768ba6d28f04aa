from __future__ import annotations

from dataclasses import dataclass

from app.config import Settings
from services.outbound_hub import OutboundHub
from services.registry import SessionRegistry
from services.sweeper import RoomSweeper


@dataclass
class RelayContext:
    """Everything a request needs, built once per app instead of module globals."""

    settings: Settings
    registry: SessionRegistry
    hub: OutboundHub
    sweeper: RoomSweeper

    @classmethod
    def build(cls, settings: Settings) -> RelayContext:
        registry = SessionRegistry(grace_seconds=settings.grace_seconds)
        hub = OutboundHub(maxsize=settings.outbox_size)
        sweeper = RoomSweeper(registry, hub, interval_seconds=settings.sweep_interval_seconds)
        return cls(settings=settings, registry=registry, hub=hub, sweeper=sweeper)
