from .outbound_hub import OutboundHub
from .registry import SessionRegistry
from .relay import RelayHandler
from .sweeper import RoomSweeper

__all__ = ["SessionRegistry", "OutboundHub", "RelayHandler", "RoomSweeper"]
