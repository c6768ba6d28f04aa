from .room import MAX_MEMBERS, Departure, DepartureSignal, JoinResult, Role, Room, RoomView

__all__ = [
    "Room",
    "RoomView",
    "Role",
    "JoinResult",
    "Departure",
    "DepartureSignal",
    "MAX_MEMBERS",
]
