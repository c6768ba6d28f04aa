"""Relay error taxonomy."""


class RelayError(Exception):
    """Base class. `reason` is the machine-readable tag sent in failure acks."""

    reason = "internal"
    message = "Internal server error."


class RoomNotFound(RelayError):
    reason = "not_found"
    message = "Invalid code or session expired."

    def __init__(self, code: str) -> None:
        super().__init__(f"room {code!r} not found")
        self.code = code


class RoomFull(RelayError):
    reason = "room_full"
    message = "Room is full."

    def __init__(self, code: str) -> None:
        super().__init__(f"room {code!r} is full")
        self.code = code


class CodeSpaceExhausted(RelayError):
    """Could not draw an unused room code. A configuration problem, not a user error."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"no free room code after {attempts} attempts")
        self.attempts = attempts
