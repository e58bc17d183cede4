"""Exceptions raised by the room engine."""

from __future__ import annotations


class CaroError(Exception):
    """Base class for engine errors."""


class InvalidRequest(CaroError):
    """Missing or malformed input, rejected before any state change."""


class NoSuchRoom(CaroError):
    def __init__(self, code: str) -> None:
        super().__init__(f"Room {code!r} not found")
        self.code = code


class RoomUnavailable(CaroError):
    """The requested room code cannot be used for this action."""


class NotAPlayer(CaroError):
    """The caller holds no side in the room."""


class MoveRejected(CaroError):
    GAME_FINISHED = "game finished"
    INVALID_COORDINATES = "invalid coordinates"
    CELL_TAKEN = "cell taken"
    NOT_YOUR_SIDE = "not your assigned side"
    NOT_YOUR_TURN = "not your turn"

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason
