"""Room registry: owns every live room, keyed by code, plus connection membership."""

from __future__ import annotations

import logging
import random
import threading
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .ai import HeuristicAI
from .errors import InvalidRequest, NoSuchRoom, RoomUnavailable
from .game import GRID, Side
from .room import Room

logger = logging.getLogger(__name__)

ROOM_CODE_LENGTH = 6
MAX_CODE_LENGTH = 64


@dataclass(frozen=True)
class Departure:
    """What changed when a connection left a room."""

    room: Room
    connection_id: str
    name: str
    side: Optional[Side]
    removed: bool
    mid_game: bool


def normalize_code(code: Optional[str]) -> str:
    if not isinstance(code, str) or not code.strip():
        raise InvalidRequest("room code is required")
    normalized = code.strip().upper()
    if len(normalized) > MAX_CODE_LENGTH:
        raise InvalidRequest("room code is too long")
    return normalized


class RoomRegistry:
    """Creates, looks up and garbage-collects rooms.

    Lock order is always registry lock, then room lock. Gameplay only needs
    the room lock, so unrelated rooms never wait on each other.
    """

    def __init__(
        self,
        size: int = GRID,
        bot_name: str = "Bot",
        rng: Optional[random.Random] = None,
    ) -> None:
        self.size = size
        self.bot_name = bot_name
        self._rng = rng
        self._rooms: Dict[str, Room] = {}
        self._members: Dict[str, str] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)

    def __contains__(self, code: object) -> bool:
        if not isinstance(code, str):
            return False
        with self._lock:
            return code.strip().upper() in self._rooms

    def codes(self) -> List[str]:
        with self._lock:
            return sorted(self._rooms)

    def generate_code(self) -> str:
        with self._lock:
            for _ in range(10):
                code = uuid.uuid4().hex[:ROOM_CODE_LENGTH].upper()
                if code not in self._rooms:
                    return code
        raise RoomUnavailable("Unable to allocate room")

    # ---- lookup ----

    def resolve(self, code: str) -> Room:
        with self._lock:
            return self._resolve_locked(normalize_code(code))

    def _resolve_locked(self, code: str) -> Room:
        room = self._rooms.get(code)
        if room is None:
            room = Room(code=code, size=self.size)
            self._rooms[code] = room
            logger.info("Room %s created (%d active)", code, len(self._rooms))
        return room

    def get(self, code: Optional[str]) -> Room:
        normalized = normalize_code(code)
        with self._lock:
            room = self._rooms.get(normalized)
        if room is None:
            raise NoSuchRoom(normalized)
        return room

    def room_of(self, connection_id: str) -> Optional[Room]:
        with self._lock:
            code = self._members.get(connection_id)
            return self._rooms.get(code) if code else None

    def members(self, code: str) -> List[str]:
        """Connection ids currently named in a room, players and spectators alike."""
        with self._lock:
            room = self._rooms.get(code)
        if room is None:
            return []
        with room.lock:
            return list(room.names)

    # ---- membership ----

    def join(
        self,
        code: str,
        connection_id: str,
        display_name: Optional[str],
        with_bot: bool = False,
    ) -> Tuple[Room, Optional[Side], Optional[Departure]]:
        """Seat ``connection_id`` in ``code``, leaving any other room first.

        Returns the room, the side taken (None for spectators) and the
        departure from the previous room, if there was one.
        """
        normalized = normalize_code(code)
        with self._lock:
            existing = self._rooms.get(normalized)
            if with_bot and existing is not None and not existing.is_empty():
                raise RoomUnavailable(f"Room {normalized} is already in use")

            departure = None
            previous = self._members.get(connection_id)
            if previous is not None and previous != normalized:
                departure = self._vacate_locked(connection_id)

            room = self._resolve_locked(normalized)
            with room.lock:
                side = room.assign(connection_id, display_name)
                if with_bot:
                    ai = HeuristicAI(player="O", size=room.size, rng=self._rng or random.Random())
                    room.seat_bot("O", ai, self.bot_name)
                name = room.name_of(connection_id)
            self._members[connection_id] = normalized

        logger.info("%s joined %s as %s", name, normalized, side or "spectator")
        return room, side, departure

    def vacate(self, connection_id: str) -> Optional[Departure]:
        """Remove a connection from its room; None if it was in no room."""
        with self._lock:
            return self._vacate_locked(connection_id)

    def _vacate_locked(self, connection_id: str) -> Optional[Departure]:
        code = self._members.pop(connection_id, None)
        if code is None:
            return None
        room = self._rooms.get(code)
        if room is None:
            return None
        with room.lock:
            name = room.name_of(connection_id)
            side = room.release(connection_id)
            mid_game = side is not None and not room.finished
            removed = room.is_empty()
            if removed:
                room.closed = True
                self._rooms.pop(code, None)
        logger.info("%s left %s", name, code)
        if removed:
            logger.info("Room %s removed (%d active)", code, len(self._rooms))
        return Departure(
            room=room,
            connection_id=connection_id,
            name=name,
            side=side,
            removed=removed,
            mid_game=mid_game,
        )
