"""Inbound action handling for rooms.

Each public method of ``GameProtocol`` corresponds to one client action. It
resolves the room, mutates it while holding the room lock (including any bot
reply the move triggers) and returns the ``Outbound`` notifications that the
transport should deliver. Nothing here knows about sockets.
"""

from __future__ import annotations

import functools
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, TypeVar

from .errors import InvalidRequest, MoveRejected, NoSuchRoom, NotAPlayer
from .game import DRAW, Side, Win, parse_side
from .registry import Departure, RoomRegistry, normalize_code
from .room import MoveResult, Room

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHAT_LENGTH = 500
DEFAULT_MAX_NAME_LENGTH = 32

F = TypeVar("F", bound=Callable[..., List["Outbound"]])


class Audience(str, Enum):
    ROOM = "room"
    OTHERS = "others"
    ORIGINATOR = "originator"


@dataclass(frozen=True)
class Outbound:
    """A notification for the transport to deliver."""

    event: str
    room: Optional[str]
    payload: Dict[str, Any] = field(default_factory=dict)
    audience: Audience = Audience.ROOM

    def message(self) -> Dict[str, Any]:
        return {"type": self.event, **self.payload}


def _ignore_unknown_room(method: F) -> F:
    """Operations on unknown or removed rooms resolve to no notifications."""

    @functools.wraps(method)
    def wrapper(self: "GameProtocol", *args: Any, **kwargs: Any) -> List[Outbound]:
        try:
            return method(self, *args, **kwargs)
        except NoSuchRoom as exc:
            logger.debug("%s ignored: %s", method.__name__, exc)
            return []

    return wrapper  # type: ignore[return-value]


class GameProtocol:
    def __init__(
        self,
        registry: Optional[RoomRegistry] = None,
        max_chat_length: int = DEFAULT_MAX_CHAT_LENGTH,
        max_name_length: int = DEFAULT_MAX_NAME_LENGTH,
    ) -> None:
        self.registry = registry or RoomRegistry()
        self.max_chat_length = max_chat_length
        self.max_name_length = max_name_length

    # ---- helpers ----

    @contextmanager
    def _locked(self, code: Optional[str]) -> Iterator[Room]:
        room = self.registry.get(code)
        with room.lock:
            if room.closed:
                raise NoSuchRoom(room.code)
            yield room

    def _clean_name(self, display_name: Optional[str]) -> Optional[str]:
        if display_name is None:
            return None
        if not isinstance(display_name, str):
            raise InvalidRequest("display name must be a string")
        name = display_name.strip()[: self.max_name_length].rstrip()
        return name or None

    @staticmethod
    def _state(room: Room) -> Outbound:
        return Outbound("roomState", room.code, room.snapshot())

    @staticmethod
    def _chat(room: Room, message: Dict[str, str]) -> Outbound:
        return Outbound("chatMessage", room.code, {"room": room.code, **message})

    @staticmethod
    def _require_member(room: Room, connection_id: str) -> None:
        if not room.is_member(connection_id):
            raise InvalidRequest(f"not a member of room {room.code}")

    @staticmethod
    def _require_side(room: Room, connection_id: str) -> Side:
        side = room.side_of(connection_id)
        if side is None:
            raise NotAPlayer("only seated players can negotiate a rematch")
        return side

    def _move_events(self, room: Room, result: MoveResult) -> List[Outbound]:
        out = [
            Outbound(
                "moveApplied",
                room.code,
                {"room": room.code, "row": result.row, "col": result.col, "side": result.side},
            ),
            self._state(room),
        ]
        if result.notice is not None:
            out.append(self._chat(room, result.notice.to_dict()))
        if isinstance(result.outcome, Win):
            logger.info("Room %s won by %s", room.code, result.outcome.side)
        elif result.outcome is DRAW:
            logger.info("Room %s ended in a draw", room.code)
        return out

    def _bot_events(self, room: Room) -> List[Outbound]:
        """Play the bot's reply, if it is the bot's turn. Caller holds the lock."""
        result = room.play_bot_turn()
        if result is None:
            return []
        return self._move_events(room, result)

    def _reset_events(self, room: Room) -> List[Outbound]:
        """X always opens and the bot always sits on O, so nothing is chained here."""
        logger.info("Room %s reset", room.code)
        return [
            Outbound(
                "boardReset",
                room.code,
                {"room": room.code, "board": room.board_view(), "lastMove": None},
            ),
            self._state(room),
        ]

    def _departure_events(self, departure: Optional[Departure]) -> List[Outbound]:
        if departure is None or departure.removed:
            return []
        room = departure.room
        with room.lock:
            if room.closed:
                return []
            notice = room.system_notice(f"{departure.name} left the room.")
            out = [self._state(room), self._chat(room, notice.to_dict())]
            if departure.mid_game:
                out.append(
                    Outbound(
                        "opponentDisconnected",
                        room.code,
                        {"room": room.code, "side": departure.side, "playerName": departure.name},
                    )
                )
        return out

    def _joined(
        self,
        connection_id: str,
        code: Optional[str],
        display_name: Optional[str],
        with_bot: bool = False,
        announce_code: bool = False,
    ) -> List[Outbound]:
        name = self._clean_name(display_name)
        room, _, departure = self.registry.join(code, connection_id, name, with_bot=with_bot)
        out = self._departure_events(departure)
        with room.lock:
            out.append(self._state(room))
            out.append(
                Outbound(
                    "chatHistory",
                    room.code,
                    {"room": room.code, "messages": room.chat_history()},
                    Audience.ORIGINATOR,
                )
            )
        if announce_code:
            out.append(
                Outbound("createdRoom", room.code, {"room": room.code}, Audience.ORIGINATOR)
            )
        return out

    # ---- membership ----

    def create_room(
        self, connection_id: str, code: Optional[str] = None, display_name: Optional[str] = None
    ) -> List[Outbound]:
        if code is None or (isinstance(code, str) and not code.strip()):
            code = self.registry.generate_code()
        return self._joined(connection_id, code, display_name, announce_code=True)

    def create_bot_room(
        self, connection_id: str, code: Optional[str] = None, display_name: Optional[str] = None
    ) -> List[Outbound]:
        if code is None or (isinstance(code, str) and not code.strip()):
            code = self.registry.generate_code()
        return self._joined(connection_id, code, display_name, with_bot=True, announce_code=True)

    def join_room(
        self, connection_id: str, code: Optional[str], display_name: Optional[str] = None
    ) -> List[Outbound]:
        return self._joined(connection_id, code, display_name)

    def leave_room(self, connection_id: str, code: Optional[str]) -> List[Outbound]:
        normalized = normalize_code(code)
        room = self.registry.room_of(connection_id)
        if room is None or room.code != normalized:
            logger.debug("leave_room ignored: %s is not in %s", connection_id, normalized)
            return []
        return self._departure_events(self.registry.vacate(connection_id))

    def disconnect(self, connection_id: str) -> List[Outbound]:
        """Connection lost; safe to call more than once."""
        return self._departure_events(self.registry.vacate(connection_id))

    # ---- gameplay ----

    @_ignore_unknown_room
    def move(
        self, connection_id: str, code: Optional[str], row: Any, col: Any, side: Any
    ) -> List[Outbound]:
        claimed = parse_side(side)
        with self._locked(code) as room:
            try:
                result = room.apply_move(connection_id, row, col, claimed)
            except MoveRejected as exc:
                logger.debug("Move in %s rejected: %s", room.code, exc.reason)
                return [
                    Outbound(
                        "moveRejected",
                        room.code,
                        {"room": room.code, "reason": exc.reason},
                        Audience.ORIGINATOR,
                    )
                ]
            out = self._move_events(room, result)
            out.extend(self._bot_events(room))
            return out

    # ---- rematch ----

    @_ignore_unknown_room
    def request_rematch(self, connection_id: str, code: Optional[str]) -> List[Outbound]:
        return self._rematch(connection_id, code, "rematchRequested")

    @_ignore_unknown_room
    def accept_rematch(self, connection_id: str, code: Optional[str]) -> List[Outbound]:
        return self._rematch(connection_id, code, "rematchAccepted")

    def _rematch(self, connection_id: str, code: Optional[str], event: str) -> List[Outbound]:
        with self._locked(code) as room:
            side = self._require_side(room, connection_id)
            name = room.name_of(connection_id)
            if not room.record_intent(side):
                return [
                    Outbound(
                        event,
                        room.code,
                        {"room": room.code, "side": side, "playerName": name},
                        Audience.OTHERS,
                    ),
                    self._state(room),
                ]
            room.reset()
            out = [Outbound("rematchAccepted", room.code, {"room": room.code})]
            out.extend(self._reset_events(room))
            return out

    @_ignore_unknown_room
    def decline_rematch(self, connection_id: str, code: Optional[str]) -> List[Outbound]:
        with self._locked(code) as room:
            side = self._require_side(room, connection_id)
            room.clear_intents()
            return [
                Outbound(
                    "rematchDeclined",
                    room.code,
                    {"room": room.code, "side": side, "playerName": room.name_of(connection_id)},
                    Audience.OTHERS,
                ),
                self._state(room),
            ]

    @_ignore_unknown_room
    def force_reset(self, connection_id: str, code: Optional[str]) -> List[Outbound]:
        """Reset the board unconditionally.

        Any member may call this, spectators included. There is no further
        authorization here; wrap it if the deployment needs one.
        """
        with self._locked(code) as room:
            self._require_member(room, connection_id)
            room.reset()
            out = [Outbound("forceResetGame", room.code, {"room": room.code})]
            out.extend(self._reset_events(room))
            return out

    # ---- chat ----

    @_ignore_unknown_room
    def send_message(self, connection_id: str, code: Optional[str], text: Any) -> List[Outbound]:
        with self._locked(code) as room:
            error = None
            if not room.is_member(connection_id):
                error = "join the room before chatting"
            elif not isinstance(text, str) or not text.strip():
                error = "message is empty"
            elif len(text.strip()) > self.max_chat_length:
                error = f"message must be at most {self.max_chat_length} characters"
            if error is not None:
                return [
                    Outbound(
                        "chatError",
                        room.code,
                        {"room": room.code, "message": error},
                        Audience.ORIGINATOR,
                    )
                ]
            message = room.add_chat(room.name_of(connection_id), text.strip())
            return [self._chat(room, message.to_dict())]

    @_ignore_unknown_room
    def typing(self, connection_id: str, code: Optional[str], is_typing: bool) -> List[Outbound]:
        with self._locked(code) as room:
            if not room.is_member(connection_id):
                return []
            return [
                Outbound(
                    "userTyping",
                    room.code,
                    {
                        "room": room.code,
                        "user": room.name_of(connection_id),
                        "isTyping": bool(is_typing),
                    },
                    Audience.OTHERS,
                )
            ]

    # ---- inspection ----

    def describe(self, code: Optional[str]) -> Dict[str, Any]:
        """Snapshot of a room for read-only callers; raises NoSuchRoom."""
        with self._locked(code) as room:
            return room.snapshot()
