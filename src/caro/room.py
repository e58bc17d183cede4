"""Room entity: board, turn, seats, chat and rematch bookkeeping for one game."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Deque, Dict, List, Optional, Set, Union

from .ai import HeuristicAI
from .errors import MoveRejected
from .game import (
    DRAW,
    EMPTY,
    GRID,
    SIDES,
    Board,
    Coord,
    Outcome,
    Side,
    Win,
    evaluate,
    in_bounds,
    make_board,
    other_side,
)

CHAT_CAPACITY = 500
CHAT_REPLAY = 200
SYSTEM_SENDER = "system"
SPECTATOR_NAME = "spectator"


@dataclass(frozen=True)
class BotSeat:
    """Occupant marker for the automated opponent; never a connection id."""

    name: str = "Bot"


Occupant = Union[str, BotSeat]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _is_index(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class ChatMessage:
    sender: str
    content: str
    timestamp: str = field(default_factory=_now)

    def to_dict(self) -> Dict[str, str]:
        return {"sender": self.sender, "content": self.content, "timestamp": self.timestamp}


@dataclass(frozen=True)
class MoveResult:
    row: int
    col: int
    side: Side
    outcome: Optional[Outcome]
    notice: Optional[ChatMessage] = None


@dataclass
class Room:
    """A single game session.

    Callers must hold ``lock`` around every mutation; the room never takes
    it itself so that a human move and the bot reply share one critical
    section.
    """

    code: str
    size: int = GRID
    board: Board = field(default_factory=make_board)
    turn: Side = "X"
    roles: Dict[Side, Optional[Occupant]] = field(
        default_factory=lambda: {"X": None, "O": None}
    )
    names: Dict[str, str] = field(default_factory=dict)
    spectators: List[str] = field(default_factory=list)
    last_move: Optional[Dict[str, object]] = None
    winner: Optional[str] = None  # "X", "O" or "draw"
    win_cells: List[Coord] = field(default_factory=list)
    rematch_intents: Set[Side] = field(default_factory=set)
    chat: Deque[ChatMessage] = field(default_factory=lambda: deque(maxlen=CHAT_CAPACITY))
    bot: Optional[HeuristicAI] = field(default=None, repr=False)
    closed: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self) -> None:
        if len(self.board) != self.size:
            self.board = make_board(self.size)

    # ---- membership ----

    def side_of(self, connection_id: str) -> Optional[Side]:
        for side in SIDES:
            if self.roles[side] == connection_id:
                return side
        return None

    def is_member(self, connection_id: str) -> bool:
        return connection_id in self.names

    def is_empty(self) -> bool:
        """True when no named occupant (player or spectator) is left."""
        return not self.names

    def assign(self, connection_id: str, display_name: Optional[str]) -> Optional[Side]:
        """Seat a connection on X, then O, else as a spectator (returns None)."""
        if self.is_member(connection_id):
            return self.side_of(connection_id)
        for side in SIDES:
            if self.roles[side] is None:
                self.roles[side] = connection_id
                self.names[connection_id] = display_name or side
                return side
        self.names[connection_id] = display_name or SPECTATOR_NAME
        self.spectators.append(connection_id)
        return None

    def seat_bot(self, side: Side, ai: HeuristicAI, name: str = "Bot") -> None:
        self.roles[side] = BotSeat(name=name)
        self.bot = ai

    def release(self, connection_id: str) -> Optional[Side]:
        """Drop a connection's seat, name and rematch intent; returns the side it held."""
        side = self.side_of(connection_id)
        if side is not None:
            self.roles[side] = None
            self.rematch_intents.discard(side)
        if connection_id in self.spectators:
            self.spectators.remove(connection_id)
        self.names.pop(connection_id, None)
        return side

    def display_name(self, side: Side) -> Optional[str]:
        occupant = self.roles[side]
        if occupant is None:
            return None
        if isinstance(occupant, BotSeat):
            return occupant.name
        return self.names.get(occupant, side)

    def name_of(self, connection_id: str) -> str:
        return self.names.get(connection_id, SPECTATOR_NAME)

    def is_bot(self, side: Side) -> bool:
        return isinstance(self.roles[side], BotSeat)

    # ---- moves ----

    @property
    def finished(self) -> bool:
        return self.winner is not None

    def apply_move(
        self, connection_id: str, row: int, col: int, side: Optional[Side]
    ) -> MoveResult:
        """Validate and apply a client move; raises MoveRejected on the first failed check."""
        return self._apply(row, col, side, actor=connection_id)

    def bot_to_move(self) -> bool:
        return not self.finished and self.bot is not None and self.is_bot(self.turn)

    def play_bot_turn(self) -> Optional[MoveResult]:
        if not self.bot_to_move():
            return None
        assert self.bot is not None
        choice = self.bot.choose(self.board)
        if choice is None:
            return None
        row, col = choice
        return self._apply(row, col, self.turn, actor=None)

    def _apply(self, row: int, col: int, side: Optional[Side], actor: Optional[str]) -> MoveResult:
        if self.finished:
            raise MoveRejected(MoveRejected.GAME_FINISHED)
        if not _is_index(row) or not _is_index(col) or not in_bounds(row, col, self.size):
            raise MoveRejected(MoveRejected.INVALID_COORDINATES)
        if self.board[row][col] != EMPTY:
            raise MoveRejected(MoveRejected.CELL_TAKEN)
        # actor None is the internal bot path and skips the seat check
        if actor is not None and (side not in SIDES or self.roles[side] != actor):
            raise MoveRejected(MoveRejected.NOT_YOUR_SIDE)
        if side != self.turn:
            raise MoveRejected(MoveRejected.NOT_YOUR_TURN)

        self.board[row][col] = side
        self.last_move = {"row": row, "col": col, "side": side}
        outcome = evaluate(self.board, row, col, side, self.size)
        notice: Optional[ChatMessage] = None
        if isinstance(outcome, Win):
            self.winner = outcome.side
            self.win_cells = list(outcome.cells)
            name = self.display_name(outcome.side) or outcome.side
            notice = self.system_notice(f"🎉 {name} wins!")
        elif outcome is DRAW:
            self.winner = "draw"
            self.win_cells = []
            notice = self.system_notice("The game is a draw!")
        else:
            self.turn = other_side(self.turn)
        return MoveResult(row=row, col=col, side=side, outcome=outcome, notice=notice)

    # ---- rematch / reset ----

    def record_intent(self, side: Side) -> bool:
        """Record a side's wish to continue; True once both sides agree."""
        self.rematch_intents.add(side)
        return self.rematch_agreed()

    def rematch_agreed(self) -> bool:
        return all(side in self.rematch_intents or self.is_bot(side) for side in SIDES)

    def clear_intents(self) -> None:
        self.rematch_intents.clear()

    def reset(self) -> None:
        """Start a fresh game; seats, names and chat history are kept."""
        self.board = make_board(self.size)
        self.turn = "X"
        self.winner = None
        self.win_cells = []
        self.last_move = None
        self.rematch_intents.clear()

    # ---- chat ----

    def add_chat(self, sender: str, content: str) -> ChatMessage:
        message = ChatMessage(sender=sender, content=content)
        self.chat.append(message)
        return message

    def system_notice(self, content: str) -> ChatMessage:
        return self.add_chat(SYSTEM_SENDER, content)

    def chat_history(self, limit: int = CHAT_REPLAY) -> List[Dict[str, str]]:
        return [m.to_dict() for m in list(self.chat)[-limit:]]

    # ---- serialization ----

    def board_view(self) -> List[List[str]]:
        return [[c if c in SIDES else "" for c in line] for line in self.board]

    def snapshot(self) -> Dict[str, object]:
        bot_side = next((s for s in SIDES if self.is_bot(s)), None)
        return {
            "room": self.code,
            "size": self.size,
            "board": self.board_view(),
            "turn": self.turn,
            "players": {side: self.display_name(side) for side in SIDES},
            "spectators": [self.name_of(cid) for cid in self.spectators],
            "bot": bot_side,
            "lastMove": dict(self.last_move) if self.last_move else None,
            "winner": self.winner,
            "winCells": [[r, c] for r, c in self.win_cells],
            "rematchIntents": sorted(self.rematch_intents),
        }
