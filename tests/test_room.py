"""Tests for the Room state machine."""

import random

import pytest

from caro.ai import HeuristicAI
from caro.errors import MoveRejected
from caro.game import EMPTY
from caro.room import CHAT_CAPACITY, CHAT_REPLAY, BotSeat, Room


def _room_with_players():
    room = Room(code="R1")
    assert room.assign("alice", "Alice") == "X"
    assert room.assign("bob", "Bob") == "O"
    return room


def _reason(room, *args):
    with pytest.raises(MoveRejected) as excinfo:
        room.apply_move(*args)
    return excinfo.value.reason


def test_roles_fill_x_then_o_then_spectators():
    room = _room_with_players()
    assert room.assign("carol", None) is None
    assert room.assign("dave", "") is None
    assert room.roles == {"X": "alice", "O": "bob"}
    assert room.spectators == ["carol", "dave"]
    assert room.name_of("carol") == "spectator"


def test_default_names_follow_side():
    room = Room(code="R1")
    room.assign("a", None)
    room.assign("b", None)
    assert room.display_name("X") == "X"
    assert room.display_name("O") == "O"


def test_assign_is_idempotent_for_members():
    room = _room_with_players()
    assert room.assign("bob", "Bobby") == "O"
    assert room.name_of("bob") == "Bob"


def test_game_finished_checked_first():
    room = _room_with_players()
    room.winner = "X"
    assert _reason(room, "carol", -1, 99, "O") == MoveRejected.GAME_FINISHED


def test_invalid_coordinates():
    room = _room_with_players()
    assert _reason(room, "alice", 15, 0, "X") == MoveRejected.INVALID_COORDINATES
    assert _reason(room, "alice", 0, -1, "X") == MoveRejected.INVALID_COORDINATES
    assert _reason(room, "alice", "1", 0, "X") == MoveRejected.INVALID_COORDINATES


def test_cell_taken_checked_before_side():
    room = _room_with_players()
    room.apply_move("alice", 0, 0, "X")
    assert _reason(room, "carol", 0, 0, "O") == MoveRejected.CELL_TAKEN


def test_claiming_someone_elses_side():
    room = _room_with_players()
    assert _reason(room, "bob", 0, 0, "X") == MoveRejected.NOT_YOUR_SIDE
    assert _reason(room, "alice", 0, 0, None) == MoveRejected.NOT_YOUR_SIDE


def test_bot_seat_cannot_be_claimed_by_string_identity():
    room = Room(code="BOT")
    room.assign("alice", "Alice")
    room.seat_bot("O", HeuristicAI(player="O"))
    room.apply_move("alice", 7, 7, "X")
    assert _reason(room, "Bot", 0, 0, "O") == MoveRejected.NOT_YOUR_SIDE


def test_out_of_turn_move():
    room = _room_with_players()
    room.apply_move("alice", 0, 0, "X")
    assert _reason(room, "alice", 1, 1, "X") == MoveRejected.NOT_YOUR_TURN


def test_rejected_move_leaves_state_unchanged():
    room = _room_with_players()
    before = room.snapshot()
    _reason(room, "bob", 3, 3, "O")
    assert room.snapshot() == before


def test_accepted_move_updates_board_and_turn():
    room = _room_with_players()
    result = room.apply_move("alice", 4, 5, "X")
    assert result.outcome is None
    assert room.board[4][5] == "X"
    assert room.last_move == {"row": 4, "col": 5, "side": "X"}
    assert room.turn == "O"


def test_win_is_sticky_and_announced():
    room = _room_with_players()
    for i in range(4):
        room.apply_move("alice", 7, 7 + i, "X")
        room.apply_move("bob", 0, i, "O")
    result = room.apply_move("alice", 7, 11, "X")

    assert room.winner == "X"
    assert room.win_cells == [(7, c) for c in range(7, 12)]
    assert room.turn == "X"
    assert result.notice is not None
    assert result.notice.sender == "system"
    assert "Alice" in result.notice.content
    assert _reason(room, "bob", 1, 1, "O") == MoveRejected.GAME_FINISHED


def test_bot_plays_through_trusted_path():
    room = Room(code="BOT")
    room.assign("alice", "Alice")
    room.seat_bot("O", HeuristicAI(player="O", rng=random.Random(3)), "Robo")
    room.apply_move("alice", 0, 0, "X")

    assert room.bot_to_move()
    result = room.play_bot_turn()

    assert result is not None
    assert result.side == "O"
    assert room.board[result.row][result.col] == "O"
    assert room.turn == "X"
    assert room.display_name("O") == "Robo"
    assert isinstance(room.roles["O"], BotSeat)


def test_bot_does_not_move_out_of_turn():
    room = Room(code="BOT")
    room.assign("alice", "Alice")
    room.seat_bot("O", HeuristicAI(player="O"))
    assert not room.bot_to_move()
    assert room.play_bot_turn() is None


def test_rematch_needs_both_sides():
    room = _room_with_players()
    assert room.record_intent("X") is False
    assert room.record_intent("X") is False
    assert room.record_intent("O") is True


def test_bot_consents_implicitly():
    room = Room(code="BOT")
    room.assign("alice", "Alice")
    room.seat_bot("O", HeuristicAI(player="O"))
    assert room.record_intent("X") is True


def test_empty_seat_cannot_consent():
    room = Room(code="R1")
    room.assign("alice", "Alice")
    assert room.record_intent("X") is False


def test_release_drops_seat_name_and_intent():
    room = _room_with_players()
    room.record_intent("O")
    assert room.release("bob") == "O"
    assert room.roles["O"] is None
    assert "bob" not in room.names
    assert room.rematch_intents == set()
    assert room.release("bob") is None


def test_reset_preserves_roles_and_chat():
    room = _room_with_players()
    room.add_chat("Alice", "hi")
    room.apply_move("alice", 2, 2, "X")
    room.record_intent("X")
    room.winner = "X"
    room.win_cells = [(2, 2)]

    room.reset()

    assert all(cell == EMPTY for line in room.board for cell in line)
    assert room.turn == "X"
    assert room.winner is None
    assert room.win_cells == []
    assert room.last_move is None
    assert room.rematch_intents == set()
    assert room.roles == {"X": "alice", "O": "bob"}
    assert [m["content"] for m in room.chat_history()] == ["hi"]


def test_chat_log_is_bounded():
    room = Room(code="R1")
    for i in range(CHAT_CAPACITY + 100):
        room.add_chat("Alice", f"m{i}")

    assert len(room.chat) == CHAT_CAPACITY
    history = room.chat_history()
    assert len(history) == CHAT_REPLAY
    assert history[0]["content"] == f"m{CHAT_CAPACITY + 100 - CHAT_REPLAY}"
    assert history[-1]["content"] == f"m{CHAT_CAPACITY + 99}"


def test_snapshot_shape():
    room = _room_with_players()
    room.assign("carol", "Carol")
    room.apply_move("alice", 1, 2, "X")
    state = room.snapshot()

    assert state["room"] == "R1"
    assert state["turn"] == "O"
    assert state["players"] == {"X": "Alice", "O": "Bob"}
    assert state["spectators"] == ["Carol"]
    assert state["board"][1][2] == "X"
    assert state["board"][0][0] == ""
    assert state["lastMove"] == {"row": 1, "col": 2, "side": "X"}
    assert state["winner"] is None
    assert state["winCells"] == []
    assert state["bot"] is None
