"""Unit tests for Caro board rules and win detection."""

import copy

from caro.game import DRAW, EMPTY, GRID, Win, evaluate, make_board, parse_side


def _place(board, cells, side):
    for r, c in cells:
        board[r][c] = side


def _no_line_board():
    # Pairs of columns alternate per row: no run longer than 2 on any axis.
    return [
        ["X" if (c // 2 + r) % 2 == 0 else "O" for c in range(GRID)]
        for r in range(GRID)
    ]


def test_empty_board_dimensions():
    board = make_board()
    assert len(board) == GRID
    assert all(len(line) == GRID for line in board)
    assert all(cell == EMPTY for line in board for cell in line)


def test_five_in_a_row_reports_exact_run():
    board = make_board()
    cells = [(7, c) for c in range(7, 12)]
    _place(board, cells, "X")

    result = evaluate(board, 7, 9, "X")

    assert isinstance(result, Win)
    assert result.side == "X"
    assert list(result.cells) == cells


def test_six_in_a_row_is_not_truncated():
    board = make_board()
    cells = [(r, 3) for r in range(2, 8)]
    _place(board, cells, "O")

    result = evaluate(board, 4, 3, "O")

    assert isinstance(result, Win)
    assert len(result.cells) == 6
    assert list(result.cells) == cells


def test_anti_diagonal_run_is_ordered_end_to_end():
    board = make_board()
    cells = [(r, 10 - r) for r in range(5)]
    _place(board, cells, "X")

    result = evaluate(board, 2, 8, "X")

    assert isinstance(result, Win)
    assert list(result.cells) == cells


def test_main_diagonal_win():
    board = make_board()
    cells = [(r, r) for r in range(10, 15)]
    _place(board, cells, "O")

    result = evaluate(board, 14, 14, "O")

    assert isinstance(result, Win)
    assert result.cells[0] == (10, 10)
    assert result.cells[-1] == (14, 14)


def test_four_in_a_row_is_not_a_win():
    board = make_board()
    _place(board, [(0, c) for c in range(4)], "X")
    assert evaluate(board, 0, 3, "X") is None


def test_opponent_stone_breaks_the_run():
    board = make_board()
    _place(board, [(0, 0), (0, 1), (0, 2), (0, 4), (0, 5)], "X")
    board[0][3] = "O"
    assert evaluate(board, 0, 2, "X") is None
    assert evaluate(board, 0, 5, "X") is None


def test_full_board_without_line_is_draw():
    board = _no_line_board()
    assert evaluate(board, 14, 14, board[14][14]) is DRAW


def test_win_on_last_cell_beats_draw():
    board = _no_line_board()
    _place(board, [(0, c) for c in range(5)], "X")
    assert isinstance(evaluate(board, 0, 4, "X"), Win)


def test_evaluate_does_not_mutate_board():
    board = make_board()
    _place(board, [(7, c) for c in range(7, 12)], "X")
    before = copy.deepcopy(board)
    evaluate(board, 7, 7, "X")
    assert board == before


def test_parse_side_accepts_letters_and_numbers():
    assert parse_side("x") == "X"
    assert parse_side("O") == "O"
    assert parse_side(1) == "X"
    assert parse_side(2) == "O"
    assert parse_side("2") == "O"
    assert parse_side("Z") is None
    assert parse_side(True) is None
    assert parse_side(None) is None
