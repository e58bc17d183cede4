"""Board rules and win detection for Caro (15x15 Gomoku, five in a row)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

Side = str  # "X" or "O"
Coord = Tuple[int, int]
Board = List[List[str]]

GRID = 15
WIN_LEN = 5
EMPTY = " "
SIDES: Tuple[Side, Side] = ("X", "O")

# Horizontal, vertical, diagonal, anti-diagonal.
AXES: Tuple[Coord, ...] = ((0, 1), (1, 0), (1, 1), (1, -1))


def make_board(size: int = GRID) -> Board:
    return [[EMPTY] * size for _ in range(size)]


def other_side(side: Side) -> Side:
    return "O" if side == "X" else "X"


def parse_side(value: object) -> Optional[Side]:
    """Accept "X"/"O" (any case) or the numeric 1/2 encoding; None if neither."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return {1: "X", 2: "O"}.get(value)
    if isinstance(value, str):
        upper = value.strip().upper()
        if upper in SIDES:
            return upper
        if upper in ("1", "2"):
            return "X" if upper == "1" else "O"
    return None


def in_bounds(row: int, col: int, size: int = GRID) -> bool:
    return 0 <= row < size and 0 <= col < size


def has_empty(board: Board) -> bool:
    return any(cell == EMPTY for line in board for cell in line)


def empty_cells(board: Board) -> List[Coord]:
    return [
        (r, c)
        for r, line in enumerate(board)
        for c, cell in enumerate(line)
        if cell == EMPTY
    ]


def count_direction(
    board: Board, row: int, col: int, dr: int, dc: int, side: Side, size: int = GRID
) -> int:
    """Number of consecutive ``side`` cells starting one step from (row, col)."""
    count = 0
    r, c = row + dr, col + dc
    while in_bounds(r, c, size) and board[r][c] == side:
        count += 1
        r += dr
        c += dc
    return count


# ---------- Outcomes ----------


@dataclass(frozen=True)
class Win:
    side: Side
    cells: Tuple[Coord, ...]


@dataclass(frozen=True)
class Draw:
    pass


DRAW = Draw()

Outcome = Union[Win, Draw]


def _run_through(
    board: Board, row: int, col: int, dr: int, dc: int, side: Side, size: int
) -> List[Coord]:
    cells: List[Coord] = [(row, col)]
    r, c = row + dr, col + dc
    while in_bounds(r, c, size) and board[r][c] == side:
        cells.append((r, c))
        r += dr
        c += dc
    r, c = row - dr, col - dc
    while in_bounds(r, c, size) and board[r][c] == side:
        cells.insert(0, (r, c))
        r -= dr
        c -= dc
    return cells


def evaluate(
    board: Board, row: int, col: int, side: Side, size: int = GRID
) -> Optional[Outcome]:
    """Decide the game after ``side`` was placed at (row, col).

    Returns a ``Win`` carrying the whole contiguous run (not clipped to
    ``WIN_LEN``), ``DRAW`` when the board is full, otherwise ``None``.
    The board is only read.
    """
    for dr, dc in AXES:
        cells = _run_through(board, row, col, dr, dc, side, size)
        if len(cells) >= WIN_LEN:
            return Win(side=side, cells=tuple(cells))
    if not has_empty(board):
        return DRAW
    return None
