"""Heuristic bot opponent for Caro: win, block, crowd, or pick at random."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Optional

from .game import (
    AXES,
    EMPTY,
    GRID,
    WIN_LEN,
    Board,
    Coord,
    Side,
    count_direction,
    empty_cells,
    in_bounds,
    other_side,
)

# Bot run length (candidate cell included) taken on sight. Below WIN_LEN; see DESIGN.md.
SEEK_THRESHOLD = 3
BLOCK_THRESHOLD = WIN_LEN

NEIGHBOURHOOD = 2  # 5x5 window around a candidate
OPPONENT_WEIGHT = 2
OWN_WEIGHT = 1


def _longest_run_if_placed(board: Board, row: int, col: int, side: Side, size: int) -> int:
    best = 0
    for dr, dc in AXES:
        run = (
            count_direction(board, row, col, dr, dc, side, size)
            + count_direction(board, row, col, -dr, -dc, side, size)
            + 1
        )
        best = max(best, run)
    return best


def _first_reaching(board: Board, size: int, side: Side, threshold: int) -> Optional[Coord]:
    for r in range(size):
        for c in range(size):
            if board[r][c] != EMPTY:
                continue
            if _longest_run_if_placed(board, r, c, side, size) >= threshold:
                return r, c
    return None


def proximity_score(
    board: Board, row: int, col: int, bot_side: Side, opponent_side: Side, size: int = GRID
) -> int:
    score = 0
    for dr in range(-NEIGHBOURHOOD, NEIGHBOURHOOD + 1):
        for dc in range(-NEIGHBOURHOOD, NEIGHBOURHOOD + 1):
            if dr == 0 and dc == 0:
                continue
            r, c = row + dr, col + dc
            if not in_bounds(r, c, size):
                continue
            if board[r][c] == opponent_side:
                score += OPPONENT_WEIGHT
            elif board[r][c] == bot_side:
                score += OWN_WEIGHT
    return score


def decide(
    board: Board,
    size: int,
    bot_side: Side,
    opponent_side: Side,
    rng: Optional[random.Random] = None,
) -> Optional[Coord]:
    """Pick the bot's next cell, or None when the board is full.

    Tiers, first hit wins:
      1. a cell extending a bot run to SEEK_THRESHOLD,
      2. a cell that would give the opponent BLOCK_THRESHOLD,
      3. the best proximity score (row-major order breaks ties),
      4. a uniformly random empty cell.
    """
    move = _first_reaching(board, size, bot_side, SEEK_THRESHOLD)
    if move is not None:
        return move

    move = _first_reaching(board, size, opponent_side, BLOCK_THRESHOLD)
    if move is not None:
        return move

    best_score = 0
    best_move: Optional[Coord] = None
    for r in range(size):
        for c in range(size):
            if board[r][c] != EMPTY:
                continue
            score = proximity_score(board, r, c, bot_side, opponent_side, size)
            if score > best_score:
                best_score, best_move = score, (r, c)
    if best_move is not None:
        return best_move

    candidates = empty_cells(board)
    if not candidates:
        return None
    return (rng or random).choice(candidates)


@dataclass
class HeuristicAI:
    """Bot player bound to one side.

      - HeuristicAI(player="O")
      - choose(board) -> (row, col) or None
    """

    player: Side = "O"
    size: int = GRID
    rng: random.Random = field(default_factory=random.Random, repr=False)

    @property
    def opponent(self) -> Side:
        return other_side(self.player)

    def choose(self, board: Board) -> Optional[Coord]:
        return decide(board, self.size, self.player, self.opponent, self.rng)
