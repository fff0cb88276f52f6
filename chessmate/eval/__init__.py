"""Evaluation heuristics and related utilities.

Pure, deterministic, and side-effect free. Scores are centipawns from the
point of view of the side to move.
"""

from __future__ import annotations

from typing import Dict, Final, Sequence

from chessmate.engine.board import (
    BISHOP,
    KING,
    KNIGHT,
    PAWN,
    QUEEN,
    ROOK,
    WHITE,
    iter_pieces,
)
from chessmate.engine.game import GameState
from chessmate.engine.movegen import count_legal_moves, pawn_direction


# Material values in centipawns
P_VAL: Final = 100
N_VAL: Final = 320
B_VAL: Final = 330
R_VAL: Final = 500
Q_VAL: Final = 900

PIECE_VALUES: Final[Dict[str, int]] = {
    PAWN: P_VAL,
    KNIGHT: N_VAL,
    BISHOP: B_VAL,
    ROOK: R_VAL,
    QUEEN: Q_VAL,
    KING: 0,
}

# Heuristic weights (centipawns)
MOBILITY_BONUS: Final = 1  # per legal move of the side to move
KING_SHIELD_BONUS: Final = 6  # per pawn directly in front of the king


# Piece-square tables from white's point of view, rank 8 first so that the
# index for a white piece is row * 8 + col. Black pieces read the table
# mirrored vertically.
# fmt: off
PSQT_P: Final = (
      0,   0,   0,   0,   0,   0,   0,   0,
     50,  50,  50,  50,  50,  50,  50,  50,
     10,  10,  20,  30,  30,  20,  10,  10,
      5,   5,  10,  25,  25,  10,   5,   5,
      0,   0,   0,  20,  20,   0,   0,   0,
      5,  -5, -10,   0,   0, -10,  -5,   5,
      5,  10,  10, -20, -20,  10,  10,   5,
      0,   0,   0,   0,   0,   0,   0,   0,
)

PSQT_N: Final = (
    -50, -40, -30, -30, -30, -30, -40, -50,
    -40, -20,   0,   0,   0,   0, -20, -40,
    -30,   0,  10,  15,  15,  10,   0, -30,
    -30,   5,  15,  20,  20,  15,   5, -30,
    -30,   0,  15,  20,  20,  15,   0, -30,
    -30,   5,  10,  15,  15,  10,   5, -30,
    -40, -20,   0,   5,   5,   0, -20, -40,
    -50, -40, -30, -30, -30, -30, -40, -50,
)

PSQT_B: Final = (
    -20, -10, -10, -10, -10, -10, -10, -20,
    -10,   0,   0,   0,   0,   0,   0, -10,
    -10,   0,   5,  10,  10,   5,   0, -10,
    -10,   5,   5,  10,  10,   5,   5, -10,
    -10,   0,  10,  10,  10,  10,   0, -10,
    -10,  10,  10,  10,  10,  10,  10, -10,
    -10,   5,   0,   0,   0,   0,   5, -10,
    -20, -10, -10, -10, -10, -10, -10, -20,
)

PSQT_R: Final = (
      0,   0,   0,   0,   0,   0,   0,   0,
      5,  10,  10,  10,  10,  10,  10,   5,
     -5,   0,   0,   0,   0,   0,   0,  -5,
     -5,   0,   0,   0,   0,   0,   0,  -5,
     -5,   0,   0,   0,   0,   0,   0,  -5,
     -5,   0,   0,   0,   0,   0,   0,  -5,
     -5,   0,   0,   0,   0,   0,   0,  -5,
      0,   0,   0,   5,   5,   0,   0,   0,
)

PSQT_Q: Final = (
    -20, -10, -10,  -5,  -5, -10, -10, -20,
    -10,   0,   0,   0,   0,   0,   0, -10,
    -10,   0,   5,   5,   5,   5,   0, -10,
     -5,   0,   5,   5,   5,   5,   0,  -5,
      0,   0,   5,   5,   5,   5,   0,  -5,
    -10,   5,   5,   5,   5,   5,   0, -10,
    -10,   0,   5,   0,   0,   0,   0, -10,
    -20, -10, -10,  -5,  -5, -10, -10, -20,
)

PSQT_K: Final = (
    -30, -40, -40, -50, -50, -40, -40, -30,
    -30, -40, -40, -50, -50, -40, -40, -30,
    -30, -40, -40, -50, -50, -40, -40, -30,
    -30, -40, -40, -50, -50, -40, -40, -30,
    -20, -30, -30, -40, -40, -30, -30, -20,
    -10, -20, -20, -20, -20, -20, -20, -10,
     20,  20,   0,   0,   0,   0,  20,  20,
     20,  30,  10,   0,   0,  10,  30,  20,
)
# fmt: on

PSQT: Final[Dict[str, Sequence[int]]] = {
    PAWN: PSQT_P,
    KNIGHT: PSQT_N,
    BISHOP: PSQT_B,
    ROOK: PSQT_R,
    QUEEN: PSQT_Q,
    KING: PSQT_K,
}


def piece_value(kind: str) -> int:
    return PIECE_VALUES[kind]


def psqt_value(kind: str, color: str, row: int, col: int) -> int:
    r = row if color == WHITE else 7 - row
    return PSQT[kind][r * 8 + col]


def _king_shield_pawns(state: GameState, color: str) -> int:
    # Own pawns on the three squares directly in front of the king
    king = state.white_king_position if color == WHITE else state.black_king_position
    if king is None:
        return 0
    r = king.row + pawn_direction(color)
    if not (0 <= r < 8):
        return 0
    total = 0
    for c in (king.col - 1, king.col, king.col + 1):
        if 0 <= c < 8:
            p = state.board[r][c]
            if p is not None and p.type == PAWN and p.color == color:
                total += 1
    return total


def material_and_position(state: GameState) -> int:
    """Material plus piece-square terms, side-to-move perspective."""
    me = state.current_player
    score = 0
    for pos, p in iter_pieces(state.board):
        v = PIECE_VALUES[p.type] + psqt_value(p.type, p.color, pos.row, pos.col)
        score += v if p.color == me else -v
    return score


def evaluate(state: GameState) -> int:
    """Return a static evaluation in centipawns for the side to move.

    Sums material and piece-square values (opponent pieces subtracted), then
    adds a small mobility bonus for the side to move's legal moves and a
    small king-safety bonus for its pawn shield.
    """
    score = material_and_position(state)
    score += count_legal_moves(state) * MOBILITY_BONUS
    score += _king_shield_pawns(state, state.current_player) * KING_SHIELD_BONUS
    return score
