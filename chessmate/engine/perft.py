from __future__ import annotations

from dataclasses import replace
from typing import Dict, List

from .board import PROMOTION_TYPES
from .game import GameState, play_legal_move
from .move import Move
from .movegen import all_legal_moves


def _expanded_moves(state: GameState) -> List[Move]:
    # Search only ever promotes to a queen; perft counts every promotion piece
    out: List[Move] = []
    for m in all_legal_moves(state):
        if m.promotion_piece is None:
            out.append(m)
        else:
            out.extend(replace(m, promotion_piece=t) for t in PROMOTION_TYPES)
    return out


def perft(state: GameState, depth: int) -> int:
    """Compute perft node count for ``state`` at ``depth``.

    Definition:
    - depth == 0 returns 1 (the current node).
    - depth > 0 returns the sum over all legal child positions' perft(depth-1).

    Leaf counts at depth 1 are taken from the move list directly.
    """
    if depth < 0:
        raise ValueError("depth must be >= 0")
    if depth == 0:
        return 1
    moves = _expanded_moves(state)
    if depth == 1:
        return len(moves)
    return sum(perft(play_legal_move(state, m), depth - 1) for m in moves)


def divide(state: GameState, depth: int) -> Dict[str, int]:
    """Per-root-move perft counts, keyed by long algebraic move."""
    if depth < 1:
        raise ValueError("depth must be >= 1")
    return {
        m.to_uci(): perft(play_legal_move(state, m), depth - 1) for m in _expanded_moves(state)
    }
