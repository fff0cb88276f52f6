from __future__ import annotations

import threading
from typing import TYPE_CHECKING, List, Optional

from .board import BLACK, COLORS, PIECE_TYPES

if TYPE_CHECKING:  # pragma: no cover
    from .game import GameState


MASK64 = 0xFFFFFFFFFFFFFFFF
NO_EN_PASSANT = 8

_TYPE_INDEX = {t: i for i, t in enumerate(PIECE_TYPES)}
_COLOR_INDEX = {c: i for i, c in enumerate(COLORS)}


class _SplitMix64:
    def __init__(self, seed: int) -> None:
        self.state = seed & MASK64

    def next(self) -> int:
        # Deterministic 64-bit SplitMix64
        self.state = (self.state + 0x9E3779B97F4A7C15) & MASK64
        z = self.state
        z = (z ^ (z >> 30)) * 0xBF58476D1CE4E5B9 & MASK64
        z = (z ^ (z >> 27)) * 0x94D049BB133111EB & MASK64
        z = z ^ (z >> 31)
        return z & MASK64


class Zobrist:
    """Zobrist key table.

    Table layout:
    - piece_square[6][2][64]: piece type (pawn..king) x color (white, black) x square
    - side_to_move: toggled in when black is to move
    - castling[16]: one key per combination of the four castling flags
    - ep_file[9]: files a..h, index 8 means "no en passant target"

    Keys never change after construction.
    """

    piece_square: List[List[List[int]]]
    side_to_move: int
    castling: List[int]
    ep_file: List[int]

    def __init__(self, seed: int = 0xC0FFEE_F00D_DEAD) -> None:
        prng = _SplitMix64(seed)
        self.piece_square = [
            [[prng.next() for _ in range(64)] for _ in range(len(COLORS))]
            for _ in range(len(PIECE_TYPES))
        ]
        self.side_to_move = prng.next()
        self.castling = [prng.next() for _ in range(16)]
        self.ep_file = [prng.next() for _ in range(NO_EN_PASSANT + 1)]


_default: Optional[Zobrist] = None
_default_lock = threading.Lock()


def default_keys() -> Zobrist:
    """Process-wide key table, built on first use."""
    global _default
    if _default is None:
        with _default_lock:
            if _default is None:
                _default = Zobrist()
    return _default


def compute_hash(state: "GameState", keys: Optional[Zobrist] = None) -> int:
    """Compute the 64-bit Zobrist hash of ``state`` from scratch.

    Reads only the board, the side to move, the castling rights and the
    en-passant file, so equal positions hash equally however they arose.
    """
    z = keys if keys is not None else default_keys()
    h = 0
    for r, row in enumerate(state.board):
        for c, p in enumerate(row):
            if p is not None:
                h ^= z.piece_square[_TYPE_INDEX[p.type]][_COLOR_INDEX[p.color]][r * 8 + c]
    if state.current_player == BLACK:
        h ^= z.side_to_move
    h ^= z.castling[state.castling_rights.index]
    ep = state.en_passant_target
    h ^= z.ep_file[ep.col if ep is not None else NO_EN_PASSANT]
    return h & MASK64
