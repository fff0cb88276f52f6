from __future__ import annotations

import pytest

from chessmate.engine.game import GameState, new_game
from chessmate.engine.perft import divide, perft


def test_perft_initial_position() -> None:
    state = new_game()
    assert perft(state, 0) == 1
    assert perft(state, 1) == 20
    assert perft(state, 2) == 400
    assert perft(state, 3) == 8902


@pytest.mark.parametrize(
    "fen,depth,nodes",
    [
        # Castling, en passant and pins in the middlegame
        ("r3k2r/p1ppqpb1/bn2pnp1/3PN3/1p2P3/2N2Q1p/PPPBBPPP/R3K2R w KQkq - 0 1", 1, 48),
        ("r3k2r/p1ppqpb1/bn2pnp1/3PN3/1p2P3/2N2Q1p/PPPBBPPP/R3K2R w KQkq - 0 1", 2, 2039),
        # Rook endgame with discovered checks along the rank
        ("8/2p5/3p4/KP5r/1R3p1k/8/4P1P1/8 w - - 0 1", 1, 14),
        ("8/2p5/3p4/KP5r/1R3p1k/8/4P1P1/8 w - - 0 1", 2, 191),
        # Side to move in check with promotions for the reply
        ("r3k2r/Pppp1ppp/1b3nbN/nP6/BBP1P3/q4N2/Pp1P2PP/R2Q1RK1 w kq - 0 1", 1, 6),
        ("r3k2r/Pppp1ppp/1b3nbN/nP6/BBP1P3/q4N2/Pp1P2PP/R2Q1RK1 w kq - 0 1", 2, 264),
    ],
)
def test_perft_reference_positions(fen: str, depth: int, nodes: int) -> None:
    assert perft(GameState.from_fen(fen), depth) == nodes


def test_divide_sums_to_perft() -> None:
    state = new_game()
    counts = divide(state, 2)
    assert len(counts) == 20
    assert counts["e2e4"] == 20
    assert sum(counts.values()) == perft(state, 2)


def test_negative_depth_rejected() -> None:
    with pytest.raises(ValueError):
        perft(new_game(), -1)
