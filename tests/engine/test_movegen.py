from __future__ import annotations

import pytest

from chessmate.engine.board import BLACK, WHITE, Position, position_to_str, str_to_position
from chessmate.engine.game import GameState, new_game, play_legal_move
from chessmate.engine.movegen import (
    all_legal_moves,
    is_king_in_check,
    is_square_attacked,
    legal_moves,
    threatened_squares,
)


def dests(state: GameState, square: str) -> set[str]:
    return {position_to_str(p) for p in legal_moves(state, str_to_position(square))}


def test_initial_position_has_twenty_moves() -> None:
    state = new_game()
    assert len(all_legal_moves(state)) == 20
    assert dests(state, "e2") == {"e3", "e4"}
    assert dests(state, "g1") == {"f3", "h3"}
    assert dests(state, "a1") == set()


def test_legal_moves_empty_for_empty_opponent_or_out_of_bounds() -> None:
    state = new_game()
    assert legal_moves(state, str_to_position("e4")) == []
    assert legal_moves(state, str_to_position("e7")) == []
    assert legal_moves(state, Position(9, 9)) == []
    assert legal_moves(state, Position(-1, 0)) == []


def test_pinned_piece_cannot_move() -> None:
    state = GameState.from_fen("4k3/4r3/8/8/8/8/4B3/4K3 w - - 0 1")
    assert dests(state, "e2") == set()


def test_check_must_be_answered() -> None:
    # Black rook on e8 checks the white king; the a1 rook cannot block
    state = GameState.from_fen("4r2k/8/8/8/8/8/8/R3K3 w - - 0 1")
    assert state.is_check
    moved = {m.to_uci() for m in all_legal_moves(state)}
    assert moved == {"e1d1", "e1d2", "e1f1", "e1f2"}


@pytest.mark.parametrize(
    "fen",
    [
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1",
        "r3k2r/p1ppqpb1/bn2pnp1/3PN3/1p2P3/2N2Q1p/PPPBBPPP/R3K2R w KQkq - 0 1",
        "8/2p5/3p4/KP5r/1R3p1k/8/4P1P1/8 w - - 0 1",
        "4k3/4r3/8/8/8/8/4B3/4K3 w - - 0 1",
    ],
)
def test_no_legal_move_leaves_own_king_attacked(fen: str) -> None:
    state = GameState.from_fen(fen)
    mover = state.current_player
    for m in all_legal_moves(state):
        child = play_legal_move(state, m)
        assert not is_king_in_check(child, mover), m.to_uci()


def test_square_attack_ignores_side_to_move() -> None:
    state = new_game()
    assert is_square_attacked(state, str_to_position("e3"), WHITE)
    assert is_square_attacked(state, str_to_position("f6"), BLACK)
    assert not is_square_attacked(state, str_to_position("e5"), WHITE)
    assert not is_square_attacked(state, str_to_position("e4"), BLACK)


def test_threatened_squares_lists_attacked_own_pieces() -> None:
    state = GameState.from_fen("4k3/8/8/3q4/8/8/3R4/4K3 w - - 0 1")
    assert [position_to_str(p) for p in threatened_squares(state)] == ["d2"]


def test_blocked_pawn_does_not_threaten_forward() -> None:
    state = GameState.from_fen("4k3/8/8/8/8/4p3/4P3/4K3 w - - 0 1")
    assert threatened_squares(state) == []


def test_all_legal_moves_fill_captured_piece() -> None:
    state = GameState.from_fen("4k3/8/8/3q4/8/8/3R4/4K3 w - - 0 1")
    capture = next(m for m in all_legal_moves(state) if m.to_uci() == "d2d5")
    assert capture.is_capture
    assert capture.captured_piece is not None and capture.captured_piece.color == BLACK
