from __future__ import annotations

from dataclasses import replace

from chessmate.engine.board import BLACK, NO_CASTLING
from chessmate.engine.game import GameState, apply_move, new_game, to_fen
from chessmate.engine.move import parse_uci
from chessmate.engine.zobrist import Zobrist, compute_hash, default_keys


def play(state: GameState, *ucis: str) -> GameState:
    for uci in ucis:
        state = apply_move(state, parse_uci(uci))
    return state


def test_hash_is_deterministic() -> None:
    assert compute_hash(new_game()) == compute_hash(new_game())
    # FEN round trip keeps the hash
    state = play(new_game(), "e2e4", "c7c5")
    assert compute_hash(GameState.from_fen(to_fen(state))) == compute_hash(state)


def test_transpositions_share_a_hash() -> None:
    a = play(new_game(), "g1f3", "b8c6", "b1c3")
    b = play(new_game(), "b1c3", "b8c6", "g1f3")
    assert a.move_history != b.move_history
    assert compute_hash(a) == compute_hash(b)


def test_counters_and_history_do_not_affect_hash() -> None:
    # Knights out and back: same position, different clocks
    back = play(new_game(), "g1f3", "g8f6", "f3g1", "f6g8")
    assert back.fullmove_number == 3
    assert compute_hash(back) == compute_hash(new_game())


def test_side_to_move_castling_and_en_passant_change_hash() -> None:
    start = new_game()
    h = compute_hash(start)
    assert compute_hash(replace(start, current_player=BLACK)) != h
    assert compute_hash(replace(start, castling_rights=NO_CASTLING)) != h

    pushed = play(start, "e2e4")
    assert pushed.en_passant_target is not None
    assert compute_hash(replace(pushed, en_passant_target=None)) != compute_hash(pushed)


def test_keys_are_seeded_and_shared() -> None:
    assert Zobrist(1).side_to_move == Zobrist(1).side_to_move
    assert Zobrist(1).side_to_move != Zobrist(2).side_to_move
    assert default_keys() is default_keys()
    keys = Zobrist(7)
    assert compute_hash(new_game(), keys) != compute_hash(new_game())
