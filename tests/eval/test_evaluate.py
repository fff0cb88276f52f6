from __future__ import annotations

from chessmate.engine.board import BLACK, KNIGHT, PAWN, WHITE
from chessmate.engine.game import GameState, new_game
from chessmate.eval import (
    KING_SHIELD_BONUS,
    MOBILITY_BONUS,
    PIECE_VALUES,
    evaluate,
    material_and_position,
    psqt_value,
)


def test_initial_position_is_balanced_apart_from_side_to_move_terms() -> None:
    state = new_game()
    assert material_and_position(state) == 0
    # 20 legal moves and the d2/e2/f2 shield in front of the king
    assert evaluate(state) == 20 * MOBILITY_BONUS + 3 * KING_SHIELD_BONUS


def test_knight_centralization_scores_higher() -> None:
    # White knight on d4 should score higher than on a1 (material equal)
    center = GameState.from_fen("4k3/8/8/8/3N4/8/8/4K3 w - - 0 1")
    rim = GameState.from_fen("4k3/8/8/8/8/8/8/N3K3 w - - 0 1")
    assert evaluate(center) > evaluate(rim)


def test_score_is_from_the_side_to_move() -> None:
    white = GameState.from_fen("4k3/8/8/8/8/8/8/3QK3 w - - 0 1")
    black = GameState.from_fen("4k3/8/8/8/8/8/8/3QK3 b - - 0 1")
    assert evaluate(white) > PIECE_VALUES["queen"] - 100
    assert evaluate(black) < -(PIECE_VALUES["queen"] - 100)


def test_psqt_mirrors_for_black() -> None:
    # e4 for white is e5 for black
    assert psqt_value(PAWN, WHITE, 4, 4) == psqt_value(PAWN, BLACK, 3, 4)
    assert psqt_value(KNIGHT, WHITE, 7, 0) == psqt_value(KNIGHT, BLACK, 0, 0)


def _mirror_and_swap_colors(fen: str) -> str:
    # Mirror ranks and swap piece colors; keep castling/ep as '-' for simplicity
    board, stm, _castling, _ep, halfmove, fullmove = fen.split()
    ranks = [r.swapcase() for r in reversed(board.split("/"))]
    new_stm = "b" if stm == "w" else "w"
    return f"{'/'.join(ranks)} {new_stm} - - {halfmove} {fullmove}"


def test_eval_is_color_symmetric() -> None:
    fen = "4k3/8/8/2n5/3B4/8/5PPP/6K1 w - - 0 1"
    state = GameState.from_fen(fen)
    mirrored = GameState.from_fen(_mirror_and_swap_colors(fen))
    assert mirrored.current_player == BLACK
    assert evaluate(mirrored) == evaluate(state)
