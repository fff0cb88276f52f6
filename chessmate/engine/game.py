from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Tuple

from .board import (
    BLACK,
    KING,
    PAWN,
    PROMOTION_TYPES,
    QUEEN,
    ROOK,
    WHITE,
    Board,
    BoardInvariantError,
    CastlingRights,
    Piece,
    Position,
    board_from_placement,
    find_king,
    initial_board,
    iter_pieces,
    opposite,
    placement_of,
    position_to_str,
    str_to_position,
    with_squares,
)
from .move import Move
from .movegen import has_any_legal_move, home_row, is_king_in_check, legal_moves, promotion_row


logger = logging.getLogger(__name__)


STARTPOS_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"

DIFFICULTIES = ("beginner", "intermediate", "advanced", "expert")
GAME_MODES = ("vs_ai", "two_player")
AI_COLOR = BLACK


@dataclass(frozen=True)
class GameState:
    """Immutable snapshot of a game.

    Every transition returns a new instance; holders can keep old snapshots
    around safely. ``move_history`` is authoritative: replaying it from the
    starting configuration reproduces the state exactly.
    """

    board: Board
    current_player: str = WHITE
    move_history: Tuple[Move, ...] = ()
    is_check: bool = False
    is_checkmate: bool = False
    is_stalemate: bool = False
    white_king_position: Optional[Position] = None
    black_king_position: Optional[Position] = None
    castling_rights: CastlingRights = CastlingRights()
    en_passant_target: Optional[Position] = None
    ai_difficulty: str = "beginner"
    game_mode: str = "vs_ai"
    # Display-only flags, carried for the UI
    show_legal_moves: bool = True
    show_threats: bool = False
    board_flipped: bool = False
    # Starting configuration and FEN counters
    start_fen: str = STARTPOS_FEN
    halfmove_clock: int = 0
    fullmove_number: int = 1

    @property
    def is_game_over(self) -> bool:
        return self.is_checkmate or self.is_stalemate

    @property
    def last_move(self) -> Optional[Move]:
        return self.move_history[-1] if self.move_history else None

    @property
    def winner(self) -> Optional[str]:
        return opposite(self.current_player) if self.is_checkmate else None

    def config(self) -> Dict[str, Any]:
        """Keyword arguments that recreate this game's starting point via ``new_game``."""
        return {
            "difficulty": self.ai_difficulty,
            "mode": self.game_mode,
            "show_legal_moves": self.show_legal_moves,
            "show_threats": self.show_threats,
            "board_flipped": self.board_flipped,
            "start_fen": self.start_fen,
        }

    @classmethod
    def from_fen(cls, fen: str, **config: Any) -> "GameState":
        """Create a state from a Forsyth-Edwards Notation (FEN) string.

        Args:
            fen (str): FEN string describing the position to load.
            **config: ``difficulty``, ``mode`` and display flags as accepted
                by ``new_game``.

        Returns:
            GameState: State with check/checkmate/stalemate flags computed.

        Raises:
            ValueError: If ``fen`` is malformed, does not contain exactly one
                king per color, or leaves the side not to move in check.
        """
        if not fen or not isinstance(fen, str):
            raise ValueError("FEN must be a non-empty string")
        parts = fen.strip().split()
        if len(parts) != 6:
            raise ValueError("FEN must have 6 fields")
        placement, stm, castling, ep, halfmove, fullmove = parts

        board = board_from_placement(placement)
        if stm not in ("w", "b"):
            raise ValueError("side to move must be 'w' or 'b'")
        rights = CastlingRights.from_fen(castling)

        ep_target: Optional[Position]
        if ep == "-":
            ep_target = None
        else:
            try:
                ep_target = str_to_position(ep)
            except ValueError as e:
                raise ValueError("invalid en passant square") from e
            # Target sits behind an enemy pawn that just advanced two squares
            if ep_target.row != (2 if stm == "w" else 5):
                raise ValueError("invalid en passant square rank")

        try:
            halfmove_clock = int(halfmove)
            fullmove_number = int(fullmove)
        except ValueError as e:
            raise ValueError("invalid move counters in FEN") from e
        if halfmove_clock < 0 or fullmove_number <= 0:
            raise ValueError("invalid move counters in FEN")

        for color in (WHITE, BLACK):
            kings = [p for _, p in iter_pieces(board, color) if p.type == KING]
            if len(kings) != 1:
                raise ValueError(f"FEN must contain exactly one {color} king")

        opts = _validated_config(**config)
        state = cls(
            board=board,
            current_player=WHITE if stm == "w" else BLACK,
            white_king_position=find_king(board, WHITE),
            black_king_position=find_king(board, BLACK),
            castling_rights=rights,
            en_passant_target=ep_target,
            ai_difficulty=opts["difficulty"],
            game_mode=opts["mode"],
            show_legal_moves=opts["show_legal_moves"],
            show_threats=opts["show_threats"],
            board_flipped=opts["board_flipped"],
            start_fen=fen.strip(),
            halfmove_clock=halfmove_clock,
            fullmove_number=fullmove_number,
        )
        if is_king_in_check(state, opposite(state.current_player)):
            raise ValueError("side not to move is in check")
        return _with_status(state)


def _validated_config(
    difficulty: str = "beginner",
    mode: str = "vs_ai",
    show_legal_moves: bool = True,
    show_threats: bool = False,
    board_flipped: bool = False,
) -> Dict[str, Any]:
    if difficulty not in DIFFICULTIES:
        raise ValueError(f"unknown difficulty: {difficulty!r}")
    if mode not in GAME_MODES:
        raise ValueError(f"unknown game mode: {mode!r}")
    return {
        "difficulty": difficulty,
        "mode": mode,
        "show_legal_moves": show_legal_moves,
        "show_threats": show_threats,
        "board_flipped": board_flipped,
    }


def _with_status(state: GameState) -> GameState:
    in_check = is_king_in_check(state, state.current_player)
    has_moves = has_any_legal_move(state)
    return replace(
        state,
        is_check=in_check,
        is_checkmate=in_check and not has_moves,
        is_stalemate=(not in_check) and not has_moves,
    )


def new_game(
    difficulty: str = "beginner",
    mode: str = "vs_ai",
    *,
    show_legal_moves: bool = True,
    show_threats: bool = False,
    board_flipped: bool = False,
    start_fen: Optional[str] = None,
) -> GameState:
    """Create a fresh game with an empty history.

    Raises:
        ValueError: For an unknown difficulty or mode, or an invalid
            ``start_fen``.
    """
    if start_fen is not None and start_fen.strip() != STARTPOS_FEN:
        return GameState.from_fen(
            start_fen,
            difficulty=difficulty,
            mode=mode,
            show_legal_moves=show_legal_moves,
            show_threats=show_threats,
            board_flipped=board_flipped,
        )
    opts = _validated_config(difficulty, mode, show_legal_moves, show_threats, board_flipped)
    return GameState(
        board=initial_board(),
        white_king_position=Position(7, 4),
        black_king_position=Position(0, 4),
        ai_difficulty=opts["difficulty"],
        game_mode=opts["mode"],
        show_legal_moves=opts["show_legal_moves"],
        show_threats=opts["show_threats"],
        board_flipped=opts["board_flipped"],
    )


def restart(state: GameState) -> GameState:
    return new_game(**state.config())


def apply_move(state: GameState, move: Move) -> GameState:
    """Return the state after ``move``, or ``state`` itself if the request is not legal.

    Illegal requests (empty or opponent origin, destination absent from
    ``legal_moves``, out-of-bounds squares, unknown promotion piece, game
    already over) are treated as "nothing happened".
    """
    if state.is_game_over:
        logger.debug("move rejected: game is over", extra={"move": _describe(move)})
        return state
    if move.promotion_piece is not None and move.promotion_piece not in PROMOTION_TYPES:
        logger.debug("move rejected: bad promotion", extra={"move": _describe(move)})
        return state
    if move.to_pos not in legal_moves(state, move.from_pos):
        logger.debug("move rejected: not legal", extra={"move": _describe(move)})
        return state
    return play_legal_move(state, move)


def play_legal_move(state: GameState, move: Move) -> GameState:
    """Apply a move already known to be legal.

    Used by the search and by history replay, which only ever feed moves
    drawn from the legal-move generator.
    """
    frm, to = move.from_pos, move.to_pos
    board = state.board
    piece = board[frm.row][frm.col]
    if piece is None:
        raise BoardInvariantError(f"no piece on {frm}")
    color = piece.color

    changes: Dict[Position, Optional[Piece]] = {frm: None}

    # Castling rights: a captured rook on its home square keeps the victim's flag
    rights = state.castling_rights
    if piece.type == KING:
        rights = rights.revoke(color)
    elif piece.type == ROOK and frm.row == home_row(color):
        if frm.col == 0:
            rights = rights.revoke(color, king_side=False)
        elif frm.col == 7:
            rights = rights.revoke(color, queen_side=False)

    prev_ep = state.en_passant_target
    ep_target: Optional[Position] = None
    captured = board[to.row][to.col]
    placed = piece
    promo_type: Optional[str] = None
    is_en_passant = False
    is_castling = False

    if piece.type == PAWN:
        if abs(to.row - frm.row) == 2:
            ep_target = Position((frm.row + to.row) // 2, frm.col)
        if to == prev_ep and captured is None and to.col != frm.col:
            victim = Position(frm.row, to.col)
            captured = board[victim.row][victim.col]
            changes[victim] = None
            is_en_passant = True
        if to.row == promotion_row(color):
            promo_type = move.promotion_piece or QUEEN
            placed = Piece(promo_type, color)
    elif piece.type == KING and abs(to.col - frm.col) == 2:
        is_castling = True
        rook_from, rook_to = (7, 5) if to.col > frm.col else (0, 3)
        changes[Position(frm.row, rook_from)] = None
        changes[Position(frm.row, rook_to)] = board[frm.row][rook_from]

    if captured is not None and captured.type == KING:
        raise BoardInvariantError(f"move {_describe(move)} captures a king")

    changes[to] = placed
    white_king = state.white_king_position
    black_king = state.black_king_position
    if piece.type == KING:
        if color == WHITE:
            white_king = to
        else:
            black_king = to

    moved = replace(
        state,
        board=with_squares(board, changes),
        current_player=opposite(color),
        white_king_position=white_king,
        black_king_position=black_king,
        castling_rights=rights,
        en_passant_target=ep_target,
        halfmove_clock=(
            0 if (piece.type == PAWN or captured is not None) else state.halfmove_clock + 1
        ),
        fullmove_number=state.fullmove_number + (1 if color == BLACK else 0),
    )
    moved = _with_status(moved)
    record = Move(
        frm,
        to,
        piece=piece,
        captured_piece=captured,
        is_check=moved.is_check,
        is_checkmate=moved.is_checkmate,
        is_promotion=promo_type is not None,
        promotion_piece=promo_type,
        is_castling=is_castling,
        is_en_passant=is_en_passant,
    )
    return replace(moved, move_history=state.move_history + (record,))


def undo(state: GameState) -> GameState:
    """Drop the last move by replaying the rest of the history from the start."""
    if not state.move_history:
        return state
    replayed = new_game(**state.config())
    for m in state.move_history[:-1]:
        replayed = play_legal_move(replayed, m)
    return replayed


def undo_turn(state: GameState) -> GameState:
    """Undo back to the human's turn.

    Against the AI a single undo usually lands on the AI's turn; the AI's
    reply is taken back together with the human move before it.
    """
    state = undo(state)
    if state.move_history and ai_to_move(state):
        state = undo(state)
    return state


def ai_to_move(state: GameState) -> bool:
    return (
        state.game_mode == "vs_ai"
        and state.current_player == AI_COLOR
        and not state.is_game_over
    )


def to_fen(state: GameState) -> str:
    stm = "w" if state.current_player == WHITE else "b"
    ep = position_to_str(state.en_passant_target) if state.en_passant_target is not None else "-"
    return (
        f"{placement_of(state.board)} {stm} {state.castling_rights.to_fen()} {ep} "
        f"{state.halfmove_clock} {state.fullmove_number}"
    )


def _describe(move: Move) -> str:
    try:
        return move.to_uci()
    except ValueError:
        return f"{move.from_pos!r}->{move.to_pos!r}"
