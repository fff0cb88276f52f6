"""Per-piece move generation, attack detection and the legality filter.

Pure functions over immutable ``GameState`` values. Nothing here mutates its
input; legality is decided by simulating each candidate on a scratch board.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Set

from .board import (
    BISHOP,
    KING,
    KNIGHT,
    PAWN,
    QUEEN,
    ROOK,
    WHITE,
    Board,
    BoardInvariantError,
    Piece,
    Position,
    iter_pieces,
    opposite,
    with_squares,
)
from .move import Move

if TYPE_CHECKING:  # pragma: no cover
    from .game import GameState


KNIGHT_OFFSETS = ((-2, -1), (-2, 1), (-1, -2), (-1, 2), (1, -2), (1, 2), (2, -1), (2, 1))
KING_OFFSETS = ((-1, -1), (-1, 0), (-1, 1), (0, -1), (0, 1), (1, -1), (1, 0), (1, 1))
DIAGONALS = ((-1, -1), (-1, 1), (1, -1), (1, 1))
ORTHOGONALS = ((-1, 0), (0, 1), (1, 0), (0, -1))
SLIDER_DIRS = {BISHOP: DIAGONALS, ROOK: ORTHOGONALS, QUEEN: DIAGONALS + ORTHOGONALS}


def pawn_direction(color: str) -> int:
    return -1 if color == WHITE else 1


def pawn_start_row(color: str) -> int:
    return 6 if color == WHITE else 1


def promotion_row(color: str) -> int:
    return 0 if color == WHITE else 7


def home_row(color: str) -> int:
    return 7 if color == WHITE else 0


# --- Attack detection ---


def square_attacked_on(board: Board, pos: Position, by_color: str) -> bool:
    """Return True if any ``by_color`` piece on ``board`` attacks ``pos``.

    Pawns use capture geometry only; sliders stop at the first occupied
    square. Whose turn it is does not matter.
    """
    r, c = pos.row, pos.col

    # Pawns of by_color attack from one row behind their direction of travel
    pr = r - pawn_direction(by_color)
    if 0 <= pr < 8:
        for pc in (c - 1, c + 1):
            if 0 <= pc < 8:
                p = board[pr][pc]
                if p is not None and p.color == by_color and p.type == PAWN:
                    return True

    for dr, dc in KNIGHT_OFFSETS:
        tr, tc = r + dr, c + dc
        if 0 <= tr < 8 and 0 <= tc < 8:
            p = board[tr][tc]
            if p is not None and p.color == by_color and p.type == KNIGHT:
                return True

    for dr, dc in KING_OFFSETS:
        tr, tc = r + dr, c + dc
        if 0 <= tr < 8 and 0 <= tc < 8:
            p = board[tr][tc]
            if p is not None and p.color == by_color and p.type == KING:
                return True

    for dirs, kinds in ((DIAGONALS, (BISHOP, QUEEN)), (ORTHOGONALS, (ROOK, QUEEN))):
        for dr, dc in dirs:
            tr, tc = r + dr, c + dc
            while 0 <= tr < 8 and 0 <= tc < 8:
                p = board[tr][tc]
                if p is not None:
                    if p.color == by_color and p.type in kinds:
                        return True
                    break
                tr += dr
                tc += dc
    return False


def is_square_attacked(state: "GameState", pos: Position, by_color: str) -> bool:
    return square_attacked_on(state.board, pos, by_color)


def king_position(state: "GameState", color: str) -> Position:
    """Return the cached king square for ``color``, verified against the board."""
    pos = state.white_king_position if color == WHITE else state.black_king_position
    if pos is None or not pos.in_bounds():
        raise BoardInvariantError(f"no recorded {color} king position")
    p = state.board[pos.row][pos.col]
    if p is None or p.type != KING or p.color != color:
        raise BoardInvariantError(f"{color} king missing from {pos}")
    return pos


def is_king_in_check(state: "GameState", color: str) -> bool:
    return square_attacked_on(state.board, king_position(state, color), opposite(color))


# --- Pseudo-legal generation ---


def _pawn_moves(state: "GameState", pos: Position, piece: Piece) -> List[Position]:
    board = state.board
    d = pawn_direction(piece.color)
    moves: List[Position] = []

    one = pos.offset(d, 0)
    if one.in_bounds() and board[one.row][one.col] is None:
        moves.append(one)
        if pos.row == pawn_start_row(piece.color):
            two = pos.offset(2 * d, 0)
            if board[two.row][two.col] is None:
                moves.append(two)

    for dc in (-1, 1):
        cap = pos.offset(d, dc)
        if not cap.in_bounds():
            continue
        target = board[cap.row][cap.col]
        if target is not None:
            if target.color != piece.color:
                moves.append(cap)
        elif cap == state.en_passant_target:
            victim = board[pos.row][cap.col]
            if victim is not None and victim.type == PAWN and victim.color != piece.color:
                moves.append(cap)
    return moves


def _step_moves(state: "GameState", pos: Position, piece: Piece, offsets) -> List[Position]:
    board = state.board
    moves: List[Position] = []
    for dr, dc in offsets:
        tr, tc = pos.row + dr, pos.col + dc
        if 0 <= tr < 8 and 0 <= tc < 8:
            target = board[tr][tc]
            if target is None or target.color != piece.color:
                moves.append(Position(tr, tc))
    return moves


def _knight_moves(state: "GameState", pos: Position, piece: Piece) -> List[Position]:
    return _step_moves(state, pos, piece, KNIGHT_OFFSETS)


def _king_moves(state: "GameState", pos: Position, piece: Piece) -> List[Position]:
    return _step_moves(state, pos, piece, KING_OFFSETS) + _castling_moves(state, pos, piece)


def _castling_moves(state: "GameState", pos: Position, piece: Piece) -> List[Position]:
    board = state.board
    color = piece.color
    row = home_row(color)
    if pos.row != row or pos.col != 4:
        return []
    rights = state.castling_rights
    if not (rights.allows(color, True) or rights.allows(color, False)):
        return []
    enemy = opposite(color)
    if square_attacked_on(board, pos, enemy):
        return []

    moves: List[Position] = []
    # (king side, rook column, squares that must be empty, squares the king crosses)
    for king_side, rook_col, between, transit in (
        (True, 7, (5, 6), (5, 6)),
        (False, 0, (1, 2, 3), (3, 2)),
    ):
        if not rights.allows(color, king_side):
            continue
        rook = board[row][rook_col]
        if rook is None or rook.type != ROOK or rook.color != color:
            continue
        if any(board[row][c] is not None for c in between):
            continue
        if any(square_attacked_on(board, Position(row, c), enemy) for c in transit):
            continue
        moves.append(Position(row, 6 if king_side else 2))
    return moves


def _slider_moves(state: "GameState", pos: Position, piece: Piece) -> List[Position]:
    board = state.board
    moves: List[Position] = []
    for dr, dc in SLIDER_DIRS[piece.type]:
        tr, tc = pos.row + dr, pos.col + dc
        while 0 <= tr < 8 and 0 <= tc < 8:
            target = board[tr][tc]
            if target is None:
                moves.append(Position(tr, tc))
            else:
                if target.color != piece.color:
                    moves.append(Position(tr, tc))
                break
            tr += dr
            tc += dc
    return moves


_GENERATORS: Dict[str, Callable[["GameState", Position, Piece], List[Position]]] = {
    PAWN: _pawn_moves,
    KNIGHT: _knight_moves,
    BISHOP: _slider_moves,
    ROOK: _slider_moves,
    QUEEN: _slider_moves,
    KING: _king_moves,
}


def pseudo_legal_moves(state: "GameState", pos: Position) -> List[Position]:
    """Destinations for the piece on ``pos`` ignoring own-king safety."""
    if not pos.in_bounds():
        return []
    piece = state.board[pos.row][pos.col]
    if piece is None:
        return []
    return _GENERATORS[piece.type](state, pos, piece)


# --- Legality filter ---


def _is_en_passant(state: "GameState", frm: Position, to: Position, piece: Piece) -> bool:
    return (
        piece.type == PAWN
        and to == state.en_passant_target
        and to.col != frm.col
        and state.board[to.row][to.col] is None
    )


def _leaves_king_safe(state: "GameState", frm: Position, to: Position, piece: Piece) -> bool:
    changes = {frm: None, to: piece}
    if _is_en_passant(state, frm, to, piece):
        changes[Position(frm.row, to.col)] = None
    scratch = with_squares(state.board, changes)
    if piece.type == KING:
        king = to
    else:
        king = king_position(state, piece.color)
    return not square_attacked_on(scratch, king, opposite(piece.color))


def legal_moves(state: "GameState", pos: Position) -> List[Position]:
    """Legal destinations for the current player's piece on ``pos``.

    Returns an empty list for an out-of-bounds or empty square, or a square
    holding an opponent piece.
    """
    if not pos.in_bounds():
        return []
    piece = state.board[pos.row][pos.col]
    if piece is None or piece.color != state.current_player:
        return []
    return [
        to for to in _GENERATORS[piece.type](state, pos, piece)
        if _leaves_king_safe(state, pos, to, piece)
    ]


def captured_piece_for(state: "GameState", frm: Position, to: Position) -> Optional[Piece]:
    piece = state.board[frm.row][frm.col]
    if piece is not None and _is_en_passant(state, frm, to, piece):
        return state.board[frm.row][to.col]
    return state.board[to.row][to.col]


def all_legal_moves(state: "GameState") -> List[Move]:
    """Every legal move of the side to move as partial move requests.

    Promotions default to a queen; ``captured_piece`` is filled so callers
    can order or weight captures without looking at the board again.
    """
    moves: List[Move] = []
    color = state.current_player
    last_row = promotion_row(color)
    for frm, piece in iter_pieces(state.board, color):
        for to in legal_moves(state, frm):
            promo = QUEEN if piece.type == PAWN and to.row == last_row else None
            moves.append(
                Move(
                    frm,
                    to,
                    piece=piece,
                    captured_piece=captured_piece_for(state, frm, to),
                    promotion_piece=promo,
                )
            )
    return moves


def count_legal_moves(state: "GameState") -> int:
    return sum(
        len(legal_moves(state, frm)) for frm, _ in iter_pieces(state.board, state.current_player)
    )


def has_any_legal_move(state: "GameState") -> bool:
    for frm, _ in iter_pieces(state.board, state.current_player):
        if legal_moves(state, frm):
            return True
    return False


def threatened_squares(state: "GameState") -> List[Position]:
    """Squares of the current player's pieces that an opponent piece could move to."""
    me = state.current_player
    nominal = replace(state, current_player=opposite(me))
    targets: Set[Position] = set()
    for frm, _ in iter_pieces(state.board, opposite(me)):
        targets.update(pseudo_legal_moves(nominal, frm))
    return [pos for pos, _ in iter_pieces(state.board, me) if pos in targets]
