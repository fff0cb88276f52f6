from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .board import CHAR_TO_TYPE, PROMOTION_TYPES, TYPE_TO_CHAR, Piece, Position
from .board import position_to_str, str_to_position


@dataclass(frozen=True)
class Move:
    """Move request or record.

    A request only needs ``from_pos``/``to_pos`` (and ``promotion_piece``
    when promoting to something other than a queen). ``apply_move`` returns
    a state whose history holds the fully annotated record.

    Attributes:
        from_pos (Position): Origin square.
        to_pos (Position): Destination square.
        piece (Optional[Piece]): Moving piece as it stood on ``from_pos``.
        captured_piece (Optional[Piece]): Piece removed by the move, if any.
        is_check (bool): Move gave check.
        is_checkmate (bool): Move gave checkmate.
        is_promotion (bool): Pawn reached the last rank.
        promotion_piece (Optional[str]): Piece type promoted to.
        is_castling (bool): King moved two files with its rook.
        is_en_passant (bool): Pawn captured en passant.
    """

    from_pos: Position
    to_pos: Position
    piece: Optional[Piece] = None
    captured_piece: Optional[Piece] = None
    is_check: bool = False
    is_checkmate: bool = False
    is_promotion: bool = False
    promotion_piece: Optional[str] = None
    is_castling: bool = False
    is_en_passant: bool = False

    @property
    def is_capture(self) -> bool:
        return self.captured_piece is not None

    def same_squares(self, other: Optional["Move"]) -> bool:
        return (
            other is not None
            and self.from_pos == other.from_pos
            and self.to_pos == other.to_pos
        )

    def to_uci(self) -> str:
        """Serialize the move into long algebraic form.

        Returns:
            str: Move encoded like ``"e2e4"`` or ``"e7e8q"``.
        """
        promo = TYPE_TO_CHAR[self.promotion_piece] if self.promotion_piece else ""
        return position_to_str(self.from_pos) + position_to_str(self.to_pos) + promo

    def __str__(self) -> str:
        suffix = "#" if self.is_checkmate else ("+" if self.is_check else "")
        return self.to_uci() + suffix


def parse_uci(uci: str) -> Move:
    """Parse a long algebraic move string into a move request.

    Args:
        uci (str): Move encoded like ``"e2e4"`` or ``"e7e8n"``.

    Returns:
        Move: Partial move carrying squares and optional promotion piece.

    Raises:
        ValueError: If the string has an invalid length, squares, or promotion
            piece.
    """
    if not isinstance(uci, str) or len(uci) not in (4, 5):
        raise ValueError(f"invalid move length: {uci!r}")
    from_pos = str_to_position(uci[0:2])
    to_pos = str_to_position(uci[2:4])
    promo: Optional[str] = None
    if len(uci) == 5:
        promo = CHAR_TO_TYPE.get(uci[4].lower())
        if promo not in PROMOTION_TYPES:
            raise ValueError(f"invalid promotion piece: {uci[4]!r}")
    return Move(from_pos, to_pos, promotion_piece=promo)
