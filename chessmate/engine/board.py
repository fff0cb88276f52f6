from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Iterator, List, Optional, Tuple


WHITE = "white"
BLACK = "black"
COLORS = (WHITE, BLACK)

PAWN = "pawn"
KNIGHT = "knight"
BISHOP = "bishop"
ROOK = "rook"
QUEEN = "queen"
KING = "king"
PIECE_TYPES = (PAWN, KNIGHT, BISHOP, ROOK, QUEEN, KING)
PROMOTION_TYPES = (QUEEN, ROOK, BISHOP, KNIGHT)

TYPE_TO_CHAR = {
    PAWN: "p",
    KNIGHT: "n",
    BISHOP: "b",
    ROOK: "r",
    QUEEN: "q",
    KING: "k",
}
CHAR_TO_TYPE = {v: k for k, v in TYPE_TO_CHAR.items()}

FILES = "abcdefgh"
RANKS = "87654321"  # row 0 is rank 8

BACK_RANK_ORDER = (ROOK, KNIGHT, BISHOP, QUEEN, KING, BISHOP, KNIGHT, ROOK)


class BoardInvariantError(RuntimeError):
    """Raised when the engine detects an inconsistent position.

    This signals a defect in the engine itself (for example a king missing
    from the square recorded in the king-position cache), never a usage
    error by the caller.
    """


def opposite(color: str) -> str:
    return BLACK if color == WHITE else WHITE


@dataclass(frozen=True)
class Piece:
    type: str
    color: str

    @property
    def symbol(self) -> str:
        """FEN letter for the piece, uppercase for white."""
        ch = TYPE_TO_CHAR[self.type]
        return ch.upper() if self.color == WHITE else ch

    @classmethod
    def from_symbol(cls, ch: str) -> "Piece":
        if ch.lower() not in CHAR_TO_TYPE:
            raise ValueError(f"invalid piece symbol: {ch!r}")
        return cls(CHAR_TO_TYPE[ch.lower()], WHITE if ch.isupper() else BLACK)


@dataclass(frozen=True)
class Position:
    """Board coordinate; row 0 is rank 8 and col 0 is the a-file."""

    row: int
    col: int

    def in_bounds(self) -> bool:
        return 0 <= self.row < 8 and 0 <= self.col < 8

    def offset(self, dr: int, dc: int) -> "Position":
        return Position(self.row + dr, self.col + dc)

    def __str__(self) -> str:
        return position_to_str(self) if self.in_bounds() else f"({self.row},{self.col})"


Square = Optional[Piece]
Board = Tuple[Tuple[Square, ...], ...]


@dataclass(frozen=True)
class CastlingRights:
    white_king_side: bool = True
    white_queen_side: bool = True
    black_king_side: bool = True
    black_queen_side: bool = True

    @property
    def index(self) -> int:
        """4-bit combination (0..15) of the four flags."""
        idx = 0
        if self.white_king_side:
            idx |= 1
        if self.white_queen_side:
            idx |= 2
        if self.black_king_side:
            idx |= 4
        if self.black_queen_side:
            idx |= 8
        return idx

    def allows(self, color: str, king_side: bool) -> bool:
        if color == WHITE:
            return self.white_king_side if king_side else self.white_queen_side
        return self.black_king_side if king_side else self.black_queen_side

    def revoke(
        self, color: str, *, king_side: bool = True, queen_side: bool = True
    ) -> "CastlingRights":
        if color == WHITE:
            return replace(
                self,
                white_king_side=self.white_king_side and not king_side,
                white_queen_side=self.white_queen_side and not queen_side,
            )
        return replace(
            self,
            black_king_side=self.black_king_side and not king_side,
            black_queen_side=self.black_queen_side and not queen_side,
        )

    def to_fen(self) -> str:
        s = ""
        if self.white_king_side:
            s += "K"
        if self.white_queen_side:
            s += "Q"
        if self.black_king_side:
            s += "k"
        if self.black_queen_side:
            s += "q"
        return s or "-"

    @classmethod
    def from_fen(cls, field: str) -> "CastlingRights":
        if field == "-":
            return cls(False, False, False, False)
        for ch in field:
            if ch not in "KQkq":
                raise ValueError("invalid castling rights")
        return cls("K" in field, "Q" in field, "k" in field, "q" in field)


NO_CASTLING = CastlingRights(False, False, False, False)


def position_to_str(pos: Position) -> str:
    """Convert a position into algebraic notation.

    Args:
        pos (Position): Board coordinate.

    Returns:
        str: Square name such as ``"e4"``.

    Raises:
        ValueError: If ``pos`` lies outside the board.
    """
    if not pos.in_bounds():
        raise ValueError(f"invalid position: ({pos.row}, {pos.col})")
    return FILES[pos.col] + RANKS[pos.row]


def str_to_position(s: str) -> Position:
    """Convert algebraic notation into a position.

    Args:
        s (str): Square name such as ``"e4"``.

    Returns:
        Position: Matching board coordinate.

    Raises:
        ValueError: If ``s`` is not a valid square.
    """
    if not isinstance(s, str) or len(s) != 2:
        raise ValueError(f"invalid square: {s!r}")
    col = FILES.find(s[0].lower())
    row = RANKS.find(s[1])
    if col < 0 or row < 0:
        raise ValueError(f"invalid square: {s!r}")
    return Position(row, col)


def initial_board() -> Board:
    rows: List[List[Square]] = [[None] * 8 for _ in range(8)]
    for col, kind in enumerate(BACK_RANK_ORDER):
        rows[0][col] = Piece(kind, BLACK)
        rows[1][col] = Piece(PAWN, BLACK)
        rows[6][col] = Piece(PAWN, WHITE)
        rows[7][col] = Piece(kind, WHITE)
    return tuple(tuple(r) for r in rows)


def with_squares(board: Board, changes: Dict[Position, Square]) -> Board:
    """Return a board with ``changes`` applied.

    Only the rows touched by ``changes`` are copied; untouched rows are
    shared with the input board, which is safe because rows are tuples.
    """
    by_row: Dict[int, List[Square]] = {}
    for pos, sq in changes.items():
        row = by_row.get(pos.row)
        if row is None:
            row = list(board[pos.row])
            by_row[pos.row] = row
        row[pos.col] = sq
    if not by_row:
        return board
    return tuple(tuple(by_row[r]) if r in by_row else board[r] for r in range(8))


def iter_pieces(board: Board, color: Optional[str] = None) -> Iterator[Tuple[Position, Piece]]:
    for r in range(8):
        row = board[r]
        for c in range(8):
            p = row[c]
            if p is not None and (color is None or p.color == color):
                yield Position(r, c), p


def find_king(board: Board, color: str) -> Optional[Position]:
    for pos, p in iter_pieces(board, color):
        if p.type == KING:
            return pos
    return None


def board_from_placement(placement: str) -> Board:
    """Parse the piece-placement field of a FEN string.

    Raises:
        ValueError: If the field does not describe exactly 8 ranks of 8 squares.
    """
    ranks = placement.split("/")
    if len(ranks) != 8:
        raise ValueError("FEN board must have 8 ranks")
    rows: List[List[Square]] = []
    for rank in ranks:  # first rank listed is rank 8 == row 0
        row: List[Square] = []
        for ch in rank:
            if ch.isdigit():
                n = int(ch)
                if n < 1 or n > 8:
                    raise ValueError("invalid empty count in FEN rank")
                row.extend([None] * n)
            else:
                try:
                    row.append(Piece.from_symbol(ch))
                except ValueError as e:
                    raise ValueError(f"invalid piece in FEN: {ch!r}") from e
            if len(row) > 8:
                raise ValueError("too many squares in FEN rank")
        if len(row) != 8:
            raise ValueError("rank does not sum to 8 squares in FEN")
        rows.append(row)
    return tuple(tuple(r) for r in rows)


def placement_of(board: Board) -> str:
    ranks_str: List[str] = []
    for row in board:
        run = 0
        out = []
        for sq in row:
            if sq is None:
                run += 1
                continue
            if run:
                out.append(str(run))
                run = 0
            out.append(sq.symbol)
        if run:
            out.append(str(run))
        ranks_str.append("".join(out))
    return "/".join(ranks_str)


def render(board: Board) -> str:
    """Plain-text diagram, rank 8 at the top. Used in logs and test failures."""
    lines = []
    for r, row in enumerate(board):
        cells = " ".join(sq.symbol if sq is not None else "." for sq in row)
        lines.append(f"{RANKS[r]} {cells}")
    lines.append("  " + " ".join(FILES))
    return "\n".join(lines)
