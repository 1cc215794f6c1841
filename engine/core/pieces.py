"""Piece kinds and their pseudo-legal move generators.

A pseudo-legal move respects the movement pattern and board occupancy but may
leave the mover's own king capturable. The board filters those out.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple, TYPE_CHECKING

from engine.config import PIECE_VALUES
from engine.core.move import Move
from engine.core.types import BOARD_SIZE, Color, Coordinate, MoveType

if TYPE_CHECKING:
    from engine.core.board import Board


class Piece(ABC):
    kind: str = ""
    symbol: str = ""

    def __init__(self, color: Color):
        self.color = color

    @property
    def value(self) -> int:
        return PIECE_VALUES[self.kind]

    @property
    def fen_symbol(self) -> str:
        """Upper case for white, lower case for black."""
        return self.symbol if self.color is Color.WHITE else self.symbol.lower()

    @abstractmethod
    def pseudolegal_moves(self, at: Coordinate, board: "Board") -> List[Move]:
        ...

    def _move_to(self, at: Coordinate, file: int, rank: int, board: "Board") -> Optional[Move]:
        """NORMAL or CAPTURE move onto a single square, None if blocked or off board."""
        if not (0 <= file < BOARD_SIZE and 0 <= rank < BOARD_SIZE):
            return None
        occupant = board.get_piece(file, rank)
        if occupant is None:
            return Move(self, at, Coordinate(file, rank), MoveType.NORMAL)
        if occupant.color is not self.color:
            return Move(self, at, Coordinate(file, rank), MoveType.CAPTURE, occupant)
        return None

    def __eq__(self, other):
        return type(self) is type(other) and self.color is other.color

    def __hash__(self):
        return hash((self.symbol, self.color))

    def __repr__(self):
        return f"{type(self).__name__}({self.color.name})"


class SlidingPiece(Piece):
    DIRECTIONS: Tuple[Tuple[int, int], ...] = ()

    def pseudolegal_moves(self, at, board):
        moves = []
        for dx, dy in self.DIRECTIONS:
            file, rank = at.file + dx, at.rank + dy
            while 0 <= file < BOARD_SIZE and 0 <= rank < BOARD_SIZE:
                occupant = board.get_piece(file, rank)
                if occupant is None:
                    moves.append(Move(self, at, Coordinate(file, rank), MoveType.NORMAL))
                else:
                    if occupant.color is not self.color:
                        moves.append(Move(self, at, Coordinate(file, rank), MoveType.CAPTURE, occupant))
                    break
                file += dx
                rank += dy
        return moves


class Bishop(SlidingPiece):
    kind = "BISHOP"
    symbol = "B"
    DIRECTIONS = ((1, 1), (1, -1), (-1, 1), (-1, -1))


class Rook(SlidingPiece):
    kind = "ROOK"
    symbol = "R"
    DIRECTIONS = ((0, 1), (1, 0), (0, -1), (-1, 0))


class Queen(SlidingPiece):
    kind = "QUEEN"
    symbol = "Q"
    DIRECTIONS = ((1, 1), (1, -1), (-1, 1), (-1, -1), (0, 1), (0, -1), (1, 0), (-1, 0))


class Knight(Piece):
    kind = "KNIGHT"
    symbol = "N"
    OFFSETS = ((2, 1), (2, -1), (-2, 1), (-2, -1), (1, 2), (1, -2), (-1, 2), (-1, -2))

    def pseudolegal_moves(self, at, board):
        moves = []
        for dx, dy in self.OFFSETS:
            move = self._move_to(at, at.file + dx, at.rank + dy, board)
            if move is not None:
                moves.append(move)
        return moves


class King(Piece):
    kind = "KING"
    symbol = "K"
    OFFSETS = ((1, 0), (-1, 0), (0, 1), (0, -1), (1, 1), (1, -1), (-1, 1), (-1, -1))

    def pseudolegal_moves(self, at, board):
        moves = []
        for dx, dy in self.OFFSETS:
            move = self._move_to(at, at.file + dx, at.rank + dy, board)
            if move is not None:
                moves.append(move)
        moves.extend(self._castling_moves(at, board))
        return moves

    def _castling_moves(self, at: Coordinate, board: "Board") -> List[Move]:
        # Attacked squares are checked by the board's legality filter.
        rank = self.color.back_rank
        if at.file != 4 or at.rank != rank:
            return []
        moves = []
        if board.has_castling_availability(self.color, king_side=False):
            rook = board.get_piece(0, rank)
            if (isinstance(rook, Rook) and rook.color is self.color
                    and all(board.get_piece(f, rank) is None for f in (1, 2, 3))):
                moves.append(Move(self, at, Coordinate(2, rank), MoveType.CASTLING_QUEENSIDE, rook))
        if board.has_castling_availability(self.color, king_side=True):
            rook = board.get_piece(7, rank)
            if (isinstance(rook, Rook) and rook.color is self.color
                    and all(board.get_piece(f, rank) is None for f in (5, 6))):
                moves.append(Move(self, at, Coordinate(6, rank), MoveType.CASTLING_KINGSIDE, rook))
        return moves


class Pawn(Piece):
    kind = "PAWN"
    symbol = "P"

    @property
    def direction(self) -> int:
        return 1 if self.color is Color.WHITE else -1

    def pseudolegal_moves(self, at, board):
        moves = []
        step = self.direction
        last_rank = BOARD_SIZE - 1 if self.color is Color.WHITE else 0
        home_rank = 1 if self.color is Color.WHITE else BOARD_SIZE - 2

        one = at.offset(0, step)
        if one.is_on_board() and board.get_piece_at(one) is None:
            if one.rank == last_rank:
                moves.extend(self._promotions(at, one, None))
            else:
                moves.append(Move(self, at, one, MoveType.NORMAL))
                two = at.offset(0, 2 * step)
                if at.rank == home_rank and board.get_piece_at(two) is None:
                    moves.append(Move(self, at, two, MoveType.DOUBLEPAWN))

        for dx in (-1, 1):
            target = at.offset(dx, step)
            if not target.is_on_board():
                continue
            occupant = board.get_piece_at(target)
            if occupant is not None:
                if occupant.color is self.color:
                    continue
                if target.rank == last_rank:
                    moves.extend(self._promotions(at, target, occupant))
                else:
                    moves.append(Move(self, at, target, MoveType.CAPTURE, occupant))
                continue
            last = board.last_move
            if (last is not None and last.type is MoveType.DOUBLEPAWN
                    and last.to_square == Coordinate(target.file, at.rank)):
                captured = board.get_piece_at(last.to_square)
                if captured is not None and captured.color is not self.color:
                    moves.append(Move(self, at, target, MoveType.EN_PASSANT, captured))
        return moves

    def _promotions(self, at: Coordinate, to: Coordinate, captured: Optional[Piece]) -> List[Move]:
        move_type = MoveType.PROMOTION if captured is None else MoveType.CAPTURE_PROMOTION
        return [
            Move(self, at, to, move_type, captured, kind(self.color))
            for kind in PROMOTION_KINDS
        ]


PROMOTION_KINDS = (Rook, Knight, Bishop, Queen)
PIECE_KINDS = {cls.symbol: cls for cls in (Pawn, Knight, Bishop, Rook, Queen, King)}


def piece_from_symbol(symbol: str) -> Piece:
    """Build a piece from its FEN letter (upper case white, lower case black)."""
    kind = PIECE_KINDS.get(symbol.upper())
    if kind is None or len(symbol) != 1:
        raise ValueError(f"'{symbol}' is not a piece letter")
    return kind(Color.WHITE if symbol.isupper() else Color.BLACK)
