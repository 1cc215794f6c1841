"""Immutable description of a single ply."""

from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from engine.core.types import Coordinate, MoveType

if TYPE_CHECKING:
    from engine.core.pieces import Piece

_NEEDS_INVOLVED = frozenset({
    MoveType.CAPTURE,
    MoveType.EN_PASSANT,
    MoveType.CAPTURE_PROMOTION,
    MoveType.CASTLING_KINGSIDE,
    MoveType.CASTLING_QUEENSIDE,
})


@dataclass(frozen=True)
class Move:
    """One ply.

    ``involved_piece`` is the captured piece, or the rook for castling.
    ``promotion_piece`` is the piece that replaces a promoting pawn.
    Pieces compare by kind and colour, so two moves are equal when every
    field matches in that sense.
    """

    piece: "Piece"
    from_square: Coordinate
    to_square: Coordinate
    type: MoveType
    involved_piece: Optional["Piece"] = None
    promotion_piece: Optional["Piece"] = None

    def __post_init__(self):
        if self.piece is None or self.from_square is None or self.to_square is None or self.type is None:
            raise ValueError("piece, from_square, to_square and type are required")
        if self.type in _NEEDS_INVOLVED and self.involved_piece is None:
            raise ValueError(f"{self.type.name} move needs an involved piece")
        if self.type.is_promotion and self.promotion_piece is None:
            raise ValueError(f"{self.type.name} move needs a promotion piece")
        if self.piece is self.involved_piece or self.piece is self.promotion_piece:
            raise ValueError("moving piece must be a different instance from involved/promotion piece")
        if self.promotion_piece is not None and self.promotion_piece == self.involved_piece:
            raise ValueError("promotion piece and involved piece must differ")

    def uci(self) -> str:
        text = f"{self.from_square}{self.to_square}"
        if self.promotion_piece is not None:
            text += self.promotion_piece.symbol.lower()
        return text

    def __str__(self) -> str:
        return self.uci()
