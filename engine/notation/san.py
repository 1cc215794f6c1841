"""Standard algebraic notation (SAN): rendering plies and parsing move tokens."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from engine.core.errors import PGNParseError
from engine.core.history import HistoricalBoardState
from engine.core.pieces import Pawn
from engine.core.types import FILES, Coordinate, MoveType

_MOVE_PATTERN = re.compile(r"([RNBQK])?([a-h])?([1-8])?(x)?([a-h][1-8])(=[RNBQK])?([+#])?")
_CASTLING_PATTERN = re.compile(r"O-O(-O)?([+#])?")


class Checking(Enum):
    NONE = ""
    CHECK = "+"
    CHECKMATE = "#"

    @staticmethod
    def from_suffix(suffix: Optional[str]) -> "Checking":
        return Checking(suffix or "")


def algebraic_notation(state: HistoricalBoardState, checking: Checking = Checking.NONE) -> str:
    """Render the move that leaves ``state``.

    Disambiguation is the shortest of file, rank or full square that singles
    the move out among legal moves of the same piece to the same square.
    Pawn captures always name the file.
    """
    if state.is_incomplete():
        raise ValueError("state was recreated from an en passant target and has no legal moves")
    move = state.move_to_next_state
    if move.type is MoveType.CASTLING_KINGSIDE:
        return "O-O" + checking.value
    if move.type is MoveType.CASTLING_QUEENSIDE:
        return "O-O-O" + checking.value

    is_pawn = isinstance(move.piece, Pawn)
    capture = move.type.is_capture
    pawn_capture = capture and is_pawn
    text = "" if is_pawn else move.piece.symbol

    candidates = [
        candidate for candidate in state.legal_moves_in_this_state
        if candidate.piece == move.piece
        and candidate.to_square == move.to_square
        and candidate.promotion_piece == move.promotion_piece
    ]
    if len(candidates) > 1 or pawn_capture:
        same_file = [c for c in candidates if c.from_square.file == move.from_square.file]
        same_rank = [c for c in candidates if c.from_square.rank == move.from_square.rank]
        if len(same_file) == 1:
            text += FILES[move.from_square.file]
        elif len(same_rank) == 1 and not pawn_capture:
            text += str(move.from_square.rank + 1)
        else:
            text += move.from_square.algebraic

    if capture:
        text += "x"
    text += move.to_square.algebraic
    if move.type.is_promotion:
        text += "=" + move.promotion_piece.symbol
    return text + checking.value


@dataclass(frozen=True)
class SanMove:
    """A parsed non-castling move. Missing disambiguation is None."""

    piece: str  # "P" for pawns
    from_file: Optional[int]
    from_rank: Optional[int]
    to_square: Coordinate
    capture: bool
    promotion: Optional[str]
    checking: Checking

    def __str__(self):
        text = "" if self.piece == "P" else self.piece
        if self.from_file is not None:
            text += FILES[self.from_file]
        if self.from_rank is not None:
            text += str(self.from_rank + 1)
        if self.capture:
            text += "x"
        text += self.to_square.algebraic
        if self.promotion:
            text += "=" + self.promotion
        return text + self.checking.value


@dataclass(frozen=True)
class CastlingSanMove:
    king_side: bool
    checking: Checking

    def __str__(self):
        return ("O-O" if self.king_side else "O-O-O") + self.checking.value


def parse_san(text: str) -> Union[SanMove, CastlingSanMove]:
    match = _CASTLING_PATTERN.fullmatch(text)
    if match:
        return CastlingSanMove(king_side=match.group(1) is None,
                               checking=Checking.from_suffix(match.group(2)))

    match = _MOVE_PATTERN.fullmatch(text)
    if not match:
        raise PGNParseError(f"'{text}' is not a move in algebraic notation")
    piece, file, rank, capture, target, promotion, suffix = match.groups()
    piece = piece or "P"
    from_file = FILES.index(file) if file else None
    from_rank = int(rank) - 1 if rank else None

    if piece == "P" and from_file is None and from_rank is not None:
        raise PGNParseError(f"'{text}': a pawn move may only name a rank together with a file")
    if piece == "P" and capture and from_file is None:
        raise PGNParseError(f"'{text}': a pawn capture must name the starting file")
    if promotion and piece != "P":
        raise PGNParseError(f"'{text}': only pawns can promote")

    return SanMove(
        piece=piece,
        from_file=from_file,
        from_rank=from_rank,
        to_square=Coordinate.from_algebraic(target),
        capture=capture is not None,
        promotion=promotion[1] if promotion else None,
        checking=Checking.from_suffix(suffix),
    )
