"""Primitive value types: colours, move kinds, game states and squares."""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

BOARD_SIZE = 8
FILES = "abcdefgh"


class Color(Enum):
    WHITE = 0
    BLACK = 1

    @property
    def index(self) -> int:
        return self.value

    @property
    def opponent(self) -> "Color":
        return Color.BLACK if self is Color.WHITE else Color.WHITE

    @property
    def sign(self) -> int:
        """+1 for white, -1 for black."""
        return 1 if self is Color.WHITE else -1

    @property
    def back_rank(self) -> int:
        return 0 if self is Color.WHITE else BOARD_SIZE - 1

    @staticmethod
    def from_index(index: int) -> "Color":
        return Color.WHITE if index == 0 else Color.BLACK


class MoveType(Enum):
    NORMAL = "normal"
    DOUBLEPAWN = "doublepawn"
    CASTLING_KINGSIDE = "castling_kingside"
    CASTLING_QUEENSIDE = "castling_queenside"
    CAPTURE = "capture"
    EN_PASSANT = "en_passant"
    PROMOTION = "promotion"
    CAPTURE_PROMOTION = "capture_promotion"

    @property
    def is_capture(self) -> bool:
        return self in (MoveType.CAPTURE, MoveType.CAPTURE_PROMOTION, MoveType.EN_PASSANT)

    @property
    def is_promotion(self) -> bool:
        return self in (MoveType.PROMOTION, MoveType.CAPTURE_PROMOTION)

    @property
    def is_castling(self) -> bool:
        return self in (MoveType.CASTLING_KINGSIDE, MoveType.CASTLING_QUEENSIDE)


class GameState(Enum):
    PAUSED = "paused"
    RUNNING = "running"
    END_CHECKMATE = "checkmate"
    END_TIMEOUT = "timeout"
    END_STALEMATE = "stalemate"
    END_MATERIAL = "material"
    END_REPETITION = "repetition"
    END_50MOVE = "fifty_move"
    END_RESIGN = "resign"
    END_AGREEMENT = "agreement"

    @property
    def is_finished(self) -> bool:
        return self not in (GameState.PAUSED, GameState.RUNNING)

    @property
    def is_draw(self) -> bool:
        return self in DRAW_STATES


DRAW_STATES = frozenset({
    GameState.END_STALEMATE,
    GameState.END_MATERIAL,
    GameState.END_REPETITION,
    GameState.END_50MOVE,
    GameState.END_AGREEMENT,
})


@dataclass(frozen=True)
class Coordinate:
    """A square as (file, rank), both zero based. a1 is (0, 0)."""

    file: int
    rank: int

    def is_on_board(self) -> bool:
        return 0 <= self.file < BOARD_SIZE and 0 <= self.rank < BOARD_SIZE

    def offset(self, dx: int, dy: int) -> "Coordinate":
        return Coordinate(self.file + dx, self.rank + dy)

    @property
    def algebraic(self) -> str:
        if not self.is_on_board():
            raise ValueError(f"{self.file, self.rank} is not on the board")
        return f"{FILES[self.file]}{self.rank + 1}"

    @staticmethod
    def from_algebraic(text: str) -> "Coordinate":
        if len(text) != 2 or text[0] not in FILES or text[1] not in "12345678":
            raise ValueError(f"'{text}' is not a square")
        return Coordinate(FILES.index(text[0]), int(text[1]) - 1)

    def __str__(self) -> str:
        return self.algebraic


@dataclass(frozen=True)
class CastlingAvailability:
    white_king_side: bool = True
    white_queen_side: bool = True
    black_king_side: bool = True
    black_queen_side: bool = True

    def is_any_available(self) -> bool:
        return (self.white_king_side or self.white_queen_side
                or self.black_king_side or self.black_queen_side)

    def has(self, color: Color, king_side: bool) -> bool:
        if color is Color.WHITE:
            return self.white_king_side if king_side else self.white_queen_side
        return self.black_king_side if king_side else self.black_queen_side

    def revoke(self, color: Color, king_side: Optional[bool] = None) -> "CastlingAvailability":
        """Return a copy with one side (or both when ``king_side`` is None) removed."""
        prefix = "white" if color is Color.WHITE else "black"
        changes = {}
        if king_side in (None, True):
            changes[f"{prefix}_king_side"] = False
        if king_side in (None, False):
            changes[f"{prefix}_queen_side"] = False
        return replace(self, **changes)

    @property
    def symbols(self) -> str:
        text = "".join(
            symbol for symbol, held in (
                ("K", self.white_king_side),
                ("Q", self.white_queen_side),
                ("k", self.black_king_side),
                ("q", self.black_queen_side),
            ) if held
        )
        return text or "-"

    @staticmethod
    def none() -> "CastlingAvailability":
        return CastlingAvailability(False, False, False, False)
