"""Board snapshots used for undo, repetition detection and game export."""

from dataclasses import dataclass
from datetime import datetime
from functools import cached_property
from typing import Optional, Sequence, Tuple, TYPE_CHECKING

from engine.core.move import Move
from engine.core.types import CastlingAvailability, Color, GameState

if TYPE_CHECKING:
    from engine.core.board import Board
    from engine.core.pieces import Piece

Grid = Tuple[Tuple[Optional["Piece"], ...], ...]


def encode_state(grid: Sequence[Sequence[Optional["Piece"]]],
                 castling: CastlingAvailability, player_index: int) -> str:
    """Canonical position key: grid (file by file), castling rights, side to move."""
    squares = "".join(
        piece.fen_symbol if piece is not None else "x"
        for column in grid
        for piece in column
    )
    return f"{squares}{castling.symbols}{player_index}"


@dataclass(frozen=True)
class HistoricalBoardState:
    """Everything needed to restore the board as it was before ``move_to_next_state``."""

    player_index: int
    player_remaining_ms: int
    castling_availability: CastlingAvailability
    half_move_clock: int
    full_move_clock: int
    game_state: GameState
    color_in_check: Optional[Color]
    winner_index: Optional[int]
    piece_grid: Grid
    move_to_next_state: Move
    legal_moves_in_this_state: Optional[Tuple[Move, ...]]

    @cached_property
    def state_string(self) -> str:
        return encode_state(self.piece_grid, self.castling_availability, self.player_index)

    def is_incomplete(self) -> bool:
        """True for a state recreated from an en-passant target, whose legal moves are unknown."""
        return self.legal_moves_in_this_state is None


@dataclass(frozen=True)
class HistoricalGame:
    """A named game (finished or not) with the time it was played."""

    name: str
    time: datetime
    board: "Board"

    def __post_init__(self):
        if self.name is None or self.time is None or self.board is None:
            raise ValueError("name, time and board are required")
