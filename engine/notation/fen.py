"""Forsyth-Edwards Notation: parsing and serialization of position records."""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from engine.core.errors import FENFormatError
from engine.core.pieces import Piece, piece_from_symbol
from engine.core.types import BOARD_SIZE, CastlingAvailability, Color, Coordinate

START_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"

_CASTLING_PATTERN = re.compile(r"K?Q?k?q?")


@dataclass(frozen=True)
class FENRecord:
    """The six FEN fields. ``piece_grid`` is column major: ``piece_grid[file][rank]``."""

    piece_grid: Tuple[Tuple[Optional[Piece], ...], ...]
    active_color: Color
    castling: CastlingAvailability
    en_passant_target: Optional[Coordinate]
    half_move_clock: int
    full_move_clock: int

    def copy_grid(self) -> List[List[Optional[Piece]]]:
        return [list(column) for column in self.piece_grid]


def parse_fen(text: str) -> FENRecord:
    """Parse a FEN string. Raises FENFormatError naming the offending field."""
    if not text:
        raise FENFormatError("FEN string is empty")
    fields = text.split()
    if len(fields) != 6:
        raise FENFormatError(f"FEN needs 6 space separated fields, got {len(fields)}")
    placement, color, castling, en_passant, half_move, full_move = fields
    return FENRecord(
        piece_grid=_parse_placement(placement),
        active_color=_parse_color(color),
        castling=_parse_castling(castling),
        en_passant_target=_parse_en_passant(en_passant),
        half_move_clock=_parse_int(half_move, "half-move clock", minimum=0),
        full_move_clock=_parse_int(full_move, "full-move clock", minimum=1),
    )


def serialize_fen(record: FENRecord) -> str:
    rows = []
    for rank in range(BOARD_SIZE - 1, -1, -1):
        row = ""
        empty = 0
        for file in range(BOARD_SIZE):
            piece = record.piece_grid[file][rank]
            if piece is None:
                empty += 1
                continue
            if empty:
                row += str(empty)
                empty = 0
            row += piece.fen_symbol
        if empty:
            row += str(empty)
        rows.append(row)
    en_passant = record.en_passant_target.algebraic if record.en_passant_target else "-"
    return " ".join([
        "/".join(rows),
        "w" if record.active_color is Color.WHITE else "b",
        record.castling.symbols,
        en_passant,
        str(record.half_move_clock),
        str(record.full_move_clock),
    ])


def _parse_placement(placement: str):
    rows = placement.split("/")
    if len(rows) != BOARD_SIZE:
        raise FENFormatError(f"piece placement needs {BOARD_SIZE} ranks, got {len(rows)}")
    grid = [[None] * BOARD_SIZE for _ in range(BOARD_SIZE)]
    for index, row in enumerate(rows):
        rank = BOARD_SIZE - 1 - index
        file = 0
        for char in row:
            if char in "12345678":
                file += int(char)
                if file > BOARD_SIZE:
                    raise FENFormatError(f"rank {rank + 1} describes more than {BOARD_SIZE} squares")
                continue
            if file >= BOARD_SIZE:
                raise FENFormatError(f"rank {rank + 1} describes more than {BOARD_SIZE} squares")
            try:
                grid[file][rank] = piece_from_symbol(char)
            except ValueError:
                raise FENFormatError(f"unknown piece letter '{char}' in rank {rank + 1}") from None
            file += 1
        if file < BOARD_SIZE:
            raise FENFormatError(f"rank {rank + 1} describes only {file} squares")
    return tuple(tuple(column) for column in grid)


def _parse_color(text: str) -> Color:
    if text == "w":
        return Color.WHITE
    if text == "b":
        return Color.BLACK
    raise FENFormatError(f"active colour must be 'w' or 'b', got '{text}'")


def _parse_castling(text: str) -> CastlingAvailability:
    if text == "-":
        return CastlingAvailability.none()
    if not 1 <= len(text) <= 4 or not _CASTLING_PATTERN.fullmatch(text):
        raise FENFormatError(f"castling field must be '-' or a subset of 'KQkq' in that order, got '{text}'")
    return CastlingAvailability("K" in text, "Q" in text, "k" in text, "q" in text)


def _parse_en_passant(text: str) -> Optional[Coordinate]:
    if text == "-":
        return None
    try:
        return Coordinate.from_algebraic(text)
    except ValueError:
        raise FENFormatError(f"en passant target must be '-' or a square, got '{text}'") from None


def _parse_int(text: str, name: str, minimum: int) -> int:
    if not (text.isascii() and text.isdigit()):
        raise FENFormatError(f"{name} must be an integer >= {minimum}, got '{text}'")
    value = int(text)
    if value < minimum:
        raise FENFormatError(f"{name} must be an integer >= {minimum}, got '{text}'")
    return value
