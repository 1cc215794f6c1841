"""Chess rules engine: piece grid, legal moves, make/undo and game termination."""

import copy
import logging
from typing import List, Optional, Sequence, Tuple

from engine.config import CONFIG
from engine.core.errors import ConstructionError, IllegalMoveError, IllegalStateError
from engine.core.history import HistoricalBoardState, encode_state
from engine.core.move import Move
from engine.core.pieces import Bishop, King, Knight, Pawn, Piece, Queen, Rook
from engine.core.player import Player
from engine.core.types import BOARD_SIZE, CastlingAvailability, Color, Coordinate, GameState, MoveType
from engine.notation.fen import FENRecord, parse_fen, serialize_fen
from engine.notation.san import Checking, algebraic_notation

logger = logging.getLogger(__name__)

Grid = List[List[Optional[Piece]]]

BACK_RANK = (Rook, Knight, Bishop, Queen, King, Bishop, Knight, Rook)


def _standard_grid() -> Grid:
    grid = [[None] * BOARD_SIZE for _ in range(BOARD_SIZE)]
    for file, kind in enumerate(BACK_RANK):
        grid[file][0] = kind(Color.WHITE)
        grid[file][1] = Pawn(Color.WHITE)
        grid[file][6] = Pawn(Color.BLACK)
        grid[file][7] = kind(Color.BLACK)
    return grid


def _default_players() -> List[Player]:
    return [
        Player(CONFIG.game.white_name, Color.WHITE, CONFIG.game.initial_time_ms),
        Player(CONFIG.game.black_name, Color.BLACK, CONFIG.game.initial_time_ms),
    ]


def _validate_players(players) -> List[Player]:
    if players is None or len(players) != 2:
        raise ConstructionError("exactly two players are required")
    if players[0].color is not Color.WHITE or players[1].color is not Color.BLACK:
        raise ConstructionError("players[0] must be white and players[1] black")
    return list(players)


class Board:
    """Game state plus the rules that move it forward.

    The grid is column major (``grid[file][rank]``). Every mutation pushes a
    full snapshot onto the history, and undo simply restores the last one.
    """

    def __init__(self, players: Optional[Sequence[Player]] = None):
        """Standard starting position."""
        players = _validate_players(players if players is not None else _default_players())
        self._grid: Grid = _standard_grid()
        self._players = players
        self._current_player_index = 0
        self._history: List[HistoricalBoardState] = []
        self._castling = CastlingAvailability()
        self._game_state = GameState.PAUSED
        self._half_move_clock = 0
        self._full_move_clock = 1
        self._legal_moves: Optional[Tuple[Move, ...]] = None
        self._color_in_check: Optional[Color] = None
        self._winner_index: Optional[int] = None
        self._non_standard_start: Optional[FENRecord] = None
        self._initial_time_ms = players[0].remaining_ms

    # ── Construction ────────────────────────────────────────────

    @classmethod
    def from_fen(cls, fen: str, players: Optional[Sequence[Player]] = None) -> "Board":
        """Build a board from a FEN string. Raises FENFormatError on bad text."""
        return cls.from_record(parse_fen(fen), players)

    @classmethod
    def from_record(cls, record: FENRecord, players: Optional[Sequence[Player]] = None) -> "Board":
        board = cls(players)
        board._grid = record.copy_grid()
        board._current_player_index = record.active_color.index
        board._castling = record.castling
        board._half_move_clock = record.half_move_clock
        board._full_move_clock = record.full_move_clock
        if record.en_passant_target is not None:
            board._history.append(board._recreate_double_pawn(record.en_passant_target))
        board._color_in_check = board._compute_color_in_check()
        board._non_standard_start = record
        board._classify_start()
        return board

    def _classify_start(self):
        """A described position may already be over before anyone moves."""
        if not self.is_mate_possible():
            self._end(GameState.END_MATERIAL)
        elif not self.find_all_legal_moves():
            if self._color_in_check is not None:
                self._end(GameState.END_CHECKMATE, winner=self.current_player.color.opponent)
            else:
                self._end(GameState.END_STALEMATE)

    @classmethod
    def from_fields(cls, piece_grid: Sequence[Sequence[Optional[Piece]]], players: Sequence[Player],
                    current_player_index: int, history: Sequence[HistoricalBoardState],
                    castling: CastlingAvailability, game_state: GameState,
                    half_move_clock: int, full_move_clock: int) -> "Board":
        """Restore a board from its internal fields, e.g. a previously saved game."""
        if piece_grid is None or len(piece_grid) != BOARD_SIZE or any(
                len(column) != BOARD_SIZE for column in piece_grid):
            raise ConstructionError(f"piece grid must be {BOARD_SIZE}x{BOARD_SIZE}")
        players = _validate_players(players)
        if current_player_index not in (0, 1):
            raise ConstructionError("current player index must be 0 or 1")
        if history is None:
            raise ConstructionError("history must be a sequence (possibly empty)")
        if castling is None or game_state is None:
            raise ConstructionError("castling availability and game state are required")
        if half_move_clock < 0 or full_move_clock < 1:
            raise ConstructionError("half-move clock must be >= 0 and full-move clock >= 1")

        board = cls(players)
        board._grid = [list(column) for column in piece_grid]
        board._current_player_index = current_player_index
        board._history = list(history)
        board._castling = castling
        board._game_state = game_state
        board._half_move_clock = half_move_clock
        board._full_move_clock = full_move_clock
        board._color_in_check = board._compute_color_in_check()
        board._non_standard_start = board._start_record()
        return board

    def _start_record(self) -> FENRecord:
        if self._history:
            first = self._history[0]
            return FENRecord(first.piece_grid, Color.from_index(first.player_index),
                             first.castling_availability, None,
                             first.half_move_clock, first.full_move_clock)
        return FENRecord(tuple(tuple(column) for column in self._grid), self.current_player.color,
                         self._castling, None, self._half_move_clock, self._full_move_clock)

    def _recreate_double_pawn(self, target: Coordinate) -> HistoricalBoardState:
        """Synthetic history entry for the double push implied by an en passant target."""
        mover = self.current_player.color.opponent
        pawn_square = target.offset(0, mover.sign)
        origin = target.offset(0, -mover.sign)
        pawn = self.get_piece_at(pawn_square) if pawn_square.is_on_board() else None
        if (not origin.is_on_board() or not isinstance(pawn, Pawn) or pawn.color is not mover
                or self.get_piece_at(target) is not None or self.get_piece_at(origin) is not None):
            raise ConstructionError(f"en passant target {target} does not follow a double pawn push")
        before = [list(column) for column in self._grid]
        before[pawn_square.file][pawn_square.rank] = None
        before[origin.file][origin.rank] = pawn
        return HistoricalBoardState(
            player_index=mover.index,
            player_remaining_ms=self._players[mover.index].remaining_ms,
            castling_availability=self._castling,
            half_move_clock=self._half_move_clock,
            full_move_clock=self._full_move_clock,
            game_state=GameState.PAUSED,
            color_in_check=None,
            winner_index=None,
            piece_grid=tuple(tuple(column) for column in before),
            move_to_next_state=Move(pawn, origin, pawn_square, MoveType.DOUBLEPAWN),
            legal_moves_in_this_state=None,
        )

    def deep_copy(self) -> "Board":
        """Independent copy with its own grid, history and player records."""
        clone = copy.copy(self)
        clone._grid = [list(column) for column in self._grid]
        clone._players = [copy.copy(player) for player in self._players]
        clone._history = list(self._history)
        return clone

    # ── Queries ─────────────────────────────────────────────────

    def get_piece(self, file: int, rank: int) -> Optional[Piece]:
        return self._grid[file][rank]

    def get_piece_at(self, coordinate: Coordinate) -> Optional[Piece]:
        if not coordinate.is_on_board():
            raise ValueError(f"{coordinate.file, coordinate.rank} is not on the board")
        return self._grid[coordinate.file][coordinate.rank]

    @property
    def piece_grid(self) -> Grid:
        return [list(column) for column in self._grid]

    @property
    def players(self) -> Tuple[Player, Player]:
        return tuple(self._players)

    @property
    def current_player_index(self) -> int:
        return self._current_player_index

    @property
    def current_player(self) -> Player:
        return self._players[self._current_player_index]

    @property
    def next_player(self) -> Player:
        return self._players[1 - self._current_player_index]

    @property
    def winner(self) -> Optional[Player]:
        return None if self._winner_index is None else self._players[self._winner_index]

    @property
    def winner_index(self) -> Optional[int]:
        return self._winner_index

    @property
    def game_state(self) -> GameState:
        return self._game_state

    def is_game_over(self) -> bool:
        return self._game_state.is_finished

    @property
    def color_in_check(self) -> Optional[Color]:
        return self._color_in_check

    @property
    def castling_availability(self) -> CastlingAvailability:
        return self._castling

    def has_castling_availability(self, color: Color, king_side: bool) -> bool:
        return self._castling.has(color, king_side)

    @property
    def half_move_clock(self) -> int:
        return self._half_move_clock

    @property
    def full_move_clock(self) -> int:
        return self._full_move_clock

    @property
    def history(self) -> Tuple[HistoricalBoardState, ...]:
        return tuple(self._history)

    @property
    def ply_count(self) -> int:
        return len(self._history)

    @property
    def last_board_state(self) -> Optional[HistoricalBoardState]:
        return self._history[-1] if self._history else None

    @property
    def last_move(self) -> Optional[Move]:
        return self._history[-1].move_to_next_state if self._history else None

    @property
    def non_standard_start_state(self) -> Optional[FENRecord]:
        return self._non_standard_start

    @property
    def state_string(self) -> str:
        return encode_state(self._grid, self._castling, self._current_player_index)

    def position_seen_count(self) -> int:
        """How often the current position occurred, including now."""
        current = self.state_string
        return 1 + sum(1 for state in self._history if state.state_string == current)

    def piece_values(self) -> Tuple[int, int]:
        """Total material as (white, black)."""
        totals = [0, 0]
        for column in self._grid:
            for piece in column:
                if piece is not None:
                    totals[piece.color.index] += piece.value
        return totals[0], totals[1]

    def _can_mate(self, color: Color) -> bool:
        knights = 0
        bishops_light = bishops_dark = False
        for file, column in enumerate(self._grid):
            for rank, piece in enumerate(column):
                if piece is None or piece.color is not color:
                    continue
                if isinstance(piece, (Queen, Rook, Pawn)):
                    return True
                if isinstance(piece, Knight):
                    knights += 1
                elif isinstance(piece, Bishop):
                    if (file + rank) % 2 == 0:
                        bishops_dark = True
                    else:
                        bishops_light = True
        bishops = bishops_light or bishops_dark
        return knights >= 2 or (bishops and knights >= 1) or (bishops_light and bishops_dark)

    def sides_that_can_mate(self) -> List[Color]:
        return [color for color in Color if self._can_mate(color)]

    def is_mate_possible(self) -> bool:
        return any(self._can_mate(color) for color in Color)

    # ── Move generation ─────────────────────────────────────────

    def _pseudolegal_moves(self, color: Color) -> List[Move]:
        moves = []
        for file in range(BOARD_SIZE):
            column = self._grid[file]
            for rank in range(BOARD_SIZE):
                piece = column[rank]
                if piece is not None and piece.color is color:
                    moves.extend(piece.pseudolegal_moves(Coordinate(file, rank), self))
        return moves

    @staticmethod
    def _captures_king(moves: List[Move]) -> bool:
        return any(
            move.type in (MoveType.CAPTURE, MoveType.CAPTURE_PROMOTION)
            and isinstance(move.involved_piece, King)
            for move in moves
        )

    def _attacked_by_pawn(self, square: Coordinate, color: Color) -> bool:
        rank = square.rank - color.sign
        if not 0 <= rank < BOARD_SIZE:
            return False
        for file in (square.file - 1, square.file + 1):
            if 0 <= file < BOARD_SIZE:
                piece = self._grid[file][rank]
                if isinstance(piece, Pawn) and piece.color is color:
                    return True
        return False

    def is_player_in_check(self, color: Color) -> bool:
        return self._captures_king(self._pseudolegal_moves(color.opponent))

    def _compute_color_in_check(self) -> Optional[Color]:
        color = self.current_player.color
        return color if self.is_player_in_check(color) else None

    def _is_safe(self, move: Move) -> bool:
        """Try the move on the live grid and check the opponent cannot take the king."""
        enemy = move.piece.color.opponent
        self._move_piece(move)
        try:
            responses = self._pseudolegal_moves(enemy)
            if self._captures_king(responses):
                return False
            if move.type.is_castling:
                step = 1 if move.type is MoveType.CASTLING_QUEENSIDE else -1
                guarded = (move.from_square, move.to_square.offset(step, 0))
                if any(response.to_square in guarded and not isinstance(response.piece, Pawn)
                       for response in responses):
                    return False
                if any(self._attacked_by_pawn(square, enemy) for square in guarded):
                    return False
            return True
        finally:
            self._unmove_piece()

    def find_all_legal_moves(self) -> Tuple[Move, ...]:
        """Legal moves of the side to move; cached until the next mutation."""
        if self._game_state.is_finished:
            return ()
        if self._legal_moves is None:
            candidates = self._pseudolegal_moves(self.current_player.color)
            self._legal_moves = tuple(move for move in candidates if self._is_safe(move))
        return self._legal_moves

    def is_legal_move(self, move: Move) -> bool:
        return move in self.find_all_legal_moves()

    def get_all_legal_moves_for(self, square: Coordinate) -> List[Move]:
        """Legal moves of the piece on ``square``; empty for the opponent's pieces."""
        piece = self.get_piece_at(square)
        if piece is None:
            raise ValueError(f"there is no piece on {square}")
        if piece.color is not self.current_player.color:
            return []
        return [move for move in self.find_all_legal_moves() if move.from_square == square]

    def find_move(self, uci: str) -> Optional[Move]:
        """Resolve a UCI string like ``e7e8q`` against the legal moves."""
        for move in self.find_all_legal_moves():
            if move.uci() == uci:
                return move
        return None

    # ── Mutation ────────────────────────────────────────────────

    def _grid_snapshot(self):
        return tuple(tuple(column) for column in self._grid)

    def _move_piece(self, move: Move):
        frm, to = move.from_square, move.to_square
        occupant = self._grid[to.file][to.rank]
        if occupant is not None and move.involved_piece != occupant:
            raise IllegalStateError(f"{move} lands on an occupied square without capturing it")

        self._history.append(HistoricalBoardState(
            player_index=self._current_player_index,
            player_remaining_ms=self.current_player.remaining_ms,
            castling_availability=self._castling,
            half_move_clock=self._half_move_clock,
            full_move_clock=self._full_move_clock,
            game_state=self._game_state,
            color_in_check=self._color_in_check,
            winner_index=self._winner_index,
            piece_grid=self._grid_snapshot(),
            move_to_next_state=move,
            legal_moves_in_this_state=self._legal_moves,
        ))

        self._grid[frm.file][frm.rank] = None
        self._grid[to.file][to.rank] = move.promotion_piece if move.type.is_promotion else move.piece
        if move.type is MoveType.EN_PASSANT:
            self._grid[to.file][frm.rank] = None
        elif move.type is MoveType.CASTLING_KINGSIDE:
            self._grid[5][to.rank] = self._grid[7][to.rank]
            self._grid[7][to.rank] = None
        elif move.type is MoveType.CASTLING_QUEENSIDE:
            self._grid[3][to.rank] = self._grid[0][to.rank]
            self._grid[0][to.rank] = None
        self._update_castling_availability(move)

    def _update_castling_availability(self, move: Move):
        color = move.piece.color
        rights = self._castling
        if isinstance(move.piece, King):
            if rights.has(color, True) or rights.has(color, False):
                rights = rights.revoke(color)
        elif isinstance(move.piece, Rook) and move.from_square.rank == color.back_rank:
            rights = self._revoke_corner(rights, color, move.from_square.file)
        if move.type in (MoveType.CAPTURE, MoveType.CAPTURE_PROMOTION):
            enemy = color.opponent
            if move.to_square.rank == enemy.back_rank:
                rights = self._revoke_corner(rights, enemy, move.to_square.file)
        self._castling = rights

    @staticmethod
    def _revoke_corner(rights: CastlingAvailability, color: Color, file: int) -> CastlingAvailability:
        if file == 0 and rights.has(color, False):
            return rights.revoke(color, king_side=False)
        if file == BOARD_SIZE - 1 and rights.has(color, True):
            return rights.revoke(color, king_side=True)
        return rights

    def _unmove_piece(self) -> HistoricalBoardState:
        if not self._history:
            raise IllegalStateError("there is no move to take back")
        state = self._history.pop()
        self._grid = [list(column) for column in state.piece_grid]
        self._castling = state.castling_availability
        return state

    def make_move(self, move: Move):
        """Play a legal move for the side to move and update the game state."""
        if self._game_state.is_finished:
            raise IllegalStateError(f"the game is over ({self._game_state.name})")
        if move not in self.find_all_legal_moves():
            logger.debug("Rejected move %s in %s", move, self.export_fen())
            raise IllegalMoveError(f"{move} is not a legal move in this position")

        mover = self.current_player.color
        self._move_piece(move)
        if CONFIG.game.increment_ms:
            self._players[mover.index].remaining_ms += CONFIG.game.increment_ms
        if self._game_state is GameState.PAUSED:
            self._game_state = GameState.RUNNING
        self._legal_moves = None
        self._current_player_index = 1 - self._current_player_index
        self._color_in_check = self._compute_color_in_check()
        if mover is Color.BLACK:
            self._full_move_clock += 1
        if move.type.is_capture or isinstance(move.piece, Pawn):
            self._half_move_clock = 0
        else:
            self._half_move_clock += 1
        self._check_termination(mover)

    def _check_termination(self, mover: Color):
        if self._full_move_clock >= 5 and self.position_seen_count() >= 3:
            self._end(GameState.END_REPETITION)
        elif self._half_move_clock >= 50:
            self._end(GameState.END_50MOVE)
        elif not self.is_mate_possible():
            self._end(GameState.END_MATERIAL)
        elif not self.find_all_legal_moves():
            if self._color_in_check is not None:
                self._end(GameState.END_CHECKMATE, winner=mover)
            else:
                self._end(GameState.END_STALEMATE)

    def _end(self, state: GameState, winner: Optional[Color] = None):
        self._game_state = state
        self._winner_index = None if winner is None else winner.index
        self._legal_moves = None
        logger.debug("Game ended: %s, winner %s", state.name, winner.name if winner else "none")

    def can_undo(self) -> bool:
        return bool(self._history) and not self._history[-1].is_incomplete()

    def undo_last_move(self):
        """Pop the last snapshot and restore every field it holds."""
        if not self.can_undo():
            raise IllegalStateError("there is no move to undo")
        state = self._history[-1]
        self._half_move_clock = state.half_move_clock
        self._full_move_clock = state.full_move_clock
        self._current_player_index = state.player_index
        self._legal_moves = state.legal_moves_in_this_state
        self._game_state = state.game_state
        self._color_in_check = state.color_in_check
        self._winner_index = state.winner_index
        self._unmove_piece()

    # ── Game-ending actions and clocks ──────────────────────────

    def _ensure_running(self):
        if self._game_state.is_finished:
            raise IllegalStateError(f"the game is already over ({self._game_state.name})")

    def resign(self, color: Color):
        self._ensure_running()
        self._end(GameState.END_RESIGN, winner=color.opponent)

    def forfeit_by_timeout(self, color: Color):
        self._ensure_running()
        self._end(GameState.END_TIMEOUT, winner=color.opponent)

    def agree_to_draw(self):
        self._ensure_running()
        self._end(GameState.END_AGREEMENT)

    def decrement_clock(self, color: Color, milliseconds: int) -> int:
        """Take time off a clock; running out while the game runs loses on time."""
        if milliseconds < 0:
            raise ValueError("milliseconds must not be negative")
        player = self._players[color.index]
        player.remaining_ms = max(0, player.remaining_ms - milliseconds)
        if player.remaining_ms == 0 and self._game_state is GameState.RUNNING:
            self.forfeit_by_timeout(color)
        return player.remaining_ms

    def restore_time_for_undo(self):
        """Reset both clocks to what they showed before the last move."""
        current, following = self.current_player, self.next_player
        if not self._history:
            current.remaining_ms = self._initial_time_ms
            following.remaining_ms = self._initial_time_ms
        elif len(self._history) == 1:
            current.remaining_ms = self._initial_time_ms
            following.remaining_ms = self._history[0].player_remaining_ms
        else:
            following.remaining_ms = self._history[-1].player_remaining_ms
            current.remaining_ms = self._history[-2].player_remaining_ms

    # ── Export ──────────────────────────────────────────────────

    def export_fen(self) -> str:
        target = None
        last = self.last_move
        if last is not None and last.type is MoveType.DOUBLEPAWN:
            target = Coordinate(last.to_square.file, 2 if last.to_square.rank == 3 else 5)
        return serialize_fen(FENRecord(
            self._grid_snapshot(), self.current_player.color, self._castling, target,
            self._half_move_clock, self._full_move_clock,
        ))

    def last_move_algebraic_notation(self) -> Optional[str]:
        state = self.last_board_state
        if state is None or state.is_incomplete():
            return None
        if self._game_state is GameState.END_CHECKMATE:
            checking = Checking.CHECKMATE
        elif self._color_in_check is not None:
            checking = Checking.CHECK
        else:
            checking = Checking.NONE
        return algebraic_notation(state, checking)

    def __str__(self):
        rows = []
        for rank in range(BOARD_SIZE - 1, -1, -1):
            cells = (self._grid[file][rank] for file in range(BOARD_SIZE))
            rows.append(" ".join(piece.fen_symbol if piece else "." for piece in cells))
        return "\n".join(rows)
