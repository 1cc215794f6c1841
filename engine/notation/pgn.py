"""Portable Game Notation: tokenizer, parser, exporter and game replay."""

import io
import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from string import ascii_letters, digits
from typing import Dict, List, NamedTuple, Optional, Union

from engine.config import CONFIG
from engine.core.board import Board
from engine.core.errors import (
    ConstructionError,
    FormatError,
    IllegalMoveError,
    IllegalStateError,
    PGNParseError,
    ReconstructionError,
)
from engine.core.history import HistoricalGame
from engine.core.move import Move
from engine.core.player import Player
from engine.core.types import Color, GameState, MoveType
from engine.notation.fen import serialize_fen
from engine.notation.san import CastlingSanMove, Checking, SanMove, algebraic_notation, parse_san

logger = logging.getLogger(__name__)

PGNMove = Union[SanMove, CastlingSanMove]


class GameTermination(Enum):
    IN_PROGRESS = "*"
    DRAW = "1/2-1/2"
    WHITE_WINS = "1-0"
    BLACK_WINS = "0-1"

    def __str__(self):
        return self.value

    @staticmethod
    def of(board: Board) -> "GameTermination":
        winner = board.winner
        if winner is not None:
            return GameTermination.WHITE_WINS if winner.color is Color.WHITE else GameTermination.BLACK_WINS
        if board.game_state.is_finished:
            return GameTermination.DRAW
        return GameTermination.IN_PROGRESS


@dataclass
class PGNGame:
    tags: Dict[str, str] = field(default_factory=dict)
    moves: List[PGNMove] = field(default_factory=list)
    termination: GameTermination = GameTermination.IN_PROGRESS


# ════════════════════════════════════════════════════════════════════════════
#  TOKENIZER
# ════════════════════════════════════════════════════════════════════════════


class TokenType(Enum):
    ASTERISK = auto()
    BLACK_WINS = auto()
    DOT = auto()
    DRAW = auto()
    INTEGER = auto()
    NAG = auto()
    STRING = auto()
    SYMBOL = auto()
    TAG_CLOSE = auto()
    TAG_OPEN = auto()
    WHITE_WINS = auto()
    EOF = auto()


class PGNToken(NamedTuple):
    type: TokenType
    spelling: str


_SINGLE_CHAR_TOKENS = {
    ".": TokenType.DOT,
    "*": TokenType.ASTERISK,
    "[": TokenType.TAG_OPEN,
    "]": TokenType.TAG_CLOSE,
}
_RESULT_TOKENS = {
    "1-0": TokenType.WHITE_WINS,
    "0-1": TokenType.BLACK_WINS,
    "1/2-1/2": TokenType.DRAW,
}
_SYMBOL_START = frozenset(ascii_letters + digits)
_SYMBOL_CHARS = frozenset(ascii_letters + digits + "_+#=:-/")


class PGNTokenizer:
    """Splits PGN text into tokens, dropping comments and variations."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def _peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def tokens(self) -> List[PGNToken]:
        result = []
        while True:
            token = self.next_token()
            result.append(token)
            if token.type is TokenType.EOF:
                return result

    def next_token(self) -> PGNToken:
        self._skip_ignored()
        char = self._peek()
        if not char:
            return PGNToken(TokenType.EOF, "")
        if char == '"':
            return self._scan_string()
        if char in _SINGLE_CHAR_TOKENS:
            self.pos += 1
            return PGNToken(_SINGLE_CHAR_TOKENS[char], char)
        if char == "$":
            return self._scan_nag()
        if char in _SYMBOL_START:
            return self._scan_symbol()
        raise PGNParseError(f"illegal character {char!r} at offset {self.pos}")

    def _skip_ignored(self):
        while True:
            char = self._peek()
            if not char:
                return
            if char.isspace():
                self.pos += 1
            elif char == ";":
                end = self.text.find("\n", self.pos)
                self.pos = len(self.text) if end < 0 else end + 1
            elif char == "{":
                end = self.text.find("}", self.pos)
                if end < 0:
                    raise PGNParseError("comment opened with '{' is never closed")
                self.pos = end + 1
            elif char == "(":
                self._skip_variation()
            else:
                return

    def _skip_variation(self):
        depth = 0
        while self.pos < len(self.text):
            char = self.text[self.pos]
            self.pos += 1
            if char == "(":
                depth += 1
            elif char == ")":
                depth -= 1
                if depth == 0:
                    return
        raise PGNParseError("variation opened with '(' is never closed")

    def _scan_string(self) -> PGNToken:
        self.pos += 1
        value = []
        escape = False
        while True:
            char = self._peek()
            if not char:
                raise PGNParseError("string is missing its closing '\"'")
            self.pos += 1
            if char == '"' and not escape:
                return PGNToken(TokenType.STRING, "".join(value))
            if char == "\\" and not escape:
                escape = True
                continue
            if escape and char not in '"\\':
                raise PGNParseError(f"illegal escape sequence '\\{char}' in string")
            if char in "\n\t\r":
                raise PGNParseError(f"illegal character {char!r} in string")
            value.append(char)
            escape = False

    def _scan_nag(self) -> PGNToken:
        start = self.pos
        self.pos += 1
        if not self._peek().isdigit():
            raise PGNParseError("'$' must be followed by at least one digit")
        while self._peek().isdigit():
            self.pos += 1
        return PGNToken(TokenType.NAG, self.text[start:self.pos])

    def _scan_symbol(self) -> PGNToken:
        start = self.pos
        is_integer = True
        while self._peek() and self._peek() in _SYMBOL_CHARS:
            if not self._peek().isdigit():
                is_integer = False
            self.pos += 1
        spelling = self.text[start:self.pos]
        if is_integer:
            return PGNToken(TokenType.INTEGER, spelling)
        return PGNToken(_RESULT_TOKENS.get(spelling, TokenType.SYMBOL), spelling)


# ════════════════════════════════════════════════════════════════════════════
#  PARSER
# ════════════════════════════════════════════════════════════════════════════

_TERMINATIONS = {
    TokenType.WHITE_WINS: GameTermination.WHITE_WINS,
    TokenType.BLACK_WINS: GameTermination.BLACK_WINS,
    TokenType.DRAW: GameTermination.DRAW,
    TokenType.ASTERISK: GameTermination.IN_PROGRESS,
}


class PGNParser:
    def __init__(self, text: str):
        self._tokenizer = PGNTokenizer(text)
        self._current = self._tokenizer.next_token()

    def parse(self) -> PGNGame:
        game = PGNGame()
        while self._current.type is TokenType.TAG_OPEN:
            name, value = self._parse_tag()
            if name in game.tags:
                raise PGNParseError(f"tag '{name}' is given more than once")
            game.tags[name] = value

        while self._current.type not in _TERMINATIONS:
            game.moves.append(self._parse_move())

        game.termination = _TERMINATIONS[self._consume().type]
        self._expect(TokenType.EOF, "unexpected tokens after the game result")
        return game

    def _parse_tag(self):
        self._expect(TokenType.TAG_OPEN, "a tag starts with '['")
        name = self._expect(TokenType.SYMBOL, "'[' must be followed by the tag name").spelling
        value = self._expect(TokenType.STRING, "the tag name must be followed by a quoted value").spelling
        self._expect(TokenType.TAG_CLOSE, "a tag is closed with ']'")
        return name, value

    def _parse_move(self) -> PGNMove:
        if self._current.type is TokenType.INTEGER:
            self._consume()
            self._discard(TokenType.DOT)
        spelling = self._expect(
            TokenType.SYMBOL, "expected a move or one of '1-0', '0-1', '1/2-1/2', '*'"
        ).spelling
        self._discard(TokenType.NAG, TokenType.STRING)
        return parse_san(spelling)

    def _discard(self, *types: TokenType):
        while self._current.type in types:
            self._consume()

    def _expect(self, token_type: TokenType, message: str) -> PGNToken:
        if self._current.type is not token_type:
            raise PGNParseError(f"{message} (found {self._current.type.name} '{self._current.spelling}')")
        return self._consume()

    def _consume(self) -> PGNToken:
        previous = self._current
        self._current = self._tokenizer.next_token()
        return previous


def parse_pgn(text: str) -> PGNGame:
    return PGNParser(text).parse()


# ════════════════════════════════════════════════════════════════════════════
#  EXPORT
# ════════════════════════════════════════════════════════════════════════════


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _checking_after(board: Board, index: int) -> Checking:
    states = board.history
    if index + 1 < len(states):
        return Checking.CHECK if states[index + 1].color_in_check is not None else Checking.NONE
    if board.game_state is GameState.END_CHECKMATE:
        return Checking.CHECKMATE
    return Checking.CHECK if board.color_in_check is not None else Checking.NONE


def move_text(board: Board) -> str:
    """Numbered SAN move list, e.g. ``1.e4 e5 2.Nf3``."""
    states = board.history
    index = 1 if states and states[0].is_incomplete() else 0
    parts = []
    if index < len(states) and states[index].player_index == Color.BLACK.index:
        state = states[index]
        parts.append(f"{state.full_move_clock}...{algebraic_notation(state, _checking_after(board, index))}")
        index += 1
    while index < len(states):
        state = states[index]
        text = f"{state.full_move_clock}.{algebraic_notation(state, _checking_after(board, index))}"
        if index + 1 < len(states):
            text += " " + algebraic_notation(states[index + 1], _checking_after(board, index + 1))
        parts.append(text)
        index += 2
    return " ".join(parts)


def export_pgn(game: HistoricalGame) -> str:
    board = game.board
    white, black = board.players
    result = GameTermination.of(board)
    out = io.StringIO()
    tags = [
        ("Event", game.name),
        ("Site", CONFIG.ui.engine_name),
        ("Date", game.time.strftime("%Y.%m.%d")),
        ("Round", "1"),
        ("White", white.name),
        ("Black", black.name),
        ("Result", str(result)),
    ]
    start = board.non_standard_start_state
    if start is not None:
        tags += [("SetUp", "1"), ("FEN", serialize_fen(start))]
    for name, value in tags:
        out.write(f'[{name} "{_escape(value)}"]\n')
    out.write("\n")
    moves = move_text(board)
    out.write(f"{moves} {result}\n" if moves else f"{result}\n")
    return out.getvalue()


# ════════════════════════════════════════════════════════════════════════════
#  REPLAY
# ════════════════════════════════════════════════════════════════════════════


def _matches(recorded: SanMove, move: Move) -> bool:
    if move.piece.symbol != recorded.piece or move.to_square != recorded.to_square:
        return False
    if recorded.from_file is not None and move.from_square.file != recorded.from_file:
        return False
    if recorded.from_rank is not None and move.from_square.rank != recorded.from_rank:
        return False
    if recorded.capture != move.type.is_capture:
        return False
    if recorded.promotion is None:
        return move.promotion_piece is None
    return move.promotion_piece is not None and move.promotion_piece.symbol == recorded.promotion


def resolve_san(board: Board, recorded: Union[str, PGNMove]) -> Move:
    """Find the single legal move a SAN token describes. Raises ReconstructionError otherwise."""
    if isinstance(recorded, str):
        recorded = parse_san(recorded)
    legal = board.find_all_legal_moves()
    if isinstance(recorded, CastlingSanMove):
        wanted = MoveType.CASTLING_KINGSIDE if recorded.king_side else MoveType.CASTLING_QUEENSIDE
        candidates = [move for move in legal if move.type is wanted]
    else:
        candidates = [move for move in legal if _matches(recorded, move)]

    if not candidates:
        raise ReconstructionError(f"no piece can play {recorded} in this position")
    if len(candidates) > 1:
        listed = ", ".join(move.uci() for move in candidates)
        raise ReconstructionError(f"{recorded} is ambiguous here, candidates: {listed}")
    return candidates[0]


class GameReconstructor:
    """Replays a recorded game on a fresh board and checks it is consistent."""

    def __init__(self, white_remaining_ms: Optional[int] = None, black_remaining_ms: Optional[int] = None):
        default = CONFIG.game.initial_time_ms
        self.white_remaining_ms = default if white_remaining_ms is None else white_remaining_ms
        self.black_remaining_ms = default if black_remaining_ms is None else black_remaining_ms

    def reconstruct(self, game: Union[str, PGNGame]) -> Board:
        if isinstance(game, str):
            game = parse_pgn(game)
        board = self._initial_board(game.tags)
        for recorded in game.moves:
            self._replay(board, recorded)
        self._verify_game_state(board, self._termination(game))
        return board

    @staticmethod
    def _expect_tag(tags: Dict[str, str], name: str) -> str:
        value = tags.get(name)
        if value is None:
            raise ReconstructionError(f"tag '{name}' is required")
        return value

    def _initial_board(self, tags: Dict[str, str]) -> Board:
        players = [
            Player(self._expect_tag(tags, "White"), Color.WHITE, self.white_remaining_ms),
            Player(self._expect_tag(tags, "Black"), Color.BLACK, self.black_remaining_ms),
        ]
        if tags.get("SetUp") == "1" and "FEN" in tags:
            try:
                return Board.from_fen(tags["FEN"], players)
            except (FormatError, ConstructionError) as e:
                raise ReconstructionError(f"the FEN tag is invalid: {e}") from e
        return Board(players)

    def _replay(self, board: Board, recorded: PGNMove):
        move = resolve_san(board, recorded)
        try:
            board.make_move(move)
        except (IllegalMoveError, IllegalStateError) as e:
            raise ReconstructionError(f"{recorded} cannot be played: {e}") from e

        if (board.color_in_check is not None) != (recorded.checking is not Checking.NONE):
            raise ReconstructionError(f"check marker of {recorded} does not match the position")
        if (recorded.checking is Checking.CHECKMATE) != (board.game_state is GameState.END_CHECKMATE):
            raise ReconstructionError(f"checkmate marker of {recorded} does not match the position")

    def _termination(self, game: PGNGame) -> GameTermination:
        result = self._expect_tag(game.tags, "Result")
        if result != str(game.termination):
            raise ReconstructionError(
                f"Result tag '{result}' contradicts the game result '{game.termination}'"
            )
        return game.termination

    @staticmethod
    def _verify_game_state(board: Board, termination: GameTermination):
        state = board.game_state
        running = not state.is_finished
        if termination is GameTermination.IN_PROGRESS:
            if not running:
                raise ReconstructionError(f"game is recorded as in progress but ended with {state.name}")
        elif termination is GameTermination.DRAW:
            if running:
                board.agree_to_draw()
            elif state not in (GameState.END_STALEMATE, GameState.END_MATERIAL,
                               GameState.END_REPETITION, GameState.END_50MOVE):
                raise ReconstructionError(f"game is recorded as a draw but ended with {state.name}")
        else:
            winner_color = Color.WHITE if termination is GameTermination.WHITE_WINS else Color.BLACK
            winner = board.winner
            if winner is None:
                if not running:
                    raise ReconstructionError(
                        f"game is recorded as won by resignation but had already ended with {state.name}"
                    )
                board.resign(winner_color.opponent)
            elif winner.color is not winner_color:
                raise ReconstructionError("recorded winner does not match the actual winner")
        logger.debug("Reconstructed game: %s after %d plies", board.game_state.name, board.ply_count)
