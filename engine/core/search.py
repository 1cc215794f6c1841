"""Negamax search tiers: exhaustive, alpha-beta, and alpha-beta with move ordering and quiescence."""

import logging
import random
import threading
import time
from typing import Iterable, List, Optional, Sequence, Tuple

from engine.config import CONFIG
from engine.core.board import Board
from engine.core.errors import ConstructionError
from engine.core.evaluator import EvaluationPipeline
from engine.core.move import Move
from engine.core.player import Player
from engine.core.types import Color, MoveType
from engine.core.utils import log_search_info

logger = logging.getLogger(__name__)

INF = float("inf")

NOISY_MOVES = frozenset({
    MoveType.CAPTURE,
    MoveType.CAPTURE_PROMOTION,
    MoveType.EN_PASSANT,
    MoveType.PROMOTION,
})


class MoveOrdering:
    """Capture/promotion heuristic: most valuable gain first."""

    @staticmethod
    def score(move: Move) -> int:
        value = 0
        if move.type.is_capture:
            value += move.involved_piece.value
        if move.type.is_promotion:
            value += move.promotion_piece.value
        if move.type is MoveType.PROMOTION:
            value -= move.piece.value
        return value

    @classmethod
    def order(cls, moves: Iterable[Move]) -> List[Move]:
        # sorted() is stable, so equal scores keep generation order
        return sorted(moves, key=cls.score, reverse=True)


class SearchEngine:
    """Common driver: validates depth, copies the board, times and logs the search."""

    name = "search"

    def __init__(self, evaluator: Optional[EvaluationPipeline] = None, depth: Optional[int] = None):
        depth = CONFIG.search.depth if depth is None else depth
        if depth <= 0:
            raise ConstructionError(f"search depth must be positive, got {depth}")
        self.evaluator = evaluator or EvaluationPipeline.default()
        self.max_depth = depth
        self._stop_event = threading.Event()
        self.nodes = 0
        self.last_score: Optional[float] = None

    def search_best_move(self, board: Board, stop_event: Optional[threading.Event] = None) -> Optional[Move]:
        """Pick a move for the side to move. None when there is none or the search was stopped."""
        self._stop_event = stop_event if stop_event is not None else threading.Event()
        self.nodes = 0
        self.last_score = None
        search_board = board.deep_copy()

        start_time = time.time()
        move, score = self._select_move(search_board)
        if self._stop_event.is_set():
            logger.debug("%s search stopped after %d nodes", self.name, self.nodes)
            return None
        self.last_score = score
        log_search_info(self.name, self.max_depth, score, self.nodes, time.time() - start_time, move)
        return move

    def stop(self):
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def evaluate(self, board: Board) -> float:
        return self.evaluator.evaluate(board)

    def _select_move(self, board: Board) -> Tuple[Optional[Move], Optional[float]]:
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}(depth={self.max_depth})"


class RandomSearch(SearchEngine):
    """Plays a uniformly random legal move."""

    name = "random"

    def __init__(self, rng: Optional[random.Random] = None, depth: int = 1):
        super().__init__(EvaluationPipeline.random(rng), depth)
        self.rng = rng or random.Random()

    def _select_move(self, board):
        moves = board.find_all_legal_moves()
        if not moves:
            return None, None
        return self.rng.choice(moves), None


class ExhaustiveSearch(SearchEngine):
    """Plain negamax to a fixed depth."""

    name = "exhaustive"

    def _select_move(self, board):
        moves = board.find_all_legal_moves()
        if not moves:
            return None, self.evaluate(board)
        best_move, best_score = None, -INF
        for move in moves:
            if self._stop_event.is_set():
                break
            board.make_move(move)
            score = -self._negamax(board, self.max_depth - 1)
            board.undo_last_move()
            if score > best_score:
                best_move, best_score = move, score
        return best_move or moves[0], best_score

    def _negamax(self, board: Board, depth: int) -> float:
        self.nodes += 1
        if self._stop_event.is_set():
            return 0.0
        moves = board.find_all_legal_moves()
        if depth == 0 or not moves:
            return self.evaluate(board)
        best = -INF
        for move in moves:
            board.make_move(move)
            best = max(best, -self._negamax(board, depth - 1))
            board.undo_last_move()
        return best


class AlphaBetaSearch(SearchEngine):
    """Negamax with a fail-hard alpha-beta window; moves in generation order."""

    name = "alphabeta"

    def _select_move(self, board):
        moves = board.find_all_legal_moves()
        if not moves:
            return None, self.evaluate(board)
        alpha, beta = -INF, INF
        best_move = None
        for move in self._order_moves(moves):
            if self._stop_event.is_set():
                break
            board.make_move(move)
            score = -self._alphabeta(board, self.max_depth - 1, -beta, -alpha)
            board.undo_last_move()
            if score > alpha:
                alpha = score
                best_move = move
        return best_move or moves[0], alpha

    def _alphabeta(self, board: Board, depth: int, alpha: float, beta: float) -> float:
        self.nodes += 1
        if self._stop_event.is_set():
            return 0.0
        moves = board.find_all_legal_moves()
        if depth == 0 or not moves:
            return self._leaf(board, alpha, beta)
        for move in self._order_moves(moves):
            board.make_move(move)
            score = -self._alphabeta(board, depth - 1, -beta, -alpha)
            board.undo_last_move()
            if score >= beta:
                return beta
            if score > alpha:
                alpha = score
        return alpha

    def _order_moves(self, moves: Sequence[Move]) -> Sequence[Move]:
        return moves

    def _leaf(self, board: Board, alpha: float, beta: float) -> float:
        return self.evaluate(board)


class DeepeningSearch(AlphaBetaSearch):
    """Alpha-beta with capture-first move ordering and a quiescence search at the horizon."""

    name = "deepening"

    def __init__(self, evaluator: Optional[EvaluationPipeline] = None, depth: Optional[int] = None,
                 use_quiescence: Optional[bool] = None):
        super().__init__(evaluator or EvaluationPipeline.positional(), depth)
        cfg = CONFIG.search
        self.use_quiescence = cfg.use_quiescence if use_quiescence is None else use_quiescence
        self.q_max_depth = cfg.q_max_depth

    def _order_moves(self, moves):
        return MoveOrdering.order(moves)

    def _leaf(self, board, alpha, beta):
        if not self.use_quiescence:
            return self.evaluate(board)
        return self._quiescence(board, alpha, beta, 0)

    def _quiescence(self, board: Board, alpha: float, beta: float, ply: int) -> float:
        self.nodes += 1
        if self._stop_event.is_set():
            return 0.0

        stand_pat = self.evaluate(board)
        if stand_pat >= beta:
            return beta
        alpha = max(alpha, stand_pat)

        moves = board.find_all_legal_moves()
        if board.color_in_check is None:
            moves = [move for move in moves if move.type in NOISY_MOVES]
        if not moves or ply >= self.q_max_depth:
            return stand_pat

        for move in self._order_moves(moves):
            board.make_move(move)
            score = -self._quiescence(board, -beta, -alpha, ply + 1)
            board.undo_last_move()
            if score >= beta:
                return beta
            if score > alpha:
                alpha = score
        return alpha


ENGINES = {
    RandomSearch.name: RandomSearch,
    ExhaustiveSearch.name: ExhaustiveSearch,
    AlphaBetaSearch.name: AlphaBetaSearch,
    DeepeningSearch.name: DeepeningSearch,
}


def create_engine(strategy: Optional[str] = None, depth: Optional[int] = None) -> SearchEngine:
    """Build a search tier by name, defaulting to the configured one."""
    strategy = strategy or CONFIG.search.strategy
    if strategy not in ENGINES:
        raise ValueError(f"unknown search strategy '{strategy}', expected one of {sorted(ENGINES)}")
    if strategy == RandomSearch.name:
        return RandomSearch()
    return ENGINES[strategy](depth=depth)


class AIPlayer(Player):
    """A player whose moves come from a search engine."""

    def __init__(self, name: str, color: Color, remaining_ms: int, engine: SearchEngine):
        super().__init__(name, color, remaining_ms)
        self.engine = engine

    @property
    def is_human(self) -> bool:
        return False

    def get_next_move(self, board: Board) -> Optional[Move]:
        return self.engine.search_best_move(board)

    @property
    def config_string(self) -> str:
        return f"{self.engine.name}, depth {self.engine.max_depth}"
