import logging
from concurrent.futures import Future
from datetime import datetime
from typing import Callable, Optional, Tuple

from engine.config import CONFIG
from engine.core.board import Board
from engine.core.errors import ChessError, IllegalMoveError
from engine.core.history import HistoricalGame
from engine.core.move import Move
from engine.core.search import create_engine
from engine.notation.pgn import GameReconstructor, export_pgn, resolve_san
from engine.worker import SearchWorker

logger = logging.getLogger(__name__)


class Engine:
    """One game in progress plus the computer opponent that plays it."""

    def __init__(self, depth: Optional[int] = None, strategy: Optional[str] = None, fen: Optional[str] = None):
        self.search = create_engine(strategy, depth)
        self.worker = SearchWorker()
        self.board = Board.from_fen(fen) if fen else Board()
        self.started_at = datetime.now()

    def reset(self, fen: Optional[str] = None):
        board = Board.from_fen(fen) if fen else Board()
        self.worker.cancel()
        self.board = board
        self.started_at = datetime.now()

    def make_move(self, move_uci: str) -> bool:
        move = self.board.find_move(move_uci)
        if move is None:
            logger.debug("Rejected move %s", move_uci)
            return False
        self.worker.cancel()
        self.board.make_move(move)
        return True

    def make_san_move(self, text: str) -> bool:
        try:
            move = resolve_san(self.board, text)
        except ChessError as e:
            logger.debug("Rejected move %s: %s", text, e)
            return False
        self.worker.cancel()
        self.board.make_move(move)
        return True

    def get_best_move(self) -> Tuple[Optional[str], Optional[float]]:
        move = self.search.search_best_move(self.board)
        return (move.uci() if move else None), self.search.last_score

    def request_move(self, callback: Callable[[Optional[Move]], None]) -> Future:
        """Search in the background; the callback gets the move unless a newer request supersedes it."""
        return self.worker.submit(self.search, self.board, callback)

    def play_best_move(self) -> Optional[Move]:
        self.worker.cancel()
        move = self.search.search_best_move(self.board)
        if move is None:
            return None
        if not self.board.is_legal_move(move):
            raise IllegalMoveError(f"search returned {move}, which is not legal here")
        self.board.make_move(move)
        return move

    def undo(self) -> bool:
        if not self.board.can_undo():
            return False
        self.worker.cancel()
        self.board.restore_time_for_undo()
        self.board.undo_last_move()
        return True

    def export_pgn(self, name: Optional[str] = None) -> str:
        game = HistoricalGame(name or f"{CONFIG.ui.engine_name} game", self.started_at, self.board)
        return export_pgn(game)

    def load_pgn(self, text: str):
        board = GameReconstructor().reconstruct(text)
        self.worker.cancel()
        self.board = board
        self.started_at = datetime.now()

    def print_board(self):
        print(self.board)

    def close(self):
        self.worker.shutdown(wait=False)
