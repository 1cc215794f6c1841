"""Single-slot background search worker."""

import copy
import logging
import threading
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from typing import Callable, Optional

from engine.core.board import Board
from engine.core.move import Move
from engine.core.search import SearchEngine

logger = logging.getLogger(__name__)

SearchCallback = Callable[[Optional[Move]], None]


class SearchWorker:
    """Runs one search at a time on a background thread.

    Submitting a new search cancels the one in flight. A cancelled or
    superseded search never reaches its callback, and its future raises
    ``CancelledError``.
    """

    def __init__(self):
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="search")
        self._lock = threading.RLock()
        self._future: Optional[Future] = None
        self._stop_event: Optional[threading.Event] = None

    def submit(self, engine: SearchEngine, board: Board,
               callback: Optional[SearchCallback] = None) -> Future:
        # each task gets its own board snapshot and engine instance
        snapshot = board.deep_copy()
        engine = copy.copy(engine)
        with self._lock:
            self._cancel_locked()
            stop_event = threading.Event()
            self._stop_event = stop_event
            self._future = self._executor.submit(self._run, engine, snapshot, stop_event, callback)
            return self._future

    def _run(self, engine: SearchEngine, board: Board, stop_event: threading.Event,
             callback: Optional[SearchCallback]) -> Optional[Move]:
        move = engine.search_best_move(board, stop_event=stop_event)
        with self._lock:
            if stop_event.is_set():
                logger.debug("Discarding result of cancelled %s search", engine.name)
                raise CancelledError()
            if callback:
                callback(move)
        return move

    def cancel(self):
        with self._lock:
            self._cancel_locked()

    def _cancel_locked(self):
        if self._stop_event is not None:
            self._stop_event.set()
        if self._future is not None and not self._future.done():
            self._future.cancel()
            logger.debug("Cancelled in-flight search")
        self._future = None
        self._stop_event = None

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._future is not None and not self._future.done()

    def shutdown(self, wait: bool = True):
        self.cancel()
        self._executor.shutdown(wait=wait, cancel_futures=True)
