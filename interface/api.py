"""FastAPI REST interface for the engine."""

import threading

from fastapi import FastAPI, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel
from typing import Optional

from engine.config import CONFIG
from engine.core.errors import ChessError
from engine.core.search import create_engine
from engine.core.types import Color
from engine.core.utils import configure_logging
from engine.main import Engine

configure_logging()

app = FastAPI(title=CONFIG.ui.engine_name, version="1.0.0")

# Shared game; every request holds the lock while it touches the board.
engine = Engine()
_board_lock = threading.Lock()


class FenRequest(BaseModel):
    fen: str


class MoveRequest(BaseModel):
    move: str  # UCI format e.g. "e2e4", or SAN e.g. "Nf3"


class SearchRequest(BaseModel):
    depth: Optional[int] = None
    strategy: Optional[str] = None


class ResignRequest(BaseModel):
    color: str  # "white" or "black"


class PgnRequest(BaseModel):
    pgn: str


def _board_state():
    board = engine.board
    winner = board.winner
    return {
        "fen": board.export_fen(),
        "turn": board.current_player.color.name.lower(),
        "legal_moves": [m.uci() for m in board.find_all_legal_moves()],
        "state": board.game_state.name,
        "winner": winner.color.name.lower() if winner else None,
        "in_check": board.color_in_check.name.lower() if board.color_in_check else None,
        "is_game_over": board.is_game_over(),
    }


@app.get("/board")
def get_board():
    with _board_lock:
        return _board_state()


@app.post("/position")
def set_position(req: FenRequest):
    with _board_lock:
        try:
            engine.reset(req.fen)
        except ChessError as e:
            raise HTTPException(status_code=400, detail=f"Invalid FEN: {e}")
        return _board_state()


@app.post("/move")
def make_move(req: MoveRequest):
    with _board_lock:
        if engine.board.is_game_over():
            raise HTTPException(status_code=400, detail="Game is already over")
        if not (engine.make_move(req.move) or engine.make_san_move(req.move)):
            raise HTTPException(status_code=400, detail=f"Illegal move: {req.move}")
        return {**_board_state(), "move": req.move, "san": engine.board.last_move_algebraic_notation()}


@app.post("/search")
def search_move(req: SearchRequest = SearchRequest()):
    with _board_lock:
        if engine.board.is_game_over():
            raise HTTPException(status_code=400, detail="Game is already over")
        try:
            searcher = create_engine(req.strategy, req.depth)
        except (ChessError, ValueError) as e:
            raise HTTPException(status_code=400, detail=str(e))
        search_board = engine.board.deep_copy()

    best = searcher.search_best_move(search_board)
    return {
        "best_move": best.uci() if best else None,
        "score": searcher.last_score,
        "strategy": searcher.name,
        "depth": searcher.max_depth,
        "fen": search_board.export_fen(),
    }


@app.post("/undo")
def undo_move():
    with _board_lock:
        if not engine.undo():
            raise HTTPException(status_code=400, detail="There is no move to undo")
        return _board_state()


@app.post("/resign")
def resign(req: ResignRequest):
    with _board_lock:
        try:
            color = Color[req.color.upper()]
        except KeyError:
            raise HTTPException(status_code=400, detail=f"Unknown color: {req.color}")
        try:
            engine.board.resign(color)
        except ChessError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return _board_state()


@app.post("/draw")
def agree_to_draw():
    with _board_lock:
        try:
            engine.board.agree_to_draw()
        except ChessError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return _board_state()


@app.post("/reset")
def reset_board():
    with _board_lock:
        engine.reset()
        return _board_state()


@app.get("/pgn", response_class=PlainTextResponse)
def get_pgn():
    with _board_lock:
        return engine.export_pgn()


@app.post("/pgn")
def load_pgn(req: PgnRequest):
    with _board_lock:
        try:
            engine.load_pgn(req.pgn)
        except ChessError as e:
            raise HTTPException(status_code=400, detail=f"Invalid PGN: {e}")
        return _board_state()
