"""Static evaluation terms and the weighted pipeline that combines them.

Every term scores the position from the point of view of the side to move.
"""

import math
import random
import sys
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from engine.config import CONFIG
from engine.core.board import Board
from engine.core.types import Color

# Simplified evaluation function tables, rank 8 first (index 0 = rank 8).
PST_PAWN = (
    (0, 0, 0, 0, 0, 0, 0, 0),
    (50, 50, 50, 50, 50, 50, 50, 50),
    (10, 10, 20, 30, 30, 20, 10, 10),
    (5, 5, 10, 25, 25, 10, 5, 5),
    (0, 0, 0, 20, 20, 0, 0, 0),
    (5, -5, -10, 0, 0, -10, -5, 5),
    (5, 10, 10, -20, -20, 10, 10, 5),
    (0, 0, 0, 0, 0, 0, 0, 0),
)
PST_KNIGHT = (
    (-50, -40, -30, -30, -30, -30, -40, -50),
    (-40, -20, 0, 0, 0, 0, -20, -40),
    (-30, 0, 10, 15, 15, 10, 0, -30),
    (-30, 5, 15, 20, 20, 15, 5, -30),
    (-30, 0, 15, 20, 20, 15, 0, -30),
    (-30, 5, 10, 15, 15, 10, 5, -30),
    (-40, -20, 0, 5, 5, 0, -20, -40),
    (-50, -40, -30, -30, -30, -30, -40, -50),
)
PST_BISHOP = (
    (-20, -10, -10, -10, -10, -10, -10, -20),
    (-10, 0, 0, 0, 0, 0, 0, -10),
    (-10, 0, 5, 10, 10, 5, 0, -10),
    (-10, 5, 5, 10, 10, 5, 5, -10),
    (-10, 0, 10, 10, 10, 10, 0, -10),
    (-10, 10, 10, 10, 10, 10, 10, -10),
    (-10, 5, 0, 0, 0, 0, 5, -10),
    (-20, -10, -10, -10, -10, -10, -10, -20),
)
PST_ROOK = (
    (0, 0, 0, 0, 0, 0, 0, 0),
    (5, 10, 10, 10, 10, 10, 10, 5),
    (-5, 0, 0, 0, 0, 0, 0, -5),
    (-5, 0, 0, 0, 0, 0, 0, -5),
    (-5, 0, 0, 0, 0, 0, 0, -5),
    (-5, 0, 0, 0, 0, 0, 0, -5),
    (-5, 0, 0, 0, 0, 0, 0, -5),
    (0, 0, 0, 5, 5, 0, 0, 0),
)
PST_QUEEN = (
    (-20, -10, -10, -5, -5, -10, -10, -20),
    (-10, 0, 0, 0, 0, 0, 0, -10),
    (-10, 0, 5, 5, 5, 5, 0, -10),
    (-5, 0, 5, 5, 5, 5, 0, -5),
    (0, 0, 5, 5, 5, 5, 0, -5),
    (-10, 5, 5, 5, 5, 5, 0, -10),
    (-10, 0, 5, 0, 0, 0, 0, -10),
    (-20, -10, -10, -5, -5, -10, -10, -20),
)
PST_KING_MG = (
    (-30, -40, -40, -50, -50, -40, -40, -30),
    (-30, -40, -40, -50, -50, -40, -40, -30),
    (-30, -40, -40, -50, -50, -40, -40, -30),
    (-30, -40, -40, -50, -50, -40, -40, -30),
    (-20, -30, -30, -40, -40, -30, -30, -20),
    (-10, -20, -20, -20, -20, -20, -20, -10),
    (20, 20, 0, 0, 0, 0, 20, 20),
    (20, 30, 10, 0, 0, 10, 30, 20),
)
PST_KING_EG = (
    (-50, -40, -30, -20, -20, -30, -40, -50),
    (-30, -20, -10, 0, 0, -10, -20, -30),
    (-30, -10, 20, 30, 30, 20, -10, -30),
    (-30, -10, 30, 40, 40, 30, -10, -30),
    (-30, -10, 30, 40, 40, 30, -10, -30),
    (-30, -10, 20, 30, 30, 20, -10, -30),
    (-30, -30, 0, 0, 0, 0, -30, -30),
    (-50, -30, -30, -30, -30, -30, -30, -50),
)

PST = {
    "PAWN": PST_PAWN,
    "KNIGHT": PST_KNIGHT,
    "BISHOP": PST_BISHOP,
    "ROOK": PST_ROOK,
    "QUEEN": PST_QUEEN,
}


class BoardEvaluator(Protocol):
    def evaluate(self, board: Board) -> float:
        ...


class EndConditionEvaluator:
    """Large score for a decided game, a small penalty for a finished draw."""

    def __init__(self):
        self.cfg = CONFIG.eval

    def evaluate(self, board: Board) -> float:
        if not board.game_state.is_finished:
            return 0.0
        winner = board.winner
        if winner is None:
            return self.cfg.draw_score
        if winner.color is board.current_player.color:
            return self.cfg.win_score
        return -self.cfg.win_score


class CheckEvaluator:
    def __init__(self):
        self.cfg = CONFIG.eval

    def evaluate(self, board: Board) -> float:
        in_check = board.color_in_check
        if in_check is None:
            return 0.0
        if in_check is board.current_player.color:
            return -self.cfg.check_bonus
        return self.cfg.check_bonus


class MaterialEvaluator:
    def evaluate(self, board: Board) -> float:
        white, black = board.piece_values()
        sign = 1 if board.current_player.color is Color.WHITE else -1
        return float((white - black) * sign)


class PieceSquareTableEvaluator:
    """Rewards pieces standing on squares that are usually good for their kind."""

    def __init__(self):
        self.cfg = CONFIG.eval

    def evaluate(self, board: Board) -> float:
        endgame = board.ply_count > self.cfg.endgame_ply_threshold
        king_table = PST_KING_EG if endgame else PST_KING_MG
        mover = board.current_player.color
        own = enemy = 0
        for file in range(8):
            for rank in range(8):
                piece = board.get_piece(file, rank)
                if piece is None:
                    continue
                table = king_table if piece.kind == "KING" else PST[piece.kind]
                row = 7 - rank if piece.color is Color.WHITE else rank
                if piece.color is mover:
                    own += table[row][file]
                else:
                    enemy += table[row][file]
        return (own - enemy) * self.cfg.pst_scale


class RandomEvaluator:
    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def evaluate(self, board: Board) -> float:
        return self.rng.uniform(-1.0, 1.0)


@dataclass(frozen=True)
class EvaluationStep:
    evaluator: BoardEvaluator
    weight: float = 1.0


def _is_decisive(value: float) -> bool:
    return math.isinf(value) or abs(value) >= sys.float_info.max


class EvaluationPipeline:
    """Weighted sum of evaluation terms.

    A term that returns an infinite (or maximum magnitude) value short-circuits
    the sum and becomes the whole result, unweighted.
    """

    def __init__(self, steps: Sequence[EvaluationStep]):
        self.steps = tuple(steps)

    def evaluate(self, board: Board) -> float:
        total = 0.0
        for step in self.steps:
            value = step.evaluator.evaluate(board)
            if _is_decisive(value):
                return value
            total += step.weight * value
        return total

    @classmethod
    def default(cls) -> "EvaluationPipeline":
        weights = CONFIG.eval.weights
        return cls([
            EvaluationStep(EndConditionEvaluator(), weights.get("end", 1.0)),
            EvaluationStep(CheckEvaluator(), weights.get("check", 1.0)),
            EvaluationStep(MaterialEvaluator(), weights.get("material", 1.0)),
        ])

    @classmethod
    def positional(cls) -> "EvaluationPipeline":
        pipeline = cls.default()
        weight = CONFIG.eval.weights.get("positional", 1.0)
        return cls(pipeline.steps + (EvaluationStep(PieceSquareTableEvaluator(), weight),))

    @classmethod
    def random(cls, rng: Optional[random.Random] = None) -> "EvaluationPipeline":
        return cls([EvaluationStep(EndConditionEvaluator()), EvaluationStep(RandomEvaluator(rng))])
