# engine/config.py
from dataclasses import dataclass, field
from typing import Dict
import os
import tomllib  # python >=3.11

# Material values in pawns
PIECE_VALUES = {
    "PAWN": 1,
    "KNIGHT": 3,
    "BISHOP": 3,
    "ROOK": 5,
    "QUEEN": 9,
    "KING": 0,
}


@dataclass
class SearchConfig:
    depth: int = 3
    strategy: str = "deepening"  # key of engine.core.search.ENGINES
    use_quiescence: bool = True
    q_max_depth: int = 64


@dataclass
class EvalConfig:
    win_score: float = 10000.0
    draw_score: float = -1.0  # finished draw, from either side
    check_bonus: float = 0.5
    pst_scale: float = 0.01
    endgame_ply_threshold: int = 50
    weights: Dict[str, float] = field(default_factory=lambda: {
        "end": 1.0, "check": 1.0, "material": 1.0, "positional": 1.0
    })


@dataclass
class GameConfig:
    initial_time_ms: int = 600_000
    increment_ms: int = 0
    white_name: str = "White"
    black_name: str = "Black"


@dataclass
class UIConfig:
    engine_name: str = "Rookery"


@dataclass
class Config:
    search: SearchConfig = field(default_factory=SearchConfig)
    eval: EvalConfig = field(default_factory=EvalConfig)
    game: GameConfig = field(default_factory=GameConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    log_level: str = "INFO"

    @staticmethod
    def load_from_toml(path: str = "config.toml") -> "Config":
        cfg = Config()
        if not os.path.exists(path):
            return cfg
        with open(path, "rb") as f:
            raw = tomllib.load(f)
        for section in ("search", "eval", "game", "ui"):
            target = getattr(cfg, section)
            for k, v in raw.get(section, {}).items():
                if hasattr(target, k):
                    setattr(target, k, v)
        if "log_level" in raw:
            cfg.log_level = str(raw["log_level"])
        return cfg


# single globally importable config instance
CONFIG = Config.load_from_toml(os.environ.get("ENGINE_CONFIG_TOML", "config.toml"))
# allow env override of depth for quick debugging
override_depth = os.environ.get("ENGINE_SEARCH_DEPTH")
if override_depth and override_depth.isdigit():
    CONFIG.search.depth = int(override_depth)
