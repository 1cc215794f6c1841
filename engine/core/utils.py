import logging
from typing import Optional

from engine.config import CONFIG

logger = logging.getLogger("engine.search")


def configure_logging(level: Optional[str] = None):
    logging.basicConfig(
        level=(level or CONFIG.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def log_search_info(name, depth, score, nodes, elapsed, move):
    nps = int(nodes / elapsed) if elapsed > 0 else 0
    if score is None:
        score_str = "-"
    elif abs(score) >= CONFIG.eval.win_score:
        score_str = "win" if score > 0 else "loss"
    else:
        score_str = f"{score:.2f}"
    logger.info(
        "info %s depth %d score %s nodes %d nps %d time %dms move %s",
        name, depth, score_str, nodes, nps, int(elapsed * 1000), move.uci() if move else "-",
    )
