import json
import logging
import os


SCORE_STATE_FILE = os.path.join(os.path.dirname(os.path.abspath(__file__)), "score_state.json")

logger = logging.getLogger(__name__)


def load_best_score(path: str = SCORE_STATE_FILE) -> int:
    if not os.path.exists(path):
        return 0
    try:
        with open(path, "r", encoding="utf-8") as handler:
            data = json.load(handler)
        return max(0, int(data.get("best_score", 0)))
    except (OSError, json.JSONDecodeError, ValueError, TypeError, AttributeError) as exc:
        logger.warning("Ignoring unreadable score file %s: %s", path, exc)
        return 0


def save_best_score(best_score: int, path: str = SCORE_STATE_FILE) -> None:
    try:
        with open(path, "w", encoding="utf-8") as handler:
            json.dump({"best_score": best_score}, handler)
    except OSError as exc:
        logger.warning("Could not save best score to %s: %s", path, exc)
