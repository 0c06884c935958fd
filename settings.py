"""
Runtime defaults read from the environment (and an optional .env file).

The analytics core never reads these itself; callers pass the values in
explicitly (PlanningContext, thresholds) so every computation stays a pure
function of its arguments.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

PROJECT_DIR = Path(__file__).resolve().parent

RISK_LEVELS = ("low", "medium", "high")

DEFAULTS = {
    "TA_BASE_RATE": 15.0,
    "TA_RISK_LEVEL": "low",
    "TA_ANOMALY_Z": 2.0,
    "TA_ANOMALY_EXTREME_Z": 3.0,
    "TA_ACTION_LIMIT": 50,
    "TA_LOG_LEVEL": "INFO",
}


def load_env(project_dir: str | Path = PROJECT_DIR) -> bool:
    for d in [Path(project_dir), Path.cwd()]:
        env_file = d / ".env"
        if env_file.exists():
            load_dotenv(env_file)
            return True
    return False


def _get_float(name: str) -> float:
    raw = os.getenv(name)
    default = DEFAULTS[name]
    if raw is None or not raw.strip():
        return float(default)
    try:
        return float(raw.replace(",", "."))
    except ValueError:
        logger.warning("Invalid %s=%r, using %s", name, raw, default)
        return float(default)


def _get_int(name: str) -> int:
    raw = os.getenv(name)
    default = DEFAULTS[name]
    if raw is None or not raw.strip():
        return int(default)
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using %s", name, raw, default)
        return int(default)


def get_base_rate() -> float:
    return _get_float("TA_BASE_RATE")


def get_risk_level() -> str:
    raw = (os.getenv("TA_RISK_LEVEL") or DEFAULTS["TA_RISK_LEVEL"]).strip().lower()
    if raw not in RISK_LEVELS:
        logger.warning("Unknown TA_RISK_LEVEL=%r, using low", raw)
        return "low"
    return raw


def get_anomaly_thresholds() -> tuple[float, float]:
    """(outlier threshold, extreme threshold); extreme is never below the outlier one."""
    threshold = _get_float("TA_ANOMALY_Z")
    extreme = _get_float("TA_ANOMALY_EXTREME_Z")
    return threshold, max(threshold, extreme)


def get_action_limit() -> int | None:
    limit = _get_int("TA_ACTION_LIMIT")
    return limit if limit > 0 else None


def get_log_level() -> str:
    return (os.getenv("TA_LOG_LEVEL") or DEFAULTS["TA_LOG_LEVEL"]).strip().upper()


# Module-level thresholds used as function defaults by the detectors.
ANOMALY_Z_THRESHOLD = DEFAULTS["TA_ANOMALY_Z"]
ANOMALY_EXTREME_Z_THRESHOLD = DEFAULTS["TA_ANOMALY_EXTREME_Z"]
