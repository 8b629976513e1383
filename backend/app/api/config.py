from __future__ import annotations

import logging
import os

from backend.app.alerts.thresholds import DEFAULT_DEADLINE_DAYS
from backend.app.rollup.trends import PERIODS

logger = logging.getLogger(__name__)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r; using %s", name, raw, default)
        return default


def deadline_alert_days() -> int:
    days = _int_env("DEADLINE_ALERT_DAYS", DEFAULT_DEADLINE_DAYS)
    return days if days > 0 else DEFAULT_DEADLINE_DAYS


def trend_period() -> str:
    period = (os.getenv("TREND_PERIOD") or "week").strip().lower()
    if period not in PERIODS:
        logger.warning("Ignoring unknown TREND_PERIOD=%r; using week", period)
        return "week"
    return period


def week_start_day() -> int:
    return _int_env("WEEK_START_DAY", 0) % 7


def realert_on_change() -> bool:
    return os.getenv("ALERTS_REALERT_ON_CHANGE", "").strip().lower() in {"1", "true", "yes", "on"}
