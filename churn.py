"""
Churn Radar: recency / frequency / volume-drop risk score per client.

risk_score = 50 * silence + 35 * drop + 15 * gap + ABC bonus  (capped at 100)

- silence: the larger of the pause relative to the client's own order rhythm
  (0 at one usual gap, 1 at three gaps or more) and the pause in days
  (0 up to 60 days, 1 from 180 days), so lapsed clients saturate on any cadence
- drop: decline of the year ending today vs the year before it
- gap: long order cycles are riskier on their own (saturates at 90 days)

Weights and level cut-offs are fixed heuristics; tune them here.
"""

import logging
from datetime import date

import pandas as pd

from formulas import clamp
from models import ChurnMetric, ClientPoint

logger = logging.getLogger(__name__)

SILENCE_WEIGHT = 50
DROP_WEIGHT = 35
GAP_WEIGHT = 15
ABC_BONUS = {"A": 10, "B": 5}

SILENCE_SATURATION_GAPS = 3
GAP_SATURATION_DAYS = 90
SILENCE_ALERT_DAYS = 60
SILENCE_SATURATION_DAYS = 180
DEFAULT_ORDER_GAP_DAYS = 30
CHURN_WINDOW_DAYS = 365

RISK_LEVEL_CUTOFFS = [(80, "Critical"), (60, "High"), (30, "Medium")]


def risk_level_for(score: float) -> str:
    for cutoff, level in RISK_LEVEL_CUTOFFS:
        if score > cutoff:
            return level
    return "Low"


def _sales_series(history: dict[str, float] | None, fmt: str) -> pd.Series:
    """Date-indexed positive volumes; unparseable keys (e.g. 'unknown') are dropped."""
    if not history:
        return pd.Series(dtype=float)
    s = pd.Series(history, dtype=float)
    s.index = pd.to_datetime(s.index, format=fmt, errors="coerce")
    s = s[s.index.notna()]
    s = s[s > 0]
    return s.groupby(level=0).sum().sort_index()


def order_history(client: ClientPoint) -> pd.Series:
    """Daily history when it has dated sales, otherwise monthly (dated to the 1st)."""
    daily = _sales_series(client.daily_fact, "%Y-%m-%d")
    if not daily.empty:
        return daily
    return _sales_series(client.monthly_fact, "%Y-%m")


def volume_drop_pct(
    history: pd.Series,
    as_of: date | None = None,
    window_days: int = CHURN_WINDOW_DAYS,
) -> float:
    """
    Percentage decline of the trailing window ending at `as_of` (default today)
    vs the prior window of the same length. 0 when there is no prior volume or
    no decline; a client with no sales in the trailing window reports 100.
    """
    if history.empty:
        return 0.0
    last = pd.Timestamp(as_of or date.today())
    window = pd.Timedelta(days=window_days)
    recent = history[(history.index > last - window) & (history.index <= last)].sum()
    prior = history[(history.index > last - 2 * window) & (history.index <= last - window)].sum()
    if prior <= 0 or recent >= prior:
        return 0.0
    return float((prior - recent) / prior * 100)


def score_client(client: ClientPoint, today: date | None = None) -> ChurnMetric | None:
    """Score one client; None when there is no dated sale to score."""
    history = order_history(client)
    if history.empty:
        return None

    today_ts = pd.Timestamp(today or date.today())
    dates = history.index
    days_since = max(0.0, (today_ts - dates.max()).days)
    if len(dates) > 1:
        avg_gap = float(pd.Series(dates).diff().dropna().dt.days.mean())
    else:
        avg_gap = float(DEFAULT_ORDER_GAP_DAYS)
    drop = volume_drop_pct(history, today_ts)

    rhythm = max(avg_gap, 1.0)
    relative = clamp((days_since / rhythm - 1) / (SILENCE_SATURATION_GAPS - 1), 0.0, 1.0)
    absolute = clamp(
        (days_since - SILENCE_ALERT_DAYS) / (SILENCE_SATURATION_DAYS - SILENCE_ALERT_DAYS), 0.0, 1.0
    )
    silence = max(relative, absolute)
    gap = clamp(avg_gap / GAP_SATURATION_DAYS, 0.0, 1.0)
    score = (
        SILENCE_WEIGHT * silence
        + DROP_WEIGHT * drop / 100
        + GAP_WEIGHT * gap
        + ABC_BONUS.get(client.abc_category or "", 0)
    )
    score = min(100.0, score)

    return ChurnMetric(
        client_id=client.key,
        risk_score=round(score, 1),
        risk_level=risk_level_for(score),
        days_since_last_order=int(round(days_since)),
        avg_order_gap=int(round(avg_gap)),
        volume_drop_pct=round(drop, 1),
        client_name=client.name,
        owner=client.owner,
        fact=client.fact or 0,
    )


def calculate_churn_metrics(clients: list[ClientPoint], today: date | None = None) -> list[ChurnMetric]:
    """Score every unique client with a sales history, riskiest first."""
    seen: set[str] = set()
    results = []
    for c in clients:
        if c.key in seen:
            continue
        seen.add(c.key)
        metric = score_client(c, today)
        if metric is not None:
            results.append(metric)
    logger.debug("Churn metrics: %d scored of %d clients", len(results), len(seen))
    return sorted(results, key=lambda m: (-m.risk_score, m.client_id))
