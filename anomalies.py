"""
Anomaly detection over sales buckets (z-score on bucket volume).

Only buckets with positive volume form the population; zero-sale buckets are
an assortment gap, not a statistical outlier, and are never flagged.
"""

import logging

import numpy as np

import settings
from formulas import calculate_z_score
from models import ClientContribution, OutlierRecord, SalesBucket

logger = logging.getLogger(__name__)

# Fewer points than this make the standard deviation meaningless
MIN_POPULATION = 5

DOMINANT_SHARE_PCT = 50
SIGNIFICANT_SHARE_PCT = 20
LOW_SHARE_PCT = 5


def population_stats(values: list[float]) -> tuple[float, float]:
    """Mean and population standard deviation; (0, 0) for an empty list."""
    if not values:
        return 0.0, 0.0
    arr = np.asarray(values, dtype=float)
    return float(np.mean(arr)), float(np.std(arr))


def _reason(z: float, is_extreme: bool) -> str:
    strength = "Extreme" if is_extreme else "Unusual"
    if z > 0:
        return (
            f"{strength} over-performance (z={z:+.1f}). "
            "Check for duplicate rows or one-off bulk orders."
        )
    return (
        f"{strength} under-performance (z={z:+.1f}). "
        "Check stock availability and client coverage."
    )


def detect_outliers(
    buckets: list[SalesBucket],
    threshold: float = settings.ANOMALY_Z_THRESHOLD,
    extreme_threshold: float = settings.ANOMALY_EXTREME_Z_THRESHOLD,
    min_population: int = MIN_POPULATION,
) -> list[OutlierRecord]:
    """
    Flag buckets whose |z| exceeds the threshold, highest z first.
    Nothing is flagged when fewer than `min_population` buckets have sales.
    """
    population = [b for b in buckets if b.fact > 0]
    if len(population) < min_population:
        logger.debug("Outlier detection skipped: %d buckets with sales", len(population))
        return []

    mean, std = population_stats([b.fact for b in population])
    if std == 0:
        return []

    outliers = []
    for b in population:
        z = calculate_z_score(b.fact, mean, std)
        if abs(z) > threshold:
            is_extreme = abs(z) > extreme_threshold
            outliers.append(OutlierRecord(bucket=b, z_score=z, reason=_reason(z, is_extreme), is_extreme=is_extreme))

    logger.debug("Outliers: %d of %d (mean=%.2f, std=%.2f)", len(outliers), len(population), mean, std)
    return sorted(outliers, key=lambda o: o.z_score, reverse=True)


def analyze_contributions(record: OutlierRecord) -> list[ClientContribution]:
    """Per-client breakdown of a flagged bucket, largest contributor first. Display only."""
    clients = sorted(record.bucket.clients, key=lambda c: c.fact or 0, reverse=True)
    total = sum(c.fact or 0 for c in clients)
    positive = record.z_score > 0

    rows = []
    for c in clients:
        fact = c.fact or 0
        share = fact / total * 100 if total > 0 else 0.0
        if positive:
            if share > DOMINANT_SHARE_PCT:
                diagnosis, severity = "Dominant driver of the anomaly", "critical"
            elif share > SIGNIFICANT_SHARE_PCT:
                diagnosis, severity = "Significant contributor to the spike", "warning"
            else:
                diagnosis, severity = "Standard volume", "info"
        else:
            if fact <= 0:
                diagnosis, severity = "Zero sales (critical)", "critical"
            elif share < LOW_SHARE_PCT:
                diagnosis, severity = "Very low contribution", "warning"
            else:
                diagnosis, severity = "Low volume", "info"
        rows.append(ClientContribution(
            client=c, fact=fact, contribution_pct=share, diagnosis=diagnosis, severity=severity,
        ))
    return rows
