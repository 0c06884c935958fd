"""
Control-region matching for A/B experiments.

Regions are compared on (volume, potential, historical growth %) using a
weighted Euclidean distance on normalised features; similarity is
100 * (1 - distance / max_distance), so identical regions score 100.
"""

import logging
import math

from formulas import clamp
from models import RegionMetric, SalesBucket

logger = logging.getLogger(__name__)

# Feature weights; max distance scales with them so scores stay in [0, 100]
WEIGHTS = {"volume": 1.0, "potential": 1.0, "growth": 1.0}

DEFAULT_TOP_N = 3


def build_region_metrics(buckets: list[SalesBucket]) -> list[RegionMetric]:
    """Roll buckets up to regions, largest volume first."""
    totals: dict[str, list[float]] = {}
    for b in buckets:
        t = totals.setdefault(b.region, [0.0, 0.0, 0.0])
        t[0] += b.fact or 0
        t[1] += b.potential or 0
        t[2] += b.growth_potential or 0

    metrics = []
    for name, (volume, potential, growth) in totals.items():
        if volume > 0:
            growth_pct = growth / volume * 100
        else:
            growth_pct = 100.0 if growth > 0 else 0.0
        metrics.append(RegionMetric(name=name, volume=volume, growth_pct=growth_pct, potential=potential))
    return sorted(metrics, key=lambda m: (-m.volume, m.name))


def calculate_similarity(
    target: RegionMetric,
    candidate: RegionMetric,
    max_volume: float,
    weights: dict[str, float] = WEIGHTS,
) -> float:
    scale = max_volume or 1
    diffs = {
        "volume": (target.volume - candidate.volume) / scale,
        "potential": (target.potential - candidate.potential) / scale,
        "growth": (target.growth_pct - candidate.growth_pct) / 100,
    }
    total_weight = sum(weights.get(k, 0.0) for k in diffs)
    if total_weight <= 0:
        return 0.0
    distance = math.sqrt(sum(weights.get(k, 0.0) * d ** 2 for k, d in diffs.items()))
    max_distance = math.sqrt(total_weight)
    return clamp((1 - distance / max_distance) * 100, 0.0, 100.0)


def find_control_candidates(
    target_name: str,
    metrics: list[RegionMetric],
    top_n: int = DEFAULT_TOP_N,
    weights: dict[str, float] = WEIGHTS,
) -> list[RegionMetric]:
    """Most similar other regions for the target, best match first. Empty if target is unknown."""
    target = next((m for m in metrics if m.name == target_name), None)
    if target is None:
        return []
    max_volume = max((m.volume for m in metrics), default=0.0)

    scored = [
        RegionMetric(
            name=m.name,
            volume=m.volume,
            growth_pct=m.growth_pct,
            potential=m.potential,
            similarity_score=calculate_similarity(target, m, max_volume, weights),
        )
        for m in metrics
        if m.name != target_name
    ]
    scored.sort(key=lambda m: (-m.similarity_score, m.name))
    logger.debug("Control candidates for %s: %d scored", target_name, len(scored))
    return scored[:top_n]


def projected_lift(target: RegionMetric) -> float:
    """Expected experiment lift: the target region's own historical growth %."""
    return target.growth_pct
