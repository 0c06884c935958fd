"""
Registry coverage by region: active clients vs known prospects (OKB).

Regions with low coverage and a large absolute gap rank first.
"""

from models import ClientPoint, CoverageMetric

UNIDENTIFIED_REGION = "Регион не определен"
MIN_OKB_COUNT = 5
GAP_SCORE_DIVISOR = 5  # a gap of 500 prospects scores 100
COVERAGE_WEIGHT = 0.4
GAP_WEIGHT = 0.6


def calculate_coverage_metrics(
    clients: list[ClientPoint],
    okb_region_counts: dict[str, int],
) -> list[CoverageMetric]:
    active_by_region: dict[str, set[str]] = {}
    for c in clients:
        if c.region:
            active_by_region.setdefault(c.region, set()).add(c.key)

    results = []
    for region in set(okb_region_counts) | set(active_by_region):
        if region == UNIDENTIFIED_REGION:
            continue
        active = len(active_by_region.get(region, ()))
        okb = max(active, okb_region_counts.get(region, 0))
        if okb <= MIN_OKB_COUNT:
            continue
        coverage_pct = active / okb * 100
        gap = okb - active
        gap_score = min(100.0, gap / GAP_SCORE_DIVISOR)
        priority = (100 - coverage_pct) * COVERAGE_WEIGHT + gap_score * GAP_WEIGHT
        results.append(CoverageMetric(
            region=region,
            active_count=active,
            okb_count=okb,
            coverage_pct=coverage_pct,
            gap=gap,
            priority_score=priority,
        ))
    return sorted(results, key=lambda m: (-m.priority_score, m.region))
