"""
Growth Planning Engine: growth % and absolute plan per region/brand bucket.

The growth percentage is the sum of additive factors (base rate, market-share
effect, assortment width gap, velocity gap, acquisition bonus), scaled by the
risk coefficient and clamped to safety limits. Territories without sales are
planned in "acquisition mode" from the size of the prospect registry (OKB).

THRESHOLD POLICY:
- All constants below are hand-tuned heuristics, not fitted values.
- They are module-level so they can be tuned in one place.
"""

import logging
import math
from dataclasses import replace

from formulas import (
    SEASONALITY_CURVE,
    calculate_base_effect,
    clamp,
    distribute_year_to_quarter,
    normalize_non_linear,
)
from models import (
    GrowthDetails,
    GrowthFactors,
    PlanInputs,
    PlanningContext,
    PlanResult,
    SalesBucket,
)

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Coefficients
# -----------------------------------------------------------------------------

MARKET_SHARE_OPTIMAL = 0.35
MARKET_SHARE_SMOOTHING_K = 0.3
MARKET_SHARE_AGGRESSION = 15
MARKET_SHARE_CEILING = 0.9

WIDTH_MULTIPLIER = 15
VELOCITY_MULTIPLIER = 10
GAP_FACTOR_MIN = -5
GAP_FACTOR_MAX = 10

# Acquisition bonus tiers by RM efficiency ratio
STRONG_RM_RATIO = 1.1
WEAK_RM_RATIO = 0.8
ACQUISITION_STRONG = 12
ACQUISITION_AVERAGE = 7
ACQUISITION_WEAK = 3
ACQUISITION_SHARE_SCALE = 0.5

RISK_COEFFICIENTS = {"low": 1.0, "medium": 1.15, "high": 1.3}

GROWTH_PCT_MAX = 150
GROWTH_PCT_FLOOR = 5
GREENFIELD_GROWTH_PCT = 100


def calculate_market_share(inputs: PlanInputs) -> float:
    """
    Coverage share: active / (active + uncovered registry prospects).
    Reaches 1.0 only when every OKB prospect in the region is already active.
    """
    active = inputs.active_count if inputs.active_count > 0 else inputs.matched_count
    uncovered = max(0, inputs.total_region_okb - inputs.matched_count)
    universe = active + uncovered
    if universe <= 0:
        return 0.0
    return clamp(active / universe, 0.0, 1.0)


def _acquisition_bonus(rm_efficiency_ratio: float) -> float:
    if rm_efficiency_ratio > STRONG_RM_RATIO:
        return ACQUISITION_STRONG
    if rm_efficiency_ratio < WEAK_RM_RATIO:
        return ACQUISITION_WEAK
    return ACQUISITION_AVERAGE


def min_growth_limit(base_rate: float) -> float:
    return GROWTH_PCT_FLOOR if base_rate > GROWTH_PCT_FLOOR else 0


def calculate_plan(inputs: PlanInputs, context: PlanningContext) -> PlanResult:
    """Compute growth % and absolute plan for one bucket. Never raises."""
    market_share = calculate_market_share(inputs)
    rm_efficiency_ratio = (
        inputs.rm_global_velocity / context.global_avg_sales if context.global_avg_sales > 0 else 1.0
    )
    details = GrowthDetails(
        my_sku=inputs.avg_sku,
        global_sku=context.global_avg_sku,
        my_velocity=inputs.avg_velocity,
        global_velocity=context.global_avg_sales,
        market_share=market_share,
        rm_efficiency_ratio=rm_efficiency_ratio,
    )

    share = width = velocity = acquisition = 0.0
    if inputs.total_fact > 0:
        # Extensive growth: coverage below the optimum pushes the plan up
        if 0 < market_share < MARKET_SHARE_CEILING:
            smoothed = normalize_non_linear(market_share, MARKET_SHARE_SMOOTHING_K)
            share = calculate_base_effect(smoothed, MARKET_SHARE_OPTIMAL, MARKET_SHARE_AGGRESSION)

        # Intensive growth: narrower assortment than the company average
        if context.global_avg_sku > 0:
            gap = (context.global_avg_sku - inputs.avg_sku) / context.global_avg_sku
            width = clamp(gap * WIDTH_MULTIPLIER, GAP_FACTOR_MIN, GAP_FACTOR_MAX)

        # Intensive growth: weaker sell-through per SKU
        if context.global_avg_sales > 0:
            gap = (context.global_avg_sales - inputs.avg_velocity) / context.global_avg_sales
            velocity = clamp(gap * VELOCITY_MULTIPLIER, GAP_FACTOR_MIN, GAP_FACTOR_MAX)
    else:
        acquisition = _acquisition_bonus(rm_efficiency_ratio)

    factors = GrowthFactors(
        base=context.base_rate,
        share=share,
        width=width,
        velocity=velocity,
        acquisition=acquisition,
    )

    risk_coef = RISK_COEFFICIENTS.get(context.risk_level, 1.0)
    growth_pct = clamp(factors.total() * risk_coef, min_growth_limit(context.base_rate), GROWTH_PCT_MAX)

    plan = 0.0
    if inputs.total_fact > 0:
        plan = inputs.total_fact * (1 + growth_pct / 100)
    elif inputs.total_region_okb > 0 and context.global_avg_sales > 0:
        target_share = (acquisition / 100) * ACQUISITION_SHARE_SCALE
        target_clients = math.ceil(inputs.total_region_okb * target_share)
        avg_client_volume = context.global_avg_sales * context.global_avg_sku
        plan = max(1.0, target_clients * avg_client_volume)

    return PlanResult(plan=plan, growth_pct=growth_pct, factors=factors, details=details)


def quarterly_split(yearly_plan: float) -> dict[str, float]:
    return {q: distribute_year_to_quarter(yearly_plan, coef) for q, coef in SEASONALITY_CURVE.items()}


def _coord_key(lat: float, lon: float) -> tuple[float, float]:
    return round(lat, 4), round(lon, 4)


def enrich_with_plan(
    buckets: list[SalesBucket],
    okb_region_counts: dict[str, int] | None = None,
    base_rate: float = 15.0,
    risk_level: str = "low",
    okb_coords: set[tuple[float, float]] | None = None,
) -> list[SalesBucket]:
    """
    Attach a plan to every bucket.

    Benchmarks are company-wide (all buckets); coverage context is shared per
    (owner, region); velocity is per bucket so brands in one region differ.
    Returns new buckets; the input list is left untouched.
    """
    if not buckets:
        return []
    okb_region_counts = okb_region_counts or {}

    # Company-wide benchmarks
    total_volume = sum(b.fact for b in buckets)
    total_listings = sum(len(b.clients) for b in buckets)
    unique_clients = {c.key for b in buckets for c in b.clients}
    global_avg_sku = total_listings / len(unique_clients) if unique_clients else 0.0
    global_avg_sales = total_volume / total_listings if total_listings else 0.0

    # Region context and per-owner velocity
    region_active: dict[tuple[str, str], set[str]] = {}
    region_matched: dict[tuple[str, str], int] = {}
    owner_stats: dict[str, list[float]] = {}
    for b in buckets:
        key = (b.owner, b.region)
        active = region_active.setdefault(key, set())
        region_matched.setdefault(key, 0)
        stats = owner_stats.setdefault(b.owner, [0.0, 0])
        stats[0] += b.fact
        stats[1] += len(b.clients)
        for c in b.clients:
            if c.key in active:
                continue
            active.add(c.key)
            if c.has_coordinates and (okb_coords is None or _coord_key(c.lat, c.lon) in okb_coords):
                region_matched[key] += 1

    context = PlanningContext(
        base_rate=base_rate,
        global_avg_sku=global_avg_sku,
        global_avg_sales=global_avg_sales,
        risk_level=risk_level,
    )
    logger.debug(
        "Planning %d buckets: global_avg_sku=%.3f global_avg_sales=%.3f",
        len(buckets), global_avg_sku, global_avg_sales,
    )

    enriched = []
    for b in buckets:
        key = (b.owner, b.region)
        owner_fact, owner_listings = owner_stats[b.owner]
        listings = len(b.clients)
        okb = okb_region_counts.get(b.region, 0)
        result = calculate_plan(
            PlanInputs(
                total_fact=b.fact,
                total_potential=okb,
                matched_count=region_matched[key],
                active_count=len(region_active[key]),
                total_region_okb=okb,
                avg_sku=1,
                avg_velocity=b.fact / listings if listings else 0.0,
                rm_global_velocity=owner_fact / owner_listings if owner_listings else 0.0,
            ),
            context,
        )
        rate = result.growth_pct
        plan_volume = result.plan
        if b.fact == 0 and result.plan > 0:
            rate = GREENFIELD_GROWTH_PCT
        else:
            plan_volume = b.fact * (1 + rate / 100)
        enriched.append(replace(
            b,
            potential=plan_volume,
            growth_potential=max(0.0, plan_volume - b.fact),
            growth_pct=rate,
            plan=result,
        ))
    return enriched
