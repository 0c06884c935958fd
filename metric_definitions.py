"""
Metric Definitions: source fields, formula, and business question per output.

Each metric is defined with:
- required_fields: input fields needed for computation
- formula: short text describing the computation
- business_question: what the territory manager asks
- interpretation_note: how to read the value
- output_type: scalar | table

All formulas are fixed heuristics; nothing is fitted.
"""

METRIC_DEFINITIONS = {
    "market_share": {
        "name": "market_share",
        "required_fields": ["active_count", "matched_count", "total_region_okb"],
        "formula": "active / (active + max(0, okb - matched))",
        "business_question": "How much of the known prospect registry do we already serve?",
        "interpretation_note": "1.0 only when every registry prospect in the region is an active client.",
        "output_type": "scalar",
    },
    "growth_pct": {
        "name": "growth_pct",
        "required_fields": ["fact", "clients", "okb_region_counts", "base_rate"],
        "formula": "clamp((base + share + width + velocity + acquisition) * risk_coef, min_limit, 150)",
        "business_question": "How much should this region/brand grow next period?",
        "interpretation_note": "Each additive factor is shown separately in the growth explanation.",
        "output_type": "table",
    },
    "plan": {
        "name": "plan",
        "required_fields": ["fact", "growth_pct", "global_avg_sales", "global_avg_sku"],
        "formula": "fact * (1 + growth_pct/100); greenfield: ceil(okb * acquisition/200) * avg client volume",
        "business_question": "What absolute volume is the target?",
        "interpretation_note": "Greenfield plans are sized from the registry, not from past sales.",
        "output_type": "table",
    },
    "z_score": {
        "name": "z_score",
        "required_fields": ["fact"],
        "formula": "(fact - mean(fact > 0)) / std(fact > 0); flag if |z| > 2, extreme if |z| > 3",
        "business_question": "Which buckets deviate strongly from the rest?",
        "interpretation_note": "Positive: check duplicates or bulk orders. Negative: check stock and coverage.",
        "output_type": "table",
    },
    "churn_risk": {
        "name": "churn_risk",
        "required_fields": ["daily_fact", "monthly_fact", "abc_category"],
        "formula": "50*max(relative, absolute silence) + 35*volume_drop(year to date vs prior year) + 15*order_gap + ABC bonus, capped at 100",
        "business_question": "Which clients are about to stop ordering?",
        "interpretation_note": "Levels: >80 Critical, >60 High, >30 Medium, otherwise Low.",
        "output_type": "table",
    },
    "next_best_action": {
        "name": "next_best_action",
        "required_fields": ["clients", "churn_risk"],
        "formula": "typed rules (churn, activation, growth, data_fix), dedup by (client, type), rank by priority",
        "business_question": "What should each manager do first?",
        "interpretation_note": "Dismissed or snoozed items are hidden by the task store.",
        "output_type": "table",
    },
    "coverage_priority": {
        "name": "coverage_priority",
        "required_fields": ["clients", "okb_region_counts"],
        "formula": "(100 - coverage%) * 0.4 + min(100, gap/5) * 0.6",
        "business_question": "Where is the largest untapped prospect base?",
        "interpretation_note": "Regions with five or fewer registry prospects are ignored as noise.",
        "output_type": "table",
    },
    "region_similarity": {
        "name": "region_similarity",
        "required_fields": ["fact", "potential", "growth_potential"],
        "formula": "100 * (1 - weighted_euclid(volume, potential, growth%) / sqrt(sum(weights)))",
        "business_question": "Which region is the fairest control group for an experiment?",
        "interpretation_note": "Above 90 is a close match; below 75 the comparison is weak.",
        "output_type": "table",
    },
}


def get_metric_definitions() -> dict:
    return METRIC_DEFINITIONS
