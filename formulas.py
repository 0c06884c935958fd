"""
Math primitives shared by the planning engine and the anomaly detector.

Ported from the planning spreadsheet; all functions are pure and never raise.
"""

# Quarterly seasonality; must sum to 1.0.
SEASONALITY_CURVE = {"Q1": 0.22, "Q2": 0.25, "Q3": 0.27, "Q4": 0.26}


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def normalize_non_linear(value: float, k: float = 0.2) -> float:
    """
    Spreadsheet formula: 0.5 + (x - 0.5) * (1 - k * (x - 0.5)^2).
    Compresses values near 0 and 1 toward the centre so extreme market shares
    do not produce runaway plans. 0.5 is a fixed point for any k.
    """
    centered = clamp(value, 0.0, 1.0) - 0.5
    return clamp(0.5 + centered * (1 - k * centered ** 2), 0.0, 1.0)


def calculate_base_effect(actual: float, target: float = 0.35, aggression: float = 20) -> float:
    """(target - actual) * aggression. Positive below target, negative above."""
    return (target - actual) * aggression


def calculate_z_score(value: float, mean: float, std: float) -> float:
    if std == 0:
        return 0.0
    return (value - mean) / std


def calculate_execution_percent(fact: float, plan: float) -> float:
    if plan == 0:
        return 0.0
    return fact / plan * 100


def distribute_year_to_month(yearly_plan: float, season_coef: float) -> float:
    return yearly_plan * season_coef


def distribute_year_to_quarter(yearly_plan: float, season_coef: float) -> float:
    return yearly_plan * season_coef
