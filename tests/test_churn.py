"""Tests for the churn radar scorer."""
from datetime import date

import pytest

from churn import (
    DEFAULT_ORDER_GAP_DAYS,
    calculate_churn_metrics,
    order_history,
    risk_level_for,
    score_client,
    volume_drop_pct,
)
from conftest import make_client, monthly_history


def _declining_client(key="d", abc=None):
    # 12 months at 100, then 12 months at 10; last sale 2024-10-01
    history = monthly_history(2022, 11, [100] * 12 + [10] * 12)
    return make_client(key, fact=1320, monthly_fact=history, abc_category=abc)


class TestRiskLevels:

    @pytest.mark.parametrize("score,level", [(0, "Low"), (30, "Low"), (31, "Medium"), (61, "High"), (80, "High"), (81, "Critical")])
    def test_cutoffs(self, score, level):
        assert risk_level_for(score) == level


class TestScoreClient:

    def test_scenario_d_long_silence_and_volume_drop(self):
        metric = score_client(_declining_client(), today=date(2025, 11, 15))

        assert metric.days_since_last_order > 400
        assert metric.volume_drop_pct == 100
        assert metric.risk_level == "Critical"

    def test_sparse_buyer_silent_400_days_is_critical(self):
        history = {"2023-01-01": 500, "2023-05-01": 500, "2024-06-01": 100}
        metric = score_client(make_client("sparse", daily_fact=history), today=date(2025, 7, 6))

        assert metric.days_since_last_order == 400
        assert metric.volume_drop_pct == 100
        assert metric.risk_level == "Critical"

    def test_lapsed_monthly_buyer_is_critical(self):
        client = make_client("lapsed", monthly_fact=monthly_history(2023, 1, [100] * 12))
        metric = score_client(client, today=date(2025, 1, 5))

        assert metric.days_since_last_order == 401
        assert metric.volume_drop_pct == 100
        assert metric.risk_level == "Critical"

    def test_absolute_silence_outweighs_slow_rhythm(self):
        # quarterly buyer silent for 200 days, about two usual gaps
        history = {"2024-01-01": 100, "2024-04-01": 100, "2024-07-01": 100}
        metric = score_client(make_client("q", daily_fact=history), today=date(2025, 1, 17))

        assert metric.days_since_last_order == 200
        assert metric.risk_score >= 50

    def test_no_history_is_excluded(self):
        assert score_client(make_client("x")) is None
        assert score_client(make_client("y", daily_fact={"unknown": 50, "2024-01-01": 0})) is None

    def test_steady_recent_client_is_low_risk(self):
        history = {f"2025-{m:02d}-01": 100 for m in range(1, 11)}
        metric = score_client(make_client("s", daily_fact=history), today=date(2025, 10, 15))

        assert metric.avg_order_gap in (30, 31)
        assert metric.volume_drop_pct == 0
        assert metric.risk_level == "Low"

    def test_daily_history_preferred_over_monthly(self):
        client = make_client(
            "m",
            daily_fact={"2025-03-10": 5},
            monthly_fact={"2020-01": 100},
        )
        history = order_history(client)
        assert len(history) == 1
        assert history.index[0].year == 2025

    def test_single_sale_uses_default_gap(self):
        metric = score_client(make_client("one", daily_fact={"2025-01-01": 10}), today=date(2025, 1, 11))
        assert metric.avg_order_gap == DEFAULT_ORDER_GAP_DAYS
        assert metric.days_since_last_order == 10

    def test_abc_tier_raises_score(self):
        today = date(2025, 11, 15)
        plain = score_client(_declining_client("p"), today=today)
        tier_a = score_client(_declining_client("a", abc="A"), today=today)
        assert tier_a.risk_score > plain.risk_score
        assert tier_a.risk_score <= 100


class TestVolumeDrop:

    def test_no_prior_window(self):
        client = make_client("n", monthly_fact=monthly_history(2025, 1, [10, 10, 10]))
        assert volume_drop_pct(order_history(client), date(2025, 4, 1)) == 0

    def test_growth_is_not_a_drop(self):
        client = make_client("g", monthly_fact=monthly_history(2022, 11, [10] * 12 + [100] * 12))
        assert volume_drop_pct(order_history(client), date(2024, 11, 1)) == 0

    def test_windows_end_at_as_of_date(self):
        client = make_client("w", daily_fact={"2024-01-10": 1000, "2025-01-10": 100})
        history = order_history(client)

        assert volume_drop_pct(history, date(2025, 3, 1)) == pytest.approx(90)
        # a year later the recent window is empty
        assert volume_drop_pct(history, date(2026, 1, 20)) == 100


class TestCalculateChurnMetrics:

    def test_sorted_unique_and_excludes_unscorable(self):
        today = date(2025, 11, 15)
        risky = _declining_client("r")
        steady = make_client("s", daily_fact={f"2025-{m:02d}-01": 100 for m in range(1, 12)})
        empty = make_client("e")

        metrics = calculate_churn_metrics([steady, risky, empty, risky], today=today)

        assert [m.client_id for m in metrics] == ["r", "s"]
        scores = [m.risk_score for m in metrics]
        assert scores == sorted(scores, reverse=True)
