"""Tests for the next-best-action prioritiser and the visibility predicate."""
from datetime import datetime, timedelta

from actions import build_visibility_predicate, generate_next_best_actions
from conftest import make_bucket, make_client
from models import ChurnMetric, TaskDecision


def _churn(client_id, level, score, days=200, gap=30, drop=0.0):
    return ChurnMetric(
        client_id=client_id,
        risk_score=score,
        risk_level=level,
        days_since_last_order=days,
        avg_order_gap=gap,
        volume_drop_pct=drop,
    )


class TestRules:

    def test_churn_action_suppresses_growth(self):
        client = make_client("c1", 5000, abc_category="A")
        bucket = make_bucket("North", 5000, [client])
        actions = generate_next_best_actions([bucket], [_churn("c1", "Critical", 90, drop=80)])

        assert [(a.client_id, a.type) for a in actions] == [("c1", "churn")]
        assert actions[0].priority_score == 110  # risk score + tier A bonus

    def test_medium_churn_is_not_a_churn_action(self):
        client = make_client("c1", 5000)
        actions = generate_next_best_actions([make_bucket("N", 5000, [client])], [_churn("c1", "Medium", 50, days=10)])
        assert all(a.type != "churn" for a in actions)

    def test_data_fix_is_independent_of_churn(self):
        client = make_client("c1", 1000, lat=None, lon=None, type=None)
        actions = generate_next_best_actions([make_bucket("N", 1000, [client])], [_churn("c1", "High", 70)])
        types = {a.type for a in actions}

        assert types == {"churn", "data_fix"}
        fix = next(a for a in actions if a.type == "data_fix")
        assert "no coordinates" in fix.reason
        assert "unidentified channel" in fix.reason
        assert fix.priority_score == 50  # 40 + min(20, 1000 / 100)

    def test_activation_for_low_volume_matched_client(self):
        client = make_client("c1", 10)
        actions = generate_next_best_actions([make_bucket("N", 10, [client])], [])
        assert [a.type for a in actions] == ["activation"]

    def test_no_activation_for_unmatched_client(self):
        client = make_client("c1", 10, is_matched=False)
        assert generate_next_best_actions([make_bucket("N", 10, [client])], []) == []

    def test_activation_for_silent_client(self):
        client = make_client("c1", 800)
        actions = generate_next_best_actions([make_bucket("N", 800, [client])], [_churn("c1", "Medium", 55, days=90)])

        assert [a.type for a in actions] == ["activation"]
        assert "90 days" in actions[0].reason

    def test_growth_below_peers(self):
        weak = make_client("weak", 100, abc_category="B")
        strong = make_client("strong", 1900, abc_category="A")
        bucket = make_bucket("N", 2000, [weak, strong])
        actions = generate_next_best_actions([bucket], [])

        assert [(a.client_id, a.type) for a in actions] == [("weak", "growth")]
        # B weight 15 + gap 900 / 100 * 10
        assert actions[0].priority_score == 80

    def test_growth_from_historical_drop(self):
        client = make_client("c1", 1000, abc_category="A")
        actions = generate_next_best_actions(
            [make_bucket("N", 1000, [client])], [_churn("c1", "Low", 20, days=5, drop=40)]
        )

        assert [a.type for a in actions] == ["growth"]
        assert actions[0].priority_score == 38  # 30 + 40 * 0.2

    def test_tier_c_gets_no_growth(self):
        weak = make_client("weak", 100, abc_category="C")
        strong = make_client("strong", 1900, abc_category="A")
        actions = generate_next_best_actions([make_bucket("N", 2000, [weak, strong])], [])
        assert actions == []


class TestRanking:

    def test_dedup_keeps_highest_priority_and_sorts(self):
        shared = make_client("s", 10, abc_category="A", lat=None, lon=None)
        other = make_client("o", 3000, lat=None, lon=None)
        buckets = [
            make_bucket("N", 10, [shared], brand="X"),
            make_bucket("N", 3010, [shared, other], brand="Y"),
        ]
        actions = generate_next_best_actions(buckets, [_churn("o", "Critical", 95)])

        keys = [(a.client_id, a.type) for a in actions]
        assert len(keys) == len(set(keys))
        scores = [a.priority_score for a in actions]
        assert scores == sorted(scores, reverse=True)
        assert keys[0] == ("o", "churn")

    def test_visibility_and_limit(self):
        clients = [make_client(f"c{i}", 10) for i in range(5)]
        bucket = make_bucket("N", 50, clients)

        visible = generate_next_best_actions([bucket], [], is_item_visible=lambda tid: tid != "c0:activation")
        assert "c0" not in {a.client_id for a in visible}
        assert len(generate_next_best_actions([bucket], [], limit=2)) == 2

    def test_done_hides_only_that_action_type(self):
        client = make_client("c1", 1000, lat=None, lon=None)
        bucket = make_bucket("N", 1000, [client])
        churn = [_churn("c1", "High", 70)]
        is_visible = build_visibility_predicate([TaskDecision("c1:data_fix", "delete", "done")])

        actions = generate_next_best_actions([bucket], churn, is_visible)

        assert [(a.client_id, a.type) for a in actions] == [("c1", "churn")]
        assert is_visible("c1")

    def test_empty_inputs(self):
        assert generate_next_best_actions([], []) == []


class TestVisibilityPredicate:

    def test_delete_and_snooze(self):
        now = datetime(2025, 6, 1, 12, 0)
        is_visible = build_visibility_predicate(
            [
                TaskDecision("gone", "delete"),
                TaskDecision("later", "snooze", snooze_until=now + timedelta(days=3)),
                TaskDecision("expired", "snooze", snooze_until=now - timedelta(days=1)),
            ],
            now=now,
        )

        assert not is_visible("gone")
        assert not is_visible("later")
        assert is_visible("expired")
        assert is_visible("never-touched")
