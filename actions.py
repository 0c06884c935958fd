"""
Next Best Action engine: typed, ranked recommendations per client.

Rules (evaluated per client, per bucket the client appears in):
- churn:      churn radar level High/Critical. Suppresses activation/growth.
- data_fix:   coordinates, address or sales channel missing. Independent of churn.
- activation: registry-matched client with near-zero volume or a long pause.
- growth:     A/B client whose volume is well below its history or its peers.

Actions are deduplicated by (client_id, type), ranked by priority and
filtered through the task store's visibility predicate.
"""

import logging
from collections.abc import Callable, Iterable
from datetime import datetime

from models import ChurnMetric, ClientPoint, SalesBucket, SuggestedAction, TaskDecision

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# RULE DEFINITIONS: thresholds and messages
# -----------------------------------------------------------------------------

RULE_DEFINITIONS = {
    "churn": {
        "id": "churn",
        "condition": "Churn radar level is High or Critical",
        "levels": ("High", "Critical"),
        "abc_a_bonus": 20,
        "recommended_step": "Call or visit urgently. Offer a win-back promotion.",
    },
    "data_fix": {
        "id": "data_fix",
        "condition": "Missing coordinates, empty address or unidentified sales channel",
        "base_priority": 40,
        "max_volume_bonus": 20,
        "recommended_step": "Correct the address and channel in the client registry.",
    },
    "activation": {
        "id": "activation",
        "condition": "Registry-matched client with volume below threshold or silent too long",
        "fact_threshold": 50.0,
        "silence_days": 60,
        "base_priority": 30,
        "max_silence_bonus": 20,
        "max_priority": 80,
        "recommended_step": "Offer a starter pack or a trial delivery.",
    },
    "growth": {
        "id": "growth",
        "condition": "A/B client with volume drop >= 25% or below 70% of the bucket peer average",
        "tiers": ("A", "B"),
        "drop_threshold_pct": 25.0,
        "peer_ratio": 0.7,
        "max_priority": 80,
        "recommended_step": "Extend the assortment (cross-sell) and agree a volume target.",
    },
}

ABC_WEIGHTS = {"A": 30, "B": 15}
UNIDENTIFIED_CHANNELS = {"", "unknown", "не определен", "не определено"}


def _data_issues(client: ClientPoint) -> list[str]:
    issues = []
    if not client.has_coordinates:
        issues.append("no coordinates")
    if not (client.address or "").strip():
        issues.append("empty address")
    if (client.type or "").strip().lower() in UNIDENTIFIED_CHANNELS:
        issues.append("unidentified channel")
    return issues


def _action(client: ClientPoint, type_: str, priority: float, reason: str) -> SuggestedAction:
    return SuggestedAction(
        client_id=client.key,
        type=type_,
        priority_score=round(priority, 1),
        reason=reason,
        recommended_step=RULE_DEFINITIONS[type_]["recommended_step"],
        client_name=client.name,
        owner=client.owner,
        fact=client.fact or 0,
    )


def _client_actions(client: ClientPoint, churn: ChurnMetric | None, peer_avg: float) -> list[SuggestedAction]:
    actions = []
    fact = client.fact or 0

    issues = _data_issues(client)
    if issues:
        rule = RULE_DEFINITIONS["data_fix"]
        priority = rule["base_priority"] + min(rule["max_volume_bonus"], max(0.0, fact) / 100)
        actions.append(_action(client, "data_fix", priority, "Data issue: " + ", ".join(issues)))

    rule = RULE_DEFINITIONS["churn"]
    if churn is not None and churn.risk_level in rule["levels"]:
        priority = churn.risk_score + (rule["abc_a_bonus"] if client.abc_category == "A" else 0)
        reason = f"{churn.days_since_last_order} days without an order (usual gap {churn.avg_order_gap})"
        actions.append(_action(client, "churn", priority, reason))
        return actions

    abc_weight = ABC_WEIGHTS.get(client.abc_category or "", 0)

    rule = RULE_DEFINITIONS["activation"]
    days_silent = churn.days_since_last_order if churn is not None else 0
    if client.is_matched and (fact < rule["fact_threshold"] or days_silent > rule["silence_days"]):
        priority = min(
            rule["max_priority"],
            rule["base_priority"] + abc_weight + min(rule["max_silence_bonus"], days_silent / 10),
        )
        if fact < rule["fact_threshold"]:
            reason = f"Volume {fact:,.0f} below activation threshold {rule['fact_threshold']:,.0f}"
        else:
            reason = f"No orders for {days_silent} days"
        actions.append(_action(client, "activation", priority, reason))
        return actions

    rule = RULE_DEFINITIONS["growth"]
    if client.abc_category in rule["tiers"]:
        drop = churn.volume_drop_pct if churn is not None else 0.0
        gap = max(0.0, peer_avg - fact)
        below_history = drop >= rule["drop_threshold_pct"]
        below_peers = peer_avg > 0 and fact < rule["peer_ratio"] * peer_avg
        if below_history or below_peers:
            priority = min(rule["max_priority"], abc_weight + gap / 100 * 10 + drop * 0.2)
            if below_history:
                reason = f"Volume down {drop:.0f}% vs the prior period"
            else:
                reason = f"Volume {fact:,.0f} vs peer average {peer_avg:,.0f} (gap {gap:,.0f})"
            actions.append(_action(client, "growth", priority, reason))

    return actions


def generate_next_best_actions(
    buckets: list[SalesBucket],
    churn_metrics: list[ChurnMetric],
    is_item_visible: Callable[[str], bool] | None = None,
    limit: int | None = None,
) -> list[SuggestedAction]:
    """
    Ranked, deduplicated actions, highest priority first.
    `is_item_visible` is called with each action's `task_id`.
    """
    churn_by_client = {m.client_id: m for m in churn_metrics}
    best: dict[tuple[str, str], SuggestedAction] = {}

    for bucket in buckets:
        facts = [c.fact or 0 for c in bucket.clients]
        peer_avg = sum(facts) / len(facts) if facts else 0.0
        for client in bucket.clients:
            for action in _client_actions(client, churn_by_client.get(client.key), peer_avg):
                key = (action.client_id, action.type)
                current = best.get(key)
                if current is None or action.priority_score > current.priority_score:
                    best[key] = action

    actions = sorted(best.values(), key=lambda a: (-a.priority_score, a.client_id, a.type))
    if is_item_visible is not None:
        actions = [a for a in actions if is_item_visible(a.task_id)]
    logger.debug("Next best actions: %d (from %d candidates)", len(actions), len(best))
    if limit is not None:
        actions = actions[:limit]
    return actions


def build_visibility_predicate(
    decisions: Iterable[TaskDecision],
    now: datetime | None = None,
) -> Callable[[str], bool]:
    """
    Visibility filter over recorded task decisions.
    Deleted items stay hidden; snoozed items reappear once the snooze expires.
    """
    by_target: dict[str, TaskDecision] = {}
    for d in decisions:
        by_target.setdefault(d.target_id, d)
    moment = now or datetime.now()

    def is_item_visible(target_id: str) -> bool:
        task = by_target.get(target_id)
        if task is None:
            return True
        if task.type == "delete":
            return False
        if task.type == "snooze":
            return not (task.snooze_until is not None and moment < task.snooze_until)
        return True

    return is_item_visible
