"""
Rule-based markdown report over the analytics outputs.
"""

from models import ChurnMetric, CoverageMetric, OutlierRecord, SalesBucket, SuggestedAction

TOP_N = 5


def generate_template_report(
    buckets: list[SalesBucket],
    outliers: list[OutlierRecord],
    churn_metrics: list[ChurnMetric],
    actions: list[SuggestedAction],
    coverage: list[CoverageMetric] | None = None,
) -> str:
    sections = []

    total_fact = sum(b.fact for b in buckets)
    total_plan = sum(b.plan.plan if b.plan else b.fact for b in buckets)
    sections.append("## 1. Overview")
    sections.append(
        f"{len(buckets)} region/brand buckets with total volume {total_fact:,.0f}. "
        f"Planned volume {total_plan:,.0f}."
    )
    if total_fact > 0:
        sections.append(f"Implied growth: {(total_plan / total_fact - 1) * 100:+.1f}%.")
    sections.append("")

    sections.append("## 2. Growth Targets")
    planned = [b for b in buckets if b.plan is not None]
    if planned:
        for b in sorted(planned, key=lambda x: x.growth_potential, reverse=True)[:TOP_N]:
            f = b.plan.factors
            sections.append(
                f"- {b.label} ({b.owner}): {b.fact:,.0f} -> {b.potential:,.0f} "
                f"({b.growth_pct:+.1f}%; base {f.base:.1f}, share {f.share:+.1f}, "
                f"width {f.width:+.1f}, velocity {f.velocity:+.1f}, acquisition {f.acquisition:.0f})"
            )
    else:
        sections.append("No plan has been calculated.")
    sections.append("")

    sections.append("## 3. Anomalies")
    if outliers:
        for o in outliers[:TOP_N]:
            label = "EXTREME" if o.is_extreme else "ATTENTION"
            sections.append(f"- {o.bucket.label} ({o.bucket.owner}): {label}: {o.reason}")
    else:
        sections.append("No statistical outliers detected.")
    sections.append("")

    sections.append("## 4. Churn Radar")
    at_risk = [m for m in churn_metrics if m.risk_level in ("High", "Critical")]
    if at_risk:
        sections.append(f"{len(at_risk)} clients at High or Critical risk.")
        for m in at_risk[:TOP_N]:
            sections.append(
                f"- {m.client_name or m.client_id}: {m.risk_level.upper()} ({m.risk_score:.0f}), "
                f"{m.days_since_last_order} days silent, volume drop {m.volume_drop_pct:.0f}%"
            )
    else:
        sections.append("No clients at High or Critical churn risk.")
    sections.append("")

    if coverage:
        sections.append("## 5. Coverage Gaps")
        for c in coverage[:TOP_N]:
            sections.append(
                f"- {c.region}: {c.active_count}/{c.okb_count} covered ({c.coverage_pct:.1f}%), gap {c.gap}"
            )
        sections.append("")

    sections.append(f"## {6 if coverage else 5}. Next Best Actions")
    if actions:
        for i, a in enumerate(actions[:TOP_N], start=1):
            sections.append(
                f"{i}. [{a.type}] {a.client_name or a.client_id}: {a.reason}. {a.recommended_step}"
            )
    else:
        sections.append("No actions pending.")

    return "\n".join(sections)
