import json
import logging
import os
from dataclasses import asdict
from datetime import date, datetime, timedelta

import pandas as pd
import streamlit as st

import settings
from actions import build_visibility_predicate, generate_next_best_actions
from aggregation import assign_abc_categories, build_buckets, collect_clients, okb_counts_from_frame
from anomalies import MIN_POPULATION, analyze_contributions, detect_outliers
from churn import calculate_churn_metrics
from coverage import calculate_coverage_metrics
from metric_definitions import get_metric_definitions
from models import TaskDecision
from planning import enrich_with_plan, quarterly_split
from region_matcher import build_region_metrics, find_control_candidates, projected_lift
from template_report import generate_template_report

logger = logging.getLogger(__name__)

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DATA_DIR = os.path.join(BASE_DIR, "data")
OUTPUT_DIR = os.path.join(BASE_DIR, "outputs")
REPORTS_DIR = os.path.join(OUTPUT_DIR, "reports")


def ensure_output_dirs():
    for d in [OUTPUT_DIR, REPORTS_DIR]:
        os.makedirs(d, exist_ok=True)


def load_default_dataset() -> tuple[pd.DataFrame | None, str]:
    path = os.path.join(DATA_DIR, "sales.csv")
    if os.path.isfile(path):
        return pd.read_csv(path), os.path.basename(path)
    return None, ""


def get_run_id() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def buckets_to_frame(buckets) -> pd.DataFrame:
    return pd.DataFrame([
        {
            "RM": b.owner,
            "Region": b.region,
            "Brand": b.brand,
            "Packaging": b.packaging,
            "Fact": round(b.fact, 2),
            "Plan": round(b.potential, 2),
            "Growth %": round(b.growth_pct, 1),
            "Clients": len(b.clients),
        }
        for b in buckets
    ])


def records_to_frame(records) -> pd.DataFrame:
    return pd.DataFrame([asdict(r) for r in records])


def save_report(run_id: str, report: str) -> str:
    ensure_output_dirs()
    path = os.path.join(REPORTS_DIR, f"territory_report_{run_id}.md")
    with open(path, "w", encoding="utf-8") as f:
        f.write(report)
    return path


def init_session_state():
    defaults = {
        "task_decisions": [],
        "selected_region": "",
    }
    for k, v in defaults.items():
        if k not in st.session_state:
            st.session_state[k] = v


def _render_actions(actions):
    if not actions:
        st.info("No actions pending.")
        return
    for a in actions:
        cols = st.columns([6, 1, 1])
        with cols[0]:
            st.markdown(f"**[{a.type}] {a.client_name or a.client_id}**: {a.reason}")
            st.caption(f"{a.recommended_step} · priority {a.priority_score:.0f} · RM {a.owner}")
        with cols[1]:
            if st.button("Done", key=f"del_{a.client_id}_{a.type}"):
                st.session_state.task_decisions.append(TaskDecision(a.task_id, "delete", "done"))
                st.rerun()
        with cols[2]:
            if st.button("Snooze 7d", key=f"snz_{a.client_id}_{a.type}"):
                until = datetime.now() + timedelta(days=7)
                st.session_state.task_decisions.append(TaskDecision(a.task_id, "snooze", "later", until))
                st.rerun()


def main():
    st.set_page_config(page_title="Territory Analytics", layout="wide", initial_sidebar_state="expanded")
    ensure_output_dirs()
    init_session_state()

    df = None
    okb_counts: dict[str, int] = {}
    with st.sidebar:
        st.markdown("### Settings")
        st.divider()

        default_df, default_name = load_default_dataset()
        uploaded = st.file_uploader("Sales CSV", type=["csv"], key="sales_uploader")
        if uploaded:
            df = pd.read_csv(uploaded)
            st.caption(f"**{uploaded.name}** ({len(df):,} rows)")
        elif default_df is not None:
            df = default_df
            st.caption(f"**{default_name}** ({len(df):,} rows)")

        okb_file = st.file_uploader("Registry (OKB) CSV", type=["csv"], key="okb_uploader")
        if okb_file:
            try:
                okb_counts = okb_counts_from_frame(pd.read_csv(okb_file))
            except ValueError as e:
                st.error(str(e))

        st.divider()
        base_rate = st.number_input("Base growth rate, %", value=settings.get_base_rate(), step=1.0)
        risk_level = st.selectbox(
            "Risk appetite", settings.RISK_LEVELS, index=settings.RISK_LEVELS.index(settings.get_risk_level())
        )
        default_z, default_extreme = settings.get_anomaly_thresholds()
        z_threshold = st.slider("Outlier |z| threshold", 1.0, 4.0, float(default_z), 0.1)
        today = st.date_input("As of", value=date.today())

        with st.expander("Metric definitions", expanded=False):
            for name, defn in get_metric_definitions().items():
                st.markdown(f"**{name}**")
                st.caption(defn["formula"])

    st.title("Territory Analytics")
    st.caption("Aggregation → **Plan** · **Anomalies** · **Churn** → **Next best actions**")

    if df is None:
        st.info("Upload a sales CSV in the sidebar.")
        return

    try:
        buckets = build_buckets(df)
    except ValueError as e:
        st.error(str(e))
        return

    owners = sorted({b.owner for b in buckets})
    owner = st.selectbox("RM", ["All"] + owners)
    if owner != "All":
        buckets = [b for b in buckets if b.owner == owner]

    buckets = assign_abc_categories(buckets)
    buckets = enrich_with_plan(buckets, okb_counts, base_rate=base_rate, risk_level=risk_level)
    clients = collect_clients(buckets)
    outliers = detect_outliers(buckets, threshold=z_threshold, extreme_threshold=max(z_threshold, default_extreme))
    churn_metrics = calculate_churn_metrics(clients, today=today)
    is_visible = build_visibility_predicate(st.session_state.task_decisions)
    actions = generate_next_best_actions(buckets, churn_metrics, is_visible, limit=settings.get_action_limit())
    coverage = calculate_coverage_metrics(clients, okb_counts) if okb_counts else []

    tab_plan, tab_anom, tab_churn, tab_nba, tab_exp, tab_report = st.tabs(
        ["Plan", "Anomalies", "Churn Radar", "Next Best Actions", "Experiments", "Report"]
    )

    with tab_plan:
        plan_df = buckets_to_frame(buckets)
        st.dataframe(plan_df, width="stretch")
        total_plan = float(plan_df["Plan"].sum()) if not plan_df.empty else 0.0
        st.caption("Quarterly split: " + " · ".join(f"{q}: {v:,.0f}" for q, v in quarterly_split(total_plan).items()))
        with st.expander("Growth factors (structured JSON)", expanded=False):
            st.json({b.label: asdict(b.plan.factors) for b in buckets if b.plan})
        if coverage:
            st.markdown("**Coverage gaps**")
            st.dataframe(records_to_frame(coverage), width="stretch")

    with tab_anom:
        with_sales = sum(1 for b in buckets if b.fact > 0)
        if with_sales < MIN_POPULATION:
            st.info(f"Outlier detection needs at least {MIN_POPULATION} buckets with sales ({with_sales} in view).")
        elif not outliers:
            st.success("No statistical outliers.")
        for o in outliers:
            with st.expander(f"{o.bucket.label} ({o.bucket.owner}) z={o.z_score:+.2f}", expanded=False):
                st.caption(o.reason)
                st.dataframe(pd.DataFrame([
                    {"Client": r.client.name, "Fact": r.fact, "Share %": round(r.contribution_pct, 1), "Diagnosis": r.diagnosis}
                    for r in analyze_contributions(o)
                ]), width="stretch")

    with tab_churn:
        churn_df = records_to_frame([m for m in churn_metrics if is_visible(f"{m.client_id}:churn")])
        if churn_df.empty:
            st.info("No client has a dated sales history.")
        else:
            st.dataframe(churn_df, width="stretch")

    with tab_nba:
        _render_actions(actions)

    with tab_exp:
        regions = build_region_metrics(buckets)
        names = [r.name for r in regions]
        if len(names) < 2:
            st.info("At least two regions are needed for a control group.")
        else:
            target_name = st.selectbox("Test region", names)
            target = next(r for r in regions if r.name == target_name)
            st.metric("Projected lift", f"{projected_lift(target):+.1f}%")
            st.dataframe(records_to_frame(find_control_candidates(target_name, regions)), width="stretch")

    with tab_report:
        report = generate_template_report(buckets, outliers, churn_metrics, actions, coverage)
        st.markdown(report.replace("\n", "  \n"))
        run_id = get_run_id()
        st.download_button(
            "Download report",
            data=report,
            file_name=f"territory_report_{run_id}.md",
            mime="text/markdown",
            key="dl_report",
        )
        if st.button("Save to outputs/", key="save_report_btn"):
            path = save_report(run_id, report)
            st.success(f"Saved to {path}")
        with st.expander("Actions (structured JSON)", expanded=False):
            st.code(json.dumps([asdict(a) for a in actions], indent=2, ensure_ascii=False), language="json")


if __name__ == "__main__":
    main()
