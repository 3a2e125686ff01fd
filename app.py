"""
Stake Indicators Dashboard: Interactive App

Run with:  streamlit run app.py
"""

import logging
import sys
import time
from datetime import date
from pathlib import Path

import pandas as pd
import plotly.graph_objects as go
import streamlit as st

sys.path.insert(0, str(Path(__file__).resolve().parent))

from stake_dashboard.backend import AuthError, BackendError, create_client
from stake_dashboard.config import (
    APP_TITLE,
    DEFAULT_TARGET_YEAR,
    HISTORY_PAGE_SIZES,
    MESSAGES,
    NARRATIVE_WEBHOOK_URL,
    STAKE_NAME,
    TARGET_YEARS,
)
from stake_dashboard.dashboard import (
    get_indicator_cards,
    get_latest_week,
    get_period_summary,
    get_target_overview,
    get_ward_ranking,
    navigate_week,
)
from stake_dashboard.entry import EntryDraft, EntryForm, EntryState, quick_link, visible_indicators
from stake_dashboard.fetch_guard import RequestTracker
from stake_dashboard.history import ConfirmationRequired, EntryValidationError, HistoryFilters, HistoryLedger
from stake_dashboard.loaders import (
    load_indicators,
    load_observations,
    load_recent_entries,
    load_report_rows,
    load_targets,
    load_wards,
)
from stake_dashboard.narrative import build_payload, iter_reveal, request_analysis
from stake_dashboard.periods import PERIOD_CHOICES, week_end, week_label, week_start
from stake_dashboard.ranking import rank_position, rank_tier
from stake_dashboard.report import (
    PRINT_CSS,
    build_report,
    export_csv,
    export_filename,
    export_xlsx,
    report_window,
)
from stake_dashboard.targets import org_target_totals, ward_progress

# ---------------------------------------------------------------------------
# Page config
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title=f"{STAKE_NAME} Dashboard",
    page_icon="📊",
    layout="wide",
    initial_sidebar_state="expanded",
)

STATUS_COLORS = {
    "green": "#2ecc71",
    "amber": "#f39c12",
    "red": "#e74c3c",
    "grey": "#95a5a6",
}
PRIMARY = "#105970"
TIER_LABELS = {"top": "🟢 Top third", "middle": "🟡 Middle", "bottom": "🔴 Bottom third", "none": "-"}

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------
def get_client():
    if "client" not in st.session_state:
        st.session_state.client = create_client()
    return st.session_state.client


def get_tracker() -> RequestTracker:
    if "tracker" not in st.session_state:
        st.session_state.tracker = RequestTracker()
    return st.session_state.tracker


def guarded_fetch(region: str, fetch, *args):
    """Run a fetch for a UI region; None when a newer fetch superseded it."""
    return get_tracker().run(region, fetch, *args)


# ---------------------------------------------------------------------------
# Data loading (cached per user, keyed on the period and filters)
# ---------------------------------------------------------------------------
@st.cache_data(ttl=300)
def cached_catalog(user_id: str, _client):
    return load_indicators(_client), load_wards(_client)


@st.cache_data(ttl=60)
def cached_observations(user_id: str, end: date, _client):
    return load_observations(_client, end=end)


@st.cache_data(ttl=300)
def cached_targets(user_id: str, year: int, _client):
    return load_targets(_client, year)


@st.cache_data(ttl=60)
def cached_report_rows(user_id: str, start: date, end: date, _client):
    return load_report_rows(_client, start, end)


def refresh_data() -> None:
    st.cache_data.clear()


def fmt_num(val) -> str:
    if val is None or pd.isna(val):
        return "-"
    return f"{val:,.0f}"


# ---------------------------------------------------------------------------
# Helper: indicator card
# ---------------------------------------------------------------------------
def indicator_card(label: str, value, secondary: str, color: str = PRIMARY):
    st.markdown(
        f"""
        <div style="background: linear-gradient(135deg, {color}22, {color}11);
                    border-left: 4px solid {color};
                    border-radius: 8px; padding: 16px; margin-bottom: 8px;">
            <div style="font-size: 13px; color: #888; font-weight: 600; text-transform: uppercase;">{label}</div>
            <div style="font-size: 28px; font-weight: 700; color: #222; margin: 4px 0;">{fmt_num(value)}</div>
            <div style="font-size: 13px; color: #666;">{secondary}</div>
        </div>
        """,
        unsafe_allow_html=True,
    )


# ===========================================================================
# PAGE: Login
# ===========================================================================
def login_page(client) -> None:
    st.title(APP_TITLE)
    st.caption(STAKE_NAME)
    with st.form("login"):
        email = st.text_input("E-mail")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign in")
    if submitted:
        try:
            client.sign_in(email, password)
        except AuthError:
            st.error(MESSAGES["login_failed"])
            return
        except BackendError:
            st.error(MESSAGES["load_failed"])
            return
        refresh_data()
        st.rerun()


# ===========================================================================
# PAGE: Dashboard
# ===========================================================================
def dashboard_page(client, indicators, wards) -> None:
    st.title("Dashboard")

    if "anchor" not in st.session_state:
        st.session_state.anchor = get_latest_week(client)

    # Week navigator
    nav_prev, nav_label, nav_next = st.columns([1, 4, 1])
    with nav_prev:
        if st.button("◀ Previous week"):
            st.session_state.anchor = navigate_week(st.session_state.anchor, -1)
    with nav_next:
        if st.button("Next week ▶"):
            st.session_state.anchor = navigate_week(st.session_state.anchor, 1)
    anchor = st.session_state.anchor
    with nav_label:
        st.markdown(
            f"**{week_label(anchor)}** &nbsp; "
            f"{week_start(anchor):%d/%m/%Y} to {week_end(anchor):%d/%m/%Y}"
        )

    year = st.sidebar.selectbox(
        "Target year", TARGET_YEARS, index=TARGET_YEARS.index(DEFAULT_TARGET_YEAR),
    )
    uid = client.user_id
    observations = guarded_fetch("observations", cached_observations, uid, date.today(), client)
    targets = guarded_fetch("targets", cached_targets, uid, year, client)
    if observations is None or targets is None:
        return
    week_obs = observations[observations["week_start"] <= pd.Timestamp(week_end(anchor))]

    # Indicator cards
    cards = get_indicator_cards(indicators, week_obs, wards, org_target_totals(targets, indicators), anchor)
    cols = st.columns(4)
    for i, card in enumerate(cards):
        with cols[i % 4]:
            indicator_card(card["display_name"], card["value"], card["secondary"])

    st.divider()

    # Period summary and ranking
    st.subheader("Period Summary")
    period = st.selectbox(
        "Period", list(PERIOD_CHOICES), format_func=PERIOD_CHOICES.get, index=0,
    )
    summary = get_period_summary(indicators, observations, wards, period)
    if not summary.empty:
        start, end = summary.iloc[0]["start"], summary.iloc[0]["end"]
        st.caption(f"{start:%d/%m/%Y} to {end:%d/%m/%Y}")
        display = summary[[
            "display_name", "aggregation_method", "total",
            "best_ward", "best_value", "worst_ward", "worst_value",
        ]].copy()
        for col in ("total", "best_value", "worst_value"):
            display[col] = display[col].apply(fmt_num)
        st.dataframe(display, use_container_width=True, hide_index=True)

        chosen = st.selectbox(
            "Ranking for indicator", indicators["id"],
            format_func=dict(zip(indicators["id"], indicators["display_name"])).get,
        )
        ind = indicators[indicators["id"] == chosen].iloc[0]
        ranked = get_ward_ranking(ind, observations, wards, period)
        if not ranked.empty:
            fig = go.Figure(go.Bar(
                x=ranked["score"],
                y=ranked["ward_name"],
                orientation="h",
                marker_color=PRIMARY,
                text=ranked["value"].apply(fmt_num),
                textposition="outside",
            ))
            fig.update_layout(
                height=360,
                xaxis_title="Per 1,000 members",
                yaxis=dict(autorange="reversed"),
                plot_bgcolor="rgba(0,0,0,0)",
                margin=dict(l=10, r=10, t=10, b=40),
            )
            st.plotly_chart(fig, use_container_width=True)

    st.divider()

    # Targets
    st.subheader(f"Targets {year}")
    overview = get_target_overview(indicators, wards, targets)
    st.dataframe(overview.map(fmt_num), use_container_width=True)

    # Ward progress and narrative
    st.subheader("Ward Progress")
    ward_id = st.selectbox(
        "Ward", wards["id"], format_func=dict(zip(wards["id"], wards["name"])).get,
    )
    progress = ward_progress(ward_id, year, indicators, observations, targets)
    cols = st.columns(4)
    for i, row in progress.iterrows():
        with cols[i % 4]:
            color = STATUS_COLORS[row["status"]]
            target = fmt_num(row["target"]) if row["target"] else "no target"
            indicator_card(
                row["display_name"], row["current_value"],
                f"{row['progress_percent']}% of {target} &nbsp;|&nbsp; gap {fmt_num(row['gap'])}",
                color,
            )

    with st.expander("Narrative analysis"):
        if st.button("Generate analysis"):
            ward_name = wards.loc[wards["id"] == ward_id, "name"].iloc[0]
            with st.spinner("Analysing..."):
                text = request_analysis(NARRATIVE_WEBHOOK_URL, build_payload(ward_name, progress))
            placeholder = st.empty()
            for chunk in iter_reveal(text, step=4):
                placeholder.markdown(chunk)
                time.sleep(0.01)


# ===========================================================================
# PAGE: Entry
# ===========================================================================
def entry_page(client, indicators, wards) -> None:
    st.title("New Entry")
    form = EntryForm(client, indicators, wards)
    selectable = visible_indicators(indicators)

    col1, col2 = st.columns(2)
    with col1:
        ward_id = st.selectbox(
            "Ward", wards["id"], format_func=dict(zip(wards["id"], wards["name"])).get,
        )
    with col2:
        indicator_id = st.selectbox(
            "Indicator", selectable["id"],
            format_func=dict(zip(selectable["id"], selectable["display_name"])).get,
        )

    ind = selectable[selectable["id"] == indicator_id].iloc[0]
    ward_name = wards.loc[wards["id"] == ward_id, "name"].iloc[0]
    link = quick_link(ind["slug"], ward_name)
    if link:
        st.markdown(f"[Open source page for {ward_name}]({link})")

    with st.form("entry", clear_on_submit=False):
        week = st.date_input("Week (Sunday)", value=week_start(date.today()), format="DD/MM/YYYY")
        value = st.number_input("Value", min_value=0.0, step=1.0, value=None)
        paired_value = None
        membership = None
        paired = form.paired_indicator(indicator_id)
        if paired is not None:
            paired_value = st.number_input(paired["display_name"], min_value=0.0, step=1.0, value=None)
        if form.updates_membership(indicator_id):
            membership = st.number_input("Ward membership (optional)", min_value=0, step=1, value=None)
        submitted = st.form_submit_button("Save")

    if submitted:
        draft = EntryDraft(
            ward_id=ward_id, indicator_id=indicator_id, value=value, week_start=week,
            paired_value=paired_value, membership_count=membership,
        )
        result = form.submit(draft)
        if result.state is EntryState.SUCCESS:
            st.success(result.message)
            refresh_data()
        elif result.state is EntryState.PARTIAL:
            st.warning(result.message)
            refresh_data()
        else:
            st.error(result.message)

    st.subheader("Recent entries")
    try:
        recent = guarded_fetch("recent", load_recent_entries, client)
    except BackendError:
        st.error(MESSAGES["load_failed"])
        return
    if recent is None:
        return
    if recent.empty:
        st.caption("No entries yet.")
    else:
        recent = recent.assign(week_start=recent["week_start"].dt.strftime("%d/%m/%Y"))
        st.dataframe(recent[["ward_name", "indicator_name", "week_start", "value"]],
                     use_container_width=True, hide_index=True)


# ===========================================================================
# PAGE: History
# ===========================================================================
def history_page(client, indicators, wards) -> None:
    st.title("History")
    ledger = HistoryLedger(client)

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        ward_ids = st.multiselect(
            "Wards", wards["id"], format_func=dict(zip(wards["id"], wards["name"])).get,
        )
    with col2:
        indicator_ids = st.multiselect(
            "Indicators", indicators["id"],
            format_func=dict(zip(indicators["id"], indicators["display_name"])).get,
        )
    with col3:
        weeks = ledger.week_options()
        week_labels = {d: label for d, label in weeks}
        selected_week = st.selectbox(
            "Week", [None] + [d for d, _ in weeks],
            format_func=lambda d: "All weeks" if d is None else week_labels[d],
        )
    with col4:
        page_size = st.selectbox("Rows per page", HISTORY_PAGE_SIZES)

    created = st.date_input("Entered between", value=(), format="DD/MM/YYYY")
    created_from = created[0] if len(created) > 0 else None
    created_to = created[1] if len(created) > 1 else created_from

    # any filter change goes back to the first page
    signature = (tuple(ward_ids), tuple(indicator_ids), selected_week, page_size, created_from, created_to)
    if st.session_state.get("history_signature") != signature:
        st.session_state.history_signature = signature
        st.session_state.history_page = 1

    page = st.session_state.history_page
    filters = HistoryFilters(
        ward_ids=ward_ids, indicator_ids=indicator_ids, week_start=selected_week,
        created_from=created_from, created_to=created_to,
        page=page, page_size=page_size,
    )
    try:
        result = guarded_fetch("history", ledger.fetch, filters)
    except BackendError:
        st.error(MESSAGES["load_failed"])
        return
    if result is None:
        return

    if result.rows.empty:
        st.info("No entries match the filters.")
    else:
        table = result.rows.assign(
            week=result.rows["week_start"].dt.strftime("%d/%m/%Y"),
            created=result.rows["created_at"].dt.strftime("%d/%m/%Y"),
        )
        st.dataframe(
            table[["ward_name", "indicator_name", "week_label", "week", "value", "created"]],
            use_container_width=True, hide_index=True,
        )

    prev_col, info_col, next_col = st.columns([1, 4, 1])
    with prev_col:
        if st.button("◀", disabled=not result.has_previous):
            st.session_state.history_page = page - 1
            st.rerun()
    with info_col:
        st.caption(f"Page {result.page} of {result.page_count} ({result.total_count} entries)")
    with next_col:
        if st.button("▶", disabled=not result.has_next):
            st.session_state.history_page = page + 1
            st.rerun()

    if result.rows.empty:
        return

    st.subheader("Edit or delete")
    labels = {
        row["id"]: f"{row['ward_name']} | {row['indicator_name']} | {row['week_start']:%d/%m/%Y}"
        for _, row in result.rows.iterrows()
    }
    entry_id = st.selectbox("Entry", list(labels), format_func=labels.get)
    row = result.rows[result.rows["id"] == entry_id].iloc[0]

    with st.form("edit"):
        new_value = st.number_input("Value", min_value=0.0, step=1.0, value=float(row["value"]))
        new_week = st.date_input("Week (Sunday)", value=row["week_start"].date(), format="DD/MM/YYYY")
        confirm = st.checkbox("I confirm I want to delete this entry")
        save_col, delete_col = st.columns(2)
        with save_col:
            save = st.form_submit_button("Save changes")
        with delete_col:
            delete = st.form_submit_button("Delete")

    try:
        if save:
            ledger.update_entry(entry_id, new_value, new_week)
            refresh_data()
            st.rerun()
        if delete:
            ledger.delete_entry(entry_id, confirmed=confirm)
            refresh_data()
            st.rerun()
    except EntryValidationError as exc:
        st.error(str(exc))
    except ConfirmationRequired as exc:
        st.warning(str(exc))
    except BackendError:
        st.error(MESSAGES["generic_error"])


# ===========================================================================
# PAGE: Report
# ===========================================================================
def report_page(client) -> None:
    st.markdown(PRINT_CSS, unsafe_allow_html=True)
    today = date.today()
    start, end = report_window(today)
    rows = cached_report_rows(client.user_id, start, end, client)

    st.title(f"{STAKE_NAME}: Report")
    st.caption(f"{start:%d/%m/%Y} to {end:%d/%m/%Y}")

    if rows.empty:
        st.info(f"No data in the last {(end - start).days} days.")
        return

    csv_col, xlsx_col, _ = st.columns([1, 1, 4])
    with csv_col:
        st.download_button("CSV", export_csv(rows), file_name=export_filename(today), mime="text/csv")
    with xlsx_col:
        st.download_button(
            "Excel", export_xlsx(rows), file_name=export_filename(today, "xlsx"),
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )
    st.caption("Use your browser's print (Ctrl+P) for a PDF.")

    report = build_report(rows)

    cols = st.columns(3)
    cols[0].metric("Wards", len(report["wards"]))
    cols[1].metric("Members", fmt_num(report["membership_total"]))
    cols[2].metric("Weeks", len(report["weeks"]))

    # Summary table
    st.subheader("Summary by indicator")
    summary = pd.DataFrame([
        {
            "Indicator": ind["display_name"],
            "Method": ind["aggregation_method"],
            "Responsibility": ind["responsibility"],
            "Stake total": fmt_num(ind["total"]),
            "Best": f"{ind['best']['name']} ({fmt_num(ind['best']['value'])})",
            "Worst": f"{ind['worst']['name']} ({fmt_num(ind['worst']['value'])})",
        }
        for ind in report["indicators"]
    ])
    st.dataframe(summary, use_container_width=True, hide_index=True)

    # Weekly charts
    st.subheader("Weekly trends")
    for ind in report["indicators"]:
        if not ind["chart"]:
            continue
        weekly = ind["weekly"]
        fig = go.Figure()
        for ward_name in weekly.columns:
            fig.add_trace(go.Scatter(
                x=weekly.index, y=weekly[ward_name], name=ward_name, mode="lines+markers",
            ))
        fig.update_layout(
            title=ind["display_name"],
            height=320,
            xaxis=dict(tickformat="%d/%m"),
            plot_bgcolor="rgba(0,0,0,0)",
            margin=dict(l=10, r=10, t=40, b=30),
        )
        st.plotly_chart(fig, use_container_width=True)

    # Per-ward sections
    st.subheader("By ward")
    for _, ward in report["wards"].iterrows():
        st.markdown(f"<div class='report-section'><h4>{ward['name']}</h4></div>", unsafe_allow_html=True)
        lines = []
        for ind in report["indicators"]:
            by_ward = ind["by_ward"]
            match = by_ward[by_ward["ward_id"] == ward["id"]]
            position, total = rank_position(by_ward, ward["id"])
            lines.append({
                "Indicator": ind["short_name"],
                "Value": fmt_num(match.iloc[0]["value"]) if not match.empty else "-",
                "Rank": f"#{position} of {total}" if position else "-",
                "Tier": TIER_LABELS[rank_tier(position, total)],
            })
        st.dataframe(pd.DataFrame(lines), use_container_width=True, hide_index=True)


# ---------------------------------------------------------------------------
# Sidebar and routing
# ---------------------------------------------------------------------------
try:
    client = get_client()
except BackendError as exc:
    st.error(f"Backend is not configured: {exc}")
    st.stop()

if not client.is_authenticated:
    login_page(client)
    st.stop()

st.sidebar.title(APP_TITLE)
st.sidebar.markdown(STAKE_NAME)
st.sidebar.divider()

page = st.sidebar.radio("Navigate", ["Dashboard", "Entry", "History", "Report"])

st.sidebar.divider()
if st.sidebar.button("Refresh data"):
    refresh_data()
if st.sidebar.button("Sign out"):
    client.sign_out()
    st.session_state.clear()
    st.rerun()

try:
    indicators, wards = cached_catalog(client.user_id, client)
except BackendError:
    st.error(MESSAGES["load_failed"])
    st.stop()

try:
    if page == "Dashboard":
        dashboard_page(client, indicators, wards)
    elif page == "Entry":
        entry_page(client, indicators, wards)
    elif page == "History":
        history_page(client, indicators, wards)
    elif page == "Report":
        report_page(client)
except AuthError:
    logger.exception("Session rejected by the backend")
    client.sign_out()
    st.session_state.clear()
    st.error(MESSAGES["session_expired"])
except BackendError:
    logger.exception("Failed to render %s", page)
    st.error(MESSAGES["load_failed"])
