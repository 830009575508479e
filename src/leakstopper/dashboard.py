# src/leakstopper/dashboard.py
"""
Streamlit dashboard for customer leak analysis and win-back messages.
"""

import asyncio
from dataclasses import replace

import matplotlib.pyplot as plt
import seaborn as sns
import streamlit as st

from leakstopper import config
from leakstopper.bucket_analysis import analyze_bucket, format_currency, get_health_status
from leakstopper.data_prep import CSVParseError, parse_customer_csv
from leakstopper.messaging import (
    MessageGenerationError,
    create_generator,
    get_sector_info,
    run_message_requests,
)
from leakstopper.models import RISK_FILTERS, SECTORS, FilterOptions
from leakstopper.state import customer_choices, load_state, resolve_api_key, save_state

RISK_PALETTE = {
    "critical": "#e74c3c",
    "high": "#e67e22",
    "medium": "#f1c40f",
    "low": "#2ecc71",
}

st.set_page_config(page_title="LeakStopper", layout="wide")

st.title("LeakStopper: Customer Leak Dashboard")
st.markdown("Find the customers who stopped buying and win the valuable ones back.")

if "app_state" not in st.session_state:
    st.session_state.app_state = load_state()
state = st.session_state.app_state

# --- sidebar: filters, sector, message provider ---
with st.sidebar:
    st.header("Filters")
    threshold_days = st.slider(
        "Inactive for more than (days)",
        config.THRESHOLD_SLIDER_MIN,
        config.THRESHOLD_SLIDER_MAX,
        state.slider_threshold_days,
    )
    min_spending = st.number_input(
        "Minimum lifetime revenue", min_value=0.0, value=float(state.filters.min_spending)
    )
    risk_level = st.selectbox(
        "Minimum risk level", RISK_FILTERS, index=RISK_FILTERS.index(state.filters.risk_level)
    )

    st.header("Messaging")
    sector = st.selectbox(
        "Sector",
        SECTORS,
        index=SECTORS.index(state.sector),
        format_func=lambda s: f"{get_sector_info(s)['icon']} {get_sector_info(s)['label']}",
    )
    company_name = st.text_input("Company name", value=state.company_name)
    providers = list(config.DEFAULT_MODELS)
    provider = st.radio("Provider", providers, index=providers.index(state.provider))
    if provider != state.provider:
        state = state.with_provider(provider)
    model_name = st.text_input("Model", value=state.model_name)

filters = FilterOptions(
    threshold_days=threshold_days, min_spending=min_spending, risk_level=risk_level
)

# --- upload ---
uploaded = st.file_uploader("Upload customer export (CSV)", type=["csv"])
customers = state.customers
if uploaded is not None:
    try:
        customers = tuple(parse_customer_csv(uploaded).customers)
    except CSVParseError as exc:
        st.error(str(exc))
        st.stop()

new_state = replace(
    state,
    model_name=model_name,
    company_name=company_name,
    sector=sector,
    filters=filters,
    customers=customers,
)
if new_state != st.session_state.app_state:
    save_state(new_state)
    st.session_state.app_state = new_state

analysis = analyze_bucket(list(customers), filters)
if analysis is None:
    st.info("Upload a CSV export to start. Columns are detected automatically.")
    st.stop()

# --- summary metrics ---
status = get_health_status(analysis.bucket_health)
col1, col2, col3, col4 = st.columns(4)
col1.metric("Total Customers", analysis.total_customers)
col2.metric("Leaked", analysis.leaked_customers, f"{analysis.leak_rate}%", delta_color="inverse")
col3.metric("Lost Revenue", format_currency(analysis.lost_revenue))
col4.metric(
    "Bucket Health",
    f"{analysis.bucket_health}/100",
    f"{status.emoji} {status.label}",
    delta_color="off",
)
st.progress(min(1.0, analysis.leak_velocity / config.MAX_LEAK_VELOCITY), text="Leak velocity")

df = analysis.to_frame()
if df.empty:
    st.success("No leaked customers match the current filters.")
    st.stop()

# --- Leak score distribution (Seaborn + Matplotlib) ---
st.subheader("Leak Score Distribution")

fig, ax = plt.subplots(figsize=(8, 4))
sns.histplot(
    data=df,
    x="leak_score",
    bins=20,
    hue="risk_level",
    multiple="stack",
    palette=RISK_PALETTE,
    edgecolor="black",
    ax=ax,
)
ax.set_xlabel("Leak Score")
ax.set_ylabel("Customer Count")
ax.set_title("Distribution of Leaked Customer Scores")
st.pyplot(fig)

# --- ranked targets ---
st.subheader("🚨 Top Reclamation Targets")
st.dataframe(
    df[
        [
            "name",
            "email",
            "leak_score",
            "risk_level",
            "days_since_last_purchase",
            "total_revenue",
            "estimated_lost_revenue",
        ]
    ]
)

st.subheader("✉️ Win-back Message")
by_id = {c.id: c for c in analysis.top_leaked_customers}
labels = customer_choices(analysis.top_leaked_customers)
choice = st.selectbox("Customer", list(labels), format_func=labels.__getitem__)

if st.button("Generate message"):
    customer = by_id[choice]
    try:
        generator = create_generator(
            new_state.provider, resolve_api_key(new_state.provider), model_name
        )
        with st.spinner(f"Writing a message for {customer.name}..."):
            outcomes = asyncio.run(
                run_message_requests(generator, [customer], sector, company_name or None)
            )
        outcome = outcomes[customer.id]
        if isinstance(outcome, BaseException):
            raise outcome
    except MessageGenerationError as exc:
        st.error(f"{exc.guidance} ({exc})")
    else:
        if outcome.subject:
            st.markdown(f"**Subject:** {outcome.subject}")
        st.text_area("Message", outcome.message, height=200)
        if outcome.call_to_action:
            st.caption(outcome.call_to_action)
