import logging
import time
import warnings

import pandas as pd
import streamlit as st

# Suppress pandas dtype warning
warnings.filterwarnings("ignore", category=pd.errors.DtypeWarning)

# Suppress tornado WebSocketClosedError logs
logging.getLogger("tornado.application").setLevel(logging.ERROR)

from io_utils.readers import load_table
from io_utils.writers import LOCATIONS_FILE, NAMES_FILE, export_selection, link_report_frame, records_to_csv
from matching.cluster import deduplicate, similar_address_clusters
from matching.errors import DedupeError
from matching.extract import detect_column_mapping, extract_from_tables, primary_table_index
from matching.link import link_orders
from matching.models import AddressMode, ColumnMapping
from matching.normalize import KeyStrategy
from merge.survivorship import most_common_name, split_names_and_locations
from standardize.client import health_check
from standardize.orchestrator import StandardizationOrchestrator

st.set_page_config(layout="wide", page_title="Customer Dedupe Dashboard")
st.title("🧹 Customer Extract, Dedupe & Standardize")

st.sidebar.header("📁 Upload order / commission files")
uploads = st.sidebar.file_uploader("CSV or Excel", type=["csv", "xlsx", "xls"], accept_multiple_files=True)
strategy = st.sidebar.radio(
    "Duplicate key",
    [KeyStrategy.LOOSE.value, KeyStrategy.STRICT.value],
    format_func=lambda v: "Name + full address" if v == KeyStrategy.LOOSE.value else "Name + address 1 + city",
)
require_address = st.sidebar.checkbox("🚫 Skip rows without any address", value=False)


@st.cache_data(ttl=60)
def service_health():
    return health_check()


health = service_health()
if health["status"] == "healthy":
    st.sidebar.success("✅ Standardization API ready")
else:
    st.sidebar.warning("⚠️ Standardization API not available, local fallback only")

NONE = "— none —"


def mapping_editor(table, key_prefix):
    """Column pickers prefilled by auto-detection."""
    detected = detect_column_mapping(table.headers)
    options = [NONE, *table.headers]

    def pick(label, current, key):
        index = options.index(current) if current in options else 0
        value = st.selectbox(label, options, index=index, key=f"{key_prefix}_{key}")
        return None if value == NONE else value

    mode = st.radio("Address format", [AddressMode.COMPONENTS.value, AddressMode.SINGLE.value],
                    index=0 if detected.address_mode == AddressMode.COMPONENTS else 1,
                    horizontal=True, key=f"{key_prefix}_mode")
    mapping = ColumnMapping(customer_name=pick("Customer name", detected.customer_name, "name"),
                            address_mode=AddressMode(mode))
    if mapping.address_mode == AddressMode.SINGLE:
        mapping.single_address = pick("Full address", detected.single_address, "single")
    else:
        cols = st.columns(5)
        for col, (label, attr) in zip(cols, [("Address 1", "address1"), ("Address 2", "address2"),
                                              ("City", "city"), ("State", "state"), ("Zip", "zip")]):
            with col:
                setattr(mapping, attr, pick(label, getattr(detected, attr), attr))
    return mapping


tables = []
if uploads:
    for i, upload in enumerate(uploads):
        table = load_table(upload)
        with st.expander(f"🗂️ {table.name} ({len(table.rows)} rows)", expanded=True):
            mapping = mapping_editor(table, f"file{i}")
            if not mapping.is_ready:
                st.warning("Map a customer name column and at least one address column.")
        tables.append((table, mapping))

if tables and st.sidebar.button("🚀 Run Deduplication"):
    ready = [(t, m) for t, m in tables if m.is_ready]
    if not ready:
        st.error("No file has a usable column mapping.")
    else:
        start = time.time()
        with st.spinner("Extracting and deduplicating..."):
            try:
                records = extract_from_tables(ready, primary=primary_table_index([t for t, _ in ready]),
                                              require_address=require_address)
            except DedupeError as exc:
                st.error(str(exc))
                records = []
            result = deduplicate(records, KeyStrategy(strategy))
        st.success(f"✅ Deduplication took {time.time() - start:.2f} seconds")
        st.session_state["result"] = result

result = st.session_state.get("result")

# ---- DISPLAY RESULTS ----
if result is not None:
    st.subheader(f"📋 {len(result.records)} records, {len(result.unique)} unique, {len(result.groups)} duplicate groups")
    col1, col2 = st.columns(2)
    with col1:
        show_duplicates = st.checkbox("Show duplicates", value=True)
    with col2:
        show_incomplete = st.checkbox("Show records with missing address parts", value=True)

    view = result.records if show_duplicates else result.selected
    if not show_incomplete:
        view = [r for r in view if r.has_complete_address]
    st.dataframe(pd.DataFrame([r.to_row() for r in view]))

    if result.groups:
        with st.expander(f"🔗 Duplicate Groups ({len(result.groups)})"):
            for group in result.groups:
                label = most_common_name(group.members)
                with st.expander(f"{label} ({len(group)} records, confidence {group.confidence:.2f})"):
                    st.dataframe(pd.DataFrame([m.to_row() for m in group.members]))

    similar = similar_address_clusters(result.records)
    if similar:
        with st.expander(f"🏷️ Similar Addresses ({len(similar)} clusters)"):
            for members in similar:
                st.dataframe(pd.DataFrame([m.to_row() for m in members]))

    # ---- Standardize ----
    selection = export_selection(result, include_incomplete=show_incomplete, include_duplicates=show_duplicates)
    if st.button(f"✨ Standardize {len(selection)} selected records", disabled=health["status"] != "healthy"):
        bar = st.progress(0)
        try:
            orchestrator = StandardizationOrchestrator.from_settings()
        except DedupeError as exc:
            st.error(str(exc))
        else:
            orchestrator.standardize_records(selection, on_progress=bar.progress)
            failed = sum(1 for r in selection if r.standardization and r.standardization.error)
            st.success(f"Standardized {len(selection)} records ({failed} with local fallback).")

    # ---- Export ----
    names, locations = split_names_and_locations(selection)
    col1, col2 = st.columns(2)
    with col1:
        st.download_button(f"⬇️ {NAMES_FILE} ({len(names)})", records_to_csv(names), NAMES_FILE, mime="text/csv")
    with col2:
        if locations:
            st.download_button(f"⬇️ {LOCATIONS_FILE} ({len(locations)})", records_to_csv(locations),
                               LOCATIONS_FILE, mime="text/csv")

# ---- Order / commission linking ----
if len(tables) == 2:
    raw_tables = [t for t, _ in tables]
    orders_at = primary_table_index(raw_tables)
    orders, commissions = raw_tables[orders_at], raw_tables[1 - orders_at]
    with st.expander(f"🔗 Link {orders.name} → {commissions.name}"):
        if st.button("Link orders to commissions"):
            st.session_state["links"] = link_orders(orders, commissions)
        links = st.session_state.get("links")
        if links is not None:
            stats = links.statistics
            c1, c2, c3 = st.columns(3)
            c1.metric("Linked", stats["matches"], f"{stats['matchRate']}%")
            c2.metric("Needs review", stats["needsReview"], f"{stats['reviewRate']}%")
            c3.metric("Unmatched", stats["unmatched"], f"{stats['unmatchedRate']}%")
            report = link_report_frame(links)
            st.dataframe(report)
            st.download_button("⬇️ order_links.csv", report.to_csv(index=False), "order_links.csv", mime="text/csv")
