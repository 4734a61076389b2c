# diagnostics.py

import streamlit as st

from analysis_functions import SAMPLE_KEYS, samples_to_frame

SAMPLE_LABELS = {
    "exp-amzn": "Expected AMZN",
    "exp-temp": "Expected TEMP",
    "exp-tot": "Expected TOTAL",
    "pre-amzn": "Present AMZN",
    "pre-temp": "Present TEMP",
    "pre-tot": "Present TOTAL",
}


def run_reconciliation_diagnostics(result):
    """
    Renders the audit panel for one reconciliation run:

    - Row-count funnel through every filter stage
    - Present-marker histogram from the MyTime feed
    - Top value distributions of the corner-filtered cohort
    - Drill-down into the people behind any bucket count
    """

    st.header("🔍 Verify & Audit")

    if result is None:
        st.warning("No processed data available. Process files first.")
        return

    audit = result.audit
    report = result.report

    # ---------------------------------------------------------------------
    # SECTION 1: Funnel
    # ---------------------------------------------------------------------

    st.markdown("### 🧮 Row Funnel")

    cols = st.columns(3)
    cols[0].metric("ID matches", f"{audit.id_matches} / {audit.funnel_value('After new-hire filter')}")
    cols[1].metric("UNKNOWN types", audit.unknown_types)
    cols[2].metric("Present markers", " / ".join(audit.present_markers))

    st.dataframe(audit.funnel, hide_index=True, use_container_width=True)

    # ---------------------------------------------------------------------
    # SECTION 2: Present markers seen in MyTime
    # ---------------------------------------------------------------------

    st.markdown("### 🏷 On Premises Values (MyTime)")

    if audit.marker_histogram.empty:
        st.info("MyTime feed had no rows.")
    else:
        st.dataframe(audit.marker_histogram, hide_index=True, use_container_width=True)

    # ---------------------------------------------------------------------
    # SECTION 3: Distributions
    # ---------------------------------------------------------------------

    st.markdown("### 📊 Top Values (after corner filter)")

    dist_cols = st.columns(len(audit.distributions))
    for col, (label, table) in zip(dist_cols, audit.distributions.items()):
        with col:
            st.caption(label)
            st.dataframe(table, hide_index=True, use_container_width=True)

    # ---------------------------------------------------------------------
    # SECTION 4: Drill-down
    # ---------------------------------------------------------------------

    st.markdown("### 🔎 Drill-down")

    rows = []
    for name in report.bucket_order:
        exp, pre = report.expected[name], report.present[name]
        rows.append({
            "Dept": name,
            "Exp AMZN": exp.AMZN, "Exp TEMP": exp.TEMP, "Exp TOTAL": exp.TOTAL,
            "Pre AMZN": pre.AMZN, "Pre TEMP": pre.TEMP, "Pre TOTAL": pre.TOTAL,
            "Vac Excl": report.vacation_excluded_by_bucket.get(name, 0),
        })
    st.dataframe(rows, hide_index=True, use_container_width=True)

    col1, col2 = st.columns([1, 1])
    with col1:
        bucket = st.selectbox("Bucket", report.bucket_order, key="drill_bucket")
    with col2:
        sample_key = st.selectbox("Count", SAMPLE_KEYS, format_func=SAMPLE_LABELS.get, key="drill_type")

    sample = audit.samples.get(bucket, {}).get(sample_key, [])
    st.markdown(f"**{bucket} → {SAMPLE_LABELS[sample_key]}** ({len(sample)} rows shown)")
    if sample:
        st.dataframe(samples_to_frame(sample), hide_index=True, use_container_width=True)
    else:
        st.info("(no rows)")
