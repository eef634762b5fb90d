"""
Log File Analyzer
=================
A Streamlit app that finds runs of consecutive "failure" rows in an uploaded
delimited log file, summarizes each run as a failure block and exports the
blocks as CSV.
"""

import hashlib
import logging

import streamlit as st

from failure_blocks import (
    DEFAULT_DATE_INDEX,
    DEFAULT_STATUS_INDEX,
    DEFAULT_TIME_INDEX,
    DELIMITERS,
    EXPORT_FILENAME,
    AnalyzerConfig,
    Condition,
    analyze,
    blocks_to_frame,
    to_csv,
)

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

INPUT_MODES = {
    "Fixed column positions": False,
    "Header row (Date / Time / Status)": True,
}

ERROR_CONDITIONS = (
    Condition.MISSING_COLUMNS,
    Condition.PARSE_ERROR,
    Condition.LIBRARY_UNAVAILABLE,
)


def upload_signature(name: str, data: bytes, config: AnalyzerConfig) -> str:
    """Identity of an upload + settings pair; results for any other signature are stale."""
    digest = hashlib.md5(data)
    digest.update(name.encode())
    digest.update(repr(config).encode())
    return digest.hexdigest()


def sidebar_config() -> AnalyzerConfig:
    with st.sidebar:
        st.title("⚙️ Settings")

        mode_choice = st.radio(
            "Input format",
            options=list(INPUT_MODES.keys()),
            index=0,
            help="Read columns by position, or look them up by header name.",
        )
        header_mode = INPUT_MODES[mode_choice]

        delimiter_choice = st.selectbox(
            "Delimiter",
            options=list(DELIMITERS.keys()),
            index=0,
        )

        time_index, status_index, date_index = (
            DEFAULT_TIME_INDEX,
            DEFAULT_STATUS_INDEX,
            DEFAULT_DATE_INDEX,
        )
        if not header_mode:
            st.divider()
            st.markdown("**Column positions** (0-based)")
            time_index = st.number_input("Time column", min_value=0, value=DEFAULT_TIME_INDEX)
            status_index = st.number_input("Status column", min_value=0, value=DEFAULT_STATUS_INDEX)
            date_index = st.number_input("Date column", min_value=0, value=DEFAULT_DATE_INDEX)
            st.caption("Rows without a date get today's date (DD-MM-YYYY).")

    return AnalyzerConfig(
        header_mode=header_mode,
        time_index=int(time_index),
        status_index=int(status_index),
        date_index=int(date_index),
        delimiter=DELIMITERS[delimiter_choice],
    )


def main():
    st.set_page_config(
        page_title="Log File Analyzer",
        page_icon="📄",
        layout="centered",
    )

    config = sidebar_config()

    # -- Header --------------------------------------------------------
    st.title("Log File Analyzer")

    uploaded_file = st.file_uploader(
        "Upload CSV File",
        type=["csv", "txt", "log"],
        help="A delimited log file with date, time and status columns.",
    )
    st.caption('Please ensure your CSV includes "Date", "Time", and "Status" columns.')

    if uploaded_file is None:
        st.session_state.pop("result", None)
        st.session_state.pop("_upload_sig", None)
        st.info("👆 Upload a log file to get started.")
        st.stop()

    st.markdown(f"Selected file: **{uploaded_file.name}**")

    # -- Analyze -------------------------------------------------------
    data = uploaded_file.getvalue()
    upload_sig = upload_signature(uploaded_file.name, data, config)
    if st.session_state.get("_upload_sig") != upload_sig:
        st.session_state.pop("result", None)
        logger.info("Analyzing %s (%d bytes)", uploaded_file.name, len(data))
        result = analyze(data, config)
        st.session_state["result"] = result
        st.session_state["_upload_sig"] = upload_sig

    result = st.session_state["result"]

    if result.condition in ERROR_CONDITIONS:
        st.error(result.message)
        st.stop()

    if result.condition is Condition.NO_FAILURES_FOUND:
        st.warning(result.message)
        st.stop()

    # -- Display Results ------------------------------------------------
    st.divider()
    col_rows, col_blocks = st.columns(2)
    col_rows.metric("Rows Read", f"{result.row_count:,}")
    col_blocks.metric("Failure Blocks", len(result.blocks))

    st.subheader("Processed Log Entries")
    st.dataframe(blocks_to_frame(result.blocks), use_container_width=True, hide_index=True)

    # -- Export --------------------------------------------------------
    st.download_button(
        "⬇️  Download CSV",
        data=to_csv(result.blocks).encode("utf-8"),
        file_name=EXPORT_FILENAME,
        mime="text/csv",
        use_container_width=True,
    )


if __name__ == "__main__":
    main()
