import logging
from datetime import date
from io import BytesIO

import streamlit as st

# Import classes and functions from other modules
from config import DEFAULT_SHIFT, Settings, describe_corner_codes
from data_processing import people_to_frame
from diagnostics import run_reconciliation_diagnostics
from errors import ReconciliationError
from reconciliation import read_input_files, run_reconciliation
from report_generation import ReportGenerator, Selection, blocks_to_frame


class AppUI:
    """
    Manages the Streamlit user interface for the Headcount Dashboard.
    Orchestrates file intake, the reconciliation run and the result views.
    """

    def __init__(self, settings: Settings):
        """Initializes the AppUI and sets up Streamlit session state variables."""
        self.settings = settings
        if 'uploader_key_counter' not in st.session_state:
            st.session_state.uploader_key_counter = 0
        if 'processed_data_present' not in st.session_state:
            st.session_state.processed_data_present = False
        if 'result_cache' not in st.session_state:
            st.session_state.result_cache = None
        if 'debug_mode' not in st.session_state:
            st.session_state.debug_mode = False
        if 'blocking_error' not in st.session_state:
            st.session_state.blocking_error = None

    def display_main_page(self):
        """Displays the main Streamlit page for the headcount dashboard."""
        st.title("📊 Attendance Headcount Dashboard")
        st.info("⬆️ Upload the Roster and MyTime exports (and optionally the Daily Hours Summary for vacations).")

        shifts = self.settings.shifts or [DEFAULT_SHIFT]
        col1, col2 = st.columns([1, 1])
        with col1:
            selected_date = st.date_input("Date:", value=date.today(), key="date_selection")
        with col2:
            selected_shift = st.selectbox(
                "Shift:",
                options=shifts,
                index=shifts.index(DEFAULT_SHIFT) if DEFAULT_SHIFT in shifts else 0,
                key="shift_selection"
            )

        st.markdown(describe_corner_codes(self.settings, selected_date, selected_shift))

        exclude_new_hires = st.checkbox("Exclude new hires (started less than 3 days ago)", value=False)
        exclude_vacation = st.checkbox("Exclude people on vacation from Expected", value=True)

        key_suffix = st.session_state.uploader_key_counter
        roster_file = st.file_uploader(
            "Roster (.csv, .xls, .xlsx)",
            type=["csv", "xls", "xlsx"],
            key=f"roster_uploader_{key_suffix}"
        )
        mytime_file = st.file_uploader(
            "MyTime export (.csv, .xls, .xlsx); the first line is a title and is skipped",
            type=["csv", "xls", "xlsx"],
            key=f"mytime_uploader_{key_suffix}"
        )
        vacation_file = st.file_uploader(
            "Optional: Daily Hours Summary (vacation / vacation unpaid)",
            type=["csv", "xls", "xlsx"],
            key=f"vacation_uploader_{key_suffix}"
        )

        col1, col2 = st.columns([1, 1])
        with col1:
            generate_button = st.button("🚀 Process", type="primary")
        with col2:
            if st.button("🔄 New Files (Clear and Reset)", key="new_files_button"):
                self._reset_app_state()
                st.rerun()

        st.session_state.debug_mode = st.checkbox("Enable Debug Mode (for diagnostics)", value=st.session_state.debug_mode)

        if generate_button:
            if roster_file is None or mytime_file is None:
                st.warning("Upload both Roster CSV and MyTime CSV.")
            else:
                selection = Selection(
                    selected_date=selected_date,
                    shift=selected_shift,
                    exclude_new_hires=exclude_new_hires,
                    exclude_vacation=exclude_vacation,
                )
                self._process_and_cache_result(roster_file, mytime_file, vacation_file, selection)

        if st.session_state.get('blocking_error'):
            st.error(f"🛑 {st.session_state.blocking_error}")

        if st.session_state.processed_data_present and st.session_state.result_cache is not None:
            self._display_reports()
            self._display_download_buttons()

    def _reset_app_state(self):
        """Resets all relevant session state variables to clear the app."""
        st.session_state.uploader_key_counter += 1
        st.session_state.processed_data_present = False
        st.session_state.result_cache = None
        st.session_state.blocking_error = None

    def _process_and_cache_result(self, roster_file, mytime_file, vacation_file, selection: Selection):
        """
        Reads the files, runs the reconciliation and caches the result in session state.
        Fatal errors are kept in session state and shown above the results.
        """
        st.session_state.processed_data_present = False
        st.session_state.result_cache = None
        st.session_state.blocking_error = None

        with st.spinner("Parsing files…"):
            try:
                roster_df, mytime_df, vacation_df = read_input_files(roster_file, mytime_file, vacation_file)

                if st.session_state.get("debug_mode", False):
                    st.info("DEBUG: Files parsed.")
                    st.write("Roster shape:", roster_df.shape, "MyTime shape:", mytime_df.shape,
                             "Vacation shape:", vacation_df.shape)

                result = run_reconciliation(roster_df, mytime_df, self.settings, selection, vacation_df)
            except ReconciliationError as e:
                logging.warning(f"Reconciliation stopped: {e}")
                st.session_state.blocking_error = str(e)
                return
            except ValueError as e:
                logging.warning(f"File read failed: {e}")
                st.session_state.blocking_error = f"Error processing files. Check CSV headers and try again. ({e})"
                return
            except Exception as e:
                logging.exception(f"Unexpected error during reconciliation: {e}")
                st.session_state.blocking_error = "Error processing files. Check CSV headers and try again."
                return

        st.session_state.result_cache = result
        st.session_state.processed_data_present = True

        if st.session_state.get("debug_mode", False):
            st.info("DEBUG: Cohort after corner and new-hire filters.")
            st.dataframe(people_to_frame([t.person for t in result.report.tagged]), hide_index=True)

    def _display_chips(self, result):
        report = result.report
        expected_total = report.expected_total.TOTAL
        present_total = report.present_total.TOTAL

        cols = st.columns(4)
        cols[0].metric("Day / Shift", f"{result.day_name} / {result.selection.shift}")
        cols[1].metric("Expected Total", expected_total)
        cols[2].metric(
            "Present Total",
            present_total,
            delta=f"{report.present_percentage}%",
            delta_color="normal" if report.status == "ok" else "inverse",
        )
        if result.vacation_supplied:
            cols[3].metric("Vacation excluded", report.vacation_excluded)
        st.markdown("Corners: " + " ".join(f"`{c}`" for c in result.corner_codes))

    def _display_reports(self):
        """Displays the headcount tables and the diagnostics panel in tabs."""
        result = st.session_state.result_cache
        report = result.report

        tab1, tab2 = st.tabs(["Headcount", "Diagnostics"])

        with tab1:
            self._display_chips(result)

            col1, col2 = st.columns([1, 1])
            with col1:
                st.subheader("📋 Expected")
                st.dataframe(blocks_to_frame(report.expected, report.bucket_order), hide_index=True, use_container_width=True)
                st.caption(result.expected_note)
            with col2:
                st.subheader("✅ Present")
                st.dataframe(blocks_to_frame(report.present, report.bucket_order), hide_index=True, use_container_width=True)

            if result.audit.unknown_types:
                st.warning(
                    f"⚠️ {result.audit.unknown_types} people have an UNKNOWN employment type and are not counted in AMZN/TEMP totals."
                )

        with tab2:
            run_reconciliation_diagnostics(result)

    def _display_download_buttons(self):
        """Displays download buttons for the audit rows (CSV) and the full report (Excel)."""
        result = st.session_state.result_cache
        if result.export_df.empty:
            st.info("No audit rows to download.")
            return

        generator = ReportGenerator(self.settings)
        col1, col2 = st.columns([1, 1])
        with col1:
            st.download_button(
                label="💾 Download Audit CSV",
                data=generator.export_to_csv(result.export_df),
                file_name=result.export_filename,
                mime="text/csv"
            )
        with col2:
            output = BytesIO()
            generator.export_to_excel(result.report, result.export_df, output)
            st.download_button(
                label="💾 Download Full Report",
                data=output.getvalue(),
                file_name=result.export_filename.replace(".csv", ".xlsx"),
                mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
            )
