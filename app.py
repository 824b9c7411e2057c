"""
Shift OEE Tracker - Dashboard Application

Fleet OEE, trend and downtime analysis for shift production data:
- OEE = Availability × Performance × Quality
- Fleet figures average every registered machine
- Downtime ranked by cause (Pareto)
"""

import streamlit as st
import logging
from datetime import date

from oee_tracker.config import EngineConfig, load_config, validate_config
from oee_tracker.analysis.dashboard import load_dashboard
from oee_tracker.analysis.fleet import NoMachineDataError
from oee_tracker.time_windows.models import DateRange, get_current_shift
from oee_tracker.ui.metrics_display import display_dashboard, display_no_machine_banner
from oee_tracker.utils.formatting import validate_date_range

# Load configuration
load_config()
engine_config = EngineConfig.from_env()

# Configure logging
logging.basicConfig(
    level=getattr(logging, engine_config.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Validate configuration
config_errors = validate_config()
if config_errors:
    st.error("❌ Configuration errors detected:")
    for error in config_errors:
        st.error(error)
    st.stop()

st.set_page_config(
    page_title="Shift OEE Tracker",
    layout="wide",
    initial_sidebar_state="expanded"
)

st.title("🏭 Shift OEE Tracker")

with st.sidebar:
    st.header("📅 Period")
    period = st.radio("Preset", ["week", "month", "quarter", "custom"], horizontal=True)
    if period == "custom":
        preset = DateRange.preset("week")
        start = st.date_input("Start date", value=preset.start)
        end = st.date_input("End date", value=preset.end)
        date_range = DateRange(start, end)
    else:
        date_range = DateRange.preset(period)

    machine_filter = st.text_input("Machine ID (optional)").strip() or None

    current_shift = get_current_shift(config=engine_config)
    if current_shift is not None:
        st.caption(f"Current shift: {current_shift.shift} (ends {current_shift.end.strftime('%H:%M')})")

    st.divider()
    st.header("ℹ️ About")
    st.markdown(f"""
    - **Target OEE**: {engine_config.target_oee:.0%}
    - **Averaging**: {'output-weighted' if engine_config.weight_by_volume else 'unweighted'}
    - **Zero-record machines**: {'counted' if engine_config.include_zero_record_machines else 'excluded'}
    """)

errors, warnings, is_valid = validate_date_range(date_range.start, date_range.end, date.today())
for warning in warnings:
    st.warning(warning)
if not is_valid:
    for error in errors:
        st.error(error)
    st.stop()

with st.spinner("Loading production data and calculating OEE..."):
    try:
        dashboard = load_dashboard(date_range, machine_filter, engine_config)
    except NoMachineDataError as e:
        logger.warning(f"Dashboard unavailable: {e}")
        display_no_machine_banner(str(e))
        st.stop()

display_dashboard(dashboard, engine_config)
