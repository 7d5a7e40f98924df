import streamlit as st
import tempfile
from pathlib import Path

from movekit.telemetry import MovebankReader, merge_tracks
from movekit.visualize import ChartMaker
from movekit.utils import get_logger, setup_logging, settings
from tabs import *

setup_logging(log_dir=settings.LOG_DIR, level=settings.LOG_LEVEL)

logger = get_logger(__name__)

_STATE_DEFAULTS = {
    # Dashboard
    "source": None,
    "tele_list": None,
    "merged": None,
    "chart_maker": ChartMaker(),
    # Outliers
    "measured": None,
    "flags": None,
    # Models
    "variograms": None,
    "selections": None,
    # Distributions
    "home_ranges": None,
    "occurrences": None,
}

for key, value in _STATE_DEFAULTS.items():
    if key not in st.session_state:
        st.session_state[key] = value

def reset_downstream():
    for key in ["measured", "flags", "variograms", "selections", "home_ranges", "occurrences"]:
        st.session_state[key] = None
    logger.debug("Downstream session-state values cleared / re-assigned `None`.")

st.set_page_config(layout="wide", initial_sidebar_state="expanded")

st.title("Animal Movement Analysis Dashboard")

with st.sidebar:
    uploaded = st.file_uploader("Movebank CSV", type=["csv"])
    parallel = st.toggle("Parallel model fitting", value=settings.PARALLEL)
    cores = st.number_input("Cores (0 = all)", min_value=0, max_value=64, value=settings.CORES or 0)
    st.session_state["batch_configs"] = {"parallel": parallel, "cores": cores or None}

if uploaded is not None and uploaded.name != st.session_state["source"]:
    with tempfile.TemporaryDirectory() as tmp:
        file_path = Path(tmp) / uploaded.name
        file_path.write_bytes(uploaded.getvalue())
        try:
            tele_list = MovebankReader(file_path, cache_dir=Path(tmp) / "cache").read_telemetry(use_cache=False)
        except ValueError as e:
            logger.warning(f"Failed to read {uploaded.name}: {e}")
            st.error(str(e))
            st.stop()

    st.session_state["source"] = uploaded.name
    st.session_state["tele_list"] = tele_list
    st.session_state["merged"] = merge_tracks(tele_list)
    reset_downstream()

    logger.debug(f"Loaded {len(tele_list)} animals from {uploaded.name}.")
    st.rerun()

if st.session_state["merged"] is None:
    st.info("Upload a Movebank CSV in the sidebar to get started.")
    st.stop()

data_tab, outlier_tab, model_tab, dist_tab, map_tab = st.tabs(["Data", "Outliers", "Models", "Home Range", "Map"])

with data_tab:
    show_data()

with outlier_tab:
    show_outliers()

with model_tab:
    show_models()

with dist_tab:
    show_distributions()

with map_tab:
    show_map()
