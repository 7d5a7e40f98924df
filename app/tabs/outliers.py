import streamlit as st

from movekit.analyze import OutlierDetector
from movekit.telemetry import merge_tracks

def show_outliers():

    st.caption("""Fixes far from an animal's median center, or fixes reached at implausible speed, are likely GPS errors.
A fix's speed is the smaller of its incoming and outgoing speeds, so only the displaced fix is flagged, not its neighbors.""")

    chart_maker = st.session_state["chart_maker"]

    if st.session_state["measured"] is None:
        st.session_state["measured"] = OutlierDetector().detect(st.session_state["merged"])
    measured = st.session_state["measured"]

    finite_speed = measured["speed"].replace(float("inf"), float("nan")).dropna()
    cols = st.columns(2, border=True)
    with cols[0]:
        distance_thresh = st.number_input(
            "Max distance to center (m)",
            min_value=0.0,
            value=float(measured["distance_center"].max()),
            help="Fixes farther than this from the animal's median center are flagged."
        )
        st.plotly_chart(chart_maker.create_outlier_histogram(measured, "distance_center", distance_thresh), width="stretch", key="distance_fig")
    with cols[1]:
        speed_thresh = st.number_input(
            "Max speed (m/s)",
            min_value=0.0,
            value=float(finite_speed.max()) if len(finite_speed) else 0.0,
            help="Fixes whose incoming and outgoing speeds both exceed this are flagged."
        )
        st.plotly_chart(chart_maker.create_outlier_histogram(measured, "speed", speed_thresh), width="stretch", key="speed_fig")

    detector = OutlierDetector(distance_thresh=distance_thresh, speed_thresh=speed_thresh)
    flags = detector.flag(measured)
    st.session_state["flags"] = flags

    st.plotly_chart(chart_maker.create_outlier_scatter(measured, flags), width="stretch", key="outlier_fig")
    st.dataframe(measured[flags], hide_index=True)

    if flags.any() and st.button(f"Remove {int(flags.sum())} outliers"):
        merged = st.session_state["merged"]
        tele_list = detector.remove(st.session_state["tele_list"], measured[flags])
        st.session_state["tele_list"] = tele_list
        st.session_state["merged"] = merge_tracks(tele_list, projection=merged.projection)
        for key in ["measured", "flags", "variograms", "selections", "home_ranges", "occurrences"]:
            st.session_state[key] = None
        st.rerun()
