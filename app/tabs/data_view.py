import streamlit as st

from movekit.analyze import TemporalAnalyzer

def show_data():

    st.caption("""Sampling summary and location overview for every animal in the uploaded file.
All animals share one local projection, so distances on the plots are in meters (or kilometers).""")

    merged = st.session_state["merged"]
    chart_maker = st.session_state["chart_maker"]

    with st.container(border=True):
        st.markdown("<b><u>Sampling Summary</u></b>", unsafe_allow_html=True)
        st.dataframe(merged.info[["identity", "start", "end", "n_fixes", "interval", "duration", "path_length"]], hide_index=True)

    st.plotly_chart(chart_maker.create_location_overview(merged), width="stretch", key="overview_fig")

    cols = st.columns(2, border=True)
    with cols[0]:
        st.plotly_chart(chart_maker.create_location_facets(merged), width="stretch", key="facet_fig")
    with cols[1]:
        st.plotly_chart(chart_maker.create_sampling_histogram(merged), width="stretch", key="sampling_fig")

    identities = [tele.identity for tele in st.session_state["tele_list"]]
    identity = st.selectbox("Animal", options=identities, key="data_animal")
    tele = next(tele for tele in st.session_state["tele_list"] if tele.identity == identity)

    gap_thresh = st.slider("Gap threshold (hours)", min_value=1, max_value=168, value=24)
    gaps = TemporalAnalyzer(gap_thresh=gap_thresh).identify_gaps(tele)
    if gaps:
        st.plotly_chart(chart_maker.create_gaps_gantt(gaps, identity, gap_thresh), width="stretch", key="gaps_fig")
    else:
        st.write(f"No sampling gaps longer than {gap_thresh} hours.")

    with st.container(border=True):
        st.subheader("Fixes by Date")
        st.pyplot(chart_maker.create_calendar_heatmap(tele))
