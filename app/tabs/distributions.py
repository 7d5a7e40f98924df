import json
import streamlit as st

from movekit.batch import par_hrange_each, par_occur

def show_distributions():

    st.caption("""Home ranges (where an animal spends its time) and occurrence distributions (where it was during sampling)
are estimated from each animal's best movement model.""")

    if st.session_state["selections"] is None:
        st.info("Home ranges become available after fitting models in the `Models` tab.")
        return

    chart_maker = st.session_state["chart_maker"]
    tele_list = st.session_state["tele_list"]
    selections = st.session_state["selections"]
    batch_configs = st.session_state["batch_configs"]

    if st.session_state["home_ranges"] is None:
        with st.spinner("Estimating home ranges..."):
            st.session_state["home_ranges"] = par_hrange_each(tele_list, selections, **batch_configs)
    if st.session_state["occurrences"] is None:
        with st.spinner("Estimating occurrence distributions..."):
            st.session_state["occurrences"] = par_occur(tele_list, selections, **batch_configs)

    levels = tuple(sorted(st.multiselect("Contour levels", options=[0.5, 0.8, 0.9, 0.95, 0.99], default=[0.5, 0.95])))
    identity = st.selectbox("Animal", options=[tele.identity for tele in tele_list], key="dist_animal")
    tele = next(tele for tele in tele_list if tele.identity == identity)

    home_range = st.session_state["home_ranges"][identity]
    occurrence = st.session_state["occurrences"][identity]

    if levels:
        st.dataframe(home_range.summary(levels), hide_index=True)

    cols = st.columns(2, border=True)
    with cols[0]:
        st.plotly_chart(chart_maker.create_distribution_plot(home_range, tele, levels), width="stretch", key="hr_fig")
    with cols[1]:
        st.plotly_chart(chart_maker.create_distribution_plot(occurrence, tele, levels), width="stretch", key="occ_fig")

    if levels:
        st.download_button(
            "Download home-range contours (GeoJSON)",
            data=json.dumps(home_range.to_geojson(levels=levels)),
            file_name=f"home_range_{identity}.geojson",
            mime="application/geo+json",
        )
