import streamlit as st
from streamlit_folium import folium_static

from movekit.visualize import MapMaker

def show_map():
    st.subheader("Map")

    merged = st.session_state["merged"]
    chart_maker = st.session_state["chart_maker"]

    map_maker = MapMaker.from_merged(merged)
    map_maker.add_tracks(merged, colors=chart_maker.color_map(merged.data["identity"].cat.categories))
    map_maker.add_heatmap(merged.data[["lat", "lon"]].to_numpy().tolist())

    if st.session_state["flags"] is not None and st.session_state["flags"].any():
        map_maker.add_outliers(st.session_state["measured"], st.session_state["flags"])

    if st.session_state["home_ranges"] is not None:
        for ud in st.session_state["home_ranges"].values():
            map_maker.add_distribution(ud, levels=(0.95,))

    map_maker.add_layer_control()

    folium_static(
        map_maker.m,
        width=1200,
        height=600
    )
