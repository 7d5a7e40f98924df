import streamlit as st

from movekit.batch import par_try_models, par_variograms
from movekit.models import CANDIDATE_MODELS

def show_models():

    st.caption("""Variograms show how far an animal typically moves as the time lag grows; a plateau means range-resident behavior.
Candidate movement models are fitted to every animal in parallel and ranked by AICc.""")

    chart_maker = st.session_state["chart_maker"]
    tele_list = st.session_state["tele_list"]
    batch_configs = st.session_state["batch_configs"]

    with st.sidebar:
        specs = st.multiselect("Candidate models", options=list(CANDIDATE_MODELS), default=list(CANDIDATE_MODELS))
        fit = st.button("Fit Models")

    if st.session_state["variograms"] is None:
        st.session_state["variograms"] = par_variograms(tele_list, **batch_configs)

    if fit and specs:
        with st.spinner("Fitting movement models..."):
            st.session_state["selections"] = par_try_models(tele_list, specs=tuple(specs), **batch_configs)
        st.session_state["home_ranges"] = None
        st.session_state["occurrences"] = None

    identity = st.selectbox("Animal", options=[tele.identity for tele in tele_list], key="model_animal")
    fraction = st.slider("Variogram zoom (fraction of max lag)", min_value=0.05, max_value=1.0, value=0.5, step=0.05)

    selection = None if st.session_state["selections"] is None else st.session_state["selections"][identity]
    models = [] if selection is None else selection.models[:2]

    variogram = st.session_state["variograms"][identity]
    st.plotly_chart(chart_maker.create_variogram_plot(variogram, models, fraction), width="stretch", key="variogram_fig")

    if selection is None:
        st.info("Select candidate models and press `Fit Models` in the sidebar.")
        return

    cols = st.columns([2, 1], border=True)
    with cols[0]:
        st.markdown("<b><u>Model Comparison</u></b>", unsafe_allow_html=True)
        st.dataframe(selection.table(), hide_index=True)
    with cols[1]:
        st.plotly_chart(chart_maker.create_model_comparison_chart(selection), width="stretch", key="aicc_fig")
