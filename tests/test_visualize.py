from __future__ import annotations

import matplotlib

matplotlib.use("Agg")

import plotly.graph_objects as go
import pytest

from movekit.analyze import OutlierDetector, TemporalAnalyzer
from movekit.models import empirical_variogram, estimate_home_range, try_models
from movekit.telemetry import merge_tracks
from movekit.visualize import ChartMaker, MapMaker


@pytest.fixture
def merged(two_animals):
    return merge_tracks(two_animals)


@pytest.fixture
def chart_maker():
    return ChartMaker()


def test_track_charts(chart_maker, merged):
    for fig in (
        chart_maker.create_location_overview(merged),
        chart_maker.create_location_facets(merged, n_cols=1),
        chart_maker.create_sampling_histogram(merged),
    ):
        assert isinstance(fig, go.Figure)
        assert len(fig.data) >= 2

    assert chart_maker.color_map(["a", "b"]) == {"a": ChartMaker._PALETTE[0], "b": ChartMaker._PALETTE[1]}


def test_sampling_charts(chart_maker, two_animals):
    tele = two_animals[0]
    gaps = TemporalAnalyzer().identify_gaps(tele, gap_thresh=0.5)
    assert isinstance(chart_maker.create_gaps_gantt(gaps, tele.identity, 0.5), go.Figure)
    assert chart_maker.create_calendar_heatmap(tele) is not None


def test_outlier_charts(chart_maker, merged):
    detector = OutlierDetector(speed_thresh=0.5)
    measured = detector.detect(merged)
    flags = detector.flag(measured)

    fig = chart_maker.create_outlier_histogram(measured, "speed", 0.5)
    assert isinstance(fig, go.Figure)
    assert isinstance(chart_maker.create_outlier_scatter(measured, flags), go.Figure)

    with pytest.raises(ValueError):
        chart_maker.create_outlier_histogram(measured, "error")


def test_model_charts(chart_maker, ou_tele):
    selection = try_models(ou_tele, specs=("OU isotropic", "IID isotropic"))

    fig = chart_maker.create_variogram_plot(empirical_variogram(ou_tele), selection.models)
    assert [trace.name for trace in fig.data] == ["Empirical", "OU isotropic", "IID isotropic"]

    assert isinstance(chart_maker.create_model_comparison_chart(selection), go.Figure)

    ud = estimate_home_range(ou_tele, selection.best, grid_size=60)
    fig = chart_maker.create_distribution_plot(ud, ou_tele, levels=(0.5, 0.95))
    assert fig.data[0].type == "heatmap"
    assert fig.data[-1].name == "Fixes"


def test_map_maker(merged, two_animals, tmp_path):
    detector = OutlierDetector(distance_thresh=1500)
    measured = detector.detect(merged)
    flags = detector.flag(measured)

    selection = try_models(two_animals[0], specs=("OU isotropic",))
    ud = estimate_home_range(two_animals[0], selection.best, grid_size=60)

    map_maker = (
        MapMaker.from_merged(merged)
        .add_tracks(merged)
        .add_heatmap(merged.data[["lat", "lon"]].to_numpy().tolist())
        .add_outliers(measured, flags)
        .add_distribution(ud, levels=(0.5, 0.95))
        .add_layer_control()
        .add_layer_control()
    )

    assert set(map_maker.feature_groups) == {
        "Tracks: alpha", "Tracks: beta", "Heat Map", "Outliers", "Home Range: alpha"
    }

    path = map_maker.save(tmp_path / "map.html")
    html = path.read_text()
    assert "leaflet" in html.lower()
    assert html.count("L.control.layers") == 1
