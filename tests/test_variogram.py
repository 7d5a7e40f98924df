from __future__ import annotations

import numpy as np
import pytest

from movekit.models import empirical_variogram

from conftest import telemetry_from_xy


@pytest.fixture
def line_tele():
    return telemetry_from_xy("line", [0, 3600, 7200, 10800], [0, 10, 20, 30], [0, 0, 0, 0], error=[2.0, 2.0, 2.0, 2.0])


def test_empirical_variogram_by_hand(line_tele):
    vg = empirical_variogram(line_tele)

    np.testing.assert_allclose(vg.lag, [0, 3600, 7200, 10800])
    np.testing.assert_allclose(vg.svf, [0, 25, 100, 225], rtol=1e-6)
    np.testing.assert_allclose(vg.dof, [4, 3, 2, 1])
    assert vg.dt == 3600
    assert vg.error_var == pytest.approx(4.0)
    assert vg.identity == "line"


def test_variogram_bins_irregular_lags():
    tele = telemetry_from_xy("a", [0, 3000, 7500], [0, 10, 30], [0, 0, 0])
    vg = empirical_variogram(tele, dt=3600)
    # 3000 and 4500 s both round to the first bin; 7500 s to the second
    np.testing.assert_allclose(vg.lag, [0, 3600, 7200])
    np.testing.assert_allclose(vg.dof, [3, 2, 1])
    np.testing.assert_allclose(vg.svf, [0, (100 + 400) / 8, 900 / 4], rtol=1e-6)


def test_variogram_max_lag_and_zoom(line_tele):
    vg = empirical_variogram(line_tele, max_lag=7200)
    assert len(vg) == 3

    zoomed = empirical_variogram(line_tele).zoom(0.5)
    np.testing.assert_allclose(zoomed.lag, [0, 3600])
    assert list(zoomed.to_frame().columns) == ["lag", "svf", "dof"]

    with pytest.raises(ValueError):
        vg.zoom(0.0)


def test_variogram_rejects_bad_bin_width(line_tele):
    with pytest.raises(ValueError):
        empirical_variogram(line_tele, dt=0)


def test_variogram_plateaus_for_range_resident_track(ou_tele):
    vg = empirical_variogram(ou_tele).zoom(0.3)
    plateau = vg.svf[vg.lag > 10 * 3 * 3600].mean()
    assert 0.5e6 < plateau < 2e6
