from __future__ import annotations

import math

import numpy as np
import pytest

from movekit.models import CANDIDATE_MODELS, MovementModel, chisq_ci, parse_spec


def test_parse_spec():
    assert parse_spec("OUF anisotropic") == ("OUF", False)
    assert parse_spec("ou isotropic") == ("OU", True)
    assert parse_spec("IID") == ("IID", False)
    assert len(CANDIDATE_MODELS) == 6

    for bad in ("BM", "OU sideways", "OU isotropic extra"):
        with pytest.raises(ValueError):
            parse_spec(bad)


def test_model_validates_family_and_timescales():
    with pytest.raises(ValueError):
        MovementModel("BM", True, [0, 0], 1.0)
    with pytest.raises(ValueError):
        MovementModel("OU", True, [0, 0], 1.0, tau=(1.0, 2.0))


def test_isotropic_model_ignores_minor_axis_and_angle():
    model = MovementModel("OU", True, [0, 0], 4.0, sigma_minor=1.0, angle=1.0, tau=(10.0,))
    assert model.sigma_minor == 4.0
    assert model.angle == 0.0
    assert model.name == "OU isotropic"
    assert model.k == 4
    np.testing.assert_allclose(model.sigma, 4.0 * np.eye(2))


def test_anisotropic_covariance_rotation():
    model = MovementModel("IID", False, [0, 0], 9.0, sigma_minor=1.0, angle=math.pi / 2)
    np.testing.assert_allclose(model.sigma, [[1.0, 0.0], [0.0, 9.0]], atol=1e-12)
    assert model.k == 5
    assert model.sigma_mean == 5.0


def test_aicc():
    model = MovementModel("OUF", False, [0, 0], 4.0, 1.0, tau=(100.0, 10.0), loglik=-50.0, n=20)
    k, N = 7, 40
    assert model.k == k
    assert model.aicc == pytest.approx(2 * k + 100.0 + 2 * k * (k + 1) / (N - k - 1))

    tiny = MovementModel("OUF", False, [0, 0], 4.0, 1.0, tau=(100.0, 10.0), loglik=-5.0, n=3)
    assert tiny.aicc == math.inf


def test_svf_shapes():
    ou = MovementModel("OU", True, [0, 0], 100.0, tau=(10.0,), error_var=5.0)
    assert ou.svf(0.0) == 0.0
    assert ou.svf(10.0) == pytest.approx(100.0 * (1 - math.exp(-1)) + 5.0)
    assert ou.svf(1e6) == pytest.approx(105.0)

    iid = MovementModel("IID", True, [0, 0], 100.0)
    np.testing.assert_allclose(iid.svf([0.0, 1.0, 50.0]), [0.0, 100.0, 100.0])

    ouf = MovementModel("OUF", True, [0, 0], 100.0, tau=(10.0, 2.0))
    lag = np.array([0.0, 0.1, 1.0, 10.0, 1000.0])
    gamma = ouf.svf(lag)
    assert np.all(np.diff(gamma) > 0)
    # ballistic at short lags: gamma ~ sigma / (tau_p tau_v) * lag² / 2
    assert gamma[1] == pytest.approx(100.0 / 20.0 * 0.01 / 2, rel=0.1)


def test_ouf_svf_continuous_at_equal_timescales():
    equal = MovementModel("OUF", True, [0, 0], 100.0, tau=(10.0, 10.0))
    near = MovementModel("OUF", True, [0, 0], 100.0, tau=(10.0, 10.0 * (1 + 1e-6)))
    lag = np.array([1.0, 5.0, 20.0])
    np.testing.assert_allclose(equal.svf(lag), near.svf(lag), rtol=1e-4)


def test_area_speed_diffusion_and_effective_size():
    model = MovementModel("OUF", False, [0, 0], 4e6, 1e6, tau=(86400.0, 3600.0), n=1000, duration=10 * 86400.0)
    assert model.area(0.95) == pytest.approx(-2 * math.log(0.05) * math.pi * 2e6)
    assert model.speed() == pytest.approx(math.sqrt(math.pi / 2) * math.sqrt(2.5e6 / (86400.0 * 3600.0)))
    assert model.diffusion() == pytest.approx(2.5e6 / 86400.0)
    assert model.n_eff() == pytest.approx(10.0)

    low, est, high = model.area_ci()
    assert low < est < high

    with pytest.raises(ValueError):
        model.area(1.0)

    iid = MovementModel("IID", True, [0, 0], 1.0, n=50)
    assert iid.speed() is None
    assert iid.diffusion() is None
    assert iid.n_eff() == 50.0
    assert MovementModel("OU", True, [0, 0], 1.0, tau=(10.0,), n=50, duration=1.0).n_eff() == 2.0


def test_summary_keys():
    model = MovementModel("OU", True, [0, 0], 1.0, tau=(10.0,), loglik=-3.0, n=30, duration=300.0, identity="a")
    summary = model.summary()
    assert summary["identity"] == "a"
    assert summary["model"] == "OU isotropic"
    assert summary["tau_velocity"] is None
    assert summary["speed"] is None


def test_chisq_ci():
    low, est, high = chisq_ci(10.0, 20.0)
    assert low < 10.0 < high
    wide = chisq_ci(10.0, 2.0)
    assert wide[0] < low and wide[2] > high

    low, est, high = chisq_ci(10.0, 0.0)
    assert math.isnan(low) and math.isnan(high) and est == 10.0
