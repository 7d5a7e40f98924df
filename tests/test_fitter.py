from __future__ import annotations

import logging
import math

import numpy as np
import pytest

import movekit.models.fitter as fitter_module
from movekit.models import ModelSelection, MovementModel, fit_model, guess_model, try_models

from conftest import telemetry_from_xy


def test_guess_model(ou_tele):
    guess = guess_model(ou_tele)
    np.testing.assert_allclose(guess["mu"], ou_tele.xy().mean(axis=0))
    assert guess["sigma_major"] >= guess["sigma_minor"] > 0
    assert -math.pi / 2 <= guess["angle"] < math.pi / 2
    assert 0.2 * 3 * 3600 < guess["tau_position"] < 5 * 3 * 3600
    assert guess["tau_velocity"] == min(ou_tele.interval, guess["tau_position"] / 10)


def test_iid_isotropic_fit_matches_closed_form(iid_tele):
    model = fit_model(iid_tele, "IID isotropic")
    xy = iid_tele.xy()
    assert model.family == "IID" and model.isotropic
    np.testing.assert_allclose(model.mu, xy.mean(axis=0), rtol=1e-3, atol=1.0)
    assert model.sigma_major == pytest.approx(np.var(xy, axis=0).mean(), rel=1e-3)


def test_iid_anisotropic_fit_recovers_orientation(iid_tele):
    model = fit_model(iid_tele, "IID anisotropic")
    assert model.sigma_major == pytest.approx(4e6, rel=0.25)
    assert model.sigma_minor == pytest.approx(1e6, rel=0.25)
    assert abs(math.sin(model.angle)) < 0.2
    assert model.identity == "iid"
    assert model.n == 200


def test_ou_fit_recovers_parameters(ou_tele):
    model = fit_model(ou_tele, "OU isotropic")
    assert 0.5 * 3 * 3600 < model.tau_position < 2 * 3 * 3600
    assert 0.6e6 < model.sigma_major < 1.6e6

    low, est, high = model.param_ci["tau_position"]
    assert est == pytest.approx(model.tau_position)
    assert low <= est <= high


def test_ou_selected_over_iid(ou_tele):
    selection = try_models(ou_tele, specs=("OU isotropic", "IID isotropic"))
    assert selection.best.name == "OU isotropic"
    assert selection.identity == "ou"


def test_ouf_selected_for_smooth_track(ouf_tele):
    selection = try_models(ouf_tele, specs=("OUF isotropic", "OU isotropic"))
    best = selection.best
    assert best.name == "OUF isotropic"
    assert best.tau_position >= best.tau_velocity
    assert 0.5 * 3600 < best.tau_velocity < 2 * 3600
    assert 6 * 3600 / 3 < best.tau_position < 6 * 3600 * 3
    assert best.speed() > 0


def test_model_selection_table(ou_tele):
    selection = try_models(ou_tele, specs=("OU isotropic", "IID isotropic", "IID anisotropic"))
    table = selection.table()

    assert list(table.columns) == ModelSelection._TABLE_COLS
    assert table.loc[0, "dAICc"] == 0.0
    assert table["dAICc"].is_monotonic_increasing
    assert table.loc[0, "model"] == selection.best.name
    assert selection["IID isotropic"].family == "IID"
    with pytest.raises(KeyError):
        selection["OUF anisotropic"]


def test_try_models_rejects_unknown_spec(ou_tele):
    with pytest.raises(ValueError):
        try_models(ou_tele, specs=("OU isotropic", "BM"))


def test_model_selection_requires_models():
    with pytest.raises(RuntimeError):
        ModelSelection("a", [])


def test_model_selection_sorts_by_aicc():
    better = MovementModel("OU", True, [0, 0], 1.0, tau=(10.0,), loglik=-10.0, n=50)
    worse = MovementModel("IID", True, [0, 0], 1.0, loglik=-40.0, n=50)
    selection = ModelSelection("a", [worse, better])
    assert selection.best is better


def test_try_models_skips_failed_fits(ou_tele, monkeypatch, caplog):
    real_fit = fitter_module.fit_model

    def fit(tele, spec, guess=None):
        if spec == "IID isotropic":
            raise np.linalg.LinAlgError("singular covariance")
        return real_fit(tele, spec, guess)

    monkeypatch.setattr(fitter_module, "fit_model", fit)
    with caplog.at_level(logging.WARNING, logger="movekit.models.fitter"):
        selection = try_models(ou_tele, specs=("OU isotropic", "IID isotropic"))

    assert [m.name for m in selection.models] == ["OU isotropic"]
    assert "Skipping IID isotropic model for 'ou'" in caplog.text

    monkeypatch.setattr(fitter_module, "fit_model", lambda tele, spec, guess=None: fit(tele, "IID isotropic", guess))
    with pytest.raises(RuntimeError):
        try_models(ou_tele, specs=("OU isotropic", "IID isotropic"))


def test_repeated_timestamps_do_not_break_fitting():
    t = [0, 0, 0, 3600, 3600, 3600, 7200]
    tele = telemetry_from_xy("dup", t, [0, 40, -30, 500, 520, 480, 100], [0, 20, 10, -200, -180, -220, 50])
    assert tele.interval == 0

    guess = guess_model(tele)
    assert guess["tau_velocity"] <= 3600
    assert guess["tau_position"] > 0

    selection = try_models(tele, specs=("IID isotropic", "OU isotropic"))
    assert "IID isotropic" in [m.name for m in selection.models]
