from __future__ import annotations

import logging
import os
import threading

import numpy as np
import pytest

import movekit.batch.parallel as parallel_module

from movekit.batch import par_fit_best, par_hrange_each, par_lapply, par_occur, par_try_models, par_variograms
from movekit.models import ModelSelection, MovementModel, empirical_variogram

_SPECS = ("OU isotropic", "IID isotropic")


def test_par_lapply_sequential_preserves_order():
    assert par_lapply([3, 1, 2], str, parallel=False) == ["3", "1", "2"]
    assert par_lapply([], str, parallel=True) == []


def test_par_lapply_process_pool_matches_sequential(two_animals):
    sequential = par_lapply(two_animals, empirical_variogram, parallel=False)
    parallel = par_lapply(two_animals, empirical_variogram, cores=2, parallel=True)
    for a, b in zip(sequential, parallel):
        np.testing.assert_allclose(a.svf, b.svf)
        assert a.identity == b.identity


def test_par_variograms(two_animals):
    variograms = par_variograms(two_animals, dt=7200, parallel=False)
    assert list(variograms) == ["alpha", "beta"]
    assert variograms["alpha"].dt == 7200


def test_par_try_models_and_distributions(two_animals):
    selections = par_try_models(two_animals, specs=_SPECS, parallel=False)
    assert list(selections) == ["alpha", "beta"]
    assert all(isinstance(s, ModelSelection) for s in selections.values())
    assert selections["alpha"].best.name == "OU isotropic"

    home_ranges = par_hrange_each(two_animals, selections, grid_size=60, parallel=False)
    assert home_ranges["beta"].kind == "home range"
    assert home_ranges["beta"].model_name == selections["beta"].best.name

    models = [selections[tele.identity].best for tele in two_animals]
    occurrences = par_occur(two_animals, models, grid_size=60, parallel=False)
    assert occurrences["alpha"].kind == "occurrence"


def test_par_try_models_in_parallel_matches_sequential(two_animals):
    sequential = par_fit_best(two_animals, specs=_SPECS, parallel=False)
    parallel = par_fit_best(two_animals, specs=_SPECS, cores=2, parallel=True)
    for identity, model in sequential.items():
        assert isinstance(parallel[identity], MovementModel)
        assert parallel[identity].name == model.name
        assert parallel[identity].loglik == pytest.approx(model.loglik)


def test_par_try_models_validates_specs_up_front(two_animals):
    with pytest.raises(ValueError):
        par_try_models(two_animals, specs=("OU isotropic", "Brownian"), parallel=False)


def test_per_animal_arguments_must_match(two_animals):
    with pytest.raises(ValueError):
        par_hrange_each(two_animals, [None], parallel=False)
    with pytest.raises(KeyError):
        par_occur(two_animals, {"alpha": None}, parallel=False)


def test_par_lapply_runs_unpicklable_function_sequentially(caplog):
    def double(value):
        return 2 * value

    with caplog.at_level(logging.WARNING, logger="movekit.batch.parallel"):
        assert par_lapply([1, 2, 3], double, cores=2, parallel=True) == [2, 4, 6]
    assert "falling back to sequential execution" in caplog.text


def test_par_lapply_runs_unpicklable_items_sequentially(caplog):
    locks = [threading.Lock(), threading.Lock()]
    with caplog.at_level(logging.WARNING, logger="movekit.batch.parallel"):
        assert par_lapply(locks, type, cores=2, parallel=True) == [type(lock) for lock in locks]
    assert "falling back to sequential execution" in caplog.text


def test_par_lapply_propagates_worker_errors():
    with pytest.raises(FileNotFoundError):
        par_lapply(["/nonexistent/movekit-a", "/nonexistent/movekit-b"], os.stat, cores=2, parallel=True)


def _failing_fit(fail_for):
    real_fit = parallel_module.fit_model

    def fit(tele, spec, guess=None):
        if (tele.identity, spec) in fail_for:
            raise ValueError("likelihood could not be evaluated")
        return real_fit(tele, spec, guess)

    return fit


def test_par_try_models_skips_failed_fits(two_animals, monkeypatch, caplog):
    monkeypatch.setattr(parallel_module, "fit_model", _failing_fit({("beta", "OU isotropic")}))

    with caplog.at_level(logging.WARNING, logger="movekit.batch.parallel"):
        selections = par_try_models(two_animals, specs=_SPECS, parallel=False)

    assert [m.name for m in selections["beta"].models] == ["IID isotropic"]
    assert len(selections["alpha"].models) == 2
    assert "Skipping OU isotropic model for 'beta'" in caplog.text


def test_par_try_models_fails_when_no_model_fits(two_animals, monkeypatch):
    monkeypatch.setattr(parallel_module, "fit_model", _failing_fit({("beta", spec) for spec in _SPECS}))
    with pytest.raises(RuntimeError):
        par_try_models(two_animals, specs=_SPECS, parallel=False)
