from __future__ import annotations

from concurrent.futures import ProcessPoolExecutor
from concurrent.futures.process import BrokenProcessPool
from functools import partial
import os
import pickle
import numpy as np

from movekit.models import (
    CANDIDATE_MODELS,
    ModelSelection,
    empirical_variogram,
    estimate_home_range,
    estimate_occurrence,
    fit_model,
    parse_spec,
)
from movekit.utils import get_logger, settings

logger = get_logger(__name__)

def par_lapply(items, func, cores:int=None, parallel:bool=None):
    '''
    Description
    -----------
    Ordered map of `func` over `items` on a process pool.

    Runs sequentially when `parallel` is False, a single worker is requested, or there is at most one item.
    If `func` or an item cannot be pickled, the map runs sequentially instead; if the pool breaks,
    the whole map is rerun sequentially.
    Exceptions raised by `func` itself propagate.

    Parameters
    ----------
    items : iterable
    func : callable
        Must be picklable (module-level function or `functools.partial` of one) for parallel execution
    cores : int, default=None
        Worker processes. Defaults to `settings.CORES`, then to every available core.
    parallel : bool, default=None
        Defaults to `settings.PARALLEL`.

    Returns
    -------
    list, in the order of `items`
    '''
    items = list(items)
    parallel = settings.PARALLEL if parallel is None else parallel
    cores = settings.CORES if cores is None else cores
    n_workers = min(cores or os.cpu_count() or 1, len(items))

    if not parallel or n_workers <= 1:
        logger.debug(f"Running {len(items)} jobs sequentially.")
        return [func(item) for item in items]

    # pickling errors surface as PicklingError, AttributeError or TypeError depending on the object
    try:
        pickle.dumps(func)
        pickle.dumps(items)
    except Exception as e:
        logger.warning(f"Jobs cannot be sent to worker processes ({e!r}); falling back to sequential execution.")
        return [func(item) for item in items]

    logger.debug(f"Running {len(items)} jobs on {n_workers} worker processes.")
    try:
        with ProcessPoolExecutor(max_workers=n_workers) as ex:
            return list(ex.map(func, items, chunksize=1))
    except BrokenProcessPool as e:
        logger.warning(f"Process pool broke ({e!r}); falling back to sequential execution.")
        return [func(item) for item in items]

def _fit_job(job):
    tele, guess, spec = job
    try:
        return tele.identity, spec, fit_model(tele, spec, guess), None
    except (ValueError, ArithmeticError, np.linalg.LinAlgError) as e:
        return tele.identity, spec, None, str(e)

def _match(tele_list:list, values, name:str):
    '''
    Aligns per-animal values (dict keyed by identity, or a list in telemetry order) with `tele_list`.
    '''
    if values is None:
        return [None] * len(tele_list)
    if isinstance(values, dict):
        missing = [tele.identity for tele in tele_list if tele.identity not in values]
        if missing:
            raise KeyError(f"No {name} provided for animals: {missing}")
        return [values[tele.identity] for tele in tele_list]
    values = list(values)
    if len(values) != len(tele_list):
        raise ValueError(f"Got {len(values)} {name}s for {len(tele_list)} animals.")
    return values

def _best(model):
    return model.best if isinstance(model, ModelSelection) else model

def par_try_models(tele_list:list, guess_list=None, specs:tuple=CANDIDATE_MODELS, cores:int=None, parallel:bool=None):
    '''
    Description
    -----------
    Fits every model specification to every animal in parallel, then ranks each animal's models by AICc.
    Jobs are flattened over (animal, specification) pairs so a slow animal does not hold up the pool.

    Parameters
    ----------
    tele_list : list[Telemetry]
    guess_list : dict | list, default=None
        Initial parameters per animal (see `guess_model()`); guessed inside each job when `None`
    specs : tuple, default=CANDIDATE_MODELS

    Returns
    -------
    dict[str, ModelSelection] keyed by identity, in telemetry order

    Raises
    ------
    `RuntimeError()`: If every model specification fails for some animal
    '''
    for spec in specs:
        parse_spec(spec)

    guesses = _match(tele_list, guess_list, "guess")
    jobs = [(tele, guess, spec) for tele, guess in zip(tele_list, guesses) for spec in specs]

    logger.info(f"Fitting {len(specs)} candidate models to {len(tele_list)} animals ({len(jobs)} jobs).")
    results = par_lapply(jobs, _fit_job, cores=cores, parallel=parallel)

    fitted = {tele.identity: [] for tele in tele_list}
    for identity, spec, model, error in results:
        if model is None:
            logger.warning(f"Skipping {spec} model for '{identity}': {error}")
            continue
        fitted[identity].append(model)

    selections = {identity: ModelSelection(identity, models) for identity, models in fitted.items()}
    for identity, selection in selections.items():
        logger.info(f"Best model for '{identity}': {selection.best.name}.")
    return selections

def par_fit_best(tele_list:list, guess_list=None, specs:tuple=CANDIDATE_MODELS, cores:int=None, parallel:bool=None):
    selections = par_try_models(tele_list, guess_list, specs, cores=cores, parallel=parallel)
    return {identity: selection.best for identity, selection in selections.items()}

def par_variograms(tele_list:list, dt:float=None, max_lag:float=None, cores:int=None, parallel:bool=None):
    func = partial(empirical_variogram, dt=dt, max_lag=max_lag)
    variograms = par_lapply(tele_list, func, cores=cores, parallel=parallel)
    return {tele.identity: vg for tele, vg in zip(tele_list, variograms)}

def _home_range_job(job, grid_size, pad):
    tele, model = job
    return estimate_home_range(tele, model, grid_size=grid_size, pad=pad)

def _occurrence_job(job, n_interp, grid_size, pad):
    tele, model = job
    return estimate_occurrence(tele, model, n_interp=n_interp, grid_size=grid_size, pad=pad)

def par_hrange_each(tele_list:list, model_list, grid_size:int=150, pad:float=4.0, cores:int=None, parallel:bool=None):
    '''
    Description
    -----------
    Home range for each animal, in parallel.

    Parameters
    ----------
    tele_list : list[Telemetry]
    model_list : dict | list
        A MovementModel (or ModelSelection, whose best model is used) per animal

    Returns
    -------
    dict[str, UtilizationDistribution] keyed by identity
    '''
    models = [_best(model) for model in _match(tele_list, model_list, "model")]
    func = partial(_home_range_job, grid_size=grid_size, pad=pad)
    results = par_lapply(list(zip(tele_list, models)), func, cores=cores, parallel=parallel)
    return {tele.identity: ud for tele, ud in zip(tele_list, results)}

def par_occur(tele_list:list, model_list, n_interp:int=10, grid_size:int=150, pad:float=3.0, cores:int=None, parallel:bool=None):
    '''
    Occurrence distribution for each animal, in parallel. See `par_hrange_each` for arguments.
    '''
    models = [_best(model) for model in _match(tele_list, model_list, "model")]
    func = partial(_occurrence_job, n_interp=n_interp, grid_size=grid_size, pad=pad)
    results = par_lapply(list(zip(tele_list, models)), func, cores=cores, parallel=parallel)
    return {tele.identity: ud for tele, ud in zip(tele_list, results)}
