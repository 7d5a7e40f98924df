from __future__ import annotations

import math
import numpy as np
import pandas as pd
from scipy.optimize import minimize

from .kalman import axis_loglik
from .movement_model import MovementModel, CANDIDATE_MODELS, parse_spec
from .variogram import empirical_variogram
from movekit.utils import get_logger

logger = get_logger(__name__)

_Z95 = 1.959963984540054

def guess_model(tele, variogram=None):
    '''
    Description
    -----------
    Initial parameter guess for model fitting.

    - mu : mean position
    - sigma_major / sigma_minor / angle : eigen-decomposition of the position covariance, less location-error variance
    - tau_position : first lag at which the variogram reaches (1 - 1/e) of the position variance
    - tau_velocity : the smaller of the sampling interval and a tenth of tau_position

    Returns
    -------
    dict
    '''
    xy = tele.xy()
    error_var = float(np.mean(tele.data["error"].to_numpy(dtype=float)**2))

    cov = np.cov(xy.T)
    eigvals, eigvecs = np.linalg.eigh(cov)
    minor, major = eigvals
    major_vec = eigvecs[:, 1]

    floor = 1e-6 * max(major, 1.0)
    sigma_major = max(major - error_var, 0.1 * major, floor)
    sigma_minor = max(minor - error_var, 0.1 * minor, floor)
    angle = math.atan2(major_vec[1], major_vec[0])

    dt = _time_step(tele)
    if variogram is None:
        variogram = empirical_variogram(tele, dt=dt)

    target = (1 - math.exp(-1)) * (sigma_major + sigma_minor) / 2 + error_var
    reached = np.flatnonzero((variogram.lag > 0) & (variogram.svf >= target))
    tau_position = float(variogram.lag[reached[0]]) if reached.size else max(tele.duration, dt)
    tau_velocity = min(dt, tau_position / 10)

    return {
        "mu": xy.mean(axis=0),
        "sigma_major": sigma_major,
        "sigma_minor": sigma_minor,
        "angle": _wrap_angle(angle),
        "tau_position": tau_position,
        "tau_velocity": tau_velocity,
    }

def _time_step(tele):
    '''
    Median sampling interval, ignoring repeated timestamps. Falls back to 1 s when every fix shares one time.
    '''
    if tele.interval > 0:
        return tele.interval
    steps = np.diff(tele.data["t"].to_numpy(dtype=float))
    steps = steps[steps > 0]
    return float(np.median(steps)) if steps.size else 1.0

def _wrap_angle(angle:float):
    # orientation of an axis is only defined modulo pi
    return (angle + math.pi / 2) % math.pi - math.pi / 2

class _Objective:
    '''
    Negative log-likelihood over a parameter vector in scaled units:
    [mu_x, mu_y, log sigma_major, (log sigma_minor, angle), (log tau_position), (log tau_velocity)]
    '''

    def __init__(self, t, z, error_var, family:str, isotropic:bool):
        self.t = t
        self.z = z
        self.error_var = error_var
        self.family = family
        self.isotropic = isotropic
        self.n_tau = {"IID": 0, "OU": 1, "OUF": 2}[family]

    def pack(self, mu, sigma_major, sigma_minor, angle, tau):
        theta = [mu[0], mu[1], math.log(sigma_major)]
        if not self.isotropic:
            theta += [math.log(sigma_minor), angle]
        theta += [math.log(tt) for tt in tau[:self.n_tau]]
        return np.array(theta)

    def unpack(self, theta):
        mu = theta[:2]
        sigma_major = math.exp(theta[2])
        i = 3
        if self.isotropic:
            sigma_minor, angle = sigma_major, 0.0
        else:
            sigma_minor, angle = math.exp(theta[3]), theta[4]
            i = 5
        tau = tuple(math.exp(v) for v in theta[i:i + self.n_tau])
        return mu, sigma_major, sigma_minor, angle, tau

    def loglik(self, theta):
        mu, sigma_major, sigma_minor, angle, tau = self.unpack(theta)
        c, s = math.cos(angle), math.sin(angle)
        dx = self.z[:, 0] - mu[0]
        dy = self.z[:, 1] - mu[1]
        u = c * dx + s * dy
        v = -s * dx + c * dy
        return axis_loglik(self.t, u, self.error_var, sigma_major, tau) + axis_loglik(self.t, v, self.error_var, sigma_minor, tau)

    def __call__(self, theta):
        if not np.all(np.isfinite(theta)) or np.any(np.abs(theta[2:]) > 700):
            return 1e300
        ll = self.loglik(theta)
        return -ll if math.isfinite(ll) else 1e300

def fit_model(tele, spec:str="OUF anisotropic", guess:dict=None):
    '''
    Description
    -----------
    Maximum-likelihood fit of one movement model to a Telemetry object.

    Positions are centered and scaled by their standard deviation and times by the sampling interval
    before optimization; variances and timescales are optimized on the log scale. Confidence intervals
    come from the BFGS inverse Hessian, applied on the log scale for positive parameters.

    Parameters
    ----------
    tele : Telemetry
    spec : str, default="OUF anisotropic"
        One of `CANDIDATE_MODELS` (or a bare family name)
    guess : dict, default=None
        Initial parameters as returned by `guess_model()`

    Returns
    -------
    MovementModel
    '''
    family, isotropic = parse_spec(spec)
    guess = guess_model(tele) if guess is None else guess

    xy = tele.xy()
    center = xy.mean(axis=0)
    length = math.sqrt(max(float(np.mean(np.var(xy, axis=0))), 1e-12))
    time_scale = _time_step(tele)

    t = (tele.data["t"].to_numpy(dtype=float) - tele.data["t"].iloc[0]) / time_scale
    z = (xy - center) / length
    error_var = tele.data["error"].to_numpy(dtype=float)**2 / length**2

    objective = _Objective(t, z, error_var, family, isotropic)

    L2 = length**2
    sigma_iso = (guess["sigma_major"] + guess["sigma_minor"]) / 2
    tau_guess = (guess["tau_position"] / time_scale, guess["tau_velocity"] / time_scale)
    if family == "OUF" and math.isclose(tau_guess[0], tau_guess[1]):
        tau_guess = (tau_guess[0], tau_guess[1] / 2)

    theta0 = objective.pack(
        (np.asarray(guess["mu"], dtype=float) - center) / length,
        (sigma_iso if isotropic else guess["sigma_major"]) / L2,
        guess["sigma_minor"] / L2,
        guess["angle"],
        tau_guess,
    )

    logger.debug(f"Fitting {family} {'isotropic' if isotropic else 'anisotropic'} model to '{tele.identity}'.")
    result = minimize(objective, theta0, method="BFGS")

    if not np.isfinite(result.fun) or result.fun >= 1e300:
        logger.debug(f"BFGS failed for '{tele.identity}' ({result.message}); retrying with Nelder-Mead.")
        result = minimize(objective, theta0, method="Nelder-Mead", options={"maxiter": 4000, "xatol": 1e-6, "fatol": 1e-8})

    if not np.isfinite(result.fun) or result.fun >= 1e300:
        raise ValueError(f"Likelihood could not be evaluated for a {spec} model of '{tele.identity}'.")

    if not result.success:
        logger.warning(f"{spec} fit for '{tele.identity}' did not fully converge: {result.message}")

    mu, sigma_major, sigma_minor, angle, tau = objective.unpack(result.x)

    # unscale; loglik picks up the Jacobian of the position scaling
    loglik = -result.fun - 2 * tele.n * math.log(length)
    mu = center + np.asarray(mu) * length
    sigma_major, sigma_minor = sigma_major * L2, sigma_minor * L2
    tau = tuple(tt * time_scale for tt in tau)

    param_ci = _confidence_intervals(objective, result, length, time_scale)

    if sigma_minor > sigma_major:
        sigma_major, sigma_minor = sigma_minor, sigma_major
        angle += math.pi / 2
        if param_ci:
            param_ci["sigma_major"], param_ci["sigma_minor"] = param_ci["sigma_minor"], param_ci["sigma_major"]
        if "angle" in param_ci:
            param_ci["angle"] = tuple(v + math.pi / 2 for v in param_ci["angle"])

    if family == "OUF" and tau[1] > tau[0]:
        tau = (tau[1], tau[0])
        if param_ci:
            param_ci["tau_position"], param_ci["tau_velocity"] = param_ci["tau_velocity"], param_ci["tau_position"]

    return MovementModel(
        family=family,
        isotropic=isotropic,
        mu=mu,
        sigma_major=sigma_major,
        sigma_minor=sigma_minor,
        angle=_wrap_angle(angle),
        tau=tau,
        loglik=loglik,
        n=tele.n,
        duration=tele.duration,
        error_var=float(np.mean(tele.data["error"].to_numpy(dtype=float)**2)),
        param_ci=param_ci,
        identity=tele.identity,
        converged=bool(result.success),
    )

def _confidence_intervals(objective:_Objective, result, length:float, time_scale:float):
    hess_inv = getattr(result, "hess_inv", None)
    if hess_inv is None:
        return {}

    se = np.sqrt(np.clip(np.diag(np.asarray(hess_inv, dtype=float)), 0, None))
    names, scales = ["sigma_major"], [length**2]
    if not objective.isotropic:
        names += ["sigma_minor", "angle"]
        scales += [length**2, None]
    names += ["tau_position", "tau_velocity"][:objective.n_tau]
    scales += [time_scale] * objective.n_tau

    param_ci = {}
    for name, scale, est, err in zip(names, scales, result.x[2:], se[2:]):
        if scale is None:
            param_ci[name] = (est - _Z95 * err, est, est + _Z95 * err)
        else:
            param_ci[name] = tuple(math.exp(v) * scale for v in (est - _Z95 * err, est, est + _Z95 * err))
    return param_ci

class ModelSelection:
    '''
    Candidate movement models for one animal, ranked by AICc.
    '''

    _TABLE_COLS = ["model", "dAICc", "k", "loglik", "area", "area_low", "area_high", "tau_position", "tau_velocity", "speed", "converged"]

    def __init__(self, identity:str, models:list):
        if not models:
            raise RuntimeError(f"No movement model could be fitted for '{identity}'.")
        self.identity = identity
        self.models = sorted(models, key=lambda m: m.aicc)

    @property
    def best(self):
        return self.models[0]

    def table(self):
        '''
        Comparison table sorted by AICc; `dAICc` is relative to the best model.
        '''
        rows = [model.summary() for model in self.models]
        df = pd.DataFrame(rows)
        df["dAICc"] = df["AICc"] - df["AICc"].min()
        return df.loc[:, self._TABLE_COLS].reset_index(drop=True)

    def __getitem__(self, name:str):
        for model in self.models:
            if model.name == name:
                return model
        raise KeyError(name)

    def __repr__(self):
        return f"ModelSelection(identity='{self.identity}', best='{self.best.name}', n_models={len(self.models)})"

def try_models(tele, guess:dict=None, specs:tuple=CANDIDATE_MODELS):
    '''
    Description
    -----------
    Fits every model specification in `specs` and ranks them by AICc.
    A model specification that fails to fit is logged and skipped.

    Returns
    -------
    ModelSelection

    Raises
    ------
    `RuntimeError()`: If no model specification could be fitted
    '''
    for spec in specs:
        parse_spec(spec)

    guess = guess_model(tele) if guess is None else guess
    models = []
    for spec in specs:
        try:
            models.append(fit_model(tele, spec, guess))
        except (ValueError, ArithmeticError, np.linalg.LinAlgError) as e:
            logger.warning(f"Skipping {spec} model for '{tele.identity}': {e}")

    selection = ModelSelection(tele.identity, models)
    logger.info(f"Best model for '{tele.identity}': {selection.best.name} (of {len(models)} fitted).")
    return selection
