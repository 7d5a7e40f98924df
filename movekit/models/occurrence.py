from __future__ import annotations

import math
import numpy as np

from .ud import UtilizationDistribution, make_grid
from movekit.utils import get_logger

logger = get_logger(__name__)

def _bridge_samples(t, xy, error_var, diffusion, sigma, n_interp):
    '''
    Positions and variances along Gaussian bridges between consecutive fixes.
    Bridge variance grows as `D dt f (1 - f)` and saturates at the stationary variance.
    '''
    dt = np.diff(t)
    f = np.arange(n_interp + 1) / (n_interp + 1)

    start = xy[:-1, None, :]
    end = xy[1:, None, :]
    ff = f[None, :, None]
    mean = (1 - ff) * start + ff * end

    bridge = diffusion * dt[:, None] * f[None, :] * (1 - f[None, :]) if np.isfinite(diffusion) else np.full((len(dt), len(f)), sigma)
    bridge = np.minimum(bridge, sigma)
    err = (1 - f[None, :])**2 * error_var[:-1, None] + f[None, :]**2 * error_var[1:, None]
    var = bridge + err

    # each sample stands for an equal share of its step's duration
    weight = np.repeat(dt[:, None] / (n_interp + 1), len(f), axis=1)

    mean = np.concatenate([mean.reshape(-1, 2), xy[-1:]])
    var = np.concatenate([var.ravel(), [error_var[-1]]])
    weight = np.concatenate([weight.ravel(), [np.median(dt) if len(dt) else 1.0]])
    return mean, var, weight

def estimate_occurrence(tele, model, n_interp:int=10, grid_size:int=150, pad:float=3.0):
    '''
    Description
    -----------
    Occurrence distribution: where the animal was during the sampling period, given the fixes and a movement model.
    Each step between consecutive fixes is filled with `n_interp` Gaussian bridge samples whose spread follows the
    model's diffusion rate, plus the location error at both ends. Samples are weighted by the time they represent
    and accumulated as separable Gaussian kernels on a grid.

    Parameters
    ----------
    tele : Telemetry
    model : MovementModel
        A model fitted to `tele`
    n_interp : int, default=10
        Bridge samples per step
    grid_size : int, default=150
        Number of cells along the longer side of the grid
    pad : float, default=3.0
        Grid padding in bridge standard deviations

    Returns
    -------
    UtilizationDistribution with kind "occurrence"
    '''
    if n_interp < 0:
        raise ValueError(f"n_interp must be non-negative, got {n_interp}")

    t = tele.data["t"].to_numpy(dtype=float)
    xy = tele.xy()
    error_var = tele.data["error"].to_numpy(dtype=float)**2

    diffusion = model.diffusion()
    diffusion = math.inf if diffusion is None else diffusion

    mean, var, weight = _bridge_samples(t, xy, error_var, diffusion, model.sigma_mean, n_interp)

    x, y = make_grid(xy, pad * math.sqrt(max(var.max(), 1.0)), grid_size)
    cell = x[1] - x[0]
    # keep every kernel at least as wide as a grid cell
    var = np.maximum(var, (cell / 2)**2)
    sd = np.sqrt(var)[:, None]

    gx = np.exp(-0.5 * ((x[None, :] - mean[:, :1]) / sd)**2) / (math.sqrt(2 * math.pi) * sd)
    gy = np.exp(-0.5 * ((y[None, :] - mean[:, 1:]) / sd)**2) / (math.sqrt(2 * math.pi) * sd)
    pdf = (gy * (weight / weight.sum())[:, None]).T @ gx

    ud = UtilizationDistribution(
        identity=tele.identity,
        kind="occurrence",
        x=x,
        y=y,
        pdf=pdf,
        dof=float(tele.n),
        bandwidth=float(np.sqrt(np.median(var))),
        projection=tele.projection,
        model_name=model.name,
    )

    logger.info(f"Occurrence distribution for '{tele.identity}' built from {len(mean)} bridge samples.")
    return ud
