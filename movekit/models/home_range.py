from __future__ import annotations

import math
import numpy as np
from sklearn.neighbors import KernelDensity

from .ud import UtilizationDistribution, make_grid
from movekit.utils import get_logger

logger = get_logger(__name__)

def estimate_home_range(tele, model, grid_size:int=150, pad:float=4.0):
    '''
    Description
    -----------
    Autocorrelated kernel density estimate of an animal's home range.

    Fixes are whitened by the fitted model's spatial covariance and smoothed with an isotropic Gaussian
    kernel of bandwidth `h = n_eff^(-1/6)`, where `n_eff` is the model's effective sample size.
    Strong autocorrelation means few effective samples and a wider kernel.

    Parameters
    ----------
    tele : Telemetry
    model : MovementModel
        A model fitted to `tele`
    grid_size : int, default=150
        Number of cells along the longer side of the grid
    pad : float, default=4.0
        Grid padding around the fixes, in kernel standard deviations

    Returns
    -------
    UtilizationDistribution with kind "home range"
    '''
    xy = tele.xy()
    sigma = model.sigma
    chol = np.linalg.cholesky(sigma)
    chol_inv = np.linalg.inv(chol)

    dof = model.n_eff()
    bandwidth = dof ** (-1 / 6)

    center = xy.mean(axis=0)
    whitened = (xy - center) @ chol_inv.T
    kde = KernelDensity(bandwidth=bandwidth, kernel="gaussian").fit(whitened)

    x, y = make_grid(xy, pad * bandwidth * math.sqrt(model.sigma_major), grid_size)
    gx, gy = np.meshgrid(x, y)
    grid = np.column_stack([gx.ravel(), gy.ravel()])

    log_density = kde.score_samples((grid - center) @ chol_inv.T)
    # change of variables back to meters
    pdf = np.exp(log_density).reshape(gx.shape) / abs(np.linalg.det(chol))

    ud = UtilizationDistribution(
        identity=tele.identity,
        kind="home range",
        x=x,
        y=y,
        pdf=pdf,
        dof=dof,
        bandwidth=bandwidth,
        projection=tele.projection,
        model_name=model.name,
    )

    logger.info(f"Home range for '{tele.identity}' estimated with {dof:.1f} effective samples "
                f"(95% area {ud.area(0.95):.0f} m²).")
    return ud
