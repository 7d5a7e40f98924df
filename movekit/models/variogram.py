from __future__ import annotations

import numpy as np
import pandas as pd

from movekit.utils import get_logger

logger = get_logger(__name__)

class Variogram:
    '''
    Empirical semi-variance function of an animal's positions versus time lag.
    `svf` is the per-dimension semi-variance (m²); `dof` is the number of pairs behind each lag bin.
    '''

    def __init__(self, lag, svf, dof, identity:str=None, dt:float=None, error_var:float=0.0):
        self.lag = np.asarray(lag, dtype=float)
        self.svf = np.asarray(svf, dtype=float)
        self.dof = np.asarray(dof, dtype=float)
        self.identity = identity
        self.dt = dt
        self.error_var = error_var

    def zoom(self, fraction:float=0.5):
        '''
        The leading portion of the variogram, `lag <= fraction * max(lag)`.
        '''
        if not 0 < fraction <= 1:
            raise ValueError(f"Fraction must be in (0, 1], got {fraction}")
        keep = self.lag <= fraction * self.lag.max()
        return Variogram(self.lag[keep], self.svf[keep], self.dof[keep], self.identity, self.dt, self.error_var)

    def to_frame(self):
        return pd.DataFrame({"lag": self.lag, "svf": self.svf, "dof": self.dof})

    def __len__(self):
        return len(self.lag)

    def __repr__(self):
        return f"Variogram(identity='{self.identity}', bins={len(self)}, dt={self.dt})"

def empirical_variogram(tele, dt:float=None, max_lag:float=None):
    '''
    Description
    -----------
    Computes the empirical semi-variogram of a Telemetry object.
    Pair lags are binned to the nearest integer multiple of `dt`; the semi-variance of a pair is
    `((dx² + dy²) / 2) / 2`, averaged over all pairs in a bin. The zero-lag bin is fixed at 0.

    Parameters
    ----------
    tele : Telemetry
    dt : float, default=None
        Lag bin width in seconds. Defaults to the median sampling interval.
    max_lag : float, default=None
        Largest lag considered, in seconds. Defaults to the sampling duration.

    Returns
    -------
    Variogram, restricted to bins that contain at least one pair
    '''
    t = tele.data["t"].to_numpy(dtype=float)
    t = t - t[0]
    x = tele.data["x"].to_numpy(dtype=float)
    y = tele.data["y"].to_numpy(dtype=float)
    n = len(t)

    dt = tele.interval if dt is None else float(dt)
    if not dt > 0:
        raise ValueError(f"Variogram lag bin width must be positive, got {dt}")

    max_lag = tele.duration if max_lag is None else float(max_lag)
    n_bins = int(np.rint(max_lag / dt)) + 1

    sums = np.zeros(n_bins)
    counts = np.zeros(n_bins)

    for k in range(1, n):
        lag = t[k:] - t[:-k]
        # times are sorted, so lags only grow with k
        if lag.min() > max_lag + dt / 2:
            break
        bins = np.rint(lag / dt).astype(int)
        keep = bins < n_bins
        if not keep.any():
            continue
        gamma = ((x[k:] - x[:-k])**2 + (y[k:] - y[:-k])**2) / 4
        sums += np.bincount(bins[keep], weights=gamma[keep], minlength=n_bins)
        counts += np.bincount(bins[keep], minlength=n_bins)

    svf = np.divide(sums, counts, out=np.zeros(n_bins), where=counts > 0)
    svf[0] = 0.0
    counts[0] = n

    valid = counts > 0
    lag = np.arange(n_bins) * dt
    error_var = float(np.mean(tele.data["error"].to_numpy(dtype=float)**2))

    logger.debug(f"Variogram for '{tele.identity}' computed over {int(valid.sum())} lag bins of {dt:.0f} s.")
    return Variogram(lag[valid], svf[valid], counts[valid], identity=tele.identity, dt=dt, error_var=error_var)
