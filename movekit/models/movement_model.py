from __future__ import annotations

import math
import numpy as np
from scipy.stats import chi2

from movekit.utils import get_logger

logger = get_logger(__name__)

FAMILIES = ("IID", "OU", "OUF")

CANDIDATE_MODELS = (
    "OUF anisotropic",
    "OUF isotropic",
    "OU anisotropic",
    "OU isotropic",
    "IID anisotropic",
    "IID isotropic",
)

def parse_spec(spec:str):
    '''
    Splits a model specification such as "OUF anisotropic" into ("OUF", False).
    A bare family name is taken as anisotropic.
    '''
    parts = spec.split()
    family = parts[0].upper()
    if family not in FAMILIES or len(parts) > 2:
        raise ValueError(f"Unknown model specification '{spec}'. Expected '<{'|'.join(FAMILIES)}> [isotropic|anisotropic]'.")

    if len(parts) == 1:
        return family, False
    if parts[1].lower() not in ("isotropic", "anisotropic"):
        raise ValueError(f"Unknown model specification '{spec}'. Expected 'isotropic' or 'anisotropic'.")
    return family, parts[1].lower() == "isotropic"

def chisq_ci(estimate:float, dof:float, level:float=0.95):
    '''
    Description
    -----------
    Confidence interval for a variance-like quantity estimated with `dof` degrees of freedom,
    assuming `estimate * 2 dof / truth ~ chi²(2 dof)`.

    Returns
    -------
    (low, estimate, high) : tuple
    '''
    if estimate is None or not np.isfinite(estimate) or not dof > 0:
        return (math.nan, estimate, math.nan)
    alpha = 1 - level
    nu = 2 * dof
    return (estimate * nu / chi2.ppf(1 - alpha / 2, nu), estimate, estimate * nu / chi2.ppf(alpha / 2, nu))

class MovementModel:
    '''
    Description
    -----------
    A fitted continuous-time Gaussian movement model.

    - IID: independent positions, no autocorrelation
    - OU: autocorrelated positions with home-range crossing time `tau_position`
    - OUF: autocorrelated positions and velocities (`tau_position`, `tau_velocity`)

    Spatial variance is either isotropic or anisotropic (major / minor variance along an orientation angle).
    All quantities are in meters / seconds of the telemetry projection.
    '''

    def __init__(self, family:str, isotropic:bool, mu, sigma_major:float, sigma_minor:float=None, angle:float=0.0,
                 tau:tuple=(), loglik:float=math.nan, n:int=0, duration:float=0.0, error_var:float=0.0,
                 param_ci:dict=None, identity:str=None, converged:bool=True):
        if family not in FAMILIES:
            raise ValueError(f"Unknown model family '{family}'. Expected one of {FAMILIES}")

        expected_tau = FAMILIES.index(family)
        if len(tau) != expected_tau:
            raise ValueError(f"{family} models take {expected_tau} timescales, got {len(tau)}")

        self.family = family
        self.isotropic = isotropic
        self.mu = np.asarray(mu, dtype=float)
        self.sigma_major = float(sigma_major)
        self.sigma_minor = self.sigma_major if isotropic or sigma_minor is None else float(sigma_minor)
        self.angle = 0.0 if isotropic else float(angle)
        self.tau = tuple(float(tt) for tt in tau)
        self.loglik = loglik
        self.n = n
        self.duration = duration
        self.error_var = error_var
        self.param_ci = param_ci or {}
        self.identity = identity
        self.converged = converged

    @property
    def name(self):
        return f"{self.family} {'isotropic' if self.isotropic else 'anisotropic'}"

    @property
    def k(self):
        # mean (2) + variance terms + timescales
        return 2 + (1 if self.isotropic else 3) + len(self.tau)

    @property
    def aicc(self):
        N = 2 * self.n
        if N - self.k - 1 <= 0:
            return math.inf
        return 2 * self.k - 2 * self.loglik + 2 * self.k * (self.k + 1) / (N - self.k - 1)

    @property
    def tau_position(self):
        return self.tau[0] if self.tau else None

    @property
    def tau_velocity(self):
        return self.tau[1] if len(self.tau) > 1 else None

    @property
    def sigma(self):
        c, s = math.cos(self.angle), math.sin(self.angle)
        R = np.array([[c, -s], [s, c]])
        return R @ np.diag([self.sigma_major, self.sigma_minor]) @ R.T

    @property
    def sigma_mean(self):
        return (self.sigma_major + self.sigma_minor) / 2

    def svf(self, lag):
        '''
        Theoretical per-dimension semi-variance at `lag` seconds, including location-error variance for lag > 0.
        '''
        lag = np.abs(np.asarray(lag, dtype=float))
        sigma = self.sigma_mean

        if self.family == "IID":
            gamma = np.where(lag > 0, sigma, 0.0)
        elif self.family == "OU":
            gamma = sigma * (1 - np.exp(-lag / self.tau[0]))
        else:
            tau_p, tau_v = self.tau
            if math.isclose(tau_p, tau_v, rel_tol=1e-9):
                gamma = sigma * (1 - (1 + lag / tau_p) * np.exp(-lag / tau_p))
            else:
                gamma = sigma * (1 - (tau_p * np.exp(-lag / tau_p) - tau_v * np.exp(-lag / tau_v)) / (tau_p - tau_v))

        return gamma + np.where(lag > 0, self.error_var, 0.0)

    def n_eff(self):
        '''
        Effective number of independent samples behind the spatial variance estimate.
        '''
        if self.family == "IID":
            return float(max(self.n, 2))
        return float(max(2.0, min(self.n, self.duration / self.tau[0])))

    def area(self, level:float=0.95):
        '''
        Gaussian home-range area (m²) enclosing `level` of the stationary distribution.
        '''
        if not 0 < level < 1:
            raise ValueError(f"Level must be in (0, 1), got {level}")
        return -2 * math.log(1 - level) * math.pi * math.sqrt(self.sigma_major * self.sigma_minor)

    def area_ci(self, level:float=0.95, ci:float=0.95):
        return chisq_ci(self.area(level), self.n_eff(), ci)

    def speed(self):
        '''
        Mean speed (m/s) of the velocity process. Only OUF models have a finite speed.
        '''
        if self.family != "OUF":
            return None
        tau_p, tau_v = self.tau
        return math.sqrt(math.pi / 2) * math.sqrt(self.sigma_mean / (tau_p * tau_v))

    def diffusion(self):
        '''
        Diffusion rate (m²/s). IID models have no finite diffusion rate.
        '''
        if self.family == "IID":
            return None
        return self.sigma_mean / self.tau[0]

    def summary(self):
        low, area, high = self.area_ci()
        return {
            "identity": self.identity,
            "model": self.name,
            "k": self.k,
            "loglik": self.loglik,
            "AICc": self.aicc,
            "area": area,
            "area_low": low,
            "area_high": high,
            "tau_position": self.tau_position,
            "tau_velocity": self.tau_velocity,
            "speed": self.speed(),
            "diffusion": self.diffusion(),
            "converged": self.converged,
        }

    def __repr__(self):
        return f"MovementModel(identity='{self.identity}', model='{self.name}', AICc={self.aicc:.2f})"
