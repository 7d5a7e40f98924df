from __future__ import annotations

import math
import numpy as np
from scipy.linalg import expm

_LOG_2PI = math.log(2 * math.pi)

def stationary_covariance(sigma:float, tau:tuple):
    '''
    Stationary covariance of the (position[, velocity]) state for one axis.
    '''
    if len(tau) == 1:
        return np.array([[sigma]])
    tau_p, tau_v = tau
    return np.array([[sigma, 0.0], [0.0, sigma / (tau_p * tau_v)]])

def transition(dt:float, sigma:float, tau:tuple):
    '''
    Description
    -----------
    Exact discretization of a stationary OU / OUF axis over a time step `dt`.

    Returns
    -------
    (A, Q) : state transition matrix and process noise covariance
    '''
    if len(tau) == 1:
        a = math.exp(-dt / tau[0])
        return np.array([[a]]), np.array([[sigma * (1 - a * a)]])

    tau_p, tau_v = tau
    drift = np.array([[0.0, 1.0], [-1.0 / (tau_p * tau_v), -(1.0 / tau_p + 1.0 / tau_v)]])
    A = expm(drift * dt)
    P_inf = stationary_covariance(sigma, tau)
    Q = P_inf - A @ P_inf @ A.T
    return A, (Q + Q.T) / 2

def _iid_loglik(z:np.ndarray, error_var:np.ndarray, sigma:float):
    S = sigma + error_var
    return float(-0.5 * np.sum(_LOG_2PI + np.log(S) + z**2 / S))

def _ou_loglik(t, z, error_var, sigma, tau):
    cache = {}
    x = 0.0
    P = sigma
    ll = 0.0
    for i in range(len(t)):
        if i > 0:
            dt = t[i] - t[i - 1]
            a = cache.get(dt)
            if a is None:
                a = cache[dt] = math.exp(-dt / tau)
            x = a * x
            P = a * a * P + sigma * (1 - a * a)

        S = max(P + error_var[i], 1e-300)
        nu = z[i] - x
        ll -= 0.5 * (_LOG_2PI + math.log(S) + nu * nu / S)

        K = P / S
        x += K * nu
        P -= K * P
    return ll

def _ouf_loglik(t, z, error_var, sigma, tau):
    cache = {}
    P_inf = stationary_covariance(sigma, tau)
    x0 = x1 = 0.0
    P00, P01, P11 = P_inf[0, 0], 0.0, P_inf[1, 1]
    ll = 0.0
    for i in range(len(t)):
        if i > 0:
            dt = t[i] - t[i - 1]
            step = cache.get(dt)
            if step is None:
                A, Q = transition(dt, sigma, tau)
                step = cache[dt] = (A[0, 0], A[0, 1], A[1, 0], A[1, 1], Q[0, 0], Q[0, 1], Q[1, 1])
            a00, a01, a10, a11, q00, q01, q11 = step

            x0, x1 = a00 * x0 + a01 * x1, a10 * x0 + a11 * x1

            m00 = a00 * P00 + a01 * P01
            m01 = a00 * P01 + a01 * P11
            m10 = a10 * P00 + a11 * P01
            m11 = a10 * P01 + a11 * P11
            P00 = m00 * a00 + m01 * a01 + q00
            P01 = m00 * a10 + m01 * a11 + q01
            P11 = m10 * a10 + m11 * a11 + q11

        S = max(P00 + error_var[i], 1e-300)
        nu = z[i] - x0
        ll -= 0.5 * (_LOG_2PI + math.log(S) + nu * nu / S)

        K0 = P00 / S
        K1 = P01 / S
        x0 += K0 * nu
        x1 += K1 * nu
        P11 -= K1 * P01
        P01 -= K0 * P01
        P00 -= K0 * P00
    return ll

def axis_loglik(t:np.ndarray, z:np.ndarray, error_var:np.ndarray, sigma:float, tau:tuple=()):
    '''
    Description
    -----------
    Exact Gaussian log-likelihood of one mean-centered coordinate axis under an IID, OU or OUF process,
    with independent Gaussian observation error.

    Parameters
    ----------
    t : np.ndarray
        Sorted observation times
    z : np.ndarray
        Observations minus the process mean
    error_var : np.ndarray
        Per-observation error variance
    sigma : float
        Stationary position variance
    tau : tuple
        () for IID, (tau_position,) for OU, (tau_position, tau_velocity) for OUF

    Returns
    -------
    log-likelihood : float
    '''
    if sigma <= 0:
        return -math.inf

    if len(tau) == 0:
        return _iid_loglik(np.asarray(z), np.asarray(error_var), sigma)

    if any(tt <= 0 for tt in tau):
        return -math.inf

    t = np.asarray(t, dtype=float).tolist()
    z = np.asarray(z, dtype=float).tolist()
    error_var = np.asarray(error_var, dtype=float).tolist()

    if len(tau) == 1:
        return _ou_loglik(t, z, error_var, sigma, tau[0])
    return _ouf_loglik(t, z, error_var, sigma, tau)
