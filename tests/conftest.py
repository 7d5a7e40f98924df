"""Shared fixtures: seeded simulated tracks and a small Movebank export."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from movekit.models.kalman import stationary_covariance, transition
from movekit.telemetry import Telemetry, unproject

PROJECTION = "+proj=aeqd +lat_0=47.000000 +lon_0=8.000000 +datum=WGS84 +units=m +no_defs"

START = pd.Timestamp("2024-03-01", tz="UTC")


def simulate_axis(rng, n: int, dt: float, sigma: float, tau: tuple) -> np.ndarray:
    if not tau:
        return rng.normal(0.0, np.sqrt(sigma), n)

    A, Q = transition(dt, sigma, tau)
    dim = len(tau)
    state = rng.multivariate_normal(np.zeros(dim), stationary_covariance(sigma, tau), check_valid="ignore")
    out = np.empty(n)
    for i in range(n):
        out[i] = state[0]
        state = A @ state + rng.multivariate_normal(np.zeros(dim), Q, check_valid="ignore")
    return out


def telemetry_from_xy(identity: str, t, x, y, error=None) -> Telemetry:
    lon, lat = unproject(x, y, PROJECTION)
    timestamp = START + pd.to_timedelta(np.asarray(t, dtype=float), unit="s")
    return Telemetry(identity, timestamp, lon, lat, error=error, projection=PROJECTION)


def simulate_track(identity: str = "sim", tau: tuple = (), n: int = 300, dt: float = 3600.0,
                   sigma: tuple = (1e6, 1e6), error: float = 0.0, seed: int = 0) -> Telemetry:
    """Regularly sampled IID / OU / OUF track with major axis along x."""
    rng = np.random.default_rng(seed)
    x = simulate_axis(rng, n, dt, sigma[0], tau)
    y = simulate_axis(rng, n, dt, sigma[1], tau)
    if error > 0:
        x = x + rng.normal(0.0, error, n)
        y = y + rng.normal(0.0, error, n)
    t = np.arange(n) * dt
    return telemetry_from_xy(identity, t, x, y, error=np.full(n, error) if error > 0 else None)


@pytest.fixture
def iid_tele():
    return simulate_track("iid", tau=(), n=200, sigma=(4e6, 1e6), seed=1)


@pytest.fixture
def ou_tele():
    return simulate_track("ou", tau=(3 * 3600.0,), n=600, dt=1800.0, seed=2)


@pytest.fixture
def ouf_tele():
    return simulate_track("ouf", tau=(6 * 3600.0, 3600.0), n=800, dt=600.0, seed=3)


@pytest.fixture
def two_animals():
    return [
        simulate_track("alpha", tau=(6 * 3600.0,), n=150, dt=3600.0, seed=4),
        simulate_track("beta", tau=(6 * 3600.0,), n=120, dt=3600.0, sigma=(2e6, 5e5), seed=5),
    ]


@pytest.fixture
def movebank_csv(tmp_path):
    """Three animals: `A` with a duplicated timestamp, `B` with a missing coordinate, `C` with a single fix."""
    ts = pd.date_range("2024-03-01", periods=5, freq="h", tz="UTC")
    rows = []
    for i, stamp in enumerate(ts):
        rows.append({"individual-local-identifier": "A", "timestamp": stamp, "location-long": 8.0 + 0.001 * i,
                     "location-lat": 47.0, "gps:hdop": 1.5})
    rows.append({"individual-local-identifier": "A", "timestamp": ts[2], "location-long": 8.5,
                 "location-lat": 47.5, "gps:hdop": 1.0})
    for i, stamp in enumerate(ts):
        rows.append({"individual-local-identifier": "B", "timestamp": stamp, "location-long": None if i == 3 else 8.01,
                     "location-lat": 47.0 + 0.001 * i, "gps:hdop": 2.0})
    rows.append({"individual-local-identifier": "C", "timestamp": ts[0], "location-long": 8.02,
                 "location-lat": 47.01, "gps:hdop": 1.0})

    path = tmp_path / "animals.csv"
    pd.DataFrame(rows).to_csv(path, index=False)
    return path
