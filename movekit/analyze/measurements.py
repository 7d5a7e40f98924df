from __future__ import annotations

import numpy as np
import pandas as pd
from shapely.geometry import MultiPoint
from geopy.distance import great_circle

from movekit.utils import get_logger

logger = get_logger(__name__)

_EARTH_RADIUS_M = 6_371_008.8

def great_circle_distance(pt1:tuple, pt2:tuple):
    '''
    Haversine distance in meters between (lat, lon) pairs in degrees.
    Coordinates may be scalars or arrays; arrays are compared element-wise.
    '''
    lat1, lon1 = np.radians(pt1[0]), np.radians(pt1[1])
    lat2, lon2 = np.radians(pt2[0]), np.radians(pt2[1])

    h = np.sin((lat2 - lat1) / 2)**2 + np.cos(lat1) * np.cos(lat2) * np.sin((lon2 - lon1) / 2)**2
    return 2 * _EARTH_RADIUS_M * np.arcsin(np.sqrt(np.clip(h, 0, 1)))

def track_length(lat, lon):
    '''
    Total great-circle length (m) of a path through consecutive (lat, lon) fixes.
    '''
    lat = np.asarray(lat, dtype=float)
    lon = np.asarray(lon, dtype=float)
    if lat.size < 2:
        return 0.0
    return float(np.sum(great_circle_distance((lat[:-1], lon[:-1]), (lat[1:], lon[1:]))))

def center_of_mass(lat, lon, weights=None):
    '''
    Description
    -----------
    Weighted mean position on the sphere: fixes are averaged as unit vectors and the mean vector
    is converted back to latitude / longitude.

    Returns
    -------
    (lat, lon) : tuple of degrees
    '''
    lat = np.radians(np.asarray(lat, dtype=float))
    lon = np.radians(np.asarray(lon, dtype=float))

    vectors = np.column_stack([np.cos(lat) * np.cos(lon), np.cos(lat) * np.sin(lon), np.sin(lat)])
    mx, my, mz = np.average(vectors, axis=0, weights=weights)

    return (float(np.degrees(np.arctan2(mz, np.hypot(mx, my)))), float(np.degrees(np.arctan2(my, mx))))

def centermost_point(coords):
    '''
    The (lat, lon) pair in `coords` nearest the centroid of all of them.
    '''
    coords = [tuple(pt) for pt in coords]
    centroid = MultiPoint(coords).centroid
    return min(coords, key=lambda point: great_circle(point, (centroid.x, centroid.y)).m)

def distance_to_center(data:pd.DataFrame):
    '''
    Description
    -----------
    Distance (meters) of every fix to its animal's median x / y center.

    Parameters
    ----------
    data : pd.DataFrame
        Merged fixes with columns ["identity", "x", "y"]

    Returns
    -------
    pd.Series named `distance_center`, aligned with `data`
    '''
    grouped = data.groupby("identity", observed=True, sort=False)
    center_x = grouped["x"].transform("median")
    center_y = grouped["y"].transform("median")
    distance = np.hypot(data["x"] - center_x, data["y"] - center_y)
    return pd.Series(distance, index=data.index, name="distance_center")

def _track_speeds(t:np.ndarray, x:np.ndarray, y:np.ndarray, error:np.ndarray, error_adjusted:bool):
    dt = np.diff(t)
    dist = np.hypot(np.diff(x), np.diff(y))
    if error_adjusted:
        # per-axis standard deviations combined into a 2D distance uncertainty
        combined = np.sqrt(2 * (error[:-1]**2 + error[1:]**2))
        dist = np.clip(dist - combined, 0, None)

    with np.errstate(divide="ignore", invalid="ignore"):
        step = np.where(dt > 0, dist / np.where(dt > 0, dt, 1), np.where(dist > 0, np.inf, 0.0))

    incoming = np.concatenate([[np.nan], step])
    outgoing = np.concatenate([step, [np.nan]])
    # endpoints fall back on their only neighbor
    return np.fmin(incoming, outgoing)

def step_speeds(data:pd.DataFrame, error_adjusted:bool=True):
    '''
    Description
    -----------
    Speed (m/s) of every fix: the smaller of the speeds from the previous fix and to the next fix of the same animal.
    A single displaced fix has both speeds high and is flagged; its neighbors keep one honest speed and are not.

    Parameters
    ----------
    data : pd.DataFrame
        Merged fixes with columns ["identity", "t", "x", "y", "error"], sorted by time within each animal
    error_adjusted : bool, default=True
        If True, the combined location error of both fixes is subtracted from each step distance (floored at 0)

    Returns
    -------
    pd.Series named `speed`, aligned with `data`
    '''
    speed = pd.Series(np.nan, index=data.index, name="speed")
    for _, group in data.groupby("identity", observed=True, sort=False):
        if len(group) < 2:
            speed.loc[group.index] = 0.0
            continue
        speed.loc[group.index] = _track_speeds(
            group["t"].to_numpy(dtype=float),
            group["x"].to_numpy(dtype=float),
            group["y"].to_numpy(dtype=float),
            group["error"].to_numpy(dtype=float),
            error_adjusted,
        )
    return speed
