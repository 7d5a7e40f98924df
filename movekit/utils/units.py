from __future__ import annotations

import numpy as np

_SECONDS = [
    ("second", 1.0),
    ("minute", 60.0),
    ("hour", 3600.0),
    ("day", 86400.0),
    ("month", 86400.0 * 365.25 / 12),
    ("year", 86400.0 * 365.25),
]

def _representative(values) -> float:
    values = np.abs(np.asarray(values, dtype=float).ravel())
    values = values[np.isfinite(values)]
    if values.size == 0:
        return 0.0
    return float(np.median(values))

def pick_unit_distance(values):
    '''
    Description
    -----------
    Picks a readable distance unit for a vector of values in meters.

    Returns
    -------
    (name, scale) : tuple
        `values / scale` is expressed in `name`
    '''
    if _representative(values) < 1000:
        return "m", 1.0
    return "km", 1000.0

def pick_unit_speed(values):
    # 1 km/h == 1/3.6 m/s
    if _representative(values) < 1 / 3.6:
        return "m/s", 1.0
    return "km/h", 1 / 3.6

def pick_unit_area(values):
    rep = _representative(values)
    if rep < 1e4:
        return "m²", 1.0
    if rep < 1e6:
        return "ha", 1e4
    return "km²", 1e6

def pick_unit_seconds(values):
    rep = _representative(values)
    name, scale = _SECONDS[0]
    for unit, size in _SECONDS:
        if rep >= size:
            name, scale = unit, size
    return name, scale

_PICKERS = {
    "distance": pick_unit_distance,
    "speed": pick_unit_speed,
    "area": pick_unit_area,
    "seconds": pick_unit_seconds,
}

def format_with_unit(value:float, kind:str, digits:int=2):
    if kind not in _PICKERS:
        raise ValueError(f"Unknown unit kind '{kind}'. Expected one of {list(_PICKERS)}")
    if value is None or not np.isfinite(value):
        return "NA"
    name, scale = _PICKERS[kind]([value])
    if kind == "seconds" and round(value / scale, digits) != 1:
        name += "s"
    return f"{value / scale:.{digits}f} {name}"
