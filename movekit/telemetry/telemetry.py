from __future__ import annotations

import numpy as np
import pandas as pd
from pyproj import Transformer

from movekit.utils import get_logger

logger = get_logger(__name__)

_WGS84 = "EPSG:4326"

_EPOCH = pd.Timestamp("1970-01-01", tz="UTC")

def local_projection(lon, lat) -> str:
    '''
    Azimuthal equidistant projection centered on the median fix, in meters.
    '''
    lon_0 = float(np.median(np.asarray(lon, dtype=float)))
    lat_0 = float(np.median(np.asarray(lat, dtype=float)))
    return f"+proj=aeqd +lat_0={lat_0:.6f} +lon_0={lon_0:.6f} +datum=WGS84 +units=m +no_defs"

def project(lon, lat, projection:str):
    transformer = Transformer.from_crs(_WGS84, projection, always_xy=True)
    x, y = transformer.transform(np.asarray(lon, dtype=float), np.asarray(lat, dtype=float))
    return np.asarray(x, dtype=float), np.asarray(y, dtype=float)

def unproject(x, y, projection:str):
    transformer = Transformer.from_crs(projection, _WGS84, always_xy=True)
    lon, lat = transformer.transform(np.asarray(x, dtype=float), np.asarray(y, dtype=float))
    return np.asarray(lon, dtype=float), np.asarray(lat, dtype=float)

class Telemetry:
    '''
    Description
    -----------
    A single animal's time series of GPS fixes with location-error metadata.

    `data` columns:
    - timestamp : tz-aware UTC datetime
    - t : seconds since epoch
    - lon, lat : WGS84 degrees
    - x, y : meters in `projection`
    - error : per-axis location error standard deviation in meters (0 when unknown)
    '''

    _COLUMNS = ["timestamp", "t", "lon", "lat", "x", "y", "error"]

    def __init__(self, identity:str, timestamp, lon, lat, error=None, projection:str=None):
        if len(timestamp) < 2:
            raise ValueError(f"Telemetry for '{identity}' needs at least 2 fixes, got {len(timestamp)}.")

        self.identity = str(identity)

        timestamp = pd.to_datetime(pd.Series(timestamp).reset_index(drop=True), utc=True)

        df = pd.DataFrame({
            "timestamp": timestamp,
            "lon": np.asarray(lon, dtype=float),
            "lat": np.asarray(lat, dtype=float),
            "error": np.zeros(len(timestamp)) if error is None else np.asarray(error, dtype=float),
        })
        df["error"] = df["error"].fillna(0.0).clip(lower=0.0)
        df = df.sort_values(by="timestamp", kind="stable").reset_index(drop=True)
        df["t"] = (df["timestamp"] - _EPOCH).dt.total_seconds()

        self.projection = projection if projection is not None else local_projection(df["lon"], df["lat"])
        df["x"], df["y"] = project(df["lon"], df["lat"], self.projection)

        self.data = df[self._COLUMNS]

        logger.debug(f"Telemetry for '{self.identity}' initialized with {self.n} fixes.")

    @classmethod
    def from_dataframe(cls, df:pd.DataFrame, identity:str, timestamp_col:str="timestamp", lon_col:str="lon", lat_col:str="lat", 
                       error_col:str=None, hdop_col:str=None, uere:float=10.0, projection:str=None):
        '''
        Description
        -----------
        Builds a Telemetry object from raw columns. Location error is taken from `error_col` when given,
        otherwise from `hdop_col * uere`, otherwise assumed to be 0.
        '''
        missing = {timestamp_col, lon_col, lat_col} - set(df.columns)
        if missing:
            raise ValueError(f"DataFrame is missing the following required columns: {missing}")

        if error_col is not None and error_col in df.columns:
            error = df[error_col].to_numpy(dtype=float)
        elif hdop_col is not None and hdop_col in df.columns:
            error = df[hdop_col].to_numpy(dtype=float) * uere
        else:
            error = None

        return cls(identity, df[timestamp_col], df[lon_col], df[lat_col], error=error, projection=projection)

    @property
    def n(self):
        return len(self.data)

    @property
    def duration(self):
        return float(self.data["t"].iloc[-1] - self.data["t"].iloc[0])

    @property
    def interval(self):
        return float(np.median(np.diff(self.data["t"].to_numpy())))

    @property
    def has_error(self):
        return bool((self.data["error"] > 0).any())

    def xy(self):
        return self.data[["x", "y"]].to_numpy(dtype=float)

    def reproject(self, projection:str):
        df = self.data
        return Telemetry(self.identity, df["timestamp"], df["lon"], df["lat"], error=df["error"], projection=projection)

    def subset(self, mask):
        df = self.data[np.asarray(mask, dtype=bool)]
        return Telemetry(self.identity, df["timestamp"], df["lon"], df["lat"], error=df["error"], projection=self.projection)

    def __len__(self):
        return self.n

    def __repr__(self):
        return f"Telemetry(identity='{self.identity}', n={self.n})"
