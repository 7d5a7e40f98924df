from __future__ import annotations

from functools import reduce
from pathlib import Path
import json
import numpy as np
import pandas as pd
from contourpy import contour_generator
from pyproj import Transformer
from shapely.geometry import Polygon, mapping
from shapely.ops import transform

from .movement_model import chisq_ci
from movekit.utils import get_logger

logger = get_logger(__name__)

def make_grid(xy:np.ndarray, pad:float, grid_size:int=150):
    '''
    Description
    -----------
    Square-celled grid covering the bounding box of `xy` padded by `pad` meters on every side.

    Returns
    -------
    (x, y) : 1D arrays of cell centers
    '''
    x_min, y_min = xy.min(axis=0) - pad
    x_max, y_max = xy.max(axis=0) + pad
    cell = max(x_max - x_min, y_max - y_min) / grid_size
    x = np.arange(x_min, x_max + cell, cell)
    y = np.arange(y_min, y_max + cell, cell)
    return x, y

def pdf_to_cdf(pdf:np.ndarray, cell_area:float):
    '''
    For every cell, the probability mass of all cells at least as dense.
    The `level` home range is the set of cells with `cdf <= level`.
    '''
    flat = pdf.ravel()
    order = np.argsort(flat)[::-1]
    cdf = np.empty_like(flat)
    cdf[order] = np.cumsum(flat[order]) * cell_area
    return np.clip(cdf, 0, 1).reshape(pdf.shape)

class UtilizationDistribution:
    '''
    Description
    -----------
    A gridded probability surface over space for one animal, either a home range
    (where the animal spends time) or an occurrence distribution (where it was during sampling).

    Attributes
    ----------
    x, y : 1D cell-center coordinates in the telemetry projection (m)
    pdf : (len(y), len(x)) density per m², summing to 1 over the grid
    cdf : (len(y), len(x)) mass of all cells at least as dense as each cell
    dof : effective sample size behind the area estimate
    bandwidth : kernel bandwidth relative to the movement-model covariance
    '''

    def __init__(self, identity:str, kind:str, x:np.ndarray, y:np.ndarray, pdf:np.ndarray, dof:float, bandwidth:float, projection:str, model_name:str=None):
        self.identity = identity
        self.kind = kind
        self.x = np.asarray(x, dtype=float)
        self.y = np.asarray(y, dtype=float)
        self.cell_area = float((self.x[1] - self.x[0]) * (self.y[1] - self.y[0]))

        pdf = np.asarray(pdf, dtype=float)
        total = pdf.sum() * self.cell_area
        if not total > 0:
            raise ValueError(f"Empty {kind} distribution for '{identity}'.")
        self.pdf = pdf / total
        self.cdf = pdf_to_cdf(self.pdf, self.cell_area)

        self.dof = dof
        self.bandwidth = bandwidth
        self.projection = projection
        self.model_name = model_name

    def area(self, level:float=0.95):
        '''
        Area (m²) of the smallest region holding `level` of the probability mass.
        '''
        if not 0 < level < 1:
            raise ValueError(f"Level must be in (0, 1), got {level}")
        return float(np.count_nonzero(self.cdf <= level) * self.cell_area)

    def area_ci(self, level:float=0.95, ci:float=0.95):
        return chisq_ci(self.area(level), self.dof, ci)

    def contours(self, level:float=0.95):
        '''
        Description
        -----------
        The `level` region as a (Multi)Polygon in projected coordinates.
        Nested contour rings are combined with the even-odd rule so islands and holes are preserved.
        '''
        if not 0 < level < 1:
            raise ValueError(f"Level must be in (0, 1), got {level}")

        # pad with full mass so every contour closes inside the grid
        dx = self.x[1] - self.x[0]
        dy = self.y[1] - self.y[0]
        x = np.concatenate([[self.x[0] - dx], self.x, [self.x[-1] + dx]])
        y = np.concatenate([[self.y[0] - dy], self.y, [self.y[-1] + dy]])
        cdf = np.pad(self.cdf, 1, constant_values=1.0)

        lines = contour_generator(x=x, y=y, z=cdf).lines(level)
        rings = [Polygon(line) for line in lines if len(line) >= 4]
        rings = [ring.buffer(0) for ring in rings if ring.area > 0]
        if not rings:
            return Polygon()
        return reduce(lambda a, b: a.symmetric_difference(b), rings)

    def contours_lonlat(self, level:float=0.95):
        transformer = Transformer.from_crs(self.projection, "EPSG:4326", always_xy=True)
        return transform(transformer.transform, self.contours(level))

    def summary(self, levels:tuple=(0.95,), ci:float=0.95):
        rows = []
        for level in levels:
            low, est, high = self.area_ci(level, ci)
            rows.append({
                "identity": self.identity,
                "kind": self.kind,
                "model": self.model_name,
                "level": level,
                "area": est,
                "area_low": low,
                "area_high": high,
                "dof": self.dof,
            })
        return pd.DataFrame(rows)

    def to_geojson(self, path:str=None, levels:tuple=(0.95,)):
        '''
        Description
        -----------
        Exports the contour regions as a GeoJSON FeatureCollection in lon / lat.

        Parameters
        ----------
        path : str, default=None
            File to write. If `None`, nothing is written.

        Returns
        -------
        The FeatureCollection as a dict
        '''
        features = []
        for _, row in self.summary(levels).iterrows():
            geometry = self.contours_lonlat(row["level"])
            features.append({
                "type": "Feature",
                "geometry": mapping(geometry),
                "properties": {
                    "identity": self.identity,
                    "kind": self.kind,
                    "model": self.model_name,
                    "level": float(row["level"]),
                    "area_m2": float(row["area"]),
                    "area_low_m2": float(row["area_low"]),
                    "area_high_m2": float(row["area_high"]),
                },
            })

        collection = {"type": "FeatureCollection", "features": features}

        if path is not None:
            path = Path(path)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(collection))
            logger.info(f"Wrote {self.kind} contours for '{self.identity}' to {path}.")

        return collection

    def __repr__(self):
        return f"UtilizationDistribution(identity='{self.identity}', kind='{self.kind}', grid={self.pdf.shape})"
