from __future__ import annotations

from typing import NamedTuple
import numpy as np
import pandas as pd

from .telemetry import local_projection
from movekit.analyze import TemporalAnalyzer
from movekit.utils import get_logger

logger = get_logger(__name__)

class MergedTracks(NamedTuple):
    data: pd.DataFrame
    info: pd.DataFrame
    projection: str

def merge_tracks(tele_list:list, projection:str=None):
    '''
    Description
    -----------
    Merges a list of per-animal Telemetry objects into tabular form for plotting and outlier detection.
    Every animal is reprojected onto one common projection (median of all fixes unless given).

    Parameters
    ----------
    tele_list : list[Telemetry]
    projection : str, default=None
        proj string to use instead of the common median-centered projection

    Returns
    -------
    MergedTracks
        data : one row per fix with ["identity", "row_no", "timestamp", "t", "x", "y", "lon", "lat", "error"].
            `identity` is categorical in input order; `row_no` is 1-based over the merged table.
        info : one row per animal (see `TemporalAnalyzer.summarize`)
        projection : the common projection
    '''
    if not tele_list:
        raise ValueError("No telemetry provided to merge.")

    identities = [tele.identity for tele in tele_list]
    duplicated = sorted({identity for identity in identities if identities.count(identity) > 1})
    if duplicated:
        raise ValueError(f"Duplicate animal identities: {duplicated}")

    if projection is None:
        lon = np.concatenate([tele.data["lon"].to_numpy() for tele in tele_list])
        lat = np.concatenate([tele.data["lat"].to_numpy() for tele in tele_list])
        projection = local_projection(lon, lat)

    tele_list = [tele if tele.projection == projection else tele.reproject(projection) for tele in tele_list]

    frames = []
    for tele in tele_list:
        df = tele.data.copy()
        df.insert(0, "identity", tele.identity)
        frames.append(df)

    data = pd.concat(frames, ignore_index=True)
    data["identity"] = pd.Categorical(data["identity"], categories=identities)
    data.insert(1, "row_no", np.arange(1, len(data) + 1))
    data = data.loc[:, ["identity", "row_no", "timestamp", "t", "x", "y", "lon", "lat", "error"]]

    info = TemporalAnalyzer().summarize(tele_list)

    logger.info(f"Merged {len(data)} fixes from {len(tele_list)} animals.")
    return MergedTracks(data=data, info=info, projection=projection)
