from __future__ import annotations

import numpy as np
import pandas as pd

from .measurements import center_of_mass, track_length
from movekit.utils import get_logger, format_with_unit

logger = get_logger(__name__)

class TemporalAnalyzer:

    _COLUMNS = ["identity", "start", "end", "n_fixes", "interval_s", "duration_s", "interval", "duration",
                "center_lat", "center_lon", "path_length_m", "path_length"]

    def __init__(self, gap_thresh:float=24):
        self.gap_thresh = gap_thresh
        self.results = None

        logger.debug(f"Initialized TemporalAnalyzer with a gap threshold of {self.gap_thresh} hours.")

    def summarize(self, tele_list:list):
        '''
        Description
        -----------
        Sampling summary for each animal: first / last fix, number of fixes,
        median sampling interval, total sampling duration, spherical center of mass
        and great-circle path length.

        Parameters
        ----------
        tele_list : list[Telemetry]

        Returns
        -------
        Pandas DataFrame with one row per animal
        '''
        rows = [self._summarize_one(tele) for tele in tele_list]
        if not rows:
            logger.warning("No telemetry provided, returning empty summary.")
            return pd.DataFrame(columns=self._COLUMNS)

        self.results = pd.DataFrame(rows, columns=self._COLUMNS)
        return self.results

    def _summarize_one(self, tele):
        ts = tele.data["timestamp"]
        interval = tele.interval
        duration = tele.duration
        center_lat, center_lon = center_of_mass(tele.data["lat"], tele.data["lon"])
        path_length = track_length(tele.data["lat"], tele.data["lon"])
        return {
            "identity": tele.identity,
            "start": ts.iloc[0],
            "end": ts.iloc[-1],
            "n_fixes": tele.n,
            "interval_s": interval,
            "duration_s": duration,
            "interval": format_with_unit(interval, "seconds"),
            "duration": format_with_unit(duration, "seconds"),
            "center_lat": center_lat,
            "center_lon": center_lon,
            "path_length_m": path_length,
            "path_length": format_with_unit(path_length, "distance"),
        }

    def identify_gaps(self, tele, gap_thresh:float=None):
        '''
        Sampling gaps longer than `gap_thresh` hours.
        '''
        gap_thresh = self.gap_thresh if gap_thresh is None else gap_thresh
        ts = tele.data["timestamp"]
        time_diffs = ts.diff()
        large_gaps = np.flatnonzero((time_diffs > pd.Timedelta(hours=gap_thresh)).to_numpy())

        gaps = []
        for idx in large_gaps:
            prev_time = ts.iloc[idx - 1]
            curr_time = ts.iloc[idx]
            gaps.append({
                "start": prev_time,
                "end": curr_time,
                "duration_hours": (curr_time - prev_time).total_seconds() / 3600
            })

        if gaps:
            logger.info(f"Animal '{tele.identity}' has {len(gaps)} sampling gaps longer than {gap_thresh} hours.")
        return gaps
