from __future__ import annotations

import numpy as np
import pandas as pd

from .measurements import distance_to_center, step_speeds
from movekit.utils import get_logger

logger = get_logger(__name__)

class OutlierDetector:
    '''
    Purpose
    -------
    Flag GPS fixes that are implausibly far from an animal's center or imply an implausible speed.

    Actions
    -------
    - Compute distance to each animal's median center
    - Compute the minimum of incoming / outgoing speed for each fix
    - Flag fixes exceeding either threshold
    - Rebuild telemetry without the flagged fixes
    '''

    _REQUIRED_COLS = ["identity", "timestamp", "t", "x", "y", "error"]

    def __init__(self, distance_thresh:float=None, speed_thresh:float=None, error_adjusted:bool=True):
        '''
        Parameters
        ----------
        distance_thresh : float, default=None
            Meters from the animal's median center above which a fix is flagged. `None` disables the criterion.
        speed_thresh : float, default=None
            Meters per second above which a fix is flagged. `None` disables the criterion.
        error_adjusted : bool, default=True
            Subtract the combined location error from step distances before computing speed.
        '''
        self.distance_thresh = distance_thresh
        self.speed_thresh = speed_thresh
        self.error_adjusted = error_adjusted

        logger.debug("Initialized OutlierDetector with "
                     f"distance threshold of {self.distance_thresh} meters and "
                     f"speed threshold of {self.speed_thresh} m/s.")

    def detect(self, merged):
        '''
        Description
        -----------
        Adds `distance_center` and `speed` columns to a copy of the merged fixes.

        Parameters
        ----------
        merged : MergedTracks | pd.DataFrame
            The value returned from `movekit.telemetry.merge_tracks()` (or its `data` attribute)

        Returns
        -------
        pd.DataFrame
        '''
        df = merged.data if hasattr(merged, "data") else merged

        missing = set(self._REQUIRED_COLS) - set(df.columns)
        if missing:
            raise ValueError(f"DataFrame is missing the following required columns: {missing}")

        df = df.copy()
        df["distance_center"] = distance_to_center(df)
        df["speed"] = step_speeds(df, error_adjusted=self.error_adjusted)

        logger.info(f"Computed distance and speed for {len(df)} fixes.")
        return df

    def flag(self, df:pd.DataFrame):
        '''
        Boolean Series, True where a fix exceeds the distance or the speed threshold.
        '''
        flags = pd.Series(False, index=df.index, name="outlier")

        if self.distance_thresh is not None:
            flags |= df["distance_center"] > self.distance_thresh
        if self.speed_thresh is not None:
            flags |= df["speed"] > self.speed_thresh

        logger.info(f"Flagged {int(flags.sum())} of {len(df)} fixes as outliers.")
        return flags

    def quantile_thresholds(self, df:pd.DataFrame, q:float=0.99):
        '''
        Proposes thresholds from the `q` quantile of distance and (finite) speed, and adopts them.
        '''
        if not 0 < q < 1:
            raise ValueError(f"Quantile must be in (0, 1), got {q}")

        speed = df["speed"].replace(np.inf, np.nan).dropna()
        self.distance_thresh = float(df["distance_center"].quantile(q))
        self.speed_thresh = float(speed.quantile(q)) if len(speed) else None

        logger.debug(f"Quantile {q} thresholds: distance={self.distance_thresh}, speed={self.speed_thresh}.")
        return self.distance_thresh, self.speed_thresh

    def remove(self, tele_list:list, flagged:pd.DataFrame):
        '''
        Description
        -----------
        Rebuilds telemetry without the flagged fixes, matched per animal by timestamp.
        Animals left with fewer than 2 fixes are dropped.

        Parameters
        ----------
        tele_list : list[Telemetry]
        flagged : pd.DataFrame
            Rows (at least ["identity", "timestamp"]) to remove

        Returns
        -------
        list[Telemetry]
        '''
        cleaned = []
        for tele in tele_list:
            removed = flagged.loc[flagged["identity"].astype(str) == tele.identity, "timestamp"]
            if len(removed) == 0:
                cleaned.append(tele)
                continue

            keep = ~tele.data["timestamp"].isin(removed).to_numpy()
            if keep.sum() < 2:
                logger.warning(f"Removing outliers leaves animal '{tele.identity}' with fewer than 2 fixes. Dropping animal.")
                continue

            cleaned.append(tele.subset(keep))
            logger.info(f"Removed {int((~keep).sum())} fixes from animal '{tele.identity}'.")

        return cleaned
