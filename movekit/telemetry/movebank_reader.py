from __future__ import annotations

from pathlib import Path
import pickle
import pandas as pd

from .telemetry import Telemetry, local_projection
from movekit.utils import get_logger, settings

logger = get_logger(__name__)

class MovebankReader:

    _ID_COL = "individual-local-identifier"

    _REQUIRED = [_ID_COL, "timestamp", "location-long", "location-lat"]

    _NAMES = {
        "individual-local-identifier": "identity",
        "location-long": "lon",
        "location-lat": "lat",
    }

    def __init__(self, file_path:str, cache_dir:str=None, uere:float=None):
        self.file_path = Path(file_path)
        self.uere = settings.UERE if uere is None else uere
        self.total_records = None
        self.dropped_records = 0

        if not self.file_path.is_file():
            raise FileNotFoundError(f"No Movebank file found at {file_path}")

        cache_dir = settings.CACHE_DIR if cache_dir is None else Path(cache_dir)
        self.cache_file = cache_dir / f"{self.file_path.stem}.pkl"

        logger.debug(f"MovebankReader initialized for {self.file_path} (cache at {self.cache_file}).")

    def read(self, use_cache:bool=True):
        '''
        Description
        -----------
        Reads a Movebank CSV into a cleaned DataFrame with one row per fix.

        Steps
        -----
        1. Load from the pickle cache if present
        2. Verify required columns
        3. Parse timestamps as UTC; drop rows with missing coordinates or unparsable timestamps
        4. Sort by animal and time; drop duplicated timestamps for the same animal (first kept)
        5. Derive per-axis location error from the horizontal accuracy estimate or HDOP * UERE

        Returns
        -------
        Pandas DataFrame with columns ["identity", "timestamp", "lon", "lat", "error"]
        '''
        if use_cache and self.cache_file.exists():
            logger.info(f"Loading cached Movebank data located at {self.cache_file}.")
            with open(self.cache_file, "rb") as f:
                return pickle.load(f)

        logger.info(f"Loading Movebank file {self.file_path}.")
        raw = pd.read_csv(self.file_path)

        missing = set(self._REQUIRED) - set(raw.columns)
        if missing:
            raise ValueError(f"Movebank file is missing the following required columns: {missing}")

        self.total_records = len(raw)

        df = raw.rename(columns=self._NAMES)
        df["identity"] = df["identity"].astype(str)
        df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True, errors="coerce")
        df["error"] = self._location_error(raw)

        df = df.dropna(subset=["timestamp", "lon", "lat"])
        n_invalid = self.total_records - len(df)
        if n_invalid:
            logger.info(f"Dropped {n_invalid} records with missing coordinates or unparsable timestamps.")

        df = df.sort_values(by=["identity", "timestamp"], kind="stable")
        duplicated = df.duplicated(subset=["identity", "timestamp"], keep="first")
        if duplicated.any():
            logger.warning(f"Dropped {int(duplicated.sum())} records with duplicated timestamps (first record kept).")
            df = df[~duplicated]

        self.dropped_records = self.total_records - len(df)
        df = df.loc[:, ["identity", "timestamp", "lon", "lat", "error"]].reset_index(drop=True)

        if use_cache:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.cache_file, "wb") as f:
                pickle.dump(df, f)

        logger.info(f"Finished loading {len(df)} fixes for {df['identity'].nunique()} animals.")
        return df

    def read_telemetry(self, use_cache:bool=True):
        '''
        Description
        -----------
        Reads the file and splits it into one Telemetry object per animal, all sharing one projection
        centered on the median of every fix. Animals with fewer than 2 fixes are skipped.

        Returns
        -------
        list[Telemetry], sorted by identity
        '''
        df = self.read(use_cache=use_cache)
        projection = local_projection(df["lon"], df["lat"])

        tele_list = []
        for identity, group in df.groupby("identity", sort=False):
            if len(group) < 2:
                logger.warning(f"Animal '{identity}' has fewer than 2 valid fixes. Skipping.")
                continue
            tele_list.append(
                Telemetry(identity, group["timestamp"], group["lon"], group["lat"], error=group["error"], projection=projection)
            )

        return tele_list

    def clear_cache(self):

        if self.cache_file.is_file():
            self.cache_file.unlink()

            logger.info(f"Deleted cache file {self.cache_file}")
        else:
            raise FileNotFoundError(f"No file found at {self.cache_file}")

    def _location_error(self, raw:pd.DataFrame):
        if "eobs:horizontal-accuracy-estimate" in raw.columns:
            # e-obs accuracy estimates are 2D; halve for a per-axis standard deviation
            return raw["eobs:horizontal-accuracy-estimate"].astype(float) / 2
        if "gps:hdop" in raw.columns:
            return raw["gps:hdop"].astype(float) * self.uere
        return pd.Series(0.0, index=raw.index)
