from .telemetry import Telemetry, local_projection, project, unproject
from .movebank_reader import MovebankReader
from .merge import MergedTracks, merge_tracks

__all__ = ["Telemetry", "MovebankReader", "MergedTracks", "merge_tracks", "local_projection", "project", "unproject"]
