from .measurements import great_circle_distance, track_length, center_of_mass, centermost_point, distance_to_center, step_speeds
from .temporal_analyzer import TemporalAnalyzer
from .outlier_detector import OutlierDetector

__all__ = [
    "great_circle_distance",
    "track_length",
    "center_of_mass",
    "centermost_point",
    "distance_to_center",
    "step_speeds",
    "TemporalAnalyzer",
    "OutlierDetector",
]
