"""
Movement Analysis Toolkit Package

A convenience layer for analyzing animal GPS tracking data:
- merging multi-animal telemetry into tabular form
- flagging distance / speed outliers
- fitting and comparing continuous-time movement models in parallel
- estimating home-range and occurrence distributions
- rendering charts and interactive maps

"""

__version__ = "0.1.0"
