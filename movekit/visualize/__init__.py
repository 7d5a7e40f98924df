from .map_maker import MapMaker
from .chart_maker import ChartMaker

__all__ = ["ChartMaker", "MapMaker"]
