from .data_view import show_data
from .outliers import show_outliers
from .models import show_models
from .distributions import show_distributions
from .map_view import show_map

__all__ = ["show_data", "show_outliers", "show_models", "show_distributions", "show_map"]
