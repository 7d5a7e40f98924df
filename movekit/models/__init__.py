from .variogram import Variogram, empirical_variogram
from .movement_model import MovementModel, CANDIDATE_MODELS, parse_spec, chisq_ci
from .fitter import guess_model, fit_model, try_models, ModelSelection
from .ud import UtilizationDistribution
from .home_range import estimate_home_range
from .occurrence import estimate_occurrence

__all__ = [
    "Variogram",
    "empirical_variogram",
    "MovementModel",
    "CANDIDATE_MODELS",
    "parse_spec",
    "chisq_ci",
    "guess_model",
    "fit_model",
    "try_models",
    "ModelSelection",
    "UtilizationDistribution",
    "estimate_home_range",
    "estimate_occurrence",
]
