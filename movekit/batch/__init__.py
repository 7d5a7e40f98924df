from .parallel import par_lapply, par_try_models, par_fit_best, par_variograms, par_hrange_each, par_occur

__all__ = ["par_lapply", "par_try_models", "par_fit_best", "par_variograms", "par_hrange_each", "par_occur"]
