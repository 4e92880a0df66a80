__version__ = "1.0.0"

import importlib as _importlib

from .errors import ErrorCode, report
from .grid import NodeGrid, make_grid, coef_index, coef_grid, num_coeffs
from .fit import spline_fit, spline_fit_unweighted, fit_work_size
from .evaluate import spline_eval, spline_deriv, spline_eval_1, spline_deriv_1
from .tools import make_spline

# List of modules not explicitly imported above
modules = ["basis", "lsq"]

__all__ = modules + [
    k for (k, v) in locals().items() if not k.startswith("_")
]  # all local, public functions


def __dir__():
    return __all__


# Lazy load of modules.
def __getattr__(name):
    if name in modules:
        return _importlib.import_module(f"natspline.{name}")
    else:
        try:
            return globals()[name]
        except KeyError:
            raise AttributeError(f"Module 'natspline' has no attribute '{name}'")
