import numpy as np
import numba as nb

from .errors import ErrorCode, MESSAGES
from .evaluate import _as_sites, _spline_deriv, spline_deriv_1
from .grid import make_grid


def make_spline(xmin, xmax, nodes, nderiv=0, kind="u"):
    """Make function to evaluate splines on a given node grid.

    Parameters
    ----------
    xmin, xmax, nodes : array-like

        The node grid, exactly as given to `spline_fit`.

    nderiv : int or array-like of int, Default 0

        Order of the partial derivative along each axis, each 0, 1, or 2.
        An int applies to every axis.

    kind : str, Default "u"

        - If "1", a `numba.njit`ed function is returned that evaluates at a
          single site.  Use this inside other `numba.njit`ed functions.
          Its inputs are

            - x : ndarray(float, 1d), of length `ndim`
            - coef : ndarray(float, 1d)

        - If "u", a function is returned that evaluates at one or many sites,
          as for `spline_deriv`.  Its inputs are

            - x : ndarray(float, (..., ndim))
            - coef : ndarray(float, 1d)

    Returns
    -------
    f : function

        Evaluating function, `y = f(x, coef)`.  No error codes are returned,
        and for `kind="1"` no checks are made of `x` or `coef`.

    Examples
    --------
    >>> coef, d, ierror = spline_fit(X, Y, xmin, xmax, nodes)
    >>> fx = make_spline(xmin, xmax, nodes, (1, 0))
    >>> fx(X, coef)  # d/dx of the fit, at the data sites
    """

    grid, ierror = make_grid(xmin, xmax, nodes)
    if ierror != ErrorCode.OK:
        raise ValueError(f"Invalid node grid: {MESSAGES[ierror]}")
    xmin, dx, nodes = grid
    ndim = nodes.size

    nderiv = np.broadcast_to(np.asarray(nderiv, dtype=np.int64), nodes.shape).copy()
    if np.any((nderiv < 0) | (nderiv > 2)):
        raise ValueError(f"Expected `nderiv` in (0, 1, 2); got {nderiv}")

    if kind == "1":

        @nb.njit
        def fcn(x, coef):
            return spline_deriv_1(x, nderiv, coef, xmin, dx, nodes)

    elif kind == "u":

        def fcn(x, coef):
            x = _as_sites(x, ndim)
            coef = np.asarray(coef, dtype=np.float64)
            if x.ndim == 1:
                return spline_deriv_1(x, nderiv, coef, xmin, dx, nodes)
            return _spline_deriv(x, nderiv, coef, xmin, dx, nodes)

    else:
        raise ValueError(f"Expected `kind` in ('1', 'u'); got {kind}")

    return fcn
