"""
Evaluate a multidimensional natural cubic spline, or its partial derivatives,
given its coefficients.

The core function `spline_deriv_1` evaluates the spline at a single site,
without checking its inputs.  It is `numba.njit`ed, so it can be called in a
loop from other `numba` code.  The universal function `_spline_deriv` wraps it
to evaluate at many sites in one call, using `numba`'s `guvectorize`.

The functions `spline_deriv` and `spline_eval` validate their inputs and
dispatch to one of these.
"""

import numpy as np
import numba as nb

from .basis import bascmp, next_index, support_range
from .errors import ErrorCode, MESSAGES, _reporter
from .grid import make_grid, num_coeffs


@nb.njit
def spline_deriv_1(x, nderiv, coef, xmin, dx, nodes):
    """
    Evaluate (a partial derivative of) a spline at a single site.

    Parameters
    ----------
    x : ndarray, 1d
        Evaluation site, one coordinate per dimension.

    nderiv : ndarray of int, 1d
        Order of the partial derivative along each axis, each 0, 1, or 2.

    coef : ndarray, 1d
        Spline coefficients, as from `spline_fit`.

    xmin, dx, nodes : ndarray, 1d
        The node grid; see `NodeGrid`.

    Returns
    -------
    f : float
        The spline, differentiated `nderiv[i]` times along each axis `i`,
        evaluated at `x`.

    Notes
    -----
    No checks are made of the inputs.
    """
    ndim = len(nodes)
    ibmn = np.empty(ndim, dtype=np.int64)
    ibmx = np.empty(ndim, dtype=np.int64)
    support_range(x, xmin, dx, nodes, ibmn, ibmx)

    f = 0.0
    ib = ibmn.copy()
    while True:
        icol, basm = bascmp(x, nderiv, xmin, dx, nodes, ib)
        f += coef[icol] * basm
        if not next_index(ib, ibmn, ibmx):
            break
    return f


@nb.njit
def spline_eval_1(x, coef, xmin, dx, nodes):
    """Evaluate a spline at a single site.  See `spline_deriv_1`."""
    nderiv = np.zeros(len(nodes), dtype=np.int64)
    return spline_deriv_1(x, nderiv, coef, xmin, dx, nodes)


@nb.guvectorize(
    [(nb.f8[:], nb.i8[:], nb.f8[:], nb.f8[:], nb.f8[:], nb.i8[:], nb.f8[:])],
    "(m),(m),(n),(m),(m),(m)->()",
)
def _spline_deriv(x, nderiv, coef, xmin, dx, nodes, f):
    f[0] = spline_deriv_1(x, nderiv, coef, xmin, dx, nodes)


def spline_deriv(x, nderiv, coef, xmin, xmax, nodes, **kwargs):
    """
    Evaluate a partial derivative of a spline at one or many sites.

    Parameters
    ----------
    x : float or ndarray

        Evaluation site(s).  A single site is given as a 1D array of length
        `ndim` (or, when `ndim == 1`, as a scalar).  Many sites are given as
        an array of shape `(..., ndim)` (or, when `ndim == 1`, as an array of
        any shape whose last dimension is not of length 1).

    nderiv : array-like of int

        Order of the partial derivative along each axis, each 0, 1, or 2.
        For example, with `ndim == 2`, `nderiv = (1, 1)` gives the mixed
        second partial derivative.

    coef : ndarray

        Spline coefficients, as from `spline_fit`, of length at least
        `prod(nodes)`.

    xmin, xmax, nodes : array-like

        The node grid, exactly as given to `spline_fit`.

    Returns
    -------
    f : float or ndarray

        The partial derivative at `x`: a float if `x` is a single site,
        otherwise an array of shape `x.shape[:-1]`.  NaN if `ierror` is
        nonzero.

    ierror : ErrorCode

        `OK` (0) for success, otherwise

        - `NDIM` (101) if `ndim` is not in 1, ..., 4,
        - `NODES` (102) if some `nodes[i] < 4`,
        - `XRANGE` (103) if some `xmin[i] == xmax[i]`,
        - `NCF` (104) if `coef` has fewer than `prod(nodes)` elements,
        - `NDERIV` (108) if some `nderiv[i]` is not 0, 1, or 2.

    Other Parameters
    ----------------
    output : bool, Default True

        If False, print nothing.

    report : function, Default `natspline.errors.report`

        Diagnostic collaborator, called as `report(ierror, mess)`.

    Notes
    -----
    Outside the node grid the spline extrapolates linearly.
    """
    report = _reporter(kwargs)

    def fail(ierror):
        report(ierror, " spline_deriv - " + MESSAGES[ierror])
        return np.nan, ierror

    grid, ierror = make_grid(xmin, xmax, nodes)
    if ierror != ErrorCode.OK:
        return fail(ierror)
    xmin, dx, nodes = grid
    ndim = nodes.size

    coef = np.asarray(coef, dtype=np.float64).reshape(-1)
    if coef.size < num_coeffs(nodes):
        return fail(ErrorCode.NCF)

    nderiv = np.atleast_1d(np.asarray(nderiv, dtype=np.int64))
    if nderiv.shape != nodes.shape:
        raise ValueError(
            f"Expected `nderiv` of length {ndim}; found shape {nderiv.shape}"
        )
    if np.any((nderiv < 0) | (nderiv > 2)):
        return fail(ErrorCode.NDERIV)

    x = _as_sites(x, ndim)
    if x.ndim == 1:
        return float(spline_deriv_1(x, nderiv, coef, xmin, dx, nodes)), ierror
    return _spline_deriv(x, nderiv, coef, xmin, dx, nodes), ierror


def spline_eval(x, coef, xmin, xmax, nodes, **kwargs):
    """
    Evaluate a spline at one or many sites.

    As `spline_deriv` with `nderiv` all zero.
    """
    nderiv = np.zeros(np.size(nodes), dtype=np.int64)
    return spline_deriv(x, nderiv, coef, xmin, xmax, nodes, **kwargs)


def _as_sites(x, ndim):
    """Evaluation site(s) as a float array whose last dimension is `ndim`"""
    x = np.asarray(x, dtype=np.float64)
    if x.ndim == 0:
        x = x.reshape(1)
    if ndim == 1 and x.shape[-1] != 1:
        x = x[..., np.newaxis]
    if x.shape[-1] != ndim:
        raise ValueError(
            f"Expected `x` with last dimension of length {ndim}; found shape {x.shape}"
        )
    return x
