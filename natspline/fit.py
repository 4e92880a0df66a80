"""
Least squares fitting of a multidimensional natural cubic spline to
arbitrarily located data.
"""

import numpy as np
import numba as nb
from time import time

from .basis import bascmp, next_index, support_range
from .errors import ErrorCode, MESSAGES, _reporter
from .grid import make_grid, num_coeffs
from .lsq import IncrementalLSQ, lsq_work_size, TOL_PIVOT

# A node is data sparse if the total weight of the data nearest to it is less
# than SPARSE_CRIT times the weight expected from an even spread of the data.
SPARSE_CRIT = 0.75


def fit_work_size(nodes, xtrap=0.0):
    """Minimum length of the `work` array for `spline_fit`

    Parameters
    ----------
    nodes : array-like of int
        Number of nodes along each axis.

    xtrap : float, Default 0.0
        The smoothing weight for data sparse areas.  When nonzero, `ncol`
        extra locations are needed to count the data near each node.

    Returns
    -------
    int
        `lsq_work_size(ncol)`, plus `ncol` if `xtrap != 0`, where `ncol` is
        the total number of nodes.
    """
    ncol = num_coeffs(nodes)
    return lsq_work_size(ncol) + (ncol if xtrap != 0.0 else 0)


def spline_fit(X, Y, xmin, xmax, nodes, W=None, xtrap=0.0, **kwargs):
    """N-dimensional cubic spline coefficients by weighted least squares.

    A grid of evenly spaced nodes in `ndim` space is defined by `xmin`,
    `xmax`, and `nodes`.  A basis for the natural splines on these nodes
    (cubic splines whose second derivatives normal to the grid boundary are
    zero) is formed, and coefficients are found that minimize the weighted sum
    of squared differences between the spline and the data `Y` at `X`.

    The node grid need not bear any particular relation to the data; it only
    defines the class of splines from which the fit is chosen.  The spline has
    as many degrees of freedom as the grid has nodes, so the choice of grid
    controls its smoothness.

    Parameters
    ----------
    X : ndarray

        Locations of the data, of shape `(ndata, ndim)`.  When `ndim == 1`,
        may also be of shape `(ndata,)`.  The location, number, and ordering
        of the data points is arbitrary.

    Y : ndarray

        Data values, of shape `(ndata,)`.

    xmin, xmax : array-like of float

        The lower and upper extreme corners of the node grid, each of length
        `ndim`.  `xmin[i]` and `xmax[i]` locate the first and last node along
        axis `i`.

    nodes : array-like of int

        Number of nodes along each axis, counting endpoints, each at least 4.
        The node spacing along axis `i` is
        `dx[i] = (xmax[i] - xmin[i]) / (nodes[i] - 1)`.

    W : ndarray, Default None

        Weights, of shape `(ndata,)`.  The fit minimizes the sum over all data
        of `(W * (Y - spline(X)))**2`.  Weights should be non-negative.  Data
        with zero weight are ignored entirely.  If None, all weights are 1.

    xtrap : float, Default 0.0

        Weight of smoothness constraints in data sparse areas.  The region
        between `xmin` and `xmax` is divided into rectangles by the nodes, and
        nodes near which there is disproportionately little data are data
        sparse.  If `xtrap` is nonzero, the least squares problem is augmented
        with derivative constraints at data sparse nodes, keeping the matrix
        well conditioned.  Unity is a good first guess.
        If `xtrap` is zero, a singular matrix can result if large portions of
        the region are without data.

    Returns
    -------
    coef : ndarray

        The spline coefficients, of length `ncol = prod(nodes)`, one per node.
        The first axis varies fastest: `coef` is `C.reshape(-1, order="F")`
        where `C[ib]` is the coefficient of the node with multi-index `ib`.
        See `coef_grid`.  If `ierror` is nonzero, `coef` must not be trusted.

    d : dict

        Diagnostics.

        `"reserr"` : float

            Norm of the residual of the least squares problem, including the
            derivative constraint rows.

        `"n_rows"` : int

            Number of rows in the least squares problem.

        `"n_data_rows"` : int

            Number of rows from data, i.e. the number of data with nonzero
            weight.

        `"n_sparse"` : int

            Number of data sparse nodes given derivative constraints.

        `"solver_ierror"` : ErrorCode

            Error code from the least squares solver.

        `"timer"`, `"timer_rows"`, `"timer_smooth"`, `"timer_solve"` : float

            Time spent in total, on data rows, on constraint rows, and on
            the final solve.

    ierror : ErrorCode

        `OK` (0) for success, otherwise

        - `NDIM` (101) if `ndim` is not in 1, ..., 4,
        - `NODES` (102) if some `nodes[i] < 4`,
        - `XRANGE` (103) if some `xmin[i] == xmax[i]`,
        - `NCF` (104) if the `coef` array provided is too small,
        - `NDATA` (105) if there is no data,
        - `NWRK` (106) if the `work` array provided is too small,
        - `SOLVER` (107) if the least squares solver failed, usually from
          insufficient data.  Ordinarily happens only if `xtrap` is zero or
          `W` is all zeros.

    Other Parameters
    ----------------
    coef : ndarray, Default None

        Output array for the coefficients, of length at least `ncol`.

    work : ndarray, Default None

        Scratch array, of length at least `fit_work_size(nodes, xtrap)`.
        Longer arrays let the solver reduce more rows at once.

    SPARSE_CRIT : float, Default 0.75

        A node is data sparse if the weight of data nearest it is less than
        `SPARSE_CRIT` times the weight expected from an even spread of data.

    TOL_PIVOT : float, Default 1e-18

        Pivots of the triangularized least squares matrix with absolute value
        at most `TOL_PIVOT` mean the system is singular.

    output : bool, Default True

        If False, print nothing.

    diags : bool, Default False

        If True and `output` is True, print a summary of the fit.

    report : function, Default `natspline.errors.report`

        Diagnostic collaborator, called as `report(ierror, mess)`.

    Notes
    -----
    If there is exactly one data point near each node and no other data, the
    spline agrees with the data to machine precision.  Execution time is
    roughly proportional to `ndata * ncol**2`.
    """

    coef = kwargs.get("coef")
    work = kwargs.get("work")
    sparse_crit = kwargs.get("SPARSE_CRIT", SPARSE_CRIT)
    tol_pivot = kwargs.get("TOL_PIVOT", TOL_PIVOT)
    diags = kwargs.get("diags", False)
    output = kwargs.get("output", True)
    report = _reporter(kwargs)

    d = {
        "reserr": np.nan,
        "n_rows": 0,
        "n_data_rows": 0,
        "n_sparse": 0,
        "solver_ierror": ErrorCode.OK,
        "timer": 0.0,
        "timer_rows": 0.0,
        "timer_smooth": 0.0,
        "timer_solve": 0.0,
    }
    timer = time()

    def fail(ierror):
        report(ierror, " spline_fit - " + MESSAGES[ierror])
        return coef, d, ierror

    grid, ierror = make_grid(xmin, xmax, nodes)
    if ierror != ErrorCode.OK:
        return fail(ierror)
    xmin, dx, nodes = grid
    ndim = nodes.size
    ncol = num_coeffs(nodes)

    X, Y, W = _process_data(X, Y, W, ndim)

    if coef is not None and coef.size < ncol:
        return fail(ErrorCode.NCF)

    if Y.size < 1:
        return fail(ErrorCode.NDATA)

    if work is not None and work.size < fit_work_size(nodes, xtrap):
        return fail(ErrorCode.NWRK)

    if coef is None:
        coef = np.empty(ncol, dtype=np.float64)
    if work is None:
        work = np.empty(fit_work_size(nodes, xtrap), dtype=np.float64)

    # Set aside workspace for weighing the data near each node.
    nwrk1 = ncol if xtrap != 0.0 else 0
    lsq = IncrementalLSQ(ncol, work[nwrk1:], tol_pivot, report)

    # One row of the least squares matrix, zero except in columns for basis
    # functions that are nonzero at the point of interest.
    row = np.zeros(ncol, dtype=np.float64)

    # --- Loop through all data points, computing a row for each
    timer_loc = time()
    irow = 0
    for idata in range(Y.size):
        rowwt = W[idata]
        if rowwt == 0.0:
            continue
        irow += 1
        _data_row(X[idata], rowwt, xmin, dx, nodes, row)
        ier = lsq.submit_row(irow, row, rowwt * Y[idata])
        if ier != ErrorCode.OK:
            d["solver_ierror"] = ier
            ierror = ErrorCode.SOLVER
    d["n_data_rows"] = irow
    d["timer_rows"] = time() - timer_loc

    # --- Add derivative constraints at data sparse nodes
    if xtrap != 0.0:
        timer_loc = time()
        cnt = work[:nwrk1]
        totlwt = _weigh_nodes(X, W, xmin, dx, nodes, cnt)
        irow, n_sparse, ier = _smooth_rows(
            lsq, irow, cnt, totlwt, xtrap, sparse_crit, xmin, dx, nodes, row
        )
        if ier != ErrorCode.OK:
            d["solver_ierror"] = ier
            ierror = ErrorCode.SOLVER
        d["n_sparse"] = n_sparse
        d["timer_smooth"] = time() - timer_loc

    d["n_rows"] = irow

    # --- Solve the least squares problem
    timer_loc = time()
    coef[:ncol] = np.nan
    reserr, ier = lsq.finish(coef)
    d["reserr"] = reserr
    d["timer_solve"] = time() - timer_loc
    if ier != ErrorCode.OK:
        d["solver_ierror"] = ier
        ierror = ErrorCode.SOLVER

    d["timer"] = time() - timer

    if ierror != ErrorCode.OK:
        report(ierror, " spline_fit - " + MESSAGES[ierror])

    if diags and output:
        print(" # rows | # data rows | # sparse nodes |    residual    | time (s)")
        print(
            f" {d['n_rows']:6d} |"
            f" {d['n_data_rows']:11d} |"
            f" {d['n_sparse']:14d} |"
            f" {d['reserr']:.8e} |"
            f" {d['timer']:.3f}"
        )

    return coef, d, ierror


def spline_fit_unweighted(X, Y, xmin, xmax, nodes, xtrap=0.0, **kwargs):
    """N-dimensional cubic spline coefficients by least squares.

    As `spline_fit` with all weights equal to 1.
    """
    return spline_fit(X, Y, xmin, xmax, nodes, None, xtrap, **kwargs)


def _process_data(X, Y, W, ndim):
    """Coerce the data to contiguous float arrays and check their shapes"""
    X = np.asarray(X, dtype=np.float64)
    Y = np.asarray(Y, dtype=np.float64).reshape(-1)

    if X.size == 0:
        X = X.reshape(0, ndim)
    elif X.ndim == 1 and ndim == 1:
        X = X[:, np.newaxis]
    if X.ndim != 2 or X.shape[1] != ndim:
        raise ValueError(
            f"Expected `X` of shape (ndata, {ndim}); found shape {X.shape}"
        )
    if X.shape[0] != Y.size:
        raise ValueError(
            f"Expected `Y` to have {X.shape[0]} elements; found {Y.size}"
        )
    X = np.ascontiguousarray(X)

    if W is None:
        W = np.ones(Y.size, dtype=np.float64)
    else:
        W = np.asarray(W, dtype=np.float64).reshape(-1)
        if W.size != Y.size:
            raise ValueError(
                f"Expected `W` to have {Y.size} elements; found {W.size}"
            )

    return X, Y, W


@nb.njit
def _fill_row(x, nderiv, rowwt, xmin, dx, nodes, ibmn, ibmx, row):
    """
    Build one row of the least squares matrix.

    `row` is zeroed, then for every node `ib` in the box `ibmn <= ib <= ibmx`
    the element for that node's coefficient is set to `rowwt` times its basis
    function (differentiated according to `nderiv`) evaluated at `x`.
    """
    row[:] = 0.0
    ib = ibmn.copy()
    while True:
        icol, basm = bascmp(x, nderiv, xmin, dx, nodes, ib)
        row[icol] = rowwt * basm
        if not next_index(ib, ibmn, ibmx):
            break


@nb.njit
def _data_row(x, rowwt, xmin, dx, nodes, row):
    """Build the row of the least squares matrix for a data point at `x`"""
    ndim = len(nodes)
    ibmn = np.empty(ndim, dtype=np.int64)
    ibmx = np.empty(ndim, dtype=np.int64)
    support_range(x, xmin, dx, nodes, ibmn, ibmx)
    nderiv = np.zeros(ndim, dtype=np.int64)
    _fill_row(x, nderiv, rowwt, xmin, dx, nodes, ibmn, ibmx, row)


@nb.njit
def _weigh_nodes(X, W, xmin, dx, nodes, cnt):
    """
    Total the weight of the data nearest to each node.

    Each data point is assigned to its nearest node, and its weight is added
    to the element of `cnt` (laid out like the coefficients) for that node.
    Points more than half a node spacing outside the grid are not counted.

    Returns the total weight counted.
    """
    ndim = len(nodes)
    cnt[:] = 0.0
    totlwt = 0.0
    for idata in range(X.shape[0]):
        bump = W[idata]
        if bump == 0.0:
            continue

        # Linear address of the nearest node, by Horner's method
        iin = 0
        inside = True
        for i in range(ndim - 1, -1, -1):
            u = (X[idata, i] - xmin[i]) / dx[i] + 0.5
            inidim = int(np.floor(min(max(u, -1.0), nodes[i] + 0.0)))
            if inidim < 0 or inidim > nodes[i] - 1:
                inside = False
                break
            iin = nodes[i] * iin + inidim

        if inside:
            cnt[iin] += bump
            totlwt += bump
    return totlwt


def _smooth_rows(lsq, irow, cnt, totlwt, xtrap, sparse_crit, xmin, dx, nodes, row):
    """
    Submit derivative constraint rows for every data sparse node.

    The second derivative of a function of `ndim` variables is a symmetric
    `ndim` by `ndim` matrix.  At a data sparse node, one row is made for each
    element of its upper triangle, asking that element to vanish.  The normal
    second derivative is zero at the boundary by definition of natural
    splines, so at a boundary node the diagonal element is replaced by the
    first derivative along that axis.

    Rows are weighted by `xtrap` times the shortfall of the data weight from
    that expected.  Off-diagonal elements appear twice by symmetry, so their
    rows are weighted by a further factor of 2.

    Returns
    -------
    irow : int
        Index of the last row submitted.

    n_sparse : int
        Number of data sparse nodes.

    ierror : ErrorCode
        The first error returned by the solver, or `OK`.
    """
    ndim = nodes.size
    inmx = nodes - 1
    nrect = int(np.prod(inmx))
    wtprrc = totlwt / nrect  # expected weight per rectangle

    ierror = ErrorCode.OK
    n_sparse = 0
    zero = np.zeros(ndim, dtype=np.int64)
    inode = np.zeros(ndim, dtype=np.int64)
    nderiv = np.zeros(ndim, dtype=np.int64)

    # Traverse all nodes, in the same order as the coefficients
    for iin in range(cnt.size):
        # Rectangles at the edge of the grid are smaller, so less weight is
        # expected there.
        on_edge = (inode == 0) | (inode == inmx)
        expect = wtprrc * 0.5 ** np.count_nonzero(on_edge)

        if cnt[iin] < sparse_crit * expect:
            n_sparse += 1
            dcwght = xtrap * (expect - cnt[iin])
            x = xmin + inode * dx
            ibmn = np.maximum(inode - 1, 0)
            ibmx = np.minimum(inode + 1, inmx)

            for idm in range(ndim):
                for jdm in range(idm, ndim):
                    nderiv[:] = 0
                    if jdm == idm:
                        rowwt = dcwght
                        if on_edge[idm]:
                            nderiv[idm] = 1
                        else:
                            nderiv[idm] = 2
                    else:
                        rowwt = 2.0 * dcwght
                        nderiv[idm] = 1
                        nderiv[jdm] = 1

                    irow += 1
                    _fill_row(x, nderiv, rowwt, xmin, dx, nodes, ibmn, ibmx, row)
                    ier = lsq.submit_row(irow, row, 0.0)
                    if ier != ErrorCode.OK and ierror == ErrorCode.OK:
                        ierror = ier

        next_index(inode, zero, inmx)

    return irow, n_sparse, ierror
