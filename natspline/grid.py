"""The regular node grid on which the natural spline basis is defined"""

from collections import namedtuple

import numpy as np
import numba as nb

from .errors import ErrorCode

# The work space formulas of the least squares solver and the small fixed
# size multi-index arrays are only written for up to 4 dimensions.
MAX_NDIM = 4

NodeGrid = namedtuple("NodeGrid", ["xmin", "dx", "nodes"])
NodeGrid.__doc__ = """Immutable description of a node grid.

    xmin : 1D array of float
        Location of the first node along each axis.

    dx : 1D array of float
        Node spacing along each axis, `(xmax - xmin) / (nodes - 1)`.

    nodes : 1D array of int
        Number of nodes along each axis.
    """


def make_grid(xmin, xmax, nodes):
    """Validate grid parameters and build the node grid.

    Parameters
    ----------
    xmin, xmax : array-like of float
        The lower and upper extreme corners of the node grid.  `xmin[i]` and
        `xmax[i]` are the locations of the first and last node along axis `i`.

    nodes : array-like of int
        Number of nodes along each axis, counting endpoints.

    Returns
    -------
    grid : NodeGrid or None
        The node grid, or None if the arguments are invalid.

    ierror : ErrorCode
        `NDIM` if the number of dimensions is not in 1, ..., 4,
        `NODES` if any `nodes[i] < 4`,
        `XRANGE` if any `xmin[i] == xmax[i]` (or the spacing is not finite),
        otherwise `OK`.  The first failure found, in this order, is returned.
    """
    xmin = np.atleast_1d(np.asarray(xmin, dtype=np.float64))
    xmax = np.atleast_1d(np.asarray(xmax, dtype=np.float64))
    nodes = np.atleast_1d(np.asarray(nodes, dtype=np.int64))

    if xmin.ndim != 1 or xmin.shape != xmax.shape or xmin.shape != nodes.shape:
        raise ValueError(
            "Expected `xmin`, `xmax`, and `nodes` to be 1D and of equal length;"
            f" got shapes {xmin.shape}, {xmax.shape}, {nodes.shape}"
        )

    ndim = nodes.size
    if ndim < 1 or ndim > MAX_NDIM:
        return None, ErrorCode.NDIM

    if np.any(nodes < 4):
        return None, ErrorCode.NODES

    xrng = xmax - xmin
    if np.any(xrng == 0.0):
        return None, ErrorCode.XRANGE

    dx = xrng / (nodes - 1)
    if not np.all(np.isfinite(dx)):
        return None, ErrorCode.XRANGE

    return NodeGrid(xmin, dx, nodes), ErrorCode.OK


def num_coeffs(nodes):
    """Total number of nodes, which is the number of spline coefficients."""
    return int(np.prod(np.asarray(nodes, dtype=np.int64)))


@nb.njit
def coef_index(ib, nodes):
    """Linear address of a node in the coefficient vector.

    Parameters
    ----------
    ib : 1D array of int
        Multi-index of the node, with `0 <= ib[i] < nodes[i]`.

    nodes : 1D array of int
        Number of nodes along each axis.

    Returns
    -------
    icol : int
        0-based index into the coefficient vector.  The first index varies
        fastest, so this matches `np.ravel_multi_index(ib, nodes, order="F")`.
    """
    icol = 0
    for k in range(len(ib) - 1, -1, -1):
        icol = nodes[k] * icol + ib[k]
    return icol


def coef_grid(coef, nodes):
    """View a coefficient vector as an array with one axis per dimension.

    `coef_grid(coef, nodes)[ib]` is the coefficient of the basis function
    centred on the node with multi-index `ib`.
    """
    nodes = tuple(int(n) for n in np.atleast_1d(nodes))
    return np.reshape(coef[: num_coeffs(nodes)], nodes, order="F")


def node_coords(grid):
    """Locations of the nodes along each axis, as a tuple of 1D arrays."""
    return tuple(
        grid.xmin[i] + np.arange(grid.nodes[i]) * grid.dx[i]
        for i in range(grid.nodes.size)
    )
