"""
Natural cubic spline basis functions on a regular node grid.

The independent variable along each axis is transformed so that the nodes
fall on the integers.  On this transformed space the one-dimensional basis
functions, and their first and second derivatives, have a simple closed form.
A basis function in `d` dimensions is the product of `d` one-dimensional
basis functions (tensor product splines).

Each one-dimensional basis function has one of three types, decided only by
the position of its node along that axis:

- `LEFT` for the two nodes nearest the lower edge (`ib <= 1`),
- `RIGHT` for the two nodes nearest the upper edge (`ib >= nodes - 2`),
- `INTERIOR` for all other nodes.

The `LEFT` and `RIGHT` functions are exactly linear beyond their node, so any
spline built from this basis has zero second derivative normal to the grid
boundary (a natural spline) and extrapolates linearly, with second order
continuity, outside the grid.
"""

import numpy as np
import numba as nb

from .grid import coef_index

LEFT = 0
INTERIOR = 1
RIGHT = 2


@nb.njit
def function_type(ib, nod):
    """Type of the one-dimensional basis function for node `ib` of `nod`"""
    if ib <= 1:
        return LEFT
    if ib >= nod - 2:
        return RIGHT
    return INTERIOR


@nb.njit
def basis_1d(x, xb, dxin, ntyp, nderiv):
    """
    Evaluate (a derivative of) a one-dimensional basis function.

    Parameters
    ----------
    x : float
        Evaluation site

    xb : float
        Location of the node on which the basis function is centred

    dxin : float
        Reciprocal of the node spacing

    ntyp : int
        Function type: `LEFT`, `INTERIOR`, or `RIGHT`

    nderiv : int
        Order of the derivative: 0, 1, or 2

    Returns
    -------
    float
        The `nderiv`'th derivative of the basis function at `x`.
        NaN if `nderiv` is not 0, 1, or 2.
    """
    bas1 = 0.0

    if ntyp == INTERIOR:
        # Chapeau function: the cubic spline that is identically zero for
        # |z| >= 2 and is 1 at the origin, with the node at z = 0.
        if nderiv == 0:
            z = abs(dxin * (x - xb)) - 2.0
            if z < 0.0:
                bas1 = -0.25 * z**3
                z += 1.0
                if z < 0.0:
                    bas1 += z**3
        elif nderiv == 1:
            u = dxin * (x - xb)
            fact = dxin
            if u < 0.0:
                fact = -fact
            z = abs(u) - 2.0
            if z < 0.0:
                bas1 = -0.75 * z**2
                z += 1.0
                if z < 0.0:
                    bas1 += 3.0 * z**2
                bas1 *= fact
        elif nderiv == 2:
            z = abs(dxin * (x - xb)) - 2.0
            if z < 0.0:
                bas1 = -1.5 * z
                z += 1.0
                if z < 0.0:
                    bas1 += 6.0 * z
                bas1 *= dxin**2
        else:
            bas1 = np.nan

    else:
        # Right linear function: the cubic spline that is identically zero
        # for z <= 0 and is 3z - 3 for z >= 2, with the node at z = 2.
        # The left linear function is its mirror image.
        if ntyp == RIGHT:
            fact = dxin
        else:
            fact = -dxin
        z = fact * (x - xb) + 2.0

        if nderiv == 0:
            if z > 0.0:
                if z < 2.0:
                    bas1 = 0.5 * z**3
                    z -= 1.0
                    if z > 0.0:
                        bas1 -= z**3
                else:
                    bas1 = 3.0 * z - 3.0
        elif nderiv == 1:
            if z > 0.0:
                if z < 2.0:
                    bas1 = 1.5 * z**2
                    z -= 1.0
                    if z > 0.0:
                        bas1 -= 3.0 * z**2
                    bas1 *= fact
                else:
                    bas1 = 3.0 * fact
        elif nderiv == 2:
            z1 = z - 1.0
            if abs(z1) < 1.0:
                bas1 = 3.0 * z
                if z1 > 0.0:
                    bas1 -= 6.0 * z1
                bas1 *= fact**2
        else:
            bas1 = np.nan

    return bas1


@nb.njit
def bascmp(x, nderiv, xmin, dx, nodes, ib):
    """
    Evaluate (a partial derivative of) a multidimensional basis function.

    Parameters
    ----------
    x : 1D array of float
        Evaluation site, one coordinate per dimension

    nderiv : 1D array of int
        Order of the partial derivative along each axis, each 0, 1, or 2.

    xmin, dx, nodes : 1D array
        The node grid; see `NodeGrid`.

    ib : 1D array of int
        Multi-index of the node on which the basis function is centred.

    Returns
    -------
    icol : int
        Index into the coefficient vector for the node `ib`.

    basm : float
        The basis function (or its partial derivative) evaluated at `x`.
    """
    icol = coef_index(ib, nodes)
    basm = 1.0
    for i in range(len(ib)):
        xb = xmin[i] + ib[i] * dx[i]
        ntyp = function_type(ib[i], nodes[i])
        basm *= basis_1d(x[i], xb, 1.0 / dx[i], ntyp, nderiv[i])
    return icol, basm


@nb.njit
def support_range(x, xmin, dx, nodes, ibmn, ibmx):
    """
    Indices of the basis functions that are nonzero at `x`.

    Along axis `i`, only the basis functions for nodes `ibmn[i]`, ...,
    `ibmx[i]` can be nonzero at `x`.  This range spans at most 4 nodes, with
    `0 <= ibmn[i] <= nodes[i] - 2` and `1 <= ibmx[i] <= nodes[i] - 1`.

    `ibmn` and `ibmx` are filled in place.
    """
    for i in range(len(nodes)):
        # Clamp before converting, so sites far outside the grid do not overflow
        t = min(max((x[i] - xmin[i]) / dx[i], -2.0), nodes[i] + 1.0)
        it = int(t)
        ibmn[i] = min(max(it - 1, 0), nodes[i] - 2)
        ibmx[i] = max(min(it + 2, nodes[i] - 1), 1)


@nb.njit
def next_index(ib, ibmn, ibmx):
    """
    Advance the multi-index `ib` through the box `ibmn <= ib <= ibmx`.

    The first index varies fastest.  `ib` is mutated.  Returns False after the
    last multi-index in the box, at which point `ib` has wrapped to `ibmn`.
    """
    for i in range(len(ib)):
        ib[i] += 1
        if ib[i] <= ibmx[i]:
            return True
        ib[i] = ibmn[i]
    return False
