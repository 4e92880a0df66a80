"""
Incremental least squares by orthogonal row reduction.

Solves `min || A c - b ||` where the rows of `A` and `b` arrive one at a time
and may vastly outnumber the `n` columns.  Only an upper triangular factor
`R` of `A` (augmented with the transformed right hand side) is kept, in
packed form, so the memory needed is O(n**2) regardless of the number of rows.

Rows are staged in the scratch space following `R` until that space is full.
The staged rows are then reduced into `R`: by Givens rotations when a single
row is staged, or by Householder reflections when several rows are staged.
The part of the right hand side that falls off the bottom of `R` accumulates
into the residual sum of squares.

Storage layout of the scratch array `work`, with `np1 = n + 1`:

    Row `j` of `R`, holding columns `j, ..., n` (column `n` is the right hand
    side), starts at `work[_row_offset(j, np1)]`.  With `k` rows in `R`, the
    staged rows, each of length `np1`, follow from `work[_row_offset(k, np1)]`.

Usage
-----

>>> lsq = IncrementalLSQ(n, work)
>>> for i in range(1, nrows + 1):
...     lsq.submit_row(i, A[i - 1], b[i - 1])
>>> reserr, ierror = lsq.finish(c)
"""

import numpy as np
import numba as nb

from .errors import ErrorCode, MESSAGES

# Default tolerance below which a pivot of R is considered zero
TOL_PIVOT = 1e-18

_OK = int(ErrorCode.OK)
_SINGULAR = int(ErrorCode.SINGULAR)


def lsq_work_size(n):
    """Minimum length of the scratch array for `n` columns: ((n+5)*n+2)/2

    This holds the full triangular factor plus one staged row.
    """
    return ((n + 5) * n + 2) // 2


@nb.njit
def _row_offset(j, np1):
    """Start of row `j` of the packed upper triangle, rows having `np1` columns"""
    return j * np1 - (j * (j - 1)) // 2


@nb.njit
def _householder(a, p, q0, m, np1, width):
    """
    Apply one Householder reflection to zero one column below its pivot.

    The pivot is `a[p]` and the entries to annihilate are the `m` values
    `a[q0], a[q0 + np1], ...`, one per staged row.  The reflection is applied
    to the `width - 1` entries following each of these, i.e. to the remaining
    columns of the pivot row and of the staged rows.  The annihilated entries
    are left holding the Householder vector.
    """
    q1 = q0 + m * np1
    s = a[p] * a[p]
    for q in range(q0, q1, np1):
        s += a[q] * a[q]
    if s == 0.0:
        return

    temp = a[p]
    a[p] = np.sqrt(s)
    if temp > 0.0:
        a[p] = -a[p]  # avoid cancellation in temp - a[p]
    temp -= a[p]
    temp1 = 1.0 / (temp * a[p])

    for jdel in range(1, width):
        s = temp * a[p + jdel]
        for q in range(q0, q1, np1):
            s += a[q] * a[q + jdel]
        s *= temp1
        a[p + jdel] += s * temp
        for q in range(q0, q1, np1):
            a[q + jdel] += s * a[q]


@nb.njit
def _givens(a, p, q, width):
    """
    Apply one Givens rotation to zero `a[q]` against the pivot `a[p]`.

    The rotation is applied to the `width - 1` entries following `a[p]` and
    `a[q]`.  Nothing is done if both `a[p]` and `a[q]` are zero.
    """
    s = np.hypot(a[p], a[q])
    if s == 0.0:
        return
    cn = a[p] / s
    sn = a[q] / s
    a[p] = s
    a[q] = 0.0
    for jdel in range(1, width):
        temp = a[p + jdel]
        a[p + jdel] = cn * temp + sn * a[q + jdel]
        a[q + jdel] = -sn * temp + cn * a[q + jdel]


@nb.njit
def _reduce(a, n, ntri, nstage):
    """
    Reduce staged rows into the packed upper triangular factor.

    Parameters
    ----------
    a : 1D array of float
        Scratch array, mutated.

    n : int
        Number of columns (excluding the right hand side).

    ntri : int
        Number of rows currently in the triangular factor, at most `n`.

    nstage : int
        Number of staged rows following the triangular factor.

    Returns
    -------
    ntri : int
        Number of rows in the triangular factor after the reduction,
        `min(ntri + nstage, n)`.

    errsum : float
        Sum of squares of the right hand side of staged rows that were reduced
        to zero in every column, to be added to the residual sum of squares.
    """
    np1 = n + 1
    base = _row_offset(ntri, np1)

    # Zero the leading columns of the staged rows against the existing rows
    # of the triangular factor.
    for j in range(ntri):
        idiag = _row_offset(j, np1)
        if nstage == 1:
            _givens(a, idiag, base + j, np1 - j)
        else:
            _householder(a, idiag, base + j, nstage, np1, np1 - j)

    # Triangularize the remaining columns among the staged rows themselves.
    # Staged row t becomes row ntri + t of the triangular factor.
    nnew = min(nstage, n - ntri)
    for t in range(nnew):
        j = ntri + t
        m = nstage - t - 1
        if m > 0:
            p = base + t * np1 + j
            _householder(a, p, p + np1, m, np1, np1 - j)

    # Staged rows beyond the triangular factor are now zero but for their
    # right hand side, which is part of the residual.
    errsum = 0.0
    for t in range(nnew, nstage):
        ilnp = base + t * np1 + n
        errsum += a[ilnp] * a[ilnp]

    # Squeeze out the zeros left of the diagonal of the new rows to make
    # space for more staged rows.  Destinations never pass their sources.
    for t in range(nnew):
        j = ntri + t
        src = base + t * np1 + j
        dst = _row_offset(j, np1)
        for q in range(np1 - j):
            a[dst + q] = a[src + q]

    return ntri + nnew, errsum


@nb.njit
def _back_substitute(a, n, soln, tol):
    """
    Solve the packed upper triangular system into `soln`.

    Returns `ErrorCode.SINGULAR` if a pivot has absolute value `<= tol`,
    in which case only `soln[j+1:]` has been written, for that pivot `j`.
    """
    np1 = n + 1
    for j in range(n - 1, -1, -1):
        idiag = _row_offset(j, np1)
        piv = a[idiag]
        if abs(piv) <= tol:
            return _SINGULAR
        s = a[idiag + n - j]  # right hand side
        for c in range(j + 1, n):
            s -= a[idiag + c - j] * soln[c]
        soln[j] = s / piv
    return _OK


class IncrementalLSQ:
    """
    Streaming least squares solver over a caller-owned scratch array.

    Creating the solver begins a new problem.  Feed rows with `submit_row`,
    numbered 1, 2, 3, ..., then call `finish` once to solve.

    Parameters
    ----------
    n : int
        Number of columns (unknowns).

    work : 1D array of float
        Scratch array, of length at least `lsq_work_size(n)`.  Longer arrays
        let more rows be staged and reduced together.  Must not be shared with
        another solver while this one is in use.

    tol : float, Default `TOL_PIVOT`
        Pivots of the triangular factor with absolute value at most `tol` are
        diagnosed as singular by `finish`.

    report : function, Default None
        Diagnostic collaborator called as `report(ierror, mess)` on failure.

    Attributes
    ----------
    ierror : ErrorCode
        `INSUFFICIENT_SCRATCH` if `work` is too short, otherwise `OK`.
        When not `OK`, every other method fails with this code.
    """

    def __init__(self, n, work, tol=TOL_PIVOT, report=None):
        self.n = int(n)
        self.work = work
        self.tol = tol
        self.report = report

        self.iold = 0  # index of the last row submitted
        self.ntri = 0  # rows in the triangular factor
        self.nstage = 0  # rows staged, not yet reduced
        self.errsum = 0.0  # residual sum of squares

        self.ierror = ErrorCode.OK
        if work.size < lsq_work_size(self.n):
            self.ierror = self._fail(ErrorCode.INSUFFICIENT_SCRATCH)

    def _fail(self, ierror):
        if self.report is not None:
            self.report(ierror, " IncrementalLSQ - " + MESSAGES[ierror])
        return ierror

    def _capacity(self):
        """Number of rows that fit in the staging area"""
        np1 = self.n + 1
        return (self.work.size - _row_offset(self.ntri, np1)) // np1

    def _flush(self):
        if self.nstage > 0:
            self.ntri, errsum = _reduce(self.work, self.n, self.ntri, self.nstage)
            self.errsum += errsum
            self.nstage = 0

    @property
    def nrows(self):
        """Number of rows submitted so far"""
        return self.iold

    def submit_row(self, i, row, b):
        """
        Add one row of the least squares problem.

        Parameters
        ----------
        i : int
            Index of this row.  Must be one more than that of the previous
            row, starting from 1.

        row : 1D array of float
            The `n` coefficients of this row.

        b : float
            Right hand side of this row.

        Returns
        -------
        ierror : ErrorCode
            `OUT_OF_SEQUENCE` if `i` is not in sequence (the row is ignored),
            otherwise `OK`.
        """
        if self.ierror != ErrorCode.OK:
            return self.ierror

        if i - self.iold != 1:
            return self._fail(ErrorCode.OUT_OF_SEQUENCE)

        n = self.n
        np1 = n + 1
        ilast = _row_offset(self.ntri, np1) + self.nstage * np1
        self.work[ilast : ilast + n] = row[:n]
        self.work[ilast + n] = b
        self.iold = i
        self.nstage += 1

        if self.nstage >= self._capacity():
            self._flush()

        return ErrorCode.OK

    def finish(self, soln):
        """
        Complete the reduction and solve for the least squares solution.

        Parameters
        ----------
        soln : 1D array of float
            Output array, of length at least `n`, to hold the solution.
            If the system is singular, trailing entries may have been written.

        Returns
        -------
        reserr : float
            Residual norm, `|| A soln - b ||`.  NaN on failure.

        ierror : ErrorCode
            `TOO_FEW_ROWS` if fewer than `n` rows were submitted, `SINGULAR`
            if the triangular factor has a zero pivot, otherwise `OK`.
        """
        if self.ierror != ErrorCode.OK:
            return np.nan, self.ierror

        self._flush()

        if self.iold < self.n:
            return np.nan, self._fail(ErrorCode.TOO_FEW_ROWS)

        ierror = ErrorCode(_back_substitute(self.work, self.n, soln, self.tol))
        if ierror != ErrorCode.OK:
            return np.nan, self._fail(ierror)

        return np.sqrt(self.errsum), ErrorCode.OK
