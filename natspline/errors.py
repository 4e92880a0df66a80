"""Error codes and the diagnostic reporter.

Every fallible operation in `natspline` returns an error code alongside its
result.  A nonzero code means the result must not be trusted.
"""

from enum import IntEnum


class ErrorCode(IntEnum):
    OK = 0

    # Argument validation, from `spline_fit` and `spline_deriv`
    NDIM = 101
    NODES = 102
    XRANGE = 103
    NCF = 104
    NDATA = 105
    NWRK = 106
    SOLVER = 107
    NDERIV = 108

    # Incremental least squares solver
    INSUFFICIENT_SCRATCH = 32
    TOO_FEW_ROWS = 33
    SINGULAR = 34
    OUT_OF_SEQUENCE = 35


MESSAGES = {
    ErrorCode.NDIM: "NDIM is less than 1 or is greater than 4",
    ErrorCode.NODES: "NODES[i] is less than 4 for some i",
    ErrorCode.XRANGE: "XMIN[i] equals XMAX[i] for some i",
    ErrorCode.NCF: "NCF (size of COEF) is too small",
    ErrorCode.NDATA: "NDATA is less than 1",
    ErrorCode.NWRK: "NWRK (size of WORK) is too small",
    ErrorCode.SOLVER: (
        "least squares solver failure "
        "(this usually indicates insufficient input data)"
    ),
    ErrorCode.NDERIV: "NDERIV[i] is less than 0 or greater than 2 for some i",
    ErrorCode.INSUFFICIENT_SCRATCH: (
        "insufficient scratch storage provided; "
        "at least ((N+5)*N+2)/2 locations needed"
    ),
    ErrorCode.TOO_FEW_ROWS: "array has too few rows",
    ErrorCode.SINGULAR: "system is singular",
    ErrorCode.OUT_OF_SEQUENCE: "values of I not in sequence",
}


def report(ierror, mess):
    """Print an error number and an error message, or just a message.

    Parameters
    ----------
    ierror : int
        The error number, printed only if nonzero.

    mess : str
        Message to be printed.
    """
    if ierror != 0:
        print(f" IERR={int(ierror):5d}")
    print(mess.rstrip())


def _reporter(kwargs):
    """The `report` collaborator selected by the `output` and `report` kwargs.

    Returns a function of `(ierror, mess)` that does nothing when `output`
    is False.
    """
    if not kwargs.get("output", True):
        return _quiet
    fn = kwargs.get("report", report)
    if not callable(fn):
        raise TypeError("If provided, `report` must be callable")
    return fn


def _quiet(ierror, mess):
    pass
