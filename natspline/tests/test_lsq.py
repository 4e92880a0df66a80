import numpy as np
import pytest
from scipy.linalg import lstsq

from natspline.errors import ErrorCode
from natspline.lsq import IncrementalLSQ, lsq_work_size

n = 6  # number of unknowns
m = 40  # number of rows

rng = np.random.default_rng(42)
A = rng.standard_normal((m, n))
b = rng.standard_normal(m)


def solve(A, b, nwork):
    work = np.empty(nwork)
    lsq = IncrementalLSQ(A.shape[1], work)
    for i in range(A.shape[0]):
        assert lsq.submit_row(i + 1, A[i], b[i]) == ErrorCode.OK
    c = np.empty(A.shape[1])
    reserr, ierror = lsq.finish(c)
    return c, reserr, ierror


def test_work_size():
    assert lsq_work_size(1) == 4
    assert lsq_work_size(6) == 34
    assert lsq_work_size(n) == n * (n + 5) // 2 + 1


# The minimum scratch stages one row at a time once the triangle is full, so
# rows are reduced by Givens rotations.  Large scratch stages many rows, so
# they are reduced by Householder reflections.
@pytest.mark.parametrize(
    "nwork", [lsq_work_size(n), lsq_work_size(n) + 10, 10 * lsq_work_size(n), 1000]
)
def test_matches_dense_lstsq(nwork):
    c_ref, _, _, _ = lstsq(A, b)
    c, reserr, ierror = solve(A, b, nwork)
    assert ierror == ErrorCode.OK
    assert np.allclose(c, c_ref, rtol=1e-10, atol=1e-12)
    assert reserr == pytest.approx(np.linalg.norm(A @ c_ref - b), rel=1e-10)


def test_square_system_is_exact():
    As = A[:n]
    x = np.arange(1.0, n + 1)
    c, reserr, ierror = solve(As, As @ x, lsq_work_size(n))
    assert ierror == ErrorCode.OK
    assert np.allclose(c, x, rtol=1e-10)
    assert reserr == pytest.approx(0.0, abs=1e-10)


def test_nrows():
    lsq = IncrementalLSQ(n, np.empty(lsq_work_size(n)))
    for i in range(5):
        lsq.submit_row(i + 1, A[i], b[i])
    assert lsq.nrows == 5


def test_insufficient_scratch():
    messages = []
    lsq = IncrementalLSQ(
        n, np.empty(lsq_work_size(n) - 1), report=lambda i, s: messages.append(i)
    )
    assert lsq.ierror == ErrorCode.INSUFFICIENT_SCRATCH
    assert lsq.submit_row(1, A[0], b[0]) == ErrorCode.INSUFFICIENT_SCRATCH
    reserr, ierror = lsq.finish(np.empty(n))
    assert ierror == ErrorCode.INSUFFICIENT_SCRATCH
    assert np.isnan(reserr)
    assert messages == [ErrorCode.INSUFFICIENT_SCRATCH]


def test_out_of_sequence():
    lsq = IncrementalLSQ(n, np.empty(lsq_work_size(n)))
    assert lsq.submit_row(2, A[0], b[0]) == ErrorCode.OUT_OF_SEQUENCE
    assert lsq.submit_row(1, A[0], b[0]) == ErrorCode.OK
    assert lsq.submit_row(1, A[1], b[1]) == ErrorCode.OUT_OF_SEQUENCE
    assert lsq.submit_row(3, A[1], b[1]) == ErrorCode.OUT_OF_SEQUENCE
    assert lsq.nrows == 1


def test_too_few_rows():
    lsq = IncrementalLSQ(n, np.empty(lsq_work_size(n)))
    for i in range(n - 1):
        lsq.submit_row(i + 1, A[i], b[i])
    reserr, ierror = lsq.finish(np.empty(n))
    assert ierror == ErrorCode.TOO_FEW_ROWS
    assert np.isnan(reserr)


@pytest.mark.parametrize("nwork", [lsq_work_size(n), 1000])
def test_singular(nwork):
    As = A.copy()
    As[:, 2] = 0.0
    c, reserr, ierror = solve(As, b, nwork)
    assert ierror == ErrorCode.SINGULAR
    assert np.isnan(reserr)


def test_report_collaborator():
    messages = []
    lsq = IncrementalLSQ(
        n, np.empty(lsq_work_size(n)), report=lambda i, s: messages.append((i, s))
    )
    lsq.submit_row(2, A[0], b[0])
    assert len(messages) == 1
    assert messages[0][0] == ErrorCode.OUT_OF_SEQUENCE
    assert "not in sequence" in messages[0][1]
