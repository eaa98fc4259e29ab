"""
Linear solves against a :class:`covblocks.block.BlockFactorization`. The
operator is never factorized; instead, ``scipy.sparse.linalg.cg`` is driven
through the operator's in-place multiplication. Conjugate gradients assumes
that the operator is symmetric positive definite, which is the case for
Gramians of valid kernels.
"""

from __future__ import annotations

__all__ = ["CGResult", "conjugate_gradient", "solve", "solve_into"]

import logging
from typing import TYPE_CHECKING, Any, Callable, NamedTuple

import numpy as np
from scipy.sparse.linalg import LinearOperator, cg

from covblocks.errors import ConvergenceError, DimensionMismatchError
from covblocks.helpers import Array, as_numpy

if TYPE_CHECKING:
    from covblocks.block.factorization import BlockFactorization

logger = logging.getLogger(__name__)


class CGResult(NamedTuple):
    x: np.ndarray
    converged: bool
    iterations: int
    residual: float


def conjugate_gradient(
    matvec: Callable[[np.ndarray], np.ndarray],
    b: np.ndarray,
    tol: float,
    *,
    maxiter: int | None = None,
    x0: np.ndarray | None = None,
) -> CGResult:
    """Run conjugate gradients on an implicitly defined operator

    This never raises on non-convergence; the caller decides what to do with
    ``converged == False``. The solve only counts as converged if the true
    residual ``matvec(x) - b``, recomputed at the end, is within ``tol``.

    Args:
        matvec: A function returning the operator applied to a vector.
        b: The right hand side.
        tol: The absolute tolerance on the norm of the residual ``A x - b``.
        maxiter: The maximum number of iterations. Defaults to ``10 * len(b)``
            as in ``scipy``.
        x0: The initial guess.
    """
    n = b.shape[0]
    operator = LinearOperator((n, n), matvec=matvec, dtype=b.dtype)
    iterations = 0

    def callback(xk: np.ndarray) -> None:
        nonlocal iterations
        del xk
        iterations += 1

    x, info = cg(
        operator, b, x0=x0, rtol=0.0, atol=tol, maxiter=maxiter, callback=callback
    )
    if info < 0:
        raise ValueError(f"Conjugate gradient failed with illegal input (info={info})")
    residual = float(np.linalg.norm(matvec(x) - b))
    return CGResult(x, info == 0 and residual <= tol, iterations, residual)


def solve(
    B: BlockFactorization,
    b: Array,
    *,
    tol: float | None = None,
    maxiter: int | None = None,
    x0: Array | None = None,
    workers: int | None = None,
) -> np.ndarray:
    """Solve ``B @ x = b`` for a symmetric positive definite operator

    Args:
        B: The operator.
        b: The right hand side, a 1-D array of length ``B.shape[0]``.
        tol: The absolute residual tolerance. Defaults to ``B.tol``; passing a
            value here never changes ``B``.
        maxiter: The iteration budget of the solver.
        x0: An optional initial guess.
        workers: Passed through to :func:`covblocks.block.apply`.

    Raises:
        ConvergenceError: If the residual norm is still above ``tol`` when the
            iteration budget runs out.
        DimensionMismatchError: If ``b`` has the wrong length.
    """
    b = as_numpy(b)
    m, n = B.shape
    if m != n:
        raise ValueError(f"Only square operators can be solved; shape is {B.shape}")
    if b.ndim != 1:
        raise ValueError(f"The right hand side must be 1-dimensional; got ndim={b.ndim}")
    if b.shape[0] != m:
        raise DimensionMismatchError("b", b.shape[0], m)
    tol = B.tol if tol is None else float(tol)

    dtype = np.result_type(B.dtype, b.dtype, np.float64)
    b = np.asarray(b, dtype=dtype)
    if x0 is not None:
        x0 = np.asarray(as_numpy(x0), dtype=dtype)
        if x0.shape != (n,):
            raise DimensionMismatchError("x0", x0.shape[0], n)

    def matvec(v: np.ndarray) -> np.ndarray:
        v = np.ascontiguousarray(np.ravel(v), dtype=dtype)
        return B.apply(np.empty(m, dtype=dtype), v, workers=workers)

    result = conjugate_gradient(matvec, b, tol, maxiter=maxiter, x0=x0)
    logger.debug(
        "conjugate gradient: %d iterations, residual %.3e (tol %.3e)",
        result.iterations,
        result.residual,
        tol,
    )
    if not result.converged:
        raise ConvergenceError(result.residual, result.iterations, tol)
    return result.x


def solve_into(
    x: np.ndarray,
    B: BlockFactorization,
    b: Array,
    *,
    tol: float | None = None,
    maxiter: int | None = None,
    workers: int | None = None,
) -> np.ndarray:
    """Solve ``B @ x = b`` in place

    The current contents of ``x`` are used as the initial guess, and ``x`` is
    only overwritten if the solve converges.
    """
    if not isinstance(x, np.ndarray):
        raise TypeError(
            f"The output must be a writeable numpy array; got {type(x).__name__}"
        )
    if x.shape != (B.shape[1],):
        raise DimensionMismatchError("x", x.shape[0] if x.ndim else 0, B.shape[1])
    x0: Any = x if np.all(np.isfinite(x)) else None
    x[...] = solve(B, b, tol=tol, maxiter=maxiter, x0=x0, workers=workers)
    return x
