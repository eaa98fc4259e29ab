"""
Gramians connect kernels to the block operators in :mod:`covblocks.block`.
The Gramian of a kernel ``k`` over point sets ``X`` and ``Y`` is the matrix
with entries ``k(X[i], Y[j])``:

- for a scalar kernel it is an ``(n, m)`` matrix, returned densely or as a
  lazy :class:`Gramian` block;
- for a matrix-valued :class:`covblocks.kernels.MultiKernel` with ``d``
  outputs, every entry is a ``(d, d)`` block and the result is a
  :class:`covblocks.block.BlockFactorization` on a uniform partition, so that
  multiplication takes the strided, multithreaded path.
"""

from __future__ import annotations

__all__ = ["Gramian", "KernelBlock", "gramian"]

from typing import Any

import equinox as eqx
import jax.numpy as jnp
import numpy as np

from covblocks import config
from covblocks.block import Block, BlockFactorization, DenseBlock
from covblocks.helpers import JAXArray, as_numpy
from covblocks.kernels import Kernel, MultiKernel


@eqx.filter_jit
def _evaluate(kernel: Kernel, X1: JAXArray, X2: JAXArray) -> JAXArray:
    return kernel.evaluate(X1, X2)


@eqx.filter_jit
def _evaluate_matrix(kernel: Kernel, X1: JAXArray, X2: JAXArray) -> JAXArray:
    return kernel(X1, X2)


def _default_dtype() -> np.dtype:
    # float64 when jax_enable_x64 is set, float32 otherwise
    return np.dtype(jnp.asarray(0.0).dtype)


class KernelBlock(Block):
    """The ``(d, d)`` block of a matrix-valued kernel at one pair of points

    Nothing is stored but the kernel and the two points; the block is
    evaluated every time it is materialized or applied.

    Args:
        kernel: The matrix-valued kernel.
        x: The row point.
        y: The column point.
    """

    kernel: MultiKernel
    x: JAXArray
    y: JAXArray
    block_dtype: Any = eqx.field(static=True)

    def __init__(self, kernel: MultiKernel, x: Any, y: Any):
        self.kernel = kernel
        self.x = jnp.asarray(x)
        self.y = jnp.asarray(y)
        self.block_dtype = _default_dtype()

    @property
    def shape(self) -> tuple[int, int]:
        d = self.kernel.output_dim
        return d, d

    @property
    def dtype(self) -> np.dtype:
        return self.block_dtype

    def to_dense(self) -> np.ndarray:
        return np.array(_evaluate(self.kernel, self.x, self.y), dtype=self.block_dtype)

    def materialize_into(self, out: np.ndarray) -> None:
        out[...] = as_numpy(_evaluate(self.kernel, self.x, self.y))

    def transpose(self) -> KernelBlock:
        return KernelBlock(self.kernel, self.y, self.x)


class Gramian(Block):
    """A lazy Gramian of a scalar kernel, usable as a block

    Element access evaluates the kernel at a single pair of points, and
    multiplication and materialization evaluate the full matrix on demand.
    This makes it possible to build irregular block operators out of Gramians
    between groups of points of different sizes.

    Args:
        kernel: A scalar kernel.
        X: The ``n`` row points.
        Y: The ``m`` column points.
    """

    kernel: Kernel
    X: JAXArray
    Y: JAXArray
    block_dtype: Any = eqx.field(static=True)

    def __init__(self, kernel: Kernel, X: Any, Y: Any | None = None):
        if isinstance(kernel, MultiKernel):
            raise TypeError(
                "Gramian only supports scalar kernels; use gramian() for "
                "matrix-valued kernels"
            )
        self.kernel = kernel
        self.X = jnp.asarray(X)
        self.Y = self.X if Y is None else jnp.asarray(Y)
        self.block_dtype = _default_dtype()

    @property
    def shape(self) -> tuple[int, int]:
        return self.X.shape[0], self.Y.shape[0]

    @property
    def dtype(self) -> np.dtype:
        return self.block_dtype

    def to_dense(self) -> np.ndarray:
        return np.array(
            _evaluate_matrix(self.kernel, self.X, self.Y), dtype=self.block_dtype
        )

    def materialize_into(self, out: np.ndarray) -> None:
        out[...] = as_numpy(_evaluate_matrix(self.kernel, self.X, self.Y))

    def element(self, r: int, c: int) -> Any:
        return as_numpy(_evaluate(self.kernel, self.X[r], self.Y[c]))[()]

    def diagonal(self) -> np.ndarray:
        n = min(self.shape)
        return as_numpy(
            jnp.diagonal(_evaluate_matrix(self.kernel, self.X[:n], self.Y[:n]))
        ).copy()

    def transpose(self) -> Gramian:
        return Gramian(self.kernel, self.Y, self.X)


def gramian(
    kernel: Kernel,
    X: Any,
    Y: Any | None = None,
    *,
    lazy: bool = False,
    tol: float = config.DEFAULT_TOL,
) -> np.ndarray | Gramian | BlockFactorization:
    """Evaluate the Gramian of ``kernel`` on the points ``X`` and ``Y``

    Args:
        kernel: A scalar or matrix-valued kernel.
        X: The row points; an array whose leading axis indexes points.
        Y: The column points. Defaults to ``X``.
        lazy: If ``True``, return a representation that evaluates the kernel
            on demand instead of storing the result.
        tol: The default solve tolerance of the returned block operator; only
            used for matrix-valued kernels.

    Returns:
        For a scalar kernel, a dense ``numpy`` array, or a :class:`Gramian`
        block if ``lazy``. For a :class:`covblocks.kernels.MultiKernel`, a
        :class:`covblocks.block.BlockFactorization` with ``DenseBlock`` or
        (if ``lazy``) :class:`KernelBlock` entries.
    """
    X = jnp.asarray(X)
    Y = X if Y is None else jnp.asarray(Y)
    if not isinstance(kernel, MultiKernel):
        if lazy:
            return Gramian(kernel, X, Y)
        return as_numpy(_evaluate_matrix(kernel, X, Y)).copy()

    d = kernel.output_dim
    n, m = X.shape[0], Y.shape[0]
    if lazy:
        blocks: Any = [[KernelBlock(kernel, X[i], Y[j]) for j in range(m)] for i in range(n)]
    else:
        K = as_numpy(_evaluate_matrix(kernel, X, Y))
        blocks = [[DenseBlock(K[i, j].copy()) for j in range(m)] for i in range(n)]
    return BlockFactorization.from_size(blocks, d, tol=tol)
