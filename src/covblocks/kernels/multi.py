"""
Matrix-valued kernels model several correlated outputs at every input point.
Evaluated on a pair of points, they return a small ``(d, d)`` covariance
block, and their Gramians are assembled as
:class:`covblocks.block.BlockFactorization` operators by
:func:`covblocks.gramian.gramian`.
"""

from __future__ import annotations

__all__ = ["MultiKernel", "Separable", "Gradient"]

from abc import abstractmethod

import equinox as eqx
import jax
import jax.numpy as jnp
import numpy as np

from covblocks.helpers import JAXArray
from covblocks.kernels.base import Kernel


class MultiKernel(Kernel):
    """The base class for kernels returning ``(d, d)`` blocks

    Subclasses must implement :func:`MultiKernel.evaluate` (returning a
    ``(d, d)`` array) and :attr:`MultiKernel.output_dim`.
    """

    @property
    @abstractmethod
    def output_dim(self) -> int:
        """The number of outputs ``d``"""
        raise NotImplementedError

    @property
    def output_ndim(self) -> int:
        return 2

    def __add__(self, other: Kernel | JAXArray) -> Kernel:
        raise TypeError("Sums of matrix-valued kernels are not supported")

    __radd__ = __add__

    def __mul__(self, other: Kernel | JAXArray) -> Kernel:
        raise TypeError("Products of matrix-valued kernels are not supported")

    __rmul__ = __mul__


class Separable(MultiKernel):
    r"""A separable multi-output kernel

    .. math::

        K(\mathbf{x}_i,\,\mathbf{x}_j) = k(\mathbf{x}_i,\,\mathbf{x}_j)\,B

    also known as the intrinsic coregionalization model.

    Args:
        kernel: A scalar kernel for the input covariance.
        B: A symmetric positive semi-definite ``(d, d)`` output covariance.
    """

    kernel: Kernel
    B: JAXArray

    def __check_init__(self) -> None:
        if jnp.ndim(self.B) != 2 or jnp.shape(self.B)[0] != jnp.shape(self.B)[1]:
            raise ValueError(
                f"'B' must be a square matrix; got shape {jnp.shape(self.B)}"
            )
        if isinstance(self.B, np.ndarray) and not np.allclose(self.B, self.B.T):
            raise ValueError("'B' must be symmetric")

    @property
    def output_dim(self) -> int:
        return jnp.shape(self.B)[0]

    def evaluate(self, X1: JAXArray, X2: JAXArray) -> JAXArray:
        return self.kernel.evaluate(X1, X2) * jnp.asarray(self.B)


class Gradient(MultiKernel):
    r"""The covariance of the gradient of a process with scalar kernel ``k``

    .. math::

        K(\mathbf{x}_i,\,\mathbf{x}_j) =
            \frac{\partial^2 k}{\partial \mathbf{x}_i\,
            \partial \mathbf{x}_j^\mathrm{T}}

    computed with ``jax`` automatic differentiation.

    Args:
        kernel: The scalar kernel of the underlying process.
        ndim: The number of input dimensions, which is also the block size.
    """

    kernel: Kernel
    ndim: int = eqx.field(static=True)

    @property
    def output_dim(self) -> int:
        return self.ndim

    def evaluate(self, X1: JAXArray, X2: JAXArray) -> JAXArray:
        X1 = jnp.broadcast_to(jnp.asarray(X1, dtype=float), (self.ndim,))
        X2 = jnp.broadcast_to(jnp.asarray(X2, dtype=float), (self.ndim,))
        dk = jax.grad(self.kernel.evaluate, argnums=0)
        return jax.jacfwd(dk, argnums=1)(X1, X2)
