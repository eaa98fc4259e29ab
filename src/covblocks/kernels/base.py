from __future__ import annotations

__all__ = [
    "Kernel",
    "Custom",
    "Sum",
    "Product",
    "Power",
    "Constant",
    "DotProduct",
]

from abc import abstractmethod
from typing import Any, Callable

import equinox as eqx
import jax
import jax.numpy as jnp
import numpy as np

from covblocks.helpers import JAXArray


class Kernel(eqx.Module):
    """The base class for all scalar kernels

    Kernels can be combined with ``+``, ``*`` and ``**`` (integer powers), and
    numbers are promoted to :class:`Constant` kernels, so that
    ``2.0 * ExpSquared() + 0.1 * Delta()`` is a valid kernel. Subclasses
    override :func:`Kernel.evaluate`.
    """

    @abstractmethod
    def evaluate(self, X1: JAXArray, X2: JAXArray) -> JAXArray:
        """Evaluate the kernel at a pair of input coordinates

        ``X1`` and ``X2`` are single points: scalars or arrays of shape
        ``(n_dim,)``. Broadcasting over datasets is handled by
        :func:`Kernel.__call__`, so users should call the kernel instead of
        this method.
        """
        del X1, X2
        raise NotImplementedError

    def evaluate_diag(self, X: JAXArray) -> JAXArray:
        """Evaluate the kernel at ``(X, X)``

        Subclasses can override this when the diagonal is cheaper than the
        general case (for example, it is constant for stationary kernels).
        """
        return self.evaluate(X, X)

    @property
    def output_ndim(self) -> int:
        """The number of dimensions of a single kernel evaluation"""
        return 0

    def __call__(self, X1: JAXArray, X2: JAXArray | None = None) -> JAXArray:
        if X2 is None:
            k = jax.vmap(self.evaluate_diag, in_axes=0)(X1)
            if k.ndim != 1 + self.output_ndim:
                raise ValueError(
                    "Invalid kernel diagonal shape: "
                    f"expected ndim = {1 + self.output_ndim}, got ndim={k.ndim} "
                    "check the dimensions of parameters and custom kernels"
                )
            return k
        k = jax.vmap(jax.vmap(self.evaluate, in_axes=(None, 0)), in_axes=(0, None))(
            X1, X2
        )
        if k.ndim != 2 + self.output_ndim:
            raise ValueError(
                "Invalid kernel shape: "
                f"expected ndim = {2 + self.output_ndim}, got ndim={k.ndim} "
                "check the dimensions of parameters and custom kernels"
            )
        return k

    def __add__(self, other: Kernel | JAXArray) -> Kernel:
        if not isinstance(other, Kernel):
            other = Constant(other)
        return Sum(*_flatten(Sum, self), *_flatten(Sum, other))

    def __radd__(self, other: Any) -> Kernel:
        # This branch is hit first by the builtin `sum`
        if isinstance(other, (int, float)) and other == 0:
            return self
        if not isinstance(other, Kernel):
            other = Constant(other)
        return Sum(*_flatten(Sum, other), *_flatten(Sum, self))

    def __mul__(self, other: Kernel | JAXArray) -> Kernel:
        if not isinstance(other, Kernel):
            other = Constant(other)
        return Product(*_flatten(Product, self), *_flatten(Product, other))

    def __rmul__(self, other: Any) -> Kernel:
        if not isinstance(other, Kernel):
            other = Constant(other)
        return Product(*_flatten(Product, other), *_flatten(Product, self))

    def __pow__(self, p: int) -> Kernel:
        return Power(self, p)


class Custom(Kernel):
    """A kernel defined by a callable with the signature of
    :func:`Kernel.evaluate`"""

    function: Callable[[Any, Any], Any] = eqx.field(static=True)

    def evaluate(self, X1: JAXArray, X2: JAXArray) -> JAXArray:
        return self.function(X1, X2)


class Sum(Kernel):
    """The sum of any number of kernels"""

    kernels: tuple[Kernel, ...]

    def __init__(self, *kernels: Kernel):
        if len(kernels) == 0:
            raise ValueError("A sum needs at least one kernel")
        self.kernels = tuple(kernels)

    def evaluate(self, X1: JAXArray, X2: JAXArray) -> JAXArray:
        value = self.kernels[0].evaluate(X1, X2)
        for kernel in self.kernels[1:]:
            value = value + kernel.evaluate(X1, X2)
        return value


class Product(Kernel):
    """The product of any number of kernels"""

    kernels: tuple[Kernel, ...]

    def __init__(self, *kernels: Kernel):
        if len(kernels) == 0:
            raise ValueError("A product needs at least one kernel")
        self.kernels = tuple(kernels)

    def evaluate(self, X1: JAXArray, X2: JAXArray) -> JAXArray:
        value = self.kernels[0].evaluate(X1, X2)
        for kernel in self.kernels[1:]:
            value = value * kernel.evaluate(X1, X2)
        return value


class Power(Kernel):
    """A kernel raised to a non-negative integer power

    Args:
        kernel: The base kernel.
        p: The exponent. Only integer powers of a kernel are guaranteed to be
            positive semi-definite.
    """

    kernel: Kernel
    p: int = eqx.field(static=True)

    def __check_init__(self) -> None:
        if not isinstance(self.p, int) or self.p < 0:
            raise ValueError(
                f"Kernels can only be raised to non-negative integer powers; got {self.p}"
            )

    def evaluate(self, X1: JAXArray, X2: JAXArray) -> JAXArray:
        return self.kernel.evaluate(X1, X2) ** self.p


class Constant(Kernel):
    r"""This kernel returns the constant

    .. math::

        k(\mathbf{x}_i,\,\mathbf{x}_j) = c

    Args:
        value: The parameter :math:`c`; a non-negative scalar.
    """

    value: JAXArray | float

    def __check_init__(self) -> None:
        if jnp.ndim(self.value) != 0:
            raise ValueError("The value of a constant kernel must be a scalar")
        concrete = isinstance(self.value, (int, float, np.ndarray, np.generic))
        if concrete and self.value < 0:
            raise ValueError(
                f"A constant kernel must be non-negative to be positive "
                f"semi-definite; got {self.value}"
            )

    def evaluate(self, X1: JAXArray, X2: JAXArray) -> JAXArray:
        del X1, X2
        return jnp.asarray(self.value)


class DotProduct(Kernel):
    r"""The dot product kernel

    .. math::

        k(\mathbf{x}_i,\,\mathbf{x}_j) = \mathbf{x}_i \cdot \mathbf{x}_j
    """

    def evaluate(self, X1: JAXArray, X2: JAXArray) -> JAXArray:
        if jnp.ndim(X1) == 0:
            return X1 * X2
        return X1 @ X2


def _flatten(cls: type, kernel: Kernel) -> tuple[Kernel, ...]:
    if type(kernel) is cls:
        return kernel.kernels  # type: ignore
    return (kernel,)
