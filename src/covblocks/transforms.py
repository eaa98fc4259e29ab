"""
Transforms build new kernels out of existing ones by acting on their inputs
(:class:`Linear`, :class:`Symmetric`) or their outputs
(:class:`VerticalRescaling`, :func:`normalize`, :class:`Derivative`).
"""

from __future__ import annotations

__all__ = [
    "Linear",
    "Symmetric",
    "VerticalRescaling",
    "Normalized",
    "normalize",
    "Derivative",
]

from functools import partial
from typing import Any, Callable

import equinox as eqx
import jax
import jax.numpy as jnp

from covblocks.helpers import JAXArray
from covblocks.kernels.base import Kernel


class Linear(Kernel):
    """Apply a linear map to the inputs before evaluating a kernel

    With a scalar or 1-D ``scale`` this sets (per-dimension) inverse length
    scales, the "automatic relevance determination" parameterization:

    .. code-block:: python

        >>> import numpy as np
        >>> from covblocks import kernels, transforms
        >>> kernel = transforms.Linear(1.0 / 2.5, kernels.ExpSquared())
        >>> np.testing.assert_allclose(
        ...     kernel.evaluate(0.5, 0.1), np.exp(-0.5 * (0.4 / 2.5) ** 2)
        ... )

    Args:
        scale: A 0-, 1-, or 2-dimensional array. Inputs are multiplied by it
            (0 or 1 dimensions) or mapped by it as a matrix (2 dimensions).
        kernel: The kernel to use in the transformed space.
    """

    scale: JAXArray | float
    kernel: Kernel

    def __check_init__(self) -> None:
        if jnp.ndim(self.scale) > 2:
            raise ValueError("'scale' must be 0-, 1-, or 2-dimensional")

    def evaluate(self, X1: JAXArray, X2: JAXArray) -> JAXArray:
        if jnp.ndim(self.scale) < 2:
            transform = partial(jnp.multiply, self.scale)
        else:
            transform = partial(jnp.dot, self.scale)
        return self.kernel.evaluate(transform(X1), transform(X2))


class Symmetric(Kernel):
    r"""Symmetrize a kernel about a center point

    .. math::

        k_s(x,\,y) = k(x - z,\,y - z) + k(-(x - z),\,y - z)

    The resulting process is symmetric under reflection about :math:`z`.

    Args:
        kernel: The kernel to symmetrize.
        center: The point :math:`z`.
    """

    kernel: Kernel
    center: JAXArray | float = 0.0

    def evaluate(self, X1: JAXArray, X2: JAXArray) -> JAXArray:
        X1 = X1 - self.center
        X2 = X2 - self.center
        return self.kernel.evaluate(X1, X2) + self.kernel.evaluate(-X1, X2)


class VerticalRescaling(Kernel):
    r"""Rescale the outputs of a kernel by a function of the inputs

    .. math::

        k_a(x,\,y) = a(x)\,k(x,\,y)\,a(y)

    This generalizes multiplication by a :class:`covblocks.kernels.Constant`.

    Args:
        kernel: The kernel to rescale.
        function: A scalar function :math:`a` of one input point.
    """

    kernel: Kernel
    function: Callable[[Any], Any] = eqx.field(static=True)

    def evaluate(self, X1: JAXArray, X2: JAXArray) -> JAXArray:
        return self.function(X1) * self.kernel.evaluate(X1, X2) * self.function(X2)


class Normalized(Kernel):
    r"""A kernel rescaled to unit variance

    .. math::

        k_n(x,\,y) = \frac{k(x,\,y)}{\sqrt{k(x,\,x)\,k(y,\,y)}}

    This is the vertical rescaling by :math:`a(x) = 1 / \sqrt{k(x,\,x)}`.
    """

    kernel: Kernel

    def evaluate(self, X1: JAXArray, X2: JAXArray) -> JAXArray:
        scale = self.kernel.evaluate_diag(X1) * self.kernel.evaluate_diag(X2)
        return self.kernel.evaluate(X1, X2) / jnp.sqrt(scale)

    def evaluate_diag(self, X: JAXArray) -> JAXArray:
        return jnp.ones_like(self.kernel.evaluate_diag(X))


def normalize(kernel: Kernel) -> Normalized:
    """Rescale ``kernel`` so that ``k(x, x) == 1`` for all ``x``"""
    return Normalized(kernel)


class Derivative(Kernel):
    r"""The covariance of the derivative of a process with scalar inputs

    .. math::

        k'(x,\,y) = \frac{\partial^2 k(x,\,y)}{\partial x\,\partial y}

    For vector inputs use :class:`covblocks.kernels.Gradient`.
    """

    kernel: Kernel

    def evaluate(self, X1: JAXArray, X2: JAXArray) -> JAXArray:
        if jnp.ndim(X1) != 0 or jnp.ndim(X2) != 0:
            raise ValueError(
                "Derivative kernels only support scalar inputs; "
                "use kernels.Gradient for vector inputs"
            )
        dk = jax.grad(self.kernel.evaluate, argnums=0)
        return jax.grad(dk, argnums=1)(
            jnp.asarray(X1, dtype=float), jnp.asarray(X2, dtype=float)
        )
