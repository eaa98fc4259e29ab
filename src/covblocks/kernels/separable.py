"""
Separable kernels evaluate one component kernel per input coordinate and
combine the results, so that ``SeparableProduct(k1, k2)`` applied to 2-D
points ``(a, b)`` and ``(c, d)`` is ``k1(a, c) * k2(b, d)``.
"""

from __future__ import annotations

__all__ = ["SeparableProduct", "SeparableSum", "separable", "separable_power"]

import operator
from typing import Callable

import jax.numpy as jnp

from covblocks.helpers import JAXArray
from covblocks.kernels.base import Kernel


class _Separable(Kernel):
    kernels: tuple[Kernel, ...]

    def _components(self, X1: JAXArray, X2: JAXArray) -> list[JAXArray]:
        X1, X2 = jnp.atleast_1d(X1), jnp.atleast_1d(X2)
        if X1.shape != (len(self.kernels),) or X2.shape != (len(self.kernels),):
            raise ValueError(
                f"Dimension mismatch: a separable kernel with {len(self.kernels)} "
                f"components needs inputs of shape ({len(self.kernels)},); got "
                f"{X1.shape} and {X2.shape}"
            )
        return [k.evaluate(X1[i], X2[i]) for i, k in enumerate(self.kernels)]


class SeparableProduct(_Separable):
    """The product of component kernels, each acting on one input coordinate"""

    def __init__(self, *kernels: Kernel):
        self.kernels = _check_components(kernels)

    def evaluate(self, X1: JAXArray, X2: JAXArray) -> JAXArray:
        values = self._components(X1, X2)
        result = values[0]
        for value in values[1:]:
            result = result * value
        return result


class SeparableSum(_Separable):
    """The sum of component kernels, each acting on one input coordinate"""

    def __init__(self, *kernels: Kernel):
        self.kernels = _check_components(kernels)

    def evaluate(self, X1: JAXArray, X2: JAXArray) -> JAXArray:
        values = self._components(X1, X2)
        result = values[0]
        for value in values[1:]:
            result = result + value
        return result


def _check_components(kernels: tuple[Kernel, ...]) -> tuple[Kernel, ...]:
    if len(kernels) == 0:
        raise ValueError("A separable kernel needs at least one component")
    return tuple(kernels)


def separable(op: Callable, *kernels: Kernel) -> Kernel:
    """Build a separable kernel, e.g. ``separable(operator.mul, k1, k2)``

    Args:
        op: Either ``operator.mul`` for a :class:`SeparableProduct` or
            ``operator.add`` for a :class:`SeparableSum`.
    """
    if op is operator.mul:
        return SeparableProduct(*kernels)
    if op is operator.add:
        return SeparableSum(*kernels)
    raise ValueError(f"'op' must be operator.mul or operator.add; got {op!r}")


def separable_power(kernel: Kernel, d: int) -> SeparableProduct:
    """The ``d``-dimensional separable product of ``kernel`` with itself"""
    if d < 1:
        raise ValueError(f"'d' must be a positive integer; got {d}")
    return SeparableProduct(*(kernel for _ in range(d)))
