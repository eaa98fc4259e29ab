"""
Distance metrics for :class:`covblocks.kernels.Stationary` and
:class:`covblocks.kernels.Isotropic` kernels. Isotropic kernels only ever need
the squared distance, so metrics implement that separately from
:func:`Distance.distance` to avoid square roots (and their infinite gradients
at zero).
"""

from __future__ import annotations

__all__ = ["Distance", "L1Distance", "L2Distance", "difference"]

from abc import abstractmethod

import equinox as eqx
import jax.numpy as jnp

from covblocks.helpers import JAXArray


def difference(X1: JAXArray, X2: JAXArray) -> JAXArray:
    """The difference ``X1 - X2`` of two points, as an array"""
    return jnp.asarray(X1) - jnp.asarray(X2)


class Distance(eqx.Module):
    """The interface for a distance metric between two points"""

    @abstractmethod
    def distance(self, X1: JAXArray, X2: JAXArray) -> JAXArray:
        raise NotImplementedError()

    def squared_distance(self, X1: JAXArray, X2: JAXArray) -> JAXArray:
        return jnp.square(self.distance(X1, X2))


class L1Distance(Distance):
    """The Manhattan distance ``sum(|X1 - X2|)``"""

    def distance(self, X1: JAXArray, X2: JAXArray) -> JAXArray:
        return jnp.sum(jnp.abs(difference(X1, X2)))


class L2Distance(Distance):
    """The Euclidean distance

    The gradient of :func:`L2Distance.distance` is kept finite at zero by
    falling back on the L1 distance there, where the two coincide.
    """

    def distance(self, X1: JAXArray, X2: JAXArray) -> JAXArray:
        r2 = self.squared_distance(X1, X2)
        at_zero = jnp.equal(r2, 0)
        safe_r2 = jnp.where(at_zero, jnp.ones_like(r2), r2)
        return jnp.where(at_zero, L1Distance().distance(X1, X2), jnp.sqrt(safe_r2))

    def squared_distance(self, X1: JAXArray, X2: JAXArray) -> JAXArray:
        return jnp.sum(jnp.square(difference(X1, X2)))
