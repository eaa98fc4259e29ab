"""
Stationary kernels depend on their inputs only through the difference
``tau = x1 - x2``, and isotropic kernels only through the squared Euclidean
distance ``r2 = |x1 - x2|^2``. All isotropic kernels here have unit length
scale; wrap them in :class:`covblocks.transforms.Linear` to change it, e.g.

.. code-block:: python

    >>> from covblocks import kernels, transforms
    >>> kernel = transforms.Linear(1 / 2.5, kernels.ExpSquared())

Parameters are validated when the kernel is built, so invalid values raise a
``ValueError`` immediately rather than producing an indefinite Gramian later.
"""

from __future__ import annotations

__all__ = [
    "Stationary",
    "Isotropic",
    "ExpSquared",
    "EQ",
    "RationalQuadratic",
    "Exp",
    "GammaExp",
    "Delta",
    "MaternP",
    "Matern32",
    "Matern52",
    "Cosine",
    "Cauchy",
    "InverseMultiQuadratic",
    "spectral",
    "spectral_mixture",
    "pseudo_voigt",
]

from abc import abstractmethod
from collections.abc import Sequence
from math import factorial
from typing import Any

import equinox as eqx
import jax.numpy as jnp
import numpy as np

from covblocks.helpers import JAXArray
from covblocks.kernels.base import Kernel
from covblocks.kernels.distance import L2Distance, difference


def _is_concrete(value: Any) -> bool:
    return isinstance(value, (int, float, np.ndarray, np.generic))


def _safe_sqrt(r2: JAXArray) -> JAXArray:
    # Keeps the gradient finite at r2 == 0
    at_zero = jnp.equal(r2, 0)
    return jnp.where(at_zero, 0.0, jnp.sqrt(jnp.where(at_zero, 1.0, r2)))


class Stationary(Kernel):
    """A kernel that is a function of ``tau = X1 - X2`` only"""

    @abstractmethod
    def evaluate_tau(self, tau: JAXArray) -> JAXArray:
        raise NotImplementedError

    def evaluate(self, X1: JAXArray, X2: JAXArray) -> JAXArray:
        return self.evaluate_tau(difference(X1, X2))


class Isotropic(Kernel):
    """A kernel that is a function of the squared distance ``r2`` only

    Subclasses implement :func:`Isotropic.evaluate_r2`. The diagonal of an
    isotropic kernel is the constant ``evaluate_r2(0)``.
    """

    @abstractmethod
    def evaluate_r2(self, r2: JAXArray) -> JAXArray:
        raise NotImplementedError

    def evaluate(self, X1: JAXArray, X2: JAXArray) -> JAXArray:
        return self.evaluate_r2(L2Distance().squared_distance(X1, X2))

    def evaluate_diag(self, X: JAXArray) -> JAXArray:
        del X
        return self.evaluate_r2(jnp.zeros(()))


class ExpSquared(Isotropic):
    r"""The exponentiated quadratic kernel

    .. math::

        k(r) = \exp(-r^2 / 2)
    """

    def evaluate_r2(self, r2: JAXArray) -> JAXArray:
        return jnp.exp(-0.5 * r2)


EQ = ExpSquared


class RationalQuadratic(Isotropic):
    r"""The rational quadratic kernel

    .. math::

        k(r) = (1 + r^2 / 2\,\alpha)^{-\alpha}

    Args:
        alpha: The relative weighting of large and small length scales; must
            be positive.
    """

    alpha: JAXArray | float

    def __check_init__(self) -> None:
        if _is_concrete(self.alpha) and not np.all(np.asarray(self.alpha) > 0):
            raise ValueError(f"'alpha' must be positive; got {self.alpha}")

    def evaluate_r2(self, r2: JAXArray) -> JAXArray:
        return (1.0 + 0.5 * r2 / self.alpha) ** -self.alpha


class Exp(Isotropic):
    r"""The exponential kernel

    .. math::

        k(r) = \exp(-r)
    """

    def evaluate_r2(self, r2: JAXArray) -> JAXArray:
        return jnp.exp(-_safe_sqrt(r2))


class GammaExp(Isotropic):
    r"""The :math:`\gamma`-exponential kernel

    .. math::

        k(r) = \exp(-r^\gamma / 2)

    Args:
        gamma: The exponent, in :math:`[0, 2]`.
    """

    gamma: JAXArray | float

    def __check_init__(self) -> None:
        if _is_concrete(self.gamma):
            gamma = np.asarray(self.gamma)
            if not np.all((0 <= gamma) & (gamma <= 2)):
                raise ValueError(f"'gamma' must be in [0, 2]; got {self.gamma}")

    def evaluate_r2(self, r2: JAXArray) -> JAXArray:
        safe = jnp.where(jnp.equal(r2, 0), 1.0, r2)
        power = jnp.where(jnp.equal(r2, 0), 0.0, safe ** (0.5 * self.gamma))
        return jnp.exp(-0.5 * power)


class Delta(Isotropic):
    """The white noise kernel: one for identical inputs and zero otherwise"""

    def evaluate_r2(self, r2: JAXArray) -> JAXArray:
        return jnp.where(jnp.equal(r2, 0), 1.0, 0.0)


class MaternP(Isotropic):
    r"""The Matern kernel with half-integer smoothness :math:`\nu = p + 1/2`

    .. math::

        k(r) = \exp(-s)\,\frac{p!}{(2p)!}\,\sum_{i=0}^p
            \frac{(p+i)!}{i!\,(p-i)!}\,(2\,s)^{p-i}

    where :math:`s = \sqrt{2p+1}\,r`. ``MaternP(0)`` is the exponential kernel.

    Args:
        p: A non-negative integer.
    """

    p: int = eqx.field(static=True)

    def __check_init__(self) -> None:
        if not isinstance(self.p, (int, np.integer)) or self.p < 0:
            raise ValueError(f"'p' must be a non-negative integer; got {self.p}")

    def evaluate_r2(self, r2: JAXArray) -> JAXArray:
        p = int(self.p)
        s = _safe_sqrt((2 * p + 1) * r2)
        value = jnp.zeros_like(s)
        for i in range(p + 1):
            coeff = factorial(p + i) / (factorial(i) * factorial(p - i))
            value = value + coeff * (2 * s) ** (p - i)
        return value * jnp.exp(-s) * (factorial(p) / factorial(2 * p))


class Matern32(Isotropic):
    r"""The Matern-3/2 kernel

    .. math::

        k(r) = (1 + \sqrt{3}\,r)\,\exp(-\sqrt{3}\,r)
    """

    def evaluate_r2(self, r2: JAXArray) -> JAXArray:
        arg = np.sqrt(3) * _safe_sqrt(r2)
        return (1 + arg) * jnp.exp(-arg)


class Matern52(Isotropic):
    r"""The Matern-5/2 kernel

    .. math::

        k(r) = (1 + \sqrt{5}\,r + 5\,r^2/3)\,\exp(-\sqrt{5}\,r)
    """

    def evaluate_r2(self, r2: JAXArray) -> JAXArray:
        arg = np.sqrt(5) * _safe_sqrt(r2)
        return (1 + arg + jnp.square(arg) / 3) * jnp.exp(-arg)


class Cosine(Stationary):
    r"""The cosine kernel

    .. math::

        k(\tau) = \cos(2\,\pi\,\mu \cdot \tau)

    It is stationary but not isotropic, and can produce negative covariances.

    Args:
        mu: The frequency; a scalar (applied to the sum of ``tau``) or a vector
            with one entry per input dimension.
    """

    mu: JAXArray | float

    def evaluate_tau(self, tau: JAXArray) -> JAXArray:
        if jnp.ndim(self.mu) == 0:
            return jnp.cos(2 * jnp.pi * self.mu * jnp.sum(tau))
        return jnp.cos(2 * jnp.pi * jnp.dot(self.mu, tau))


class Cauchy(Isotropic):
    r"""The (unnormalized) Cauchy kernel :math:`k(r) = 1 / (1 + r^2)`"""

    def evaluate_r2(self, r2: JAXArray) -> JAXArray:
        return 1.0 / (1.0 + r2)


class InverseMultiQuadratic(Isotropic):
    r"""The inverse multi-quadratic kernel :math:`k(r) = 1 / \sqrt{r^2 + c^2}`

    Args:
        c: The offset; must be non-zero.
    """

    c: JAXArray | float

    def __check_init__(self) -> None:
        if _is_concrete(self.c) and np.any(np.asarray(self.c) == 0):
            raise ValueError("'c' must be non-zero")

    def evaluate_r2(self, r2: JAXArray) -> JAXArray:
        return 1.0 / jnp.sqrt(r2 + jnp.square(self.c))


def spectral(weight: Any, mu: Any, scale: Any) -> Kernel:
    """One component of a spectral mixture kernel

    This is ``weight * Cosine(mu) * ExpSquared()`` with the exponentiated
    quadratic evaluated at inputs divided by ``scale``.
    """
    from covblocks.transforms import Linear

    return weight * Cosine(mu) * Linear(1.0 / jnp.asarray(scale), ExpSquared())


def spectral_mixture(
    weights: Sequence[Any], mus: Sequence[Any], scales: Sequence[Any]
) -> Kernel:
    """A sum of :func:`spectral` components"""
    if not (len(weights) == len(mus) == len(scales)):
        raise ValueError(
            "Dimension mismatch: 'weights', 'mus' and 'scales' must have the same "
            f"length; got {len(weights)}, {len(mus)} and {len(scales)}"
        )
    return sum(spectral(w, m, s) for w, m, s in zip(weights, mus, scales))


def pseudo_voigt(alpha: float) -> Kernel:
    """A mixture ``alpha * ExpSquared() + (1 - alpha) * Cauchy()``

    Args:
        alpha: The mixing weight, in :math:`[0, 1]`.
    """
    if not 0 <= alpha <= 1:
        raise ValueError(f"'alpha' must be in [0, 1]; got {alpha}")
    return alpha * ExpSquared() + (1 - alpha) * Cauchy()
