# mypy: ignore-errors

import jax
import jax.numpy as jnp
import numpy as np
import pytest

from covblocks import kernels, transforms
from covblocks.test_utils import assert_allclose


def _matern32(r):
    arg = np.sqrt(3) * r
    return (1 + arg) * np.exp(-arg)


def test_linear():
    kernel = transforms.Linear(1 / 4.5, kernels.Matern32())
    assert_allclose(kernel.evaluate(0.5, 0.1), _matern32(0.4 / 4.5))


def test_multivariate_linear():
    kernel = transforms.Linear(jnp.full(3, 1 / 4.5), kernels.Matern32())
    assert_allclose(
        kernel.evaluate(jnp.full(3, 0.5), jnp.full(3, 0.1)),
        _matern32(np.sqrt(3) * 0.4 / 4.5),
    )


def test_matrix_linear():
    scale = jnp.array([[1.0, 0.0], [0.0, 0.0]])
    kernel = transforms.Linear(scale, kernels.Matern32())
    assert_allclose(
        kernel.evaluate(jnp.array([0.5, 0.1]), jnp.array([-0.4, 0.7])),
        kernel.evaluate(jnp.array([0.5, 100.1]), jnp.array([-0.4, -70.7])),
    )
    with pytest.raises(ValueError):
        transforms.Linear(jnp.ones((2, 2, 2)), kernels.Matern32())


def test_symmetric():
    kernel = transforms.Symmetric(kernels.ExpSquared(), center=1.0)
    assert_allclose(kernel.evaluate(1.5, 0.2), kernel.evaluate(0.5, 0.2))
    expect = np.exp(-0.5 * 0.3**2) + np.exp(-0.5 * 1.3**2)
    assert_allclose(kernel.evaluate(1.5, 0.2), expect)


def test_vertical_rescaling():
    x = jnp.linspace(-1, 1, 7)
    kernel = transforms.VerticalRescaling(kernels.ExpSquared(), jnp.cosh)
    a = np.cosh(np.asarray(x))
    assert_allclose(kernel(x, x), a[:, None] * kernels.ExpSquared()(x, x) * a[None])


def test_normalize():
    x = jnp.linspace(-2, 2, 11)
    base = kernels.DotProduct() + 0.5
    kernel = transforms.normalize(base)
    assert_allclose(jnp.diag(kernel(x, x)), jnp.ones(11))
    assert_allclose(kernel(x), jnp.ones(11))
    K = base(x, x)
    d = jnp.sqrt(jnp.diag(K))
    assert_allclose(kernel(x, x), K / (d[:, None] * d[None]))


def test_derivative():
    kernel = transforms.Derivative(kernels.ExpSquared())
    x, y = 0.4, -0.3
    tau = x - y
    assert_allclose(kernel.evaluate(x, y), (1 - tau**2) * np.exp(-0.5 * tau**2))
    with pytest.raises(ValueError):
        kernel.evaluate(jnp.ones(2), jnp.zeros(2))


def test_transforms_are_differentiable():
    def loss(scale):
        kernel = transforms.Linear(scale, kernels.Matern52())
        return jnp.sum(kernel(jnp.linspace(0, 1, 5), jnp.linspace(0, 1, 5)))

    assert jnp.isfinite(jax.grad(loss)(0.7))
