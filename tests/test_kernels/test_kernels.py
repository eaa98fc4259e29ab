# mypy: ignore-errors

import jax
import jax.numpy as jnp
import numpy as np
import pytest
from numpy import random as np_random

from covblocks import kernels, transforms
from covblocks.test_utils import assert_allclose


@pytest.fixture
def random():
    return np_random.default_rng(1058390)


@pytest.fixture
def data(random):
    x1 = random.uniform(-3, 3, (50, 5))
    x2 = random.uniform(-5, 5, (50, 5))
    return x1, x2


def test_constant(data):
    x1, x2 = data

    # Check for dimension issues when built
    with pytest.raises(ValueError):
        kernels.Constant(jnp.ones(3))

    # Negative constants are not positive semi-definite
    with pytest.raises(ValueError):
        kernels.Constant(-1.0)

    # Check that multiplication has the expected behavior
    factor = 2.5
    k1 = kernels.Matern32()
    assert_allclose(factor * k1(x1, x2), (factor * k1)(x1, x2))
    assert_allclose(factor * k1(x1, x2), (k1 * factor)(x1, x2))


def test_custom(data):
    x1, x2 = data

    # Check that known kernels work as expected
    scale = 1.5
    k1 = kernels.Custom(
        lambda X1, X2: jnp.exp(-0.5 * jnp.sum(jnp.square((X1 - X2) / scale)))
    )
    k2 = transforms.Linear(1 / scale, kernels.ExpSquared())
    assert_allclose(k1(x1, x2), k2(x1, x2))

    # Check that an invalid kernel raises as expected
    kernel = kernels.Custom(
        lambda X1, X2: jnp.exp(-0.5 * jnp.square((X1 - X2) / scale))
    )
    with pytest.raises(ValueError):
        kernel(x1, x2)


def test_ops(data):
    x1, x2 = data

    k1 = 1.5 * kernels.Matern32()
    k2 = 0.9 * kernels.RationalQuadratic(alpha=0.3)

    assert_allclose(k1(x1, x2) + k2(x1, x2), (k1 + k2)(x1, x2))
    assert_allclose(k1(x1, x2) * k2(x1, x2), (k1 * k2)(x1, x2))
    assert_allclose(k1(x1, x2) ** 3, (k1**3)(x1, x2))
    assert_allclose(k1(x1, x2) + 0.5, (k1 + 0.5)(x1, x2))
    assert_allclose(k1(x1, x2) + 0.5, (0.5 + k1)(x1, x2))


def test_sum_and_product_are_flat():
    k = kernels.Exp() + kernels.Matern32() + kernels.Matern52()
    assert isinstance(k, kernels.Sum)
    assert len(k.kernels) == 3

    k = kernels.Exp() * kernels.Matern32() * kernels.Matern52()
    assert isinstance(k, kernels.Product)
    assert len(k.kernels) == 3


def test_builtin_sum(data):
    x1, x2 = data
    parts = [kernels.Exp(), kernels.Cauchy(), kernels.Matern52()]
    expect = sum(k(x1, x2) for k in parts)
    assert_allclose(sum(parts)(x1, x2), expect)


def test_power_must_be_a_non_negative_integer():
    with pytest.raises(ValueError):
        kernels.ExpSquared() ** 1.5
    with pytest.raises(ValueError):
        kernels.ExpSquared() ** -1
    with pytest.raises(ValueError):
        kernels.Sum()
    with pytest.raises(ValueError):
        kernels.Product()


def test_dot_product(data):
    x1, x2 = data
    kernel = kernels.DotProduct()
    assert_allclose(kernel(x1, x2), jnp.dot(x1, x2.T))
    assert_allclose(kernel(x1[:, 0], x2[:, 0]), x1[:, 0][:, None] * x2[:, 0][None])


def test_diagonal(data):
    x1, _ = data
    kernel = 1.3 * kernels.Matern52() + kernels.DotProduct()
    assert_allclose(kernel(x1), jnp.diag(kernel(x1, x1)))


@pytest.mark.parametrize(
    "kernel",
    [
        kernels.Custom(lambda x, y: jnp.exp(-0.5 * jnp.sum(jnp.square(x - y)))),
        kernels.Constant(0.5),
        kernels.DotProduct(),
        kernels.Exp(),
        kernels.ExpSquared(),
        kernels.Matern32(),
        kernels.Matern52(),
        kernels.MaternP(2),
        kernels.Cosine(0.5),
        kernels.RationalQuadratic(alpha=1.5),
        kernels.GammaExp(1.2),
        kernels.Cauchy(),
        kernels.InverseMultiQuadratic(0.7),
    ],
)
def test_kernel_as_pytree(data, kernel):
    x1, x2 = data

    def check_roundtrip(kernel):
        expect = jax.jit(lambda kernel_: kernel_(x1, x2))(kernel)
        flat, treedef = jax.tree_util.tree_flatten(kernel)
        calc = jax.tree_util.tree_unflatten(treedef, flat)(x1, x2)
        assert_allclose(calc, expect)

    check_roundtrip(kernel)
    check_roundtrip(0.5 * kernel)
    check_roundtrip(kernel + kernel)
    check_roundtrip(kernel * kernel)


@pytest.mark.parametrize(
    "kernel",
    [
        kernels.ExpSquared(),
        kernels.Matern32(),
        kernels.Matern52(),
        kernels.RationalQuadratic(alpha=0.8),
        kernels.Exp() + kernels.Delta(),
    ],
)
def test_gramian_is_positive_semidefinite(data, kernel):
    x1, _ = data
    K = np.asarray(kernel(x1, x1))
    np.testing.assert_allclose(K, K.T)
    assert np.linalg.eigvalsh(K).min() > -1e-8
