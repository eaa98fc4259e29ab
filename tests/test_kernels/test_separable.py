# mypy: ignore-errors

import operator

import jax.numpy as jnp
import numpy as np
import pytest

from covblocks import kernels
from covblocks.test_utils import assert_allclose


@pytest.fixture
def data():
    random = np.random.default_rng(4021)
    return random.normal(size=(12, 2)), random.normal(size=(7, 2))


def test_separable_product(data):
    x1, x2 = data
    k1, k2 = kernels.ExpSquared(), kernels.Matern32()
    kernel = kernels.SeparableProduct(k1, k2)
    assert_allclose(
        kernel(x1, x2), k1(x1[:, 0], x2[:, 0]) * k2(x1[:, 1], x2[:, 1])
    )


def test_separable_sum(data):
    x1, x2 = data
    k1, k2 = kernels.ExpSquared(), kernels.Cauchy()
    kernel = kernels.separable(operator.add, k1, k2)
    assert isinstance(kernel, kernels.SeparableSum)
    assert_allclose(
        kernel(x1, x2), k1(x1[:, 0], x2[:, 0]) + k2(x1[:, 1], x2[:, 1])
    )


def test_separable_power_of_exp_squared_is_isotropic(data):
    x1, x2 = data
    kernel = kernels.separable_power(kernels.ExpSquared(), 2)
    assert_allclose(kernel(x1, x2), kernels.ExpSquared()(x1, x2))


def test_component_count_must_match_inputs(data):
    x1, _ = data
    kernel = kernels.SeparableProduct(kernels.Exp(), kernels.Exp(), kernels.Exp())
    with pytest.raises(ValueError):
        kernel.evaluate(jnp.asarray(x1[0]), jnp.asarray(x1[1]))


def test_invalid_construction():
    with pytest.raises(ValueError):
        kernels.SeparableProduct()
    with pytest.raises(ValueError):
        kernels.separable(operator.sub, kernels.Exp())
    with pytest.raises(ValueError):
        kernels.separable_power(kernels.Exp(), 0)
