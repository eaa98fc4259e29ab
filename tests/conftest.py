# -*- coding: utf-8 -*-
# mypy: ignore-errors

import jax
import numpy as np
import pytest

jax.config.update("jax_enable_x64", True)


@pytest.fixture
def random():
    return np.random.default_rng(84930)


@pytest.fixture
def spd(random):
    def make(n, shift=1.0):
        A = random.standard_normal((n, n))
        return A @ A.T + shift * n * np.eye(n)

    return make
