# mypy: ignore-errors

import sys

import numpy as np
import pytest

from covblocks.block import (
    BlockFactorization,
    DiagonalBlock,
    ZeroBlock,
    conjugate_gradient,
    solve,
    solve_into,
)
from covblocks.errors import ConvergenceError, DimensionMismatchError


@pytest.fixture
def diagonal():
    grid = [
        [
            DiagonalBlock(np.full(2, value)) if i == j else ZeroBlock((2, 2))
            for j in range(4)
        ]
        for i, value in enumerate([2.0, 3.0, 5.0, 7.0])
    ]
    return BlockFactorization.from_size(grid, 2)


@pytest.fixture
def dense_spd(spd):
    A = spd(12)
    grid = [[A[3 * i : 3 * i + 3, 3 * j : 3 * j + 3] for j in range(4)] for i in range(4)]
    return BlockFactorization.from_blocks(grid, tol=1e-10)


def test_block_diagonal(diagonal):
    b = np.ones(8)
    x = solve(diagonal, b)
    assert np.linalg.norm(diagonal @ x - b) < diagonal.tol
    np.testing.assert_allclose(x, 1 / np.repeat([2.0, 3.0, 5.0, 7.0], 2))


def test_dense(dense_spd, random):
    b = random.standard_normal(12)
    x = dense_spd.solve(b)
    assert np.linalg.norm(dense_spd @ x - b) < 1e-10
    np.testing.assert_allclose(x, np.linalg.solve(dense_spd.to_dense(), b))


def test_tolerance_override_does_not_mutate(dense_spd, random):
    b = random.standard_normal(12)
    x = dense_spd.solve(b, tol=1e-3)
    assert np.linalg.norm(dense_spd @ x - b) < 1e-3
    assert dense_spd.tol == 1e-10


def test_convergence_error(dense_spd, random):
    b = random.standard_normal(12)
    with pytest.raises(ConvergenceError) as excinfo:
        solve(dense_spd, b, maxiter=1)
    assert excinfo.value.residual > dense_spd.tol
    assert excinfo.value.iterations == 1
    assert excinfo.value.tol == dense_spd.tol


def test_solve_into(dense_spd, random):
    b = random.standard_normal(12)
    x = np.zeros(12)
    result = solve_into(x, dense_spd, b)
    assert result is x
    assert np.linalg.norm(dense_spd @ x - b) < 1e-10

    # A converged guess needs no further iterations
    x2 = x.copy()
    dense_spd.solve_into(x2, b)
    np.testing.assert_allclose(x2, x)


def test_solve_into_leaves_x_on_failure(dense_spd, random):
    b = random.standard_normal(12)
    x = np.full(12, 0.5)
    with pytest.raises(ConvergenceError):
        dense_spd.solve_into(x, b, maxiter=1)
    np.testing.assert_array_equal(x, np.full(12, 0.5))


def test_dimension_checks(diagonal):
    with pytest.raises(DimensionMismatchError):
        solve(diagonal, np.ones(7))
    with pytest.raises(DimensionMismatchError):
        solve_into(np.zeros(9), diagonal, np.ones(8))
    with pytest.raises(ValueError):
        solve(diagonal, np.ones((8, 1)))
    rectangular = BlockFactorization.from_size([[np.eye(2), np.eye(2)]], 2)
    with pytest.raises(ValueError):
        solve(rectangular, np.ones(2))


def test_conjugate_gradient(spd, random):
    A = spd(6)
    b = random.standard_normal(6)
    result = conjugate_gradient(lambda v: A @ v, b, 1e-12)
    assert result.converged
    assert result.iterations > 0
    assert result.residual <= 1e-12 * 10
    np.testing.assert_allclose(result.x, np.linalg.solve(A, b))

    result = conjugate_gradient(lambda v: A @ v, b, 1e-12, maxiter=1)
    assert not result.converged
    assert result.iterations == 1


def test_converged_requires_true_residual(spd, random, monkeypatch):
    solve_module = sys.modules["covblocks.block.solve"]
    A = spd(4)
    b = random.standard_normal(4)

    def fake_cg(operator, b, **kwargs):
        del operator, kwargs
        return np.zeros_like(b), 0

    monkeypatch.setattr(solve_module, "cg", fake_cg)
    result = conjugate_gradient(lambda v: A @ v, b, 1e-8)
    assert not result.converged
    np.testing.assert_allclose(result.residual, np.linalg.norm(b))

    B = BlockFactorization.from_blocks([[A]])
    with pytest.raises(ConvergenceError):
        solve(B, b)
