# mypy: ignore-errors

import logging

import numpy as np
import pytest

import covblocks
from covblocks import config
from covblocks.block import BlockFactorization
from covblocks.errors import (
    ConvergenceError,
    CovBlocksError,
    DimensionMismatchError,
    EmptyOperatorError,
    InvalidPartitionError,
    ShapeMismatchError,
)


def test_num_workers_from_environment(monkeypatch):
    monkeypatch.setenv("COVBLOCKS_NUM_WORKERS", "3")
    assert config._default_num_workers() == 3
    monkeypatch.setenv("COVBLOCKS_NUM_WORKERS", "0")
    with pytest.raises(ValueError):
        config._default_num_workers()
    monkeypatch.delenv("COVBLOCKS_NUM_WORKERS")
    assert config._default_num_workers() >= 1


def test_default_tolerance():
    B = BlockFactorization.from_blocks([[np.eye(2)]])
    assert B.tol == config.DEFAULT_TOL == 1e-8


@pytest.mark.parametrize(
    "error",
    [InvalidPartitionError, ShapeMismatchError, EmptyOperatorError],
)
def test_error_hierarchy(error):
    assert issubclass(error, CovBlocksError)
    assert issubclass(error, ValueError)


def test_error_attributes():
    err = DimensionMismatchError("x", 7, 10)
    assert (err.name, err.got, err.expected) == ("x", 7, 10)
    assert isinstance(err, ValueError)

    err = ConvergenceError(0.5, 12, 1e-8)
    assert (err.residual, err.iterations, err.tol) == (0.5, 12, 1e-8)
    assert isinstance(err, RuntimeError)
    assert "12" in str(err)


def test_solve_logs_at_debug_level(caplog):
    B = BlockFactorization.from_blocks([[2 * np.eye(2)]])
    with caplog.at_level(logging.DEBUG, logger="covblocks"):
        B.solve(np.ones(2))
    assert any("conjugate gradient" in r.getMessage() for r in caplog.records)
    assert covblocks.__version__


def test_package_metadata():
    assert covblocks.__author__ == "The covblocks developers"
    assert covblocks.__license__ == "MIT"
    for name in ["__email__", "__uri__", "__description__"]:
        assert isinstance(getattr(covblocks, name), str)
