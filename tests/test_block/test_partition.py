# mypy: ignore-errors

import pytest

from covblocks.block import IrregularPartition, Partition, UniformPartition
from covblocks.errors import EmptyOperatorError, InvalidPartitionError


def test_uniform():
    partition = Partition.uniform((3, 2), 4)
    assert isinstance(partition, UniformPartition)
    assert partition.grid_shape == (3, 2)
    assert partition.shape == (12, 8)
    assert partition.row_bounds == (0, 4, 8, 12)
    assert partition.col_bounds == (0, 4, 8)
    assert partition.block_size == (4, 4)
    assert partition.row_slice(1) == slice(4, 8)
    assert partition.locate(9, 5) == (2, 1, 1, 1)


def test_uniform_rectangular_blocks():
    partition = Partition.uniform((2, 3), (2, 5))
    assert partition.shape == (4, 15)
    assert partition.block_shape(1, 2) == (2, 5)
    transposed = partition.transpose()
    assert transposed.grid_shape == (3, 2)
    assert transposed.block_size == (5, 2)


def test_from_bounds_detects_uniform_steps():
    partition = Partition.from_bounds([0, 3, 6, 9], [0, 3, 6, 9])
    assert isinstance(partition, UniformPartition)
    assert partition.block_size == (3, 3)

    partition = Partition.from_bounds([0, 2, 7], [0, 3, 6])
    assert isinstance(partition, IrregularPartition)
    assert partition.shape == (7, 6)
    assert partition.grid_shape == (2, 2)


def test_irregular_locate():
    partition = IrregularPartition([0, 2, 7, 10], [0, 1, 4])
    assert partition.locate(0, 0) == (0, 0, 0, 0)
    assert partition.locate(1, 3) == (0, 1, 1, 2)
    assert partition.locate(2, 0) == (1, 0, 0, 0)
    assert partition.locate(9, 1) == (2, 1, 2, 0)
    assert partition.block_shape(1, 1) == (5, 3)
    assert partition.transpose().row_bounds == (0, 1, 4)


@pytest.mark.parametrize(
    "bounds",
    [[0, 3, 2, 9], [0, 3, 3, 9], [1, 3, 6]],
)
def test_invalid_bounds(bounds):
    with pytest.raises(InvalidPartitionError):
        Partition.from_bounds(bounds, [0, 9])
    with pytest.raises(InvalidPartitionError):
        IrregularPartition([0, 9], bounds)


def test_empty():
    with pytest.raises(EmptyOperatorError):
        Partition.from_bounds([0], [0, 1])
    with pytest.raises(EmptyOperatorError):
        Partition.uniform((0, 2), 3)
    with pytest.raises(InvalidPartitionError):
        Partition.uniform((2, 2), 0)


def test_errors_are_value_errors():
    with pytest.raises(ValueError):
        Partition.from_bounds([0, 3, 2, 9], [0, 3, 2, 9])
