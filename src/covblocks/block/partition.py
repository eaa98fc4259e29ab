"""
A partition describes where the block boundaries of a
:class:`covblocks.block.BlockFactorization` lie. There are two kinds, and the
kind is part of the type: a :class:`UniformPartition` has blocks of one fixed
size, which lets the multiplication engine reshape flat vectors into block
views, and an :class:`IrregularPartition` stores explicit boundaries.
"""

from __future__ import annotations

__all__ = ["Partition", "UniformPartition", "IrregularPartition"]

from abc import abstractmethod
from collections.abc import Sequence

import equinox as eqx
import numpy as np

from covblocks.errors import EmptyOperatorError, InvalidPartitionError


class Partition(eqx.Module):
    """The abstract base class for block partitions

    Boundaries are zero-based: block ``(i, j)`` covers the rows
    ``row_bounds[i]:row_bounds[i + 1]`` and the columns
    ``col_bounds[j]:col_bounds[j + 1]``.
    """

    @property
    @abstractmethod
    def row_bounds(self) -> tuple[int, ...]:
        raise NotImplementedError

    @property
    @abstractmethod
    def col_bounds(self) -> tuple[int, ...]:
        raise NotImplementedError

    @abstractmethod
    def locate(self, i: int, j: int) -> tuple[int, int, int, int]:
        """Find the block containing the element ``(i, j)``

        Returns:
            The block row, block column, and the row and column offsets
            within that block. The indices must already be in range.
        """
        raise NotImplementedError

    @abstractmethod
    def transpose(self) -> Partition:
        raise NotImplementedError

    @property
    def grid_shape(self) -> tuple[int, int]:
        """The number of block rows and block columns"""
        return len(self.row_bounds) - 1, len(self.col_bounds) - 1

    @property
    def shape(self) -> tuple[int, int]:
        """The total number of rows and columns"""
        rb, cb = self.row_bounds, self.col_bounds
        return rb[-1] - rb[0], cb[-1] - cb[0]

    def row_slice(self, i: int) -> slice:
        return slice(self.row_bounds[i], self.row_bounds[i + 1])

    def col_slice(self, j: int) -> slice:
        return slice(self.col_bounds[j], self.col_bounds[j + 1])

    def block_shape(self, i: int, j: int) -> tuple[int, int]:
        rb, cb = self.row_bounds, self.col_bounds
        return rb[i + 1] - rb[i], cb[j + 1] - cb[j]

    @staticmethod
    def uniform(grid_shape: tuple[int, int], size: int | tuple[int, int]) -> Partition:
        """Build a partition with ``grid_shape`` blocks of a single size

        Args:
            grid_shape: The number of block rows and block columns.
            size: The block size; an integer for square blocks, or a
                ``(rows, cols)`` tuple.
        """
        row_step, col_step = (size, size) if np.ndim(size) == 0 else size
        return UniformPartition(grid_shape[0], grid_shape[1], row_step, col_step)

    @staticmethod
    def from_bounds(row_bounds: Sequence[int], col_bounds: Sequence[int]) -> Partition:
        """Build a partition from explicit boundaries

        If both sequences turn out to be arithmetic progressions, the result is
        a :class:`UniformPartition` so that the strided multiplication path is
        used.
        """
        rb = _check_bounds(row_bounds, "row_bounds")
        cb = _check_bounds(col_bounds, "col_bounds")
        row_step, col_step = _common_step(rb), _common_step(cb)
        if row_step is not None and col_step is not None:
            return UniformPartition(len(rb) - 1, len(cb) - 1, row_step, col_step)
        return IrregularPartition(rb, cb)


class UniformPartition(Partition):
    """A partition into equally sized blocks

    Args:
        n_block_rows: The number of block rows.
        n_block_cols: The number of block columns.
        row_step: The number of rows in every block.
        col_step: The number of columns in every block.
    """

    n_block_rows: int = eqx.field(static=True)
    n_block_cols: int = eqx.field(static=True)
    row_step: int = eqx.field(static=True)
    col_step: int = eqx.field(static=True)

    def __check_init__(self) -> None:
        if self.n_block_rows < 1 or self.n_block_cols < 1:
            raise EmptyOperatorError(
                "A block grid needs at least one block row and one block column; "
                f"got {self.n_block_rows} x {self.n_block_cols}"
            )
        if self.row_step < 1 or self.col_step < 1:
            raise InvalidPartitionError(
                f"Block sizes must be positive; got {self.row_step} x {self.col_step}"
            )

    @property
    def row_bounds(self) -> tuple[int, ...]:
        return tuple(range(0, self.n_block_rows * self.row_step + 1, self.row_step))

    @property
    def col_bounds(self) -> tuple[int, ...]:
        return tuple(range(0, self.n_block_cols * self.col_step + 1, self.col_step))

    @property
    def grid_shape(self) -> tuple[int, int]:
        return self.n_block_rows, self.n_block_cols

    @property
    def shape(self) -> tuple[int, int]:
        return (
            self.n_block_rows * self.row_step,
            self.n_block_cols * self.col_step,
        )

    @property
    def block_size(self) -> tuple[int, int]:
        return self.row_step, self.col_step

    def row_slice(self, i: int) -> slice:
        return slice(i * self.row_step, (i + 1) * self.row_step)

    def col_slice(self, j: int) -> slice:
        return slice(j * self.col_step, (j + 1) * self.col_step)

    def block_shape(self, i: int, j: int) -> tuple[int, int]:
        del i, j
        return self.row_step, self.col_step

    def locate(self, i: int, j: int) -> tuple[int, int, int, int]:
        bi, ri = divmod(i, self.row_step)
        bj, rj = divmod(j, self.col_step)
        return bi, bj, ri, rj

    def transpose(self) -> UniformPartition:
        return UniformPartition(
            self.n_block_cols, self.n_block_rows, self.col_step, self.row_step
        )


class IrregularPartition(Partition):
    """A partition with arbitrary (strictly increasing) block boundaries

    Args:
        row_bounds: The ``R + 1`` row boundaries, starting at ``0``.
        col_bounds: The ``C + 1`` column boundaries, starting at ``0``.

    Raises:
        InvalidPartitionError: If either sequence is not strictly increasing
            or does not start at zero.
        EmptyOperatorError: If either sequence describes zero blocks.
    """

    _row_bounds: tuple[int, ...] = eqx.field(static=True)
    _col_bounds: tuple[int, ...] = eqx.field(static=True)

    def __init__(self, row_bounds: Sequence[int], col_bounds: Sequence[int]):
        self._row_bounds = _check_bounds(row_bounds, "row_bounds")
        self._col_bounds = _check_bounds(col_bounds, "col_bounds")

    @property
    def row_bounds(self) -> tuple[int, ...]:
        return self._row_bounds

    @property
    def col_bounds(self) -> tuple[int, ...]:
        return self._col_bounds

    def locate(self, i: int, j: int) -> tuple[int, int, int, int]:
        bi = int(np.searchsorted(self._row_bounds, i, side="right")) - 1
        bj = int(np.searchsorted(self._col_bounds, j, side="right")) - 1
        return bi, bj, i - self._row_bounds[bi], j - self._col_bounds[bj]

    def transpose(self) -> IrregularPartition:
        return IrregularPartition(self._col_bounds, self._row_bounds)


def _check_bounds(bounds: Sequence[int], name: str) -> tuple[int, ...]:
    bounds = tuple(int(b) for b in bounds)
    if len(bounds) < 2:
        raise EmptyOperatorError(
            f"'{name}' must contain at least two boundaries; got {list(bounds)}"
        )
    if bounds[0] != 0:
        raise InvalidPartitionError(
            f"'{name}' must start at 0; got {bounds[0]}"
        )
    if any(b <= a for a, b in zip(bounds[:-1], bounds[1:])):
        raise InvalidPartitionError(
            f"'{name}' must be strictly increasing; got {list(bounds)}"
        )
    return bounds


def _common_step(bounds: tuple[int, ...]) -> int | None:
    steps = {b - a for a, b in zip(bounds[:-1], bounds[1:])}
    if len(steps) == 1:
        return steps.pop()
    return None
