from __future__ import annotations

__all__ = ["BlockFactorization"]

import operator
from collections.abc import Sequence
from typing import Any

import equinox as eqx
import numpy as np
from scipy.sparse.linalg import LinearOperator

from covblocks import config
from covblocks.block import engine
from covblocks.block.solve import solve as solve_operator
from covblocks.block.solve import solve_into as solve_operator_into
from covblocks.block.blocks import Block, as_block
from covblocks.block.partition import Partition, UniformPartition
from covblocks.errors import EmptyOperatorError, ShapeMismatchError
from covblocks.helpers import Array, as_numpy

BlockGrid = tuple[tuple[Block, ...], ...]


class BlockFactorization(eqx.Module):
    """A matrix-free linear operator made of a grid of blocks

    The blocks can be any mix of :class:`covblocks.block.Block` subclasses
    (raw arrays are wrapped as :class:`covblocks.block.DenseBlock`). The
    operator is immutable: there is no way to replace a block once it has been
    built.

    For most uses, one of the alternative constructors is more convenient:
    :func:`BlockFactorization.from_size` for a grid of square blocks of one
    size, or :func:`BlockFactorization.from_blocks` to infer that size from
    the first block.

    Args:
        blocks: A nested sequence of blocks, indexed as ``blocks[i][j]``, or a
            2-D ``numpy`` object array of blocks.
        row_bounds: The ``R + 1`` zero-based row boundaries of the blocks.
        col_bounds: The ``C + 1`` zero-based column boundaries of the blocks.
        tol: The default residual tolerance for :func:`BlockFactorization.solve`.

    Raises:
        InvalidPartitionError: If the boundaries are not strictly increasing.
        ShapeMismatchError: If a block's shape disagrees with the partition.
        EmptyOperatorError: If the grid has no blocks.
    """

    blocks: BlockGrid
    partition: Partition
    tol: float = eqx.field(static=True)
    dtype: np.dtype = eqx.field(static=True)

    def __init__(
        self,
        blocks: Any,
        row_bounds: Sequence[int] | Partition,
        col_bounds: Sequence[int] | None = None,
        tol: float = config.DEFAULT_TOL,
    ):
        self.blocks = _as_grid(blocks)
        if isinstance(row_bounds, Partition):
            if col_bounds is not None:
                raise TypeError(
                    "'col_bounds' must not be given together with a Partition"
                )
            self.partition = row_bounds
        else:
            if col_bounds is None:
                raise TypeError("Missing required argument 'col_bounds'")
            self.partition = Partition.from_bounds(row_bounds, col_bounds)
        self.tol = float(tol)
        self.dtype = np.result_type(*(b.dtype for row in self.blocks for b in row))

    def __check_init__(self) -> None:
        grid_shape = (len(self.blocks), len(self.blocks[0]))
        if grid_shape != self.partition.grid_shape:
            raise ShapeMismatchError(
                f"The block grid has shape {grid_shape} but the partition "
                f"describes {self.partition.grid_shape} blocks"
            )
        for i, row in enumerate(self.blocks):
            for j, block in enumerate(row):
                expected = self.partition.block_shape(i, j)
                if tuple(block.shape) != expected:
                    raise ShapeMismatchError(
                        f"Block ({i}, {j}) has shape {tuple(block.shape)} but its "
                        f"partition slice has shape {expected}"
                    )

    @classmethod
    def from_size(
        cls, blocks: Any, d: int, *, tol: float = config.DEFAULT_TOL
    ) -> BlockFactorization:
        """Build an operator from a grid of ``d x d`` blocks"""
        grid = _as_grid(blocks)
        partition = UniformPartition(len(grid), len(grid[0]), d, d)
        return cls(grid, partition, tol=tol)

    @classmethod
    def from_blocks(
        cls, blocks: Any, *, tol: float = config.DEFAULT_TOL
    ) -> BlockFactorization:
        """Build an operator from a grid of equally sized square blocks

        The block size is taken from ``blocks[0][0]``, which must be square,
        and every other block must have the same shape.

        Raises:
            ShapeMismatchError: If the blocks are not all of one square shape.
        """
        grid = _as_grid(blocks)
        shape = tuple(grid[0][0].shape)
        if shape[0] != shape[1]:
            raise ShapeMismatchError(
                f"Block (0, 0) must be square to infer a block size; got {shape}"
            )
        for i, row in enumerate(grid):
            for j, block in enumerate(row):
                if tuple(block.shape) != shape:
                    raise ShapeMismatchError(
                        f"All blocks must have shape {shape}; block ({i}, {j}) "
                        f"has shape {tuple(block.shape)}"
                    )
        return cls.from_size(grid, shape[0], tol=tol)

    @property
    def shape(self) -> tuple[int, int]:
        return self.partition.shape

    @property
    def ndim(self) -> int:
        return 2

    @property
    def grid_shape(self) -> tuple[int, int]:
        return self.partition.grid_shape

    @property
    def is_strided(self) -> bool:
        """Whether all blocks share one size, enabling the strided multiply"""
        return isinstance(self.partition, UniformPartition)

    def __len__(self) -> int:
        return self.shape[0]

    def to_dense(self) -> np.ndarray:
        """Materialize the full operator as a dense ``numpy`` array"""
        result = np.zeros(self.shape, dtype=self.dtype)
        for i, row in enumerate(self.blocks):
            rows = self.partition.row_slice(i)
            for j, block in enumerate(row):
                block.materialize_into(result[rows, self.partition.col_slice(j)])
        return result

    def __array__(self, dtype: Any = None, copy: Any = None) -> np.ndarray:
        del copy
        return self.to_dense() if dtype is None else self.to_dense().astype(dtype)

    def __getitem__(self, index: tuple[int, int]) -> Any:
        if not isinstance(index, tuple) or len(index) != 2:
            raise TypeError(
                "A BlockFactorization only supports scalar element access B[i, j]"
            )
        i, j = (operator.index(k) for k in index)
        m, n = self.shape
        if not (-m <= i < m and -n <= j < n):
            raise IndexError(
                f"Index ({i}, {j}) is out of bounds for an operator of shape "
                f"{self.shape}"
            )
        bi, bj, ri, rj = self.partition.locate(i % m, j % n)
        return self.blocks[bi][bj].element(ri, rj)

    def block(self, i: int, j: int) -> Block:
        """The block in block row ``i`` and block column ``j``"""
        return self.blocks[i][j]

    def diagonal(self) -> np.ndarray:
        """The diagonal of a square operator"""
        if self.shape[0] != self.shape[1]:
            raise ShapeMismatchError(
                f"Only square operators have a diagonal; shape is {self.shape}"
            )
        if self.partition.row_bounds == self.partition.col_bounds:
            return np.concatenate(
                [self.blocks[i][i].diagonal() for i in range(self.grid_shape[0])]
            )
        result = np.empty(self.shape[0], dtype=self.dtype)
        for k in range(self.shape[0]):
            result[k] = self[k, k]
        return result

    def transpose(self) -> BlockFactorization:
        R, C = self.grid_shape
        blocks = tuple(
            tuple(self.blocks[i][j].transpose() for i in range(R)) for j in range(C)
        )
        return BlockFactorization(blocks, self.partition.transpose(), tol=self.tol)

    @property
    def T(self) -> BlockFactorization:
        return self.transpose()

    def apply(
        self,
        y: np.ndarray,
        x: Array,
        alpha: Any = 1.0,
        beta: Any = 0.0,
        *,
        workers: int | None = None,
    ) -> np.ndarray:
        """Compute ``y = alpha * (self @ x) + beta * y`` in place

        See :func:`covblocks.block.apply` for the details.
        """
        return engine.apply(y, self, x, alpha, beta, workers=workers)

    def __matmul__(self, other: Any) -> np.ndarray:
        x = as_numpy(other)
        dtype = _output_dtype(self.dtype, x.dtype)
        if x.ndim == 1:
            y = np.zeros(self.shape[0], dtype=dtype)
            return self.apply(y, x)
        if x.ndim == 2:
            y = np.zeros((self.shape[0], x.shape[1]), dtype=dtype)
            column = np.empty(self.shape[0], dtype=dtype)
            for k in range(x.shape[1]):
                y[:, k] = self.apply(column, np.ascontiguousarray(x[:, k]))
            return y
        raise ValueError(
            f"Can only multiply by 1- or 2-dimensional arrays; got ndim={x.ndim}"
        )

    def solve(
        self, b: Array, *, tol: float | None = None, maxiter: int | None = None
    ) -> np.ndarray:
        """Solve ``self @ x = b`` with conjugate gradients

        See :func:`covblocks.block.solve`.
        """
        return solve_operator(self, b, tol=tol, maxiter=maxiter)

    def solve_into(
        self,
        x: np.ndarray,
        b: Array,
        *,
        tol: float | None = None,
        maxiter: int | None = None,
    ) -> np.ndarray:
        """Solve ``self @ x = b`` in place, using ``x`` as the initial guess"""
        return solve_operator_into(x, self, b, tol=tol, maxiter=maxiter)

    def as_linear_operator(self, *, workers: int | None = None) -> LinearOperator:
        """Wrap this operator as a ``scipy.sparse.linalg.LinearOperator``"""
        dtype = _output_dtype(self.dtype)

        def matvec(x: np.ndarray) -> np.ndarray:
            x = np.ascontiguousarray(np.ravel(x))
            y = np.zeros(self.shape[0], dtype=_output_dtype(dtype, x.dtype))
            return self.apply(y, x, workers=workers)

        def rmatvec(x: np.ndarray) -> np.ndarray:
            x = np.ascontiguousarray(np.ravel(x))
            y = np.zeros(self.shape[1], dtype=_output_dtype(dtype, x.dtype))
            return self.T.apply(y, np.conj(x), workers=workers).conj()

        return LinearOperator(self.shape, matvec=matvec, rmatvec=rmatvec, dtype=dtype)


def _output_dtype(*dtypes: Any) -> np.dtype:
    # Integer operands promote to the default float type
    return np.result_type(*dtypes, 1.0)


def _as_grid(blocks: Any) -> BlockGrid:
    if isinstance(blocks, np.ndarray) and blocks.dtype == object:
        if blocks.ndim != 2:
            raise ShapeMismatchError(
                f"A block grid must be 2-dimensional; got ndim={blocks.ndim}"
            )
        rows = [list(blocks[i]) for i in range(blocks.shape[0])]
    else:
        rows = [list(row) for row in blocks]
    if len(rows) == 0 or len(rows[0]) == 0:
        raise EmptyOperatorError("A block grid needs at least one block")
    ncols = len(rows[0])
    if any(len(row) != ncols for row in rows):
        raise ShapeMismatchError("All block rows must have the same number of blocks")
    return tuple(tuple(as_block(b) for b in row) for row in rows)
