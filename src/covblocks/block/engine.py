"""
The multiplication engine behind :class:`covblocks.block.BlockFactorization`.

There are two algorithms and the partition type picks between them:

1. For an :class:`covblocks.block.IrregularPartition`, ``x`` and ``y`` are cut
   into views at the block boundaries and every block accumulates its own
   contribution with :func:`covblocks.block.Block.apply_accumulate`. Blocks
   may allocate internally on this path.

2. For a :class:`covblocks.block.UniformPartition`, ``x`` and ``y`` are
   reshaped into ``(n_blocks, block_size)`` views and every block is
   materialized into a dense scratch buffer with
   :func:`covblocks.block.Block.materialize_into` before a BLAS ``gemv``
   accumulates it. Block rows are split between workers; each worker gets its
   own scratch buffer and only writes to its own rows of ``y``, so no locking
   is needed and the result does not depend on the number of workers.
"""

from __future__ import annotations

__all__ = ["apply", "general_apply", "strided_apply", "materialize_into"]

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Any

import numpy as np

from covblocks import config
from covblocks.block.blocks import Block, gemv_accumulate
from covblocks.block.partition import Partition, UniformPartition
from covblocks.errors import DimensionMismatchError
from covblocks.helpers import Array, as_numpy

if TYPE_CHECKING:
    from covblocks.block.factorization import BlockFactorization, BlockGrid

logger = logging.getLogger(__name__)


def apply(
    y: np.ndarray,
    B: BlockFactorization,
    x: Array,
    alpha: Any = 1.0,
    beta: Any = 0.0,
    *,
    workers: int | None = None,
) -> np.ndarray:
    """Compute ``y = alpha * (B @ x) + beta * y`` in place and return ``y``

    Following BLAS, ``beta == 0`` overwrites ``y`` without reading it, and
    ``alpha == 0`` still scales ``y`` by ``beta``.

    Args:
        y: The output; a writeable 1-D ``numpy`` array of length
            ``B.shape[0]``.
        B: The block operator.
        x: The input; a 1-D array of length ``B.shape[1]``.
        alpha: The scale applied to ``B @ x``.
        beta: The scale applied to the previous contents of ``y``.
        workers: The number of threads used by the strided algorithm.
            Defaults to ``covblocks.config.num_workers``. Ignored for
            irregular partitions.

    Raises:
        DimensionMismatchError: If ``x`` or ``y`` has the wrong length.
    """
    if not isinstance(y, np.ndarray):
        raise TypeError(
            f"The output must be a writeable numpy array; got {type(y).__name__}"
        )
    x = as_numpy(x)
    if x.ndim != 1 or y.ndim != 1:
        raise ValueError(
            f"apply expects 1-dimensional x and y; got ndim={x.ndim} and ndim={y.ndim}"
        )
    m, n = B.shape
    if x.shape[0] != n:
        raise DimensionMismatchError("x", x.shape[0], n)
    if y.shape[0] != m:
        raise DimensionMismatchError("y", y.shape[0], m)

    dtype = np.result_type(B.dtype, x.dtype, alpha, beta)
    if not np.can_cast(dtype, y.dtype, casting="same_kind"):
        raise TypeError(
            f"Cannot accumulate values of type {dtype} into y of type {y.dtype}; "
            "note that alpha and beta take part in the promotion"
        )
    x = np.asarray(x, dtype=y.dtype)

    partition = B.partition
    if isinstance(partition, UniformPartition):
        return strided_apply(y, B.blocks, partition, x, alpha, beta, workers=workers)
    return general_apply(y, B.blocks, partition, x, alpha, beta)


def general_apply(
    y: np.ndarray,
    blocks: BlockGrid,
    partition: Partition,
    x: np.ndarray,
    alpha: Any = 1.0,
    beta: Any = 0.0,
) -> np.ndarray:
    """The block-by-block multiplication used for irregular partitions"""
    R, C = partition.grid_shape
    xs = [x[partition.col_slice(j)] for j in range(C)]
    for i in range(R):
        yi = y[partition.row_slice(i)]
        _scale(yi, beta)
        row = blocks[i]
        for j in range(C):
            row[j].apply_accumulate(yi, xs[j], alpha)
    return y


def strided_apply(
    y: np.ndarray,
    blocks: BlockGrid,
    partition: UniformPartition,
    x: np.ndarray,
    alpha: Any = 1.0,
    beta: Any = 0.0,
    *,
    workers: int | None = None,
) -> np.ndarray:
    """The reshaped, multithreaded multiplication used for uniform partitions

    Args:
        workers: The number of scratch buffers and threads. It is capped at the
            number of block rows. With one worker, everything runs in the
            calling thread.
    """
    workers = config.num_workers if workers is None else int(workers)
    if workers < 1:
        raise ValueError(f"'workers' must be a positive integer; got {workers}")

    R, C = partition.grid_shape
    dr, dc = partition.block_size
    target = y if y.flags.c_contiguous else np.ascontiguousarray(y)
    Y = target.reshape(R, dr)
    X = np.ascontiguousarray(x).reshape(C, dc)

    workers = min(workers, R)
    buffers = [np.empty((dr, dc), dtype=y.dtype) for _ in range(workers)]
    chunks = _chunks(R, workers)
    if workers == 1:
        _strided_rows(Y, X, blocks, chunks[0], buffers[0], alpha, beta)
    else:
        logger.debug("strided multiply of %d block rows on %d workers", R, workers)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(_strided_rows, Y, X, blocks, rows, scratch, alpha, beta)
                for rows, scratch in zip(chunks, buffers)
            ]
            for future in futures:
                future.result()

    if target is not y:
        y[...] = target
    return y


def materialize_into(out: np.ndarray, blocks: BlockGrid, i: int, j: int) -> np.ndarray:
    """Write the dense value of ``blocks[i][j]`` into ``out`` and return it"""
    block: Block = blocks[i][j]
    block.materialize_into(out)
    return out


def _strided_rows(
    Y: np.ndarray,
    X: np.ndarray,
    blocks: BlockGrid,
    rows: range,
    scratch: np.ndarray,
    alpha: Any,
    beta: Any,
) -> None:
    ncols = X.shape[0]
    for i in rows:
        yi = Y[i]
        _scale(yi, beta)
        for j in range(ncols):
            materialize_into(scratch, blocks, i, j)
            gemv_accumulate(yi, scratch, X[j], alpha)


def _scale(y: np.ndarray, beta: Any) -> None:
    if beta == 0:
        y.fill(0)
    elif beta != 1:
        y *= beta


def _chunks(n: int, parts: int) -> list[range]:
    size, extra = divmod(n, parts)
    bounds = [0]
    for k in range(parts):
        bounds.append(bounds[-1] + size + (1 if k < extra else 0))
    return [range(a, b) for a, b in zip(bounds[:-1], bounds[1:])]
