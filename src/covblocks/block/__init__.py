"""
The ``block`` subpackage implements :class:`BlockFactorization`, a matrix-free
linear operator assembled from a grid of blocks. Blocks can be dense matrices
or cheaper structured representations (see :class:`Block`), and the grid is
described by a :class:`Partition`. When all blocks share one size (a
:class:`UniformPartition`), multiplication reshapes vectors into block views
and runs block rows in parallel with one scratch buffer per worker. Linear
solves are done with conjugate gradients through :func:`solve`.

.. code-block:: python

    >>> import numpy as np
    >>> from covblocks.block import BlockFactorization
    >>> eye, zero = np.eye(2), np.zeros((2, 2))
    >>> B = BlockFactorization.from_blocks([[eye, zero], [zero, eye]])
    >>> B @ np.array([1.0, 2.0, 3.0, 4.0])
    array([1., 2., 3., 4.])
"""

__all__ = [
    "Block",
    "DenseBlock",
    "DiagonalBlock",
    "ScaledIdentityBlock",
    "LowRankBlock",
    "ZeroBlock",
    "as_block",
    "Partition",
    "UniformPartition",
    "IrregularPartition",
    "BlockFactorization",
    "apply",
    "materialize_into",
    "CGResult",
    "conjugate_gradient",
    "solve",
    "solve_into",
]

from covblocks.block.blocks import (
    Block,
    DenseBlock,
    DiagonalBlock,
    LowRankBlock,
    ScaledIdentityBlock,
    ZeroBlock,
    as_block,
)
from covblocks.block.engine import apply, materialize_into
from covblocks.block.factorization import BlockFactorization
from covblocks.block.partition import IrregularPartition, Partition, UniformPartition
from covblocks.block.solve import CGResult, conjugate_gradient, solve, solve_into
