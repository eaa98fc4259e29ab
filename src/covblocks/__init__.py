"""
``covblocks`` is a lightweight library for building covariance matrices out of
kernels and multiplying them without forming them densely. Kernels are built
from the pieces in the ``kernels`` subpackage and the ``transforms`` module,
evaluated on data with :func:`gramian`, and matrix-valued kernels produce
:class:`block.BlockFactorization` operators: grids of blocks that support
in-place ``y = alpha * B @ x + beta * y`` products and conjugate gradient
solves.
"""

__version__ = "0.1.0"
__author__ = "The covblocks developers"
__email__ = ""
__uri__ = ""
__license__ = "MIT"
__description__ = "Matrix-free block covariance operators built on jax kernels"

import logging

from covblocks import (
    block as block,
    config as config,
    errors as errors,
    kernels as kernels,
    transforms as transforms,
)
from covblocks.block import BlockFactorization as BlockFactorization
from covblocks.errors import (
    ConvergenceError as ConvergenceError,
    CovBlocksError as CovBlocksError,
    DimensionMismatchError as DimensionMismatchError,
    EmptyOperatorError as EmptyOperatorError,
    InvalidPartitionError as InvalidPartitionError,
    ShapeMismatchError as ShapeMismatchError,
)
from covblocks.gramian import gramian as gramian

logging.getLogger(__name__).addHandler(logging.NullHandler())
