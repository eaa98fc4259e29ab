"""
The exceptions raised by ``covblocks``. Everything related to shapes and
partitions is raised eagerly, before any work is done, and derives from
``ValueError``. :class:`ConvergenceError` is the only error that can show up
after an expensive computation has already run.
"""

from __future__ import annotations

__all__ = [
    "CovBlocksError",
    "InvalidPartitionError",
    "ShapeMismatchError",
    "DimensionMismatchError",
    "EmptyOperatorError",
    "ConvergenceError",
]


class CovBlocksError(Exception):
    """Base class for all errors raised by ``covblocks``"""


class InvalidPartitionError(CovBlocksError, ValueError):
    """The boundaries of a block partition are not strictly increasing"""


class ShapeMismatchError(CovBlocksError, ValueError):
    """A block does not have the shape implied by its partition"""


class DimensionMismatchError(CovBlocksError, ValueError):
    """A vector does not have the length implied by the operator shape

    Args:
        name: The name of the offending argument.
        got: The length of the argument.
        expected: The length required by the operator.
    """

    def __init__(self, name: str, got: int, expected: int):
        self.name = name
        self.got = got
        self.expected = expected
        super().__init__(
            f"Dimension mismatch: len({name}) = {got} but the operator "
            f"requires {expected}"
        )


class EmptyOperatorError(CovBlocksError, ValueError):
    """A block grid with zero block rows or zero block columns"""


class ConvergenceError(CovBlocksError, RuntimeError):
    """An iterative solve ran out of iterations before reaching tolerance

    Args:
        residual: The norm of the residual at the last iteration.
        iterations: The number of iterations that were run.
        tol: The requested tolerance on the residual norm.
    """

    def __init__(self, residual: float, iterations: int, tol: float):
        self.residual = residual
        self.iterations = iterations
        self.tol = tol
        super().__init__(
            f"Conjugate gradient did not converge after {iterations} "
            f"iterations: residual norm {residual:.3e} > tol = {tol:.3e}"
        )
