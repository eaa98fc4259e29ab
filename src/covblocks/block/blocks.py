"""
Blocks are the entries of a :class:`covblocks.block.BlockFactorization`. Any
object implementing the :class:`Block` interface can be stored in a block grid
and the multiplication engine only ever talks to blocks through that
interface. The structured blocks in this module override
:func:`Block.apply_accumulate` and :func:`Block.materialize_into` so that
neither multiplication path has to expand them into a dense temporary.
"""

from __future__ import annotations

__all__ = [
    "Block",
    "DenseBlock",
    "DiagonalBlock",
    "ScaledIdentityBlock",
    "LowRankBlock",
    "ZeroBlock",
    "as_block",
    "gemv_accumulate",
]

from abc import abstractmethod
from typing import Any

import equinox as eqx
import numpy as np
from scipy.linalg import blas

from covblocks.helpers import Array, as_numpy


def gemv_accumulate(y: np.ndarray, a: np.ndarray, x: np.ndarray, alpha: Any) -> None:
    """Compute ``y += alpha * a @ x`` in place

    For floating point inputs of a single dtype this calls the BLAS ``gemv``
    routine directly and writes into ``y`` without allocating a temporary.
    ``a`` is passed as its transpose when it is C-contiguous so that ``f2py``
    does not need to copy it into Fortran order.
    """
    dtype = y.dtype
    if (
        dtype.char in "fdFD"
        and a.dtype == dtype
        and x.dtype == dtype
        and y.flags.writeable
        and (a.flags.c_contiguous or a.flags.f_contiguous)
    ):
        (gemv,) = blas.get_blas_funcs(("gemv",), (a, x, y))
        if a.flags.c_contiguous:
            out = gemv(alpha, a.T, x, beta=1.0, y=y, trans=1, overwrite_y=1)
        else:
            out = gemv(alpha, a, x, beta=1.0, y=y, overwrite_y=1)
        if out is not y:
            y[...] = out
    else:
        y += alpha * (a @ x)


class Block(eqx.Module):
    """The interface that every entry of a block grid implements

    Subclasses must provide :attr:`Block.shape` and :func:`Block.to_dense`.
    Everything else has a default implementation in terms of those two, but
    the defaults go through a dense copy of the block, so structured blocks
    should override :func:`Block.apply_accumulate` and
    :func:`Block.materialize_into`.
    """

    @property
    @abstractmethod
    def shape(self) -> tuple[int, int]:
        raise NotImplementedError

    @abstractmethod
    def to_dense(self) -> np.ndarray:
        """A freshly allocated dense ``numpy`` representation of this block"""
        raise NotImplementedError

    @property
    def dtype(self) -> np.dtype:
        return self.to_dense().dtype

    @property
    def ndim(self) -> int:
        return 2

    def apply_accumulate(self, y: np.ndarray, x: np.ndarray, alpha: Any = 1.0) -> None:
        """Compute ``y += alpha * block @ x`` in place

        ``y`` and ``x`` are 1-D views into the operands of the full operator.
        """
        gemv_accumulate(y, self.to_dense(), x, alpha)

    def materialize_into(self, out: np.ndarray) -> None:
        """Write the exact dense representation of this block into ``out``

        ``out`` is a preallocated scratch buffer of shape :attr:`Block.shape`
        whose previous contents must be ignored.
        """
        out[...] = self.to_dense()

    def element(self, r: int, c: int) -> Any:
        return self.to_dense()[r, c]

    def diagonal(self) -> np.ndarray:
        return np.diagonal(self.to_dense()).copy()

    def transpose(self) -> Block:
        return DenseBlock(self.to_dense().T)

    @property
    def T(self) -> Block:
        return self.transpose()

    def __matmul__(self, other: Any) -> Any:
        x = as_numpy(other)
        dtype = np.result_type(self.dtype, x.dtype, 1.0)
        y = np.zeros((self.shape[0],) + x.shape[1:], dtype=dtype)
        if x.ndim == 1:
            self.apply_accumulate(y, x)
        else:
            for k in range(x.shape[1]):
                self.apply_accumulate(y[:, k], x[:, k])
        return y


class DenseBlock(Block):
    """A block stored as an explicit dense matrix

    Args:
        value: A 2-D array. ``jax`` arrays are copied to host memory.
    """

    value: np.ndarray

    def __init__(self, value: Array):
        value = as_numpy(value)
        if value.ndim != 2:
            raise ValueError(
                f"A dense block must be 2-dimensional; got ndim={value.ndim}"
            )
        self.value = value

    @property
    def shape(self) -> tuple[int, int]:
        return self.value.shape  # type: ignore

    @property
    def dtype(self) -> np.dtype:
        return self.value.dtype

    def to_dense(self) -> np.ndarray:
        return self.value.copy()

    def apply_accumulate(self, y: np.ndarray, x: np.ndarray, alpha: Any = 1.0) -> None:
        gemv_accumulate(y, self.value, x, alpha)

    def materialize_into(self, out: np.ndarray) -> None:
        out[...] = self.value

    def element(self, r: int, c: int) -> Any:
        return self.value[r, c]

    def diagonal(self) -> np.ndarray:
        return np.diagonal(self.value).copy()

    def transpose(self) -> DenseBlock:
        return DenseBlock(self.value.T)


class DiagonalBlock(Block):
    """A square block with only diagonal entries

    Args:
        diag: The 1-D array of diagonal entries.
    """

    diag: np.ndarray

    def __init__(self, diag: Array):
        diag = as_numpy(diag)
        if diag.ndim != 1:
            raise ValueError(
                f"The diagonal of a block must be 1-dimensional; got ndim={diag.ndim}"
            )
        self.diag = diag

    @property
    def shape(self) -> tuple[int, int]:
        return len(self.diag), len(self.diag)

    @property
    def dtype(self) -> np.dtype:
        return self.diag.dtype

    def to_dense(self) -> np.ndarray:
        return np.diag(self.diag)

    def apply_accumulate(self, y: np.ndarray, x: np.ndarray, alpha: Any = 1.0) -> None:
        y += alpha * self.diag * x

    def materialize_into(self, out: np.ndarray) -> None:
        out.fill(0)
        np.fill_diagonal(out, self.diag)

    def element(self, r: int, c: int) -> Any:
        return self.diag[r] if r == c else self.diag.dtype.type(0)

    def diagonal(self) -> np.ndarray:
        return self.diag.copy()

    def transpose(self) -> DiagonalBlock:
        return self


class ScaledIdentityBlock(Block):
    """The block ``scale * I`` of size ``size``"""

    size: int = eqx.field(static=True)
    scale: Any = 1.0

    @property
    def shape(self) -> tuple[int, int]:
        return self.size, self.size

    @property
    def dtype(self) -> np.dtype:
        return np.result_type(self.scale, np.float64)

    def to_dense(self) -> np.ndarray:
        return self.scale * np.eye(self.size, dtype=self.dtype)

    def apply_accumulate(self, y: np.ndarray, x: np.ndarray, alpha: Any = 1.0) -> None:
        y += (alpha * self.scale) * x

    def materialize_into(self, out: np.ndarray) -> None:
        out.fill(0)
        np.fill_diagonal(out, self.scale)

    def element(self, r: int, c: int) -> Any:
        return self.dtype.type(self.scale if r == c else 0)

    def diagonal(self) -> np.ndarray:
        return np.full(self.size, self.scale, dtype=self.dtype)

    def transpose(self) -> ScaledIdentityBlock:
        return self


class LowRankBlock(Block):
    r"""A block with the structure of a Woodbury correction

    .. math::

        A = D + U\,C\,V^\mathrm{T}

    where :math:`D` is an optional diagonal, :math:`U` is ``(p, k)``,
    :math:`C` is ``(k, k)`` and :math:`V` is ``(q, k)``. Multiplication costs
    :math:`\mathcal{O}((p + q)\,k)` and materialization writes
    :math:`(U\,C)\,V^\mathrm{T}` straight into the output buffer.

    Args:
        U: The left factor.
        V: The right factor. Defaults to ``U`` for a symmetric block.
        C: The small middle factor. Defaults to the identity.
        diag: The diagonal of :math:`D`; only valid for square blocks.
    """

    U: np.ndarray
    V: np.ndarray
    C: np.ndarray | None
    diag: np.ndarray | None

    def __init__(
        self,
        U: Array,
        V: Array | None = None,
        C: Array | None = None,
        diag: Array | None = None,
    ):
        self.U = as_numpy(U)
        self.V = self.U if V is None else as_numpy(V)
        self.C = None if C is None else as_numpy(C)
        self.diag = None if diag is None else as_numpy(diag)

    def __check_init__(self) -> None:
        if self.U.ndim != 2 or self.V.ndim != 2:
            raise ValueError("The factors of a low rank block must be 2-dimensional")
        rank = self.U.shape[1]
        if self.V.shape[1] != rank:
            raise ValueError(
                f"Dimension mismatch: U has rank {rank} but V has rank {self.V.shape[1]}"
            )
        if self.C is not None and self.C.shape != (rank, rank):
            raise ValueError(
                f"Dimension mismatch: C must have shape {(rank, rank)}; "
                f"got {self.C.shape}"
            )
        if self.diag is not None and self.diag.shape != (self.U.shape[0],):
            raise ValueError(
                "A low rank block with a diagonal must be square and the diagonal "
                f"must have shape {(self.U.shape[0],)}; got {self.diag.shape}"
            )
        if self.diag is not None and self.U.shape[0] != self.V.shape[0]:
            raise ValueError("A low rank block with a diagonal must be square")

    @property
    def shape(self) -> tuple[int, int]:
        return self.U.shape[0], self.V.shape[0]

    @property
    def rank(self) -> int:
        return self.U.shape[1]

    @property
    def dtype(self) -> np.dtype:
        arrays = [a for a in (self.U, self.V, self.C, self.diag) if a is not None]
        return np.result_type(*arrays)

    def _left(self) -> np.ndarray:
        return self.U if self.C is None else self.U @ self.C

    def to_dense(self) -> np.ndarray:
        out = np.empty(self.shape, dtype=self.dtype)
        self.materialize_into(out)
        return out

    def apply_accumulate(self, y: np.ndarray, x: np.ndarray, alpha: Any = 1.0) -> None:
        z = self.V.T @ x
        if self.C is not None:
            z = self.C @ z
        gemv_accumulate(y, self.U, z, alpha)
        if self.diag is not None:
            y += alpha * self.diag * x

    def materialize_into(self, out: np.ndarray) -> None:
        np.matmul(self._left(), self.V.T, out=out)
        if self.diag is not None:
            out[np.diag_indices_from(out)] += self.diag

    def element(self, r: int, c: int) -> Any:
        value = self._left()[r] @ self.V[c]
        if self.diag is not None and r == c:
            value = value + self.diag[r]
        return value

    def diagonal(self) -> np.ndarray:
        value = np.einsum("ik,ik->i", self._left(), self.V)
        if self.diag is not None:
            value = value + self.diag
        return value

    def transpose(self) -> LowRankBlock:
        return LowRankBlock(
            self.V,
            V=self.U,
            C=None if self.C is None else self.C.T,
            diag=self.diag,
        )


class ZeroBlock(Block):
    """A block of zeros that takes no storage

    Args:
        shape: The ``(rows, cols)`` of the block.
        dtype: The scalar type the block reports.
    """

    block_shape: tuple[int, int] = eqx.field(static=True)
    block_dtype: Any = eqx.field(static=True)

    def __init__(self, shape: tuple[int, int], dtype: Any = np.float64):
        self.block_shape = (int(shape[0]), int(shape[1]))
        self.block_dtype = np.dtype(dtype)

    @property
    def shape(self) -> tuple[int, int]:
        return self.block_shape

    @property
    def dtype(self) -> np.dtype:
        return self.block_dtype

    def to_dense(self) -> np.ndarray:
        return np.zeros(self.block_shape, dtype=self.block_dtype)

    def apply_accumulate(self, y: np.ndarray, x: np.ndarray, alpha: Any = 1.0) -> None:
        del y, x, alpha

    def materialize_into(self, out: np.ndarray) -> None:
        out.fill(0)

    def element(self, r: int, c: int) -> Any:
        del r, c
        return self.block_dtype.type(0)

    def diagonal(self) -> np.ndarray:
        return np.zeros(min(self.block_shape), dtype=self.block_dtype)

    def transpose(self) -> ZeroBlock:
        return ZeroBlock(self.block_shape[::-1], self.block_dtype)


def as_block(value: Any) -> Block:
    """Wrap ``value`` as a :class:`Block` unless it already is one"""
    if isinstance(value, Block):
        return value
    return DenseBlock(value)
