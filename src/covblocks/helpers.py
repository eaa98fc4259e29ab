from __future__ import annotations

__all__ = ["JAXArray", "Array", "as_numpy"]

from typing import Any, Union

import jax
import numpy as np

JAXArray = jax.Array
Array = Union[np.ndarray, JAXArray]


def as_numpy(value: Any, dtype: Any = None) -> np.ndarray:
    """Convert a ``jax`` or ``numpy`` array (or scalar) into a ``numpy`` array

    The blocks of a :class:`covblocks.block.BlockFactorization` are multiplied
    in place, so anything coming out of ``jax`` has to be brought back to host
    memory as a (writeable) ``numpy`` array first.
    """
    return np.asarray(value, dtype=dtype)
