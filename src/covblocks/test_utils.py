from typing import Any

import numpy as np

from covblocks.helpers import Array

_TOLERANCES = {
    np.dtype(np.float32): 5e-4,
    np.dtype(np.float64): 5e-7,
    np.dtype(np.complex64): 5e-4,
    np.dtype(np.complex128): 5e-7,
}


def _default_tolerance(*values: Any) -> float:
    dtypes = [np.asarray(v).dtype for v in values]
    return max(_TOLERANCES.get(dtype, 5e-7) for dtype in dtypes)


def assert_allclose(calculated: Array, expected: Array, *args: Any, **kwargs: Any):
    tol = _default_tolerance(calculated, expected)
    kwargs["atol"] = kwargs.get("atol", tol)
    kwargs["rtol"] = kwargs.get("rtol", tol)
    np.testing.assert_allclose(
        np.asarray(calculated), np.asarray(expected), *args, **kwargs
    )


def assert_blocks_allclose(calculated: Any, expected: Any, *args: Any, **kwargs: Any):
    """Compare two block operators (or anything with ``to_dense``) elementwise"""
    calculated = calculated.to_dense() if hasattr(calculated, "to_dense") else calculated
    expected = expected.to_dense() if hasattr(expected, "to_dense") else expected
    assert np.shape(calculated) == np.shape(expected)
    assert_allclose(calculated, expected, *args, **kwargs)
