"""
Kernels are built by combining the covariance functions in this subpackage
with ``+``, ``*`` and integer powers, by the separable constructions in
:mod:`covblocks.kernels.separable`, and by the input and output transforms in
:mod:`covblocks.transforms`. Scalar kernels produce dense Gramians, while the
matrix-valued kernels in :mod:`covblocks.kernels.multi` produce block
operators (see :func:`covblocks.gramian.gramian`).
"""

__all__ = [
    "Distance",
    "L1Distance",
    "L2Distance",
    "Kernel",
    "Custom",
    "Sum",
    "Product",
    "Power",
    "Constant",
    "DotProduct",
    "SeparableProduct",
    "SeparableSum",
    "separable",
    "separable_power",
    "Stationary",
    "Isotropic",
    "ExpSquared",
    "EQ",
    "RationalQuadratic",
    "Exp",
    "GammaExp",
    "Delta",
    "MaternP",
    "Matern32",
    "Matern52",
    "Cosine",
    "Cauchy",
    "InverseMultiQuadratic",
    "spectral",
    "spectral_mixture",
    "pseudo_voigt",
    "MultiKernel",
    "Separable",
    "Gradient",
]

from covblocks.kernels.base import (
    Constant,
    Custom,
    DotProduct,
    Kernel,
    Power,
    Product,
    Sum,
)
from covblocks.kernels.distance import Distance, L1Distance, L2Distance
from covblocks.kernels.multi import Gradient, MultiKernel, Separable
from covblocks.kernels.separable import (
    SeparableProduct,
    SeparableSum,
    separable,
    separable_power,
)
from covblocks.kernels.stationary import (
    EQ,
    Cauchy,
    Cosine,
    Delta,
    Exp,
    ExpSquared,
    GammaExp,
    InverseMultiQuadratic,
    Isotropic,
    Matern32,
    Matern52,
    MaternP,
    RationalQuadratic,
    Stationary,
    pseudo_voigt,
    spectral,
    spectral_mixture,
)
