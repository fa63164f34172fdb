"""B-spline bases on parametric boxes.

Provides:
- KnotVector: non-decreasing knot sequences.
- BSplineBasis: univariate B-splines with Cox-de Boor evaluation.
- TensorBSplineBasis: tensor products of univariate bases.
"""

from .bspline import BSplineBasis
from .knots import KnotVector
from .tensor import TensorBSplineBasis

__all__ = [
    "BSplineBasis",
    "KnotVector",
    "TensorBSplineBasis",
]
