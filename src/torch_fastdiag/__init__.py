"""Matrix-free preconditioners for tensor-product isogeometric discretizations."""

from .core import *  # noqa: F401,F403
from .core import __all__

__version__ = "0.1.0"
