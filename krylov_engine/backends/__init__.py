"""
Backend implementations for vector storage and linear-algebra primitives.
"""

from .base import ArrayBackend, Backend, BackendRegistry
from .cupy_backend import CUPY_AVAILABLE, CuPyBackend
from .scipy_backend import SciPyBackend

BackendRegistry.register("scipy", SciPyBackend)
BackendRegistry.register("cupy", CuPyBackend)

__all__ = [
    "ArrayBackend",
    "Backend",
    "BackendRegistry",
    "CUPY_AVAILABLE",
    "CuPyBackend",
    "SciPyBackend",
]
