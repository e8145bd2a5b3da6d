"""
SciPy backend implementation.
"""

from typing import Any, Optional

import numpy as np
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from .base import ArrayBackend
from ..errors import ConfigurationError


class SciPyBackend(ArrayBackend):
    """
    NumPy/SciPy CPU backend.

    Vectors are one-dimensional NumPy arrays, matrices are SciPy CSR matrices.
    """

    name = "scipy"
    is_host = True
    xp = np

    def __init__(self, dtype: Any = np.float64, device_id: Optional[int] = None):
        super().__init__(dtype, device_id)
        if device_id is not None:
            raise ConfigurationError("SciPy backend does not support device_id (CPU only)")

    def _allocate(self, n: int) -> np.ndarray:
        return np.zeros(n, dtype=self.dtype)

    def copy_vector(self, v: Any) -> np.ndarray:
        return np.array(v, dtype=self.dtype).ravel()

    def copy_matrix(self, A: Any) -> sp.csr_matrix:
        if not sp.issparse(A):
            A = sp.csr_matrix(A)
        return sp.csr_matrix(A, dtype=self.dtype)

    def to_host(self, v: Any) -> np.ndarray:
        return np.asarray(v)

    def direct_solver(self, A: Any):
        # SuperLU prefers CSC format
        solve = spla.factorized(sp.csc_matrix(A))

        def apply(rhs, x):
            x[...] = solve(rhs)

        return apply
