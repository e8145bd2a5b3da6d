"""
CuPy backend implementation for GPU solving.
"""

from typing import Any, Optional

import numpy as np
import scipy.sparse as sp
import scipy.sparse.linalg as spla

try:
    import cupy as cp
    import cupyx.scipy.sparse as cpsp
    CUPY_AVAILABLE = True
except ImportError:
    CUPY_AVAILABLE = False

from .base import ArrayBackend
from ..errors import BackendError


class CuPyBackend(ArrayBackend):
    """
    CuPy-based GPU backend.

    Vectors are CuPy arrays, matrices are ``cupyx.scipy.sparse`` CSR matrices.
    Scalars returned by ``norm`` and ``inner_product`` are transferred to the
    host so the solvers can branch on them.
    """

    name = "cupy"
    is_host = False

    def __init__(self, dtype: Any = np.float64, device_id: Optional[int] = None):
        if not CUPY_AVAILABLE:
            raise BackendError("CuPy is not available. Install with: pip install cupy")
        super().__init__(dtype, device_id)
        self.xp = cp

        if device_id is not None:
            cp.cuda.Device(device_id).use()

    def _allocate(self, n: int) -> Any:
        return cp.zeros(n, dtype=self.dtype)

    def copy_vector(self, v: Any) -> Any:
        if isinstance(v, cp.ndarray):
            return v.astype(self.dtype, copy=True).ravel()
        return cp.asarray(np.asarray(v, dtype=self.dtype)).ravel()

    def copy_matrix(self, A: Any) -> Any:
        """Convert a SciPy sparse matrix to CuPy CSR."""
        if isinstance(A, (cpsp.csr_matrix, cpsp.csc_matrix)):
            return A.tocsr().astype(self.dtype)
        A_csr = sp.csr_matrix(A)
        data = cp.asarray(A_csr.data.astype(self.dtype))
        indices = cp.asarray(A_csr.indices)
        indptr = cp.asarray(A_csr.indptr)
        return cpsp.csr_matrix((data, indices, indptr), shape=A_csr.shape)

    def to_host(self, v: Any) -> np.ndarray:
        return cp.asnumpy(v)

    def direct_solver(self, A: Any):
        # Coarse levels are small: factorize and solve on the host
        solve = spla.factorized(sp.csc_matrix(A))

        def apply(rhs, x):
            x[...] = cp.asarray(solve(cp.asnumpy(rhs)))

        return apply
