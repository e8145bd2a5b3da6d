"""Shared fixtures for the krylov_engine tests."""

import numpy as np
import pytest
import scipy.sparse as sp

from krylov_engine import SciPyBackend, poisson_2d


@pytest.fixture
def backend():
    return SciPyBackend()


@pytest.fixture
def poisson():
    """2D Poisson matrix on an 8x8 grid."""
    return poisson_2d(8, 8)


@pytest.fixture
def nonsymmetric():
    """Convection-diffusion matrix: Poisson plus a skew-symmetric convection term."""
    A = poisson_2d(10, 10)
    n = A.shape[0]
    return sp.csr_matrix(A + sp.diags([0.5, -0.5], [1, -1], shape=(n, n)))


@pytest.fixture
def spd_matrix():
    """Random dense symmetric positive definite matrix stored as CSR."""
    rng = np.random.default_rng(42)
    n = 20
    M = rng.standard_normal((n, n))
    return sp.csr_matrix(M @ M.T + n * np.eye(n))
