"""
Relaxation methods.

A relaxation is built once for a host (SciPy) matrix and then applied on a
backend: ``apply_pre``/``apply_post`` perform one smoothing step
``x := x + M^{-1} (rhs - A x)`` inside a multigrid cycle, ``apply`` computes
``x := M^{-1} rhs`` when the relaxation is used as a preconditioner on its
own (see ``RelaxationPreconditioner``).

Gauss-Seidel and ILU(0) run on the host through pyamg and SciPy and are only
available with the SciPy backend; the others are written against backend
primitives.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

import numpy as np
import scipy.sparse as sp
import scipy.sparse.linalg as spla
from pyamg.graph import vertex_coloring
from pyamg.relaxation.relaxation import gauss_seidel

from .backends import Backend, BackendRegistry
from .errors import BackendError, ConfigurationError
from .logger import get_logger
from .params import Params, choice, params_from

logger = get_logger(__name__)


class RelaxationType(str, Enum):
    GAUSS_SEIDEL = "gauss_seidel"
    MULTICOLOR_GAUSS_SEIDEL = "multicolor_gauss_seidel"
    ILU0 = "ilu0"
    DAMPED_JACOBI = "damped_jacobi"
    SPAI0 = "spai0"
    CHEBYSHEV = "chebyshev"


def _nonzero_diagonal(A: sp.spmatrix) -> np.ndarray:
    D = A.diagonal()
    if np.any(D == 0):
        raise ConfigurationError("Zero diagonal entry, cannot build relaxation.")
    return D


class Relaxation(ABC):
    """
    Base class for relaxation methods.

    Parameters
    ----------
    A : scipy.sparse matrix
        Matrix the relaxation is built for.
    params : mapping or Params, optional
        Relaxation parameters.
    backend : Backend or str, optional
        Backend the relaxation is applied on.
    """

    #: Whether the relaxation needs the SciPy backend
    host_only = False

    @dataclass(frozen=True)
    class Params:
        pass

    def __init__(self, A: Any, params: Any = None, backend: Union[None, str, Backend] = None):
        self.backend = BackendRegistry.resolve(backend)
        if self.host_only and not self.backend.is_host:
            raise BackendError(
                f"{type(self).__name__} is not supported by the {self.backend.name} backend"
            )
        self.prm = params_from(type(self).Params, params)
        self.n = A.shape[0]

    @abstractmethod
    def apply_pre(self, A, rhs, x, tmp) -> None:
        """Pre-smoothing step; ``tmp`` is scratch space of size n."""
        pass

    def apply_post(self, A, rhs, x, tmp) -> None:
        """Post-smoothing step; ``tmp`` is scratch space of size n."""
        self.apply_pre(A, rhs, x, tmp)

    @abstractmethod
    def apply(self, A, rhs, x) -> None:
        """Approximate solve ``x := M^{-1} rhs``."""
        pass


class _DiagonalRelaxation(Relaxation):
    """Relaxation whose approximate inverse is a diagonal matrix ``dia``."""

    dia: Any = None

    def apply_pre(self, A, rhs, x, tmp):
        self.backend.residual(rhs, A, x, tmp)
        self.backend.vmul(1, self.dia, tmp, 1, x)

    def apply(self, A, rhs, x):
        self.backend.vmul(1, self.dia, rhs, 0, x)


class DampedJacobi(_DiagonalRelaxation):
    """Damped Jacobi: ``M^{-1} = damping * D^{-1}``."""

    @dataclass(frozen=True)
    class Params:
        damping: float = 0.72

    def __init__(self, A, params=None, backend=None):
        super().__init__(A, params, backend)
        D = _nonzero_diagonal(A)
        self.dia = self.backend.copy_vector(self.prm.damping / D)


class SPAI0(_DiagonalRelaxation):
    """
    Sparse approximate inverse of zeroth order.

    The diagonal ``m_i = a_ii / sum_j a_ij^2`` minimizes ``||I - M A||_F``
    over diagonal matrices.
    """

    def __init__(self, A, params=None, backend=None):
        super().__init__(A, params, backend)
        D = _nonzero_diagonal(A)
        row_norms = np.asarray(abs(A).power(2).sum(axis=1)).ravel()
        self.dia = self.backend.copy_vector(D / row_norms)


class GaussSeidel(Relaxation):
    """
    Gauss-Seidel relaxation.

    Forward sweep before the coarse correction, backward sweep after it, and
    a symmetric sweep when used as a preconditioner.
    """

    host_only = True

    def apply_pre(self, A, rhs, x, tmp):
        gauss_seidel(A, x, rhs, iterations=1, sweep="forward")

    def apply_post(self, A, rhs, x, tmp):
        gauss_seidel(A, x, rhs, iterations=1, sweep="backward")

    def apply(self, A, rhs, x):
        x.fill(0)
        gauss_seidel(A, x, rhs, iterations=1, sweep="symmetric")


class MulticolorGaussSeidel(Relaxation):
    """
    Multicolor Gauss-Seidel relaxation.

    Unknowns are colored so that no two coupled unknowns share a color; all
    unknowns of one color are then updated at once with Jacobi-like vector
    operations. Colors are visited in ascending order on the pre-smoothing
    step and in descending order on the post-smoothing step.
    """

    def __init__(self, A, params=None, backend=None):
        super().__init__(A, params, backend)
        D = _nonzero_diagonal(A)

        # Adjacency graph of A without self loops
        G = sp.csr_matrix(abs(A) + abs(A.T))
        G.setdiag(0)
        G.eliminate_zeros()
        colors = np.asarray(vertex_coloring(G, method="MIS"))
        self.ncolors = int(colors.max()) + 1 if colors.size else 0
        logger.debug("Multicolor Gauss-Seidel: %d unknowns, %d colors", self.n, self.ncolors)

        dinv = 1.0 / D
        self.dia = [
            self.backend.copy_vector(np.where(colors == c, dinv, 0.0))
            for c in range(self.ncolors)
        ]
        self.tmp = self.backend.create_vector(self.n)

    def _sweep(self, A, rhs, x, tmp, order):
        for c in order:
            self.backend.residual(rhs, A, x, tmp)
            self.backend.vmul(1, self.dia[c], tmp, 1, x)

    def apply_pre(self, A, rhs, x, tmp):
        self._sweep(A, rhs, x, tmp, range(self.ncolors))

    def apply_post(self, A, rhs, x, tmp):
        self._sweep(A, rhs, x, tmp, reversed(range(self.ncolors)))

    def apply(self, A, rhs, x):
        self.backend.clear(x)
        self.apply_pre(A, rhs, x, self.tmp)
        self.apply_post(A, rhs, x, self.tmp)


def _ilu0_factors(A):
    """
    Return ``(L, U)`` with ``L`` unit lower triangular, ``U`` upper triangular
    and ``L + U - I`` sharing the sparsity pattern of ``A``.
    """
    LU = sp.csr_matrix(A, dtype=np.float64, copy=True)
    LU.sum_duplicates()
    LU.sort_indices()
    ptr, col, val = LU.indptr, LU.indices, LU.data
    n = LU.shape[0]
    diag = np.empty(n, dtype=np.intp)

    for i in range(n):
        start, end = ptr[i], ptr[i + 1]
        pos = {c: k for k, c in zip(range(start, end), col[start:end])}
        if i not in pos:
            raise ConfigurationError(f"Missing diagonal entry in row {i}, cannot build ILU(0)")
        for k in range(start, end):
            j = col[k]
            if j >= i:
                break
            val[k] /= val[diag[j]]
            # Updates outside the pattern of A are dropped
            for m in range(diag[j] + 1, ptr[j + 1]):
                t = pos.get(col[m])
                if t is not None:
                    val[t] -= val[k] * val[m]
        diag[i] = pos[i]
        if val[diag[i]] == 0:
            raise ConfigurationError(f"Zero pivot in row {i}, cannot build ILU(0)")

    L = (sp.tril(LU, k=-1) + sp.identity(n, format="csr")).tocsr()
    U = sp.triu(LU).tocsr()
    return L, U


class ILU0(Relaxation):
    """Incomplete LU factorization without fill-in."""

    host_only = True

    @dataclass(frozen=True)
    class Params:
        damping: float = 1.0

    def __init__(self, A, params=None, backend=None):
        super().__init__(A, params, backend)
        self.L, self.U = _ilu0_factors(A)

    def _solve(self, rhs):
        y = spla.spsolve_triangular(self.L, rhs, lower=True, unit_diagonal=True)
        return spla.spsolve_triangular(self.U, y, lower=False)

    def apply_pre(self, A, rhs, x, tmp):
        self.backend.residual(rhs, A, x, tmp)
        x += self.prm.damping * self._solve(tmp)

    def apply(self, A, rhs, x):
        x[...] = self._solve(rhs)


class Chebyshev(Relaxation):
    """
    Chebyshev polynomial smoother on the Jacobi-scaled system ``D^{-1} A``.

    The spectrum of ``D^{-1} A`` is bounded above by its Gershgorin radius
    ``rho``; the polynomial targets the interval
    ``[lower * rho, higher * rho]``.
    """

    @dataclass(frozen=True)
    class Params:
        #: Degree of the Chebyshev polynomial.
        degree: int = 5
        #: Upper bound of the targeted interval, relative to the spectral radius.
        higher: float = 1.0
        #: Lower bound of the targeted interval, relative to the spectral radius.
        lower: float = 1.0 / 30

    def __init__(self, A, params=None, backend=None):
        super().__init__(A, params, backend)
        D = _nonzero_diagonal(A)
        rho = np.max(np.asarray(abs(A).sum(axis=1)).ravel() / np.abs(D))

        hi = self.prm.higher * rho
        lo = self.prm.lower * rho
        self.theta = (hi + lo) / 2
        self.delta = (hi - lo) / 2

        self.dinv = self.backend.copy_vector(1.0 / D)
        self.d = self.backend.create_vector(self.n)
        self.tmp = self.backend.create_vector(self.n)

    def apply_pre(self, A, rhs, x, tmp):
        bk = self.backend
        sigma = self.theta / self.delta
        rho = 1 / sigma

        bk.residual(rhs, A, x, tmp)
        bk.vmul(1 / self.theta, self.dinv, tmp, 0, self.d)
        bk.axpby(1, self.d, 1, x)

        for _ in range(1, self.prm.degree):
            bk.residual(rhs, A, x, tmp)
            rho_new = 1 / (2 * sigma - rho)
            bk.vmul(2 * rho_new / self.delta, self.dinv, tmp, rho_new * rho, self.d)
            bk.axpby(1, self.d, 1, x)
            rho = rho_new

    def apply(self, A, rhs, x):
        self.backend.clear(x)
        self.apply_pre(A, rhs, x, self.tmp)


RELAXATIONS = {
    RelaxationType.GAUSS_SEIDEL: GaussSeidel,
    RelaxationType.MULTICOLOR_GAUSS_SEIDEL: MulticolorGaussSeidel,
    RelaxationType.ILU0: ILU0,
    RelaxationType.DAMPED_JACOBI: DampedJacobi,
    RelaxationType.SPAI0: SPAI0,
    RelaxationType.CHEBYSHEV: Chebyshev,
}


def make_relaxation(kind, A, params=None, backend=None) -> Relaxation:
    """Build the relaxation selected by ``kind`` for the host matrix ``A``."""
    return RELAXATIONS[choice(RelaxationType, kind)](sp.csr_matrix(A), params, backend)


class RelaxationPreconditioner:
    """
    Single-level preconditioner made of one relaxation step.

    Parameters
    ----------
    A : sparse matrix
        System matrix.
    params : mapping or Params, optional
        ``type`` selects the relaxation (default ``spai0``); remaining keys
        are the relaxation's parameters.
    backend : Backend or str, optional
        Backend to run on.
    """

    def __init__(self, A: Any, params: Any = None, backend: Union[None, str, Backend] = None):
        prm = Params(params)
        self.backend = BackendRegistry.resolve(backend)
        self.kind = choice(RelaxationType, prm.get("type", RelaxationType.SPAI0))
        self.relaxation = make_relaxation(self.kind, A, prm, self.backend)
        self.A = self.backend.copy_matrix(A)

    def apply(self, rhs, x):
        self.relaxation.apply(self.A, rhs, x)

    def top_matrix(self):
        return self.A
