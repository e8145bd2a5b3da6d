"""
Two-stage preconditioners for coupled pressure/flow systems.

Both preconditioners split the unknowns with a pressure mask, precondition
the pressure part with AMG and the rest with a single relaxation:

- ``CPR`` (constrained pressure residual) relaxes the whole system first and
  then corrects the pressure unknowns with AMG applied to the pressure
  residual.
- ``SIMPLE`` relaxes the flow block, solves the approximate pressure Schur
  complement with AMG and corrects the flow unknowns.

The block restrictions and prolongations are stored as selection matrices,
so both preconditioners run on any backend.
"""

from typing import Any, Union

import numpy as np
import scipy.sparse as sp

from .amg import AMG
from .backends import Backend, BackendRegistry
from .errors import ConfigurationError
from .logger import get_logger
from .params import Params
from .relaxation import RelaxationPreconditioner
from .utils import pressure_mask

logger = get_logger(__name__)


def _selection(index: np.ndarray, n: int) -> sp.csr_matrix:
    """Matrix that extracts the entries ``index`` from a vector of size ``n``."""
    m = index.size
    return sp.csr_matrix((np.ones(m), (np.arange(m), index)), shape=(m, n))


class _TwoStage:
    """
    Common setup of the pressure/flow preconditioners.

    Parameters
    ----------
    A : sparse matrix
        System matrix.
    params : mapping or Params
        ``pmask`` (required) marks the pressure unknowns, either as an array
        with one entry per row or as a ``%start:stride`` pattern.
        ``pressure`` holds the AMG parameters and ``flow`` the relaxation
        parameters.
    backend : Backend or str, optional
        Backend to run on.
    """

    def __init__(self, A: Any, params: Any = None, backend: Union[None, str, Backend] = None):
        self.prm = Params(params)
        self.backend = BackendRegistry.resolve(backend)

        A = sp.csr_matrix(A)
        self.n = A.shape[0]
        if "pmask" not in self.prm:
            raise ConfigurationError(f"{type(self).__name__} requires a pressure mask (pmask)")
        self.pmask = pressure_mask(self.prm.get("pmask"), self.n)

        self.pidx = np.flatnonzero(self.pmask)
        self.uidx = np.flatnonzero(~self.pmask)
        if self.pidx.size == 0 or self.uidx.size == 0:
            raise ConfigurationError(
                "Pressure mask must mark at least one pressure and one flow unknown"
            )
        logger.debug("%s: %d pressure and %d flow unknowns",
                     type(self).__name__, self.pidx.size, self.uidx.size)

        self.K = self.backend.copy_matrix(A)

    def top_matrix(self):
        return self.K


class CPR(_TwoStage):
    """
    Constrained pressure residual preconditioner.

    ``x := S^{-1} rhs`` with the flow relaxation ``S`` on the whole system,
    then ``x += F^T P^{-1} F (rhs - K x)`` where ``F`` restricts to the
    pressure unknowns and ``P`` is AMG on the pressure block ``App``.
    """

    def __init__(self, A, params=None, backend=None):
        super().__init__(A, params, backend)
        A = sp.csr_matrix(A)
        bk = self.backend

        App = A[self.pidx][:, self.pidx]
        self.P = AMG(App, self.prm.sub("pressure"), bk)
        self.S = RelaxationPreconditioner(A, self.prm.sub("flow"), bk)

        Fpp = _selection(self.pidx, self.n)
        self.Fpp = bk.copy_matrix(Fpp)
        self.Scatter = bk.copy_matrix(Fpp.T.tocsr())

        self.rs = bk.create_vector(self.n)
        self.rp = bk.create_vector(self.pidx.size)
        self.xp = bk.create_vector(self.pidx.size)

    def apply(self, rhs, x):
        bk = self.backend
        self.S.apply(rhs, x)
        bk.residual(rhs, self.K, x, self.rs)
        bk.spmv(1, self.Fpp, self.rs, 0, self.rp)
        self.P.apply(self.rp, self.xp)
        bk.spmv(1, self.Scatter, self.xp, 1, x)


class SIMPLE(_TwoStage):
    """
    SIMPLE (semi-implicit method for pressure-linked equations) preconditioner.

    With the block splitting ``[Kuu Kup; Kpu Kpp]`` and
    ``Duu = diag(Kuu)``, one application performs::

        x_u = U^{-1} rhs_u
        x_p = P^{-1} (rhs_p - Kpu x_u)
        x_u = x_u - Duu^{-1} Kup x_p

    where ``U`` is the flow relaxation on ``Kuu`` and ``P`` is AMG on the
    approximate Schur complement ``Kpp - Kpu Duu^{-1} Kup``.
    """

    def __init__(self, A, params=None, backend=None):
        super().__init__(A, params, backend)
        A = sp.csr_matrix(A)
        bk = self.backend
        u, p = self.uidx, self.pidx

        Kuu = A[u][:, u]
        Kup = A[u][:, p]
        Kpu = A[p][:, u]
        Kpp = A[p][:, p]

        Duu = Kuu.diagonal()
        if np.any(Duu == 0):
            raise ConfigurationError("Flow block has a zero diagonal entry")
        dinv = 1.0 / Duu
        schur = sp.csr_matrix(Kpp - Kpu @ sp.diags(dinv) @ Kup)

        self.U = RelaxationPreconditioner(Kuu, self.prm.sub("flow"), bk)
        self.P = AMG(schur, self.prm.sub("pressure"), bk)

        self.Kup = bk.copy_matrix(Kup)
        self.Kpu = bk.copy_matrix(Kpu)
        self.dinv = bk.copy_vector(dinv)

        Fu = _selection(u, self.n)
        Fp = _selection(p, self.n)
        self.Fu = bk.copy_matrix(Fu)
        self.Fp = bk.copy_matrix(Fp)
        self.Su = bk.copy_matrix(Fu.T.tocsr())
        self.Sp = bk.copy_matrix(Fp.T.tocsr())

        self.rhs_u = bk.create_vector(u.size)
        self.x_u = bk.create_vector(u.size)
        self.tmp_u = bk.create_vector(u.size)
        self.rhs_p = bk.create_vector(p.size)
        self.x_p = bk.create_vector(p.size)

    def apply(self, rhs, x):
        bk = self.backend

        bk.spmv(1, self.Fu, rhs, 0, self.rhs_u)
        bk.spmv(1, self.Fp, rhs, 0, self.rhs_p)

        self.U.apply(self.rhs_u, self.x_u)

        bk.spmv(-1, self.Kpu, self.x_u, 1, self.rhs_p)
        self.P.apply(self.rhs_p, self.x_p)

        bk.spmv(1, self.Kup, self.x_p, 0, self.tmp_u)
        bk.vmul(-1, self.dinv, self.tmp_u, 1, self.x_u)

        bk.spmv(1, self.Su, self.x_u, 0, x)
        bk.spmv(1, self.Sp, self.x_p, 1, x)
