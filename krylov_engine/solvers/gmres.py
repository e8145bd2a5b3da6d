"""
Restarted Generalized Minimal Residual method.
"""

import math
from dataclasses import dataclass

import numpy as np
from scipy.linalg import solve_triangular

from ..errors import ConfigurationError
from .base import IterativeSolver


def _givens(a, b):
    """Rotation (cs, sn) that zeroes ``b`` in the pair (a, b)."""
    if b == 0:
        return 1.0, 0.0
    if abs(b) > abs(a):
        t = a / b
        sn = 1.0 / math.sqrt(1.0 + t * t)
        return t * sn, sn
    t = b / a
    cs = 1.0 / math.sqrt(1.0 + t * t)
    return cs, t * cs


class GMRES(IterativeSolver):
    """
    Right-preconditioned GMRES(m) for general real systems.

    The Krylov basis holds ``restart + 1`` vectors. Every inner step counts
    as one iteration; after each restart cycle the true residual is
    recomputed, so the returned residual is ``||rhs - A x|| / ||rhs||``.
    """

    @dataclass(frozen=True)
    class Params(IterativeSolver.Params):
        #: Number of inner iterations between restarts.
        restart: int = 30

        def __post_init__(self):
            super().__post_init__()
            if self.restart < 1:
                raise ConfigurationError(f"restart must be positive, got {self.restart}")

    def __init__(self, n, params=None, backend=None):
        super().__init__(n, params, backend)
        m = self.prm.restart
        self.r, self.w, self.z = self._vectors(3)
        self.v = self._vectors(m + 1)
        self.H = np.zeros((m + 1, m))
        self.g = np.zeros(m + 1)
        self.cs = np.zeros(m)
        self.sn = np.zeros(m)

    def _solve(self, A, P, rhs, x):
        bk = self.backend
        r, w, z, v = self.r, self.w, self.z, self.v
        H, g, cs, sn = self.H, self.g, self.cs, self.sn

        bk.residual(rhs, A, x, r)

        norm_of_rhs = bk.norm(rhs)
        if norm_of_rhs == 0:
            return self._zero_rhs(x)

        iteration = 0
        beta = bk.norm(r)
        res = beta / norm_of_rhs

        while res > self.prm.tol and iteration < self.prm.maxiter:
            bk.axpby(1 / beta, r, 0, v[0])
            H.fill(0)
            g.fill(0)
            g[0] = beta

            j = 0
            while j < self.prm.restart and iteration < self.prm.maxiter:
                P.apply(v[j], z)
                bk.spmv(1, A, z, 0, w)

                # Modified Gram-Schmidt
                for k in range(j + 1):
                    H[k, j] = bk.inner_product(w, v[k])
                    bk.axpby(-H[k, j], v[k], 1, w)
                H[j + 1, j] = bk.norm(w)
                if H[j + 1, j] != 0:
                    bk.axpby(1 / H[j + 1, j], w, 0, v[j + 1])

                for k in range(j):
                    tmp = cs[k] * H[k, j] + sn[k] * H[k + 1, j]
                    H[k + 1, j] = -sn[k] * H[k, j] + cs[k] * H[k + 1, j]
                    H[k, j] = tmp

                cs[j], sn[j] = _givens(H[j, j], H[j + 1, j])
                H[j, j] = cs[j] * H[j, j] + sn[j] * H[j + 1, j]
                H[j + 1, j] = 0
                g[j + 1] = -sn[j] * g[j]
                g[j] = cs[j] * g[j]

                j += 1
                iteration += 1
                res = abs(g[j]) / norm_of_rhs
                if not res > self.prm.tol:
                    break

            # x += M^{-1} V y
            y = solve_triangular(H[:j, :j], g[:j])
            bk.clear(w)
            for k in range(j):
                bk.axpby(y[k], v[k], 1, w)
            P.apply(w, z)
            bk.axpby(1, z, 1, x)

            bk.residual(rhs, A, x, r)
            beta = bk.norm(r)
            res = beta / norm_of_rhs

        return self._result(iteration, res)
