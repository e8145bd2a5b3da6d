"""
BiCGStab(L) method.
"""

from dataclasses import dataclass

import numpy as np

from ..errors import ConfigurationError
from .base import IterativeSolver


class BiCGStabL(IterativeSolver):
    """
    Right-preconditioned BiCGStab(L) of Sleijpen and Fokkema.

    Each iteration is one cycle of L BiCG steps followed by a minimal
    residual polynomial update of degree L. With right preconditioning the
    residual ``r[0]`` is the true residual of the unpreconditioned system;
    the solution correction is accumulated in preconditioned space and
    mapped back with one extra preconditioner application at the end.
    A cycle ends early when an intermediate residual meets the tolerance.
    """

    @dataclass(frozen=True)
    class Params(IterativeSolver.Params):
        #: Degree of the minimal residual polynomial.
        L: int = 2

        def __post_init__(self):
            super().__post_init__()
            if self.L < 1:
                raise ConfigurationError(f"L must be positive, got {self.L}")

    def __init__(self, n, params=None, backend=None):
        super().__init__(n, params, backend)
        L = self.prm.L
        self.r = self._vectors(L + 1)
        self.u = self._vectors(L + 1)
        self.rt, self.y, self.tmp = self._vectors(3)
        self.tau = np.zeros((L + 1, L + 1))
        self.sigma = np.zeros(L + 1)
        self.gamma = np.zeros(L + 1)
        self.gamma1 = np.zeros(L + 1)
        self.gamma2 = np.zeros(L + 1)

    def _solve(self, A, P, rhs, x):
        bk = self.backend
        L = self.prm.L
        r, u, rt, y, tmp = self.r, self.u, self.rt, self.y, self.tmp
        tau, sigma = self.tau, self.sigma
        gamma, gamma1, gamma2 = self.gamma, self.gamma1, self.gamma2

        def op(src, dst):
            # dst := A M^{-1} src
            P.apply(src, tmp)
            bk.spmv(1, A, tmp, 0, dst)

        bk.residual(rhs, A, x, r[0])

        norm_of_rhs = bk.norm(rhs)
        if norm_of_rhs == 0:
            return self._zero_rhs(x)

        bk.copy(r[0], rt)
        bk.clear(u[0])
        bk.clear(y)

        rho0, alpha, omega = 1, 0, 1
        iteration = 0
        res = bk.norm(r[0]) / norm_of_rhs

        while res > self.prm.tol and iteration < self.prm.maxiter:
            rho0 = -omega * rho0
            converged = False

            # BiCG part
            for j in range(L):
                rho1 = bk.inner_product(r[j], rt)
                beta = alpha * rho1 / rho0
                rho0 = rho1

                for i in range(j + 1):
                    bk.axpby(1, r[i], -beta, u[i])
                op(u[j], u[j + 1])

                alpha = rho0 / bk.inner_product(u[j + 1], rt)

                for i in range(j + 1):
                    bk.axpby(-alpha, u[i + 1], 1, r[i])
                op(r[j], r[j + 1])

                bk.axpby(alpha, u[0], 1, y)

                res = bk.norm(r[0]) / norm_of_rhs
                if not res > self.prm.tol:
                    converged = True
                    break

            iteration += 1
            if converged:
                break

            # MR part
            for j in range(1, L + 1):
                for i in range(1, j):
                    tau[i, j] = bk.inner_product(r[j], r[i]) / sigma[i]
                    bk.axpby(-tau[i, j], r[i], 1, r[j])
                sigma[j] = bk.inner_product(r[j], r[j])
                gamma1[j] = bk.inner_product(r[0], r[j]) / sigma[j]

            gamma[L] = gamma1[L]
            omega = gamma[L]
            for j in range(L - 1, 0, -1):
                gamma[j] = gamma1[j] - sum(tau[j, i] * gamma[i] for i in range(j + 1, L + 1))
            for j in range(1, L):
                gamma2[j] = gamma[j + 1] + sum(tau[j, i] * gamma[i + 1] for i in range(j + 1, L))

            bk.axpby(gamma[1], r[0], 1, y)
            bk.axpby(-gamma1[L], r[L], 1, r[0])
            bk.axpby(-gamma[L], u[L], 1, u[0])
            for j in range(1, L):
                bk.axpby(-gamma[j], u[j], 1, u[0])
                bk.axpby(gamma2[j], r[j], 1, y)
                bk.axpby(-gamma1[j], r[j], 1, r[0])

            res = bk.norm(r[0]) / norm_of_rhs

        if iteration:
            P.apply(y, tmp)
            bk.axpby(1, tmp, 1, x)

        return self._result(iteration, res)
