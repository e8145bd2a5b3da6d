"""
BiConjugate Gradient Stabilized method.
"""

from .base import IterativeSolver


class BiCGStab(IterativeSolver):
    """
    Preconditioned BiCGStab solver for general (nonsymmetric) systems.

    The iteration stops halfway through a step when the intermediate
    residual already meets the tolerance.
    """

    def __init__(self, n, params=None, backend=None):
        super().__init__(n, params, backend)
        (self.r, self.rh, self.p, self.v,
         self.s, self.t, self.ph, self.sh) = self._vectors(8)

    def _solve(self, A, P, rhs, x):
        bk = self.backend
        r, rh, p, v = self.r, self.rh, self.p, self.v
        s, t, ph, sh = self.s, self.t, self.ph, self.sh

        bk.residual(rhs, A, x, r)

        norm_of_rhs = bk.norm(rhs)
        if norm_of_rhs == 0:
            return self._zero_rhs(x)

        bk.copy(r, rh)

        rho1 = rho2 = alpha = omega = 1
        iteration = 0
        res = bk.norm(r) / norm_of_rhs

        while res > self.prm.tol and iteration < self.prm.maxiter:
            rho2 = rho1
            rho1 = bk.inner_product(r, rh)

            if iteration:
                beta = (rho1 / rho2) * (alpha / omega)
                # p := r + beta (p - omega v)
                bk.axpbypcz(1, r, -beta * omega, v, beta, p)
            else:
                bk.copy(r, p)

            P.apply(p, ph)
            bk.spmv(1, A, ph, 0, v)

            alpha = rho1 / bk.inner_product(rh, v)
            bk.axpbypcz(1, r, -alpha, v, 0, s)

            iteration += 1
            res = bk.norm(s) / norm_of_rhs
            if not res > self.prm.tol:
                bk.axpby(alpha, ph, 1, x)
                bk.copy(s, r)
                break

            P.apply(s, sh)
            bk.spmv(1, A, sh, 0, t)

            omega = bk.inner_product(t, s) / bk.inner_product(t, t)

            bk.axpbypcz(alpha, ph, omega, sh, 1, x)
            bk.axpbypcz(1, s, -omega, t, 0, r)

            res = bk.norm(r) / norm_of_rhs

        return self._result(iteration, res)
