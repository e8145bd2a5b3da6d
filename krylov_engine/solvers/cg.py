"""
Conjugate Gradient method.
"""

from .base import IterativeSolver


class CG(IterativeSolver):
    """
    Preconditioned Conjugate Gradient solver.

    For symmetric positive definite systems with a symmetric positive
    definite preconditioner. Positive definiteness is not checked: an
    indefinite system can make ``<q, p>`` vanish, and a residual whose
    preconditioned inner product underflows to zero makes the next search
    direction divide by zero. Neither case is guarded; the resulting
    inf/NaN values reach ``x`` and the returned residual, and the result is
    reported as not converged.

    Scratch vectors: ``r`` (residual), ``s`` (preconditioned residual),
    ``p`` (search direction) and ``q`` (``A p``).
    """

    def __init__(self, n, params=None, backend=None):
        super().__init__(n, params, backend)
        self.r, self.s, self.p, self.q = self._vectors(4)

    def _solve(self, A, P, rhs, x):
        bk = self.backend
        r, s, p, q = self.r, self.s, self.p, self.q

        bk.residual(rhs, A, x, r)

        rho1 = rho2 = 0
        norm_of_rhs = bk.norm(rhs)
        if norm_of_rhs == 0:
            return self._zero_rhs(x)

        iteration = 0
        res = bk.norm(r) / norm_of_rhs

        while res > self.prm.tol and iteration < self.prm.maxiter:
            P.apply(r, s)

            rho2 = rho1
            rho1 = bk.inner_product(r, s)

            if iteration:
                bk.axpby(1, s, rho1 / rho2, p)
            else:
                bk.copy(s, p)

            bk.spmv(1, A, p, 0, q)

            alpha = rho1 / bk.inner_product(q, p)

            bk.axpby(alpha, p, 1, x)
            bk.axpby(-alpha, q, 1, r)

            iteration += 1
            res = bk.norm(r) / norm_of_rhs

        return self._result(iteration, res)
