"""
Common machinery of the Krylov solvers.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, Union

from ..backends import Backend, BackendRegistry
from ..convergence import ConvergenceInfo
from ..errors import ConfigurationError
from ..logger import get_logger
from ..params import params_from
from ..preconditioners import system_matrix

logger = get_logger(__name__)


class IterativeSolver(ABC):
    """
    Base class for preconditioned Krylov solvers.

    A solver is sized to the problem at construction: every scratch vector
    it needs is allocated once through the backend and reused by every call.
    Calls overwrite that state, so one instance must not be used by two
    solves at the same time.

    Parameters
    ----------
    n : int
        System size.
    params : mapping, Params, or Params dataclass, optional
        Solver parameters (``maxiter``, ``tol`` and solver-specific ones).
    backend : Backend or str, optional
        Backend used for the scratch vectors and all vector arithmetic.

    Raises
    ------
    AllocationError
        If the backend cannot provide the scratch vectors.
    """

    @dataclass(frozen=True)
    class Params:
        #: Maximum number of iterations.
        maxiter: int = 100
        #: Target relative residual.
        tol: float = 1e-8

        def __post_init__(self):
            if self.maxiter < 0:
                raise ConfigurationError(f"maxiter must be non-negative, got {self.maxiter}")
            if self.tol < 0:
                raise ConfigurationError(f"tol must be non-negative, got {self.tol}")

    def __init__(self,
                 n: int,
                 params: Optional[Any] = None,
                 backend: Union[None, str, Backend] = None):
        self.n = int(n)
        self.prm = params_from(type(self).Params, params)
        self.backend = BackendRegistry.resolve(backend)

    def __repr__(self):
        return f"{type(self).__name__}(n={self.n}, prm={self.prm}, backend={self.backend})"

    def _vectors(self, count: int) -> list:
        return [self.backend.create_vector(self.n) for _ in range(count)]

    def solve(self, *args: Any) -> ConvergenceInfo:
        """
        Solve a linear system.

        ``solve(A, P, rhs, x)`` solves ``A x = rhs`` preconditioned with ``P``.
        The matrix may differ from the one ``P`` was built for, which allows
        one preconditioner to serve a sequence of slowly changing matrices.

        ``solve(P, rhs, x)`` solves against ``P.top_matrix()``.

        ``x`` holds the initial guess on entry and the solution on exit.

        Returns
        -------
        ConvergenceInfo
            Unpacks as ``(iterations, relative_residual)``.

        Raises
        ------
        PreconditionViolation
            For the three-argument form, if ``P`` has no ``top_matrix()``.
        """
        if len(args) == 4:
            A, P, rhs, x = args
        elif len(args) == 3:
            P, rhs, x = args
            A = system_matrix(P)
        else:
            raise TypeError(
                f"solve() takes (A, P, rhs, x) or (P, rhs, x), got {len(args)} arguments"
            )
        return self._solve(A, P, rhs, x)

    __call__ = solve

    @abstractmethod
    def _solve(self, A: Any, P: Any, rhs: Any, x: Any) -> ConvergenceInfo:
        """Run the iteration for the four-argument form."""
        pass

    def _result(self, iterations: int, res) -> ConvergenceInfo:
        info = ConvergenceInfo.from_iteration(iterations, res, self.prm.tol)
        logger.debug("%s: %s after %d iterations, relative residual %.3e",
                     type(self).__name__, info.reason, info.iterations, info.relative_residual)
        return info

    def _zero_rhs(self, x: Any) -> ConvergenceInfo:
        self.backend.clear(x)
        logger.debug("%s: zero right-hand side, returning zero solution", type(self).__name__)
        return ConvergenceInfo.zero_rhs()
