"""
Preconditioned iterative solver assembled from configuration, with async support.
"""

import queue
import threading
import time
from typing import Any, Optional, Union

import numpy as np
import scipy.sparse as sp

from .backends import Backend, BackendRegistry
from .convergence import ConvergenceInfo
from .logger import get_logger
from .params import Params
from .runtime import iterative_solver, preconditioner

logger = get_logger(__name__)


class LinearSolver:
    """
    Iterative solver bundled with the preconditioner it uses.

    The preconditioner is built once from ``params["precond"]`` and reused by
    every solve; the iterative solver comes from ``params["solver"]``.

    Parameters
    ----------
    A : sparse matrix
        System matrix (SciPy or compatible).
    params : mapping or Params, optional
        Configuration tree with ``precond`` and ``solver`` subtrees, e.g.
        ``{"precond": {"class": "amg", "coarsening": {"type": "ruge_stuben"}},
        "solver": {"type": "cg", "tol": 1e-6}}``.
    backend : Backend or str, optional
        Backend to run on ("scipy", "cupy", or None for the default).
    precond : Preconditioner, optional
        Ready-made preconditioner used instead of building one.
    """

    def __init__(self,
                 A: Any,
                 params: Any = None,
                 backend: Union[None, str, Backend] = None,
                 precond: Any = None):
        prm = Params(params)
        self.backend = BackendRegistry.resolve(backend)
        A = sp.csr_matrix(A)
        self.n = A.shape[0]

        t0 = time.perf_counter()
        if precond is None:
            precond = preconditioner(A, prm.sub("precond"), self.backend)
            self.A = precond.top_matrix()
        else:
            self.A = self.backend.copy_matrix(A)
        self.precond = precond
        self.solver = iterative_solver(self.n, prm.sub("solver"), self.backend)
        self.setup_time = time.perf_counter() - t0

        logger.debug("%s set up in %.4fs with %s",
                     type(self.solver).__name__, self.setup_time, type(precond).__name__)

    def __call__(self, rhs, x) -> ConvergenceInfo:
        """
        Solve against the system matrix; ``x`` is updated in place.

        ``rhs`` and ``x`` must be vectors of the solver's backend.
        """
        return self._run(self.A, rhs, x)

    def _run(self, A, rhs, x) -> ConvergenceInfo:
        t0 = time.perf_counter()
        info = self.solver(A, self.precond, rhs, x)
        info.solve_time = time.perf_counter() - t0
        info.setup_time = self.setup_time
        return info

    def solve(self,
              b: Any,
              x0: Optional[Any] = None,
              A: Optional[Any] = None) -> tuple[Any, ConvergenceInfo]:
        """
        Solve Ax = b.

        Parameters
        ----------
        b : array-like
            Right-hand side vector (NumPy or backend array)
        x0 : array-like, optional
            Initial guess (default: zero)
        A : sparse matrix, optional
            Matrix to solve against instead of the one the preconditioner was
            built for. Must have the same size.

        Returns
        -------
        x : array
            Solution vector (NumPy array if ``b`` is one)
        info : ConvergenceInfo
            Convergence information
        """
        bk = self.backend
        rhs = bk.copy_vector(b)
        x = bk.copy_vector(x0) if x0 is not None else bk.create_vector(self.n)

        matrix = self.A if A is None else bk.copy_matrix(A)
        info = self._run(matrix, rhs, x)

        if isinstance(b, np.ndarray) and not bk.is_host:
            x = bk.to_host(x)
        return x, info

    def solve_async(self,
                    b: Any,
                    x0: Optional[Any] = None,
                    A: Optional[Any] = None) -> 'AsyncSolveHandle':
        """
        Solve Ax = b on a background thread.

        The solver must not be used for another solve until the returned
        handle reports completion.

        Returns
        -------
        handle : AsyncSolveHandle
            Handle to query status and get results
        """
        result_queue = queue.Queue()
        error_queue = queue.Queue()

        def solve_thread():
            try:
                result_queue.put(self.solve(b, x0=x0, A=A))
            except Exception as e:
                error_queue.put(e)

        thread = threading.Thread(target=solve_thread, daemon=True)
        thread.start()

        return AsyncSolveHandle(thread, result_queue, error_queue)


class AsyncSolveHandle:
    """Handle for asynchronous solve operations."""

    def __init__(self, thread: threading.Thread, result_queue: queue.Queue, error_queue: queue.Queue):
        self.thread = thread
        self.result_queue = result_queue
        self.error_queue = error_queue
        self._result = None
        self._error = None

    def _poll(self):
        if self._error is None and not self.error_queue.empty():
            self._error = self.error_queue.get()
        if self._result is None and not self.result_queue.empty():
            self._result = self.result_queue.get()

    def is_done(self) -> bool:
        """Check if solve is complete."""
        self._poll()
        if self._result is not None or self._error is not None:
            return True
        return not self.thread.is_alive()

    def wait(self, timeout: Optional[float] = None) -> tuple[Any, ConvergenceInfo]:
        """
        Wait for solve to complete and return result.

        Parameters
        ----------
        timeout : float, optional
            Maximum time to wait in seconds

        Returns
        -------
        x : array
            Solution vector
        info : ConvergenceInfo
            Convergence information

        Raises
        ------
        TimeoutError
            If timeout is exceeded
        RuntimeError
            If solve failed
        """
        self.thread.join(timeout=timeout)
        self._poll()

        if self._error is not None:
            raise RuntimeError(f"Solve failed: {self._error}") from self._error

        if self._result is None:
            if self.thread.is_alive():
                raise TimeoutError("Solve did not complete within timeout")
            raise RuntimeError("Solve thread terminated without result")

        return self._result

    def get_result(self) -> Optional[tuple[Any, ConvergenceInfo]]:
        """
        Get result if available, otherwise return None.

        Returns
        -------
        result : tuple or None
            (x, info) if available, None otherwise
        """
        self._poll()
        return self._result


def solve(A: sp.spmatrix,
          b: np.ndarray,
          backend: Union[None, str, Backend] = None,
          solver: str = "bicgstab",
          precond: str = "amg",
          tol: float = 1e-8,
          maxiter: int = 100,
          x0: Optional[np.ndarray] = None,
          **precond_params) -> tuple[Any, ConvergenceInfo]:
    """
    High-level solve function.

    Parameters
    ----------
    A : sparse matrix
        System matrix
    b : array-like
        Right-hand side vector
    backend : str or Backend, optional
        Backend to use ("scipy", "cupy", or None for the default)
    solver : str
        Solver type ("cg", "bicgstab", "bicgstabl", "gmres")
    precond : str
        Preconditioner class ("amg", "relaxation", "cpr", "simple", "dummy")
    tol : float
        Target relative residual
    maxiter : int
        Maximum iterations
    x0 : array-like, optional
        Initial guess
    **precond_params
        Additional preconditioner parameters, e.g. ``pmask`` for CPR

    Returns
    -------
    x : array
        Solution vector
    info : ConvergenceInfo
        Convergence information
    """
    prm = Params({
        "solver": {"type": solver, "tol": tol, "maxiter": maxiter},
        "precond": {"class": precond},
    })
    for key, value in precond_params.items():
        prm.put(f"precond.{key}", value)

    return LinearSolver(A, prm, backend=backend).solve(b, x0=x0)
