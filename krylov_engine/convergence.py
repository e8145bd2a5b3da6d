"""
Convergence information and result objects.
"""

import math
from dataclasses import dataclass


@dataclass
class ConvergenceInfo:
    """
    Information about the convergence of an iterative solve.

    Unpacks as the pair ``(iterations, relative_residual)``::

        iters, error = cg(A, P, rhs, x)

    Attributes
    ----------
    iterations : int
        Number of iterations performed
    relative_residual : float
        Relative residual ||b - Ax|| / ||b|| at loop exit
    converged : bool
        Whether the relative residual met the solver tolerance
    reason : str
        Human-readable reason for termination
    solve_time : float
        Time taken for the solve (seconds)
    setup_time : float
        Time taken for preconditioner setup (seconds)
    """
    iterations: int
    relative_residual: float
    converged: bool = False
    reason: str = ""
    solve_time: float = 0.0
    setup_time: float = 0.0

    @classmethod
    def from_iteration(cls, iterations: int, relative_residual, tol: float) -> "ConvergenceInfo":
        """Classify the state of a finished iteration loop."""
        relative_residual = float(relative_residual)
        if not math.isfinite(relative_residual):
            converged, reason = False, "Breakdown: non-finite residual"
        elif relative_residual <= tol:
            converged, reason = True, "Converged"
        else:
            converged, reason = False, f"Did not converge in {iterations} iterations"
        return cls(
            iterations=int(iterations),
            relative_residual=relative_residual,
            converged=converged,
            reason=reason,
        )

    @classmethod
    def zero_rhs(cls) -> "ConvergenceInfo":
        """Result of the trivial solve with an all-zero right-hand side."""
        return cls(iterations=0, relative_residual=0.0, converged=True,
                   reason="Zero right-hand side")

    def __iter__(self):
        yield self.iterations
        yield self.relative_residual

    def __str__(self):
        status = "Converged" if self.converged else "Not converged"
        return (
            f"{status} in {self.iterations} iterations\n"
            f"  Relative residual: {self.relative_residual:.2e}\n"
            f"  Setup time: {self.setup_time:.4f}s\n"
            f"  Solve time: {self.solve_time:.4f}s"
        )

    def to_dict(self):
        """Convert to a plain dictionary."""
        return {
            "converged": self.converged,
            "niter": self.iterations,
            "relative_residual": self.relative_residual,
            "time": self.solve_time,
            "setup_time": self.setup_time,
            "reason": self.reason,
        }
