"""Tests for LinearSolver, async solves and the solve() convenience function."""

import numpy as np
import pytest
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from krylov_engine import (
    AsyncSolveHandle,
    ConfigurationError,
    LinearSolver,
    OperatorPreconditioner,
    Params,
    poisson_2d,
    solve,
)


@pytest.fixture
def system():
    A = poisson_2d(10, 10)
    b = np.linspace(1.0, 2.0, 100)
    return A, b, spla.spsolve(A.tocsc(), b)


class TestLinearSolver:
    """Preconditioner and solver assembled from configuration."""

    def test_default_configuration(self, system):
        """AMG-preconditioned BiCGStab by default."""
        A, b, expected = system
        solver = LinearSolver(A)

        x, info = solver.solve(b)

        assert info.converged
        assert type(solver.solver).__name__ == "BiCGStab"
        assert type(solver.precond).__name__ == "AMG"
        assert np.allclose(x, expected, atol=1e-6)

    def test_nested_configuration(self, system):
        """Nested and dotted configuration keys are equivalent."""
        A, b, expected = system
        prm = Params({"solver.type": "cg", "solver.tol": 1e-10, "solver.maxiter": 500,
                      "precond.class": "relaxation"})
        prm.put("precond.type", "damped_jacobi")

        x, info = LinearSolver(A, prm).solve(b)

        assert info.converged
        assert info.relative_residual <= 1e-10
        assert np.allclose(x, expected, atol=1e-7)

    def test_timings(self, system):
        """Results carry setup and solve times."""
        A, b, _ = system
        solver = LinearSolver(A)
        _, info = solver.solve(b)

        assert solver.setup_time >= 0
        assert info.setup_time == solver.setup_time
        assert info.solve_time >= 0

    def test_call_in_place(self, system):
        """Calling the solver updates x in place."""
        A, b, expected = system
        solver = LinearSolver(A, {"solver": {"type": "gmres"}})
        x = np.zeros(100)

        iters, error = solver(b, x)

        assert iters > 0
        assert error <= 1e-8
        assert np.allclose(x, expected, atol=1e-6)

    def test_initial_guess(self, system):
        """A converged initial guess needs no iterations."""
        A, b, expected = system
        x, info = LinearSolver(A).solve(b, x0=expected)

        assert info.iterations == 0
        assert np.allclose(x, expected)

    def test_other_matrix(self, system):
        """The preconditioner can be reused for a nearby matrix."""
        A, b, _ = system
        A2 = sp.csr_matrix(A + 0.1 * sp.identity(100))
        solver = LinearSolver(A, {"solver": {"maxiter": 200}})

        x, info = solver.solve(b, A=A2)

        assert info.converged
        assert np.allclose(A2 @ x, b, atol=1e-6)

    def test_external_preconditioner(self, system):
        """A ready-made preconditioner is used as given."""
        A, b, expected = system
        D_inv = 1.0 / A.diagonal()
        P = OperatorPreconditioner(lambda v: D_inv * v)

        x, info = LinearSolver(A, {"solver": {"type": "cg", "maxiter": 300}}, precond=P).solve(b)

        assert info.converged
        assert np.allclose(x, expected, atol=1e-6)

    def test_invalid_configuration(self, system):
        """Unknown selector values fail at construction."""
        A, _, _ = system
        with pytest.raises(ConfigurationError):
            LinearSolver(A, {"solver": {"type": "qmr"}})


class TestAsyncSolve:
    """Background solves."""

    def test_wait(self, system):
        """wait() returns the solution of a background solve."""
        A, b, expected = system
        handle = LinearSolver(A).solve_async(b)

        assert isinstance(handle, AsyncSolveHandle)
        x, info = handle.wait(timeout=60)

        assert handle.is_done()
        assert info.converged
        assert np.allclose(x, expected, atol=1e-6)
        assert handle.get_result()[1] is info

    def test_error_is_reported(self, system):
        """An exception in the worker surfaces from wait()."""
        A, _, _ = system
        handle = LinearSolver(A).solve_async(np.ones(7))

        with pytest.raises(RuntimeError, match="Solve failed"):
            handle.wait(timeout=60)


class TestSolveFunction:
    """The solve() convenience function."""

    @pytest.mark.parametrize("solver", ["cg", "bicgstab", "bicgstabl", "gmres"])
    def test_solvers(self, system, solver):
        """All solvers are reachable by name."""
        A, b, expected = system
        x, info = solve(A, b, solver=solver, tol=1e-10)

        assert info.converged
        assert np.allclose(x, expected, atol=1e-7)

    def test_two_stage(self, system):
        """Preconditioner options are forwarded, e.g. the pressure mask."""
        A, b, expected = system
        x, info = solve(A, b, precond="cpr", pmask="%0:2", flow={"type": "ilu0"})

        assert info.converged
        assert np.allclose(x, expected, atol=1e-6)

    def test_dummy_preconditioner(self, system):
        """The identity preconditioner is available as 'dummy'."""
        A, b, expected = system
        x, info = solve(A, b, solver="cg", precond="dummy", maxiter=500)

        assert info.converged
        assert np.allclose(x, expected, atol=1e-6)
