"""
Example demonstrating the features of the krylov_engine package.
"""

import time

import numpy as np
from krylov_engine import (
    CG, AMG, BackendRegistry, LinearSolver, Params, SciPyBackend,
    poisson_2d, pressure_mask, solve,
)


def example_solve():
    """Example using the solve() convenience function."""
    print("=" * 70)
    print("Example 1: solve() with ConvergenceInfo")
    print("=" * 70)

    A = poisson_2d(100, 100)
    b = np.random.rand(A.shape[0])

    x, info = solve(A, b, solver="cg", precond="amg", tol=1e-8)

    print(f"Converged: {info.converged}")
    print(f"Iterations: {info.iterations}")
    print(f"Relative residual: {info.relative_residual:.2e}")
    print(f"Reason: {info.reason}")
    print()
    print("Full info object:")
    print(info)
    print()


def example_engine():
    """Example driving the CG engine directly with backend vectors."""
    print("=" * 70)
    print("Example 2: CG engine with an AMG preconditioner")
    print("=" * 70)

    A = poisson_2d(80, 80)
    backend = SciPyBackend()
    P = AMG(A, {"coarsening": {"type": "ruge_stuben"}, "relaxation": {"type": "gauss_seidel"}},
            backend)
    print(P)

    cg = CG(A.shape[0], {"tol": 1e-10, "maxiter": 200}, backend)
    rhs = backend.copy_vector(np.ones(A.shape[0]))
    x = backend.create_vector(A.shape[0])

    # The engine result unpacks as (iterations, relative residual)
    iters, error = cg(P, rhs, x)
    print(f"\nIterations: {iters}")
    print(f"Error:      {error:.2e}")
    print()


def example_reuse():
    """Example reusing one preconditioner for several right-hand sides."""
    print("=" * 70)
    print("Example 3: LinearSolver with Preconditioner Reuse")
    print("=" * 70)

    A = poisson_2d(80, 80)
    solver = LinearSolver(A, {"solver": {"type": "bicgstab"}, "precond": {"class": "amg"}})
    print(f"Setup time: {solver.setup_time:.4f}s")

    for i in range(3):
        x, info = solver.solve(np.random.rand(A.shape[0]))
        print(f"  Solve {i + 1}: {info.iterations} iterations, {info.solve_time:.4f}s")
    print()


def example_two_stage():
    """Example using the CPR and SIMPLE preconditioners."""
    print("=" * 70)
    print("Example 4: CPR and SIMPLE")
    print("=" * 70)

    A = poisson_2d(40, 40)
    b = np.ones(A.shape[0])
    prm = Params({
        "solver": {"type": "gmres", "tol": 1e-8},
        "precond": {
            "pmask": pressure_mask("%0:2", A.shape[0]),
            "pressure": {"coarsening": {"type": "smoothed_aggregation"}},
            "flow": {"type": "ilu0"},
        },
    })

    for name in ("cpr", "simple"):
        prm.put("precond.class", name)
        x, info = LinearSolver(A, prm).solve(b)
        print(f"{name.upper():<8} {info.iterations:>4} iterations, error {info.relative_residual:.2e}")
    print()


def example_async_solve():
    """Example using async solve."""
    print("=" * 70)
    print("Example 5: Asynchronous Solve")
    print("=" * 70)

    A = poisson_2d(100, 100)
    b = np.random.rand(A.shape[0])

    solver = LinearSolver(A, {"solver": {"type": "cg"}})

    handle = solver.solve_async(b)

    print("Solve started asynchronously...")
    while not handle.is_done():
        print("  Still solving...")
        time.sleep(0.1)

    x, info = handle.wait()

    print(f"\nSolve completed!")
    print(f"Converged: {info.converged}")
    print(f"Iterations: {info.iterations}")
    print()


def example_backend_selection():
    """Example showing backend selection."""
    print("=" * 70)
    print("Example 6: Backend Selection")
    print("=" * 70)

    print("Available backends:")
    for backend in BackendRegistry.list_backends():
        print(f"  - {backend}")

    print("\nAuto-selected backend:")
    print(f"  {BackendRegistry.auto_select(prefer_gpu=True)}")
    print()


def example_tolerance_control():
    """Example showing tolerance control."""
    print("=" * 70)
    print("Example 7: Tolerance and Iteration Control")
    print("=" * 70)

    A = poisson_2d(80, 80)
    b = np.random.rand(A.shape[0])

    print(f"{'Tolerance':<12} {'Iterations':<12} {'Time (s)':<12} {'Residual':<15}")
    print("-" * 70)

    for tol in (1e-6, 1e-8, 1e-10):
        x, info = solve(A, b, solver="cg", precond="relaxation", tol=tol, maxiter=1000)
        print(f"{tol:<12.0e} {info.iterations:<12} {info.solve_time:<12.4f} "
              f"{info.relative_residual:<15.2e}")
    print()


if __name__ == "__main__":
    example_solve()
    example_engine()
    example_reuse()
    example_two_stage()
    example_async_solve()
    example_backend_selection()
    example_tolerance_control()
