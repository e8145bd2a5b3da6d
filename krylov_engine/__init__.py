"""
Preconditioned Krylov solvers for large sparse linear systems.

The iteration loops (CG, BiCGStab, BiCGStab(L), GMRES) are written against a
small backend interface, so the same solver runs on NumPy/SciPy data or on
the GPU through CuPy. Preconditioners range from single relaxations through
algebraic multigrid to the two-stage CPR and SIMPLE preconditioners for
coupled pressure/flow systems.
"""

from .amg import AMG, CoarseningType
from .backends import BackendRegistry, CuPyBackend, SciPyBackend
from .composite import CPR, SIMPLE
from .convergence import ConvergenceInfo
from .errors import (
    AllocationError,
    BackendError,
    ConfigurationError,
    FormatError,
    KrylovError,
    PreconditionViolation,
)
from .make_solver import AsyncSolveHandle, LinearSolver, solve
from .params import Params
from .preconditioners import IdentityPreconditioner, OperatorPreconditioner
from .relaxation import RelaxationPreconditioner, RelaxationType
from .runtime import PreconditionerClass, SolverType, iterative_solver, preconditioner
from .solvers import CG, GMRES, BiCGStab, BiCGStabL
from .utils import poisson_2d, pressure_mask

__version__ = "0.3.0"
__all__ = [
    # Solvers
    "CG",
    "BiCGStab",
    "BiCGStabL",
    "GMRES",
    "LinearSolver",
    "AsyncSolveHandle",
    "solve",
    "ConvergenceInfo",
    # Preconditioners
    "AMG",
    "CPR",
    "SIMPLE",
    "IdentityPreconditioner",
    "OperatorPreconditioner",
    "RelaxationPreconditioner",
    # Runtime selection and configuration
    "CoarseningType",
    "PreconditionerClass",
    "RelaxationType",
    "SolverType",
    "iterative_solver",
    "preconditioner",
    "Params",
    # Backends
    "BackendRegistry",
    "CuPyBackend",
    "SciPyBackend",
    # Errors
    "KrylovError",
    "AllocationError",
    "BackendError",
    "ConfigurationError",
    "FormatError",
    "PreconditionViolation",
    # Utilities
    "poisson_2d",
    "pressure_mask",
]
