"""
Runtime selection of solvers and preconditioners from configuration keys.
"""

from enum import Enum
from typing import Any, Union

from .amg import AMG, CoarseningType
from .backends import Backend, BackendRegistry
from .composite import CPR, SIMPLE
from .logger import get_logger
from .params import Params, choice
from .preconditioners import IdentityPreconditioner
from .relaxation import RelaxationPreconditioner, RelaxationType
from .solvers import CG, GMRES, BiCGStab, BiCGStabL, IterativeSolver

logger = get_logger(__name__)


class SolverType(str, Enum):
    CG = "cg"
    BICGSTAB = "bicgstab"
    BICGSTABL = "bicgstabl"
    GMRES = "gmres"


class PreconditionerClass(str, Enum):
    AMG = "amg"
    RELAXATION = "relaxation"
    CPR = "cpr"
    SIMPLE = "simple"
    DUMMY = "dummy"


SOLVERS = {
    SolverType.CG: CG,
    SolverType.BICGSTAB: BiCGStab,
    SolverType.BICGSTABL: BiCGStabL,
    SolverType.GMRES: GMRES,
}

PRECONDITIONERS = {
    PreconditionerClass.AMG: AMG,
    PreconditionerClass.RELAXATION: RelaxationPreconditioner,
    PreconditionerClass.CPR: CPR,
    PreconditionerClass.SIMPLE: SIMPLE,
}


def iterative_solver(n: int, params: Any = None,
                     backend: Union[None, str, Backend] = None) -> IterativeSolver:
    """
    Create the solver selected by ``params["type"]`` (default ``bicgstab``).

    Raises
    ------
    ConfigurationError
        If the type is unknown or a parameter is invalid.
    """
    prm = Params(params)
    kind = choice(SolverType, prm.get("type", SolverType.BICGSTAB))
    logger.debug("Creating %s solver for %d unknowns", kind.value, n)
    return SOLVERS[kind](n, prm, backend)


def preconditioner(A: Any, params: Any = None, backend: Union[None, str, Backend] = None):
    """
    Create the preconditioner selected by ``params["class"]`` (default ``amg``).

    The remaining keys of ``params`` are passed to the preconditioner.
    """
    prm = Params(params)
    kind = choice(PreconditionerClass, prm.get("class", PreconditionerClass.AMG))
    backend = BackendRegistry.resolve(backend)
    logger.debug("Creating %s preconditioner", kind.value)
    if kind is PreconditionerClass.DUMMY:
        return IdentityPreconditioner(A, backend)
    return PRECONDITIONERS[kind](A, prm, backend)


__all__ = [
    "CoarseningType",
    "PreconditionerClass",
    "RelaxationType",
    "SolverType",
    "iterative_solver",
    "preconditioner",
]
