"""
Preconditioned Krylov solvers sharing one calling convention.
"""

from .base import IterativeSolver
from .bicgstab import BiCGStab
from .bicgstabl import BiCGStabL
from .cg import CG
from .gmres import GMRES

__all__ = ["IterativeSolver", "CG", "BiCGStab", "BiCGStabL", "GMRES"]
