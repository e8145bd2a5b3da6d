"""
Preconditioner contract and the simplest preconditioners.

A preconditioner is any object with ``apply(rhs, x)`` writing an approximate
solution ``x ~= M^{-1} rhs`` into a vector created by the same backend.
Preconditioners built from a particular system matrix also expose
``top_matrix()``, which lets solvers run without an explicit matrix.
"""

from typing import Any, Callable, Optional, Protocol, Union, runtime_checkable

from .backends import Backend, BackendRegistry
from .errors import PreconditionViolation


@runtime_checkable
class Preconditioner(Protocol):
    """Anything that approximately solves ``M x = rhs``."""

    def apply(self, rhs: Any, x: Any) -> None:
        ...


@runtime_checkable
class MatrixPreconditioner(Preconditioner, Protocol):
    """Preconditioner that also exposes the matrix it approximates."""

    def top_matrix(self) -> Any:
        ...


def system_matrix(P: Any) -> Any:
    """
    Return the system matrix a preconditioner was built from.

    Raises
    ------
    PreconditionViolation
        If ``P`` does not expose ``top_matrix()``.
    """
    top_matrix = getattr(P, "top_matrix", None)
    if top_matrix is None:
        raise PreconditionViolation(
            f"{type(P).__name__} does not expose top_matrix(); "
            "pass the system matrix explicitly"
        )
    return top_matrix()


class IdentityPreconditioner:
    """
    No-op preconditioner: ``x := rhs``.

    Parameters
    ----------
    A : sparse matrix, optional
        System matrix returned by ``top_matrix()``.
    backend : Backend or str, optional
        Backend used for the copy (and to hold ``A``).
    """

    def __init__(self, A: Any = None, backend: Union[None, str, Backend] = None):
        self.backend = BackendRegistry.resolve(backend)
        self.A = self.backend.copy_matrix(A) if A is not None else None

    def apply(self, rhs, x):
        self.backend.copy(rhs, x)

    def top_matrix(self):
        if self.A is None:
            raise PreconditionViolation("IdentityPreconditioner was built without a matrix")
        return self.A


class OperatorPreconditioner:
    """
    User-defined preconditioner.

    Wraps a SciPy ``LinearOperator`` (anything with ``matvec``) or a plain
    callable ``y = M(x)`` returning a new vector.

    Parameters
    ----------
    operator : LinearOperator or callable
        Approximate inverse of the system matrix.
    A : sparse matrix, optional
        System matrix returned by ``top_matrix()``.
    backend : Backend or str, optional
        Backend the operator's vectors belong to.
    """

    def __init__(self,
                 operator: Union[Callable[[Any], Any], Any],
                 A: Any = None,
                 backend: Union[None, str, Backend] = None):
        self.backend = BackendRegistry.resolve(backend)
        if hasattr(operator, "matvec"):
            self._matvec = operator.matvec
        elif callable(operator):
            self._matvec = operator
        else:
            raise TypeError(f"Cannot use {type(operator).__name__} as a preconditioner")
        self.A: Optional[Any] = self.backend.copy_matrix(A) if A is not None else None

    def apply(self, rhs, x):
        self.backend.copy(self._matvec(rhs), x)

    def top_matrix(self):
        if self.A is None:
            raise PreconditionViolation("OperatorPreconditioner was built without a matrix")
        return self.A
