"""
Exception hierarchy for the krylov_engine package.
"""


class KrylovError(Exception):
    """Base class for all krylov_engine errors."""

    pass


class AllocationError(KrylovError, MemoryError):
    """Raised when a backend cannot provide vectors of the requested size."""

    pass


class PreconditionViolation(KrylovError, TypeError):
    """Raised when a solve needs a system matrix the preconditioner does not expose."""

    pass


class ConfigurationError(KrylovError, ValueError):
    """Raised for unknown runtime keys or invalid parameter values."""

    pass


class BackendError(KrylovError, RuntimeError):
    """Raised when a backend is unavailable or lacks a requested capability."""

    pass


class FormatError(KrylovError, ValueError):
    """Raised when a matrix or vector file is malformed."""

    pass
