"""
Base backend interface for vector storage and linear-algebra primitives.

A backend supplies no algorithm. It owns the vector and matrix types the
solvers work with and implements the handful of primitives the iteration
loops are written against. All primitives are synchronous, act on vectors
of matching size, and write only the named output.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Union

import numpy as np

from ..errors import AllocationError, BackendError, ConfigurationError


class Backend(ABC):
    """
    Abstract base class for storage/execution backends.

    Parameters
    ----------
    dtype : numpy dtype, optional
        Value type of vectors and matrices. Default is float64.
    device_id : int, optional
        GPU device ID (for GPU backends)
    """

    #: Registry name of the backend
    name: str = ""
    #: Whether vectors are NumPy arrays and matrices SciPy sparse matrices
    is_host: bool = False

    def __init__(self, dtype: Any = np.float64, device_id: Optional[int] = None):
        self.dtype = np.dtype(dtype)
        self.device_id = device_id

    def __repr__(self):
        return f"{type(self).__name__}(dtype={self.dtype.name}, device_id={self.device_id})"

    # Allocation and transfer

    def create_vector(self, n: int) -> Any:
        """
        Allocate a zero-filled vector of size ``n``.

        Raises
        ------
        AllocationError
            If the backend cannot provide a vector of the requested size.
        """
        if n < 0:
            raise AllocationError(f"Cannot allocate a vector of negative size {n}")
        try:
            return self._allocate(int(n))
        except (MemoryError, ValueError, OverflowError) as exc:
            raise AllocationError(
                f"{type(self).__name__} cannot allocate a vector of size {n}: {exc}"
            ) from exc

    @abstractmethod
    def _allocate(self, n: int) -> Any:
        """Backend-specific zero-filled allocation."""
        pass

    @abstractmethod
    def copy_vector(self, v: Any) -> Any:
        """Return a backend vector holding the values of the host array ``v``."""
        pass

    @abstractmethod
    def copy_matrix(self, A: Any) -> Any:
        """Return the backend representation of the sparse matrix ``A``."""
        pass

    @abstractmethod
    def to_host(self, v: Any) -> np.ndarray:
        """Return the values of backend vector ``v`` as a NumPy array."""
        pass

    @abstractmethod
    def direct_solver(self, A: Any) -> Callable[[Any, Any], None]:
        """
        Factorize the host (SciPy) matrix ``A`` for exact solves.

        Returns a callable ``solve(rhs, x)`` that writes ``A^{-1} rhs`` into ``x``.
        Used on the coarsest level of a multigrid hierarchy.
        """
        pass

    # Linear-algebra primitives

    @abstractmethod
    def residual(self, rhs: Any, A: Any, x: Any, out: Any) -> None:
        """out := rhs - A x"""
        pass

    @abstractmethod
    def norm(self, v: Any):
        """Euclidean norm of ``v``."""
        pass

    @abstractmethod
    def inner_product(self, u: Any, v: Any):
        """Inner product <u, v>, returned as a host scalar."""
        pass

    @abstractmethod
    def axpby(self, a, x: Any, b, y: Any) -> None:
        """y := a x + b y"""
        pass

    @abstractmethod
    def axpbypcz(self, a, x: Any, b, y: Any, c, z: Any) -> None:
        """z := a x + b y + c z"""
        pass

    @abstractmethod
    def vmul(self, a, x: Any, y: Any, b, z: Any) -> None:
        """z := a x * y + b z (element-wise product)"""
        pass

    @abstractmethod
    def copy(self, src: Any, dst: Any) -> None:
        """dst := src"""
        pass

    @abstractmethod
    def spmv(self, a, A: Any, x: Any, b, y: Any) -> None:
        """y := a A x + b y"""
        pass

    @abstractmethod
    def clear(self, v: Any) -> None:
        """v := 0"""
        pass


class BackendRegistry:
    """Registry for available backends."""

    _backends: Dict[str, type] = {}
    default: str = "scipy"

    @classmethod
    def register(cls, name: str, backend_class: type):
        """Register a backend class."""
        cls._backends[name] = backend_class

    @classmethod
    def get_backend(cls, name: Optional[str] = None, **kwargs) -> Backend:
        """Get an instance of a backend."""
        name = name or cls.default
        if name not in cls._backends:
            raise ConfigurationError(
                f"Unknown backend: {name}. Available: {list(cls._backends.keys())}"
            )
        return cls._backends[name](**kwargs)

    @classmethod
    def resolve(cls, backend: Union[None, str, Backend]) -> Backend:
        """Accept a backend instance, a registry name, or None for the default."""
        if isinstance(backend, Backend):
            return backend
        return cls.get_backend(backend)

    @classmethod
    def list_backends(cls) -> list[str]:
        """List all registered backends."""
        return list(cls._backends.keys())

    @classmethod
    def auto_select(cls, prefer_gpu: bool = True) -> str:
        """
        Automatically select the best available backend.

        Parameters
        ----------
        prefer_gpu : bool
            Prefer GPU backends if available

        Returns
        -------
        backend_name : str
            Name of the selected backend
        """
        candidates = ["cupy", "scipy"] if prefer_gpu else ["scipy", "cupy"]
        for backend in candidates:
            if backend in cls._backends:
                try:
                    # Try to instantiate to check availability
                    cls.get_backend(backend)
                    return backend
                except BackendError:
                    continue

        raise BackendError("No available backends found")


class ArrayBackend(Backend):
    """
    Primitives shared by backends whose vectors follow the NumPy array API.

    Subclasses set ``xp`` to the array module (``numpy`` or ``cupy``) and
    implement allocation and transfer.
    """

    xp: Any = np

    def residual(self, rhs, A, x, out):
        self.xp.subtract(rhs, A @ x, out=out)

    def norm(self, v):
        return np.float64(self.xp.linalg.norm(v).item())

    def inner_product(self, u, v):
        # Host scalar of the vector dtype: division by zero yields inf/nan
        return self.dtype.type(self.xp.vdot(u, v).item())

    def axpby(self, a, x, b, y):
        if b == 0:
            self.xp.multiply(x, a, out=y)
            return
        if b != 1:
            y *= b
        y += a * x

    def axpbypcz(self, a, x, b, y, c, z):
        self.axpby(a, x, c, z)
        if b != 0:
            z += b * y

    def vmul(self, a, x, y, b, z):
        if b == 0:
            self.xp.multiply(x, y, out=z)
            if a != 1:
                z *= a
            return
        if b != 1:
            z *= b
        z += a * (x * y)

    def copy(self, src, dst):
        dst[...] = src

    def spmv(self, a, A, x, b, y):
        self.axpby(a, A @ x, b, y)

    def clear(self, v):
        v.fill(0)
