"""
Utility functions for test matrices and pressure masks.
"""

from typing import Any

import numpy as np
import scipy.sparse as sp

from .errors import ConfigurationError


def poisson_2d(nx: int, ny: int):
    """
    Build 2D Poisson matrix on a regular grid (nx * ny) with Dirichlet BC.
    Returns SciPy CSR matrix of size (nx*ny, nx*ny).

    Parameters
    ----------
    nx : int
        Number of grid points in x-direction
    ny : int
        Number of grid points in y-direction

    Returns
    -------
    A : scipy.sparse.csr_matrix
        The sparse Poisson matrix in CSR format
    """
    N = nx * ny
    main_diag = np.ones(N) * 4.0
    off_diag = np.ones(N - 1) * -1.0
    off_diag2 = np.ones(N - nx) * -1.0

    # Mask out connections across row boundaries
    for i in range(1, ny):
        off_diag[i * nx - 1] = 0.0

    diags = [main_diag, off_diag, off_diag, off_diag2, off_diag2]
    offsets = [0, -1, 1, -nx, nx]
    A = sp.diags(diags, offsets, shape=(N, N), format="csr")
    return A


def pressure_mask(pmask: Any, rows: int) -> np.ndarray:
    """
    Build a boolean pressure mask for a system with ``rows`` unknowns.

    Parameters
    ----------
    pmask : str or array-like
        Either ``"%start:stride"``, marking unknowns ``start``,
        ``start + stride``, ... as pressure, or a mask with one entry per
        unknown (nonzero entries mark pressure).
    rows : int
        Number of unknowns.

    Returns
    -------
    mask : numpy.ndarray of bool

    Raises
    ------
    ConfigurationError
        If the pattern is malformed or the mask has the wrong size.
    """
    if isinstance(pmask, str):
        if not pmask.startswith("%"):
            raise ConfigurationError(f"Pressure mask pattern must look like %start:stride, got {pmask!r}")
        try:
            start, stride = (int(part) for part in pmask[1:].split(":"))
        except ValueError:
            raise ConfigurationError(
                f"Pressure mask pattern must look like %start:stride, got {pmask!r}"
            ) from None
        if start < 0 or stride < 1:
            raise ConfigurationError(f"Invalid pressure mask pattern {pmask!r}")
        mask = np.zeros(rows, dtype=bool)
        mask[start::stride] = True
        return mask

    mask = np.asarray(pmask).ravel() != 0
    if mask.size != rows:
        raise ConfigurationError(
            f"Pressure mask has {mask.size} entries, the system has {rows} rows"
        )
    return mask
