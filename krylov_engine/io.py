"""
Reading and writing matrices and vectors.

Two formats are supported: Matrix Market text files (through
``scipy.io``) and a raw little-endian binary layout::

    CRS matrix:   uint64 rows; int64 ptr[rows + 1]; int64 col[nnz]; float64 val[nnz]
    dense array:  uint64 n; uint64 m; value[n * m] (row-major)
"""

import os
from typing import Any, Union

import numpy as np
import scipy.io
import scipy.sparse as sp

from .errors import FormatError

PathLike = Union[str, os.PathLike]

_SIZE = np.dtype("<u8")
_INDEX = np.dtype("<i8")
_VALUE = np.dtype("<f8")


def read_matrix_market(path: PathLike) -> sp.csr_matrix:
    """
    Load a sparse matrix from a Matrix Market file.

    Parameters
    ----------
    path : str or path-like
        Path to the Matrix Market file (.mtx)

    Returns
    -------
    A : scipy.sparse.csr_matrix
        The sparse matrix in CSR format

    Raises
    ------
    FormatError
        If the file is not a valid Matrix Market file.
    """
    A = _mmread(path)
    if not sp.issparse(A):
        A = sp.csr_matrix(A)
    return A.tocsr()


def read_dense_matrix_market(path: PathLike) -> np.ndarray:
    """Load a dense Matrix Market file as a 2D array of shape (n, m)."""
    A = _mmread(path)
    if sp.issparse(A):
        A = A.toarray()
    A = np.asarray(A)
    if A.ndim == 1:
        A = A.reshape(-1, 1)
    return A


def write_matrix_market(path: PathLike, data: Any) -> None:
    """Write a sparse matrix or a dense array (vectors as one column)."""
    if not sp.issparse(data):
        data = np.asarray(data)
        if data.ndim == 1:
            data = data.reshape(-1, 1)
    scipy.io.mmwrite(path, data)


def _mmread(path: PathLike):
    try:
        return scipy.io.mmread(path)
    except (ValueError, IndexError) as exc:
        raise FormatError(f"{path}: not a valid Matrix Market file: {exc}") from exc


def _take(buf: bytes, offset: int, dtype: np.dtype, count: int, path: PathLike) -> np.ndarray:
    end = offset + count * dtype.itemsize
    if count < 0 or end > len(buf):
        raise FormatError(f"{path}: file is truncated")
    return np.frombuffer(buf, dtype=dtype, count=count, offset=offset)


def read_crs(path: PathLike) -> sp.csr_matrix:
    """
    Read a square sparse matrix stored in the binary CRS layout.

    Raises
    ------
    FormatError
        If the file is truncated, has trailing data, or holds an invalid
        row pointer or column index.
    """
    with open(path, "rb") as fh:
        buf = fh.read()

    rows = int(_take(buf, 0, _SIZE, 1, path)[0])
    offset = _SIZE.itemsize
    ptr = _take(buf, offset, _INDEX, rows + 1, path)
    offset += ptr.nbytes

    nnz = int(ptr[-1])
    if ptr[0] != 0 or np.any(np.diff(ptr) < 0):
        raise FormatError(f"{path}: invalid row pointer")
    col = _take(buf, offset, _INDEX, nnz, path)
    offset += col.nbytes
    val = _take(buf, offset, _VALUE, nnz, path)
    offset += val.nbytes

    if offset != len(buf):
        raise FormatError(f"{path}: {len(buf) - offset} unexpected trailing bytes")
    if nnz and (col.min() < 0 or col.max() >= rows):
        raise FormatError(f"{path}: column index out of range")

    return sp.csr_matrix((val.copy(), col.copy(), ptr.copy()), shape=(rows, rows))


def write_crs(path: PathLike, A: Any) -> None:
    """Write a square sparse matrix in the binary CRS layout."""
    A = sp.csr_matrix(A)
    rows = A.shape[0]
    with open(path, "wb") as fh:
        fh.write(np.array([rows], dtype=_SIZE).tobytes())
        fh.write(A.indptr.astype(_INDEX).tobytes())
        fh.write(A.indices.astype(_INDEX).tobytes())
        fh.write(A.data.astype(_VALUE).tobytes())


def read_dense(path: PathLike, dtype: Any = np.float64) -> np.ndarray:
    """
    Read an ``n x m`` array stored in the binary dense layout.

    Parameters
    ----------
    path : str or path-like
        File to read.
    dtype : numpy dtype, optional
        Type of the stored values; pressure masks are stored as one byte
        per entry (``numpy.int8``).

    Raises
    ------
    FormatError
        If the file size does not match the header.
    """
    with open(path, "rb") as fh:
        buf = fh.read()

    n, m = (int(v) for v in _take(buf, 0, _SIZE, 2, path))
    dtype = np.dtype(dtype).newbyteorder("<")
    offset = 2 * _SIZE.itemsize
    values = _take(buf, offset, dtype, n * m, path)
    if offset + values.nbytes != len(buf):
        raise FormatError(f"{path}: size does not match the {n}x{m} header")
    return values.reshape(n, m).copy()


def write_dense(path: PathLike, data: Any, dtype: Any = np.float64) -> None:
    """Write a 1D or 2D array in the binary dense layout."""
    data = np.asarray(data, dtype=np.dtype(dtype).newbyteorder("<"))
    if data.ndim == 1:
        data = data.reshape(-1, 1)
    n, m = data.shape
    with open(path, "wb") as fh:
        fh.write(np.array([n, m], dtype=_SIZE).tobytes())
        fh.write(np.ascontiguousarray(data).tobytes())
