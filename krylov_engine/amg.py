"""
Algebraic multigrid preconditioner.

The grid hierarchy (strength of connection, coarsening, interpolation) is
built by pyamg. The cycle itself runs on a krylov_engine backend with the
relaxations from ``krylov_engine.relaxation``, so the same hierarchy can be
applied on the CPU or the GPU.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Union

import pyamg
import scipy.sparse as sp

from .backends import Backend, BackendRegistry
from .errors import ConfigurationError
from .logger import get_logger
from .params import Params, choice, params_from
from .relaxation import Relaxation, RelaxationType, make_relaxation

logger = get_logger(__name__)


class CoarseningType(str, Enum):
    RUGE_STUBEN = "ruge_stuben"
    AGGREGATION = "aggregation"
    SMOOTHED_AGGREGATION = "smoothed_aggregation"
    SMOOTHED_AGGR_EMIN = "smoothed_aggr_emin"


def build_hierarchy(kind, A: sp.csr_matrix, max_levels: int, max_coarse: int, **options):
    """
    Build a pyamg multilevel solver for ``A`` with the selected coarsening.

    ``options`` are passed to the pyamg constructor unchanged.
    """
    kind = choice(CoarseningType, kind)
    if kind is CoarseningType.RUGE_STUBEN:
        return pyamg.ruge_stuben_solver(A, max_levels=max_levels, max_coarse=max_coarse, **options)
    if kind is CoarseningType.AGGREGATION:
        options.setdefault("smooth", None)
    elif kind is CoarseningType.SMOOTHED_AGGR_EMIN:
        options.setdefault("smooth", "energy")
    return pyamg.smoothed_aggregation_solver(
        A, max_levels=max_levels, max_coarse=max_coarse, **options
    )


class _Level:
    """One level of the hierarchy in backend storage."""

    def __init__(self, A: Any, rows: int, nnz: int):
        self.A = A
        self.rows = rows
        self.nnz = nnz
        self.P: Any = None
        self.R: Any = None
        self.relax: Optional[Relaxation] = None
        self.solve: Optional[Callable[[Any, Any], None]] = None
        # Right-hand side, solution and scratch vectors of this level
        self.f: Any = None
        self.u: Any = None
        self.t: Any = None


class AMG:
    """
    Algebraic multigrid preconditioner.

    Parameters
    ----------
    A : sparse matrix
        System matrix.
    params : mapping or Params, optional
        ``coarsening.type`` and ``relaxation.type`` select the coarsening and
        the smoother; other keys under ``coarsening`` go to pyamg, other keys
        under ``relaxation`` go to the smoother. Remaining keys are fields
        of ``AMG.Params``.
    backend : Backend or str, optional
        Backend the cycle runs on.
    """

    @dataclass(frozen=True)
    class Params:
        coarsening: str = CoarseningType.SMOOTHED_AGGREGATION.value
        relaxation: str = RelaxationType.SPAI0.value
        #: Maximum number of levels.
        max_levels: int = 10
        #: Levels with at most this many unknowns are solved directly.
        max_coarse: int = 300
        #: Pre-smoothing steps per level.
        npre: int = 1
        #: Post-smoothing steps per level.
        npost: int = 1
        #: Coarse corrections per level: 1 is a V-cycle, 2 a W-cycle.
        ncycle: int = 1
        #: Cycles per application; 0 reduces the preconditioner to the identity.
        pre_cycles: int = 1

        def __post_init__(self):
            if self.max_levels < 1 or self.max_coarse < 1:
                raise ConfigurationError("max_levels and max_coarse must be positive")
            if self.npre < 0 or self.npost < 0 or self.pre_cycles < 0:
                raise ConfigurationError("npre, npost and pre_cycles must be non-negative")
            if self.ncycle < 1:
                raise ConfigurationError(f"ncycle must be positive, got {self.ncycle}")

    def __init__(self, A: Any, params: Any = None, backend: Union[None, str, Backend] = None):
        prm = Params(params)
        coarsening, coarsening_options = _selector(prm, "coarsening", CoarseningType.SMOOTHED_AGGREGATION)
        relaxation, relaxation_params = _selector(prm, "relaxation", RelaxationType.SPAI0)

        self.backend = BackendRegistry.resolve(backend)
        self.prm = params_from(
            AMG.Params, prm,
            coarsening=choice(CoarseningType, coarsening).value,
            relaxation=choice(RelaxationType, relaxation).value,
        )

        t0 = time.perf_counter()
        A = sp.csr_matrix(A)
        ml = build_hierarchy(self.prm.coarsening, A, self.prm.max_levels,
                             self.prm.max_coarse, **coarsening_options)

        self.levels: List[_Level] = []
        nlevels = len(ml.levels)
        for i, pyamg_level in enumerate(ml.levels):
            A_host = sp.csr_matrix(pyamg_level.A)
            level = _Level(self.backend.copy_matrix(A_host), A_host.shape[0], A_host.nnz)
            level.t = self.backend.create_vector(level.rows)
            if i > 0:
                level.f = self.backend.create_vector(level.rows)
                level.u = self.backend.create_vector(level.rows)
            if i < nlevels - 1:
                level.P = self.backend.copy_matrix(pyamg_level.P)
                level.R = self.backend.copy_matrix(pyamg_level.R)
                level.relax = make_relaxation(self.prm.relaxation, A_host,
                                              relaxation_params, self.backend)
            else:
                level.solve = self.backend.direct_solver(A_host)
            self.levels.append(level)

        logger.debug("AMG setup in %.4fs:\n%s", time.perf_counter() - t0, self)

    def apply(self, rhs, x):
        if self.prm.pre_cycles:
            self.backend.clear(x)
            for _ in range(self.prm.pre_cycles):
                self._cycle(0, rhs, x)
        else:
            self.backend.copy(rhs, x)

    def _cycle(self, k: int, rhs, x):
        bk = self.backend
        level = self.levels[k]

        if level.solve is not None:
            level.solve(rhs, x)
            return

        coarse = self.levels[k + 1]
        for _ in range(self.prm.ncycle):
            for _ in range(self.prm.npre):
                level.relax.apply_pre(level.A, rhs, x, level.t)

            bk.residual(rhs, level.A, x, level.t)
            bk.spmv(1, level.R, level.t, 0, coarse.f)
            bk.clear(coarse.u)
            self._cycle(k + 1, coarse.f, coarse.u)
            bk.spmv(1, level.P, coarse.u, 1, x)

            for _ in range(self.prm.npost):
                level.relax.apply_post(level.A, rhs, x, level.t)

    def top_matrix(self):
        return self.levels[0].A

    def operator_complexity(self) -> float:
        """Total nonzeros of all levels relative to the finest level."""
        return sum(level.nnz for level in self.levels) / self.levels[0].nnz

    def __str__(self):
        lines = [
            f"Number of levels:    {len(self.levels)}",
            f"Operator complexity: {self.operator_complexity():.2f}",
            "",
            "level     unknowns       nonzeros",
            "---------------------------------",
        ]
        total = sum(level.nnz for level in self.levels)
        for i, level in enumerate(self.levels):
            share = 100.0 * level.nnz / total
            lines.append(f"{i:5d} {level.rows:12d} {level.nnz:14d} ({share:5.2f}%)")
        return "\n".join(lines)


def _selector(prm: Params, key: str, default):
    """
    Split ``prm[key]`` into the selected kind and the remaining options.

    Accepts both a subtree with a ``type`` entry and a plain value.
    """
    value = prm.get(key)
    if isinstance(value, Params):
        options = value.to_dict()
        kind = options.pop("type", default)
        return kind, options
    return (default if value is None else value), {}
