"""Tests for the CPR and SIMPLE two-stage preconditioners."""

import numpy as np
import pytest

from krylov_engine import (
    CPR,
    GMRES,
    SIMPLE,
    BiCGStab,
    ConfigurationError,
    Params,
    poisson_2d,
    pressure_mask,
)


def two_stage_params(pmask, flow="ilu0"):
    return Params({
        "pmask": pmask,
        "pressure": {"coarsening": {"type": "smoothed_aggregation"},
                     "relaxation": {"type": "spai0"}},
        "flow": {"type": flow},
    })


class TestCPR:
    """Constrained pressure residual preconditioner."""

    def test_bicgstab_converges(self, backend, poisson):
        """CPR-preconditioned BiCGStab solves the system."""
        P = CPR(poisson, two_stage_params("%0:2"), backend)
        x = np.zeros(64)

        info = BiCGStab(64, {"maxiter": 100}, backend)(P, np.ones(64), x)

        assert info.converged
        assert np.allclose(poisson @ x, 1.0, atol=1e-6)

    def test_pressure_block(self, backend, poisson):
        """The AMG stage is built on the pressure unknowns only."""
        P = CPR(poisson, two_stage_params("%1:4"), backend)
        assert P.P.top_matrix().shape == (16, 16)
        assert P.pidx.tolist() == list(range(1, 64, 4))

    def test_mask_array(self, backend, poisson):
        """The mask may be given as an array."""
        mask = np.zeros(64, dtype=np.int8)
        mask[::3] = 1
        P = CPR(poisson, two_stage_params(mask), backend)
        x = np.zeros(64)

        info = GMRES(64, {"maxiter": 100}, backend)(P, np.ones(64), x)

        assert info.converged

    @pytest.mark.parametrize("flow", ["spai0", "gauss_seidel", "damped_jacobi"])
    def test_flow_relaxations(self, backend, poisson, flow):
        """Any relaxation can serve as the flow stage."""
        P = CPR(poisson, two_stage_params("%0:2", flow), backend)
        x = np.zeros(64)

        info = BiCGStab(64, {"maxiter": 200}, backend)(P, np.ones(64), x)

        assert info.converged

    def test_top_matrix(self, backend, poisson):
        """The preconditioner exposes the full system matrix."""
        P = CPR(poisson, two_stage_params("%0:2"), backend)
        assert P.top_matrix().shape == (64, 64)


class TestSIMPLE:
    """SIMPLE preconditioner."""

    def test_bicgstab_converges(self, backend, poisson):
        """SIMPLE-preconditioned BiCGStab solves the system."""
        P = SIMPLE(poisson, two_stage_params("%0:2"), backend)
        x = np.zeros(64)

        info = BiCGStab(64, {"maxiter": 100}, backend)(P, np.ones(64), x)

        assert info.converged
        assert np.allclose(poisson @ x, 1.0, atol=1e-6)

    def test_gmres_converges(self, backend):
        """SIMPLE works with GMRES on a larger grid."""
        A = poisson_2d(16, 16)
        P = SIMPLE(A, two_stage_params("%1:3"), backend)
        x = np.zeros(256)

        info = GMRES(256, {"maxiter": 200}, backend)(P, np.ones(256), x)

        assert info.converged
        assert np.allclose(A @ x, 1.0, atol=1e-6)

    def test_block_sizes(self, backend, poisson):
        """Flow and pressure blocks follow the mask."""
        P = SIMPLE(poisson, two_stage_params("%0:4"), backend)
        assert P.U.top_matrix().shape == (48, 48)
        assert P.P.top_matrix().shape == (16, 16)

    def test_zero_flow_diagonal(self, backend):
        """The Schur complement needs a nonzero flow diagonal."""
        A = poisson_2d(4, 4).tolil()
        A[1, 1] = 0.0
        with pytest.raises(ConfigurationError):
            SIMPLE(A.tocsr(), two_stage_params("%0:2"), backend)


class TestPressureMask:
    """Validation of the pressure mask."""

    @pytest.mark.parametrize("cls", [CPR, SIMPLE])
    def test_missing_mask(self, backend, poisson, cls):
        """A pressure mask is required."""
        with pytest.raises(ConfigurationError):
            cls(poisson, {"flow": {"type": "spai0"}}, backend)

    @pytest.mark.parametrize("cls", [CPR, SIMPLE])
    def test_wrong_size(self, backend, poisson, cls):
        """The mask must have one entry per row."""
        with pytest.raises(ConfigurationError):
            cls(poisson, two_stage_params(np.ones(10)), backend)

    @pytest.mark.parametrize("mask", [np.ones(64), np.zeros(64)])
    def test_single_phase_mask(self, backend, poisson, mask):
        """Both pressure and flow unknowns must be present."""
        with pytest.raises(ConfigurationError):
            CPR(poisson, two_stage_params(mask), backend)

    def test_pattern(self):
        """%start:stride marks every stride-th unknown from start."""
        mask = pressure_mask("%1:3", 10)
        assert np.flatnonzero(mask).tolist() == [1, 4, 7]

    @pytest.mark.parametrize("pmask", ["%1", "%a:b", "1:2", "%0:0"])
    def test_bad_pattern(self, pmask):
        """Malformed patterns are configuration errors."""
        with pytest.raises(ConfigurationError):
            pressure_mask(pmask, 10)
