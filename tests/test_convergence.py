"""Tests for convergence results."""

import numpy as np

from krylov_engine import ConvergenceInfo


class TestConvergenceInfo:

    def test_converged(self):
        info = ConvergenceInfo.from_iteration(12, np.float64(1e-9), 1e-8)
        assert info.converged
        assert info.reason == "Converged"
        assert isinstance(info.relative_residual, float)

    def test_not_converged(self):
        info = ConvergenceInfo.from_iteration(100, 1e-3, 1e-8)
        assert not info.converged
        assert "100 iterations" in info.reason

    def test_breakdown(self):
        """Non-finite residuals are reported as breakdown."""
        info = ConvergenceInfo.from_iteration(3, float("nan"), 1e-8)
        assert not info.converged
        assert info.reason.startswith("Breakdown")

    def test_zero_rhs(self):
        info = ConvergenceInfo.zero_rhs()
        assert tuple(info) == (0, 0.0)
        assert info.converged

    def test_unpacking(self):
        """Results unpack as (iterations, error)."""
        iters, error = ConvergenceInfo(7, 1e-9, converged=True)
        assert iters == 7
        assert error == 1e-9

    def test_to_dict(self):
        info = ConvergenceInfo(4, 1e-10, True, "Converged", solve_time=0.5, setup_time=0.25)
        assert info.to_dict() == {
            "converged": True,
            "niter": 4,
            "relative_residual": 1e-10,
            "time": 0.5,
            "setup_time": 0.25,
            "reason": "Converged",
        }

    def test_str(self):
        text = str(ConvergenceInfo(4, 1e-10, True))
        assert text.startswith("Converged in 4 iterations")
        assert "1.00e-10" in text
