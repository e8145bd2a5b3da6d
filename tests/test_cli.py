"""Tests for the two-step command-line tool."""

import json
import logging

import numpy as np
import pytest

from krylov_engine import io, poisson_2d
from krylov_engine.cli import main, parse_args
from krylov_engine.logger import PACKAGE_LOGGER


@pytest.fixture(autouse=True)
def reset_logging():
    """Remove the handlers main() installs on the package logger."""
    yield
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in logger.handlers[:]:
        if not isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def matrix_file(tmp_path):
    path = tmp_path / "A.mtx"
    io.write_matrix_market(path, poisson_2d(8, 8))
    return path


class TestArguments:
    """Command-line parsing."""

    def test_defaults(self):
        args = parse_args(["-A", "A.mtx", "-m", "%0:2"])

        assert args.coarsening == "smoothed_aggregation"
        assert args.pressure_relaxation == "spai0"
        assert args.flow_relaxation == "ilu0"
        assert args.solver == "bicgstab"
        assert args.output == "out.mtx"
        assert not args.binary

    def test_matrix_required(self):
        with pytest.raises(SystemExit) as exc:
            parse_args(["-m", "%0:2"])
        assert exc.value.code == 2

    def test_help(self, capsys):
        with pytest.raises(SystemExit) as exc:
            parse_args(["--help"])
        assert exc.value.code == 0
        assert "%start:stride" in capsys.readouterr().out

    def test_unknown_solver(self):
        with pytest.raises(SystemExit):
            parse_args(["-A", "A.mtx", "-m", "%0:2", "-s", "minres"])


class TestRun:
    """End-to-end runs of the tool."""

    def test_matrix_market(self, tmp_path, matrix_file, capsys):
        """Both preconditioners solve the system and the solution is written."""
        out = tmp_path / "x.mtx"

        code = main(["-A", str(matrix_file), "-m", "%0:2", "-o", str(out),
                     "--log-level", "WARNING"])

        assert code == 0
        text = capsys.readouterr().out
        assert "RHS was not provided; using default value of 1" in text
        assert "CPR:" in text
        assert "SIMPLE:" in text
        assert text.count("Iterations:") == 2

        x = io.read_dense_matrix_market(out)
        assert x.shape == (64, 1)
        assert np.allclose(poisson_2d(8, 8) @ x.ravel(), 1.0, atol=1e-6)

    def test_binary(self, tmp_path, capsys):
        """Binary matrix, mask and right-hand side files."""
        A = poisson_2d(8, 8)
        mask = np.zeros(64, dtype=np.int8)
        mask[1::3] = 1
        io.write_crs(tmp_path / "A.bin", A)
        io.write_dense(tmp_path / "mask.bin", mask, dtype=np.int8)
        io.write_dense(tmp_path / "b.bin", np.full(64, 2.0))
        out = tmp_path / "x.mtx"

        code = main(["-B", "-A", str(tmp_path / "A.bin"), "-m", str(tmp_path / "mask.bin"),
                     "-b", str(tmp_path / "b.bin"), "-s", "gmres", "-o", str(out),
                     "--log-level", "WARNING"])

        assert code == 0
        assert "RHS was not provided" not in capsys.readouterr().out
        x = io.read_dense_matrix_market(out).ravel()
        assert np.allclose(A @ x, 2.0, atol=1e-6)

    def test_params_file(self, tmp_path, matrix_file, capsys):
        """Values from the parameter file are used."""
        params = tmp_path / "params.json"
        params.write_text(json.dumps({"solver": {"maxiter": 1}}))

        code = main(["-A", str(matrix_file), "-m", "%0:2", "-p", str(params),
                     "-o", str(tmp_path / "x.mtx"), "--log-level", "WARNING"])

        assert code == 0
        assert capsys.readouterr().out.count("Iterations:     1\n") == 2

    def test_wrong_rhs_size(self, tmp_path, matrix_file):
        rhs = tmp_path / "b.mtx"
        io.write_matrix_market(rhs, np.ones(10))

        code = main(["-A", str(matrix_file), "-m", "%0:2", "-b", str(rhs),
                     "-o", str(tmp_path / "x.mtx"), "--log-level", "ERROR"])

        assert code == 1

    def test_missing_file(self, tmp_path):
        code = main(["-B", "-A", str(tmp_path / "missing.bin"), "-m", "%0:2",
                     "--log-level", "ERROR"])
        assert code == 1

    def test_bad_mask_pattern(self, tmp_path, matrix_file):
        code = main(["-A", str(matrix_file), "-m", "%0", "-o", str(tmp_path / "x.mtx"),
                     "--log-level", "ERROR"])
        assert code == 1

    def test_zero_diagonal(self, tmp_path, caplog):
        """A relaxation that cannot be built is reported, not raised."""
        A = poisson_2d(8, 8).tolil()
        A[1, 1] = 0.0
        matrix = tmp_path / "A.mtx"
        io.write_matrix_market(matrix, A.tocsr())

        code = main(["-A", str(matrix), "-m", "%0:2", "-f", "damped_jacobi",
                     "-o", str(tmp_path / "x.mtx"), "--log-level", "ERROR"])

        assert code == 1
        assert "Zero diagonal" in caplog.text

    def test_log_file(self, tmp_path, matrix_file):
        """Timings are logged to the requested file."""
        log_file = tmp_path / "logs" / "run.log"

        code = main(["-A", str(matrix_file), "-m", "%0:2", "-o", str(tmp_path / "x.mtx"),
                     "--log-file", str(log_file)])

        assert code == 0
        assert "CPR setup" in log_file.read_text()
