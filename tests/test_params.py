"""Tests for the hierarchical configuration tree."""

import json
import logging
from dataclasses import dataclass

import pytest

from krylov_engine import ConfigurationError, Params, SolverType
from krylov_engine.params import choice, params_from


@dataclass(frozen=True)
class _Sample:
    tol: float = 1e-8
    maxiter: int = 100


class TestParams:
    """Dotted-path access and merging."""

    def test_dotted_and_nested_equivalent(self):
        """Dotted keys and nested mappings build the same tree."""
        a = Params({"solver.tol": 1e-6, "solver.type": "cg"})
        b = Params({"solver": {"tol": 1e-6, "type": "cg"}})
        assert a == b
        assert a.to_dict() == {"solver": {"tol": 1e-6, "type": "cg"}}

    def test_get(self):
        prm = Params({"precond.pressure.coarsening.type": "ruge_stuben"})

        assert prm.get("precond.pressure.coarsening.type") == "ruge_stuben"
        assert prm.get("precond.flow.type") is None
        assert prm.get("precond.flow.type", "spai0") == "spai0"
        assert isinstance(prm.get("precond.pressure"), Params)
        assert "precond.pressure" in prm
        assert "precond.flow" not in prm

    def test_sub_is_a_copy(self):
        """Changing a subtree does not touch the parent."""
        prm = Params({"solver.tol": 1e-6})
        sub = prm.sub("solver")
        sub.put("tol", 1.0)

        assert prm.get("solver.tol") == 1e-6
        assert len(prm.sub("missing")) == 0

    def test_put_merges(self):
        """Putting a mapping merges into an existing subtree."""
        prm = Params({"precond": {"class": "cpr", "pmask": "%0:2"}})
        prm.put("precond", {"flow": {"type": "ilu0"}})

        assert prm.get("precond.class") == "cpr"
        assert prm.get("precond.flow.type") == "ilu0"

    def test_overwrite_subtree_fails(self):
        prm = Params({"solver.tol": 1e-6})
        with pytest.raises(ConfigurationError):
            prm.put("solver", 3)

    def test_value_is_not_a_subtree(self):
        prm = Params({"solver": "cg"})
        with pytest.raises(ConfigurationError):
            prm.put("solver.tol", 1e-6)
        with pytest.raises(ConfigurationError):
            prm.sub("solver")


class TestJson:
    """Reading parameter files."""

    def test_from_json(self, tmp_path):
        path = tmp_path / "params.json"
        path.write_text(json.dumps({"solver": {"maxiter": 50}, "precond.class": "amg"}))

        prm = Params.from_json(str(path))

        assert prm.get("solver.maxiter") == 50
        assert prm.get("precond.class") == "amg"

    @pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]"])
    def test_invalid(self, tmp_path, content):
        """Malformed files and non-object documents are rejected."""
        path = tmp_path / "params.json"
        path.write_text(content)
        with pytest.raises(ConfigurationError):
            Params.from_json(str(path))


class TestParamsFrom:
    """Conversion of subtrees to parameter dataclasses."""

    def test_fields(self):
        prm = params_from(_Sample, {"tol": 1e-4, "type": "cg"})
        assert prm == _Sample(tol=1e-4)

    def test_overrides(self):
        prm = params_from(_Sample, {"tol": 1e-4}, tol=1e-2, maxiter=5)
        assert prm == _Sample(tol=1e-2, maxiter=5)

    def test_from_instance(self):
        assert params_from(_Sample, _Sample(maxiter=7)).maxiter == 7

    def test_unknown_key_warns(self, caplog):
        """Unknown keys are logged and ignored."""
        with caplog.at_level(logging.WARNING, logger="krylov_engine"):
            prm = params_from(_Sample, {"tolerance": 1e-4})

        assert prm == _Sample()
        assert "tolerance" in caplog.text


class TestChoice:
    """Enum selection from configuration values."""

    def test_case_insensitive(self):
        assert choice(SolverType, "GMRES") is SolverType.GMRES

    def test_member_passes_through(self):
        assert choice(SolverType, SolverType.CG) is SolverType.CG

    def test_unknown_lists_available(self):
        with pytest.raises(ConfigurationError, match="bicgstab"):
            choice(SolverType, "minres")
