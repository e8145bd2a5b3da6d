"""
Hierarchical configuration for solvers and preconditioners.

Configuration is a tree of key/value pairs addressed with dotted paths such as
``"precond.pressure.coarsening.type"`` or ``"solver.maxiter"``. Components read
their own subtree and turn it into a frozen parameter dataclass.
"""

import json
from collections.abc import Mapping
from dataclasses import fields, is_dataclass, asdict
from typing import Any, Dict, Iterator, Optional, Union

from .errors import ConfigurationError
from .logger import get_logger

logger = get_logger(__name__)

# Keys that select an implementation rather than parametrize it
SELECTOR_KEYS = ("type", "class")


class Params:
    """
    Tree of configuration values addressed by dotted paths.

    Parameters
    ----------
    data : mapping or Params, optional
        Initial values. Nested mappings and dotted keys are both accepted,
        so ``{"solver": {"tol": 1e-6}}`` and ``{"solver.tol": 1e-6}`` are
        equivalent.
    """

    def __init__(self, data: Optional[Union[Mapping, "Params"]] = None):
        self._data: Dict[str, Any] = {}
        if data is not None:
            self.update(data)

    @classmethod
    def from_json(cls, filename: str) -> "Params":
        """Read parameters from a JSON file."""
        try:
            with open(filename, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Invalid parameter file {filename}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"Parameter file {filename} must contain a JSON object")
        return cls(data)

    def update(self, data: Union[Mapping, "Params"]) -> "Params":
        """Merge values from a mapping or another Params tree."""
        if isinstance(data, Params):
            data = data._data
        for key, value in data.items():
            self.put(key, value)
        return self

    def put(self, path: str, value: Any) -> None:
        """Set the value at a dotted path, creating intermediate nodes."""
        if isinstance(value, Params):
            value = value._data
        if isinstance(value, Mapping):
            for key, item in value.items():
                self.put(f"{path}.{key}", item)
            return

        keys = path.split(".")
        node = self._data
        for key in keys[:-1]:
            node = node.setdefault(key, {})
            if not isinstance(node, dict):
                raise ConfigurationError(f"Cannot set {path}: {key} holds a value, not a subtree")
        if isinstance(node.get(keys[-1]), dict):
            raise ConfigurationError(f"Cannot overwrite subtree {path} with a value")
        node[keys[-1]] = value

    def _node(self, path: str) -> Any:
        node: Any = self._data
        for key in path.split("."):
            if not isinstance(node, dict) or key not in node:
                raise KeyError(path)
            node = node[key]
        return node

    def get(self, path: str, default: Any = None) -> Any:
        """Return the value at a dotted path, or ``default`` if it is missing."""
        try:
            node = self._node(path)
        except KeyError:
            return default
        if isinstance(node, dict):
            return Params(node)
        return node

    def sub(self, path: str) -> "Params":
        """Return a copy of the subtree at ``path`` (empty if missing)."""
        try:
            node = self._node(path)
        except KeyError:
            return Params()
        if not isinstance(node, dict):
            raise ConfigurationError(f"{path} holds a value, not a subtree")
        return Params(node)

    def __contains__(self, path: str) -> bool:
        try:
            self._node(path)
        except KeyError:
            return False
        return True

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def keys(self):
        return self._data.keys()

    def to_dict(self) -> Dict[str, Any]:
        """Return the tree as nested dictionaries."""
        # Array values (pressure masks) are shared, not copied
        return _copy_tree(self._data)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Params):
            return self._data == other._data
        return NotImplemented

    def __repr__(self) -> str:
        return f"Params({self._data!r})"


def _copy_tree(node: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: _copy_tree(value) if isinstance(value, dict) else value
        for key, value in node.items()
    }


def params_from(cls, prm: Optional[Union[Mapping, Params]] = None, **overrides):
    """
    Build the parameter dataclass ``cls`` from a configuration subtree.

    Keys matching a field of ``cls`` are passed through, the selector keys
    ``type`` and ``class`` are skipped, and anything else is reported as an
    unknown parameter. ``overrides`` take precedence over ``prm``.

    Parameters
    ----------
    cls : dataclass type
        Parameter dataclass to build.
    prm : mapping, Params, or instance of cls, optional
        Source values.
    **overrides
        Values that replace entries of ``prm``.

    Returns
    -------
    instance of cls
    """
    if is_dataclass(prm) and not isinstance(prm, type):
        values = asdict(prm)
    elif prm is None:
        values = {}
    else:
        values = Params(prm).to_dict()

    names = {f.name for f in fields(cls)}
    kwargs = {}
    for key, value in values.items():
        if key in names:
            kwargs[key] = value
        elif key not in SELECTOR_KEYS:
            logger.warning("Unknown parameter %r ignored by %s", key, cls.__qualname__)
    kwargs.update(overrides)

    try:
        return cls(**kwargs)
    except TypeError as exc:
        raise ConfigurationError(f"Invalid parameters for {cls.__qualname__}: {exc}") from exc


def choice(enum_cls, value):
    """
    Convert a configuration key to a member of the ``str``-valued ``enum_cls``.

    Raises
    ------
    ConfigurationError
        If ``value`` names no member.
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        available = ", ".join(member.value for member in enum_cls)
        raise ConfigurationError(
            f"Unknown {enum_cls.__name__} {value!r}. Available: {available}"
        ) from None
