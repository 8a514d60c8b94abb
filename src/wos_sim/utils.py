# src/wos_sim/utils.py
from __future__ import annotations

import json
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np

from .errors import ConfigurationError

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover
    tomllib = None  # type: ignore


@dataclass
class SolutionResult:
    """Snapshot of a solver run: the normalized estimate plus run metadata."""

    solution: Optional[np.ndarray] = None
    meta: Optional[Dict[str, Any]] = None

    def ensure_meta(self) -> Dict[str, Any]:
        if self.meta is None:
            self.meta = {}
        return self.meta


def now_str() -> str:
    return time.strftime("%Y%m%d-%H%M%S")


def save_solution_result(
    path: str | os.PathLike[str], result: SolutionResult, *, overwrite: bool = True
) -> None:
    """Serialize a SolutionResult to a compressed .npz file."""
    if not overwrite and Path(path).exists():
        raise FileExistsError(f"{path} already exists")
    out_dir = Path(path).parent
    out_dir.mkdir(parents=True, exist_ok=True)
    out: Dict[str, Any] = {}
    if result.solution is not None:
        out["solution"] = np.asarray(result.solution, dtype=np.float64)

    # Arrays go to the top level, everything else into the pickled meta dict
    meta = result.meta or {}
    meta_clean = {}
    for key, value in meta.items():
        if isinstance(value, np.ndarray):
            out[key] = value
        else:
            meta_clean[key] = value
    out["meta"] = meta_clean
    np.savez_compressed(path, **out)


def load_solution_result(path: str | os.PathLike[str]) -> SolutionResult:
    """
    Load a .npz written by save_solution_result.
    """
    data = np.load(path, allow_pickle=True)
    solution = data["solution"].astype(np.float64) if "solution" in data else None
    meta: Dict[str, Any] = {}
    if "meta" in data:
        meta_raw = data["meta"]
        if hasattr(meta_raw, "item"):
            try:
                meta = meta_raw.item()
            except ValueError:
                meta = {}
    for key in data.files:
        if key not in ("solution", "meta") and key not in meta:
            meta[key] = data[key]
    return SolutionResult(solution=solution, meta=meta)


def _parse_toml(text: str) -> Any:
    if tomllib is None:
        raise RuntimeError("TOML run configs need tomllib (Python 3.11+)")
    return tomllib.loads(text)


CONFIG_PARSERS = {
    ".json": json.loads,
    "": json.loads,
    ".toml": _parse_toml,
    ".tml": _parse_toml,
}
CONFIG_SECTIONS = ("levelset", "boundary", "solver")


def load_params(path: str | os.PathLike[str]) -> Dict[str, Any]:
    """
    Load a run config (as taken by ``run_model``) from JSON or TOML.

    Only the shape is checked here: the top level and the ``levelset``,
    ``boundary`` and ``solver`` sections must be tables. Values are
    validated when the solver is built.

    Raises:
        ConfigurationError: unknown suffix, unparsable text or wrong shape.
    """
    path = Path(path)
    parse = CONFIG_PARSERS.get(path.suffix.lower())
    if parse is None:
        raise ConfigurationError(
            f"Unsupported run config format {path.suffix!r} for {path.name}, use .json or .toml"
        )
    try:
        config = parse(path.read_text(encoding="utf-8"))
    except ValueError as e:  # JSONDecodeError and TOMLDecodeError
        raise ConfigurationError(f"Could not parse {path}: {e}") from e

    if not isinstance(config, dict):
        raise ConfigurationError(f"{path.name}: top level must be a table, got {type(config).__name__}")
    for section in CONFIG_SECTIONS:
        if section in config and not isinstance(config[section], dict):
            raise ConfigurationError(f"{path.name}: [{section}] must be a table")
    return config
