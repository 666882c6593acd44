from __future__ import annotations

from typing import Any, Dict, Tuple
import os
import io
import yaml

from .finance.irr import SolverSettings
from .schema import SOLVER_SCHEMA
from .validate import validate_solver_dict


def _parse_yaml_fallback(text: str) -> Dict[str, Any]:
    """
    Super-tolerant parser for key: value lines (only for emergencies).
    Booleans and numbers are coerced when obvious.
    """
    data: Dict[str, Any] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if ":" not in line:
            continue
        k, v = line.split(":", 1)
        k = k.strip()
        v = v.strip().strip('"').strip("'")
        try:
            if v.lower() in ("true", "false"):
                data[k] = v.lower() == "true"
            else:
                data[k] = float(v) if "." in v else int(v)
        except ValueError:
            data[k] = v
    return data


def _split_solver(d: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    d = dict(d)
    solver = d.pop("solver", None) or {}
    if not isinstance(solver, dict):
        raise ValueError("solver section must be a mapping")
    return d, solver


def load_portfolio_config(
    source: str | os.PathLike | io.StringIO,
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Load YAML (or JSON) from a path or text stream. If YAML fails, use a tolerant fallback.
    Returns (portfolio_config, solver_section).
    """
    text: str
    if hasattr(source, "read"):
        text = str(source.read())
    else:
        p = os.fspath(source)
        with open(p, "r", encoding="utf-8") as f:
            text = f.read()

    try:
        cfg = yaml.safe_load(text) or {}
        if not isinstance(cfg, dict):
            cfg = {}
    except yaml.YAMLError:
        cfg = _parse_yaml_fallback(text)

    return _split_solver(cfg)


def solver_settings_from_config(solver: Dict[str, Any], *, where: str = "solver") -> SolverSettings:
    """Bounds-check a `solver:` section and build SolverSettings (unset keys keep defaults)."""
    validate_solver_dict(solver, where=where)
    kwargs: Dict[str, Any] = {}
    for k, spec in SOLVER_SCHEMA.items():
        if k in solver:
            kwargs[k] = int(solver[k]) if spec["type"] == "int" else float(solver[k])
    return SolverSettings(**kwargs)
