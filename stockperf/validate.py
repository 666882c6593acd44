# stockperf/validate.py
from __future__ import annotations
import os, sys, json
from pathlib import Path
from typing import Any, Dict, Iterable, List
import yaml

from .schema import (
    NON_NEGATIVE_FIELDS,
    QUOTE_FIELDS,
    REPORT_KEYS,
    SOLVER_SCHEMA,
    TOP_LEVEL_KEYS,
    TRANSACTION_FIELDS,
)


def _mode_from_env_or_flag(flag: str | None) -> str:
    if flag in ("strict", "relaxed"):
        return flag
    env = (os.environ.get("VALIDATION_MODE") or "").lower()
    return env if env in ("strict", "relaxed") else "relaxed"


def _within(x: float, lo: float, hi: float) -> bool:
    return (x >= lo) and (x <= hi)


def validate_solver_dict(d: Dict[str, Any], *, where: str = "<mem>") -> Dict[str, Any]:
    """Bounds-check solver overrides; echo back validated keys."""
    if not isinstance(d, dict):
        raise ValueError(f"{where}: solver section must be a mapping")
    unknown = [k for k in d if k not in SOLVER_SCHEMA]
    if unknown:
        raise ValueError(f"{where}: unknown solver keys: {unknown}")
    validated: Dict[str, Any] = {}
    for k, bounds in SOLVER_SCHEMA.items():
        if k in d:
            v = float(d[k])
            lo = float(bounds.get("min", float("-inf")))
            hi = float(bounds.get("max", float("inf")))
            if not _within(v, lo, hi):
                raise ValueError(f"{where}: {k} outside allowed range [{lo}, {hi}]: {v}")
            validated[k] = d[k]
    return validated


def _validate_record(rec: Any, required: Iterable[str], optional: Iterable[str], where: str) -> None:
    if not isinstance(rec, dict):
        raise SystemExit(f"{where}: expected a mapping, got {type(rec).__name__}")
    missing = [k for k in required if rec.get(k) in (None, "")]
    if missing:
        raise SystemExit(f"{where}: missing required keys: {missing}")
    allowed = set(required) | set(optional) | {"kind"}
    unknown = [k for k in rec if k not in allowed]
    if unknown:
        raise SystemExit(f"{where}: unknown keys: {unknown}")
    for k in NON_NEGATIVE_FIELDS:
        if rec.get(k) in (None, ""):
            continue
        try:
            v = float(rec[k])
        except (TypeError, ValueError):
            raise SystemExit(f"{where}: {k} is not a number: {rec[k]!r}") from None
        if v < 0:
            raise SystemExit(f"{where}: {k} must be >= 0")


def validate_transaction_records(records: Any, *, where: str = "transactions") -> None:
    if not isinstance(records, list):
        raise SystemExit(f"{where} must be a list")
    for i, rec in enumerate(records):
        kind = str(rec.get("kind", "")).lower() if isinstance(rec, dict) else ""
        fields = TRANSACTION_FIELDS.get(kind)
        if fields is None:
            raise SystemExit(f"{where}[{i}]: kind must be one of {sorted(TRANSACTION_FIELDS)}")
        _validate_record(rec, fields["required"], fields["optional"], f"{where}[{i}]")


def validate_quote_records(records: Any, *, where: str = "quotes") -> None:
    if not isinstance(records, list):
        raise SystemExit(f"{where} must be a list")
    for i, rec in enumerate(records):
        _validate_record(rec, QUOTE_FIELDS["required"], QUOTE_FIELDS["optional"], f"{where}[{i}]")


def validate_portfolio_dict(data: Dict[str, Any], *, mode: str = "relaxed") -> None:
    """
    Minimal guardrails:
      - relaxed: require transactions (inline or transactions_csv)
      - strict : also require report.years and reject unknown top-level keys
    """
    if "transactions" not in data and "transactions_csv" not in data:
        raise SystemExit("missing required keys: ['transactions']")

    report = data.get("report") or {}
    if not isinstance(report, dict):
        raise SystemExit("report must be a mapping")

    if mode == "strict":
        unknown = [k for k in data.keys() if k not in TOP_LEVEL_KEYS]
        if unknown:
            raise SystemExit(f"unknown top-level keys (strict mode): {unknown}")
        if not report.get("years"):
            raise SystemExit("strict mode requires 'report.years'")
        unknown = [k for k in report.keys() if k not in REPORT_KEYS]
        if unknown:
            raise SystemExit(f"unknown report keys (strict mode): {unknown}")

    years = report.get("years")
    if years is not None:
        if not isinstance(years, list) or not all(isinstance(y, int) and 1900 <= y <= 2200 for y in years):
            raise SystemExit("report.years must be a list of years")

    if "transactions" in data:
        validate_transaction_records(data["transactions"])
    if "quotes" in data:
        validate_quote_records(data["quotes"])

    solver = data.get("solver")
    if solver is not None:
        try:
            validate_solver_dict(solver, where="solver")
        except ValueError as e:
            raise SystemExit(str(e)) from None


def load_params_from_file(path: Path) -> Dict[str, Any]:
    p = Path(path)
    if p.is_dir():
        # scenario_runner handles directories; keep this function file-only
        raise SystemExit(f"{p} is a directory (expected a file)")
    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in (".yaml", ".yml"):
        return yaml.safe_load(text) or {}
    return json.loads(text or "{}")


def _iter_input_files(p: Path) -> Iterable[Path]:
    if p.is_file():
        yield p
    elif p.is_dir():
        for ext in ("*.yaml", "*.yml", "*.json"):
            yield from sorted(p.rglob(ext))


def _main(argv: List[str] | None = None) -> int:
    import argparse
    parser = argparse.ArgumentParser(prog="stockperf.validate", add_help=True)
    parser.add_argument("paths", nargs="+", help="YAML/JSON portfolio files or directories to validate")
    parser.add_argument("--mode", choices=["strict", "relaxed"], default=None, help="validation mode")
    args = parser.parse_args(argv)

    mode = _mode_from_env_or_flag(args.mode)
    had_error = False

    for raw in args.paths:
        target = Path(raw)
        any_seen = False
        for f in _iter_input_files(target):
            if not f.is_file():
                continue
            any_seen = True
            try:
                data = load_params_from_file(f)
                validate_portfolio_dict(data, mode=mode)
                print(f"OK: {f}")
            except SystemExit as e:
                print(f"{f}: {e}", file=sys.stderr)
                had_error = True
            except (ValueError, yaml.YAMLError) as e:
                print(f"{f}: ERROR: {e}", file=sys.stderr)
                had_error = True
        if not any_seen:
            print(f"{target}: no YAML/JSON files found", file=sys.stderr)
            had_error = True

    return 1 if had_error else 0


if __name__ == "__main__":
    raise SystemExit(_main())
