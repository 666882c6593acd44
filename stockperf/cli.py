# stockperf/cli.py
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

# Only imports the thin runner; the math stays behind scenario_runner
from .scenario_runner import MODES, run_dir

DEMO_DIR = Path(__file__).resolve().parent / "inputs" / "portfolios"


def parse_args(argv: list[str] | None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="stockperf",
        description="Money-weighted (XIRR) performance of a stock portfolio",
    )
    p.add_argument(
        "--mode",
        default="performance",
        choices=list(MODES),
        help="Execution mode (default: performance).",
    )
    p.add_argument(
        "--config",
        required=False,
        default=None,
        help="Path to a single portfolio YAML/JSON, or a directory of them. If omitted, defaults to package demos.",
    )
    p.add_argument(
        "--outputs-dir",
        default="outputs",
        help="Directory to write result files (default: outputs). Will be created if missing.",
    )
    p.add_argument(
        "--format",
        dest="fmt",
        default="csv",
        choices=["csv", "jsonl"],
        help="Output format for per-year result files (default: csv).",
    )
    p.add_argument(
        "--save-annual",
        action="store_true",
        help="If set, write per-year rows alongside the summary.",
    )
    p.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="-v for progress, -vv for solver diagnostics.",
    )
    v = p.add_mutually_exclusive_group()
    v.add_argument(
        "--strict",
        action="store_true",
        help="Enable strict validation (unknown keys raise, report.years required).",
    )
    v.add_argument(
        "--relaxed",
        action="store_true",
        help="Enable relaxed validation.",
    )
    return p.parse_args(argv)


def _apply_validation_mode(ns: argparse.Namespace) -> None:
    # Default: leave env as-is; flags override explicitly.
    if ns.strict:
        os.environ["VALIDATION_MODE"] = "strict"
    elif ns.relaxed:
        os.environ["VALIDATION_MODE"] = "relaxed"


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _print_summary(summary: dict) -> None:
    if "performance" in summary:
        print(f"Capital {summary['sum_capital']} as of {summary['as_of']}")
        for year, pct in summary["performance"].items():
            print(f"{year}: {pct}%")
    elif "sum_capital" in summary:
        print(f"Capital {summary['sum_capital']} as of {summary['as_of']}")
        print(f"Inpayments {summary['sum_inpayments']}, dividends {summary['sum_dividends']}")
    else:
        print(f"Processed {len(summary)} portfolio(s).")


def main(argv: list[str] | None = None) -> int:
    ns = parse_args(argv)
    _apply_validation_mode(ns)
    _configure_logging(ns.verbose)

    # Resolve paths
    outputs_dir = Path(ns.outputs_dir).resolve()
    cfg_path = Path(ns.config).resolve() if ns.config else DEMO_DIR

    outputs_dir.mkdir(parents=True, exist_ok=True)

    # Delegate to the scenario runner. It accepts either a YAML file or a directory.
    try:
        res = run_dir(cfg_path, outputs_dir, mode=ns.mode, fmt=ns.fmt, save_annual=ns.save_annual)
    except SystemExit as e:
        # Propagate strict-validation exit codes cleanly through CLI
        if isinstance(e.code, int):
            return e.code
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    except (ValueError, TypeError, OSError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    if ns.mode == "validate":
        print(f"OK: {cfg_path}")
    else:
        _print_summary(res.summary)
    return 0


__all__ = ["main", "parse_args"]
