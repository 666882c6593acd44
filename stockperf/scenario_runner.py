# stockperf/scenario_runner.py
from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Dict, Any, List, Optional, Tuple
from datetime import datetime
import logging
import json, csv

from .adapters import (
    InMemoryTransactionStore,
    QuoteBook,
    load_quotes_csv,
    load_transactions_csv,
    quotes_from_records,
    transactions_from_records,
)
from .config import load_portfolio_config, solver_settings_from_config
from .finance.aggregate import PortfolioAggregator
from .finance.irr import InterestRateCalculator
from .performance import PerformanceCalculator
from .queries import EndDateFilter, StockFilter, TagFilter, TransactionAllQuery
from .validate import (
    _mode_from_env_or_flag,
    validate_portfolio_dict,
)

logger = logging.getLogger(__name__)

MODES = ("performance", "capital", "validate")


@dataclass
class RunResult:
    summary: Dict[str, Any]
    summary_path: Optional[Path]
    results_path: Optional[Path] = None


def _jsonable(v: Any) -> Any:
    if isinstance(v, Decimal):
        return str(v)
    if isinstance(v, date):
        return v.isoformat()
    if isinstance(v, dict):
        return {str(k): _jsonable(x) for k, x in v.items()}
    if isinstance(v, list):
        return [_jsonable(x) for x in v]
    return v


def _write_jsonl(path: Path, rows: List[Dict[str, Any]]) -> None:
    with path.open("w", encoding="utf-8") as f:
        for row in rows:
            f.write(json.dumps(_jsonable(row)) + "\n")


def _write_csv(path: Path, rows: List[Dict[str, Any]]) -> None:
    if not rows:
        path.write_text("", encoding="utf-8")
        return
    hdr = list(rows[0].keys())
    with path.open("w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=hdr)
        w.writeheader()
        w.writerows(_jsonable(rows))


def build_portfolio(params: Dict[str, Any], base_dir: Path) -> Tuple[InMemoryTransactionStore, QuoteBook]:
    """Transactions/quotes come inline or from CSV files next to the config."""
    transactions = transactions_from_records(params.get("transactions") or [])
    if params.get("transactions_csv"):
        transactions += load_transactions_csv(base_dir / str(params["transactions_csv"]))

    quotes = quotes_from_records(params.get("quotes") or [])
    if params.get("quotes_csv"):
        quotes += load_quotes_csv(base_dir / str(params["quotes_csv"]))

    return InMemoryTransactionStore(transactions), QuoteBook(quotes)


def _base_query(report: Dict[str, Any]) -> TransactionAllQuery:
    q = TransactionAllQuery()
    if report.get("tag"):
        q = q.register(TagFilter(str(report["tag"])))
    if report.get("stock"):
        q = q.register(StockFilter(str(report["stock"])))
    return q


def _report_window(report: Dict[str, Any], store: InMemoryTransactionStore, base: TransactionAllQuery) -> Tuple[List[int], date]:
    trs = store.execute(base)
    years = [int(y) for y in (report.get("years") or [])]
    if not years and trs:
        first = min(t.order_date for t in trs).year
        last = max(t.order_date for t in trs).year
        years = list(range(first, last + 1))

    as_of = report.get("as_of")
    if as_of is not None:
        as_of = as_of if isinstance(as_of, date) else date.fromisoformat(str(as_of))
    elif years:
        as_of = date(max(years), 12, 31)
    elif trs:
        as_of = max(t.order_date for t in trs)
    else:
        as_of = date.today()
    return years, as_of


def _tag_figures(
    store: InMemoryTransactionStore,
    aggregator: PortfolioAggregator,
    calc: Optional[PerformanceCalculator],
    base: TransactionAllQuery,
    years: List[int],
    as_of: date,
) -> Dict[str, Any]:
    """Savings-plan view: the same figures once per transaction tag."""
    out: Dict[str, Any] = {}
    for tag in store.tags():
        tagged = base.register(TagFilter(tag))
        held = store.execute(tagged.register(EndDateFilter(as_of)))
        entry: Dict[str, Any] = {
            "transactions": len(held),
            "sum_inpayments": aggregator.sum_inpayments(held),
            "sum_dividends": aggregator.sum_dividends(held),
            "sum_capital": aggregator.sum_capital(held, as_of),
        }
        if calc is not None:
            results = calc.yearly_results(tagged, years)
            entry["performance"] = {str(y): r.performance_pct for y, r in results.items()}
        out[tag] = entry
    return out


def validate_and_run(
    mode: str,
    params: Dict[str, Any],
    solver: Optional[Dict[str, Any]] = None,
    *,
    base_dir: Path = Path("."),
    where: str = "<mem>",
) -> Dict[str, Any]:
    validate_portfolio_dict(params, mode=_mode_from_env_or_flag(None))
    settings = solver_settings_from_config(solver or {}, where=f"{where}: solver")

    store, quotes = build_portfolio(params, base_dir)
    report = params.get("report") or {}
    base = _base_query(report)
    years, as_of = _report_window(report, store, base)

    aggregator = PortfolioAggregator(quotes)
    held = store.execute(base.register(EndDateFilter(as_of)))

    summary: Dict[str, Any] = {
        "source": where,
        "as_of": as_of,
        "transactions": len(held),
        "tags": store.tags(),
        "sum_inpayments": aggregator.sum_inpayments(held),
        "sum_dividends": aggregator.sum_dividends(held),
        "sum_capital": aggregator.sum_capital(held, as_of),
        "open_positions": aggregator.net_shares(held),
    }

    calc: Optional[PerformanceCalculator] = None
    if mode == "performance":
        calc = PerformanceCalculator(store, aggregator, InterestRateCalculator(settings))
        results = calc.yearly_results(base, years)
        summary["performance"] = {str(y): r.performance_pct for y, r in results.items()}
        summary["annual"] = [
            {
                "year": r.year,
                "performance_pct": r.performance_pct,
                "begin_capital": r.begin_capital,
                "end_capital": r.end_capital,
                "cashflows": r.cashflows,
                "outcome": r.outcome,
            }
            for r in results.values()
        ]
        logger.info("%s: %d years computed", where, len(results))

    summary["by_tag"] = _tag_figures(store, aggregator, calc, base, years, as_of)

    return _jsonable(summary)


def _validate_file(path: Path) -> None:
    params, solver = load_portfolio_config(path)
    validate_portfolio_dict(params, mode=_mode_from_env_or_flag(None))
    solver_settings_from_config(solver, where=f"{path}: solver")


def run_dir(
    config: str | Path,
    out_dir: str | Path,
    *,
    mode: str = "performance",
    fmt: str = "jsonl",
    save_annual: bool = False,
    **kwargs,
) -> RunResult:
    # accept legacy alias
    if "format" in kwargs and not kwargs.get("fmt"):
        fmt = kwargs.pop("format")
    if mode not in MODES:
        raise SystemExit(f"unknown mode: {mode}")

    cfg_path = Path(config)
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)

    # Directory mode: validate each YAML file, raise on violations, then run each one.
    if cfg_path.is_dir():
        files = [f for f in sorted(cfg_path.glob("*.y*ml")) if f.is_file()]
        if not files:
            raise ValueError(f"{cfg_path}: no portfolio files found")
        for f in files:
            _validate_file(f)
        if mode == "validate":
            return RunResult(summary={"validated": True, "files": len(files)}, summary_path=None)

        per_file: Dict[str, Any] = {}
        for f in files:
            res = run_dir(f, out / f.stem, mode=mode, fmt=fmt, save_annual=save_annual)
            per_file[f.name] = res.summary
        summary_path = out / "summary.json"
        summary_path.write_text(json.dumps(per_file, indent=2), encoding="utf-8")
        return RunResult(summary=per_file, summary_path=summary_path)

    # Single file path
    if mode == "validate":
        _validate_file(cfg_path)
        return RunResult(summary={"validated": True, "files": 1}, summary_path=None)

    params, solver = load_portfolio_config(cfg_path)
    summary = validate_and_run(mode, params, solver, base_dir=cfg_path.parent, where=str(cfg_path))

    summary_path = out / "summary.json"
    summary_path.write_text(json.dumps(summary, indent=2), encoding="utf-8")

    results_path: Optional[Path] = None
    if save_annual:
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        base = f"{cfg_path.stem}_results_{stamp}"
        if fmt == "jsonl":
            results_path = out / f"{base}.jsonl"
            _write_jsonl(results_path, summary.get("annual", []))
        elif fmt == "csv":
            results_path = out / f"{base}.csv"
            _write_csv(results_path, summary.get("annual", []))
        else:
            raise SystemExit(f"unknown fmt: {fmt}")

    return RunResult(summary=summary, summary_path=summary_path, results_path=results_path)
