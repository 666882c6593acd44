import io
from datetime import date
from decimal import Decimal

import pytest

from stockperf.adapters import (
    QuoteBook,
    load_quotes_csv,
    load_transactions_csv,
    transaction_from_record,
    transactions_from_records,
)
from stockperf.config import load_portfolio_config, solver_settings_from_config
from stockperf.finance.irr import SolverSettings
from stockperf.types import Buying, Dividend, Quote, Selling
from stockperf.validate import _main as validate_main
from stockperf.validate import validate_portfolio_dict, validate_solver_dict

PORTFOLIO = """\
report: { years: [2021] }
solver: { tolerance: 1.0e-6, max_iters: 1000 }
transactions:
  - {kind: buy, stock: ACME, date: 2021-01-04, shares: 10, price: 100.10, order_costs: 4.95}
  - {kind: sell, stock: ACME, date: 2021-06-01, shares: 4, price: 110, taxes: 3.5}
quotes:
  - {stock: ACME, date: 2021-12-31, close: 112.5}
"""


def test_load_portfolio_config_splits_solver():
    cfg, solver = load_portfolio_config(io.StringIO(PORTFOLIO))
    assert "solver" not in cfg
    assert solver == {"tolerance": 1e-6, "max_iters": 1000}
    assert cfg["report"] == {"years": [2021]}
    assert len(cfg["transactions"]) == 2


def test_load_portfolio_config_from_path(tmp_path):
    p = tmp_path / "p.yaml"
    p.write_text(PORTFOLIO, encoding="utf-8")
    cfg, _ = load_portfolio_config(p)
    assert cfg["quotes"][0]["stock"] == "ACME"


def test_broken_yaml_uses_tolerant_fallback():
    cfg, solver = load_portfolio_config(io.StringIO("tag: @plan\nmax_iters: 30\nstrict: true\n"))
    assert cfg == {"tag": "@plan", "max_iters": 30, "strict": True}
    assert solver == {}


def test_solver_settings_defaults_and_overrides():
    assert solver_settings_from_config({}) == SolverSettings()
    s = solver_settings_from_config({"tolerance": 1e-6, "max_iters": 1000.0})
    assert s.tolerance == 1e-6
    assert s.max_iters == 1000 and isinstance(s.max_iters, int)
    assert s.guess == 0.1


def test_solver_settings_out_of_range():
    with pytest.raises(ValueError, match="outside allowed range"):
        solver_settings_from_config({"rate_floor": -1.5})


def test_solver_settings_unknown_key():
    with pytest.raises(ValueError, match="unknown solver keys"):
        validate_solver_dict({"newton": True})


def test_validate_requires_transactions():
    with pytest.raises(SystemExit):
        validate_portfolio_dict({"quotes": []})


def test_validate_relaxed_accepts_unknown_top_level_keys():
    validate_portfolio_dict({"transactions": [], "notes": "hello"}, mode="relaxed")


def test_validate_strict_rejects_unknown_keys():
    with pytest.raises(SystemExit, match="unknown top-level keys"):
        validate_portfolio_dict({"transactions": [], "report": {"years": [2021]}, "notes": 1}, mode="strict")


def test_validate_strict_requires_years():
    with pytest.raises(SystemExit, match="report.years"):
        validate_portfolio_dict({"transactions": []}, mode="strict")


@pytest.mark.parametrize(
    "record, message",
    [
        ({"kind": "swap", "stock": "A", "date": "2021-01-01", "shares": 1, "price": 1}, "kind must be one of"),
        ({"kind": "buy", "stock": "A", "date": "2021-01-01", "shares": 1}, "missing required keys"),
        ({"kind": "buy", "stock": "A", "date": "2021-01-01", "shares": 1, "price": 1, "order_costs": -1}, "order_costs must be >= 0"),
        ({"kind": "sell", "stock": "A", "date": "2021-01-01", "shares": 1, "price": 1, "taxes": -0.1}, "taxes must be >= 0"),
        ({"kind": "buy", "stock": "A", "date": "2021-01-01", "shares": 1, "price": 1, "taxes": 2}, "unknown keys"),
    ],
)
def test_validate_transaction_records(record, message):
    with pytest.raises(SystemExit, match=message):
        validate_portfolio_dict({"transactions": [record]})


def test_validate_cli(tmp_path, capsys):
    good = tmp_path / "good.yaml"
    good.write_text(PORTFOLIO, encoding="utf-8")
    assert validate_main([str(good), "--mode", "strict"]) == 0
    assert "OK:" in capsys.readouterr().out

    bad = tmp_path / "bad.yaml"
    bad.write_text("quotes: []\n", encoding="utf-8")
    assert validate_main([str(tmp_path)]) == 1


def test_records_become_transaction_kinds():
    cfg, _ = load_portfolio_config(io.StringIO(PORTFOLIO))
    buy, sell = transactions_from_records(cfg["transactions"])
    assert isinstance(buy, Buying) and isinstance(sell, Selling)
    assert buy.position_size == Decimal("1001.0")
    assert buy.order_costs == Decimal("4.95")
    assert sell.taxes == Decimal("3.5")
    assert sell.order_date == date(2021, 6, 1)


def test_explicit_position_size_wins():
    tr = transaction_from_record(
        {"kind": "dividend", "stock": "ACME", "date": "2021-06-15", "shares": 10, "price": 1.2, "position_size": 11.9}
    )
    assert isinstance(tr, Dividend)
    assert tr.position_size == Decimal("11.9")


def test_bad_record_names_its_position():
    with pytest.raises(ValueError, match=r"transactions\[1\]"):
        transactions_from_records([
            {"kind": "buy", "stock": "A", "date": "2021-01-01", "shares": 1, "price": 1},
            {"kind": "buy", "stock": "A", "date": "2021-01-01", "shares": 1, "price": 1, "taxes": 1},
        ])


def test_csv_loaders(tmp_path):
    trs = tmp_path / "trs.csv"
    trs.write_text(
        "kind,stock,date,shares,price,order_costs,taxes,tag\n"
        "buy,ACME,2021-01-04,10,100.10,4.95,,plan\n"
        "dividend,ACME,2021-06-15,10,0.35,,0.92,\n",
        encoding="utf-8",
    )
    quotes = tmp_path / "quotes.csv"
    quotes.write_text("stock,date,close,open\nACME,2021-12-31,112.50,111\n", encoding="utf-8")

    buy, div = load_transactions_csv(trs)
    assert buy.price_per_share == Decimal("100.10")
    assert buy.tag == "plan" and div.tag is None
    assert div.taxes == Decimal("0.92") and div.order_costs == Decimal(0)

    (q,) = load_quotes_csv(quotes)
    assert q == Quote("ACME", date(2021, 12, 31), Decimal("112.50"), open=Decimal(111))


def test_quote_book_lookup():
    book = QuoteBook([
        Quote("ACME", date(2021, 12, 31), Decimal(2)),
        Quote("ACME", date(2021, 6, 30), Decimal(1)),
        Quote("ACME", date(2021, 12, 31), Decimal(3)),
    ])
    assert book.last_before("ACME", date(2021, 1, 1)) is None
    assert book.last_before("ACME", date(2021, 7, 1)).close == Decimal(1)
    assert book.last_before("ACME", date(2022, 1, 1)).close == Decimal(3)
    assert book.last_before("OTHER", date(2022, 1, 1)) is None
    assert len(book) == 2
