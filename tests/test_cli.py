import json

import pytest

from stockperf import cli

RELEASE = """\
report: { years: [2021] }
transactions:
  - {kind: buy, stock: ACME, date: 2020-12-31, shares: 10, price: 100}
quotes:
  - {stock: ACME, date: 2020-12-31, close: 100}
  - {stock: ACME, date: 2021-12-31, close: 110}
"""


@pytest.fixture(autouse=True)
def _validation_mode_restored(monkeypatch):
    # --strict writes VALIDATION_MODE into os.environ
    monkeypatch.setenv("VALIDATION_MODE", "relaxed")


def test_cli_defaults_run_package_demos(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert cli.main([]) == 0
    summary = json.loads((tmp_path / "outputs" / "summary.json").read_text(encoding="utf-8"))
    assert "release_case.yaml" in summary
    assert "savings_plan.yaml" in summary


def test_cli_single_portfolio(tmp_path, capsys):
    cfg = tmp_path / "p.yaml"
    cfg.write_text(RELEASE, encoding="utf-8")
    out_dir = tmp_path / "out"
    rc = cli.main(["--config", str(cfg), "--outputs-dir", str(out_dir), "--format", "jsonl", "--save-annual"])
    assert rc == 0
    assert "2021: 10.00%" in capsys.readouterr().out
    rows = [json.loads(line) for f in out_dir.glob("p_results_*.jsonl") for line in f.read_text().splitlines()]
    assert rows and rows[0]["year"] == 2021 and rows[0]["performance_pct"] == "10.00"


def test_cli_capital_mode(tmp_path, capsys):
    cfg = tmp_path / "p.yaml"
    cfg.write_text(RELEASE, encoding="utf-8")
    assert cli.main(["--mode", "capital", "--config", str(cfg), "--outputs-dir", str(tmp_path / "o")]) == 0
    summary = json.loads((tmp_path / "o" / "summary.json").read_text(encoding="utf-8"))
    assert "performance" not in summary
    assert summary["sum_capital"] == "1100"


def test_cli_validate_mode(tmp_path, capsys):
    cfg = tmp_path / "p.yaml"
    cfg.write_text(RELEASE, encoding="utf-8")
    assert cli.main(["--mode", "validate", "--strict", "--config", str(cfg), "--outputs-dir", str(tmp_path / "o")]) == 0
    assert "OK:" in capsys.readouterr().out


def test_cli_reports_bad_records(tmp_path, capsys):
    cfg = tmp_path / "bad.yaml"
    cfg.write_text("transactions:\n  - {kind: swap, stock: A}\n", encoding="utf-8")
    assert cli.main(["--config", str(cfg), "--outputs-dir", str(tmp_path / "o")]) == 2
    assert "ERROR" in capsys.readouterr().err


def test_cli_missing_file_is_an_error(tmp_path):
    assert cli.main(["--config", str(tmp_path / "nope.yaml"), "--outputs-dir", str(tmp_path / "o")]) == 1


def test_cli_invalid_mode_exits_2():
    # argparse enforces choices
    with pytest.raises(SystemExit) as ei:
        cli.parse_args(["--mode", "nope"])
    assert ei.value.code == 2
