import re
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]  # repo root
IRR = ROOT / "stockperf" / "finance" / "irr.py"

EXCLUDE_DIRS = {
    ".venv", "venv", ".venv311", ".git", ".pytest_cache", "build",
    "dist", "__pycache__", ".mypy_cache", ".tox", ".eggs"
}

def _skip(p: Path) -> bool:
    parts = set(p.parts)
    if "site-packages" in parts or "dist-packages" in parts:
        return True
    if any(d in parts for d in EXCLUDE_DIRS):
        return True
    return False

def test_only_irr_module_defines_xirr_and_xnpv():
    hits = []
    for p in (ROOT / "stockperf").rglob("*.py"):
        if _skip(p):
            continue
        if p == IRR:
            continue
        text = p.read_text(encoding="utf-8", errors="ignore")
        if re.search(r"\bdef\s+x?irr\s*\(", text) or re.search(r"\bdef\s+x?npv\s*\(", text):
            hits.append(str(p))
    assert not hits, f"Found IRR/NPV defs outside finance/irr.py: {hits}"

def test_solver_does_not_reach_into_the_portfolio_layer():
    src = IRR.read_text(encoding="utf-8")
    for forbidden in ("stockperf.adapters", "stockperf.performance", "stockperf.queries", "pandas"):
        assert forbidden not in src, f"Unexpected dependency '{forbidden}' inside finance/irr.py"
