from __future__ import annotations
from typing import Dict, Any

# Solver overrides: units, type, min/max ranges, and description.
SOLVER_SCHEMA: Dict[str, Dict[str, Any]] = {
    "guess":            {"unit": "rate/yr",  "type": "float", "min": -0.99,  "max": 10.0,        "desc": "Centre of the first bracket"},
    "bracket_step":     {"unit": "rate/yr",  "type": "float", "min": 1e-6,   "max": 10.0,        "desc": "Bracket half-width and widening step"},
    "bracket_max_iter": {"unit": "steps",    "type": "int",   "min": 1,      "max": 10_000,      "desc": "Max bracket widenings"},
    "tolerance":        {"unit": "rate/yr",  "type": "float", "min": 1e-15,  "max": 1e-2,        "desc": "Bisection half-width tolerance"},
    "max_iters":        {"unit": "steps",    "type": "int",   "min": 1,      "max": 10_000_000,  "desc": "Max bisection iterations"},
    "days_per_year":    {"unit": "days",     "type": "float", "min": 360.0,  "max": 366.0,       "desc": "Day-count divisor"},
    "rate_floor":       {"unit": "rate/yr",  "type": "float", "min": -0.9999999999, "max": -0.9, "desc": "Rate used when r <= -100%"},
}

# Transaction record fields per kind.
TRANSACTION_FIELDS: Dict[str, Dict[str, tuple]] = {
    "buy":      {"required": ("stock", "date", "shares", "price"),
                 "optional": ("position_size", "order_costs", "tag", "stock_name")},
    "sell":     {"required": ("stock", "date", "shares", "price"),
                 "optional": ("position_size", "order_costs", "taxes", "tag", "stock_name")},
    "dividend": {"required": ("stock", "date", "shares", "price"),
                 "optional": ("position_size", "order_costs", "taxes", "tag", "stock_name")},
}

QUOTE_FIELDS: Dict[str, tuple] = {
    "required": ("stock", "date", "close"),
    "optional": ("open", "high", "low"),
}

# Amounts that must never be negative.
NON_NEGATIVE_FIELDS = ("order_costs", "taxes", "shares", "price")

TOP_LEVEL_KEYS = ("transactions", "transactions_csv", "quotes", "quotes_csv", "solver", "report")

REPORT_KEYS = ("years", "as_of", "tag", "stock")
