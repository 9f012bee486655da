# LedgerView - Configurable financial statements from trial balance data
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
LedgerView
----------

Configurable financial statements from flat trial balance data.

A trial balance (one row per account movement per fiscal period, with a
coded hierarchy code0..code3) is turned into statements with a prior and a
current side, variance and calculated metrics.

Main capabilities:
- declarative report definitions (JSON/TOML) with variables, calculated
  rows, category rows, subtotals and spacers,
- static validation of report definitions,
- a report registry with one default report per statement type,
- full-year, year-to-date and trailing-twelve-month (LTM) comparisons,
- a coded account hierarchy tree with bottom-up aggregation,
- a command-line interface (validate, render, tree, ltm).

Usage:
    ledgerview --help
"""

__all__ = [
    "definitions",
    "filters",
    "hierarchy",
    "ltm",
    "registry",
    "renderer",
    "session",
    "validator",
]

__version__ = "0.1.0"
