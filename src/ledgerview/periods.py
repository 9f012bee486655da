# LedgerView - Configurable financial statements from trial balance data
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Comparison period helpers for LedgerView.

Statements always compare two sides, ``prior`` and ``current``. Each side
is a ``ComparisonPeriod``: a label plus the (year, period) ranges it covers.
Full fiscal years, year-to-date windows and LTM windows all reduce to the
same representation, so filtering is one code path (``ltm.ranges_mask``).

``ComparisonPeriod.signature`` is hashable and identifies the window; it is
used to key per-render caches.
"""

from dataclasses import dataclass

import pandas as pd

from .ltm import (
    MONTHS_PER_YEAR,
    LTMRange,
    calculate_ltm_range,
    filter_movements_for_ltm,
    generate_ltm_label,
    get_latest_available_period,
)

PRIOR = "prior"
CURRENT = "current"
SIDES: tuple[str, ...] = (PRIOR, CURRENT)

COMPARISON_MODES: tuple[str, ...] = ("fy", "ytd", "ltm")


@dataclass(frozen=True)
class ComparisonPeriod:
    """One side of a comparison, with a human-readable label."""

    label: str
    ranges: tuple[LTMRange, ...]

    @property
    def signature(self) -> tuple[LTMRange, ...]:
        return self.ranges

    @property
    def years(self) -> list[int]:
        return sorted({r.year for r in self.ranges})

    def select(self, rows: pd.DataFrame) -> pd.DataFrame:
        """Rows of the ledger that fall inside this period."""
        return filter_movements_for_ltm(rows, list(self.ranges))

    @classmethod
    def full_year(cls, year: int) -> "ComparisonPeriod":
        return cls(label=str(year), ranges=(LTMRange(year, 1, MONTHS_PER_YEAR),))

    @classmethod
    def year_to_date(cls, year: int, period: int) -> "ComparisonPeriod":
        if not 1 <= period <= MONTHS_PER_YEAR:
            raise ValueError(f"Period must be between 1 and 12, got {period}.")
        return cls(label=f"YTD {year} P{period}", ranges=(LTMRange(year, 1, period),))

    @classmethod
    def ltm(
        cls, year: int, period: int, window_length: int = MONTHS_PER_YEAR
    ) -> "ComparisonPeriod":
        ranges = calculate_ltm_range(year, period, window_length)
        if not ranges:
            raise ValueError(
                f"Invalid LTM window: year={year}, period={period}, "
                f"window_length={window_length}."
            )
        return cls(label=generate_ltm_label(ranges), ranges=tuple(ranges))


def default_comparison(
    rows: pd.DataFrame, mode: str = "fy", ltm_months: int = MONTHS_PER_YEAR
) -> dict[str, ComparisonPeriod]:
    """
    Derive the prior/current comparison from the latest period in the data.

    Modes:
        fy  : latest fiscal year vs the year before (full years),
        ytd : year-to-date at the latest period vs the same window one year
              earlier,
        ltm : trailing ``ltm_months`` ending at the latest period vs the
              window ending one year earlier.

    Raises:
        ValueError: for an unknown mode or an empty ledger.
    """
    if mode not in COMPARISON_MODES:
        raise ValueError(
            f"Unknown comparison mode: {mode!r}. "
            f"Expected one of: {', '.join(COMPARISON_MODES)}"
        )

    latest = get_latest_available_period(rows)
    if latest.year == 0:
        raise ValueError("Cannot derive comparison periods from an empty ledger.")

    if mode == "fy":
        return {
            PRIOR: ComparisonPeriod.full_year(latest.year - 1),
            CURRENT: ComparisonPeriod.full_year(latest.year),
        }
    if mode == "ytd":
        return {
            PRIOR: ComparisonPeriod.year_to_date(latest.year - 1, latest.period),
            CURRENT: ComparisonPeriod.year_to_date(latest.year, latest.period),
        }
    return {
        PRIOR: ComparisonPeriod.ltm(latest.year - 1, latest.period, ltm_months),
        CURRENT: ComparisonPeriod.ltm(latest.year, latest.period, ltm_months),
    }
