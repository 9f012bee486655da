# LedgerView - Configurable financial statements from trial balance data
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Trailing-twelve-month (LTM) helpers for LedgerView.

An LTM window is the ``window_length`` months ending at the latest available
fiscal period. Because ledger rows are keyed by (year, period), a window that
crosses a year boundary is represented as one ``LTMRange`` per calendar year:

    calculate_ltm_range(2025, 6)  -> [LTMRange(2024, 7, 12), LTMRange(2025, 1, 6)]
    calculate_ltm_range(2025, 12) -> [LTMRange(2025, 1, 12)]

Ranges are inclusive and always listed oldest first.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import NamedTuple

import pandas as pd

from .ledger import available_years

logger = logging.getLogger(__name__)

MONTHS_PER_YEAR = 12


class LTMRange(NamedTuple):
    """Inclusive run of periods within a single fiscal year."""

    year: int
    start_period: int
    end_period: int

    @property
    def months(self) -> int:
        return self.end_period - self.start_period + 1


class LatestPeriod(NamedTuple):
    year: int
    period: int


@dataclass(frozen=True)
class DataAvailability:
    """Outcome of ``has_complete_data``."""

    complete: bool
    actual_months: int
    expected_months: int
    message: str


@dataclass(frozen=True)
class LTMInfo:
    """Everything a caller needs to render an LTM column."""

    ranges: list[LTMRange]
    label: str
    filtered: pd.DataFrame
    latest: LatestPeriod
    availability: DataAvailability

    @property
    def has_complete_data(self) -> bool:
        return self.availability.complete


def get_latest_available_period(rows: pd.DataFrame) -> LatestPeriod:
    """Return the latest (year, period) present in the ledger.

    The maximum is taken by year first, then by period within that year.
    ``(0, 0)`` is returned for an empty ledger.
    """
    if rows is None or rows.empty:
        return LatestPeriod(0, 0)

    max_year = int(rows["year"].max())
    max_period = int(rows.loc[rows["year"] == max_year, "period"].max())
    return LatestPeriod(max_year, max_period)


def calculate_ltm_range(
    year: int, period: int, window_length: int = MONTHS_PER_YEAR
) -> list[LTMRange]:
    """Walk back ``window_length`` months from (year, period).

    Returns one range per fiscal year crossed, oldest first. Invalid inputs
    (non-positive year, period outside 1..12, non-positive window) yield an
    empty list.
    """
    if year <= 0 or period <= 0 or period > MONTHS_PER_YEAR or window_length <= 0:
        return []

    ranges: list[LTMRange] = []
    current_year = year
    current_period = period
    remaining = window_length

    while remaining > 0:
        start = max(1, current_period - remaining + 1)
        ranges.insert(0, LTMRange(current_year, start, current_period))
        remaining -= current_period - start + 1
        current_year -= 1
        current_period = MONTHS_PER_YEAR

    return ranges


def ranges_mask(rows: pd.DataFrame, ranges: Iterable[LTMRange]) -> pd.Series:
    """Boolean mask of the rows falling inside any of the ranges."""
    mask = pd.Series(False, index=rows.index)
    for r in ranges:
        mask |= (
            (rows["year"] == r.year)
            & (rows["period"] >= r.start_period)
            & (rows["period"] <= r.end_period)
        )
    return mask


def filter_movements_for_ltm(
    rows: pd.DataFrame, ranges: Sequence[LTMRange]
) -> pd.DataFrame:
    """Keep the rows that belong to at least one of the ranges."""
    if not ranges:
        return rows.iloc[0:0]
    return rows[ranges_mask(rows, ranges)]


def generate_ltm_label(ranges: Sequence[LTMRange]) -> str:
    """Human-readable label, e.g. ``'LTM (2024 P7 - 2025 P6)'``."""
    if not ranges:
        return "LTM (No Data)"
    first, last = ranges[0], ranges[-1]
    return f"LTM ({first.year} P{first.start_period} - {last.year} P{last.end_period})"


def has_complete_data(
    ranges: Sequence[LTMRange],
    available: Iterable[int],
    window_length: int = MONTHS_PER_YEAR,
) -> DataAvailability:
    """Check that the window spans ``window_length`` months of loaded years.

    Missing years are reported before short windows.
    """
    if not ranges:
        return DataAvailability(
            complete=False,
            actual_months=0,
            expected_months=window_length,
            message="No LTM data available",
        )

    actual = sum(r.months for r in ranges)
    years = set(available)
    missing = sorted({r.year for r in ranges if r.year not in years})

    if missing:
        return DataAvailability(
            complete=False,
            actual_months=actual,
            expected_months=window_length,
            message="Missing data for year(s): " + ", ".join(map(str, missing)),
        )

    if actual != window_length:
        plural = "" if actual == 1 else "s"
        return DataAvailability(
            complete=False,
            actual_months=actual,
            expected_months=window_length,
            message=f"Only {actual} month{plural} available (need {window_length})",
        )

    return DataAvailability(
        complete=True,
        actual_months=actual,
        expected_months=window_length,
        message="Complete LTM data available",
    )


def calculate_ltm_info(
    rows: pd.DataFrame, window_length: int = MONTHS_PER_YEAR
) -> LTMInfo:
    """Compute ranges, label, filtered rows and availability in one call."""
    latest = get_latest_available_period(rows)
    if latest.year == 0:
        return LTMInfo(
            ranges=[],
            label=generate_ltm_label([]),
            filtered=rows.iloc[0:0] if rows is not None else pd.DataFrame(),
            latest=latest,
            availability=DataAvailability(False, 0, window_length, "No data available"),
        )

    ranges = calculate_ltm_range(latest.year, latest.period, window_length)
    availability = has_complete_data(ranges, available_years(rows), window_length)
    if not availability.complete:
        logger.info("Incomplete LTM window: %s", availability.message)

    return LTMInfo(
        ranges=ranges,
        label=generate_ltm_label(ranges),
        filtered=filter_movements_for_ltm(rows, ranges),
        latest=latest,
        availability=availability,
    )
