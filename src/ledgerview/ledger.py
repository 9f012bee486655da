# LedgerView - Configurable financial statements from trial balance data
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Ledger rows for LedgerView.

A ledger (trial balance) is a flat list of account movements: one row per
account per fiscal period. The core always works on a pandas DataFrame with
exactly the columns listed in ``LEDGER_COLUMNS``:

    year, period, statement_type,
    code0, name0, code1, name1, code2, name2, code3, name3,
    account_code, account_description, movement_amount

``ledger_frame()`` converts any supported input (DataFrame, iterable of
``LedgerRow`` or of plain mappings) into that normalized shape:

- hierarchy codes and names are stripped strings; missing optional values
  become empty strings,
- ``year`` and ``period`` are integers,
- ``movement_amount`` is a signed float.

The loader (CSV, spreadsheet, fixtures) is free to produce rows in any way;
only this contract matters to the engine.
"""

from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass
from typing import Any, Union

import pandas as pd

STATEMENT_TYPES: tuple[str, ...] = ("income", "balance", "cashflow")

CODE_COLUMNS: tuple[str, ...] = ("code0", "code1", "code2", "code3")
NAME_COLUMNS: tuple[str, ...] = ("name0", "name1", "name2", "name3")

TEXT_COLUMNS: tuple[str, ...] = (
    "statement_type",
    "code0",
    "name0",
    "code1",
    "name1",
    "code2",
    "name2",
    "code3",
    "name3",
    "account_code",
    "account_description",
)

LEDGER_COLUMNS: tuple[str, ...] = (
    "year",
    "period",
    "statement_type",
    "code0",
    "name0",
    "code1",
    "name1",
    "code2",
    "name2",
    "code3",
    "name3",
    "account_code",
    "account_description",
    "movement_amount",
)

REQUIRED_COLUMNS: frozenset[str] = frozenset(
    {"year", "period", "statement_type", "code0", "movement_amount"}
)


@dataclass(frozen=True)
class LedgerRow:
    """One recorded account movement for a fiscal year/period.

    Only ``code0`` is mandatory among the hierarchy codes; deeper codes may
    be left empty for sparse hierarchies.
    """

    year: int
    period: int
    statement_type: str
    code0: str
    movement_amount: float
    name0: str = ""
    code1: str = ""
    name1: str = ""
    code2: str = ""
    name2: str = ""
    code3: str = ""
    name3: str = ""
    account_code: str = ""
    account_description: str = ""


LedgerInput = Union[pd.DataFrame, Iterable[LedgerRow], Iterable[Mapping[str, Any]]]


def _as_text(value: Any) -> str:
    """Convert a cell to a stripped string ('' for missing values).

    Integral floats coming from spreadsheets (``500.0``) are rendered as
    ``'500'`` so that codes compare as written in the chart of accounts.
    """
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def empty_ledger() -> pd.DataFrame:
    """Return an empty ledger frame with the standard columns and dtypes."""
    df = pd.DataFrame({c: pd.Series(dtype="object") for c in LEDGER_COLUMNS})
    df["year"] = df["year"].astype("int64")
    df["period"] = df["period"].astype("int64")
    df["movement_amount"] = df["movement_amount"].astype("float64")
    return df


def normalize_ledger(df: pd.DataFrame) -> pd.DataFrame:
    """Normalize an arbitrary DataFrame to the ledger column contract.

    Raises:
        ValueError: if a required column is missing or if year/period/amount
            values cannot be converted to numbers.
    """
    missing = REQUIRED_COLUMNS - set(df.columns)
    if missing:
        raise ValueError(
            "Ledger data is missing required column(s): "
            + ", ".join(sorted(missing))
        )

    if df.empty:
        return empty_ledger()

    out = df.copy()
    for col in TEXT_COLUMNS:
        if col not in out.columns:
            out[col] = ""
        out[col] = out[col].map(_as_text)

    for col in ("year", "period"):
        values = pd.to_numeric(out[col], errors="coerce")
        if values.isna().any():
            raise ValueError(f"Invalid numeric values in '{col}' column.")
        out[col] = values.astype("int64")

    amounts = pd.to_numeric(out["movement_amount"], errors="coerce")
    if amounts.isna().any():
        raise ValueError("Invalid numeric values in 'movement_amount' column.")
    out["movement_amount"] = amounts.astype("float64")

    out = out[list(LEDGER_COLUMNS)]
    return out.reset_index(drop=True)


def ledger_frame(rows: LedgerInput) -> pd.DataFrame:
    """Build a normalized ledger DataFrame from any supported input."""
    if isinstance(rows, pd.DataFrame):
        return normalize_ledger(rows)

    records: list[dict[str, Any]] = []
    for row in rows:
        if isinstance(row, LedgerRow):
            records.append(asdict(row))
        elif isinstance(row, Mapping):
            records.append(dict(row))
        else:
            raise ValueError(
                f"Unsupported ledger row type: {type(row).__name__}. "
                "Expected LedgerRow or a mapping."
            )

    if not records:
        return empty_ledger()
    return normalize_ledger(pd.DataFrame(records))


def available_years(ledger: pd.DataFrame) -> list[int]:
    """Sorted list of distinct fiscal years present in the ledger."""
    if ledger.empty:
        return []
    return sorted(int(y) for y in ledger["year"].unique())
