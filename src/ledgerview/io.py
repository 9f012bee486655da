# LedgerView - Configurable financial statements from trial balance data
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
I/O module for LedgerView.

This module reads trial balance movements from a CSV file and normalizes
them into the ledger contract used by the engine (see ``ledger.py``).

Expected input format
---------------------

Column names are case-insensitive and stripped:

    year, period, statement_type, code0, name0, code1, name1, code2, name2,
    code3, name3, account_code, account_description, movement_amount

Only ``year``, ``period``, ``statement_type``, ``code0`` and the amount are
mandatory. Hierarchy columns that are absent are treated as empty.

Aliases
-------
For convenience with exports from accounting packages, the following
aliases are accepted:

    amount       -> movement_amount
    account      -> account_code
    description  -> account_description

Hierarchy codes are always read as text, so that leading zeros survive
(``'0100'`` stays ``'0100'``).

If the CSV structure does not match, a clear ValueError is raised.
"""

import os
from typing import Union

import pandas as pd

from .ledger import normalize_ledger

_ALIASES = {
    "amount": "movement_amount",
    "account": "account_code",
    "description": "account_description",
}


def read_trial_balance(path: Union[str, "os.PathLike[str]"]) -> pd.DataFrame:
    """
    Read trial balance movements from a CSV file and normalize them.

    Parameters
    ----------
    path:
        Path to the CSV file.

    Returns
    -------
    pandas.DataFrame
        A ledger DataFrame with exactly the columns of
        ``ledger.LEDGER_COLUMNS``.

    Raises
    ------
    ValueError
        If mandatory columns are missing or if numeric parsing fails.
    """
    # Everything is read as text; normalize_ledger converts the numeric columns.
    df = pd.read_csv(path, dtype=str, keep_default_na=True)

    # Normalize column names to lowercase (to make the check case-insensitive)
    df.columns = [str(c).lower().strip() for c in df.columns]
    cols = set(df.columns)

    renames = {
        alias: target
        for alias, target in _ALIASES.items()
        if alias in cols and target not in cols
    }
    if renames:
        df = df.rename(columns=renames)

    try:
        return normalize_ledger(df)
    except ValueError as exc:
        raise ValueError(
            f"Invalid trial balance structure in {path}: {exc}\n"
            "Expected at least: year, period, statement_type, code0, "
            "movement_amount (or 'amount')."
        ) from exc
