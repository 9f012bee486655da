# LedgerView - Configurable financial statements from trial balance data
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Filter engine for LedgerView.

A filter specification is a mapping ``field -> matcher`` applied to ledger
rows. Three kinds of matchers are supported:

- exact scalar:   {"code1": "500"}
- list (OR):      {"code1": ["500", "510"]}
- range (AND):    {"code1": {"gte": "500", "lt": "600"}}

Several fields are combined with AND. An empty specification matches every
row and returns the input unchanged.

Text columns (codes, names, statement type, account) are compared as
case-sensitive strings, including range bounds (lexicographic order, which
matches chart-of-accounts ordering for codes of equal length). ``year`` and
``period`` are compared numerically.

Malformed specifications are reported by ``validate_filter()`` ahead of
time. If one still reaches ``apply_filter()`` the explicit runtime policy is
to log a warning and match nothing (or raise ``FilterSpecError`` when
``strict=True``).
"""

import logging
from collections.abc import Mapping
from typing import Any

import pandas as pd

from .errors import FilterSpecError

logger = logging.getLogger(__name__)

VALID_FIELDS: tuple[str, ...] = (
    "code0",
    "code1",
    "code2",
    "code3",
    "name0",
    "name1",
    "name2",
    "name3",
    "statement_type",
    "account_code",
    "account_description",
    "year",
    "period",
)

NUMERIC_FIELDS: frozenset[str] = frozenset({"year", "period"})

RANGE_OPERATORS: tuple[str, ...] = ("gte", "lte", "gt", "lt")

# Reserved key used by variable filters to build on another variable's rows.
VARIABLE_REF_KEY = "$variable"

FilterSpec = Mapping[str, Any]


def _is_scalar(value: Any) -> bool:
    return isinstance(value, (str, int, float)) and not isinstance(value, bool)


def _check_scalar(field: str, value: Any, where: str, errors: list[str]) -> None:
    if value is None:
        errors.append(f"{where} for '{field}' cannot be null")
    elif not _is_scalar(value):
        errors.append(
            f"{where} for '{field}' must be a string or a number, "
            f"got {type(value).__name__}"
        )
    elif field in NUMERIC_FIELDS and isinstance(value, str):
        try:
            float(value)
        except ValueError:
            errors.append(f"{where} for '{field}' must be numeric, got {value!r}")


def validate_filter(spec: Any, allow_variable_ref: bool = False) -> list[str]:
    """Return every problem found in a filter specification.

    An empty list means the specification is valid. The check never stops
    at the first problem.

    Args:
        spec: Filter specification to check.
        allow_variable_ref: Accept the ``$variable`` key (variable filters
            only).
    """
    if not isinstance(spec, Mapping):
        return ["Filter specification must be an object"]

    errors: list[str] = []
    for field, value in spec.items():
        if field == VARIABLE_REF_KEY:
            if not allow_variable_ref:
                errors.append(
                    f"'{VARIABLE_REF_KEY}' is only allowed in variable filters"
                )
            elif not isinstance(value, str) or not value.strip():
                errors.append(f"'{VARIABLE_REF_KEY}' must be a non-empty variable id")
            continue

        if field not in VALID_FIELDS:
            errors.append(
                f"Invalid filter field: {field}. "
                f"Valid fields are: {', '.join(VALID_FIELDS)}"
            )
            continue

        if isinstance(value, (list, tuple)):
            if len(value) == 0:
                errors.append(f"Filter list for '{field}' cannot be empty")
            for item in value:
                _check_scalar(field, item, "Filter list value", errors)
        elif isinstance(value, Mapping):
            if len(value) == 0:
                errors.append(f"Range filter for '{field}' cannot be empty")
            invalid = [k for k in value if k not in RANGE_OPERATORS]
            if invalid:
                errors.append(
                    f"Invalid range operator(s) for '{field}': "
                    f"{', '.join(map(str, invalid))}. "
                    f"Valid operators are: {', '.join(RANGE_OPERATORS)}"
                )
            for op, bound in value.items():
                if op in RANGE_OPERATORS:
                    _check_scalar(field, bound, f"Range bound '{op}'", errors)
        else:
            _check_scalar(field, value, "Filter value", errors)

    return errors


def _coerce(field: str, value: Any) -> Any:
    """Coerce a matcher value to the column's comparison type."""
    if field in NUMERIC_FIELDS:
        return float(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def build_mask(rows: pd.DataFrame, spec: FilterSpec) -> pd.Series:
    """Build the boolean row mask for a (valid) filter specification.

    Raises:
        FilterSpecError: if the specification is malformed.
    """
    errors = validate_filter(spec)
    if errors:
        raise FilterSpecError(
            "Invalid filter specification: " + "; ".join(errors), errors
        )

    mask = pd.Series(True, index=rows.index)
    for field, value in spec.items():
        column = rows[field]
        if isinstance(value, (list, tuple)):
            mask &= column.isin([_coerce(field, v) for v in value])
        elif isinstance(value, Mapping):
            if "gte" in value:
                mask &= column >= _coerce(field, value["gte"])
            if "lte" in value:
                mask &= column <= _coerce(field, value["lte"])
            if "gt" in value:
                mask &= column > _coerce(field, value["gt"])
            if "lt" in value:
                mask &= column < _coerce(field, value["lt"])
        else:
            mask &= column == _coerce(field, value)
    return mask


def apply_filter(
    rows: pd.DataFrame, spec: FilterSpec, strict: bool = False
) -> pd.DataFrame:
    """Return the subset of ledger rows matching a filter specification.

    Args:
        rows: Ledger DataFrame.
        spec: Filter specification. ``{}`` returns ``rows`` unchanged.
        strict: Raise ``FilterSpecError`` on a malformed specification
            instead of matching nothing.

    Returns:
        The matching rows (original index preserved).
    """
    if not spec:
        return rows

    try:
        mask = build_mask(rows, spec)
    except FilterSpecError as exc:
        if strict:
            raise
        logger.warning("Malformed filter %r matches nothing: %s", dict(spec), exc)
        return rows.iloc[0:0]

    return rows[mask]


def split_variable_ref(spec: FilterSpec) -> tuple[str | None, dict[str, Any]]:
    """Separate the ``$variable`` reference from the plain field matchers."""
    plain = {k: v for k, v in spec.items() if k != VARIABLE_REF_KEY}
    ref = spec.get(VARIABLE_REF_KEY)
    return (str(ref) if ref is not None else None), plain
