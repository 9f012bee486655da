# LedgerView - Configurable financial statements from trial balance data
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Display formatting of row values.

Options are merged in this order (later wins):

    built-in defaults < report ``formatting`` defaults < row ``format``

Built-in defaults:

    currency : "€ 1,234"    decimals=0, thousands=True, symbol="€"
    percent  : "12.5%"      decimals=1, symbol="%" (value is already x100)
    integer  : "1,234"      thousands=True
    decimal  : "1,234.57"   decimals=2, thousands=True

``None`` formats as an empty string.
"""

from collections.abc import Mapping
from typing import Any, Optional, Union

from .definitions import FormatSpec

BUILTIN_DEFAULTS: dict[str, dict[str, Any]] = {
    "currency": {"decimals": 0, "thousands": True, "symbol": "€"},
    "percent": {"decimals": 1, "thousands": False, "symbol": "%"},
    "integer": {"decimals": 0, "thousands": True},
    "decimal": {"decimals": 2, "thousands": True},
}

Formatting = Mapping[str, Mapping[str, Any]]


def format_number(value: float, decimals: int = 2, thousands: bool = True) -> str:
    """Fixed-point text with an optional ',' thousands separator.

    >>> format_number(-1234.5, 1)
    '-1,234.5'
    """
    text = f"{abs(value):,.{decimals}f}" if thousands else f"{abs(value):.{decimals}f}"
    # -0.4 rounds to "0": no sign on a zero display.
    if value < 0 and float(text.replace(",", "")) != 0:
        return "-" + text
    return text


def merge_formatting(*layers: Optional[Formatting]) -> dict[str, dict[str, Any]]:
    """Merge formatting rule layers per format type (later wins)."""
    merged = {k: dict(v) for k, v in BUILTIN_DEFAULTS.items()}
    for layer in layers:
        for fmt_type, options in (layer or {}).items():
            merged.setdefault(fmt_type, {}).update(
                {k: v for k, v in options.items() if v is not None}
            )
    return merged


def format_value(
    value: Optional[float],
    spec: Union[FormatSpec, str, Mapping[str, Any], None] = None,
    defaults: Optional[Formatting] = None,
) -> str:
    """
    Format a raw value for display.

    Args:
        value: Raw number, or None.
        spec: Row format (``FormatSpec``, type name or mapping).
        defaults: Report-level formatting rules keyed by format type.

    Returns:
        The display string ("" for None).
    """
    if value is None:
        return ""

    if not isinstance(spec, FormatSpec):
        spec = FormatSpec.from_raw(spec)

    rules = merge_formatting(defaults)
    if spec.type not in rules:
        return format_number(value, 2, True)
    options = {**rules[spec.type], **spec.options()}

    decimals = int(options.get("decimals", 2))
    thousands = bool(options.get("thousands", True))

    if spec.type == "currency":
        return f"{options.get('symbol', '€')} {format_number(value, decimals, thousands)}"
    if spec.type == "percent":
        return f"{format_number(value, decimals, thousands)}{options.get('symbol', '%')}"
    if spec.type == "integer":
        return format_number(value, 0, thousands)
    return format_number(value, decimals, thousands)
