# LedgerView - Configurable financial statements from trial balance data
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Static validation of report definitions.

``validate(raw)`` inspects a report definition in its wire form (the dict
parsed from JSON/TOML) and returns a ``ValidationResult``. It never raises
and never stops at the first problem: every violation found is collected so
that a report author can fix them all in one pass.

Errors (``is_valid`` becomes False):
- missing required fields, reportId/version patterns, statementType enum,
- variable ids (unique identifiers), filters and aggregates,
- ``$variable`` references (existing, not self, acyclic),
- layout orders (unique integers >= 0), types, formats, styles, indents,
- calculated expressions: syntax, unknown variables, unknown/forward
  ``@order`` references,
- subtotal ranges (from <= to, both existing orders),
- report-level ``formatting`` defaults.

Warnings (advisory only):
- variables never used by the layout or by another variable,
- empty filters (the variable matches every row),
- empty labels on non-spacer rows.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .definitions import (
    AGGREGATES,
    FORMAT_TYPES,
    LAYOUT_TYPES,
    MAX_INDENT,
    STYLES,
    raw_variable_entries,
)
from .errors import ExpressionSyntaxError
from .expressions import parse, references
from .filters import VARIABLE_REF_KEY, validate_filter
from .ledger import STATEMENT_TYPES

REPORT_ID_RE = re.compile(r"^[a-z0-9_-]+$")
VERSION_RE = re.compile(r"^\d+\.\d+\.\d+$")
VARIABLE_ID_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

REQUIRED_FIELDS: tuple[str, ...] = (
    "reportId",
    "name",
    "version",
    "statementType",
    "layout",
)

MAX_REPORT_ID_LENGTH = 100
MAX_NAME_LENGTH = 200
MAX_FORMAT_DECIMALS = 4
MAX_SYMBOL_LENGTH = 5


@dataclass(frozen=True)
class ValidationIssue:
    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


@dataclass
class ValidationResult:
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add_error(self, where: str, message: str) -> None:
        self.errors.append(ValidationIssue(where, message))

    def add_warning(self, where: str, message: str) -> None:
        self.warnings.append(ValidationIssue(where, message))

    def error_messages(self) -> list[str]:
        return [str(e) for e in self.errors]

    def format_messages(self) -> str:
        lines = [f"ERROR   {e}" for e in self.errors]
        lines += [f"WARNING {w}" for w in self.warnings]
        return "\n".join(lines)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


# ---------------------------------------------------------------------------
# Header
# ---------------------------------------------------------------------------


def _check_header(raw: Mapping[str, Any], result: ValidationResult) -> None:
    for name in REQUIRED_FIELDS:
        if name not in raw or _is_blank(raw[name]):
            result.add_error(name, f"Required field '{name}' is missing")

    report_id = raw.get("reportId")
    if not _is_blank(report_id):
        if not isinstance(report_id, str) or not REPORT_ID_RE.match(report_id):
            result.add_error(
                "reportId",
                "reportId must contain only lowercase letters, numbers, "
                "hyphens, and underscores",
            )
        elif len(report_id) > MAX_REPORT_ID_LENGTH:
            result.add_error(
                "reportId",
                f"reportId must be between 1 and {MAX_REPORT_ID_LENGTH} characters",
            )

    name = raw.get("name")
    if not _is_blank(name) and (
        not isinstance(name, str) or len(name) > MAX_NAME_LENGTH
    ):
        result.add_error(
            "name", f"name must be a string between 1 and {MAX_NAME_LENGTH} characters"
        )

    version = raw.get("version")
    if not _is_blank(version) and (
        not isinstance(version, str) or not VERSION_RE.match(version)
    ):
        result.add_error(
            "version",
            'version must follow semantic versioning format (e.g., "1.0.0")',
        )

    statement_type = raw.get("statementType")
    if not _is_blank(statement_type) and statement_type not in STATEMENT_TYPES:
        result.add_error(
            "statementType",
            f"statementType must be one of: {', '.join(STATEMENT_TYPES)}",
        )


# ---------------------------------------------------------------------------
# Variables
# ---------------------------------------------------------------------------


def _check_variables(
    raw: Mapping[str, Any], result: ValidationResult
) -> dict[str, Mapping[str, Any]]:
    """Check variable entries; return the well-formed ones by id."""
    entries = raw_variable_entries(raw.get("variables"))
    if entries is None:
        result.add_error("variables", "variables must be a list or an object")
        return {}

    by_id: dict[str, Mapping[str, Any]] = {}
    for index, entry in enumerate(entries):
        where = f"variables[{index}]"
        if not isinstance(entry, Mapping):
            result.add_error(where, "variable definition must be an object")
            continue

        var_id = entry.get("id")
        if _is_blank(var_id) or not isinstance(var_id, str):
            result.add_error(f"{where}.id", "variable id is required")
        else:
            where = f"variables.{var_id}"
            if not VARIABLE_ID_RE.match(var_id):
                result.add_error(
                    f"{where}.id",
                    "variable id must start with a letter or underscore and "
                    "contain only letters, digits and underscores",
                )
            if var_id in by_id:
                result.add_error(f"{where}.id", f"Duplicate variable id: {var_id}")
            else:
                by_id[var_id] = entry

        if "filter" not in entry:
            result.add_error(f"{where}.filter", "filter is required")
        else:
            spec = entry["filter"]
            for message in validate_filter(spec, allow_variable_ref=True):
                result.add_error(f"{where}.filter", message)
            if isinstance(spec, Mapping) and not spec:
                result.add_warning(
                    f"{where}.filter", "empty filter matches every ledger row"
                )

        aggregate = entry.get("aggregate")
        if aggregate is None:
            result.add_error(f"{where}.aggregate", "aggregate is required")
        elif not isinstance(aggregate, str) or aggregate.lower() not in AGGREGATES:
            result.add_error(
                f"{where}.aggregate",
                f"aggregate must be one of: {', '.join(AGGREGATES)}",
            )

    _check_variable_references(by_id, result)
    return by_id


def _variable_ref(entry: Mapping[str, Any]) -> Any:
    spec = entry.get("filter")
    if isinstance(spec, Mapping):
        return spec.get(VARIABLE_REF_KEY)
    return None


def _check_variable_references(
    by_id: Mapping[str, Mapping[str, Any]], result: ValidationResult
) -> None:
    refs: dict[str, str] = {}
    for var_id, entry in by_id.items():
        ref = _variable_ref(entry)
        if not isinstance(ref, str) or not ref:
            continue
        where = f"variables.{var_id}.filter"
        if ref == var_id:
            result.add_error(where, f"variable '{var_id}' references itself")
        elif ref not in by_id:
            result.add_error(where, f"Unknown variable reference: {ref}")
        else:
            refs[var_id] = ref

    # Each variable has at most one reference, so a cycle is a closed walk.
    reported: set[str] = set()
    for start in refs:
        path = [start]
        current = refs.get(start)
        while current is not None and current not in path:
            path.append(current)
            current = refs.get(current)
        if current is None:
            continue
        cycle = path[path.index(current):]
        if reported.isdisjoint(cycle):
            reported.update(cycle)
            chain = " -> ".join(cycle + [current])
            result.add_error(
                f"variables.{current}.filter",
                f"Circular variable reference: {chain}",
            )


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------


def _check_format(fmt: Any, where: str, result: ValidationResult) -> None:
    if fmt is None:
        return
    if isinstance(fmt, str):
        fmt_type = fmt
    elif isinstance(fmt, Mapping):
        fmt_type = fmt.get("type")
        _check_format_options(fmt, where, result)
    else:
        result.add_error(where, "format must be a string or an object")
        return
    if fmt_type not in FORMAT_TYPES:
        result.add_error(where, f"format must be one of: {', '.join(FORMAT_TYPES)}")


def _check_format_options(
    options: Mapping[str, Any], where: str, result: ValidationResult
) -> None:
    decimals = options.get("decimals")
    if decimals is not None and (
        not _is_int(decimals) or not 0 <= decimals <= MAX_FORMAT_DECIMALS
    ):
        result.add_error(
            f"{where}.decimals",
            f"decimals must be an integer between 0 and {MAX_FORMAT_DECIMALS}",
        )
    symbol = options.get("symbol")
    if symbol is not None and (
        not isinstance(symbol, str) or len(symbol) > MAX_SYMBOL_LENGTH
    ):
        result.add_error(
            f"{where}.symbol",
            f"symbol must be a string of at most {MAX_SYMBOL_LENGTH} characters",
        )
    thousands = options.get("thousands")
    if thousands is not None and not isinstance(thousands, bool):
        result.add_error(f"{where}.thousands", "thousands must be true or false")


def _collect_orders(
    layout: list[Any], result: ValidationResult
) -> dict[int, Mapping[str, Any]]:
    """Check order numbers; return the layout items keyed by order."""
    by_order: dict[int, Mapping[str, Any]] = {}
    for index, item in enumerate(layout):
        if not isinstance(item, Mapping):
            result.add_error(f"layout[{index}]", "layout item must be an object")
            continue
        order = item.get("order")
        if not _is_int(order):
            result.add_error(f"layout[{index}].order", "order must be an integer")
        elif order < 0:
            result.add_error(f"layout[{index}].order", "order must be >= 0")
        elif order in by_order:
            result.add_error(
                f"layout[{index}].order", f"Duplicate order number: {order}"
            )
        else:
            by_order[order] = item
    return by_order


def _check_calculated(
    item: Mapping[str, Any],
    where: str,
    variables: Mapping[str, Any],
    by_order: Mapping[int, Mapping[str, Any]],
    result: ValidationResult,
) -> set[str]:
    """Check one calculated item; return the variable ids it references."""
    expression = item.get("expression")
    if _is_blank(expression) or not isinstance(expression, str):
        result.add_error(
            f"{where}.expression", "expression field is required for type=\"calculated\""
        )
        return set()

    try:
        ast = parse(expression)
    except ExpressionSyntaxError as exc:
        result.add_error(f"{where}.expression", f"Invalid expression: {exc}")
        return set()

    refs = references(ast)
    for name in sorted(refs.variables - set(variables)):
        result.add_error(f"{where}.expression", f"Unknown variable: {name}")

    own_order = item.get("order")
    for order in sorted(refs.orders):
        target = by_order.get(order)
        if target is None:
            result.add_error(f"{where}.expression", f"Unknown order reference: @{order}")
        elif _is_int(own_order) and order >= own_order:
            kind = "itself" if order == own_order else "a later row"
            result.add_error(
                f"{where}.expression",
                f"Order reference @{order} points to {kind}; "
                "only earlier rows can be referenced",
            )
        elif target.get("type") == "spacer":
            result.add_error(
                f"{where}.expression", f"Order reference @{order} points to a spacer"
            )
    return set(refs.variables)


def _check_subtotal(
    item: Mapping[str, Any],
    where: str,
    by_order: Mapping[int, Mapping[str, Any]],
    result: ValidationResult,
) -> None:
    start, end = item.get("from"), item.get("to")
    for key, value in (("from", start), ("to", end)):
        if value is None:
            result.add_error(
                f"{where}.{key}", f'{key} field is required for type="subtotal"'
            )
        elif not _is_int(value):
            result.add_error(f"{where}.{key}", f"{key} must be an integer")
        elif value not in by_order:
            result.add_error(
                f"{where}.{key}", f"{key} references unknown order: {value}"
            )
    if _is_int(start) and _is_int(end) and start > end:
        result.add_error(where, f"subtotal range is inverted: from {start} > to {end}")
    own_order = item.get("order")
    if _is_int(end) and _is_int(own_order) and end > own_order:
        result.add_warning(
            where, f"rows after order {own_order} are not included in this subtotal"
        )


def _check_layout(
    raw: Mapping[str, Any],
    variables: Mapping[str, Any],
    result: ValidationResult,
) -> set[str]:
    """Check layout items; return the variable ids used by the layout."""
    layout = raw.get("layout")
    if layout is None:
        return set()
    if not isinstance(layout, (list, tuple)):
        result.add_error("layout", "layout must be an array")
        return set()
    if not layout:
        result.add_error("layout", "layout must contain at least one item")
        return set()

    layout = list(layout)
    by_order = _collect_orders(layout, result)
    used: set[str] = set()

    for index, item in enumerate(layout):
        if not isinstance(item, Mapping):
            continue
        where = f"layout[{index}]"
        kind = item.get("type")

        if _is_blank(kind):
            result.add_error(f"{where}.type", "type is required")
        elif kind not in LAYOUT_TYPES:
            result.add_error(
                f"{where}.type", f"type must be one of: {', '.join(LAYOUT_TYPES)}"
            )

        label = item.get("label")
        if label is not None and not isinstance(label, str):
            result.add_error(f"{where}.label", "label must be a string")
        elif kind != "spacer" and _is_blank(label):
            result.add_warning(f"{where}.label", "row has an empty label")

        _check_format(item.get("format"), f"{where}.format", result)

        style = item.get("style")
        if style is not None and style not in STYLES:
            result.add_error(
                f"{where}.style", f"style must be one of: {', '.join(STYLES)}"
            )

        indent = item.get("indent")
        if indent is not None and (
            not _is_int(indent) or not 0 <= indent <= MAX_INDENT
        ):
            result.add_error(
                f"{where}.indent", f"indent must be an integer between 0 and {MAX_INDENT}"
            )

        if kind == "variable":
            var_id = item.get("variable")
            if _is_blank(var_id):
                result.add_error(
                    f"{where}.variable", 'variable field is required for type="variable"'
                )
            elif not isinstance(var_id, str) or var_id not in variables:
                result.add_error(f"{where}.variable", f"Unknown variable: {var_id}")
            else:
                used.add(var_id)
        elif kind == "calculated":
            used |= _check_calculated(item, where, variables, by_order, result)
        elif kind == "category":
            if "filter" not in item:
                result.add_error(
                    f"{where}.filter", 'filter field is required for type="category"'
                )
            else:
                for message in validate_filter(item["filter"]):
                    result.add_error(f"{where}.filter", message)
        elif kind == "subtotal":
            _check_subtotal(item, where, by_order, result)

    return used


def _check_formatting(raw: Mapping[str, Any], result: ValidationResult) -> None:
    formatting = raw.get("formatting")
    if formatting is None:
        return
    if not isinstance(formatting, Mapping):
        result.add_error("formatting", "formatting must be an object")
        return
    for fmt_type, options in formatting.items():
        where = f"formatting.{fmt_type}"
        if fmt_type not in FORMAT_TYPES:
            result.add_error(
                where, f"formatting keys must be one of: {', '.join(FORMAT_TYPES)}"
            )
        elif not isinstance(options, Mapping):
            result.add_error(where, "formatting rules must be an object")
        else:
            _check_format_options(options, where, result)


def validate(raw: Any) -> ValidationResult:
    """
    Validate a report definition in wire form.

    Args:
        raw: Parsed JSON/TOML document (normally a dict).

    Returns:
        ValidationResult with every error and warning found. This function
        never raises.
    """
    result = ValidationResult()
    if not isinstance(raw, Mapping):
        result.add_error("reportDef", "Report definition must be an object")
        return result

    _check_header(raw, result)
    variables = _check_variables(raw, result)
    used = _check_layout(raw, variables, result)
    _check_formatting(raw, result)

    referenced = {
        ref
        for entry in variables.values()
        if isinstance(ref := _variable_ref(entry), str)
    }
    for var_id in variables:
        if var_id not in used and var_id not in referenced:
            result.add_warning(
                f"variables.{var_id}", f"variable '{var_id}' is never used"
            )

    return result
