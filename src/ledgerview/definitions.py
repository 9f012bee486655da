# LedgerView - Configurable financial statements from trial balance data
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Report definition model for LedgerView.

A report definition describes one statement layout declaratively. It is
loaded from JSON or TOML (see ``loader``), checked by ``validator.validate``
and then converted into the typed model below with
``ReportDefinition.from_dict``.

Wire format (camelCase keys, as stored in report files):

    {
      "reportId": "income_statement_default",
      "name": "Income Statement",
      "version": "1.0.0",
      "statementType": "income",
      "variables": [
        {"id": "revenue", "filter": {"code1": "500"}, "aggregate": "sum"}
      ],
      "layout": [
        {"order": 10, "type": "variable", "variable": "revenue",
         "label": "Revenue", "format": "currency"},
        {"order": 20, "type": "calculated", "expression": "revenue * 0.1",
         "label": "Royalty"}
      ],
      "formatting": {"currency": {"symbol": "€", "decimals": 0}}
    }

``variables`` may also be given as a mapping ``{id: {...}}``.

Layout items are a closed set of frozen dataclasses, one per item type:

- VariableItem:   value of a named variable,
- CalculatedItem: arithmetic expression over variables and earlier rows,
- CategoryItem:   sum of the ledger rows matching a filter,
- SubtotalItem:   sum of earlier rows whose order is in [from, to],
- SpacerItem:     blank row.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional, Union

from .errors import ConfigurationError

LAYOUT_TYPES: tuple[str, ...] = (
    "variable",
    "calculated",
    "category",
    "subtotal",
    "spacer",
)
AGGREGATES: tuple[str, ...] = (
    "sum",
    "average",
    "avg",
    "count",
    "min",
    "max",
    "first",
    "last",
)
FORMAT_TYPES: tuple[str, ...] = ("currency", "percent", "integer", "decimal")
STYLES: tuple[str, ...] = ("normal", "metric", "subtotal", "total", "spacer")
MAX_INDENT = 3


@dataclass(frozen=True)
class FormatSpec:
    """Display format of a row.

    Options left to ``None`` fall back to the report-level ``formatting``
    defaults, then to the built-in defaults of the format type.
    """

    type: str = "decimal"
    decimals: Optional[int] = None
    thousands: Optional[bool] = None
    symbol: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Any) -> "FormatSpec":
        """Accept ``"currency"`` or ``{"type": "currency", "decimals": 2}``."""
        if raw is None:
            return cls()
        if isinstance(raw, str):
            return cls(type=raw)
        if isinstance(raw, Mapping):
            return cls(
                type=str(raw.get("type", "decimal")),
                decimals=raw.get("decimals"),
                thousands=raw.get("thousands"),
                symbol=raw.get("symbol"),
            )
        raise ConfigurationError(f"Invalid format specification: {raw!r}")

    def options(self) -> dict[str, Any]:
        """Explicit options only (the ones that override defaults)."""
        opts = {
            "decimals": self.decimals,
            "thousands": self.thousands,
            "symbol": self.symbol,
        }
        return {k: v for k, v in opts.items() if v is not None}

    def to_raw(self) -> Union[str, dict[str, Any]]:
        opts = self.options()
        if not opts:
            return self.type
        return {"type": self.type, **opts}


@dataclass(frozen=True)
class VariableDef:
    """Named scalar computed from the ledger rows matching ``filter``."""

    id: str
    filter: Mapping[str, Any] = field(default_factory=dict)
    aggregate: str = "sum"
    name: str = ""
    description: str = ""

    def to_raw(self) -> dict[str, Any]:
        raw: dict[str, Any] = {
            "id": self.id,
            "filter": dict(self.filter),
            "aggregate": self.aggregate,
        }
        if self.name:
            raw["name"] = self.name
        if self.description:
            raw["description"] = self.description
        return raw


@dataclass(frozen=True, kw_only=True)
class LayoutItemBase:
    """Fields shared by every layout item."""

    kind: ClassVar[str] = ""

    order: int
    label: str = ""
    format: FormatSpec = field(default_factory=FormatSpec)
    style: str = "normal"
    indent: int = 0

    def _base_raw(self) -> dict[str, Any]:
        return {
            "order": self.order,
            "type": self.kind,
            "label": self.label,
            "format": self.format.to_raw(),
            "style": self.style,
            "indent": self.indent,
        }


@dataclass(frozen=True, kw_only=True)
class VariableItem(LayoutItemBase):
    kind: ClassVar[str] = "variable"

    variable: str

    def to_raw(self) -> dict[str, Any]:
        return {**self._base_raw(), "variable": self.variable}


@dataclass(frozen=True, kw_only=True)
class CalculatedItem(LayoutItemBase):
    kind: ClassVar[str] = "calculated"

    expression: str

    def to_raw(self) -> dict[str, Any]:
        return {**self._base_raw(), "expression": self.expression}


@dataclass(frozen=True, kw_only=True)
class CategoryItem(LayoutItemBase):
    kind: ClassVar[str] = "category"

    filter: Mapping[str, Any] = field(default_factory=dict)

    def to_raw(self) -> dict[str, Any]:
        return {**self._base_raw(), "filter": dict(self.filter)}


@dataclass(frozen=True, kw_only=True)
class SubtotalItem(LayoutItemBase):
    kind: ClassVar[str] = "subtotal"

    from_order: int
    to_order: int

    def to_raw(self) -> dict[str, Any]:
        return {**self._base_raw(), "from": self.from_order, "to": self.to_order}


@dataclass(frozen=True, kw_only=True)
class SpacerItem(LayoutItemBase):
    kind: ClassVar[str] = "spacer"

    style: str = "spacer"

    def to_raw(self) -> dict[str, Any]:
        return self._base_raw()


LayoutItem = Union[VariableItem, CalculatedItem, CategoryItem, SubtotalItem, SpacerItem]


def raw_variable_entries(raw: Any) -> Optional[list[Any]]:
    """Return the variable entries of a raw definition as a list.

    The mapping form ``{id: {...}}`` is turned into ``[{"id": id, ...}]``.
    ``None`` is returned when ``raw`` is neither a list nor a mapping.
    """
    if raw is None:
        return []
    if isinstance(raw, Mapping):
        return [
            {"id": key, **value} if isinstance(value, Mapping) else value
            for key, value in raw.items()
        ]
    if isinstance(raw, (list, tuple)):
        return list(raw)
    return None


def _layout_item_from_raw(raw: Mapping[str, Any]) -> LayoutItem:
    kind = raw.get("type")
    common: dict[str, Any] = {
        "order": int(raw["order"]),
        "label": str(raw.get("label") or ""),
        "format": FormatSpec.from_raw(raw.get("format")),
        "indent": int(raw.get("indent", 0) or 0),
    }
    if raw.get("style"):
        common["style"] = str(raw["style"])

    if kind == "variable":
        return VariableItem(variable=str(raw["variable"]), **common)
    if kind == "calculated":
        return CalculatedItem(expression=str(raw["expression"]), **common)
    if kind == "category":
        return CategoryItem(filter=dict(raw["filter"]), **common)
    if kind == "subtotal":
        return SubtotalItem(
            from_order=int(raw["from"]), to_order=int(raw["to"]), **common
        )
    if kind == "spacer":
        return SpacerItem(**common)
    raise ConfigurationError(f"Unknown layout item type: {kind!r}")


@dataclass(frozen=True)
class ReportDefinition:
    """Typed, immutable report definition.

    ``layout`` is kept sorted by ascending order.
    """

    report_id: str
    name: str
    version: str
    statement_type: str
    variables: tuple[VariableDef, ...] = ()
    layout: tuple[LayoutItem, ...] = ()
    formatting: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "layout", tuple(sorted(self.layout, key=lambda item: item.order))
        )
        object.__setattr__(self, "variables", tuple(self.variables))

    @property
    def variables_by_id(self) -> dict[str, VariableDef]:
        return {v.id: v for v in self.variables}

    def variable(self, variable_id: str) -> Optional[VariableDef]:
        return self.variables_by_id.get(variable_id)

    def item(self, order: int) -> Optional[LayoutItem]:
        for it in self.layout:
            if it.order == order:
                return it
        return None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ReportDefinition":
        """Build a definition from its wire form.

        The input is expected to have passed ``validator.validate``; any
        structural problem left is reported as ``ConfigurationError``.
        """
        try:
            entries = raw_variable_entries(raw.get("variables"))
            if entries is None:
                raise ConfigurationError("variables must be a list or an object")
            variables = tuple(
                VariableDef(
                    id=str(v["id"]),
                    filter=dict(v.get("filter") or {}),
                    aggregate=str(v.get("aggregate", "sum")).lower(),
                    name=str(v.get("name") or ""),
                    description=str(v.get("description") or ""),
                )
                for v in entries
            )
            layout = tuple(_layout_item_from_raw(item) for item in raw["layout"])
            return cls(
                report_id=str(raw["reportId"]),
                name=str(raw["name"]),
                version=str(raw["version"]),
                statement_type=str(raw["statementType"]),
                variables=variables,
                layout=layout,
                formatting={
                    str(k): dict(v) for k, v in (raw.get("formatting") or {}).items()
                },
                description=str(raw.get("description") or ""),
            )
        except ConfigurationError:
            raise
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            report_id = raw.get("reportId", "?") if isinstance(raw, Mapping) else "?"
            raise ConfigurationError(
                f"Malformed report definition {report_id!r}: {exc}"
            ) from exc

    def to_dict(self) -> dict[str, Any]:
        """Wire form of the definition (inverse of ``from_dict``)."""
        raw: dict[str, Any] = {
            "reportId": self.report_id,
            "name": self.name,
            "version": self.version,
            "statementType": self.statement_type,
            "variables": [v.to_raw() for v in self.variables],
            "layout": [item.to_raw() for item in self.layout],
        }
        if self.formatting:
            raw["formatting"] = {k: dict(v) for k, v in self.formatting.items()}
        if self.description:
            raw["description"] = self.description
        return raw
