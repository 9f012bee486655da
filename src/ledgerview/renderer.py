# LedgerView - Configurable financial statements from trial balance data
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Report rendering for LedgerView.

``ReportRenderer.render`` turns a ``ReportDefinition`` and a ledger into a
``RenderedReport``: one ``RenderedRow`` per layout item, with an amount per
comparison side (``prior`` / ``current``), variance and display strings.

Processing
----------
1. Fail fast with ``DataUnavailableError`` when the ledger has no rows for
   the report's statement type, or when a comparison side covers a year
   that is not loaded. No row is computed in that case.
2. Resolve every variable for both sides with one ``RenderCache`` (or use
   the values passed in ``resolved=``).
3. Walk the layout in ascending order:

   - variable:   value of the named variable,
   - calculated: expression over variables and earlier rows (``@N``),
   - category:   sum of the ledger rows matching the item filter,
   - subtotal:   sum of earlier non-spacer, non-subtotal rows with order in
                 [from, to],
   - spacer:     blank row.

   An ``ExpressionError`` only marks its own row as errored (amounts
   ``None``); rows that reference an errored row through ``@N`` are errored
   in turn. The rest of the report still renders.
4. Variance when both sides are numeric, then formatting.
5. ``detail_level="summary"`` keeps only subtotal/total/metric rows. The
   values are not recomputed.

``variance_mode`` only controls which variance fields are exported by
``RenderedRow.to_dict`` and ``RenderedReport.to_dataframe``.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import pandas as pd

from . import variance
from .definitions import (
    CalculatedItem,
    CategoryItem,
    FormatSpec,
    LayoutItem,
    ReportDefinition,
    SpacerItem,
    SubtotalItem,
    VariableItem,
)
from .errors import DataUnavailableError, ExpressionError
from .expressions import evaluate, parse, references
from .filters import apply_filter
from .formatting import format_value, merge_formatting
from .ledger import LedgerInput, available_years, ledger_frame
from .periods import CURRENT, PRIOR, SIDES, ComparisonPeriod, default_comparison
from .resolver import RenderCache, ResolutionContext, VariableResolver

logger = logging.getLogger(__name__)

DETAIL_LEVELS: tuple[str, ...] = ("detailed", "summary")
VARIANCE_MODES: tuple[str, ...] = ("none", "amount", "percent", "both")
SUMMARY_STYLES: frozenset[str] = frozenset({"subtotal", "total", "metric"})
ALWAYS_VISIBLE_STYLES: frozenset[str] = frozenset({"subtotal", "total"})


@dataclass(frozen=True)
class RenderOptions:
    """Per-render options.

    Attributes:
        periods: Side -> ComparisonPeriod. When omitted, the latest full
            year in the data is compared with the year before.
        detail_level: "detailed" (all rows) or "summary".
        variance_mode: "none", "amount", "percent" or "both".
        currency_symbol: Overrides the built-in currency symbol; the
            report's own ``formatting`` still takes precedence.
    """

    periods: Optional[Mapping[str, ComparisonPeriod]] = None
    detail_level: str = "detailed"
    variance_mode: str = "both"
    currency_symbol: Optional[str] = None

    def __post_init__(self) -> None:
        if self.detail_level not in DETAIL_LEVELS:
            raise ValueError(
                f"Unknown detail level: {self.detail_level!r}. "
                f"Expected one of: {', '.join(DETAIL_LEVELS)}"
            )
        if self.variance_mode not in VARIANCE_MODES:
            raise ValueError(
                f"Unknown variance mode: {self.variance_mode!r}. "
                f"Expected one of: {', '.join(VARIANCE_MODES)}"
            )
        if self.periods is not None:
            missing = [side for side in SIDES if side not in self.periods]
            if missing:
                raise ValueError(f"Missing comparison side(s): {', '.join(missing)}")


@dataclass
class RenderedRow:
    """One rendered layout item."""

    order: int
    label: str
    type: str
    style: str
    indent: int
    format: FormatSpec
    amounts: dict[str, Optional[float]]
    variance_amount: Optional[float] = None
    variance_percent: Optional[float] = None
    formatted: dict[str, str] = field(default_factory=dict)
    always_visible: bool = False
    is_group: bool = False
    is_calculated: bool = False
    error: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_errored(self) -> bool:
        return self.error is not None

    def to_dict(self, variance_mode: str = "both") -> dict[str, Any]:
        """Row contract consumed by views and exports."""
        row: dict[str, Any] = {
            "order": self.order,
            "label": self.label,
            "type": self.type,
            "style": self.style,
            "indent": self.indent,
            "amounts_by_side": dict(self.amounts),
            "formatted_values": {
                side: self.formatted.get(side, "") for side in SIDES
            },
            "always_visible": self.always_visible,
            "is_group": self.is_group,
            "is_calculated": self.is_calculated,
        }
        if variance_mode in ("amount", "both"):
            row["variance_amount"] = self.variance_amount
            row["formatted_values"]["variance_amount"] = self.formatted.get(
                "variance_amount", ""
            )
        if variance_mode in ("percent", "both"):
            row["variance_percent"] = self.variance_percent
            row["formatted_values"]["variance_percent"] = self.formatted.get(
                "variance_percent", ""
            )
        if self.error is not None:
            row["error"] = self.error
        return row


@dataclass
class RenderedReport:
    """Rendered statement plus the metadata describing how it was built."""

    report_id: str
    name: str
    version: str
    statement_type: str
    periods: dict[str, ComparisonPeriod]
    rows: list[RenderedRow]
    variable_count: int
    layout_count: int
    detail_level: str = "detailed"
    variance_mode: str = "both"
    generated_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def period_labels(self) -> dict[str, str]:
        return {side: period.label for side, period in self.periods.items()}

    @property
    def errored_rows(self) -> list[RenderedRow]:
        return [row for row in self.rows if row.is_errored]

    def row(self, order: int) -> Optional[RenderedRow]:
        for r in self.rows:
            if r.order == order:
                return r
        return None

    def to_dicts(self) -> list[dict[str, Any]]:
        return [row.to_dict(self.variance_mode) for row in self.rows]

    def to_dataframe(self) -> pd.DataFrame:
        """Flat table for display or CSV export.

        Columns: order, label, type, style, indent, prior, current,
        [variance_amount], [variance_percent], prior_display,
        current_display, error.
        """
        columns = ["order", "label", "type", "style", "indent", PRIOR, CURRENT]
        if self.variance_mode in ("amount", "both"):
            columns.append("variance_amount")
        if self.variance_mode in ("percent", "both"):
            columns.append("variance_percent")
        columns += [f"{PRIOR}_display", f"{CURRENT}_display", "error"]

        records: list[dict[str, Any]] = []
        for r in self.rows:
            records.append(
                {
                    "order": r.order,
                    "label": r.label,
                    "type": r.type,
                    "style": r.style,
                    "indent": r.indent,
                    PRIOR: r.amounts.get(PRIOR),
                    CURRENT: r.amounts.get(CURRENT),
                    "variance_amount": r.variance_amount,
                    "variance_percent": r.variance_percent,
                    f"{PRIOR}_display": r.formatted.get(PRIOR, ""),
                    f"{CURRENT}_display": r.formatted.get(CURRENT, ""),
                    "error": r.error or "",
                }
            )
        return pd.DataFrame(records, columns=columns)


class _RenderState:
    """Mutable state of one render call."""

    def __init__(
        self,
        ledger: pd.DataFrame,
        periods: Mapping[str, ComparisonPeriod],
        variables: Mapping[str, Mapping[str, float]],
    ):
        self.periods = periods
        self.variables = variables
        self.period_rows = {side: periods[side].select(ledger) for side in SIDES}
        self.values: dict[str, dict[int, float]] = {side: {} for side in SIDES}
        self.rows: dict[int, RenderedRow] = {}
        self.errored: set[int] = set()


class ReportRenderer:
    """Render report definitions against a ledger."""

    def render(
        self,
        definition: ReportDefinition,
        ledger: LedgerInput,
        options: Optional[RenderOptions] = None,
        resolved: Optional[Mapping[str, Mapping[str, float]]] = None,
    ) -> RenderedReport:
        """
        Render a report.

        Args:
            definition: Validated report definition.
            ledger: Ledger rows (DataFrame, LedgerRow records or mappings).
            options: Periods, detail level, variance mode, currency symbol.
            resolved: Optional pre-resolved variable values, side -> id ->
                value. Variables are resolved from the ledger otherwise.

        Returns:
            RenderedReport with one row per kept layout item.

        Raises:
            DataUnavailableError: no data for the statement type, or a
                comparison side covers a year absent from the ledger.
            ConfigurationError: a variable cannot be resolved (unknown id,
                circular ``$variable`` chain).
        """
        options = options or RenderOptions()
        frame = ledger_frame(ledger)
        if frame.empty:
            raise DataUnavailableError("No ledger data loaded.")

        scoped = frame[frame["statement_type"] == definition.statement_type]
        if scoped.empty:
            raise DataUnavailableError(
                f"No ledger rows for statement type '{definition.statement_type}'."
            )

        periods = dict(options.periods or default_comparison(scoped, "fy"))
        self._check_periods(periods, available_years(scoped))

        if resolved is None:
            resolved = self._resolve(definition, scoped, periods)

        state = _RenderState(scoped, periods, resolved)
        defaults = merge_formatting(
            {"currency": {"symbol": options.currency_symbol}}
            if options.currency_symbol
            else None,
            definition.formatting,
        )

        rows: list[RenderedRow] = []
        for item in definition.layout:
            row = self._render_item(item, state)
            self._finish_row(row, defaults)
            state.rows[item.order] = row
            if row.is_errored:
                state.errored.add(item.order)
                logger.warning(
                    "Row @%s (%s) of %s errored: %s",
                    row.order,
                    row.label,
                    definition.report_id,
                    row.error,
                )
            elif not isinstance(item, SpacerItem):
                for side in SIDES:
                    amount = row.amounts[side]
                    if amount is not None:
                        state.values[side][item.order] = amount
            rows.append(row)

        if options.detail_level == "summary":
            rows = [r for r in rows if r.style in SUMMARY_STYLES or r.type == "subtotal"]

        logger.debug("Rendered %s: %d row(s)", definition.report_id, len(rows))
        return RenderedReport(
            report_id=definition.report_id,
            name=definition.name,
            version=definition.version,
            statement_type=definition.statement_type,
            periods=periods,
            rows=rows,
            variable_count=len(definition.variables),
            layout_count=len(definition.layout),
            detail_level=options.detail_level,
            variance_mode=options.variance_mode,
        )

    @staticmethod
    def _check_periods(
        periods: Mapping[str, ComparisonPeriod], years: list[int]
    ) -> None:
        loaded = set(years)
        for side in SIDES:
            missing = [y for y in periods[side].years if y not in loaded]
            if missing:
                raise DataUnavailableError(
                    f"No data for {side} period {periods[side].label}: "
                    f"missing year(s) {', '.join(map(str, missing))}."
                )

    @staticmethod
    def _resolve(
        definition: ReportDefinition,
        ledger: pd.DataFrame,
        periods: Mapping[str, ComparisonPeriod],
    ) -> dict[str, dict[str, float]]:
        resolver = VariableResolver(definition.variables)
        cache = RenderCache()
        values = {
            side: resolver.resolve_all(
                None, ResolutionContext(ledger, periods[side], cache)
            )
            for side in SIDES
        }
        logger.debug(
            "Resolved %d variable(s) (cache hits=%d)", len(resolver.variable_ids), cache.hits
        )
        return values

    # ------------------------------------------------------------------
    # Layout items
    # ------------------------------------------------------------------

    def _render_item(self, item: LayoutItem, state: _RenderState) -> RenderedRow:
        row = RenderedRow(
            order=item.order,
            label=item.label,
            type=item.kind,
            style=item.style,
            indent=item.indent,
            format=item.format,
            amounts={side: None for side in SIDES},
            always_visible=item.style in ALWAYS_VISIBLE_STYLES
            or isinstance(item, (CalculatedItem, SubtotalItem)),
            is_calculated=isinstance(item, (CalculatedItem, SubtotalItem)),
        )

        if isinstance(item, VariableItem):
            self._render_variable(item, row, state)
        elif isinstance(item, CalculatedItem):
            self._render_calculated(item, row, state)
        elif isinstance(item, CategoryItem):
            self._render_category(item, row, state)
        elif isinstance(item, SubtotalItem):
            self._render_subtotal(item, row, state)
        elif isinstance(item, SpacerItem):
            pass
        else:
            raise TypeError(f"Unsupported layout item: {type(item).__name__}")
        return row

    @staticmethod
    def _render_variable(
        item: VariableItem, row: RenderedRow, state: _RenderState
    ) -> None:
        row.metadata["variable"] = item.variable
        for side in SIDES:
            side_values = state.variables.get(side, {})
            if item.variable not in side_values:
                row.error = f"Unknown variable: {item.variable}"
                row.amounts = {s: None for s in SIDES}
                return
            row.amounts[side] = float(side_values[item.variable])

    @staticmethod
    def _render_calculated(
        item: CalculatedItem, row: RenderedRow, state: _RenderState
    ) -> None:
        row.metadata["expression"] = item.expression
        try:
            ast = parse(item.expression)
            blocked = sorted(references(ast).orders & state.errored)
            if blocked:
                raise ExpressionError(
                    "Depends on errored row(s): "
                    + ", ".join(f"@{order}" for order in blocked)
                )
            amounts = {
                side: evaluate(ast, state.variables.get(side, {}), state.values[side])
                for side in SIDES
            }
        except ExpressionError as exc:
            row.error = str(exc)
            return
        row.amounts.update(amounts)

    @staticmethod
    def _render_category(
        item: CategoryItem, row: RenderedRow, state: _RenderState
    ) -> None:
        row.metadata["filter"] = dict(item.filter)
        for side in SIDES:
            matched = apply_filter(state.period_rows[side], item.filter)
            row.amounts[side] = float(matched["movement_amount"].sum())

    @staticmethod
    def _render_subtotal(
        item: SubtotalItem, row: RenderedRow, state: _RenderState
    ) -> None:
        row.metadata["calculated_from"] = (item.from_order, item.to_order)
        totals = {side: 0.0 for side in SIDES}
        for order, other in state.rows.items():
            if not item.from_order <= order <= item.to_order or order == item.order:
                continue
            if other.type in ("spacer", "subtotal"):
                continue
            for side in SIDES:
                totals[side] += other.amounts[side] or 0.0
        row.amounts.update(totals)

    @staticmethod
    def _finish_row(row: RenderedRow, defaults: Mapping[str, Mapping[str, Any]]) -> None:
        current, prior = row.amounts[CURRENT], row.amounts[PRIOR]
        row.variance_amount, row.variance_percent = variance.calculate_optional(
            current, prior
        )
        for side in SIDES:
            row.formatted[side] = format_value(row.amounts[side], row.format, defaults)
        row.formatted["variance_amount"] = format_value(
            row.variance_amount, row.format, defaults
        )
        row.formatted["variance_percent"] = format_value(
            row.variance_percent, "percent", defaults
        )
