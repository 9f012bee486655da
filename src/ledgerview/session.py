# LedgerView - Configurable financial statements from trial balance data
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Statement session: the composition root of LedgerView.

A ``StatementSession`` owns the objects a host application needs:

- the configuration (``AppConfig``),
- the ``ReportRegistry`` (created here, never module-global),
- the current ledger snapshot,
- a generation counter for stale-result detection.

The core is synchronous. A host that runs renders in the background calls
``begin_render()`` before starting, and applies a result only if
``is_current(token)`` is still true when the result arrives: any later
``begin_render()`` or ledger reload makes older tokens stale.
"""

import logging
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Optional, Union

import pandas as pd

from .config import AppConfig
from .definitions import ReportDefinition
from .errors import ConfigurationError, DataUnavailableError
from .hierarchy import HierarchyTreeBuilder, TreeNode, metrics_from_definition
from .io import read_trial_balance
from .ledger import LedgerInput, empty_ledger, ledger_frame
from .loader import LoadSummary, load_reports_from_directory
from .ltm import LTMInfo, calculate_ltm_info
from .periods import SIDES, ComparisonPeriod, default_comparison
from .registry import ReportRegistry
from .renderer import RenderedReport, RenderOptions, ReportRenderer
from .resolver import RenderCache, ResolutionContext, VariableResolver

logger = logging.getLogger(__name__)


class StatementSession:
    """Single-user session tying configuration, reports and ledger together."""

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        registry: Optional[ReportRegistry] = None,
    ):
        self.config = config or AppConfig()
        self.registry = registry if registry is not None else ReportRegistry()
        self.renderer = ReportRenderer()
        self.tree_builder = HierarchyTreeBuilder()
        self._ledger = empty_ledger()
        self._generation = 0
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Generation counter
    # ------------------------------------------------------------------

    def begin_render(self) -> int:
        """Start a computation and return its generation token."""
        with self._lock:
            self._generation += 1
            return self._generation

    def is_current(self, token: int) -> bool:
        """True while no newer computation or data reload has started."""
        with self._lock:
            return token == self._generation

    # ------------------------------------------------------------------
    # Data and reports
    # ------------------------------------------------------------------

    @property
    def ledger(self) -> pd.DataFrame:
        return self._ledger

    def load_ledger(self, rows: LedgerInput) -> pd.DataFrame:
        """Replace the ledger snapshot; in-flight results become stale."""
        self._ledger = ledger_frame(rows)
        self.begin_render()
        logger.info("Loaded ledger with %d row(s)", len(self._ledger))
        return self._ledger

    def load_ledger_csv(self, path: Union[str, Path]) -> pd.DataFrame:
        return self.load_ledger(read_trial_balance(path))

    def load_reports(self, directory: Union[str, Path, None] = None) -> LoadSummary:
        """Load report files from ``directory`` (or the configured one)."""
        return load_reports_from_directory(
            directory or self.config.reports.directory,
            self.registry,
            defaults=self.config.reports.defaults,
        )

    def report(
        self, report_id: Optional[str] = None, statement_type: str = "income"
    ) -> ReportDefinition:
        """Registered report by id, or the default of a statement type.

        Raises:
            ConfigurationError: if no such report is registered.
        """
        if report_id is not None:
            definition = self.registry.get_by_id(report_id)
            if definition is None:
                raise ConfigurationError(f"Unknown report id: {report_id!r}")
            return definition
        definition = self.registry.get_default(statement_type)
        if definition is None:
            raise ConfigurationError(
                f"No report registered for statement type '{statement_type}'."
            )
        return definition

    # ------------------------------------------------------------------
    # Computations
    # ------------------------------------------------------------------

    def _scoped(self, statement_type: str) -> pd.DataFrame:
        if self._ledger.empty:
            raise DataUnavailableError("No ledger data loaded.")
        scoped = self._ledger[self._ledger["statement_type"] == statement_type]
        if scoped.empty:
            raise DataUnavailableError(
                f"No ledger rows for statement type '{statement_type}'."
            )
        return scoped

    def comparison_periods(
        self, statement_type: str = "income"
    ) -> dict[str, ComparisonPeriod]:
        """Prior/current periods per the configured comparison mode."""
        comparison = self.config.comparison
        return default_comparison(
            self._scoped(statement_type), comparison.mode, comparison.ltm_months
        )

    def render_options(
        self,
        periods: Optional[Mapping[str, ComparisonPeriod]] = None,
        **overrides: str,
    ) -> RenderOptions:
        display = self.config.display
        return RenderOptions(
            periods=periods,
            detail_level=overrides.get("detail_level", display.detail_level),
            variance_mode=overrides.get("variance_mode", display.variance_mode),
            currency_symbol=display.currency_symbol,
        )

    def render(
        self,
        report_id: Optional[str] = None,
        statement_type: str = "income",
        **overrides: str,
    ) -> RenderedReport:
        """Render a registered report against the current ledger."""
        definition = self.report(report_id, statement_type)
        periods = self.comparison_periods(definition.statement_type)
        options = self.render_options(periods, **overrides)
        return self.renderer.render(definition, self._ledger, options)

    def build_tree(
        self,
        statement_type: str = "income",
        report_id: Optional[str] = None,
    ) -> list[TreeNode]:
        """Statement tree, with the report's calculated rows as metrics.

        The report is rendered once so that metrics using ``@N`` references
        get the rendered row values. Without a registered report for the
        statement type, the tree has no metrics.
        """
        scoped = self._scoped(statement_type)
        periods = self.comparison_periods(statement_type)

        try:
            definition: Optional[ReportDefinition] = self.report(
                report_id, statement_type
            )
        except ConfigurationError:
            if report_id is not None:
                raise
            definition = None

        metrics = []
        variables = None
        orders = None
        if definition is not None:
            metrics = metrics_from_definition(definition)
            resolver = VariableResolver(definition.variables)
            cache = RenderCache()
            variables = {
                side: resolver.resolve_all(
                    None, ResolutionContext(scoped, periods[side], cache)
                )
                for side in SIDES
            }
            orders = self._rendered_values(definition, periods, variables)

        return self.tree_builder.build_tree(
            scoped,
            statement_type=statement_type,
            calculated_rows=metrics,
            periods=periods,
            variables=variables,
            orders=orders,
        )

    def _rendered_values(
        self,
        definition: ReportDefinition,
        periods: Mapping[str, ComparisonPeriod],
        variables: Mapping[str, Mapping[str, float]],
    ) -> Optional[dict[str, dict[int, float]]]:
        """Side -> order -> rendered amount, or None if the report cannot render."""
        try:
            report = self.renderer.render(
                definition,
                self._ledger,
                self.render_options(periods, detail_level="detailed"),
                resolved=variables,
            )
        except DataUnavailableError as exc:
            logger.warning("Tree metrics use variables only: %s", exc)
            return None
        return {
            side: {
                row.order: row.amounts[side]
                for row in report.rows
                if row.amounts[side] is not None
            }
            for side in SIDES
        }

    def ltm_info(self, window_length: Optional[int] = None) -> LTMInfo:
        return calculate_ltm_info(
            self._ledger, window_length or self.config.comparison.ltm_months
        )
