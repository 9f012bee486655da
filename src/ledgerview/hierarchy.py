# LedgerView - Configurable financial statements from trial balance data
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Hierarchy tree builder for LedgerView.

The ledger carries a coded hierarchy on each row (``code0`` .. ``code3``)
plus an account code. This module turns the flat rows into a list of
``TreeNode`` with amounts aggregated bottom-up for the two comparison
sides:

    level 0   code0                      "Revenue (500)"          style total
    level 1   code0/code1                "Sales (510)"
    level 2   code0/code1/code2
    level 3   code0/code1/code2/code3
    level 5   .../account_code           "Product sales (701000)"  leaf

Level 4 is intentionally unused. A row whose deeper codes are empty is
attached to its deepest present code: the path is truncated at the first
missing code, never padded. Rows without an account code get the leaf
segment ``UNASSIGNED``.

Grouping is done with pandas ``groupby(...).sum()`` on one amount column
per side, so a parent amount is always the sum of its direct children.

Calculated metrics (statement totals that cannot be derived from the codes,
typically the calculated rows of a report definition) are inserted among
the level-0 sections: sections take display orders 10, 20, 30 ... in code
order, and a metric with order N is placed after every section whose
display order is <= N.
Metric amounts are evaluated per side from the report variables and, for
``@N`` references, from the rendered values of the report rows.

Nodes are returned in display order (depth-first, codes ascending).
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Optional, Union

import pandas as pd

from . import variance
from .definitions import CalculatedItem, ReportDefinition
from .errors import ExpressionError
from .expressions import evaluate_expression
from .ledger import CODE_COLUMNS, NAME_COLUMNS, LedgerInput, ledger_frame
from .ltm import ranges_mask
from .periods import CURRENT, PRIOR, SIDES, ComparisonPeriod, default_comparison

logger = logging.getLogger(__name__)

METRICS_ROOT = "_METRICS_"
UNASSIGNED_ACCOUNT = "UNASSIGNED"
ACCOUNT_LEVEL = 5
SECTION_ORDER_STEP = 10
ALWAYS_VISIBLE_STYLES = frozenset({"total", "subtotal"})

_ACCOUNT_KEY = "_account"


@dataclass
class TreeNode:
    """One node of the statement tree."""

    org_hierarchy: tuple[str, ...]
    label: str
    level: int
    type: str  # 'category', 'account' or 'calculated'
    amounts: dict[str, Optional[float]]
    style: str = "normal"
    variance_amount: Optional[float] = None
    variance_percent: Optional[float] = None
    always_visible: bool = False
    is_group: bool = False
    is_calculated: bool = False
    order: Optional[int] = None
    expression: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "org_hierarchy": list(self.org_hierarchy),
            "label": self.label,
            "level": self.level,
            "type": self.type,
            "style": self.style,
            "amounts_by_side": dict(self.amounts),
            "variance_amount": self.variance_amount,
            "variance_percent": self.variance_percent,
            "always_visible": self.always_visible,
            "is_group": self.is_group,
            "is_calculated": self.is_calculated,
            "order": self.order,
        }


@dataclass(frozen=True)
class CalculatedMetric:
    """A statement-level metric inserted among the level-0 sections."""

    label: str
    order: int
    expression: str = ""
    style: str = "metric"

    @classmethod
    def from_layout_item(cls, item: CalculatedItem) -> "CalculatedMetric":
        style = item.style if item.style != "normal" else "metric"
        return cls(
            label=item.label, order=item.order, expression=item.expression, style=style
        )

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "CalculatedMetric":
        return cls(
            label=str(raw.get("label") or raw.get("name") or "Metric"),
            order=int(raw.get("order") or 0),
            expression=str(raw.get("expression") or ""),
            style=str(raw.get("style") or "metric"),
        )


MetricInput = Union[CalculatedMetric, CalculatedItem, Mapping[str, Any]]


def metrics_from_definition(definition: ReportDefinition) -> list[CalculatedMetric]:
    """Calculated rows of a report definition, as tree metrics."""
    return [
        CalculatedMetric.from_layout_item(item)
        for item in definition.layout
        if isinstance(item, CalculatedItem)
    ]


def _as_metric(raw: MetricInput) -> CalculatedMetric:
    if isinstance(raw, CalculatedMetric):
        return raw
    if isinstance(raw, CalculatedItem):
        return CalculatedMetric.from_layout_item(raw)
    return CalculatedMetric.from_raw(raw)


def _label(name: str, code: str) -> str:
    if name:
        return f"{name} ({code})" if code else name
    return code


class HierarchyTreeBuilder:
    """Build ``TreeNode`` lists from ledger rows."""

    def build_tree(
        self,
        rows: LedgerInput,
        statement_type: Optional[str] = None,
        calculated_rows: Iterable[MetricInput] = (),
        periods: Optional[Mapping[str, ComparisonPeriod]] = None,
        variables: Optional[Mapping[str, Mapping[str, float]]] = None,
        orders: Optional[Mapping[str, Mapping[int, float]]] = None,
    ) -> list[TreeNode]:
        """
        Build the statement tree.

        Args:
            rows: Ledger rows (any input accepted by ``ledger_frame``).
            statement_type: Keep only rows of this statement type.
            calculated_rows: Metrics to insert among the level-0 sections.
            periods: Side -> ComparisonPeriod. Defaults to the latest year
                in the data vs the year before.
            variables: Optional side -> variable id -> value, used to
                evaluate metric expressions.
            orders: Optional side -> layout order -> rendered value, used
                for ``@N`` references. Metric amounts stay ``None`` when
                neither mapping is given.

        Returns:
            Nodes in display order. Empty input gives an empty list.
        """
        frame = ledger_frame(rows)
        if statement_type is not None:
            frame = frame[frame["statement_type"] == statement_type]

        blank_root = frame["code0"] == ""
        if blank_root.any():
            logger.warning("Ignoring %d row(s) without code0", int(blank_root.sum()))
            frame = frame[~blank_root]
        if frame.empty:
            return []

        periods = dict(periods or default_comparison(frame, "fy"))
        frame = self._side_amounts(frame, periods)

        nodes = self._category_nodes(frame) + self._account_nodes(frame)
        nodes = self._dedupe_paths(nodes)
        nodes = self._sort_depth_first(nodes)

        metrics = sorted(
            (_as_metric(m) for m in calculated_rows), key=lambda m: m.order
        )
        if metrics:
            nodes = self._insert_metrics(nodes, metrics, variables, orders)

        for node in nodes:
            self._finish(node)

        logger.debug(
            "Built tree: %d node(s), %d metric(s)", len(nodes), len(metrics)
        )
        return nodes

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    @staticmethod
    def _side_amounts(
        frame: pd.DataFrame, periods: Mapping[str, ComparisonPeriod]
    ) -> pd.DataFrame:
        """Add one amount column per side and truncate sparse code paths."""
        out = frame.copy()
        in_any = pd.Series(False, index=out.index)
        for side in SIDES:
            mask = ranges_mask(out, periods[side].ranges)
            out[side] = out["movement_amount"].where(mask, 0.0)
            in_any |= mask
        out = out[in_any]

        # Codes after the first empty one are ignored.
        present = out[list(CODE_COLUMNS)].ne("").astype(int).cumprod(axis=1).astype(bool)
        for col in CODE_COLUMNS:
            out[col] = out[col].where(present[col], "")
        out["_depth"] = present.sum(axis=1)
        out[_ACCOUNT_KEY] = out["account_code"].where(
            out["account_code"] != "", UNASSIGNED_ACCOUNT
        )
        return out

    @staticmethod
    def _category_nodes(frame: pd.DataFrame) -> list[TreeNode]:
        nodes: list[TreeNode] = []
        for level, (code_col, name_col) in enumerate(zip(CODE_COLUMNS, NAME_COLUMNS)):
            keys = list(CODE_COLUMNS[: level + 1])
            subset = frame[frame["_depth"] > level]
            if subset.empty:
                continue
            grouped = (
                subset.groupby(keys, sort=True)
                .agg(
                    name=(name_col, "first"),
                    prior=(PRIOR, "sum"),
                    current=(CURRENT, "sum"),
                )
                .reset_index()
            )
            for _, g in grouped.iterrows():
                nodes.append(
                    TreeNode(
                        org_hierarchy=tuple(str(g[k]) for k in keys),
                        label=_label(str(g["name"]), str(g[code_col])),
                        level=level,
                        type="category",
                        style="total" if level == 0 else "normal",
                        amounts={PRIOR: float(g[PRIOR]), CURRENT: float(g[CURRENT])},
                    )
                )
        return nodes

    @staticmethod
    def _account_nodes(frame: pd.DataFrame) -> list[TreeNode]:
        keys = [*CODE_COLUMNS, _ACCOUNT_KEY]
        grouped = (
            frame.groupby(keys, sort=True)
            .agg(
                description=("account_description", "first"),
                prior=(PRIOR, "sum"),
                current=(CURRENT, "sum"),
            )
            .reset_index()
        )
        nodes: list[TreeNode] = []
        for _, g in grouped.iterrows():
            parent = tuple(str(g[c]) for c in CODE_COLUMNS if g[c] != "")
            account = str(g[_ACCOUNT_KEY])
            description = str(g["description"])
            nodes.append(
                TreeNode(
                    org_hierarchy=(*parent, account),
                    label=f"{description} ({account})" if description else account,
                    level=ACCOUNT_LEVEL,
                    type="account",
                    amounts={PRIOR: float(g[PRIOR]), CURRENT: float(g[CURRENT])},
                )
            )
        return nodes

    @staticmethod
    def _dedupe_paths(nodes: list[TreeNode]) -> list[TreeNode]:
        """Make account paths distinct from category paths.

        An account code may equal a sibling category code when a row stops
        at a shallower level; the account segment then gets a suffix.
        """
        taken = {n.org_hierarchy for n in nodes if n.level < ACCOUNT_LEVEL}
        for node in nodes:
            if node.level != ACCOUNT_LEVEL or node.org_hierarchy not in taken:
                continue
            original = node.org_hierarchy
            candidate = (*original[:-1], f"{original[-1]}#account")
            suffix = 2
            while candidate in taken:
                candidate = (*original[:-1], f"{original[-1]}#account{suffix}")
                suffix += 1
            logger.warning(
                "Account path %s collides with a category; using %s",
                "/".join(original),
                "/".join(candidate),
            )
            node.org_hierarchy = candidate
            taken.add(candidate)
        return nodes

    @staticmethod
    def _sort_depth_first(nodes: list[TreeNode]) -> list[TreeNode]:
        # Categories before accounts among siblings.
        def key(node: TreeNode) -> tuple:
            parts = []
            for depth, segment in enumerate(node.org_hierarchy):
                is_leaf = node.level == ACCOUNT_LEVEL and depth == len(node.org_hierarchy) - 1
                parts.append((1 if is_leaf else 0, segment))
            return tuple(parts)

        return sorted(nodes, key=key)

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def _insert_metrics(
        self,
        nodes: list[TreeNode],
        metrics: Sequence[CalculatedMetric],
        variables: Optional[Mapping[str, Mapping[str, float]]],
        orders: Optional[Mapping[str, Mapping[int, float]]] = None,
    ) -> list[TreeNode]:
        # Split the depth-first list into level-0 sections.
        sections: list[list[TreeNode]] = []
        for node in nodes:
            if node.level == 0:
                sections.append([])
            sections[-1].append(node)
        for index, section in enumerate(sections, start=1):
            section[0].order = index * SECTION_ORDER_STEP

        used_paths: set[tuple[str, ...]] = set()
        out: list[TreeNode] = []
        pending = list(metrics)
        for section in sections:
            display_order = section[0].order or 0
            while pending and pending[0].order < display_order:
                metric = pending.pop(0)
                out.append(self._metric_node(metric, variables, orders, used_paths))
            out.extend(section)
        out.extend(self._metric_node(m, variables, orders, used_paths) for m in pending)
        return out

    @staticmethod
    def _metric_node(
        metric: CalculatedMetric,
        variables: Optional[Mapping[str, Mapping[str, float]]],
        orders: Optional[Mapping[str, Mapping[int, float]]],
        used_paths: set[tuple[str, ...]],
    ) -> TreeNode:
        path: tuple[str, ...] = (METRICS_ROOT, str(metric.order), metric.label)
        suffix = 2
        while path in used_paths:
            path = (METRICS_ROOT, str(metric.order), f"{metric.label} ({suffix})")
            suffix += 1
        used_paths.add(path)

        amounts: dict[str, Optional[float]] = {side: None for side in SIDES}
        if (variables is not None or orders is not None) and metric.expression:
            try:
                for side in SIDES:
                    amounts[side] = evaluate_expression(
                        metric.expression,
                        (variables or {}).get(side, {}),
                        (orders or {}).get(side, {}),
                    )
            except ExpressionError as exc:
                logger.warning("Metric %r not evaluated: %s", metric.label, exc)
                amounts = {side: None for side in SIDES}

        return TreeNode(
            org_hierarchy=path,
            label=metric.label,
            level=0,
            type="calculated",
            amounts=amounts,
            style=metric.style,
            is_calculated=True,
            order=metric.order,
            expression=metric.expression or None,
        )

    @staticmethod
    def _finish(node: TreeNode) -> None:
        node.variance_amount, node.variance_percent = variance.calculate_optional(
            node.amounts[CURRENT], node.amounts[PRIOR]
        )
        node.is_group = node.level < ACCOUNT_LEVEL and not node.is_calculated
        node.always_visible = (
            node.level == 0
            or node.style in ALWAYS_VISIBLE_STYLES
            or node.is_calculated
        )


def tree_to_dataframe(nodes: Sequence[TreeNode]) -> pd.DataFrame:
    """Flat table of a tree for display or CSV export."""
    columns = [
        "path",
        "level",
        "label",
        "type",
        "style",
        PRIOR,
        CURRENT,
        "variance_amount",
        "variance_percent",
    ]
    records = [
        {
            "path": "/".join(n.org_hierarchy),
            "level": n.level,
            "label": n.label,
            "type": n.type,
            "style": n.style,
            PRIOR: n.amounts.get(PRIOR),
            CURRENT: n.amounts.get(CURRENT),
            "variance_amount": n.variance_amount,
            "variance_percent": n.variance_percent,
        }
        for n in nodes
    ]
    return pd.DataFrame(records, columns=columns)
