# LedgerView - Configurable financial statements from trial balance data
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Variable resolution for LedgerView reports.

A report variable is a named scalar computed from the ledger:

    revenue = sum(movement_amount) over rows matching {"code1": "500"}

Resolution happens per comparison side. ``ResolutionContext`` carries the
ledger, the ``ComparisonPeriod`` of the side and a ``RenderCache``. The cache
is created for one render call and keyed by ``(variable_id,
period.signature)``, so two sides (or two renders) never share values
computed for another window.

Variable chains
---------------
A variable filter may contain ``"$variable": "<id>"``. The variable then
starts from the rows selected by ``<id>`` and narrows them with its own
fields. Chains are walked with a visiting set; a cycle or an unknown id
raises ``ConfigurationError``.
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Optional, Union

import pandas as pd

from .definitions import VariableDef
from .errors import ConfigurationError
from .filters import apply_filter, split_variable_ref
from .periods import ComparisonPeriod

logger = logging.getLogger(__name__)

CacheKey = tuple[str, Any]


class RenderCache:
    """Memo of resolved variable values for a single render call."""

    def __init__(self) -> None:
        self._values: dict[CacheKey, float] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: CacheKey) -> Optional[float]:
        value = self._values.get(key)
        if value is None:
            self.misses += 1
        else:
            self.hits += 1
        return value

    def put(self, key: CacheKey, value: float) -> None:
        self._values[key] = value

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def clear(self) -> None:
        self._values.clear()
        self.hits = 0
        self.misses = 0


@dataclass
class ResolutionContext:
    """Inputs of a resolution: ledger, comparison side and cache."""

    ledger: pd.DataFrame
    period: ComparisonPeriod
    cache: RenderCache = field(default_factory=RenderCache)

    @cached_property
    def period_rows(self) -> pd.DataFrame:
        """Ledger rows inside the period (computed once per context)."""
        return self.period.select(self.ledger)

    def key(self, variable_id: str) -> CacheKey:
        return (variable_id, self.period.signature)


def _first(values: pd.Series) -> float:
    return float(values.iloc[0])


def _last(values: pd.Series) -> float:
    return float(values.iloc[-1])


AGGREGATE_FUNCTIONS: dict[str, Callable[[pd.Series], float]] = {
    "sum": lambda s: float(s.sum()),
    "average": lambda s: float(s.mean()),
    "avg": lambda s: float(s.mean()),
    "count": lambda s: float(len(s)),
    "min": lambda s: float(s.min()),
    "max": lambda s: float(s.max()),
    "first": _first,
    "last": _last,
}


def aggregate(values: pd.Series, how: str) -> float:
    """Apply an aggregate to ``movement_amount`` values (0 when empty).

    Aggregate names are case-insensitive.

    Raises:
        ConfigurationError: for an unknown aggregate name.
    """
    func = AGGREGATE_FUNCTIONS.get(how.lower())
    if func is None:
        raise ConfigurationError(
            f"Unknown aggregate: {how!r}. "
            f"Expected one of: {', '.join(AGGREGATE_FUNCTIONS)}"
        )
    if values.empty:
        return 0.0
    return func(values)


class VariableResolver:
    """Resolve report variables against a ``ResolutionContext``."""

    def __init__(self, variables: Union[Iterable[VariableDef], Mapping[str, VariableDef]]):
        if isinstance(variables, Mapping):
            variables = variables.values()
        self._variables: dict[str, VariableDef] = {v.id: v for v in variables}

    @property
    def variable_ids(self) -> list[str]:
        return list(self._variables)

    def _definition(self, variable_id: str) -> VariableDef:
        definition = self._variables.get(variable_id)
        if definition is None:
            raise ConfigurationError(f"Unknown variable: {variable_id!r}")
        return definition

    def select_rows(
        self,
        variable_id: str,
        context: ResolutionContext,
        _visiting: Optional[list[str]] = None,
    ) -> pd.DataFrame:
        """Rows selected by a variable within the context's period.

        Raises:
            ConfigurationError: on an unknown id or a circular ``$variable``
                chain.
        """
        visiting = list(_visiting or [])
        if variable_id in visiting:
            chain = " -> ".join(visiting + [variable_id])
            raise ConfigurationError(f"Circular variable reference: {chain}")
        visiting.append(variable_id)

        definition = self._definition(variable_id)
        ref, plain = split_variable_ref(definition.filter)
        if ref is None:
            base = context.period_rows
        else:
            base = self.select_rows(ref, context, visiting)
        return apply_filter(base, plain)

    def resolve(self, variable_id: str, context: ResolutionContext) -> float:
        """Return the aggregated value of one variable for one period."""
        key = context.key(variable_id)
        cached = context.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for %s", variable_id)
            return cached

        definition = self._definition(variable_id)
        rows = self.select_rows(variable_id, context)
        if rows.empty:
            logger.debug(
                "Variable %s selects no rows in %s", variable_id, context.period.label
            )
        value = aggregate(rows["movement_amount"], definition.aggregate)
        context.cache.put(key, value)
        return value

    def resolve_all(
        self, ids: Optional[Iterable[str]], context: ResolutionContext
    ) -> dict[str, float]:
        """Resolve several variables (all of them when ``ids`` is None)."""
        if ids is None:
            ids = self.variable_ids
        return {variable_id: self.resolve(variable_id, context) for variable_id in ids}
