# LedgerView - Configurable financial statements from trial balance data
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Catalog of report definitions.

The registry is a plain object created and owned by the caller (see
``session.StatementSession``); there is no module-level instance. It keeps
one default report per statement type: the first report registered for a
type becomes its default unless another one is registered with
``is_default=True`` or selected with ``set_default``.

Every operation holds a re-entrant lock so that the id-uniqueness check and
the default bookkeeping stay consistent in a multi-threaded host.

The registry performs no I/O. ``export_state`` / ``import_state`` exchange
plain dicts that the caller may persist however it likes.
"""

import logging
import threading
from collections.abc import Mapping
from typing import Any, Optional

from .definitions import ReportDefinition
from .errors import ConfigurationError, DuplicateIdError
from .validator import validate

logger = logging.getLogger(__name__)


class ReportRegistry:
    """In-memory catalog of ``ReportDefinition`` keyed by report id."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._reports: dict[str, ReportDefinition] = {}
        self._defaults: dict[str, str] = {}

    def register(self, definition: ReportDefinition, is_default: bool = False) -> None:
        """Add a definition.

        Raises:
            DuplicateIdError: if the report id is already registered.
        """
        with self._lock:
            if definition.report_id in self._reports:
                raise DuplicateIdError(definition.report_id)
            self._reports[definition.report_id] = definition
            if is_default or definition.statement_type not in self._defaults:
                self._defaults[definition.statement_type] = definition.report_id
            logger.debug(
                "Registered report %s (%s)",
                definition.report_id,
                definition.statement_type,
            )

    def register_raw(
        self, raw: Mapping[str, Any], is_default: bool = False
    ) -> ReportDefinition:
        """Validate a wire-form definition, then register it.

        Raises:
            ConfigurationError: with the collected validation errors.
            DuplicateIdError: if the report id is already registered.
        """
        result = validate(raw)
        if not result.is_valid:
            report_id = raw.get("reportId", "?") if isinstance(raw, Mapping) else "?"
            raise ConfigurationError(
                f"Invalid report definition '{report_id}': "
                f"{len(result.errors)} error(s)",
                result.error_messages(),
            )
        for warning in result.warnings:
            logger.info("Report %s: %s", raw.get("reportId"), warning)
        definition = ReportDefinition.from_dict(raw)
        self.register(definition, is_default=is_default)
        return definition

    def get_by_id(self, report_id: str) -> Optional[ReportDefinition]:
        with self._lock:
            return self._reports.get(report_id)

    def has(self, report_id: str) -> bool:
        with self._lock:
            return report_id in self._reports

    def all(self) -> list[ReportDefinition]:
        with self._lock:
            return list(self._reports.values())

    def list_by_statement_type(self, statement_type: str) -> list[ReportDefinition]:
        with self._lock:
            return [
                d for d in self._reports.values() if d.statement_type == statement_type
            ]

    def statement_types(self) -> list[str]:
        with self._lock:
            return sorted({d.statement_type for d in self._reports.values()})

    def count(self) -> int:
        with self._lock:
            return len(self._reports)

    def set_default(self, statement_type: str, report_id: str) -> None:
        """Select the default report of a statement type.

        Raises:
            ConfigurationError: unknown report id, or a report of another
                statement type.
        """
        with self._lock:
            definition = self._reports.get(report_id)
            if definition is None:
                raise ConfigurationError(f"Unknown report id: {report_id!r}")
            if definition.statement_type != statement_type:
                raise ConfigurationError(
                    f"Report '{report_id}' is a {definition.statement_type} "
                    f"statement, not {statement_type}."
                )
            self._defaults[statement_type] = report_id

    def get_default(self, statement_type: str) -> Optional[ReportDefinition]:
        with self._lock:
            report_id = self._defaults.get(statement_type)
            return self._reports.get(report_id) if report_id else None

    def unregister(self, report_id: str) -> bool:
        """Remove a report; returns False when it was not registered.

        When the removed report was a default, the first remaining report
        of the same statement type takes its place.
        """
        with self._lock:
            definition = self._reports.pop(report_id, None)
            if definition is None:
                return False
            stype = definition.statement_type
            if self._defaults.get(stype) == report_id:
                del self._defaults[stype]
                remaining = self.list_by_statement_type(stype)
                if remaining:
                    self._defaults[stype] = remaining[0].report_id
            return True

    def clear(self) -> None:
        with self._lock:
            self._reports.clear()
            self._defaults.clear()

    def export_state(self) -> dict[str, Any]:
        """Snapshot of the catalog as plain, serializable dicts."""
        with self._lock:
            return {
                "reports": [d.to_dict() for d in self._reports.values()],
                "defaults": dict(self._defaults),
            }

    def import_state(self, state: Mapping[str, Any]) -> None:
        """Replace the catalog with a snapshot from ``export_state``.

        Every report is validated again. On any failure the registry is
        left unchanged.

        Raises:
            ConfigurationError: invalid report or unknown default.
            DuplicateIdError: duplicated report id in the snapshot.
        """
        staging = ReportRegistry()
        for raw in state.get("reports", []):
            staging.register_raw(raw)
        for stype, report_id in (state.get("defaults") or {}).items():
            staging.set_default(stype, report_id)

        with self._lock:
            self._reports = staging._reports
            self._defaults = staging._defaults
