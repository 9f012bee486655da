# LedgerView - Configurable financial statements from trial balance data
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Report file loading for LedgerView.

Report definitions are stored as JSON (``*.json``) or TOML (``*.toml``)
files, one report per file, using the wire format documented in
``definitions``. This module reads them and feeds them to a
``ReportRegistry``; parsing problems raise ``ReportFileError`` and
validation problems are reported per file without stopping the load.

A default income statement ships with the package in ``ledgerview/reports``
(see ``BUNDLED_REPORTS_DIR``).
"""

import json
import logging
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from .errors import ConfigurationError, DuplicateIdError
from .registry import ReportRegistry

logger = logging.getLogger(__name__)

BUNDLED_REPORTS_DIR = Path(__file__).resolve().parent / "reports"
REPORT_SUFFIXES: tuple[str, ...] = (".json", ".toml")


class ReportFileError(ValueError):
    """A report file is missing, unreadable or not valid JSON/TOML."""

    def __init__(self, path: Path, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path


@dataclass
class LoadSummary:
    """Outcome of ``load_reports_from_directory``."""

    registered: list[str] = field(default_factory=list)
    failures: dict[str, list[str]] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


def load_report_file(path: Union[str, Path]) -> dict[str, Any]:
    """
    Parse one report definition file.

    Raises:
        FileNotFoundError: if the file does not exist.
        ReportFileError: unsupported suffix, or content that is not a
            JSON/TOML object.
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise FileNotFoundError(f"Report file not found: {file_path}")

    suffix = file_path.suffix.lower()
    if suffix not in REPORT_SUFFIXES:
        raise ReportFileError(
            file_path, f"unsupported file type, expected {' or '.join(REPORT_SUFFIXES)}"
        )

    try:
        text = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ReportFileError(file_path, f"cannot read file ({exc})") from exc

    try:
        data = json.loads(text) if suffix == ".json" else tomllib.loads(text)
    except json.JSONDecodeError as exc:
        raise ReportFileError(
            file_path, f"invalid JSON at line {exc.lineno}, column {exc.colno}"
        ) from exc
    except tomllib.TOMLDecodeError as exc:
        raise ReportFileError(file_path, f"invalid TOML ({exc})") from exc

    if not isinstance(data, dict):
        raise ReportFileError(file_path, "root element must be an object")
    return data


def report_files(directory: Union[str, Path]) -> list[Path]:
    """Report files of a directory, sorted by name."""
    root = Path(directory)
    if not root.is_dir():
        raise FileNotFoundError(f"Reports directory not found: {root}")
    return sorted(p for p in root.iterdir() if p.suffix.lower() in REPORT_SUFFIXES)


def load_reports_from_directory(
    directory: Union[str, Path],
    registry: ReportRegistry,
    defaults: Optional[Mapping[str, str]] = None,
) -> LoadSummary:
    """
    Validate and register every report file of a directory.

    A file that cannot be parsed, fails validation or clashes with an
    already registered id is recorded in ``LoadSummary.failures`` (file
    name -> messages) and the remaining files are still loaded.

    Args:
        directory: Folder containing ``*.json`` / ``*.toml`` reports.
        registry: Registry receiving the definitions.
        defaults: Optional statement type -> report id to select as
            defaults once every file is loaded.

    Raises:
        FileNotFoundError: if the directory does not exist.
    """
    summary = LoadSummary()
    for path in report_files(directory):
        try:
            definition = registry.register_raw(load_report_file(path))
        except ReportFileError as exc:
            summary.failures[path.name] = [str(exc)]
        except ConfigurationError as exc:
            summary.failures[path.name] = exc.errors or [str(exc)]
        except DuplicateIdError as exc:
            summary.failures[path.name] = [str(exc)]
        else:
            summary.registered.append(definition.report_id)

    for path_name, messages in summary.failures.items():
        logger.warning("Skipped report file %s: %s", path_name, "; ".join(messages))

    for stype, report_id in (defaults or {}).items():
        if registry.has(report_id):
            registry.set_default(stype, report_id)
        else:
            logger.warning(
                "Default %s report %r is not registered", stype, report_id
            )

    logger.info(
        "Loaded %d report(s) from %s", len(summary.registered), directory
    )
    return summary
