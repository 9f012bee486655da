# LedgerView - Configurable financial statements from trial balance data
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Configuration helpers for LedgerView.

This module is responsible for:
- loading the application configuration from a TOML file
  (``ledgerview_config.toml`` by default),
- exposing typed dataclasses used by the session and the CLI.

Every section is optional; missing values fall back to the defaults below.
"""

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .loader import BUNDLED_REPORTS_DIR
from .ltm import MONTHS_PER_YEAR
from .periods import COMPARISON_MODES
from .renderer import DETAIL_LEVELS, VARIANCE_MODES

DEFAULT_CONFIG_FILE = "ledgerview_config.toml"
LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class ReportsConfig:
    """Where report definitions live and which ones are the defaults."""

    directory: Path = BUNDLED_REPORTS_DIR
    defaults: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ComparisonConfig:
    """How the prior/current periods are derived from the data."""

    mode: str = "fy"
    ltm_months: int = MONTHS_PER_YEAR


@dataclass(frozen=True)
class DisplayConfig:
    currency_symbol: Optional[str] = None
    detail_level: str = "detailed"
    variance_mode: str = "both"


@dataclass(frozen=True)
class AppConfig:
    """
    Application-wide configuration for LedgerView.

    This aggregates:
    - the reports directory and default report per statement type,
    - the comparison mode (full year, year-to-date, LTM),
    - display options for rendered statements,
    - the logging level used by the CLI.
    """

    reports: ReportsConfig = field(default_factory=ReportsConfig)
    comparison: ComparisonConfig = field(default_factory=ComparisonConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    log_level: str = "WARNING"


def _load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the TOML content cannot be parsed.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Failed to parse TOML config file: {path}") from exc


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = raw.get(name) or {}
    if not isinstance(section, Mapping):
        raise ValueError(f"Config section [{name}] must be a table.")
    return section


def _choice(value: Any, allowed: tuple[str, ...], key: str) -> str:
    text = str(value)
    if text not in allowed:
        raise ValueError(
            f"Invalid value for '{key}' in the configuration: {text!r}. "
            f"Expected one of: {', '.join(allowed)}"
        )
    return text


def _parse_reports(raw: Mapping[str, Any], base_dir: Path) -> ReportsConfig:
    section = _section(raw, "reports")

    directory_raw = section.get("directory")
    directory = (
        (base_dir / str(directory_raw)).resolve() if directory_raw else BUNDLED_REPORTS_DIR
    )

    defaults_section = section.get("defaults") or {}
    if not isinstance(defaults_section, Mapping):
        raise ValueError("Config section [reports.defaults] must be a table.")
    defaults = {str(k): str(v) for k, v in defaults_section.items()}

    return ReportsConfig(directory=directory, defaults=defaults)


def _parse_comparison(raw: Mapping[str, Any]) -> ComparisonConfig:
    section = _section(raw, "comparison")
    mode = _choice(section.get("mode", "fy"), COMPARISON_MODES, "comparison.mode")
    try:
        ltm_months = int(section.get("ltm_months", MONTHS_PER_YEAR))
    except (TypeError, ValueError) as exc:
        raise ValueError(
            "Invalid value for 'comparison.ltm_months' in the configuration. "
            "Expected an integer."
        ) from exc
    if ltm_months <= 0:
        raise ValueError("'comparison.ltm_months' must be a positive integer.")
    return ComparisonConfig(mode=mode, ltm_months=ltm_months)


def _parse_display(raw: Mapping[str, Any]) -> DisplayConfig:
    section = _section(raw, "display")
    symbol = section.get("currency_symbol")
    return DisplayConfig(
        currency_symbol=str(symbol) if symbol else None,
        detail_level=_choice(
            section.get("detail_level", "detailed"), DETAIL_LEVELS, "display.detail_level"
        ),
        variance_mode=_choice(
            section.get("variance_mode", "both"), VARIANCE_MODES, "display.variance_mode"
        ),
    )


def load_app_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load the LedgerView configuration from a TOML file.

    Expected sections (all optional)
    --------------------------------
    [reports]
        ``directory`` holding report files; ``[reports.defaults]`` maps a
        statement type to its default report id.

    [comparison]
        ``mode`` (fy | ytd | ltm) and ``ltm_months``.

    [display]
        ``currency_symbol``, ``detail_level`` (detailed | summary),
        ``variance_mode`` (none | amount | percent | both).

    [logging]
        ``level`` for the CLI (DEBUG .. CRITICAL).

    Relative paths are resolved against the directory of the TOML file.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the file cannot be parsed or holds invalid values.
    """
    if config_path is None:
        config_file = Path(DEFAULT_CONFIG_FILE).resolve()
    else:
        config_file = Path(config_path).resolve()

    raw = _load_toml(config_file)
    base_dir = config_file.parent

    logging_section = _section(raw, "logging")
    log_level = _choice(
        str(logging_section.get("level", "WARNING")).upper(), LOG_LEVELS, "logging.level"
    )

    return AppConfig(
        reports=_parse_reports(raw, base_dir),
        comparison=_parse_comparison(raw),
        display=_parse_display(raw),
        log_level=log_level,
    )
