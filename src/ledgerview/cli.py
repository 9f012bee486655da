# LedgerView - Configurable financial statements from trial balance data
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Command-Line Interface (CLI) for LedgerView.

The CLI is intentionally thin: it reads files, builds a
``StatementSession`` and prints what the core returns. It does not
implement any financial logic itself.

Commands
--------

``validate FILE [FILE ...]``
    Validate report definition files (JSON or TOML). Exit codes:

    - 0: every file is valid,
    - 1: at least one file has validation errors,
    - 2: at least one file is missing or cannot be parsed.

``render --ledger CSV [--report ID] [--statement-type TYPE] [--export CSV]``
    Render a report against a trial balance CSV. The report is looked up in
    the configured reports directory (the bundled reports by default).

``tree --ledger CSV [--statement-type TYPE] [--max-level N] [--export CSV]``
    Print the coded account hierarchy with both comparison sides.

``ltm --ledger CSV [--months N]``
    Show the trailing window ending at the latest period in the data.

Configuration
-------------
``--config PATH`` selects the TOML configuration. Without it,
``ledgerview_config.toml`` is read from the current directory when present,
otherwise built-in defaults apply. ``--mode``, ``--detail-level`` and
``--variance-mode`` override the configuration for one run.
"""

import argparse
import dataclasses
import logging
from pathlib import Path
from typing import Optional, Sequence

import pandas as pd

from . import __version__
from .config import DEFAULT_CONFIG_FILE, LOG_LEVELS, AppConfig, load_app_config
from .errors import LedgerViewError
from .hierarchy import tree_to_dataframe
from .ledger import STATEMENT_TYPES
from .loader import ReportFileError, load_report_file
from .periods import COMPARISON_MODES
from .renderer import DETAIL_LEVELS, VARIANCE_MODES
from .session import StatementSession
from .validator import validate

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_UNREADABLE = 2


def _build_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the CLI."""
    ap = argparse.ArgumentParser(
        prog="ledgerview",
        description=(
            "LedgerView - Configurable financial statements from trial balance "
            "data. Validates report definitions, renders statements with "
            "prior/current comparison and builds account hierarchies."
        ),
    )
    ap.add_argument(
        "--version", action="version", version=f"ledgerview {__version__}"
    )
    ap.add_argument(
        "--config",
        dest="config_path",
        help=(
            "Path to the TOML configuration file. If omitted, "
            f"'{DEFAULT_CONFIG_FILE}' in the current directory is used when present."
        ),
    )
    ap.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        help="Override the logging level from the configuration.",
    )

    sub = ap.add_subparsers(dest="command", required=True)

    p_validate = sub.add_parser("validate", help="Validate report definition files.")
    p_validate.add_argument("files", nargs="+", metavar="FILE")
    p_validate.add_argument(
        "--quiet", action="store_true", help="Only print files with problems."
    )

    def _add_ledger_args(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "--ledger", required=True, metavar="CSV", help="Trial balance CSV file."
        )
        p.add_argument(
            "--statement-type",
            choices=STATEMENT_TYPES,
            default="income",
            help="Statement type (default: income).",
        )
        p.add_argument(
            "--mode",
            choices=COMPARISON_MODES,
            help="Comparison mode: full year, year-to-date or LTM.",
        )

    p_render = sub.add_parser("render", help="Render a report.")
    _add_ledger_args(p_render)
    p_render.add_argument("--report", dest="report_id", help="Report id to render.")
    p_render.add_argument(
        "--reports-dir", help="Directory with report files (overrides config)."
    )
    p_render.add_argument("--detail-level", choices=DETAIL_LEVELS)
    p_render.add_argument("--variance-mode", choices=VARIANCE_MODES)
    p_render.add_argument("--export", metavar="CSV", help="Write rows to a CSV file.")

    p_tree = sub.add_parser("tree", help="Print the account hierarchy.")
    _add_ledger_args(p_tree)
    p_tree.add_argument("--report", dest="report_id", help="Report providing metrics.")
    p_tree.add_argument("--reports-dir", help="Directory with report files.")
    p_tree.add_argument(
        "--max-level", type=int, default=5, help="Deepest level to print (0-5)."
    )
    p_tree.add_argument("--export", metavar="CSV", help="Write nodes to a CSV file.")

    p_ltm = sub.add_parser("ltm", help="Show the trailing window of the data.")
    p_ltm.add_argument("--ledger", required=True, metavar="CSV")
    p_ltm.add_argument("--months", type=int, help="Window length in months.")

    return ap


def _load_config(config_path: Optional[str]) -> AppConfig:
    if config_path:
        return load_app_config(config_path)
    if Path(DEFAULT_CONFIG_FILE).is_file():
        return load_app_config()
    return AppConfig()


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )


def _export(df: pd.DataFrame, path: str) -> None:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(out, index=False)
    print(f"Exported {len(df)} row(s) to {out}")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _handle_validate(args: argparse.Namespace) -> int:
    exit_code = EXIT_OK
    for name in args.files:
        try:
            raw = load_report_file(name)
        except (FileNotFoundError, ReportFileError) as exc:
            print(f"{name}: ERROR {exc}")
            exit_code = max(exit_code, EXIT_UNREADABLE)
            continue

        result = validate(raw)
        if result.is_valid and not result.warnings:
            if not args.quiet:
                print(f"{name}: OK")
            continue

        status = "OK" if result.is_valid else "INVALID"
        print(f"{name}: {status}")
        for line in result.format_messages().splitlines():
            print(f"  {line}")
        if not result.is_valid:
            exit_code = max(exit_code, EXIT_INVALID)
    return exit_code


def _open_session(args: argparse.Namespace, config: AppConfig) -> StatementSession:
    if args.mode:
        config = dataclasses.replace(
            config, comparison=dataclasses.replace(config.comparison, mode=args.mode)
        )
    session = StatementSession(config)
    session.load_ledger_csv(args.ledger)
    return session


def _load_reports(session: StatementSession, reports_dir: Optional[str]) -> None:
    summary = session.load_reports(reports_dir)
    for file_name, messages in summary.failures.items():
        print(f"Warning: skipped report file {file_name}:")
        for message in messages:
            print(f"  {message}")


def _handle_render(args: argparse.Namespace, config: AppConfig) -> int:
    session = _open_session(args, config)
    _load_reports(session, args.reports_dir)

    overrides = {}
    if args.detail_level:
        overrides["detail_level"] = args.detail_level
    if args.variance_mode:
        overrides["variance_mode"] = args.variance_mode

    token = session.begin_render()
    report = session.render(args.report_id, args.statement_type, **overrides)
    if not session.is_current(token):
        logger.info("Discarding stale render of %s", report.report_id)
        return EXIT_OK

    labels = report.period_labels
    print(f"{report.name} ({report.report_id} v{report.version})")
    print(f"Prior: {labels['prior']} | Current: {labels['current']}")
    print()

    df = report.to_dataframe()
    display = df.copy()
    display["label"] = [
        "  " * r.indent + r.label for r in report.rows
    ]
    columns = ["order", "label", "prior_display", "current_display"]
    if "variance_amount" in df.columns:
        display["variance"] = [r.formatted.get("variance_amount", "") for r in report.rows]
        columns.append("variance")
    if "variance_percent" in df.columns:
        display["variance_pct"] = [
            r.formatted.get("variance_percent", "") for r in report.rows
        ]
        columns.append("variance_pct")
    if report.errored_rows:
        columns.append("error")
    print(display[columns].to_string(index=False))

    if args.export:
        _export(df, args.export)
    return EXIT_OK


def _handle_tree(args: argparse.Namespace, config: AppConfig) -> int:
    session = _open_session(args, config)
    if args.reports_dir or args.report_id:
        _load_reports(session, args.reports_dir)

    nodes = session.build_tree(args.statement_type, args.report_id)
    nodes = [n for n in nodes if n.level <= args.max_level or n.is_calculated]
    if not nodes:
        print("No rows for the selected statement type.")
        return EXIT_OK

    df = tree_to_dataframe(nodes)
    display = df.copy()
    display["label"] = [
        "  " * (min(n.level, 4) if not n.is_calculated else 0) + n.label for n in nodes
    ]
    print(display[["label", "prior", "current", "variance_amount"]].to_string(index=False))

    if args.export:
        _export(df, args.export)
    return EXIT_OK


def _handle_ltm(args: argparse.Namespace, config: AppConfig) -> int:
    session = StatementSession(config)
    session.load_ledger_csv(args.ledger)
    info = session.ltm_info(args.months)

    print(info.label)
    print(f"Latest period: {info.latest.year} P{info.latest.period}")
    for r in info.ranges:
        print(f"  {r.year}: P{r.start_period} - P{r.end_period} ({r.months} months)")
    print(info.availability.message)
    print(f"Rows in window: {len(info.filtered)}")
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the LedgerView CLI; returns the process exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        config = _load_config(args.config_path)
    except (FileNotFoundError, ValueError) as exc:
        raise SystemExit(f"Error: {exc}") from exc

    _configure_logging(args.log_level or config.log_level)

    if args.command == "validate":
        return _handle_validate(args)

    handlers = {
        "render": _handle_render,
        "tree": _handle_tree,
        "ltm": _handle_ltm,
    }
    try:
        return handlers[args.command](args, config)
    except (LedgerViewError, FileNotFoundError, ValueError) as exc:
        raise SystemExit(f"Error: {exc}") from exc


if __name__ == "__main__":
    raise SystemExit(main())
