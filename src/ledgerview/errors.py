# LedgerView - Configurable financial statements from trial balance data
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Error taxonomy for LedgerView.

Every error raised by the core inherits from both ``LedgerViewError`` and
``ValueError``, so callers that only know about ``ValueError`` keep working.

Propagation rules
-----------------
- ConfigurationError   : fatal for one report (invalid definition, variable
                         cycle, unresolvable reference).
- ExpressionError      : localized to a single rendered row.
- DataUnavailableError : fatal for a render call, raised before any row is
                         computed.
- FilterSpecError      : collected at validation time; at render time a
                         malformed filter matches nothing.
- DuplicateIdError     : raised by the registry when a report id exists.
"""

from typing import Optional


class LedgerViewError(ValueError):
    """Base class for all LedgerView errors."""


class ConfigurationError(LedgerViewError):
    """Invalid report definition or unresolvable reference.

    ``errors`` holds the individual messages when several problems were
    collected (for example by the validator).
    """

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(message)
        self.errors: list[str] = list(errors or [])


class DuplicateIdError(LedgerViewError):
    """A report with the same id is already registered."""

    def __init__(self, report_id: str):
        super().__init__(f"Report id '{report_id}' is already registered.")
        self.report_id = report_id


class ExpressionError(LedgerViewError):
    """Failure to parse or evaluate a calculated expression."""


class ExpressionSyntaxError(ExpressionError):
    """Syntax error in an expression, located by token and offset."""

    def __init__(self, message: str, token: str, offset: int):
        super().__init__(f"{message} (token {token!r} at offset {offset})")
        self.reason = message
        self.token = token
        self.offset = offset


class DataUnavailableError(LedgerViewError):
    """No ledger data, or a comparison side references missing periods."""


class FilterSpecError(LedgerViewError):
    """Malformed filter specification."""

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(message)
        self.errors: list[str] = list(errors or [])
