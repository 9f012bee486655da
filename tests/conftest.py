from typing import Any

import pytest

from ledgerview.ledger import LedgerRow


def _make_row(
    year: int,
    period: int,
    code1: str,
    amount: float,
    code0: str = "5",
    statement_type: str = "income",
    **extra: Any,
) -> LedgerRow:
    """Build a LedgerRow with income-statement defaults."""
    return LedgerRow(
        year=year,
        period=period,
        statement_type=statement_type,
        code0=code0,
        name0=extra.pop("name0", "Operations"),
        code1=code1,
        movement_amount=amount,
        **extra,
    )


@pytest.fixture
def make_row():
    """LedgerRow factory: ``make_row(year, period, code1, amount, ...)``."""
    return _make_row


@pytest.fixture
def gross_profit_rows() -> list[LedgerRow]:
    """Revenue 100 -> 150 and COGS -40 -> -60 between 2024 and 2025."""
    return [
        _make_row(2024, 1, "500", 100.0, name1="Revenue", account_code="701000"),
        _make_row(2024, 1, "510", -40.0, name1="COGS", account_code="601000"),
        _make_row(2025, 1, "500", 150.0, name1="Revenue", account_code="701000"),
        _make_row(2025, 1, "510", -60.0, name1="COGS", account_code="601000"),
    ]


@pytest.fixture
def gross_profit_raw() -> dict[str, Any]:
    return {
        "reportId": "gross_profit",
        "name": "Gross Profit",
        "version": "1.0.0",
        "statementType": "income",
        "variables": [
            {"id": "revenue", "filter": {"code1": "500"}, "aggregate": "sum"},
            {"id": "cogs", "filter": {"code1": "510"}, "aggregate": "sum"},
        ],
        "layout": [
            {"order": 10, "type": "variable", "variable": "revenue", "label": "Revenue"},
            {"order": 20, "type": "variable", "variable": "cogs", "label": "COGS"},
            {
                "order": 30,
                "type": "calculated",
                "expression": "revenue + cogs",
                "label": "Gross Profit",
                "style": "subtotal",
            },
        ],
    }
