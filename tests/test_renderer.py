import copy
import logging

import pytest

from ledgerview.definitions import ReportDefinition
from ledgerview.errors import ConfigurationError, DataUnavailableError
from ledgerview.periods import CURRENT, PRIOR, ComparisonPeriod
from ledgerview.renderer import RenderOptions, ReportRenderer


@pytest.fixture
def renderer() -> ReportRenderer:
    return ReportRenderer()


@pytest.fixture
def definition(gross_profit_raw) -> ReportDefinition:
    return ReportDefinition.from_dict(gross_profit_raw)


def _with_layout(raw, layout) -> ReportDefinition:
    raw = copy.deepcopy(raw)
    raw["layout"] = layout
    return ReportDefinition.from_dict(raw)


def test_gross_profit_end_to_end(renderer, definition, gross_profit_rows) -> None:
    report = renderer.render(definition, gross_profit_rows)

    assert report.period_labels == {PRIOR: "2024", CURRENT: "2025"}

    revenue, cogs, gross = report.rows
    assert revenue.amounts == {PRIOR: 100.0, CURRENT: 150.0}
    assert revenue.variance_amount == pytest.approx(50.0)
    assert revenue.variance_percent == pytest.approx(50.0)

    assert cogs.amounts == {PRIOR: -40.0, CURRENT: -60.0}
    assert cogs.variance_amount == pytest.approx(-20.0)
    assert cogs.variance_percent == pytest.approx(-50.0)

    assert gross.amounts == {PRIOR: 60.0, CURRENT: 90.0}
    assert gross.variance_amount == pytest.approx(30.0)
    assert gross.variance_percent == pytest.approx(50.0)
    assert gross.always_visible
    assert gross.is_calculated


def test_rows_follow_layout_order(renderer, gross_profit_raw, gross_profit_rows) -> None:
    raw = copy.deepcopy(gross_profit_raw)
    raw["layout"].reverse()

    report = renderer.render(ReportDefinition.from_dict(raw), gross_profit_rows)

    assert [r.order for r in report.rows] == [10, 20, 30]


def test_subtotal_sums_rows_in_range(renderer, gross_profit_raw, gross_profit_rows) -> None:
    definition = _with_layout(
        gross_profit_raw,
        [
            {"order": 10, "type": "variable", "variable": "revenue", "label": "Revenue"},
            {"order": 20, "type": "variable", "variable": "cogs", "label": "COGS"},
            {"order": 25, "type": "spacer"},
            {"order": 30, "type": "subtotal", "from": 10, "to": 25, "label": "GP"},
            {"order": 40, "type": "subtotal", "from": 10, "to": 30, "label": "Again"},
        ],
    )

    report = renderer.render(definition, gross_profit_rows)

    assert report.row(30).amounts == {PRIOR: 60.0, CURRENT: 90.0}
    # nested subtotals are skipped, not double counted
    assert report.row(40).amounts == {PRIOR: 60.0, CURRENT: 90.0}
    assert report.row(25).amounts == {PRIOR: None, CURRENT: None}
    assert report.row(25).formatted[CURRENT] == ""


def test_category_sums_matching_rows(renderer, gross_profit_raw, gross_profit_rows) -> None:
    definition = _with_layout(
        gross_profit_raw,
        [
            {
                "order": 10,
                "type": "category",
                "filter": {"code1": ["500", "510"]},
                "label": "Operating",
            }
        ],
    )

    row = renderer.render(definition, gross_profit_rows).row(10)

    assert row.amounts == {PRIOR: 60.0, CURRENT: 90.0}


def test_expression_error_only_marks_affected_rows(
    renderer, gross_profit_raw, gross_profit_rows, caplog
) -> None:
    definition = _with_layout(
        gross_profit_raw,
        [
            {"order": 10, "type": "variable", "variable": "revenue", "label": "Revenue"},
            {"order": 20, "type": "calculated", "expression": "@99", "label": "Broken"},
            {"order": 30, "type": "calculated", "expression": "@20 + 1", "label": "Next"},
            {"order": 40, "type": "calculated", "expression": "@10 * 2", "label": "Fine"},
        ],
    )

    with caplog.at_level(logging.WARNING, logger="ledgerview.renderer"):
        report = renderer.render(definition, gross_profit_rows)

    assert report.row(20).error == "Order reference @99 has no value"
    assert report.row(20).amounts == {PRIOR: None, CURRENT: None}
    assert report.row(30).error == "Depends on errored row(s): @20"
    assert not report.row(40).is_errored
    assert report.row(40).amounts == {PRIOR: 200.0, CURRENT: 300.0}
    assert [r.order for r in report.errored_rows] == [20, 30]
    assert "errored" in caplog.text


def test_errored_row_contributes_zero_to_subtotals(
    renderer, gross_profit_raw, gross_profit_rows
) -> None:
    definition = _with_layout(
        gross_profit_raw,
        [
            {"order": 10, "type": "variable", "variable": "revenue", "label": "Revenue"},
            {"order": 20, "type": "calculated", "expression": "ghost", "label": "Bad"},
            {"order": 30, "type": "subtotal", "from": 10, "to": 20, "label": "Total"},
        ],
    )

    report = renderer.render(definition, gross_profit_rows)

    assert report.row(20).is_errored
    assert report.row(30).amounts == {PRIOR: 100.0, CURRENT: 150.0}


def test_deeply_nested_expression_only_errors_its_row(
    renderer, gross_profit_raw, gross_profit_rows
) -> None:
    raw = copy.deepcopy(gross_profit_raw)
    raw["layout"][2]["expression"] = "-" * 3000 + "revenue"

    report = renderer.render(ReportDefinition.from_dict(raw), gross_profit_rows)

    assert report.row(30).is_errored
    assert "nested too deeply" in report.row(30).error
    assert report.row(30).amounts == {PRIOR: None, CURRENT: None}
    assert report.row(10).amounts == {PRIOR: 100.0, CURRENT: 150.0}
    assert not report.row(20).is_errored


def test_empty_ledger_raises(renderer, definition) -> None:
    with pytest.raises(DataUnavailableError, match="No ledger data"):
        renderer.render(definition, [])


def test_other_statement_type_only_raises(renderer, definition, make_row) -> None:
    rows = [make_row(2025, 1, "100", 1.0, statement_type="balance")]
    with pytest.raises(DataUnavailableError, match="statement type 'income'"):
        renderer.render(definition, rows)


def test_missing_period_year_raises(renderer, definition, gross_profit_rows) -> None:
    options = RenderOptions(
        periods={
            PRIOR: ComparisonPeriod.full_year(2023),
            CURRENT: ComparisonPeriod.full_year(2025),
        }
    )
    with pytest.raises(DataUnavailableError, match="missing year"):
        renderer.render(definition, gross_profit_rows, options)


def test_circular_variables_abort_the_render(
    renderer, gross_profit_raw, gross_profit_rows
) -> None:
    raw = copy.deepcopy(gross_profit_raw)
    raw["variables"][0]["filter"] = {"$variable": "cogs"}
    raw["variables"][1]["filter"] = {"$variable": "revenue"}

    with pytest.raises(ConfigurationError, match="Circular"):
        renderer.render(ReportDefinition.from_dict(raw), gross_profit_rows)


def test_summary_keeps_only_summary_rows(renderer, definition, gross_profit_rows) -> None:
    report = renderer.render(
        definition, gross_profit_rows, RenderOptions(detail_level="summary")
    )

    assert [r.label for r in report.rows] == ["Gross Profit"]
    assert report.rows[0].amounts[CURRENT] == pytest.approx(90.0)


def test_preresolved_values_are_used(renderer, definition, gross_profit_rows) -> None:
    resolved = {
        PRIOR: {"revenue": 10.0, "cogs": -1.0},
        CURRENT: {"revenue": 20.0, "cogs": -2.0},
    }

    report = renderer.render(definition, gross_profit_rows, resolved=resolved)

    assert report.row(30).amounts == {PRIOR: 9.0, CURRENT: 18.0}


@pytest.mark.parametrize(
    "mode, present, absent",
    [
        ("none", [], ["variance_amount", "variance_percent"]),
        ("amount", ["variance_amount"], ["variance_percent"]),
        ("percent", ["variance_percent"], ["variance_amount"]),
        ("both", ["variance_amount", "variance_percent"], []),
    ],
)
def test_variance_mode_controls_exported_fields(
    renderer, definition, gross_profit_rows, mode, present, absent
) -> None:
    report = renderer.render(
        definition, gross_profit_rows, RenderOptions(variance_mode=mode)
    )

    row = report.to_dicts()[0]
    frame = report.to_dataframe()
    for name in present:
        assert name in row
        assert name in frame.columns
    for name in absent:
        assert name not in row
        assert name not in frame.columns


def test_formatted_values(renderer, gross_profit_raw, gross_profit_rows) -> None:
    raw = copy.deepcopy(gross_profit_raw)
    raw["layout"][0]["format"] = "currency"
    raw["formatting"] = {"currency": {"symbol": "$"}}

    report = renderer.render(
        ReportDefinition.from_dict(raw),
        gross_profit_rows,
        RenderOptions(currency_symbol="£"),
    )
    row = report.row(10).to_dict()

    assert row["formatted_values"][CURRENT] == "$ 150"
    assert row["formatted_values"]["variance_percent"] == "50.0%"


def test_invalid_options_are_rejected() -> None:
    with pytest.raises(ValueError, match="detail level"):
        RenderOptions(detail_level="full")
    with pytest.raises(ValueError, match="variance mode"):
        RenderOptions(variance_mode="all")
    with pytest.raises(ValueError, match="Missing comparison side"):
        RenderOptions(periods={CURRENT: ComparisonPeriod.full_year(2025)})
