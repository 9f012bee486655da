import dataclasses
import logging

import pytest

from ledgerview.config import AppConfig, ComparisonConfig
from ledgerview.errors import ConfigurationError, DataUnavailableError
from ledgerview.periods import CURRENT, PRIOR
from ledgerview.session import StatementSession


@pytest.fixture
def session(gross_profit_raw, gross_profit_rows) -> StatementSession:
    s = StatementSession()
    s.registry.register_raw(gross_profit_raw)
    s.load_ledger(gross_profit_rows)
    return s


def test_render_default_report(session) -> None:
    report = session.render()

    assert report.report_id == "gross_profit"
    assert report.row(30).amounts == {PRIOR: 60.0, CURRENT: 90.0}


def test_render_overrides(session) -> None:
    report = session.render("gross_profit", variance_mode="none", detail_level="summary")

    assert report.variance_mode == "none"
    assert [r.order for r in report.rows] == [30]


def test_unknown_report(session) -> None:
    with pytest.raises(ConfigurationError, match="Unknown report id"):
        session.render("missing")
    with pytest.raises(ConfigurationError, match="cashflow"):
        session.report(statement_type="cashflow")


def test_generation_counter_detects_stale_results(session, gross_profit_rows) -> None:
    first = session.begin_render()
    assert session.is_current(first)

    second = session.begin_render()
    assert not session.is_current(first)
    assert session.is_current(second)

    session.load_ledger(gross_profit_rows)
    assert not session.is_current(second)


def test_comparison_mode_from_config(gross_profit_raw, make_row) -> None:
    config = dataclasses.replace(AppConfig(), comparison=ComparisonConfig(mode="ytd"))
    session = StatementSession(config)
    session.registry.register_raw(gross_profit_raw)
    session.load_ledger(
        [
            make_row(2024, 1, "500", 10.0),
            make_row(2024, 6, "500", 99.0),
            make_row(2025, 1, "500", 20.0),
        ]
    )

    report = session.render()

    assert report.period_labels == {PRIOR: "YTD 2024 P1", CURRENT: "YTD 2025 P1"}
    assert report.row(10).amounts == {PRIOR: 10.0, CURRENT: 20.0}


def test_no_ledger_loaded(gross_profit_raw) -> None:
    session = StatementSession()
    session.registry.register_raw(gross_profit_raw)

    with pytest.raises(DataUnavailableError):
        session.render()


def test_build_tree_with_report_metrics(session) -> None:
    nodes = session.build_tree()
    metric = next(n for n in nodes if n.is_calculated)

    assert metric.label == "Gross Profit"
    assert metric.amounts == {PRIOR: 60.0, CURRENT: 90.0}


def test_build_tree_evaluates_order_references(gross_profit_rows) -> None:
    session = StatementSession()
    session.load_reports()
    session.load_ledger(gross_profit_rows)

    metrics = {n.label: n for n in session.build_tree() if n.is_calculated}

    assert metrics["Gross Profit"].amounts == {PRIOR: 60.0, CURRENT: 90.0}
    assert metrics["Gross margin %"].amounts == pytest.approx(
        {PRIOR: 60.0, CURRENT: 60.0}
    )
    assert metrics["Net income"].amounts == {PRIOR: 60.0, CURRENT: 90.0}


def test_build_tree_falls_back_when_report_cannot_render(
    gross_profit_raw, gross_profit_rows, caplog
) -> None:
    session = StatementSession()
    session.registry.register_raw(gross_profit_raw)
    session.load_ledger([r for r in gross_profit_rows if r.year == 2025])

    with caplog.at_level(logging.WARNING, logger="ledgerview.session"):
        nodes = session.build_tree()

    metric = next(n for n in nodes if n.is_calculated)
    assert metric.amounts == {PRIOR: 0.0, CURRENT: 90.0}
    assert "variables only" in caplog.text


def test_build_tree_without_report(gross_profit_rows) -> None:
    session = StatementSession()
    session.load_ledger(gross_profit_rows)

    nodes = session.build_tree()

    assert nodes
    assert not any(n.is_calculated for n in nodes)


def test_load_bundled_reports() -> None:
    session = StatementSession()
    summary = session.load_reports()

    assert summary.ok
    assert session.report().report_id == "income_statement_default"


def test_ltm_info(session) -> None:
    info = session.ltm_info()
    assert info.label == "LTM (2024 P2 - 2025 P1)"
    assert len(info.filtered) == 2
