import logging

import pandas as pd
import pytest

from ledgerview.errors import FilterSpecError
from ledgerview.filters import apply_filter, split_variable_ref, validate_filter
from ledgerview.ledger import ledger_frame


@pytest.fixture
def ledger(make_row) -> pd.DataFrame:
    return ledger_frame(
        [
            make_row(2024, 1, "500", 100.0, name1="Revenue"),
            make_row(2024, 2, "510", -40.0, name1="COGS"),
            make_row(2024, 3, "520", -10.0, name1="Rent"),
            make_row(2025, 1, "500", 150.0, name1="Revenue"),
            make_row(2025, 2, "600", 5.0, name1="Interest", code0="6"),
        ]
    )


def test_exact_match_returns_only_matching_rows(ledger) -> None:
    out = apply_filter(ledger, {"code1": "500"})

    assert len(out) == 2
    assert set(out["code1"]) == {"500"}


def test_empty_spec_returns_input_unchanged(ledger) -> None:
    assert apply_filter(ledger, {}) is ledger


def test_list_matcher_is_an_or(ledger) -> None:
    out = apply_filter(ledger, {"code1": ["500", "510"]})
    assert sorted(out["code1"]) == ["500", "500", "510"]


def test_range_matcher_combines_bounds_with_and(ledger) -> None:
    out = apply_filter(ledger, {"code1": {"gte": "510", "lt": "600"}})
    assert sorted(out["code1"]) == ["510", "520"]


def test_fields_are_combined_with_and(ledger) -> None:
    out = apply_filter(ledger, {"code1": "500", "year": 2025})
    assert len(out) == 1
    assert out.iloc[0]["movement_amount"] == pytest.approx(150.0)


def test_numeric_fields_compare_as_numbers(ledger) -> None:
    out = apply_filter(ledger, {"period": {"gt": "1"}})
    assert sorted(out["period"]) == [2, 2, 3]


def test_string_comparison_is_case_sensitive(ledger) -> None:
    assert apply_filter(ledger, {"name1": "revenue"}).empty
    assert len(apply_filter(ledger, {"name1": "Revenue"})) == 2


def test_integral_float_matches_text_code(ledger) -> None:
    assert len(apply_filter(ledger, {"code1": 500.0})) == 2


def test_validate_filter_collects_every_problem() -> None:
    errors = validate_filter(
        {
            "code9": "x",
            "code1": [],
            "code2": {"between": "1"},
            "name1": None,
            "year": "abc",
        }
    )

    assert len(errors) == 5
    assert any("Invalid filter field: code9" in e for e in errors)
    assert any("cannot be empty" in e for e in errors)
    assert any("between" in e for e in errors)
    assert any("cannot be null" in e for e in errors)
    assert any("must be numeric" in e for e in errors)


def test_validate_filter_rejects_non_mapping() -> None:
    assert validate_filter(["code1"]) == ["Filter specification must be an object"]


def test_malformed_spec_matches_nothing_and_logs(ledger, caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="ledgerview.filters"):
        out = apply_filter(ledger, {"code1": {"approx": "500"}})

    assert out.empty
    assert list(out.columns) == list(ledger.columns)
    assert "matches nothing" in caplog.text


def test_malformed_spec_raises_in_strict_mode(ledger) -> None:
    with pytest.raises(FilterSpecError) as excinfo:
        apply_filter(ledger, {"unknown": "1"}, strict=True)
    assert excinfo.value.errors


def test_variable_ref_only_allowed_for_variables() -> None:
    spec = {"$variable": "revenue", "year": 2025}

    assert validate_filter(spec, allow_variable_ref=True) == []
    assert validate_filter(spec) == [
        "'$variable' is only allowed in variable filters"
    ]
    assert split_variable_ref(spec) == ("revenue", {"year": 2025})
