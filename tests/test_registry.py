import copy

import pytest

from ledgerview.definitions import ReportDefinition
from ledgerview.errors import ConfigurationError, DuplicateIdError
from ledgerview.registry import ReportRegistry


def _variant(raw, report_id, statement_type="income"):
    raw = copy.deepcopy(raw)
    raw["reportId"] = report_id
    raw["statementType"] = statement_type
    return raw


@pytest.fixture
def registry(gross_profit_raw) -> ReportRegistry:
    reg = ReportRegistry()
    reg.register_raw(gross_profit_raw)
    reg.register_raw(_variant(gross_profit_raw, "gross_profit_alt"))
    reg.register_raw(_variant(gross_profit_raw, "balance_basic", "balance"))
    return reg


def test_first_report_of_a_type_is_the_default(registry) -> None:
    assert registry.get_default("income").report_id == "gross_profit"
    assert registry.get_default("balance").report_id == "balance_basic"
    assert registry.get_default("cashflow") is None


def test_lookups(registry) -> None:
    assert registry.count() == 3
    assert registry.has("gross_profit_alt")
    assert registry.get_by_id("missing") is None
    assert [d.report_id for d in registry.list_by_statement_type("income")] == [
        "gross_profit",
        "gross_profit_alt",
    ]
    assert registry.statement_types() == ["balance", "income"]


def test_duplicate_id_is_rejected(registry, gross_profit_raw) -> None:
    with pytest.raises(DuplicateIdError):
        registry.register(ReportDefinition.from_dict(gross_profit_raw))
    assert registry.count() == 3


def test_register_raw_reports_every_validation_error(gross_profit_raw) -> None:
    raw = copy.deepcopy(gross_profit_raw)
    raw["version"] = "one"
    raw["layout"][2]["expression"] = "revenue + ebitda"

    with pytest.raises(ConfigurationError) as excinfo:
        ReportRegistry().register_raw(raw)

    assert len(excinfo.value.errors) == 2


def test_register_with_is_default(registry, gross_profit_raw) -> None:
    registry.register_raw(_variant(gross_profit_raw, "preferred"), is_default=True)
    assert registry.get_default("income").report_id == "preferred"


def test_set_default(registry) -> None:
    registry.set_default("income", "gross_profit_alt")
    assert registry.get_default("income").report_id == "gross_profit_alt"

    with pytest.raises(ConfigurationError, match="Unknown report id"):
        registry.set_default("income", "missing")
    with pytest.raises(ConfigurationError, match="balance statement"):
        registry.set_default("income", "balance_basic")


def test_unregister_promotes_next_default(registry) -> None:
    assert registry.unregister("gross_profit")
    assert registry.get_default("income").report_id == "gross_profit_alt"

    assert registry.unregister("balance_basic")
    assert registry.get_default("balance") is None
    assert not registry.unregister("balance_basic")


def test_export_and_import_state(registry) -> None:
    registry.set_default("income", "gross_profit_alt")
    state = registry.export_state()

    restored = ReportRegistry()
    restored.import_state(state)

    assert restored.count() == 3
    assert restored.get_default("income").report_id == "gross_profit_alt"
    assert restored.get_by_id("gross_profit") == registry.get_by_id("gross_profit")


def test_failed_import_leaves_registry_unchanged(registry) -> None:
    state = registry.export_state()
    state["reports"] = state["reports"][:1] * 2

    with pytest.raises(DuplicateIdError):
        registry.import_state(state)

    assert registry.count() == 3
    assert registry.has("balance_basic")


def test_clear(registry) -> None:
    registry.clear()
    assert registry.count() == 0
    assert registry.get_default("income") is None
