import copy
import json

import pytest

from ledgerview.loader import (
    BUNDLED_REPORTS_DIR,
    ReportFileError,
    load_report_file,
    load_reports_from_directory,
)
from ledgerview.registry import ReportRegistry

TOML_REPORT = """
reportId = "toml_report"
name = "From TOML"
version = "1.0.0"
statementType = "income"

[[variables]]
id = "revenue"
aggregate = "sum"
filter = { code1 = "500" }

[[layout]]
order = 10
type = "variable"
variable = "revenue"
label = "Revenue"
"""


def test_load_json_and_toml(tmp_path, gross_profit_raw) -> None:
    json_file = tmp_path / "gp.json"
    json_file.write_text(json.dumps(gross_profit_raw), encoding="utf-8")
    toml_file = tmp_path / "r.toml"
    toml_file.write_text(TOML_REPORT, encoding="utf-8")

    assert load_report_file(json_file) == gross_profit_raw
    assert load_report_file(toml_file)["variables"][0]["filter"] == {"code1": "500"}


def test_missing_file(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_report_file(tmp_path / "nope.json")


@pytest.mark.parametrize(
    "name, content, message",
    [
        ("bad.json", '{"reportId": ', "invalid JSON at line 1"),
        ("bad.toml", "reportId = ", "invalid TOML"),
        ("list.json", "[1, 2]", "root element must be an object"),
        ("report.yaml", "reportId: x", "unsupported file type"),
    ],
)
def test_unreadable_files(tmp_path, name, content, message) -> None:
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ReportFileError, match=message):
        load_report_file(path)


def test_directory_load_keeps_going_after_failures(tmp_path, gross_profit_raw) -> None:
    (tmp_path / "a_gp.json").write_text(json.dumps(gross_profit_raw), encoding="utf-8")
    broken = copy.deepcopy(gross_profit_raw)
    broken["reportId"] = "broken"
    broken["layout"][0]["variable"] = "ghost"
    (tmp_path / "b_broken.json").write_text(json.dumps(broken), encoding="utf-8")
    (tmp_path / "c_dup.json").write_text(json.dumps(gross_profit_raw), encoding="utf-8")
    (tmp_path / "d_bad.json").write_text("{", encoding="utf-8")
    (tmp_path / "e.toml").write_text(TOML_REPORT, encoding="utf-8")
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

    registry = ReportRegistry()
    summary = load_reports_from_directory(
        tmp_path, registry, defaults={"income": "toml_report"}
    )

    assert summary.registered == ["gross_profit", "toml_report"]
    assert sorted(summary.failures) == ["b_broken.json", "c_dup.json", "d_bad.json"]
    assert summary.failures["b_broken.json"] == ["layout[0].variable: Unknown variable: ghost"]
    assert not summary.ok
    assert registry.get_default("income").report_id == "toml_report"


def test_missing_directory(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_reports_from_directory(tmp_path / "missing", ReportRegistry())


def test_bundled_reports_are_valid() -> None:
    registry = ReportRegistry()

    summary = load_reports_from_directory(BUNDLED_REPORTS_DIR, registry)

    assert summary.ok
    assert registry.get_default("income").report_id == "income_statement_default"
