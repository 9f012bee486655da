import copy
import json

import pandas as pd
import pytest

from ledgerview.cli import EXIT_INVALID, EXIT_OK, EXIT_UNREADABLE, main

LEDGER_CSV = (
    "year,period,statement_type,code0,name0,code1,name1,account_code,"
    "account_description,movement_amount\n"
    "2024,1,income,5,Operations,500,Revenue,701000,Product sales,100\n"
    "2024,1,income,5,Operations,510,COGS,601000,Purchases,-40\n"
    "2025,1,income,5,Operations,500,Revenue,701000,Product sales,150\n"
    "2025,1,income,5,Operations,510,COGS,601000,Purchases,-60\n"
)


@pytest.fixture
def ledger_csv(tmp_path):
    path = tmp_path / "tb.csv"
    path.write_text(LEDGER_CSV, encoding="utf-8")
    return path


@pytest.fixture
def reports_dir(tmp_path, gross_profit_raw):
    directory = tmp_path / "reports"
    directory.mkdir()
    (directory / "gross_profit.json").write_text(
        json.dumps(gross_profit_raw), encoding="utf-8"
    )
    return directory


def test_validate_exit_codes(tmp_path, gross_profit_raw, capsys) -> None:
    good = tmp_path / "good.json"
    good.write_text(json.dumps(gross_profit_raw), encoding="utf-8")
    invalid_raw = copy.deepcopy(gross_profit_raw)
    invalid_raw["statementType"] = "equity"
    invalid = tmp_path / "invalid.json"
    invalid.write_text(json.dumps(invalid_raw), encoding="utf-8")
    broken = tmp_path / "broken.json"
    broken.write_text("{", encoding="utf-8")

    assert main(["validate", str(good)]) == EXIT_OK
    assert main(["validate", str(good), str(invalid)]) == EXIT_INVALID
    assert main(["validate", str(invalid), str(broken)]) == EXIT_UNREADABLE
    assert main(["validate", str(tmp_path / "missing.json")]) == EXIT_UNREADABLE

    out = capsys.readouterr().out
    assert "good.json: OK" in out
    assert "invalid.json: INVALID" in out
    assert "statementType must be one of" in out


def test_render_prints_and_exports(tmp_path, ledger_csv, reports_dir, capsys) -> None:
    export = tmp_path / "out" / "gp.csv"

    code = main(
        [
            "render",
            "--ledger",
            str(ledger_csv),
            "--reports-dir",
            str(reports_dir),
            "--report",
            "gross_profit",
            "--export",
            str(export),
        ]
    )

    assert code == EXIT_OK
    out = capsys.readouterr().out
    assert "Gross Profit (gross_profit v1.0.0)" in out
    assert "Prior: 2024 | Current: 2025" in out

    df = pd.read_csv(export)
    assert df.loc[df["order"] == 30, "current"].iloc[0] == pytest.approx(90.0)
    assert df.loc[df["order"] == 30, "variance_percent"].iloc[0] == pytest.approx(50.0)


def test_render_unknown_report_exits_with_message(ledger_csv, reports_dir) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(
            [
                "render",
                "--ledger",
                str(ledger_csv),
                "--reports-dir",
                str(reports_dir),
                "--report",
                "missing",
            ]
        )
    assert "Unknown report id" in str(excinfo.value)


def test_tree_command(ledger_csv, capsys) -> None:
    assert main(["tree", "--ledger", str(ledger_csv), "--max-level", "1"]) == EXIT_OK

    out = capsys.readouterr().out
    assert "Operations (5)" in out
    assert "Revenue (500)" in out
    assert "Product sales (701000)" not in out


def test_ltm_command(ledger_csv, capsys) -> None:
    assert main(["ltm", "--ledger", str(ledger_csv)]) == EXIT_OK

    out = capsys.readouterr().out
    assert "LTM (2024 P2 - 2025 P1)" in out
    assert "Missing" not in out


def test_missing_config_file_exits(tmp_path, ledger_csv) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(tmp_path / "nope.toml"), "ltm", "--ledger", str(ledger_csv)])
    assert "Config file not found" in str(excinfo.value)
