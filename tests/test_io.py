import pytest

from ledgerview.io import read_trial_balance
from ledgerview.ledger import LEDGER_COLUMNS


def test_read_trial_balance_with_aliases(tmp_path) -> None:
    csv_path = tmp_path / "tb.csv"
    csv_path.write_text(
        "Year,Period,Statement_Type,Code0,Name0,Code1,Account,Description,Amount\n"
        "2025,1,income,5,Operations,0500,0701000,Product sales,100.5\n"
        "2025,2,income,5,Operations,0510,,,-40\n",
        encoding="utf-8",
    )

    df = read_trial_balance(csv_path)

    assert list(df.columns) == list(LEDGER_COLUMNS)
    assert df["code1"].tolist() == ["0500", "0510"]
    assert df["account_code"].tolist() == ["0701000", ""]
    assert df["account_description"].tolist() == ["Product sales", ""]
    assert df["code2"].tolist() == ["", ""]
    assert df["movement_amount"].tolist() == pytest.approx([100.5, -40.0])
    assert df["year"].dtype == "int64"


def test_missing_required_columns(tmp_path) -> None:
    csv_path = tmp_path / "tb.csv"
    csv_path.write_text("year,period,code0,amount\n2025,1,5,10\n", encoding="utf-8")

    with pytest.raises(ValueError, match="statement_type"):
        read_trial_balance(csv_path)


def test_non_numeric_amount(tmp_path) -> None:
    csv_path = tmp_path / "tb.csv"
    csv_path.write_text(
        "year,period,statement_type,code0,movement_amount\n2025,1,income,5,abc\n",
        encoding="utf-8",
    )

    with pytest.raises(ValueError, match="movement_amount"):
        read_trial_balance(csv_path)
