"""Smoke tests for the fxfolio CLI against a temporary local store."""

import json

import pytest

from fxfolio.cli.main import main


@pytest.fixture
def data_file(monkeypatch, tmp_path):
    path = tmp_path / "tx.json"
    monkeypatch.delenv("FXFOLIO_ENDPOINT", raising=False)
    monkeypatch.delenv("FXFOLIO_STORAGE_KEY", raising=False)
    monkeypatch.setenv("FXFOLIO_DATA_FILE", str(path))
    monkeypatch.chdir(tmp_path)
    return path


def stored_records(path):
    return json.loads(path.read_text())["forex_transactions"]


def test_no_command_shows_help(capsys):
    assert main([]) == 0
    assert "usage: fxfolio" in capsys.readouterr().out


def test_add_report_and_history(data_file, capsys):
    assert main(["add", "BUY", "usd", "100", "--rate", "32", "--date", "2025-01-01"]) == 0
    assert main(["add", "SELL", "USD", "40", "--rate", "34", "--date", "2025-01-02"]) == 0

    records = stored_records(data_file)
    assert [r["type"] for r in records] == ["BUY", "SELL"]
    assert records[0]["currency"] == "USD"

    capsys.readouterr()
    assert main(["report", "--offline"]) == 0
    out = capsys.readouterr().out
    assert "USD" in out
    assert "+80.00" in out

    assert main(["history", "-c", "USD"]) == 0
    assert "+80.00" in capsys.readouterr().out


def test_oversell_is_rejected(data_file, capsys):
    assert main(["add", "BUY", "USD", "10", "--rate", "32"]) == 0
    assert main(["add", "SELL", "USD", "11", "--rate", "33"]) == 1

    assert "insufficient balance" in capsys.readouterr().out
    assert len(stored_records(data_file)) == 1


def test_unknown_currency_is_rejected(data_file, capsys):
    assert main(["add", "BUY", "XYZ", "10", "--rate", "1"]) == 1
    assert "Unknown currency" in capsys.readouterr().out
    assert not data_file.exists()


def test_interest_rate_is_zeroed(data_file):
    assert main(["add", "INTEREST", "USD", "5", "--rate", "31"]) == 0

    assert stored_records(data_file)[0]["rate"] == 0


def test_edit_and_delete(data_file, capsys):
    assert main(["add", "BUY", "USD", "100", "--rate", "32", "--date", "2025-01-01"]) == 0
    assert main(["add", "SELL", "USD", "40", "--rate", "34", "--date", "2025-01-02"]) == 0
    sell_id = stored_records(data_file)[1]["id"]

    assert main(["edit", sell_id, "--amount", "100"]) == 0
    assert stored_records(data_file)[1]["amount"] == 100

    assert main(["edit", sell_id, "--amount", "100.5"]) == 1

    assert main(["delete", sell_id]) == 0
    assert [r["type"] for r in stored_records(data_file)] == ["BUY"]

    assert main(["delete", sell_id]) == 1


def test_export_and_import(data_file, tmp_path):
    assert main(["add", "BUY", "JPY", "10000", "--rate", "0.21", "--date", "2025-01-01"]) == 0

    export_path = tmp_path / "backup.xlsx"
    assert main(["export", str(export_path)]) == 0
    assert export_path.exists()

    data_file.unlink()
    assert main(["import", str(export_path)]) == 0

    records = stored_records(data_file)
    assert records[0]["currency"] == "JPY"
    assert records[0]["amount"] == 10000


def test_rates_offline(data_file, capsys):
    assert main(["rates", "--offline"]) == 0
    assert "32.2000" in capsys.readouterr().out


@pytest.mark.parametrize("argv", [
    ["report", "--offline"],
    ["history"],
    ["add", "BUY", "USD", "1", "--rate", "32"],
    ["edit", "abc", "--amount", "2"],
    ["delete", "abc"],
    ["export", "out.json"],
])
def test_corrupted_store_is_reported(data_file, capsys, argv):
    data_file.write_text("{not json")

    assert main(argv) == 1
    assert "Corrupted transaction file" in " ".join(capsys.readouterr().out.split())
    assert data_file.read_text() == "{not json"


def test_unreadable_record_is_reported(data_file, capsys):
    data_file.write_text(json.dumps({"forex_transactions": [
        {"id": "x", "date": "bad", "currency": "USD", "rate": 32, "amount": 1, "type": "BUY"},
    ]}))

    assert main(["report", "--offline"]) == 1
    assert "invalid date" in " ".join(capsys.readouterr().out.split())


def test_import_rejects_duplicate_ids(data_file, tmp_path, capsys):
    record = {"id": "dup", "date": "2025-01-01", "currency": "USD", "rate": 32, "amount": 1, "type": "BUY"}
    import_path = tmp_path / "dupes.json"
    import_path.write_text(json.dumps([record, record]))

    assert main(["import", str(import_path)]) == 1
    assert "more than once" in " ".join(capsys.readouterr().out.split())
    assert not data_file.exists()
