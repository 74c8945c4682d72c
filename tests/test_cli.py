# tests/test_cli.py
import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from maritime_ledger import MaritimeLedger
from maritime_ledger.cli.main import app

runner = CliRunner()


@pytest.fixture
def temp_db(tmp_path: Path) -> Path:
    return tmp_path / "test-cli.db"


@pytest.fixture
def populated_db(temp_db: Path) -> Path:
    """Vessel 1 owned by A, sailor 1 owned by B, one voyage."""
    with MaritimeLedger(storage=str(temp_db)) as ledger:
        ledger.create_vessel("A", "ipfs://v1")
        ledger.create_sailor("B", "ipfs://s1")
        ledger.log_voyage("A", 1, 1, "ipfs://e1", "Trip", 1700000000)
    return temp_db


def test_history_no_db(tmp_path: Path):
    result = runner.invoke(app, ["history", "1", "--db", str(tmp_path / "missing.db")])
    assert result.exit_code == 1
    assert "not found" in result.stdout.lower()
    assert "to get started" in result.stdout.lower()


def test_register_vessel_and_sailor(temp_db: Path):
    result = runner.invoke(app, ["vessel", "register", "--caller", "A", "-m", "ipfs://v1", "--db", str(temp_db)])
    assert result.exit_code == 0, result.stdout
    assert "Vessel registered" in result.stdout
    assert "ID: 1 | Owner: A" in result.stdout

    result = runner.invoke(app, ["sailor", "register", "--caller", "B", "--db", str(temp_db)])
    assert result.exit_code == 0, result.stdout
    assert "ID: 1 | Owner: B" in result.stdout
    assert "ipfs://default-sailor" in result.stdout


def test_register_uses_env_caller(temp_db: Path, monkeypatch):
    monkeypatch.setenv("MARITIME_LEDGER_CALLER", "0xHarbour")
    result = runner.invoke(app, ["--db", str(temp_db), "vessel", "register"])
    assert result.exit_code == 0, result.stdout
    assert "Owner: 0xHarbour" in result.stdout
    assert "ipfs://default-vessel" in result.stdout


def test_register_invalid_owner(temp_db: Path):
    result = runner.invoke(app, ["vessel", "register", "--caller", "A", "--owner", "bad owner", "--db", str(temp_db)])
    assert result.exit_code == 1
    assert "Invalid principal" in result.stdout


def test_log_voyage_as_owner(populated_db: Path):
    result = runner.invoke(app, [
        "voyage", "log", "--vessel", "1", "--sailor", "1", "--caller", "A",
        "-d", "Floripa to Rio", "--proof", "ipfs://e2", "--timestamp", "1700003600",
        "--db", str(populated_db),
    ])
    assert result.exit_code == 0, result.stdout
    assert "Voyage logged successfully at timestamp 1700003600" in result.stdout

    with MaritimeLedger(storage=str(populated_db)) as ledger:
        history = ledger.get_vessel_history(1)
    assert [e.description for e in history] == ["Trip", "Floripa to Rio"]


def test_log_voyage_defaults(populated_db: Path):
    result = runner.invoke(app, [
        "voyage", "log", "--vessel", "1", "--sailor", "1", "--caller", "A", "--db", str(populated_db),
    ])
    assert result.exit_code == 0, result.stdout

    with MaritimeLedger(storage=str(populated_db)) as ledger:
        latest = ledger.get_vessel_history(1)[-1]
    assert latest.evidence_ref == "ipfs://proof"
    assert latest.description == "No description"
    assert latest.timestamp > 1700000000


def test_log_voyage_denied(populated_db: Path):
    result = runner.invoke(app, [
        "voyage", "log", "--vessel", "1", "--sailor", "1", "--caller", "C", "--db", str(populated_db),
    ])
    assert result.exit_code == 1
    assert "not the owner" in result.stdout

    with MaritimeLedger(storage=str(populated_db)) as ledger:
        assert len(ledger.get_vessel_history(1)) == 1


def test_log_voyage_unknown_sailor(populated_db: Path):
    result = runner.invoke(app, [
        "voyage", "log", "--vessel", "1", "--sailor", "7", "--caller", "A", "--db", str(populated_db),
    ])
    assert result.exit_code == 1
    assert "does not exist" in result.stdout


def test_history_shows_voyages(populated_db: Path):
    result = runner.invoke(app, ["history", "1", "--db", str(populated_db)])
    assert result.exit_code == 0
    assert "Found 1 voyage(s)" in result.stdout
    assert "[Voyage #1]" in result.stdout
    assert "2023-11-14 22:13:20 UTC" in result.stdout
    assert "Trip" in result.stdout
    assert "ipfs://e1" in result.stdout


def test_history_unknown_vessel(populated_db: Path):
    result = runner.invoke(app, ["history", "9", "--db", str(populated_db)])
    assert result.exit_code == 0
    assert "No voyages found" in result.stdout

    strict = runner.invoke(app, ["history", "9", "--strict", "--db", str(populated_db)])
    assert strict.exit_code == 1
    assert "does not exist" in strict.stdout


def test_vessel_show_and_list(populated_db: Path):
    result = runner.invoke(app, ["vessel", "show", "1", "--db", str(populated_db)])
    assert result.exit_code == 0
    assert "ipfs://v1" in result.stdout

    result = runner.invoke(app, ["vessel", "list", "--db", str(populated_db)])
    assert result.exit_code == 0
    assert "Registered Vessels" in result.stdout
    assert "2023-11-14" in result.stdout


def test_sailor_show_missing(populated_db: Path):
    result = runner.invoke(app, ["sailor", "show", "3", "--db", str(populated_db)])
    assert result.exit_code == 1
    assert "does not exist" in result.stdout


def test_verify_populated_db(populated_db: Path):
    result = runner.invoke(app, ["verify", "--db", str(populated_db)])
    assert result.exit_code == 0
    assert "valid" in result.stdout.lower()


def test_events_lists_change_log(populated_db: Path):
    result = runner.invoke(app, ["events", "--db", str(populated_db)])
    assert result.exit_code == 0
    assert "VesselRegistered" in result.stdout
    assert "SailorRegistered" in result.stdout
    assert "VoyageLogged" in result.stdout

    only_voyages = runner.invoke(app, ["events", "--name", "VoyageLogged", "--db", str(populated_db)])
    assert "VesselRegistered" not in only_voyages.stdout


def test_export_creates_jsonl(populated_db: Path, tmp_path: Path):
    output_file = tmp_path / "export-test.jsonl"

    result = runner.invoke(app, ["export", "1", "--db", str(populated_db), "--output", str(output_file)])

    assert result.exit_code == 0
    assert "Exported 1 voyages" in result.stdout
    with open(output_file, "r", encoding="utf-8") as f:
        lines = f.readlines()
    assert len(lines) == 1
    assert json.loads(lines[0]) == {
        "vessel_id": 1,
        "sailor_id": 1,
        "evidence_ref": "ipfs://e1",
        "description": "Trip",
        "timestamp": 1700000000,
        "sequence": 0,
    }


def test_far_future_timestamp_stays_readable(populated_db: Path):
    result = runner.invoke(app, [
        "voyage", "log", "--vessel", "1", "--sailor", "1", "--caller", "A",
        "--timestamp", "1000000000000", "--db", str(populated_db),
    ])
    assert result.exit_code == 0, result.stdout

    history = runner.invoke(app, ["history", "1", "--db", str(populated_db)])
    assert history.exit_code == 0, history.stdout
    assert "Found 2 voyage(s)" in history.stdout
    assert "1000000000000 (out of range)" in history.stdout

    listing = runner.invoke(app, ["vessel", "list", "--db", str(populated_db)])
    assert listing.exit_code == 0, listing.stdout
    assert "out of range" in listing.stdout


def test_oversized_timestamp_is_rejected(populated_db: Path):
    result = runner.invoke(app, [
        "voyage", "log", "--vessel", "1", "--sailor", "1", "--caller", "A",
        "--timestamp", str(2**63), "--db", str(populated_db),
    ])
    assert result.exit_code == 1
    assert "must not exceed" in result.stdout


def test_register_rejects_malformed_caller_with_owner(temp_db: Path):
    result = runner.invoke(app, [
        "vessel", "register", "--caller", "bad caller", "--owner", "A", "--db", str(temp_db),
    ])
    assert result.exit_code == 1
    assert "Invalid principal" in result.stdout

    result = runner.invoke(app, [
        "sailor", "register", "--caller", "bad caller", "--owner", "B", "--db", str(temp_db),
    ])
    assert result.exit_code == 1

    with MaritimeLedger(storage=str(temp_db)) as ledger:
        assert ledger.vessels.count == 0
        assert ledger.sailors.count == 0
