import json
from datetime import date, timedelta

import pytest

from shelfaware.cli.main import main


@pytest.fixture
def db_arg(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("SHELFAWARE_ALERT_WEBHOOK_URL", raising=False)
    monkeypatch.delenv("SHELFAWARE_DEFAULT_REMINDER_DAYS", raising=False)
    return ["--db", str(tmp_path / "inventory.sqlite3")]


def test_extract_text(capsys):
    assert main(["extract", "--text", "Best before: 03/2026"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["expiry_date"] == "2026-03-31"

    assert main(["extract", "--text", "no date"]) == 1


def test_products_add_list_and_check(db_arg, capsys):
    soon = (date.today() + timedelta(days=2)).isoformat()

    assert main(db_arg + ["products", "add", "--user", "alice", "--name", "Milk", "--category", "Dairy", "--expiry-date", soon]) == 0
    assert main(
        db_arg
        + ["products", "add", "--user", "alice", "--name", "Jam", "--category", "Other", "--from-text", "EXP 12/2099"]
    ) == 2
    assert main(
        db_arg
        + [
            "products",
            "add",
            "--user",
            "alice",
            "--name",
            "Jam",
            "--category",
            "Other",
            "--custom-category",
            "Spreads",
            "--from-text",
            "EXP 12/2099",
        ]
    ) == 0
    capsys.readouterr()

    assert main(db_arg + ["products", "list", "--user", "alice", "--status", "expiring_soon"]) == 0
    listed = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert [p["name"] for p in listed] == ["Milk"]

    assert main(db_arg + ["check", "--user", "alice"]) == 0
    created = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert [n["message"] for n in created] == ["Your Milk will expire in 2 days!"]

    assert main(db_arg + ["check", "--user", "alice"]) == 0
    assert capsys.readouterr().out == ""


def test_products_add_from_text_without_date(db_arg):
    args = ["products", "add", "--user", "alice", "--name", "Jam", "--category", "Dairy", "--from-text", "blurry"]
    assert main(db_arg + args) == 1


def test_watch_without_user_fails(db_arg):
    assert main(db_arg + ["watch"]) == 2


def test_db_init(db_arg, capsys):
    assert main(db_arg + ["db", "init"]) == 0
    assert capsys.readouterr().out.strip() == db_arg[1]
