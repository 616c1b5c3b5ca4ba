"""Tests for the SQLite account snapshot store."""

import json
from decimal import Decimal

import pytest

from inditrade.ledger.engine import LedgerEngine
from inditrade.ledger.models import default_account
from inditrade.repos.account_repo import AccountRepo, SnapshotCorrupt
from inditrade.repos.db import get_connection, init_db


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "nested" / "inditrade.db")
    init_db(path)
    return path


def test_init_db_creates_table_idempotently(db_path):
    init_db(db_path)
    conn = get_connection(db_path)
    try:
        rows = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='account_snapshots'"
        ).fetchall()
    finally:
        conn.close()
    assert len(rows) == 1


def test_load_empty_returns_none(db_path):
    assert AccountRepo(db_path).load() is None


def test_round_trip_is_lossless(db_path):
    repo = AccountRepo(db_path)
    engine = LedgerEngine.open(repo)
    engine.place_order("TCS", "BUY", 3, 3850.55)
    engine.place_order("TCS", "SELL", 1, 3900.1)

    restored = LedgerEngine.open(AccountRepo(db_path)).account
    assert restored == engine.account
    assert restored.balance == Decimal("1000000") - Decimal("11551.65") + Decimal("3900.1")


def test_save_replaces_previous(db_path):
    repo = AccountRepo(db_path)
    repo.save(default_account(Decimal("1")))
    repo.save(default_account(Decimal("2")))
    assert repo.load()["balance"] == "2"


def test_keys_are_independent(db_path):
    AccountRepo(db_path, key="a").save(default_account(Decimal("1")))
    assert AccountRepo(db_path, key="b").load() is None


def test_delete(db_path):
    repo = AccountRepo(db_path)
    repo.save(default_account())
    repo.delete()
    assert repo.load() is None


@pytest.mark.parametrize("payload", ["{not json", "[1, 2, 3]", '"text"'])
def test_corrupt_payload_raises(db_path, payload):
    repo = AccountRepo(db_path)
    repo.save_raw(payload)
    with pytest.raises(SnapshotCorrupt):
        repo.load()


def test_unparseable_snapshot_replaced_by_default(db_path):
    repo = AccountRepo(db_path)
    repo.save_raw("{not json")

    engine = LedgerEngine.open(repo)
    assert engine.account == default_account()
    assert repo.load() == default_account().to_dict()


def test_healed_snapshot_persisted(db_path):
    repo = AccountRepo(db_path)
    raw = default_account().to_dict()
    raw["balance"] = "NaN"
    raw["portfolio"] = "oops"
    raw["watchlist"] = ["ITC.NS"]
    repo.save_raw(json.dumps(raw))

    engine = LedgerEngine.open(repo)
    assert engine.account.balance == Decimal("1000000")
    assert engine.account.watchlist == ("ITC.NS",)

    stored = repo.load()
    assert stored["balance"] == "1000000"
    assert stored["portfolio"] == []


def test_fractional_position_dropped_and_persisted(db_path):
    repo = AccountRepo(db_path)
    raw = default_account().to_dict()
    raw["portfolio"] = [{"symbol": "TCS.NS", "quantity": 1.5, "avgPrice": "3850.55"}]
    repo.save_raw(json.dumps(raw))

    engine = LedgerEngine.open(repo)
    assert engine.account.positions == ()
    assert repo.load()["portfolio"] == []


def test_rows_readable_by_column_name(db_path):
    AccountRepo(db_path).save(default_account())
    conn = get_connection(db_path)
    try:
        row = conn.execute("SELECT key, payload FROM account_snapshots").fetchone()
    finally:
        conn.close()
    assert row["key"] == "inditrade_user_v1"
    assert json.loads(row["payload"])["name"] == "Pro Trader"
