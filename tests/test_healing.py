"""Tests for inditrade.ledger.healing — per-field snapshot repair."""

from decimal import Decimal

import pytest

from inditrade.ledger.healing import heal_snapshot
from inditrade.ledger.models import Account, default_account


@pytest.fixture
def defaults() -> Account:
    return default_account(Decimal("1000000"))


def _snapshot(**overrides) -> dict:
    raw = {
        "id": "user_1",
        "name": "Pro Trader",
        "email": "trader@example.com",
        "balance": "988448.35",
        "portfolio": [{"symbol": "TCS.NS", "quantity": 3, "avgPrice": "3850.55"}],
        "watchlist": ["RELIANCE.NS", "TCS.NS"],
        "trades": [{
            "id": "t1", "symbol": "TCS.NS", "type": "BUY", "quantity": 3,
            "price": "3850.55", "timestamp": 1700000000000, "total": "11551.65",
        }],
        "stats": {
            "wins": 0, "losses": 0, "totalTrades": 0,
            "bestTrade": "0", "worstTrade": "0", "totalProfitLoss": "0",
        },
    }
    raw.update(overrides)
    return raw


def test_valid_snapshot_untouched(defaults):
    healed, repaired = heal_snapshot(_snapshot(), defaults)
    assert repaired == []
    assert healed == _snapshot()
    assert Account.from_dict(healed).balance == Decimal("988448.35")


def test_non_dict_replaced_wholesale(defaults):
    healed, repaired = heal_snapshot(["not", "an", "account"], defaults)
    assert repaired == ["snapshot"]
    assert Account.from_dict(healed) == defaults


@pytest.mark.parametrize("balance", [float("nan"), "NaN", "Infinity", None, True, "abc", -10])
def test_bad_balance_reset_others_kept(defaults, balance):
    healed, repaired = heal_snapshot(_snapshot(balance=balance), defaults)
    assert repaired == ["balance"]
    account = Account.from_dict(healed)
    assert account.balance == Decimal("1000000")
    assert account.positions[0].symbol == "TCS.NS"
    assert len(account.trades) == 1


def test_numeric_balance_accepted(defaults):
    healed, repaired = heal_snapshot(_snapshot(balance=5000.5), defaults)
    assert repaired == []
    assert Account.from_dict(healed).balance == Decimal("5000.5")


def test_portfolio_not_a_list(defaults):
    healed, repaired = heal_snapshot(_snapshot(portfolio={"TCS.NS": 3}), defaults)
    assert repaired == ["portfolio"]
    assert healed["portfolio"] == []


def test_bad_positions_dropped_individually(defaults):
    portfolio = [
        {"symbol": "TCS.NS", "quantity": 3, "avgPrice": "3850.55"},
        {"symbol": "INFY.NS", "quantity": 0, "avgPrice": "1500"},
        {"symbol": "ITC.NS", "quantity": 5, "avgPrice": "NaN"},
        {"symbol": "TCS.NS", "quantity": 1, "avgPrice": "3900"},
        {"quantity": 2},
        "junk",
    ]
    healed, repaired = heal_snapshot(_snapshot(portfolio=portfolio), defaults)
    assert repaired == ["portfolio"]
    assert healed["portfolio"] == [portfolio[0]]


def test_watchlist_cleaned(defaults):
    healed, repaired = heal_snapshot(
        _snapshot(watchlist=["TCS.NS", 42, "", "TCS.NS", "ITC.NS"]), defaults
    )
    assert repaired == ["watchlist"]
    assert healed["watchlist"] == ["TCS.NS", "ITC.NS"]


def test_missing_watchlist_reseeded(defaults):
    raw = _snapshot()
    del raw["watchlist"]
    healed, repaired = heal_snapshot(raw, defaults)
    assert repaired == ["watchlist"]
    assert healed["watchlist"] == list(defaults.watchlist)


def test_malformed_trades_dropped(defaults):
    good = _snapshot()["trades"][0]
    trades = [good, {**good, "id": "t2", "type": "HOLD"}, {**good, "id": "t3", "price": "-1"}, None]
    healed, repaired = heal_snapshot(_snapshot(trades=trades), defaults)
    assert repaired == ["trades"]
    assert healed["trades"] == [good]


@pytest.mark.parametrize(
    "stats",
    [
        None,
        {"wins": 1, "losses": 0, "totalTrades": 1, "bestTrade": "NaN", "worstTrade": "0", "totalProfitLoss": "5"},
        {"wins": -1, "losses": 0, "totalTrades": 0, "bestTrade": "0", "worstTrade": "0", "totalProfitLoss": "0"},
        {"wins": 0, "losses": 0, "bestTrade": "0", "worstTrade": "0", "totalProfitLoss": "0"},
    ],
    ids=["missing", "nan-amount", "negative-count", "missing-count"],
)
def test_bad_stats_replaced_whole(defaults, stats):
    healed, repaired = heal_snapshot(_snapshot(stats=stats), defaults)
    assert repaired == ["stats"]
    assert healed["stats"] == defaults.stats.to_dict()


def test_identity_fields(defaults):
    healed, repaired = heal_snapshot(_snapshot(name=None, email=7), defaults)
    assert repaired == ["name", "email"]
    assert healed["name"] == "Pro Trader"


def test_several_fields_repaired_together(defaults):
    healed, repaired = heal_snapshot(_snapshot(balance="NaN", portfolio=None, stats="x"), defaults)
    assert repaired == ["balance", "portfolio", "stats"]
    assert healed["watchlist"] == ["RELIANCE.NS", "TCS.NS"]


@pytest.mark.parametrize("quantity", [1.5, 2.0, True, "3", None])
def test_non_integer_position_quantity_dropped(defaults, quantity):
    portfolio = [
        {"symbol": "TCS.NS", "quantity": quantity, "avgPrice": "3850.55"},
        {"symbol": "ITC.NS", "quantity": 10, "avgPrice": "410"},
    ]
    healed, repaired = heal_snapshot(_snapshot(portfolio=portfolio), defaults)
    assert repaired == ["portfolio"]
    assert [p.symbol for p in Account.from_dict(healed).positions] == ["ITC.NS"]


@pytest.mark.parametrize("quantity", [2.5, False, "3"])
def test_non_integer_trade_quantity_dropped(defaults, quantity):
    good = _snapshot()["trades"][0]
    trades = [good, {**good, "id": "t2", "quantity": quantity}]
    healed, repaired = heal_snapshot(_snapshot(trades=trades), defaults)
    assert repaired == ["trades"]
    assert healed["trades"] == [good]
