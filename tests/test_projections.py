"""Tests for inditrade.ledger.projections."""

from decimal import Decimal

from inditrade.ledger.models import Account, Position, Stats, default_account
from inditrade.ledger.projections import invested_value, portfolio_summary, win_rate
from inditrade.market.models import Quote


def _account() -> Account:
    base = default_account(Decimal("50000"))
    return Account(
        id=base.id,
        display_name=base.display_name,
        email=base.email,
        balance=Decimal("50000"),
        positions=(
            Position("TCS.NS", 10, Decimal("100")),
            Position("INFY.NS", 4, Decimal("250")),
        ),
    )


def _quote(symbol: str, price: float) -> Quote:
    return Quote(symbol, price, 0.0, 0.0, 0, "INR", 0, "OPEN")


class TestWinRate:
    def test_no_trades(self):
        assert win_rate(Stats()) == 0.0

    def test_rounded_percentage(self):
        assert win_rate(Stats(wins=2, losses=1, total_trades=3)) == 66.67


class TestPortfolioSummary:
    def test_invested_value(self):
        assert invested_value(_account()) == Decimal("2000")

    def test_marks_to_quotes(self):
        summary = portfolio_summary(_account(), {"TCS.NS": _quote("TCS.NS", 110.5), "INFY.NS": Decimal("200")})

        tcs, infy = summary["holdings"]
        assert tcs["market_value"] == Decimal("1105.0")
        assert tcs["unrealized_pnl"] == Decimal("105.0")
        assert tcs["unrealized_pnl_pct"] == 10.5
        assert infy["unrealized_pnl"] == Decimal("-200")
        assert summary["invested"] == Decimal("2000")
        assert summary["current_value"] == Decimal("1905.0")
        assert summary["unrealized_pnl"] == Decimal("-95.0")
        assert summary["net_worth"] == Decimal("51905.0")

    def test_missing_or_bad_price_falls_back_to_cost(self):
        summary = portfolio_summary(_account(), {"TCS.NS": float("nan")})
        assert all(h["unrealized_pnl"] == 0 for h in summary["holdings"])
        assert summary["net_worth"] == Decimal("52000")

    def test_empty_portfolio(self):
        summary = portfolio_summary(default_account(Decimal("10")), {})
        assert summary["holdings"] == []
        assert summary["net_worth"] == Decimal("10")
