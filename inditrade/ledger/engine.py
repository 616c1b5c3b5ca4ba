"""InditradeSim — Ledger engine.

Turns an order plus a quote price into balance, position, statistics and
history updates.  The transition functions are pure: they validate fully,
then build a new ``Account`` from the old one, so a rejected order leaves
nothing half-applied.  ``LedgerEngine`` wraps them with an exclusive lock
and synchronous persistence; the new snapshot becomes current only after
it has been saved.
"""

import logging
import math
import sqlite3
import threading
import time
import uuid
from dataclasses import replace
from decimal import Decimal

from inditrade.errors import (
    InsufficientBalance,
    InsufficientShares,
    InvalidPrice,
    InvalidQuantity,
    NoPosition,
    TradingError,
    ValidationError,
)
from inditrade.ledger.healing import heal_snapshot
from inditrade.ledger.models import (
    BUY,
    SELL,
    Account,
    Order,
    Position,
    Stats,
    Trade,
    default_account,
)
from inditrade.market.models import normalize_symbol

logger = logging.getLogger("inditrade.ledger")


# ── Pure transitions ─────────────────────────────────────────────────────


def execute_order(account: Account, order: Order) -> Account:
    """Apply a market order to *account* and return the new snapshot.

    Raises:
        InvalidPrice: ``order.price`` is not a positive finite number.
        InvalidQuantity: ``order.quantity`` is not a positive integer.
        ValidationError: Unknown side or an order id already recorded.
        InsufficientBalance: A BUY costs more than the cash balance.
        NoPosition: A SELL for a symbol that is not held.
        InsufficientShares: A SELL for more shares than are held.
    """
    price = _validate_price(order.price)
    quantity = _validate_quantity(order.quantity)
    if order.side not in (BUY, SELL):
        raise ValidationError(f"Unknown order side {order.side!r}.")
    if not order.symbol:
        raise ValidationError("Order symbol is required.")
    if not isinstance(order.id, str) or not order.id:
        raise ValidationError("Order id must be a non-empty string.")
    if any(t.id == order.id for t in account.trades):
        raise ValidationError(f"Order {order.id} was already executed.")

    value = price * quantity
    if order.side == BUY:
        balance, positions, stats = _buy(account, order.symbol, quantity, price, value)
    else:
        balance, positions, stats = _sell(account, order.symbol, quantity, value)

    trade = Trade(
        id=order.id,
        symbol=order.symbol,
        side=order.side,
        quantity=quantity,
        price=price,
        timestamp=order.timestamp,
    )
    return replace(
        account,
        balance=balance,
        positions=positions,
        stats=stats,
        trades=(trade,) + account.trades,
    )


def toggle_watchlist(account: Account, symbol: str) -> Account:
    """Remove *symbol* from the watchlist if present, else append it."""
    if symbol in account.watchlist:
        watchlist = tuple(s for s in account.watchlist if s != symbol)
    else:
        watchlist = account.watchlist + (symbol,)
    return replace(account, watchlist=watchlist)


def _buy(account: Account, symbol: str, quantity: int, price: Decimal, value: Decimal):
    if account.balance < value:
        raise InsufficientBalance(required=value, available=account.balance)

    existing = account.position(symbol)
    if existing is None:
        positions = account.positions + (Position(symbol, quantity, price),)
    else:
        new_qty = existing.quantity + quantity
        avg = (existing.cost_basis + value) / new_qty
        positions = tuple(
            Position(symbol, new_qty, avg) if p.symbol == symbol else p
            for p in account.positions
        )
    return account.balance - value, positions, account.stats


def _sell(account: Account, symbol: str, quantity: int, value: Decimal):
    existing = account.position(symbol)
    if existing is None:
        raise NoPosition(symbol)
    if existing.quantity < quantity:
        raise InsufficientShares(symbol, owned=existing.quantity, requested=quantity)

    realized = value - existing.avg_price * quantity
    stats = _record_realized(account.stats, realized)

    remaining = existing.quantity - quantity
    positions = tuple(
        replace(p, quantity=remaining) if p.symbol == symbol else p
        for p in account.positions
        if p.symbol != symbol or remaining > 0
    )
    return account.balance + value, positions, stats


def _record_realized(stats: Stats, realized: Decimal) -> Stats:
    """Fold one SELL outcome into the stats.  Zero P&L counts as a loss."""
    if realized > 0:
        return replace(
            stats,
            wins=stats.wins + 1,
            total_trades=stats.total_trades + 1,
            best_trade=max(stats.best_trade, realized),
            total_profit_loss=stats.total_profit_loss + realized,
        )
    return replace(
        stats,
        losses=stats.losses + 1,
        total_trades=stats.total_trades + 1,
        worst_trade=min(stats.worst_trade, realized),
        total_profit_loss=stats.total_profit_loss + realized,
    )


def _validate_price(price: object) -> Decimal:
    if isinstance(price, bool) or not isinstance(price, (int, float, Decimal)):
        raise InvalidPrice(price)
    if isinstance(price, float):
        if not math.isfinite(price):
            raise InvalidPrice(price)
        value = Decimal(str(price))
    else:
        value = Decimal(price)
    if not value.is_finite() or value <= 0:
        raise InvalidPrice(price)
    return value


def _validate_quantity(quantity: object) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantity(quantity)
    return quantity


# ── Stateful engine ──────────────────────────────────────────────────────


class LedgerEngine:
    """Owns the current ``Account`` and serialises every mutation.

    Args:
        repo: Persistence gateway with ``load()`` / ``save(account)``.
        account: The current (already healed) account.
        starting_balance: Balance of the default account used on reset.
        seed_watchlist: Watchlist of the default account used on reset.
        exchange_suffix: Suffix used to canonicalise symbols.
    """

    def __init__(
        self,
        repo,
        account: Account,
        starting_balance: Decimal = Decimal("1000000"),
        seed_watchlist: tuple[str, ...] = ("RELIANCE.NS", "TCS.NS", "INFY.NS", "HDFCBANK.NS"),
        exchange_suffix: str = ".NS",
    ) -> None:
        self._repo = repo
        self._account = account
        self._starting_balance = starting_balance
        self._seed_watchlist = tuple(seed_watchlist)
        self._suffix = exchange_suffix
        self._lock = threading.RLock()

    @classmethod
    def open(
        cls,
        repo,
        starting_balance: Decimal = Decimal("1000000"),
        seed_watchlist: tuple[str, ...] = ("RELIANCE.NS", "TCS.NS", "INFY.NS", "HDFCBANK.NS"),
        exchange_suffix: str = ".NS",
    ) -> "LedgerEngine":
        """Load the stored account (healing it if needed) or create one."""
        defaults = default_account(starting_balance, seed_watchlist)
        account = load_account(repo, defaults)
        return cls(repo, account, starting_balance, seed_watchlist, exchange_suffix)

    @classmethod
    def from_config(cls, config, repo) -> "LedgerEngine":
        return cls.open(
            repo,
            starting_balance=config.starting_balance,
            seed_watchlist=config.seed_watchlist,
            exchange_suffix=config.exchange_suffix,
        )

    @property
    def account(self) -> Account:
        with self._lock:
            return self._account

    # ── Mutations ────────────────────────────────────────────────────────

    def execute_order(self, order: Order) -> Account:
        """Validate, apply, persist and publish one order atomically."""
        with self._lock:
            try:
                order = replace(order, symbol=self._normalize(order.symbol))
                updated = execute_order(self._account, order)
            except TradingError as exc:
                logger.info(
                    "Rejected %s %s x%s @ %s: %s",
                    order.side, order.symbol, order.quantity, order.price, exc,
                )
                raise
            self._repo.save(updated)
            self._account = updated

        logger.info(
            "Executed %s %s x%d @ %s (balance %s)",
            order.side, order.symbol, order.quantity, order.price, updated.balance,
        )
        return updated

    def place_order(
        self,
        symbol: str,
        side: str,
        quantity: object,
        price: object,
        order_id: object = None,
    ) -> Account:
        """Build an ``Order`` stamped with a fresh id and time, then execute it.

        A caller-supplied id is stored as a string so it still matches
        after the snapshot is reloaded.
        """
        order = Order(
            id=uuid.uuid4().hex if order_id in (None, "") else str(order_id),
            symbol=symbol,
            side=str(side).upper(),
            quantity=quantity,
            price=price,
            timestamp=int(time.time() * 1000),
        )
        return self.execute_order(order)

    def toggle_watchlist(self, symbol: str) -> Account:
        with self._lock:
            updated = toggle_watchlist(self._account, self._normalize(symbol))
            self._repo.save(updated)
            self._account = updated
        return updated

    def reset_account(self) -> Account:
        """Replace the account with the default snapshot."""
        with self._lock:
            fresh = default_account(self._starting_balance, self._seed_watchlist)
            self._repo.save(fresh)
            self._account = fresh
        logger.info("Account reset to starting balance %s", fresh.balance)
        return fresh

    def _normalize(self, symbol: str) -> str:
        try:
            return normalize_symbol(symbol, self._suffix)
        except (AttributeError, ValueError):
            raise ValidationError("A valid symbol is required.") from None


# ── Loading ──────────────────────────────────────────────────────────────


def load_account(repo, defaults: Account) -> Account:
    """Load and heal the stored snapshot; fall back to *defaults*.

    A healed or freshly created snapshot is persisted before returning.
    """
    try:
        raw = repo.load()
    except (ValueError, sqlite3.DatabaseError) as exc:
        logger.error("Failed to load account snapshot: %s", exc)
        raw = None
    else:
        if raw is None:
            logger.info("No stored account; creating default.")

    if raw is not None:
        healed, repaired = heal_snapshot(raw, defaults)
        account = Account.from_dict(healed)
        if repaired:
            logger.warning("Healed corrupted account fields: %s", ", ".join(repaired))
            repo.save(account)
        return account

    repo.save(defaults)
    return defaults
