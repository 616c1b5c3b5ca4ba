"""InditradeSim — application configuration.

Loads .env variables into a typed config object.
Validates every value on startup so a bad deployment fails fast.
"""

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from dotenv import load_dotenv

from inditrade.models.relay_config import DEFAULT_RELAYS, RelayEndpoint


_DEFAULT_WATCHLIST = "RELIANCE.NS,TCS.NS,INFY.NS,HDFCBANK.NS"
_DEFAULT_UPSTREAM_HOSTS = "query1.finance.yahoo.com,query2.finance.yahoo.com"


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    db_path: str
    log_level: str
    api_port: int
    starting_balance: Decimal
    seed_watchlist: tuple[str, ...]
    exchange_suffix: str
    relays: tuple[RelayEndpoint, ...]
    upstream_hosts: tuple[str, ...]
    relay_origin: str
    cache_ttl_seconds: float
    poll_interval_seconds: float
    market_utc_offset_minutes: int
    market_open_minute: int
    market_close_minute: int


def parse_relays(raw: str) -> tuple[RelayEndpoint, ...]:
    """Parse ``url,timeout[,kind]`` entries separated by ``;``.

    Raises ``ValueError`` naming ``RELAYS`` when an entry is malformed or
    the list is empty.
    """
    relays: list[RelayEndpoint] = []
    for entry in raw.split(";"):
        entry = entry.strip()
        if not entry:
            continue
        parts = [p.strip() for p in entry.split(",")]
        if len(parts) not in (2, 3) or not parts[0]:
            raise ValueError(f"RELAYS: malformed entry {entry!r}")
        try:
            timeout = float(parts[1])
        except ValueError:
            raise ValueError(f"RELAYS: bad timeout in {entry!r}") from None
        kind = parts[2] if len(parts) == 3 else "raw"
        try:
            relays.append(RelayEndpoint(parts[0], timeout, kind))
        except ValueError as exc:
            raise ValueError(f"RELAYS: {exc}") from None
    if not relays:
        raise ValueError("RELAYS: at least one relay is required")
    return tuple(relays)


def _csv(value: str) -> tuple[str, ...]:
    return tuple(v.strip() for v in value.split(",") if v.strip())


def _number(name: str, default: str, cast):
    raw = os.environ.get(name, default)
    try:
        return cast(raw)
    except (ValueError, InvalidOperation):
        raise ValueError(f"{name} must be numeric, got {raw!r}") from None


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` with a message naming the offending variable when
    a value cannot be parsed or is out of range.
    """
    load_dotenv(dotenv_path=env_path)

    starting_balance = _number("STARTING_BALANCE", "1000000", Decimal)
    if not starting_balance.is_finite() or starting_balance <= 0:
        raise ValueError(
            f"STARTING_BALANCE must be positive, got {starting_balance}"
        )

    raw_relays = os.environ.get("RELAYS")
    relays = parse_relays(raw_relays) if raw_relays else DEFAULT_RELAYS

    upstream_hosts = _csv(
        os.environ.get("UPSTREAM_HOSTS", _DEFAULT_UPSTREAM_HOSTS)
    )
    if not upstream_hosts:
        raise ValueError("UPSTREAM_HOSTS must name at least one host")

    cache_ttl = _number("CACHE_TTL_SECONDS", "2.0", float)
    poll_interval = _number("POLL_INTERVAL_SECONDS", "5", float)
    if cache_ttl < 0:
        raise ValueError(f"CACHE_TTL_SECONDS must not be negative, got {cache_ttl}")
    if poll_interval <= 0:
        raise ValueError(
            f"POLL_INTERVAL_SECONDS must be positive, got {poll_interval}"
        )

    open_minute = _number("MARKET_OPEN_MINUTE", "555", int)
    close_minute = _number("MARKET_CLOSE_MINUTE", "930", int)
    if not 0 <= open_minute <= close_minute < 24 * 60:
        raise ValueError(
            "MARKET_OPEN_MINUTE/MARKET_CLOSE_MINUTE must satisfy "
            f"0 <= open <= close < 1440, got {open_minute}/{close_minute}"
        )

    return Config(
        db_path=os.environ.get("DB_PATH", "data/inditrade.db"),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        api_port=_number("API_PORT", "8080", int),
        starting_balance=starting_balance,
        seed_watchlist=_csv(os.environ.get("SEED_WATCHLIST", _DEFAULT_WATCHLIST)),
        exchange_suffix=os.environ.get("EXCHANGE_SUFFIX", ".NS"),
        relays=relays,
        upstream_hosts=upstream_hosts,
        relay_origin=os.environ.get("RELAY_ORIGIN", "http://localhost"),
        cache_ttl_seconds=cache_ttl,
        poll_interval_seconds=poll_interval,
        market_utc_offset_minutes=_number("MARKET_UTC_OFFSET_MINUTES", "330", int),
        market_open_minute=open_minute,
        market_close_minute=close_minute,
    )
