"""Market calendar — pure function, checks if a moment falls in NSE hours."""

from datetime import datetime, timedelta, timezone


NSE_UTC_OFFSET_MINUTES = 330  # UTC+05:30
NSE_OPEN_MINUTE = 9 * 60 + 15  # 09:15
NSE_CLOSE_MINUTE = 15 * 60 + 30  # 15:30


def is_market_open(
    now: datetime | None = None,
    utc_offset_minutes: int = NSE_UTC_OFFSET_MINUTES,
    open_minute: int = NSE_OPEN_MINUTE,
    close_minute: int = NSE_CLOSE_MINUTE,
) -> bool:
    """Return True if *now* falls within the exchange's trading window.

    Default window: Monday–Friday, 09:15–15:30 IST (both ends inclusive).
    Holidays are not modelled.

    Args:
        now: The moment to check.  Naive datetimes are taken as UTC.
            Defaults to the current time.
        utc_offset_minutes: Fixed offset of exchange-local time from UTC.
        open_minute: First open minute of the local day.
        close_minute: Last open minute of the local day.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    local = now.astimezone(timezone(timedelta(minutes=utc_offset_minutes)))
    if local.weekday() >= 5:
        return False

    minute_of_day = local.hour * 60 + local.minute
    return open_minute <= minute_of_day <= close_minute


def market_state(now: datetime | None = None, **window) -> str:
    """``"OPEN"`` or ``"CLOSED"`` for *now*; *window* as for :func:`is_market_open`."""
    return "OPEN" if is_market_open(now, **window) else "CLOSED"
