"""Account snapshot repository — single-key SQLite store for the ledger."""

import json
from datetime import datetime, timezone
from typing import Optional

from inditrade.ledger.models import Account
from inditrade.repos.db import get_connection


DEFAULT_KEY = "inditrade_user_v1"


class SnapshotCorrupt(ValueError):
    """The stored payload is not a JSON object."""


class AccountRepo:
    """Stores exactly one ``Account`` snapshot under a fixed key.

    The payload is the account's JSON form, with money as decimal strings,
    so a save/load round trip is lossless.

    Args:
        db_path: Path to the SQLite database file (already initialised).
        key: Snapshot key.
    """

    def __init__(self, db_path: str, key: str = DEFAULT_KEY) -> None:
        self._db_path = db_path
        self._key = key

    # ── Write ────────────────────────────────────────────────────────────

    def save(self, account: Account) -> None:
        """Write *account*, replacing any previous snapshot.

        ``sqlite3`` errors propagate: an unsaved mutation is not durable.
        """
        payload = json.dumps(account.to_dict(), ensure_ascii=False)
        self.save_raw(payload)

    def delete(self) -> None:
        """Remove the stored snapshot, if any."""
        conn = get_connection(self._db_path)
        try:
            conn.execute("DELETE FROM account_snapshots WHERE key = ?", (self._key,))
            conn.commit()
        finally:
            conn.close()

    # ── Read ─────────────────────────────────────────────────────────────

    def load(self) -> Optional[dict]:
        """Return the raw stored snapshot, or ``None`` when there is none.

        The result is unvalidated; the ledger heals it before use.

        Raises:
            SnapshotCorrupt: The payload is not a JSON object.
        """
        conn = get_connection(self._db_path)
        try:
            row = conn.execute(
                "SELECT payload FROM account_snapshots WHERE key = ?",
                (self._key,),
            ).fetchone()
        finally:
            conn.close()

        if row is None:
            return None
        try:
            data = json.loads(row["payload"])
        except ValueError as exc:
            raise SnapshotCorrupt(f"Stored account is not valid JSON: {exc}") from None
        if not isinstance(data, dict):
            raise SnapshotCorrupt("Stored account is not a JSON object")
        return data

    def save_raw(self, payload: str) -> None:
        """Store *payload* verbatim.  Used by maintenance tooling and tests."""
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                """
                INSERT INTO account_snapshots (key, payload, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    payload = excluded.payload,
                    updated_at = excluded.updated_at
                """,
                (self._key, payload, datetime.now(timezone.utc).isoformat()),
            )
            conn.commit()
        finally:
            conn.close()
