"""Transaction log and state storage backed by SQLite."""

import sqlite3
from datetime import datetime

from retro.storage import CREATE_STATE_TABLE_SQL, CREATE_TX_TABLE_SQL, StateNotFoundError

_INSERT_TX_SQL = """INSERT INTO transactions
    (timestamp, wallet_address, task_name, network, tx_hash, status, error_message)
    VALUES (?, ?, ?, ?, ?, ?, ?)"""
_SELECT_STATE_SQL = "SELECT value FROM application_state WHERE key = ?"
_UPSERT_STATE_SQL = """INSERT INTO application_state (key, value)
    VALUES (?, ?)
    ON CONFLICT (key) DO UPDATE SET value = excluded.value"""


def _format_timestamp(value):
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    return str(value)


class SQLiteStore:
    """Implements both TransactionLogger and StateStorage on an aiosqlite connection."""

    def __init__(self, db, log):
        self._db = db
        self._log = log

    async def initialize(self):
        """Create the tables if they do not exist yet."""
        self._log.info("Initializing SQLite schema (tables)...")
        await self._create(CREATE_TX_TABLE_SQL, "transactions")
        self._log.info("Table 'transactions' initialized successfully (or already existed).")
        await self._create(CREATE_STATE_TABLE_SQL, "application_state")
        self._log.info(
            "Table 'application_state' initialized successfully (or already existed)."
        )
        self._log.success("SQLite schema initialized.")

    async def _create(self, statement, table):
        try:
            await self._db.execute(statement)
            await self._db.commit()
        except sqlite3.Error as exc:
            exc.add_note(f"failed to create {table} table in sqlite")
            raise

    async def log_transaction(self, record):
        params = (
            _format_timestamp(record.timestamp),
            record.wallet_address,
            str(record.task_name),
            record.network,
            record.tx_hash,
            str(record.status),
            record.error,
        )
        try:
            await self._db.execute(_INSERT_TX_SQL, params)
            await self._db.commit()
        except sqlite3.Error as exc:
            self._log.error(
                "Failed to insert transaction log into SQLite DB",
                error=exc,
                wallet=record.wallet_address,
                task=record.task_name,
            )
            exc.add_note("failed to execute insert query in sqlite")
            raise
        self._log.debug(
            "Transaction log saved to SQLite DB",
            wallet=record.wallet_address,
            task=record.task_name,
            status=record.status,
        )

    async def get_state(self, key):
        try:
            async with self._db.execute(_SELECT_STATE_SQL, (key,)) as cursor:
                row = await cursor.fetchone()
        except sqlite3.Error as exc:
            self._log.error("Failed to query state from SQLite DB", key=key, error=exc)
            exc.add_note(f"failed to query state from sqlite for key '{key}'")
            raise
        if row is None:
            raise StateNotFoundError(key)
        return row[0]

    async def set_state(self, key, value):
        try:
            await self._db.execute(_UPSERT_STATE_SQL, (key, value))
            await self._db.commit()
        except sqlite3.Error as exc:
            self._log.error("Failed to set state in SQLite DB", key=key, error=exc)
            exc.add_note(f"failed to set state in sqlite for key '{key}'")
            raise
        self._log.debug("State saved to SQLite DB", key=key)

    async def close(self):
        self._log.info("Closing SQLite database connection...")
        if self._db is not None:
            await self._db.close()