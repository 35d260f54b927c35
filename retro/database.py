"""Selection and setup of the configured storage backend."""

import sqlite3
from pathlib import Path

import aiosqlite

from retro.sqlite_store import SQLiteStore
from retro.storage import NoOpStore
from retro.types import DBType


class UnsupportedDBTypeError(ValueError):
    """The configured database type is not supported."""


class MissingConnectionStringError(ValueError):
    """The configured database type needs a connection string and none was given."""


async def new_storage(log, db_type, conn_str, pool_max_conns=""):
    """Return a (transaction logger, state storage) pair for the configured backend."""
    match db_type:
        case DBType.POSTGRES:
            if not conn_str:
                raise MissingConnectionStringError(
                    "для PostgreSQL: database connection string is missing"
                )
            raise UnsupportedDBTypeError(
                "postgres storage needs a PostgreSQL driver that this package does not ship; "
                f"use '{DBType.SQLITE}' or '{DBType.NONE}'"
            )
        case DBType.SQLITE:
            if not conn_str:
                raise MissingConnectionStringError(
                    "для SQLite: database connection string is missing"
                )
            log.info("Установка соединения с SQLite...")
            db = await _setup_sqlite_connection(log, conn_str)
            log.info("Соединение с SQLite установлено. Инициализация хранилища...")
            store = SQLiteStore(db, log)
            try:
                await store.initialize()
            except sqlite3.Error:
                await db.close()
                raise
            return store, store
        case DBType.NONE | "":
            log.info("Логгирование транзакций и сохранение состояния в БД отключены.")
            store = NoOpStore()
            return store, store
        case _:
            raise UnsupportedDBTypeError(
                f"unsupported database type specified: {db_type} "
                f"(ожидается '{DBType.POSTGRES}', '{DBType.SQLITE}' или '{DBType.NONE}')"
            )


async def _setup_sqlite_connection(log, db_path):
    log.debug("Ensuring directory exists for SQLite database...", path=db_path)
    directory = Path(db_path).parent
    try:
        directory.mkdir(mode=0o750, parents=True, exist_ok=True)
    except OSError as exc:
        exc.add_note(f"failed to create directory '{directory}' for sqlite db")
        raise

    log.debug("Opening SQLite database connection...", path=db_path)
    try:
        db = await aiosqlite.connect(db_path)
    except sqlite3.Error as exc:
        exc.add_note(f"failed to open sqlite database at {db_path}")
        raise

    try:
        await db.execute("PRAGMA journal_mode=WAL")
        await db.execute("PRAGMA busy_timeout=5000")
        log.debug("Pinging SQLite database...")
        await db.execute("SELECT 1")
    except sqlite3.Error as exc:
        log.debug("Closing SQLite connection due to setup error...")
        await db.close()
        exc.add_note(f"failed to ping sqlite database at {db_path}")
        raise

    log.success("Successfully connected to SQLite and pinged.", path=db_path)
    return db