"""Storage records, interfaces and the no-op store."""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, runtime_checkable

CREATE_TX_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS transactions (
    id SERIAL PRIMARY KEY,
    timestamp TIMESTAMP NOT NULL,
    wallet_address VARCHAR(42) NOT NULL,
    task_name VARCHAR(255) NOT NULL,
    network VARCHAR(255) NOT NULL,
    tx_hash VARCHAR(66),
    status VARCHAR(50) NOT NULL,
    error_message TEXT
);"""

CREATE_STATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS application_state (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);"""


@dataclass
class TransactionRecord:
    """One attempted or completed task execution."""

    timestamp: datetime
    wallet_address: str
    task_name: str
    network: str
    status: str
    tx_hash: str = ""
    error: str = ""


class StateNotFoundError(LookupError):
    """The requested state key does not exist."""

    def __init__(self, key=""):
        super().__init__(f"state key not found: {key}" if key else "state key not found")
        self.key = key


@runtime_checkable
class TransactionLogger(Protocol):
    """Stores the history of task executions."""

    async def log_transaction(self, record: TransactionRecord) -> None:
        """Save a record of an attempted or completed transaction."""

    async def close(self) -> None:
        """Release underlying resources."""


@runtime_checkable
class StateStorage(Protocol):
    """Reads and writes application state as string key/value pairs."""

    async def get_state(self, key: str) -> str:
        """Return the value for a key or raise StateNotFoundError."""

    async def set_state(self, key: str, value: str) -> None:
        """Save a key/value pair."""

    async def close(self) -> None:
        """Release underlying resources."""


class NoOpStore:
    """Store that keeps nothing; every state lookup misses."""

    async def log_transaction(self, record):
        return None

    async def get_state(self, key):
        raise StateNotFoundError(key)

    async def set_state(self, key, value):
        return None

    async def close(self):
        return None