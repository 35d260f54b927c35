"""Enumerations shared across the application."""

from enum import StrEnum


class DBType(StrEnum):
    """Backend used for transaction logs and application state."""

    POSTGRES = "postgres"
    SQLITE = "sqlite"
    NONE = "none"


class WalletProcessOrder(StrEnum):
    """Order in which wallets are processed."""

    RANDOM = "random"
    SEQUENTIAL = "sequential"


class TaskOrder(StrEnum):
    """Order in which tasks are executed within one wallet."""

    RANDOM = "random"
    SEQUENTIAL = "sequential"


class TaskName(StrEnum):
    """Identifiers of the built-in tasks."""

    LOG_BALANCE = "log_balance"
    DUMMY = "dummy_task"


class TimeUnit(StrEnum):
    """Units accepted for configured delays."""

    SECONDS = "seconds"
    MINUTES = "minutes"


class TxStatus(StrEnum):
    """Status stored with a transaction record."""

    SUCCESS = "Success"
    FAILED = "Failed"
    ERROR_BEFORE_SEND = "ErrorBeforeSend"