"""Registry of task constructors and the task runner interface."""

import threading
from typing import Protocol, runtime_checkable


class TaskConstructorNotFoundError(LookupError):
    """No constructor is registered under the requested task name."""


class TaskAlreadyRegisteredError(RuntimeError):
    """A constructor is already registered under this task name."""


@runtime_checkable
class TaskRunner(Protocol):
    """A task that can be run for one wallet."""

    async def run(self, signer, client, params) -> None:
        """Execute the task; raise on failure."""


_constructors = {}
_lock = threading.Lock()


def must_register_constructor(name, constructor):
    """Register a constructor; registering the same name twice is an error."""
    if not callable(constructor):
        raise TypeError(f"task constructor for '{name}' is not callable")
    with _lock:
        if name in _constructors:
            raise TaskAlreadyRegisteredError(f"task constructor already registered: {name}")
        _constructors[name] = constructor


def new_task(name, log):
    """Create a runner for the named task."""
    with _lock:
        constructor = _constructors.get(name)
    if constructor is None:
        raise TaskConstructorNotFoundError(
            f"unknown task name: {name}: task constructor not found in registry"
        )
    return constructor(log)


def list_tasks():
    """Return the registered task names in registration order."""
    with _lock:
        return list(_constructors)