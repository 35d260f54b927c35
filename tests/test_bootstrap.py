import io

import pytest

from retro.bootstrap import register_tasks_from_config
from retro.config import Config, TaskConfigEntry
from retro.logger import ColorLogger
from retro.tasks import registry
from retro.tasks.dummy import DummyTask
from retro.tasks.log_balance import LogBalanceTask
from retro.types import TaskName


@pytest.fixture(autouse=True)
def empty_registry(monkeypatch):
    monkeypatch.setattr(registry, "_constructors", {})


def config_with(*tasks):
    return Config(tasks=list(tasks))


def test_registers_enabled_known_tasks():
    log = ColorLogger(io.StringIO())
    cfg = config_with(
        TaskConfigEntry(name="log_balance", network="eth", enabled=True),
        TaskConfigEntry(name="dummy_task", network="any", enabled=True),
    )
    assert register_tasks_from_config(cfg, log) == 2
    assert registry.list_tasks() == ["log_balance", "dummy_task"]
    assert isinstance(registry.new_task(TaskName.DUMMY, log), DummyTask)
    assert isinstance(registry.new_task(TaskName.LOG_BALANCE, log), LogBalanceTask)


def test_disabled_tasks_are_not_registered():
    cfg = config_with(
        TaskConfigEntry(name="log_balance", network="eth", enabled=False),
        TaskConfigEntry(name="dummy_task", network="any", enabled=True),
    )
    assert register_tasks_from_config(cfg, ColorLogger(io.StringIO())) == 1
    assert registry.list_tasks() == ["dummy_task"]


def test_unknown_task_is_warned_about():
    out = io.StringIO()
    cfg = config_with(TaskConfigEntry(name="swap", network="eth", enabled=True))
    assert register_tasks_from_config(cfg, ColorLogger(out)) == 0
    assert registry.list_tasks() == []
    assert "task=swap" in out.getvalue()


def test_duplicate_enabled_entry_raises():
    cfg = config_with(
        TaskConfigEntry(name="dummy_task", network="any", enabled=True),
        TaskConfigEntry(name="dummy_task", network="eth", enabled=True),
    )
    with pytest.raises(registry.TaskAlreadyRegisteredError):
        register_tasks_from_config(cfg, ColorLogger(io.StringIO()))