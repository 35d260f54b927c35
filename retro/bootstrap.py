"""Registration of the built-in tasks enabled in the configuration."""

from retro.tasks import dummy, registry
from retro.tasks.log_balance import new_log_balance_task
from retro.types import TaskName

ALL_TASKS = {
    TaskName.LOG_BALANCE: new_log_balance_task,
    TaskName.DUMMY: dummy.new_task,
}


def register_tasks_from_config(cfg, log):
    """Register the constructor of every enabled, known task; return how many were registered."""
    log.info("Регистрация задач из конфигурации в центральном реестре...")
    registered = 0
    for task in cfg.tasks:
        if not task.enabled:
            continue
        constructor = ALL_TASKS.get(task.name)
        if constructor is None:
            log.warn(
                "Задача из config.yml включена, но не найдена среди известных "
                "конструкторов в bootstrap",
                task=task.name,
            )
            continue
        log.debug("Регистрация конструктора в центральном реестре", task=task.name)
        registry.must_register_constructor(task.name, constructor)
        registered += 1
    log.info(
        "Задачи, зарегистрированные и доступные для выполнения",
        count=registered,
        tasks=registry.list_tasks(),
    )
    return registered