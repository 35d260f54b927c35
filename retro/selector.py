"""Choice of the tasks to run for one wallet."""

import random

from retro.types import TaskOrder
from retro.utils import random_int_in_range


class NoValidTasksSelectedError(LookupError):
    """No enabled task could be selected."""

    def __init__(self):
        super().__init__("selector: no valid and active tasks selected")


class Selector:
    """Selects tasks from the configuration, explicitly or at random."""

    def __init__(self, cfg, log):
        self._cfg = cfg
        self._log = log

    def select_tasks(self):
        """Return the task entries to run, in execution order."""
        if self._cfg.actions.explicit_task_sequence:
            return self._select_explicit()
        return self._select_random()

    def _select_explicit(self):
        self._log.debug("Используется режим явной последовательности задач")
        enabled = {task.name: task for task in self._cfg.tasks if task.enabled}
        selected = []
        for name in self._cfg.actions.explicit_task_sequence:
            task = enabled.get(name)
            if task is None:
                self._log.warn(
                    "Задача из явной последовательности не найдена/отключена", task=name
                )
                continue
            selected.append(task)
        if not selected:
            raise NoValidTasksSelectedError()
        self._log.info("Выбраны задачи из явной последовательности", count=len(selected))
        return selected

    def _select_random(self):
        self._log.debug("Используется режим случайного выбора задач")
        available = [task for task in self._cfg.tasks if task.enabled]
        if not available:
            raise NoValidTasksSelectedError()

        requested = self._cfg.actions.actions_per_account
        low, high = requested.min, requested.max
        if low < 0:
            self._log.warn("Запрошенное min значение меньше 0, используется 0.", requested_min=low)
            low = 0
        if high < 0:
            self._log.warn("Запрошенное max значение меньше 0, используется 0.", requested_max=high)
            high = 0
        if low > high:
            self._log.warn(
                "Запрошенное min значение больше max, используется min как max.",
                requested_min=low,
                requested_max=high,
            )
            high = low

        count = random_int_in_range(low, high) if (low > 0 or high > 0) else 0
        self._log.info(
            "Выбор количества задач",
            requested_min=requested.min,
            requested_max=requested.max,
            tasks_to_select=count,
        )
        if count == 0:
            return []

        selected = [random.choice(available) for _ in range(count)]

        if self._cfg.actions.task_order == TaskOrder.SEQUENTIAL:
            self._log.debug("Сортировка выбранных задач по порядку из конфига")
            position = {task.name: index for index, task in enumerate(self._cfg.tasks)}
            selected.sort(key=lambda task: position.get(task.name, 0))
        else:
            self._log.debug(
                "Порядок выполнения задач - случайный (выбраны случайно с повторениями)"
            )
        return selected