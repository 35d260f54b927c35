"""Placeholder task that only waits a moment."""

import asyncio

from retro.utils import random_int_in_range


class DummyTask:
    """Sleeps for a random number of seconds and reports success."""

    delay_range = (1, 3)

    def __init__(self, log):
        self._log = log

    async def run(self, signer, client, params):
        address = signer.address
        self._log.info("Начало выполнения задачи-заглушки (DummyTask)", wallet=address)
        delay = random_int_in_range(*self.delay_range)
        self._log.debug("DummyTask: имитация работы...", delay=f"{delay}s", wallet=address)
        await asyncio.sleep(delay)
        self._log.success("Задача-заглушка (DummyTask) успешно завершена", wallet=address)


def new_task(log):
    """Create a DummyTask."""
    return DummyTask(log)