"""Execution of a single task with retries and delays."""

import asyncio

from retro.utils import random_duration


class Executor:
    """Runs one task for one wallet, retrying as the configuration allows."""

    def __init__(self, cfg, log):
        self._cfg = cfg
        self._log = log

    async def execute_task_with_retries(self, signer, client, task_entry, runner):
        """Run the task until it succeeds or the attempts run out; raise the last error."""
        retries = self._cfg.delay.between_retries
        max_attempts = max(retries.attempts, 1)
        wallet = signer.address
        last_error = None

        for attempt in range(1, max_attempts + 1):
            self._log.debug(
                "Попытка выполнения задачи", task=task_entry.name, attempt=attempt, wallet=wallet
            )
            try:
                await runner.run(signer, client, task_entry.params)
            except Exception as exc:
                last_error = exc
                self._log.warn(
                    "Ошибка выполнения задачи, попытка повтора",
                    task=task_entry.name,
                    attempt=attempt,
                    maxAttempts=max_attempts,
                    err=exc,
                    wallet=wallet,
                )
            else:
                self._log.success_with_blank_line(
                    "Задача успешно выполнена", task=task_entry.name, attempt=attempt, wallet=wallet
                )
                return

            if attempt < max_attempts:
                await self._pause(
                    retries.delay,
                    task_entry,
                    wallet,
                    range_error="Ошибка получения времени задержки между попытками",
                    pausing="Пауза перед следующей попыткой",
                    interrupted="Задержка между попытками прервана (контекст отменен)",
                )

        self._log.error_with_blank_line(
            "Задача не выполнена после всех попыток",
            task=task_entry.name,
            err=last_error,
            wallet=wallet,
        )
        after_error = self._cfg.delay.after_error
        if after_error.min > 0 or after_error.max > 0:
            await self._pause(
                after_error,
                task_entry,
                wallet,
                range_error="Ошибка получения времени задержки после ошибки",
                pausing="Пауза после ошибки задачи",
                interrupted="Задержка после ошибки прервана (контекст отменен)",
            )
        raise last_error

    async def _pause(self, delay_range, task_entry, wallet, *, range_error, pausing, interrupted):
        try:
            duration = random_duration(delay_range)
        except ValueError as exc:
            self._log.error(range_error, err=exc, wallet=wallet)
            return
        self._log.info(pausing, duration=duration, wallet=wallet)
        try:
            await asyncio.sleep(duration.total_seconds())
        except asyncio.CancelledError:
            self._log.warn(interrupted, task=task_entry.name, wallet=wallet)
            raise