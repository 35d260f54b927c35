"""Processing of one wallet: task selection, preparation, execution and logging."""

import asyncio
from datetime import datetime, timedelta

from retro.evm_client import EVMClient
from retro.executor import Executor
from retro.selector import NoValidTasksSelectedError, Selector
from retro.signer import Signer
from retro.storage import TransactionRecord
from retro.tasks import registry
from retro.types import TxStatus
from retro.utils import random_duration

_LOG_TIMEOUT = 10.0
_ANY_NETWORK = "any"


def _error_text(exc):
    if isinstance(exc, asyncio.CancelledError):
        return "context canceled"
    return str(exc) or type(exc).__name__


class Processor:
    """Selects and runs the tasks of a single wallet."""

    def __init__(self, cfg, key, original_index, current_num, total_num, tx_logger, log):
        self._cfg = cfg
        self._signer = Signer(key.private_key)
        self._wallet_index = original_index
        self._progress = f"{current_num}/{total_num}"
        self._selector = Selector(cfg, log)
        self._executor = Executor(cfg, log)
        self._tx_logger = tx_logger
        self._log = log

    async def process(self):
        """Run the selected tasks; raise the first task error or on cancellation."""
        address = self._signer.address
        progress = self._progress
        self._log.info_with_blank_line(
            "-------------------- Начало обработки кошелька --------------------",
            wallet=progress,
            origIdx=self._wallet_index,
            addr=address,
        )

        try:
            selected = self._selector.select_tasks()
        except NoValidTasksSelectedError:
            self._log.warn(
                "Для кошелька не выбрано ни одной валидной задачи, пропускаем.",
                wallet=progress,
                addr=address,
            )
            return
        except Exception as exc:
            self._log.error(
                "Ошибка выбора задач для кошелька, обработка прервана.",
                err=exc,
                wallet=progress,
                addr=address,
            )
            exc.add_note("ошибка выбора задач")
            raise

        if not selected:
            self._log.warn(
                "Список выбранных задач пуст после фильтрации селектором, пропускаем кошелек.",
                wallet=progress,
                addr=address,
            )
            return
        self._log.info(
            "Задачи для выполнения",
            count=len(selected),
            order=self._cfg.actions.task_order,
            wallet=progress,
            addr=address,
        )

        try:
            await self._run_tasks(selected)
        except asyncio.CancelledError:
            self._log.warn(
                "Обработка кошелька прервана (контекст отменен во время выполнения задач).",
                wallet=progress,
                addr=address,
                error="context canceled",
            )
            self._log_end()
            raise
        except Exception as exc:
            self._log.error(
                "Обработка кошелька завершилась с ошибкой.",
                wallet=progress,
                addr=address,
                error=exc,
            )
            self._log_end()
            raise
        self._log.info("Обработка кошелька успешно завершена.", wallet=progress, addr=address)
        self._log_end()

    def _log_end(self):
        self._log.info_with_blank_line(
            "-------------------- Конец обработки кошелька --------------------",
            wallet=self._progress,
            addr=self._signer.address,
        )

    async def _run_tasks(self, selected):
        address = self._signer.address
        progress = self._progress
        total = len(selected)
        first_error = None

        for number, task in enumerate(selected, start=1):
            task_progress = f"{number}/{total}"
            self._log.info_with_blank_line(
                "------ Начало задачи ------",
                taskNum=task_progress,
                task=task.name,
                net=task.network,
                wallet=progress,
                addr=address,
            )

            try:
                runner, client = await self._prepare_task(task)
            except Exception as exc:
                if first_error is None:
                    first_error = exc
                self._log.warn(
                    "Задача пропущена из-за ошибки подготовки.",
                    taskNum=task_progress,
                    task=task.name,
                    err=exc,
                    wallet=progress,
                    addr=address,
                )
                self._log.info_with_blank_line(
                    "------ Конец задачи (пропущена) ------",
                    taskNum=task_progress,
                    task=task.name,
                    wallet=progress,
                    addr=address,
                )
                continue

            try:
                await self._execute_and_log(task, runner, client)
            except asyncio.CancelledError:
                self._log.error(
                    "Ошибка выполнения задачи",
                    task=task.name,
                    taskNum=task_progress,
                    err="context canceled",
                    wallet=progress,
                    addr=address,
                )
                raise
            except Exception as exc:
                self._log.error(
                    "Ошибка выполнения задачи",
                    task=task.name,
                    taskNum=task_progress,
                    err=exc,
                    wallet=progress,
                    addr=address,
                )
                if first_error is None:
                    first_error = exc
            else:
                self._log.success(
                    "Задача успешно выполнена",
                    task=task.name,
                    taskNum=task_progress,
                    wallet=progress,
                    addr=address,
                )

            self._log.info_with_blank_line(
                "------ Конец задачи ------",
                taskNum=task_progress,
                task=task.name,
                wallet=progress,
                addr=address,
            )

            if number < total:
                await self._inter_task_delay()

        if first_error is not None:
            raise first_error

    async def _get_client(self, network):
        if network == _ANY_NETWORK:
            self._log.debug("Пропуск создания EVM клиента для сети 'any'")
            return None
        urls = self._cfg.rpc_nodes.get(network)
        if not urls:
            raise LookupError(f"не найдены RPC URL для сети {network}")
        self._log.debug("Создание EVM клиента", net=network)
        try:
            return await EVMClient.connect(self._log, urls)
        except Exception as exc:
            exc.add_note(f"ошибка создания EVM клиента для сети {network}")
            raise

    async def _prepare_task(self, task):
        address = self._signer.address
        progress = self._progress
        try:
            runner = registry.new_task(task.name, self._log)
        except registry.TaskConstructorNotFoundError:
            self._log.error(
                "Конструктор задачи не найден в реестре, пропуск",
                task=task.name,
                wallet=progress,
                addr=address,
            )
            raise
        except Exception as exc:
            self._log.error(
                "Не удалось создать runner задачи, пропуск",
                task=task.name,
                err=exc,
                wallet=progress,
                addr=address,
            )
            raise

        try:
            client = await self._get_client(task.network)
        except asyncio.CancelledError:
            self._log.warn(
                "Создание EVM клиента прервано (контекст)",
                task=task.name,
                err="context canceled",
                wallet=progress,
                addr=address,
            )
            raise
        except Exception as exc:
            self._log.error(
                "Не удалось получить EVM клиент, пропуск задачи",
                task=task.name,
                net=task.network,
                err=exc,
                wallet=progress,
                addr=address,
            )
            raise
        return runner, client

    async def _execute_and_log(self, task, runner, client):
        error = None
        try:
            await self._executor.execute_task_with_retries(self._signer, client, task, runner)
        except (Exception, asyncio.CancelledError) as exc:
            error = exc
        finally:
            if client is not None:
                await client.close()
                self._log.debug(
                    "EVM клиент закрыт", task=task.name, net=task.network, wallet=self._progress
                )

        record = TransactionRecord(
            timestamp=datetime.now().replace(microsecond=0),
            wallet_address=self._signer.address,
            task_name=task.name,
            network=task.network,
            status=TxStatus.SUCCESS if error is None else TxStatus.FAILED,
            error="" if error is None else _error_text(error),
        )
        try:
            await asyncio.wait_for(self._tx_logger.log_transaction(record), _LOG_TIMEOUT)
        except Exception as exc:
            self._log.error(
                "Не удалось записать лог транзакции в БД",
                task=task.name,
                err=exc,
                wallet=self._progress,
                addr=self._signer.address,
            )

        if error is not None:
            raise error

    async def _inter_task_delay(self):
        address = self._signer.address
        progress = self._progress
        try:
            duration = random_duration(self._cfg.delay.between_actions)
        except ValueError as exc:
            self._log.error(
                "Ошибка получения времени задержки между задачами",
                err=exc,
                wallet=progress,
                addr=address,
            )
            return
        if duration <= timedelta(0):
            return
        self._log.info(
            "Пауза перед следующей задачей", duration=duration, wallet=progress, addr=address
        )
        try:
            await asyncio.sleep(duration.total_seconds())
        except asyncio.CancelledError:
            self._log.warn(
                "Задержка между задачами прервана (контекст отменен)",
                wallet=progress,
                addr=address,
            )
            raise