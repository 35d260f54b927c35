"""Top-level processing of all wallets, sequentially or in parallel."""

import asyncio
import random
from dataclasses import dataclass
from datetime import timedelta

from retro.processor import Processor
from retro.storage import StateNotFoundError
from retro.types import WalletProcessOrder
from retro.utils import random_duration

STATE_KEY = "last_completed_wallet_index"
_STATE_TIMEOUT = 10.0


@dataclass(frozen=True)
class _Result:
    original_index: int
    error: BaseException | None


def _is_interruption(exc):
    return isinstance(exc, (asyncio.CancelledError, TimeoutError))


class Application:
    """Processes every loaded wallet according to the configuration."""

    def __init__(
        self, cfg, wallets, tx_logger, state_storage, log, processor_factory=Processor
    ):
        self._cfg = cfg
        self._wallets = list(wallets)
        self._tx_logger = tx_logger
        self._state = state_storage
        self._log = log
        self._processor_factory = processor_factory
        self._index_by_address = {}
        for index, key in enumerate(self._wallets):
            self._index_by_address.setdefault(key.address, index)

    async def run(self):
        """Select the wallets for this session and process them."""
        keys = await self._prepare_wallets_to_process()
        if not keys:
            self._log.info("Нет ключей для обработки в этом сеансе.")
            return
        await self._run_processing(keys)
        self._log.info("Завершение основного потока Application.Run.")

    # --- preparation -------------------------------------------------------

    async def _prepare_wallets_to_process(self):
        wallets = list(self._wallets)
        last_completed = -1
        shuffle = self._cfg.wallets.process_order == WalletProcessOrder.RANDOM

        if self._cfg.state.resume_enabled:
            self._log.info("Проверка состояния для возобновления...")
            try:
                value = await self._state.get_state(STATE_KEY)
            except StateNotFoundError:
                self._log.info("Сохраненное состояние не найдено, начинаем с начала.")
            except Exception as exc:
                self._log.error(
                    "Ошибка чтения состояния из хранилища, начинаем с начала.", error=exc
                )
            else:
                try:
                    last_completed = int(value)
                except (TypeError, ValueError) as exc:
                    self._log.error(
                        "Ошибка конвертации сохраненного индекса, начинаем с начала.",
                        value=value,
                        error=exc,
                    )
                else:
                    self._log.info(
                        "Обнаружено сохраненное состояние.",
                        last_completed_wallet_index=last_completed,
                    )

            if last_completed >= 0:
                start = last_completed + 1
                if start < len(wallets):
                    wallets = wallets[start:]
                    self._log.info(
                        "Возобновление работы.",
                        start_index=start,
                        wallets_to_process=len(wallets),
                        wallets_skipped=start,
                    )
                else:
                    wallets = []
                    self._log.info("Все кошельки уже были обработаны в предыдущем сеансе.")
                if shuffle:
                    self._log.warn(
                        "Возобновление состояния включено, process_order: random будет "
                        "проигнорирован. Обработка продолжится последовательно."
                    )
                    shuffle = False
        else:
            self._log.info("Возобновление состояния отключено.")

        if shuffle and len(wallets) > 1:
            self._log.info("Перемешивание порядка кошельков...", count=len(wallets))
            random.shuffle(wallets)
        return wallets

    # --- dispatch ----------------------------------------------------------

    async def _run_processing(self, keys):
        requested = self._cfg.concurrency.max_parallel_wallets
        workers = requested
        if workers <= 0:
            self._log.warn(
                "MaxParallelWallets <= 0, используется последовательный режим (1 воркер).",
                configured_value=requested,
            )
            await self._run_sequentially(keys)
            return
        if workers == 1:
            self._log.info("MaxParallelWallets = 1, используется последовательный режим.")
            await self._run_sequentially(keys)
            return
        if workers > len(keys):
            workers = len(keys)
            self._log.info(
                "Запрошено больше воркеров, чем ключей, используется количество ключей.",
                requested=requested,
                using=workers,
            )
        self._log.info(
            "Начало обработки ключей в параллельном режиме", count=len(keys), workers=workers
        )
        await self._run_parallel(keys, workers)

    def _find_original_index(self, address):
        try:
            return self._index_by_address[address]
        except KeyError:
            raise LookupError(f"оригинальный индекс для адреса {address} не найден") from None

    def _new_processor(self, key, original_index, current_num, total_num):
        return self._processor_factory(
            self._cfg, key, original_index, current_num, total_num, self._tx_logger, self._log
        )

    async def _load_last_completed(self, bad_value_message, load_error_message):
        if not self._cfg.state.resume_enabled:
            return -1
        try:
            value = await asyncio.wait_for(self._state.get_state(STATE_KEY), _STATE_TIMEOUT)
        except StateNotFoundError:
            return -1
        except Exception as exc:
            self._log.error(load_error_message, error=exc)
            return -1
        if not value:
            return -1
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            self._log.warn(bad_value_message, value=value, error=exc)
            return -1

    async def _save_state(self, index, failure_message):
        try:
            await asyncio.wait_for(self._state.set_state(STATE_KEY, str(index)), _STATE_TIMEOUT)
        except Exception as exc:
            self._log.error(failure_message, originalIndex=index, error=exc)
            return False
        return True

    async def _pause_between_accounts(self, range_error, pausing, interrupted, **fields):
        try:
            duration = random_duration(self._cfg.delay.between_accounts)
        except ValueError as exc:
            self._log.error(range_error, err=exc, **fields)
            return
        if duration <= timedelta(0):
            return
        self._log.info(pausing, duration=duration, **fields)
        try:
            await asyncio.sleep(duration.total_seconds())
        except asyncio.CancelledError:
            self._log.warn(interrupted, **fields)
            raise

    # --- sequential mode ---------------------------------------------------

    async def _process_single_sequentially(self, key, original_index, current_num, total_num):
        self._log.debug(
            "Начало обработки одного кошелька (последовательно)",
            origIdx=original_index,
            num=f"{current_num}/{total_num}",
            addr=key.address,
        )
        processor = self._new_processor(key, original_index, current_num, total_num)
        try:
            await processor.process()
        except asyncio.CancelledError:
            self._log.warn(
                "Обработка кошелька прервана контекстом (последовательно).",
                originalIndex=original_index,
                error="context canceled",
            )
            raise
        except Exception as exc:
            if _is_interruption(exc):
                self._log.warn(
                    "Обработка кошелька прервана контекстом (последовательно).",
                    originalIndex=original_index,
                    error=exc,
                )
            else:
                self._log.error(
                    "Ошибка обработки кошелька (последовательно).",
                    originalIndex=original_index,
                    error=exc,
                )
            raise

        if self._cfg.state.resume_enabled:
            self._log.debug(
                "Кошелек успешно обработан (последовательно), попытка сохранения состояния.",
                originalIndex=original_index,
            )
            await self._save_state(original_index, "Ошибка сохранения состояния (последовательно)")

    async def _run_sequentially(self, keys):
        total = len(keys)
        self._log.info("Запуск последовательной обработки кошельков", count=total)

        last_completed = await self._load_last_completed(
            "Не удалось конвертировать загруженное состояние в число (последовательно).",
            "Ошибка загрузки состояния (последовательно).",
        )
        if last_completed >= 0:
            self._log.info(
                "Возобновление последовательной обработки.", startFromIndex=last_completed + 1
            )

        for number, key in enumerate(keys, start=1):
            try:
                original_index = self._find_original_index(key.address)
            except LookupError as exc:
                self._log.error(
                    "Не удалось найти оригинальный индекс для ключа, пропускаем.",
                    address=key.address,
                    error=exc,
                )
                continue

            if self._cfg.state.resume_enabled and original_index <= last_completed:
                self._log.debug(
                    "Пропуск уже обработанного кошелька (последовательно).",
                    originalIndex=original_index,
                    lastCompletedIndex=last_completed,
                )
                continue

            try:
                await self._process_single_sequentially(key, original_index, number, total)
            except Exception:
                self._log.warn(
                    "Прерываем последовательную обработку из-за ошибки/отмены в кошельке.",
                    walletIndex=original_index,
                )
                return

            if number < total:
                await self._pause_between_accounts(
                    "Ошибка получения времени задержки между кошельками (последовательно)",
                    "Пауза перед следующим кошельком (последовательно)",
                    "Задержка между кошельками прервана (контекст отменен, последовательно)",
                )
        self._log.info("Последовательная обработка всех кошельков завершена.")

    # --- parallel mode -----------------------------------------------------

    async def _worker(self, key, original_index, current_num, total_num, results, slots):
        error = None
        completed = False
        try:
            self._log.debug(
                "Воркер начинает обработку кошелька.", wIdx=original_index, addr=key.address
            )
            processor = self._new_processor(key, original_index, current_num, total_num)
            await processor.process()
            completed = True
            await self._pause_between_accounts(
                "Ошибка получения времени задержки между аккаунтами (в воркере)",
                "Пауза воркера после обработки аккаунта",
                "Пауза воркера прервана (контекст отменен)",
                wIdx=original_index,
            )
        except asyncio.CancelledError as exc:
            if not completed:
                error = exc
            raise
        except Exception as exc:
            error = exc
            self._log.debug(
                "Воркер завершил обработку кошелька с ошибкой.", wIdx=original_index, err=exc
            )
        finally:
            results.put_nowait(_Result(original_index, error))
            slots.release()
            self._log.debug("Слот воркера освобожден.", wIdx=original_index)

    async def _handle_parallel_results(self, results, total):
        processed = 0
        highest = await self._load_last_completed(
            "Не удалось конвертировать загруженное состояние в число.",
            "Ошибка загрузки состояния.",
        )
        if highest >= 0:
            self._log.debug("Загружено предыдущее состояние.", lastCompletedIndex=highest)

        while processed < total:
            result = await results.get()
            if result is None:
                self._log.info("Канал результатов закрыт. Завершение обработки результатов.")
                return
            processed += 1

            if result.error is None:
                self._log.debug(
                    "Кошелек успешно обработан (получен результат).",
                    originalIndex=result.original_index,
                )
                if result.original_index > highest:
                    self._log.debug(
                        "Новый максимальный успешно обработанный индекс.",
                        newHighestIndex=result.original_index,
                        previousHighest=highest,
                    )
                    highest = result.original_index
                    if self._cfg.state.resume_enabled:
                        saved = await self._save_state(
                            highest, "Ошибка асинхронного сохранения состояния (new highest)"
                        )
                        if saved:
                            self._log.debug(
                                "Состояние сохранено в БД (новый максимальный индекс).",
                                key=STATE_KEY,
                                value=highest,
                            )
            elif _is_interruption(result.error):
                self._log.warn(
                    "Обработка кошелька была прервана контекстом (получен результат).",
                    originalIndex=result.original_index,
                    error=result.error or "context canceled",
                )
            else:
                self._log.error(
                    "Обработка кошелька завершилась с ошибкой (получен результат).",
                    originalIndex=result.original_index,
                    error=result.error,
                )
        self._log.info(
            "Все ожидаемые результаты обработки кошельков получены.", processedCount=processed
        )

    async def _run_parallel(self, keys, num_workers):
        total = len(keys)
        self._log.info("Запуск параллельной обработки кошельков", count=total, workers=num_workers)

        slots = asyncio.Semaphore(num_workers)
        results = asyncio.Queue()
        handler = asyncio.create_task(self._handle_parallel_results(results, total))
        workers = []
        last_index = None
        try:
            for number, key in enumerate(keys, start=1):
                try:
                    original_index = self._find_original_index(key.address)
                except LookupError as exc:
                    self._log.error(
                        "Не удалось найти оригинальный индекс для ключа в runParallel, "
                        "пропускаем.",
                        address=key.address,
                        error=exc,
                    )
                    continue
                last_index = original_index
                self._log.debug("Ожидание свободного слота воркера...", wIdx=original_index)
                await slots.acquire()
                self._log.debug("Слот воркера получен, запуск горутины.", wIdx=original_index)
                workers.append(
                    asyncio.create_task(
                        self._worker(key, original_index, number, total, results, slots)
                    )
                )
            self._log.info(
                "Цикл запуска воркеров завершен. Ожидание завершения всех активных воркеров "
                "и обработки результатов..."
            )
            await asyncio.gather(*workers, return_exceptions=True)
            results.put_nowait(None)
            await handler
        except asyncio.CancelledError:
            self._log.warn(
                "Параллельная обработка прервана (контекст отменен).",
                lastAttemptedOriginalIndex=last_index,
            )
            for task in (*workers, handler):
                task.cancel()
            await asyncio.gather(*workers, handler, return_exceptions=True)
            raise