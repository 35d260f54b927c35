"""Task that logs the native balance of the wallet."""

import asyncio

from retro.utils import from_wei

_CALL_TIMEOUT = 30.0


class LogBalanceTask:
    """Reads the wallet balance and logs it in Ether."""

    def __init__(self, log):
        self._log = log

    async def run(self, signer, client, params):
        address = signer.address
        self._log.info("Запуск задачи: log_balance", wallet=address)
        if client is None:
            raise ValueError("log_balance needs an EVM client; network 'any' has none")

        try:
            balance_wei = await asyncio.wait_for(client.get_balance(address), _CALL_TIMEOUT)
        except Exception as exc:
            self._log.error("Не удалось получить баланс", wallet=address, error=exc)
            exc.add_note("ошибка получения баланса")
            raise

        self._log.success("Баланс получен", wallet=address, balance_eth=from_wei(balance_wei))


def new_log_balance_task(log):
    """Create a LogBalanceTask."""
    return LogBalanceTask(log)