"""JSON-RPC client for EVM compatible nodes."""

import asyncio
import random
from dataclasses import dataclass, field
from typing import Any

import httpx

_CHAIN_ID_TIMEOUT = 5.0
_REQUEST_TIMEOUT = 30.0


class NoRpcUrlsError(ValueError):
    """No RPC URL was given to connect to."""


class EvmClientCreationError(ConnectionError):
    """The EVM node could not be reached or did not answer with a chain id."""


class RpcError(Exception):
    """The node answered a JSON-RPC request with an error or a malformed body."""

    def __init__(self, message, code=None):
        super().__init__(message if code is None else f"{message} (code {code})")
        self.message = message
        self.code = code


def _hex_quantity(value):
    return hex(value)


def _parse_quantity(value):
    if not isinstance(value, str) or not value.startswith(("0x", "0X")):
        raise RpcError(f"invalid hex quantity in response: {value!r}")
    try:
        return int(value, 16)
    except ValueError as exc:
        raise RpcError(f"invalid hex quantity in response: {value!r}") from exc


def _parse_data(value):
    if not isinstance(value, str) or not value.startswith(("0x", "0X")):
        raise RpcError(f"invalid hex data in response: {value!r}")
    try:
        return bytes.fromhex(value[2:])
    except ValueError as exc:
        raise RpcError(f"invalid hex data in response: {value!r}") from exc


def _hash_text(tx_hash):
    if isinstance(tx_hash, (bytes, bytearray)):
        return "0x" + bytes(tx_hash).hex()
    return str(tx_hash)


@dataclass(frozen=True)
class CallMsg:
    """Arguments of a contract call or gas estimation."""

    from_address: str | None = None
    to: str | None = None
    gas: int = 0
    gas_price: int | None = None
    gas_fee_cap: int | None = None
    gas_tip_cap: int | None = None
    value: int = 0
    data: bytes = b""

    def to_rpc(self):
        """Return the call object as sent in eth_call and eth_estimateGas."""
        arg = {}
        if self.from_address:
            arg["from"] = self.from_address
        if self.to:
            arg["to"] = self.to
        if self.data:
            arg["input"] = "0x" + bytes(self.data).hex()
        if self.value:
            arg["value"] = _hex_quantity(self.value)
        if self.gas:
            arg["gas"] = _hex_quantity(self.gas)
        if self.gas_price is not None:
            arg["gasPrice"] = _hex_quantity(self.gas_price)
        if self.gas_fee_cap is not None:
            arg["maxFeePerGas"] = _hex_quantity(self.gas_fee_cap)
        if self.gas_tip_cap is not None:
            arg["maxPriorityFeePerGas"] = _hex_quantity(self.gas_tip_cap)
        return arg


@dataclass(frozen=True)
class Receipt:
    """The parts of a transaction receipt the application reads."""

    transaction_hash: str
    status: int
    block_number: int
    gas_used: int
    contract_address: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_rpc(cls, data):
        if not isinstance(data, dict):
            raise RpcError(f"malformed receipt: {data!r}")
        return cls(
            transaction_hash=str(data.get("transactionHash", "")),
            status=_parse_quantity(data.get("status", "0x0")),
            block_number=_parse_quantity(data.get("blockNumber", "0x0")),
            gas_used=_parse_quantity(data.get("gasUsed", "0x0")),
            contract_address=data.get("contractAddress"),
            raw=data,
        )


class EVMClient:
    """Talks to one EVM node over HTTP JSON-RPC."""

    receipt_poll_interval = 5.0

    def __init__(self, http, url, chain_id, log):
        self._http = http
        self._url = url
        self._chain_id = chain_id
        self._log = log
        self._request_id = 0

    @property
    def chain_id(self):
        return self._chain_id

    @property
    def url(self):
        return self._url

    @classmethod
    async def connect(cls, log, rpc_urls):
        """Connect to a randomly chosen URL and read its chain id."""
        urls = list(rpc_urls or ())
        if not urls:
            raise NoRpcUrlsError("no RPC URLs provided")

        url = random.choice(urls)
        log.debug("Подключение к EVM ноде...", url=url)
        http = httpx.AsyncClient(timeout=_REQUEST_TIMEOUT)
        client = cls(http, url, None, log)
        log.debug("Успешное подключение к EVM ноде", url=url)

        try:
            chain_id = await asyncio.wait_for(
                client._quantity("eth_chainId"), _CHAIN_ID_TIMEOUT
            )
        except (httpx.HTTPError, RpcError, ValueError, TimeoutError) as exc:
            log.warn("Подключено, но не удалось получить ChainID", url=url, error=exc)
            await http.aclose()
            raise EvmClientCreationError(
                f"failed to connect to any provided EVM node: {exc}"
            ) from exc

        client._chain_id = chain_id
        log.success("Подключено к EVM узлу", url=url, chain_id=chain_id)
        return client

    async def _call(self, method, *params):
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": list(params),
        }
        response = await self._http.post(self._url, json=payload)
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise RpcError("malformed JSON-RPC response")
        error = body.get("error")
        if error is not None:
            if isinstance(error, dict):
                raise RpcError(str(error.get("message", "")), error.get("code"))
            raise RpcError(str(error))
        if "result" not in body:
            raise RpcError("JSON-RPC response carries no result")
        return body["result"]

    async def _quantity(self, method, *params):
        return _parse_quantity(await self._call(method, *params))

    async def close(self):
        """Close the underlying HTTP connection."""
        self._log.debug("Закрытие соединения с EVM нодой...")
        await self._http.aclose()

    async def get_balance(self, address):
        """Return the native balance of an address in wei."""
        self._log.debug("Запрос баланса...", address=address)
        try:
            return await self._quantity("eth_getBalance", address, "latest")
        except (httpx.HTTPError, RpcError) as exc:
            exc.add_note(f"ошибка получения баланса для {address}")
            raise

    async def get_nonce(self, address):
        """Return the next nonce of an account, counting pending transactions."""
        return await self._quantity("eth_getTransactionCount", address, "pending")

    async def suggest_gas_price(self):
        """Return a gas price for legacy transactions."""
        return await self._quantity("eth_gasPrice")

    async def suggest_gas_tip_cap(self):
        """Return a priority fee for EIP-1559 transactions."""
        return await self._quantity("eth_maxPriorityFeePerGas")

    async def estimate_gas_limit(self, msg):
        """Return the gas a call is estimated to need."""
        return await self._quantity("eth_estimateGas", msg.to_rpc())

    async def send_raw_transaction(self, tx):
        """Send a signed transaction and return the hash reported by the node."""
        tx_hash = "0x" + tx.hash().hex()
        self._log.debug("Отправка подписанной транзакции", tx_hash=tx_hash)
        try:
            result = await self._call("eth_sendRawTransaction", "0x" + tx.encode().hex())
        except (httpx.HTTPError, RpcError) as exc:
            self._log.error("Не удалось отправить транзакцию", tx_hash=tx_hash, error=exc)
            exc.add_note("sending transaction failed")
            raise
        self._log.info("Транзакция успешно отправлена", tx_hash=tx_hash)
        return result if isinstance(result, str) else tx_hash

    async def wait_for_receipt(self, tx_hash):
        """Poll until the node returns a receipt for the transaction."""
        tx_hash = _hash_text(tx_hash)
        self._log.debug("Ожидание квитанции транзакции", tx_hash=tx_hash)
        while True:
            try:
                result = await self._call("eth_getTransactionReceipt", tx_hash)
            except (httpx.HTTPError, RpcError) as exc:
                self._log.warn(
                    "Ошибка при проверке квитанции транзакции", tx_hash=tx_hash, error=exc
                )
                exc.add_note("error fetching receipt")
                raise
            if result is not None:
                receipt = Receipt.from_rpc(result)
                self._log.info(
                    "Квитанция транзакции получена", tx_hash=tx_hash, status=receipt.status
                )
                return receipt
            try:
                await asyncio.sleep(self.receipt_poll_interval)
            except asyncio.CancelledError:
                self._log.warn(
                    "Контекст отменен во время ожидания квитанции", tx_hash=tx_hash
                )
                raise

    async def simulate_call(self, msg):
        """Run a read-only contract call against the latest block."""
        to_addr = msg.to or "nil"
        from_addr = msg.from_address or "nil"
        self._log.debug(
            "Симуляция вызова контракта (eth_call)...",
            to=to_addr,
            **{"from": from_addr},
            data_len=len(msg.data),
        )
        try:
            result = _parse_data(await self._call("eth_call", msg.to_rpc(), "latest"))
        except (httpx.HTTPError, RpcError) as exc:
            self._log.error("Ошибка симуляции вызова контракта", to=to_addr, error=exc)
            exc.add_note("ошибка eth_call")
            raise
        self._log.debug(
            "Симуляция вызова контракта успешно завершена", result_len=len(result)
        )
        return result