import io
import json

import httpx
import pytest
import respx

from retro.evm_client import (
    CallMsg,
    EVMClient,
    EvmClientCreationError,
    NoRpcUrlsError,
    RpcError,
)
from retro.logger import ColorLogger
from retro.signer import DynamicFeeTransaction, Signer

URL = "http://rpc.example.com/"
ADDRESS = "0x" + "ab" * 20


def make_log():
    return ColorLogger(io.StringIO())


def rpc_handler(results):
    calls = []

    def handler(request):
        body = json.loads(request.content)
        calls.append(body)
        outcome = results[body["method"]]
        if callable(outcome):
            outcome = outcome(body)
        if isinstance(outcome, dict) and "error" in outcome:
            return httpx.Response(
                200, json={"jsonrpc": "2.0", "id": body["id"], "error": outcome["error"]}
            )
        return httpx.Response(
            200, json={"jsonrpc": "2.0", "id": body["id"], "result": outcome}
        )

    handler.calls = calls
    return handler


async def connected(router, results, chain_id=5):
    handler = rpc_handler({"eth_chainId": hex(chain_id), **results})
    router.post(URL).mock(side_effect=handler)
    client = await EVMClient.connect(make_log(), [URL])
    return client, handler


@pytest.mark.asyncio
async def test_connect_without_urls_raises():
    with pytest.raises(NoRpcUrlsError):
        await EVMClient.connect(make_log(), [])


@pytest.mark.asyncio
async def test_connect_reads_chain_id():
    with respx.mock() as router:
        client, handler = await connected(router, {}, chain_id=137)
        assert client.chain_id == 137
        assert client.url == URL
        assert handler.calls[0]["method"] == "eth_chainId"
        await client.close()


@pytest.mark.asyncio
async def test_connect_fails_on_rpc_error():
    with respx.mock() as router:
        handler = rpc_handler({"eth_chainId": {"error": {"code": -32000, "message": "down"}}})
        router.post(URL).mock(side_effect=handler)
        with pytest.raises(EvmClientCreationError):
            await EVMClient.connect(make_log(), [URL])


@pytest.mark.asyncio
async def test_connect_fails_on_http_error():
    with respx.mock() as router:
        router.post(URL).mock(return_value=httpx.Response(500))
        with pytest.raises(EvmClientCreationError):
            await EVMClient.connect(make_log(), [URL])


@pytest.mark.asyncio
async def test_get_balance_and_nonce():
    with respx.mock() as router:
        client, handler = await connected(
            router,
            {"eth_getBalance": hex(123456789), "eth_getTransactionCount": hex(7)},
        )
        assert await client.get_balance(ADDRESS) == 123456789
        assert await client.get_nonce(ADDRESS) == 7
        assert handler.calls[1]["params"] == [ADDRESS, "latest"]
        assert handler.calls[2]["params"] == [ADDRESS, "pending"]
        await client.close()


@pytest.mark.asyncio
async def test_rpc_error_carries_code():
    with respx.mock() as router:
        client, _ = await connected(
            router, {"eth_getBalance": {"error": {"code": -32602, "message": "bad address"}}}
        )
        with pytest.raises(RpcError) as info:
            await client.get_balance(ADDRESS)
        assert info.value.code == -32602
        assert info.value.message == "bad address"
        await client.close()


@pytest.mark.asyncio
async def test_gas_suggestions_and_estimate():
    with respx.mock() as router:
        client, handler = await connected(
            router,
            {
                "eth_gasPrice": hex(30),
                "eth_maxPriorityFeePerGas": hex(2),
                "eth_estimateGas": hex(21000),
            },
        )
        assert await client.suggest_gas_price() == 30
        assert await client.suggest_gas_tip_cap() == 2
        msg = CallMsg(from_address=ADDRESS, to=ADDRESS, value=5)
        assert await client.estimate_gas_limit(msg) == 21000
        assert handler.calls[-1]["params"] == [msg.to_rpc()]
        await client.close()


@pytest.mark.asyncio
async def test_send_raw_transaction_sends_encoded_envelope():
    signer = Signer(1)
    tx = signer.sign_tx(
        DynamicFeeTransaction(
            chain_id=5,
            nonce=0,
            max_priority_fee_per_gas=1,
            max_fee_per_gas=2,
            gas=21000,
            to="0x" + "11" * 20,
        ),
        5,
    )
    expected_hash = "0x" + tx.hash().hex()
    with respx.mock() as router:
        client, handler = await connected(router, {"eth_sendRawTransaction": expected_hash})
        assert await client.send_raw_transaction(tx) == expected_hash
        assert handler.calls[-1]["params"] == ["0x" + tx.encode().hex()]
        await client.close()


@pytest.mark.asyncio
async def test_wait_for_receipt_polls_until_found():
    tx_hash = "0x" + "cd" * 32
    answers = iter(
        [
            None,
            {
                "transactionHash": tx_hash,
                "status": hex(1),
                "blockNumber": hex(99),
                "gasUsed": hex(21000),
            },
        ]
    )
    with respx.mock() as router:
        client, handler = await connected(
            router, {"eth_getTransactionReceipt": lambda body: next(answers)}
        )
        client.receipt_poll_interval = 0
        receipt = await client.wait_for_receipt(bytes.fromhex("cd" * 32))
        assert receipt.status == 1
        assert receipt.block_number == 99
        assert receipt.transaction_hash == tx_hash
        polls = [c for c in handler.calls if c["method"] == "eth_getTransactionReceipt"]
        assert len(polls) == 2
        assert polls[0]["params"] == [tx_hash]
        await client.close()


@pytest.mark.asyncio
async def test_simulate_call_returns_bytes():
    payload = b"\x00\x01\xfe"
    with respx.mock() as router:
        client, handler = await connected(router, {"eth_call": "0x" + payload.hex()})
        msg = CallMsg(to=ADDRESS, data=b"\x12\x34")
        assert await client.simulate_call(msg) == payload
        assert handler.calls[-1]["params"] == [
            {"to": ADDRESS, "input": "0x1234"},
            "latest",
        ]
        await client.close()


def test_call_msg_to_rpc_encodes_quantities():
    msg = CallMsg(from_address=ADDRESS, gas=21000, gas_fee_cap=10, gas_tip_cap=1)
    assert msg.to_rpc() == {
        "from": ADDRESS,
        "gas": hex(21000),
        "maxFeePerGas": hex(10),
        "maxPriorityFeePerGas": hex(1),
    }


@pytest.mark.asyncio
async def test_requests_fail_after_close():
    with respx.mock() as router:
        client, _ = await connected(router, {"eth_getBalance": hex(1)})
        await client.close()
        with pytest.raises(RuntimeError):
            await client.get_balance(ADDRESS)