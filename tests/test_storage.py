from datetime import datetime

import pytest

from retro.storage import NoOpStore, StateNotFoundError, TransactionRecord
from retro.types import TaskName, TxStatus


def make_record():
    return TransactionRecord(
        timestamp=datetime(2024, 1, 2, 3, 4, 5),
        wallet_address="0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf",
        task_name=TaskName.DUMMY,
        network="any",
        status=TxStatus.SUCCESS,
    )


def test_record_optional_fields_default_to_empty():
    record = make_record()
    assert (record.tx_hash, record.error) == ("", "")


@pytest.mark.asyncio
async def test_noop_get_state_misses():
    store = NoOpStore()
    with pytest.raises(StateNotFoundError):
        await store.get_state("last_completed_wallet_index")


@pytest.mark.asyncio
async def test_noop_set_state_is_not_remembered():
    store = NoOpStore()
    await store.set_state("last_completed_wallet_index", "3")
    with pytest.raises(StateNotFoundError) as info:
        await store.get_state("last_completed_wallet_index")
    assert info.value.key == "last_completed_wallet_index"


@pytest.mark.asyncio
async def test_noop_log_transaction_and_close_return_none():
    store = NoOpStore()
    assert await store.log_transaction(make_record()) is None
    assert await store.close() is None


@pytest.mark.asyncio
async def test_state_not_found_is_lookup_error():
    with pytest.raises(LookupError) as info:
        await NoOpStore().get_state("k")
    assert info.value.key == "k"