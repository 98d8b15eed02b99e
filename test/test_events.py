import asyncio

import pytest

from bscswap.adapters.events import EventSubscriber
from bscswap.adapters.mock import MockChainClient, MockWebSocket, mock_connector
from bscswap.core.errors import ConfigurationError, ConnectivityError
from bscswap.core.models import LogEntry, SubscriptionFailed

PAIR = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
TOKEN = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


def raw_log(address, block=1, index=0):
    return {
        "address": address,
        "topics": ["0x" + "11" * 32],
        "data": "0x" + "00" * 32,
        "blockNumber": hex(block),
        "transactionHash": "0x" + "ab" * 32,
        "logIndex": hex(index),
        "removed": False,
    }


async def collect(subscriber):
    return [item async for item in subscriber.stream()]


@pytest.mark.asyncio
async def test_missing_websocket_is_a_configuration_error():
    subscriber = EventSubscriber.from_chain(MockChainClient(ws_url=None))
    with pytest.raises(ConfigurationError):
        await subscriber.subscribe([PAIR])


def test_unknown_overflow_policy():
    with pytest.raises(ConfigurationError):
        EventSubscriber("wss://mock.local", overflow="spill")


@pytest.mark.asyncio
async def test_logs_from_several_contracts_share_one_queue():
    pair_ws, token_ws = MockWebSocket(), MockWebSocket()
    pair_ws.push_log(raw_log(PAIR, block=10, index=2))
    token_ws.push_log(raw_log(TOKEN, block=11))
    pair_ws.finish()
    token_ws.finish()

    async with EventSubscriber("wss://mock.local", connect=mock_connector([pair_ws, token_ws])) as subscriber:
        await subscriber.subscribe([PAIR, TOKEN.lower()])
        items = await asyncio.wait_for(collect(subscriber), timeout=5)

    entries = [i for i in items if isinstance(i, LogEntry)]
    assert {e.address for e in entries} == {PAIR, TOKEN}
    pair_entry = next(e for e in entries if e.address == PAIR)
    assert (pair_entry.block_number, pair_entry.log_index) == (10, 2)
    assert pair_ws.sent[0]["method"] == "eth_subscribe"
    assert pair_ws.sent[0]["params"] == ["logs", {"address": PAIR}]
    assert token_ws.sent[0]["params"][1]["address"] == TOKEN
    assert pair_ws.closed and token_ws.closed


@pytest.mark.asyncio
async def test_stream_error_emits_a_single_sentinel():
    ws = MockWebSocket()
    ws.push_log(raw_log(PAIR))
    ws.fail(ConnectionResetError("peer went away"))
    ws.push_log(raw_log(PAIR, block=2))

    async with EventSubscriber("wss://mock.local", connect=mock_connector([ws])) as subscriber:
        await subscriber.subscribe([PAIR])
        items = await asyncio.wait_for(collect(subscriber), timeout=5)

    assert isinstance(items[0], LogEntry)
    assert items[1] == SubscriptionFailed(address=PAIR, error="peer went away")
    assert len(items) == 2


@pytest.mark.asyncio
async def test_closed_stream_reports_termination():
    ws = MockWebSocket()
    ws.finish()
    async with EventSubscriber("wss://mock.local", connect=mock_connector([ws])) as subscriber:
        await subscriber.subscribe([PAIR])
        items = await asyncio.wait_for(collect(subscriber), timeout=5)
    assert items == [SubscriptionFailed(address=PAIR, error="subscription stream closed")]


@pytest.mark.asyncio
async def test_block_policy_keeps_every_entry():
    ws = MockWebSocket()
    for block in range(1, 4):
        ws.push_log(raw_log(PAIR, block=block))
    ws.finish()

    async with EventSubscriber("wss://mock.local", queue_size=1, overflow="block",
                               connect=mock_connector([ws])) as subscriber:
        await subscriber.subscribe([PAIR])
        items = await asyncio.wait_for(collect(subscriber), timeout=5)

    assert [i.block_number for i in items[:-1]] == [1, 2, 3]
    assert isinstance(items[-1], SubscriptionFailed)


@pytest.mark.asyncio
async def test_drop_policy_discards_when_full():
    ws = MockWebSocket()
    for block in range(1, 4):
        ws.push_log(raw_log(PAIR, block=block))
    ws.finish()

    async with EventSubscriber("wss://mock.local", queue_size=1, overflow="drop",
                               connect=mock_connector([ws])) as subscriber:
        await subscriber.subscribe([PAIR])
        items = await asyncio.wait_for(collect(subscriber), timeout=5)

    entries = [i for i in items if isinstance(i, LogEntry)]
    assert len(entries) < 3
    assert entries[0].block_number == 1
    assert isinstance(items[-1], SubscriptionFailed)


@pytest.mark.asyncio
async def test_refused_subscription_closes_opened_connections():
    good = MockWebSocket()
    refused = MockWebSocket(ack={"jsonrpc": "2.0", "id": 1, "error": {"code": -32601, "message": "no logs"}})
    subscriber = EventSubscriber("wss://mock.local", connect=mock_connector([good, refused]))

    with pytest.raises(ConnectivityError):
        await subscriber.subscribe([PAIR, TOKEN])

    assert good.closed and refused.closed


@pytest.mark.asyncio
async def test_close_cancels_running_subscriptions():
    ws = MockWebSocket()
    subscriber = EventSubscriber("wss://mock.local", connect=mock_connector([ws]))
    await subscriber.subscribe([PAIR])

    await subscriber.close()

    assert ws.closed
    assert await asyncio.wait_for(collect(subscriber), timeout=5) == []


@pytest.mark.asyncio
async def test_close_ends_a_running_stream():
    pair_ws, token_ws = MockWebSocket(), MockWebSocket()
    pair_ws.push_log(raw_log(PAIR))
    subscriber = EventSubscriber("wss://mock.local", connect=mock_connector([pair_ws, token_ws]))
    await subscriber.subscribe([PAIR, TOKEN])
    consumer = asyncio.create_task(collect(subscriber))
    await asyncio.sleep(0.01)

    await subscriber.close()
    items = await asyncio.wait_for(consumer, timeout=5)

    assert isinstance(items[0], LogEntry)
    assert {i.address for i in items[1:]} == {PAIR, TOKEN}
    assert all(i.error == "subscription closed" for i in items[1:])
