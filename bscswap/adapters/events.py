# /bscswap/adapters/events.py
# Contract log subscriptions over WebSocket, one supervised task per contract.
import asyncio
import contextlib
import json
from typing import AsyncIterator, Literal

import websockets

from bscswap.core.address import to_checksum_address
from bscswap.core.chain import ChainClient
from bscswap.core.decorators import TRANSPORT_ERRORS
from bscswap.core.errors import ConfigurationError, ConnectivityError
from bscswap.core.logger import LOGS_DELIVERED, LOGS_DROPPED, SUBSCRIPTION_FAILURES, get_logger
from bscswap.core.models import LogEntry, SubscriptionFailed

log = get_logger(__name__)

OverflowPolicy = Literal["block", "drop"]


class EventSubscriber:
    """
    Fans raw log entries from several contracts into one bounded queue.

    Queue overflow policy:
      * ``block``: a full queue pauses that contract's delivery loop until a
        consumer catches up (the node buffers in the meantime).
      * ``drop``: new entries are discarded and counted when the queue is full.

    A loop that hits an error puts a SubscriptionFailed item on the queue and
    stops. Those sentinels always block, they are never dropped. close() ends
    any stream() still running. There is no reconnect; callers resubscribe
    explicitly.
    """
    def __init__(self, ws_url: str | None, queue_size: int = 1000, overflow: OverflowPolicy = "block",
                 connect=websockets.connect, ack_timeout: float = 10.0):
        if overflow not in ("block", "drop"):
            raise ConfigurationError(f"unknown overflow policy: {overflow}")
        self.ws_url = ws_url
        self.overflow = overflow
        self.ack_timeout = ack_timeout
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._connect = connect
        self._connections = []
        self._tasks: list[tuple[str, asyncio.Task]] = []
        self._closed = False

    @classmethod
    def from_chain(cls, chain: ChainClient, **kwargs) -> "EventSubscriber":
        return cls(chain.ws_url, **kwargs)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def subscribe(self, contract_addresses) -> asyncio.Queue:
        if not self.ws_url:
            log.critical("EVENT_SUBSCRIBER_WITHOUT_WEBSOCKET")
            raise ConfigurationError("no WebSocket client configured (RPC_WS_URL)")
        addresses = [to_checksum_address(a) for a in contract_addresses]
        self._closed = False

        opened = []
        try:
            for address in addresses:
                opened.append((address, await self._open(address)))
        except BaseException:
            for _, connection in opened:
                await connection.close()
            raise

        for address, connection in opened:
            task = asyncio.create_task(self._deliver(address, connection), name=f"logs:{address}")
            task.add_done_callback(self._on_task_done)
            self._tasks.append((address, task))
            self._connections.append(connection)
            log.info("LOG_SUBSCRIPTION_STARTED", address=address)
        return self.queue

    async def _open(self, address: str):
        try:
            connection = await self._connect(self.ws_url)
        except TRANSPORT_ERRORS as e:
            raise ConnectivityError(f"could not dial {self.ws_url}: {e}") from e

        request = {"jsonrpc": "2.0", "id": 1, "method": "eth_subscribe", "params": ["logs", {"address": address}]}
        try:
            await connection.send(json.dumps(request))
            ack = json.loads(await asyncio.wait_for(connection.recv(), timeout=self.ack_timeout))
        except (*TRANSPORT_ERRORS, ValueError) as e:
            await connection.close()
            raise ConnectivityError(f"eth_subscribe for {address} failed: {e}") from e

        if "result" not in ack:
            await connection.close()
            raise ConnectivityError(f"eth_subscribe for {address} refused: {ack.get('error')}")
        log.debug("LOG_SUBSCRIPTION_ACK", address=address, subscription=ack["result"])
        return connection

    async def _deliver(self, address: str, connection):
        try:
            async for message in connection:
                payload = json.loads(message)
                result = payload.get("params", {}).get("result")
                if isinstance(result, dict):
                    await self._put(LogEntry.from_rpc(result))
            reason = "subscription stream closed"
        except asyncio.CancelledError:
            raise
        except Exception as e:
            reason = str(e) or type(e).__name__

        SUBSCRIPTION_FAILURES.inc()
        log.error("LOG_SUBSCRIPTION_TERMINATED", address=address, error=reason)
        await self.queue.put(SubscriptionFailed(address=address, error=reason))

    async def _put(self, entry: LogEntry):
        if self.overflow == "drop":
            try:
                self.queue.put_nowait(entry)
            except asyncio.QueueFull:
                LOGS_DROPPED.inc()
                log.warning("LOG_ENTRY_DROPPED", address=entry.address, transaction_hash=entry.transaction_hash)
                return
        else:
            await self.queue.put(entry)
        LOGS_DELIVERED.inc()

    def _on_task_done(self, task: asyncio.Task):
        if not task.cancelled() and task.exception() is not None:
            log.error("LOG_SUBSCRIPTION_TASK_CRASHED", task=task.get_name(), error=str(task.exception()))

    async def stream(self) -> AsyncIterator[LogEntry | SubscriptionFailed]:
        """Yields queue items until every subscription has reported its failure."""
        active = len(self._tasks)
        while active:
            if self._closed and self.queue.empty():
                return
            item = await self.queue.get()
            if isinstance(item, SubscriptionFailed):
                active -= 1
            yield item

    async def close(self):
        interrupted = [address for address, task in self._tasks if not task.done()]
        for _, task in self._tasks:
            task.cancel()
        await asyncio.gather(*(task for _, task in self._tasks), return_exceptions=True)
        for connection in self._connections:
            await connection.close()

        # Wake a consumer blocked in stream(). A full queue means nobody is
        # blocked, and stream() returns once it drains.
        self._closed = True
        for address in interrupted:
            with contextlib.suppress(asyncio.QueueFull):
                self.queue.put_nowait(SubscriptionFailed(address=address, error="subscription closed"))
        self._tasks.clear()
        self._connections.clear()
        log.info("LOG_SUBSCRIPTIONS_CLOSED")
