# /bscswap/adapters/mock.py
# In-memory stand-ins for the chain client and WebSocket connections.
# They let the submitter and subscriber run end-to-end without a node.
import asyncio
import json
from typing import Any, Callable, Dict, List

from eth_account import Account as EthAccount

from bscswap.core.errors import BroadcastError, CallRevertedError, EstimationError, ValidationError
from bscswap.core.logger import get_logger
from bscswap.core.models import SignedTransaction

log = get_logger(__name__)


class _MockCall:
    def __init__(self, result):
        self._result = result

    async def call(self):
        await asyncio.sleep(0)
        if isinstance(self._result, Exception):
            raise self._result
        return self._result


class _MockFunctions:
    def __init__(self, client: "MockChainClient", address: str):
        self._client = client
        self._address = address

    def __getattr__(self, name: str):
        def build(*args):
            self._client.contract_calls.append((self._address, name, args))
            result = self._client.contract_results.get((self._address.lower(), name))
            if callable(result):
                result = result(*args)
            return _MockCall(result)
        return build


class MockContract:
    def __init__(self, client: "MockChainClient", address: str, abi: list):
        self.address = address
        self.abi = abi
        self.functions = _MockFunctions(client, address)


class MockChainClient:
    """
    Simulates a node with a mempool of one account's pending transactions.

    Nonces behave like a real node: a transaction is accepted at the next
    pending nonce, or as a replacement of a pending one when its gas price is
    strictly higher. Every RPC yields to the event loop so concurrent callers
    interleave the way they would over a network.
    """
    def __init__(self, chain_id: int = 97, gas_price: int = 5, start_nonce: int = 0,
                 ws_url: str | None = "wss://mock.local"):
        self.ws_url = ws_url
        self.timeout = 1.0
        self._chain_id = chain_id
        self.suggested_gas_price = gas_price
        self.start_nonce = start_nonce
        self.next_nonce: Dict[str, int] = {}
        self.pending: Dict[tuple, SignedTransaction] = {}
        self.sent: List[SignedTransaction] = []
        self.balances: Dict[str, int] = {}
        self.codes: Dict[str, bytes] = {}
        self.transactions: Dict[str, dict] = {}
        self.estimated_gas = 21_000
        self.estimate_error: str | None = None
        self.broadcast_error: str | None = None
        self.call_revert: Any = None
        self.calls: List[dict] = []
        self.estimates: List[dict] = []
        self.contract_results: Dict[tuple, Any] = {}
        self.contract_calls: List[tuple] = []
        self.chain_id_requests = 0

    async def block_number(self) -> int:
        await asyncio.sleep(0)
        return 1_000

    async def chain_id(self) -> int:
        await asyncio.sleep(0)
        self.chain_id_requests += 1
        return self._chain_id

    async def get_balance(self, address: str) -> int:
        await asyncio.sleep(0)
        return self.balances.get(address.lower(), 0)

    async def get_code(self, address: str) -> bytes:
        await asyncio.sleep(0)
        return self.codes.get(address.lower(), b"")

    async def is_contract(self, address: str) -> bool:
        return len(await self.get_code(address)) > 0

    async def gas_price(self) -> int:
        await asyncio.sleep(0)
        return self.suggested_gas_price

    async def pending_nonce(self, address: str) -> int:
        await asyncio.sleep(0)
        return self.next_nonce.get(address.lower(), self.start_nonce)

    async def get_transaction(self, tx_hash: str) -> dict:
        await asyncio.sleep(0)
        if tx_hash not in self.transactions:
            raise ValidationError(f"transaction {tx_hash} not found")
        return self.transactions[tx_hash]

    async def estimate_gas(self, tx: dict) -> int:
        await asyncio.sleep(0)
        self.estimates.append(tx)
        if self.estimate_error:
            raise EstimationError(self.estimate_error)
        return self.estimated_gas

    async def call(self, tx: dict) -> bytes:
        await asyncio.sleep(0)
        self.calls.append(tx)
        if self.call_revert is not None:
            raise CallRevertedError("execution reverted", payload=self.call_revert)
        return b""

    def contract(self, address: str, abi: list) -> MockContract:
        return MockContract(self, address, abi)

    async def read(self, function_call):
        return await function_call.call()

    async def send_raw_transaction(self, signed: SignedTransaction) -> str:
        await asyncio.sleep(0)
        if self.broadcast_error:
            raise BroadcastError(self.broadcast_error)

        sender = EthAccount.recover_transaction(signed.raw_transaction).lower()
        expected = self.next_nonce.get(sender, self.start_nonce)
        key = (sender, signed.nonce)
        if signed.nonce == expected:
            self.next_nonce[sender] = expected + 1
        elif key in self.pending:
            if signed.gas_price <= self.pending[key].gas_price:
                raise BroadcastError("replacement transaction underpriced")
        elif signed.nonce < expected:
            raise BroadcastError("nonce too low")
        else:
            raise BroadcastError("nonce too high")

        self.pending[key] = signed
        self.sent.append(signed)
        log.debug("MOCK_TRANSACTION_ACCEPTED", tx_hash=signed.tx_hash, nonce=signed.nonce)
        return signed.tx_hash

    async def close(self):
        pass


class MockWebSocket:
    """A websockets-style connection fed by the test through ``push_log``/``fail``/``finish``."""
    _END = object()

    def __init__(self, ack: dict | None = None):
        self.ack = ack if ack is not None else {"jsonrpc": "2.0", "id": 1, "result": "0xsub"}
        self.sent: List[dict] = []
        self.closed = False
        self._acked = False
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def send(self, message: str):
        self.sent.append(json.loads(message))

    async def recv(self) -> str:
        if not self._acked:
            self._acked = True
            return json.dumps(self.ack)
        item = await self._inbox.get()
        if isinstance(item, Exception):
            raise item
        return item

    def push_log(self, log_entry: dict, subscription: str = "0xsub"):
        self._inbox.put_nowait(json.dumps({
            "jsonrpc": "2.0",
            "method": "eth_subscription",
            "params": {"subscription": subscription, "result": log_entry},
        }))

    def fail(self, error: Exception):
        self._inbox.put_nowait(error)

    def finish(self):
        self._inbox.put_nowait(self._END)

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        item = await self._inbox.get()
        if item is self._END:
            raise StopAsyncIteration
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self):
        self.closed = True


def mock_connector(sockets: List[MockWebSocket]) -> Callable:
    """A ``websockets.connect`` replacement handing out *sockets* in order."""
    remaining = list(sockets)

    async def connect(url: str):
        return remaining.pop(0)
    return connect
