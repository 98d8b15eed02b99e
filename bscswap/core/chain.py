# /bscswap/core/chain.py
# Thin facade over the HTTP and WebSocket AsyncWeb3 connections.
import aiohttp
from web3 import AsyncWeb3, AsyncHTTPProvider, WebSocketProvider
from web3.exceptions import (
    ContractLogicError,
    ProviderConnectionError,
    TransactionNotFound,
    Web3Exception,
)
from web3.middleware import ExtraDataToPOAMiddleware

from bscswap.core.address import is_valid_address, to_checksum_address
from bscswap.core.decorators import TRANSPORT_ERRORS, rpc_call
from bscswap.core.errors import (
    BroadcastError,
    CallRevertedError,
    ConfigurationError,
    ConnectivityError,
    EstimationError,
    ValidationError,
)
from bscswap.core.logger import get_logger
from bscswap.core.models import SignedTransaction

log = get_logger(__name__)


def _revert_payload(e: Exception):
    return getattr(e, "data", None) or getattr(e, "message", None) or str(e)


class ChainClient:
    """Routes every query to the live connection, preferring the WebSocket one.

    Every method raises ConnectivityError on transport failure; none of them
    hides a failed query behind a zero value.
    """
    def __init__(self, http: AsyncWeb3 | None = None, ws: AsyncWeb3 | None = None,
                 ws_url: str | None = None, timeout: float = 30.0):
        if http is None and ws is None:
            raise ConfigurationError("ChainClient needs an HTTP or a WebSocket connection")
        self.http = http
        self.ws = ws
        self.ws_url = ws_url
        self.timeout = timeout

    @classmethod
    async def connect(cls, http_url: str | None = None, ws_url: str | None = None,
                      timeout: float = 30.0) -> "ChainClient":
        if not http_url and not ws_url:
            raise ConfigurationError("no RPC endpoint configured")

        http = ws = None
        if http_url:
            http = AsyncWeb3(AsyncHTTPProvider(
                http_url, request_kwargs={"timeout": aiohttp.ClientTimeout(total=timeout)}
            ))
            http.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        if ws_url:
            ws = AsyncWeb3(WebSocketProvider(ws_url))
            try:
                await ws.provider.connect()
            except TRANSPORT_ERRORS as e:
                raise ConnectivityError(f"could not dial {ws_url}: {e}") from e
            ws.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

        client = cls(http=http, ws=ws, ws_url=ws_url, timeout=timeout)
        try:
            for label, w3 in (("http", http), ("ws", ws)):
                if w3 is not None:
                    block = await client._probe(w3)
                    log.info("CHAIN_CLIENT_CONNECTED", transport=label, block_number=block)
        except ConnectivityError:
            await client.close()
            raise
        return client

    @rpc_call
    async def _probe(self, w3: AsyncWeb3) -> int:
        return await w3.eth.block_number

    def select(self) -> AsyncWeb3:
        return self.ws if self.ws is not None else self.http

    async def close(self):
        if self.ws is not None:
            await self.ws.provider.disconnect()
            log.info("CHAIN_CLIENT_WS_CLOSED")
        if self.http is not None:
            # drops the cached aiohttp sessions
            await self.http.provider.disconnect()

    # --- reads ---

    @rpc_call
    async def block_number(self) -> int:
        return await self.select().eth.block_number

    @rpc_call
    async def chain_id(self) -> int:
        return await self.select().eth.chain_id

    @rpc_call
    async def get_balance(self, address: str) -> int:
        return await self.select().eth.get_balance(to_checksum_address(address))

    @rpc_call
    async def get_code(self, address: str) -> bytes:
        return bytes(await self.select().eth.get_code(to_checksum_address(address)))

    async def is_contract(self, address: str) -> bool:
        if not is_valid_address(address):
            return False
        return len(await self.get_code(address)) > 0

    @rpc_call
    async def gas_price(self) -> int:
        return await self.select().eth.gas_price

    @rpc_call
    async def pending_nonce(self, address: str) -> int:
        return await self.select().eth.get_transaction_count(to_checksum_address(address), "pending")

    @rpc_call
    async def get_transaction(self, tx_hash: str):
        try:
            return await self.select().eth.get_transaction(tx_hash)
        except TransactionNotFound as e:
            raise ValidationError(f"transaction {tx_hash} not found") from e

    # --- simulations ---

    @rpc_call
    async def estimate_gas(self, tx: dict) -> int:
        try:
            return await self.select().eth.estimate_gas(tx)
        except ProviderConnectionError:
            raise
        except (Web3Exception, ValueError) as e:
            raise EstimationError(str(e)) from e

    @rpc_call
    async def call(self, tx: dict) -> bytes:
        try:
            return bytes(await self.select().eth.call(tx))
        except ContractLogicError as e:
            raise CallRevertedError(f"call reverted: {e}", payload=_revert_payload(e)) from e
        except ProviderConnectionError:
            raise
        except (Web3Exception, ValueError) as e:
            raise CallRevertedError(f"call rejected: {e}", payload=_revert_payload(e)) from e

    # --- contracts ---

    def contract(self, address: str, abi: list):
        return self.select().eth.contract(address=to_checksum_address(address), abi=abi)

    @rpc_call
    async def read(self, function_call):
        """Awaits ``contract.functions.<name>(...).call()`` with revert translation."""
        try:
            return await function_call.call()
        except ContractLogicError as e:
            raise CallRevertedError(f"contract call reverted: {e}", payload=_revert_payload(e)) from e
        except ProviderConnectionError:
            raise
        except (Web3Exception, ValueError) as e:
            # undecodable output (no code at the address) or a node-side error
            raise CallRevertedError(f"contract call failed: {e}", payload=_revert_payload(e)) from e

    # --- writes ---

    @rpc_call
    async def send_raw_transaction(self, signed: SignedTransaction) -> str:
        try:
            tx_hash = await self.select().eth.send_raw_transaction(signed.raw_transaction)
        except ProviderConnectionError:
            raise
        except (Web3Exception, ValueError) as e:
            raise BroadcastError(str(e)) from e
        return AsyncWeb3.to_hex(tx_hash)
