# /bscswap/core/nonce_manager.py
# Serialises nonce fetch, signing and broadcast for one account.

import asyncio
from contextlib import asynccontextmanager, nullcontext

from bscswap.core.chain import ChainClient
from bscswap.core.logger import get_logger

log = get_logger(__name__)


class NonceManager:
    """
    No local nonce counter is kept: the chain's pending nonce is the source of
    truth. Correctness comes from holding a lock from the nonce fetch until the
    transaction is broadcast, so two submissions can never read the same value.

    With a redis client the lock also spans processes sharing the account.
    """
    def __init__(self, chain: ChainClient, redis_client=None, lock_timeout: int = 60):
        self.chain = chain
        self.redis = redis_client
        self.lock_timeout = lock_timeout
        self._lock = asyncio.Lock()

    def _distributed_lock(self, address: str):
        if self.redis is None:
            return nullcontext()
        return self.redis.lock(f"nonce_lock:{address.lower()}", timeout=self.lock_timeout)

    @asynccontextmanager
    async def hold(self):
        """Exclusive access without fetching a nonce (used for account switches)."""
        async with self._lock:
            yield

    @asynccontextmanager
    async def reserve(self, address: str, nonce: int | None = None):
        """Yields the nonce to sign with while holding the account lock.

        An explicit *nonce* is used as-is; replacing a stuck transaction
        reuses its nonce on purpose.
        """
        async with self._lock:
            async with self._distributed_lock(address):
                if nonce is None:
                    nonce = await self.chain.pending_nonce(address)
                    log.debug("NONCE_FROM_RPC", address=address, nonce=nonce)
                else:
                    log.debug("NONCE_EXPLICIT", address=address, nonce=nonce)
                yield nonce
