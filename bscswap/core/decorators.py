# /bscswap/core/decorators.py
# Reusable decorators for RPC calls: bounded wait and transport error translation.
import asyncio
import functools

import aiohttp
from web3.exceptions import ProviderConnectionError
from websockets.exceptions import WebSocketException

from bscswap.core.errors import ConnectivityError
from bscswap.core.logger import get_logger

log = get_logger(__name__)

TRANSPORT_ERRORS = (
    asyncio.TimeoutError,
    aiohttp.ClientError,
    ProviderConnectionError,
    WebSocketException,
    OSError,
)


def rpc_call(func):
    """Runs an async client method under ``self.timeout`` and maps transport failures.

    Domain errors raised inside the method (reverts, rejected broadcasts)
    pass through untouched.
    """
    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await asyncio.wait_for(func(self, *args, **kwargs), timeout=self.timeout)
        except TRANSPORT_ERRORS as e:
            log.error("RPC_CALL_FAILED", method=func.__name__, error=str(e) or type(e).__name__)
            raise ConnectivityError(f"{func.__name__} failed: {e or type(e).__name__}") from e
    return wrapper
