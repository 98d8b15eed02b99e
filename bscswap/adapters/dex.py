# /bscswap/adapters/dex.py
# Read-only calls against the PancakeSwap router, pair and factory contracts.
from decimal import Decimal, localcontext

from bscswap.abis import ERC20_ABI, PANCAKE_FACTORY_ABI, PANCAKE_PAIR_ABI, PANCAKE_ROUTER_ABI
from bscswap.core.address import is_zero_address, to_checksum_address
from bscswap.core.chain import ChainClient
from bscswap.core.config import PANCAKE_TESTNET_FACTORY, PANCAKE_TESTNET_ROUTER, WBNB_TESTNET
from bscswap.core.errors import ValidationError
from bscswap.core.logger import get_logger
from bscswap.core.models import Reserve
from bscswap.core.units import PRECISION

log = get_logger(__name__)


class DexAdapter:
    def __init__(self, chain: ChainClient, router_address: str = PANCAKE_TESTNET_ROUTER,
                 factory_address: str = PANCAKE_TESTNET_FACTORY,
                 wrapped_native_address: str = WBNB_TESTNET):
        self.chain = chain
        self.router_address = to_checksum_address(router_address)
        self.factory_address = to_checksum_address(factory_address)
        self.wrapped_native_address = to_checksum_address(wrapped_native_address)
        self.router = chain.contract(self.router_address, PANCAKE_ROUTER_ABI)
        self.factory = chain.contract(self.factory_address, PANCAKE_FACTORY_ABI)

    async def get_pair(self, token_address: str, base_address: str | None = None) -> str | None:
        """Pair address for (base, token), or None when the factory has no such pair."""
        base = to_checksum_address(base_address or self.wrapped_native_address)
        token = to_checksum_address(token_address)
        pair = await self.chain.read(self.factory.functions.getPair(base, token))
        if is_zero_address(pair):
            log.info("DEX_PAIR_NOT_FOUND", base=base, token=token)
            return None
        return to_checksum_address(pair)

    async def get_reserves(self, pair_address: str) -> Reserve:
        pair = self.chain.contract(pair_address, PANCAKE_PAIR_ABI)
        reserve0, reserve1, timestamp = await self.chain.read(pair.functions.getReserves())
        return Reserve(reserve0=reserve0, reserve1=reserve1, block_timestamp_last=timestamp)

    async def get_amounts_out(self, amount_in_wei: int, path) -> list[int]:
        path = [to_checksum_address(a) for a in path]
        return list(await self.chain.read(self.router.functions.getAmountsOut(amount_in_wei, path)))

    async def min_amount_out(self, amount_in_wei: int, path, slippage_tolerance: Decimal = Decimal("0.005")) -> int:
        """Quote for *path* minus the slippage tolerance, never below one base unit."""
        if not Decimal(0) <= slippage_tolerance < Decimal(1):
            raise ValidationError(f"slippage tolerance must be in [0, 1), got {slippage_tolerance}")
        quote = await self.get_amounts_out(amount_in_wei, path)
        with localcontext() as ctx:
            ctx.prec = PRECISION
            floor = int(Decimal(quote[-1]) * (Decimal(1) - slippage_tolerance))
        return max(floor, 1)

    async def token_balance(self, token_address: str, owner: str) -> int:
        token = self.chain.contract(token_address, ERC20_ABI)
        return await self.chain.read(token.functions.balanceOf(to_checksum_address(owner)))

    async def token_decimals(self, token_address: str) -> int:
        token = self.chain.contract(token_address, ERC20_ABI)
        return await self.chain.read(token.functions.decimals())
