# /bscswap/core/gas_estimator.py
# Resolves gas price and gas limit for a pending transaction.

from web3 import Web3

from bscswap.core.chain import ChainClient
from bscswap.core.config import DEFAULT_GAS_LIMIT
from bscswap.core.errors import EstimationError, ValidationError
from bscswap.core.logger import get_logger

log = get_logger(__name__)

UINT256_MAX = 2 ** 256 - 1


def _check_override(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{name} override must be a non-negative integer, got {value!r}")
    return value


def calc_gas_cost(gas_limit: int, gas_price: int) -> int:
    """Gas cost in wei for a limit (units) and a price (wei per unit)."""
    if gas_limit < 0 or gas_price < 0:
        raise ValidationError("gas limit and gas price must be non-negative")
    cost = gas_limit * gas_price
    if cost > UINT256_MAX:
        raise ValidationError("gas cost overflows uint256")
    return cost


class GasEstimator:
    """
    Picks the gas price and limit for a transaction, honouring caller overrides.
    """
    def __init__(self, chain: ChainClient, default_gas_limit: int = DEFAULT_GAS_LIMIT):
        self.chain = chain
        self.default_gas_limit = default_gas_limit

    async def resolve_gas_price(self, override: int | None = None) -> int:
        if override is not None:
            price = _check_override("gas_price", override)
            log.debug("GAS_PRICE_OVERRIDE", gas_price=price)
            return price
        price = await self.chain.gas_price()
        log.debug("GAS_PRICE_SUGGESTED", gas_price=price)
        return price

    async def resolve_gas_limit(self, to: str, data: bytes = b"", override: int | None = None,
                                sender: str | None = None, value: int = 0) -> int:
        """
        Resolution order: explicit override, then a simulated ``eth_estimateGas``
        when there is calldata, then the configured default.

        A rejected simulation is not fatal; the default limit is used instead.
        """
        if override is not None:
            limit = _check_override("gas_limit", override)
            log.debug("GAS_LIMIT_OVERRIDE", gas_limit=limit)
            return limit

        if not data:
            log.debug("GAS_LIMIT_DEFAULT", gas_limit=self.default_gas_limit)
            return self.default_gas_limit

        tx = {"to": to, "data": Web3.to_hex(data), "value": value}
        if sender is not None:
            tx["from"] = sender
        try:
            limit = await self.chain.estimate_gas(tx)
        except EstimationError as e:
            log.warning("GAS_ESTIMATION_FAILED_USING_DEFAULT", to=to, error=str(e),
                        gas_limit=self.default_gas_limit)
            return self.default_gas_limit
        log.debug("GAS_LIMIT_ESTIMATED", gas_limit=limit)
        return limit
