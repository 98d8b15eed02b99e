from decimal import Decimal

import pytest

from bscswap.adapters.dex import DexAdapter
from bscswap.adapters.mock import MockChainClient
from bscswap.core.address import ZERO_ADDRESS
from bscswap.core.config import PANCAKE_TESTNET_FACTORY, PANCAKE_TESTNET_ROUTER, WBNB_TESTNET
from bscswap.core.errors import CallRevertedError, ValidationError

TOKEN = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
PAIR = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
OWNER = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


@pytest.fixture
def chain():
    return MockChainClient()


@pytest.fixture
def dex(chain):
    return DexAdapter(chain)


def set_result(chain, address, fn, result):
    chain.contract_results[(address.lower(), fn)] = result


@pytest.mark.asyncio
async def test_get_pair(dex, chain):
    set_result(chain, PANCAKE_TESTNET_FACTORY, "getPair", PAIR.lower())
    assert await dex.get_pair(TOKEN) == PAIR

    _, fn, args = chain.contract_calls[-1]
    assert fn == "getPair"
    assert [a.lower() for a in args] == [WBNB_TESTNET.lower(), TOKEN.lower()]


@pytest.mark.asyncio
async def test_missing_pair_is_none(dex, chain):
    set_result(chain, PANCAKE_TESTNET_FACTORY, "getPair", ZERO_ADDRESS)
    assert await dex.get_pair(TOKEN) is None


@pytest.mark.asyncio
async def test_get_reserves(dex, chain):
    set_result(chain, PAIR, "getReserves", [10**21, 5 * 10**20, 1_700_000_000])
    reserve = await dex.get_reserves(PAIR)
    assert (reserve.reserve0, reserve.reserve1, reserve.block_timestamp_last) == (10**21, 5 * 10**20, 1_700_000_000)


@pytest.mark.asyncio
async def test_min_amount_out_applies_slippage(dex, chain):
    set_result(chain, PANCAKE_TESTNET_ROUTER, "getAmountsOut", lambda amount, path: [amount, 1000])
    assert await dex.get_amounts_out(10**16, [WBNB_TESTNET, TOKEN]) == [10**16, 1000]
    assert await dex.min_amount_out(10**16, [WBNB_TESTNET, TOKEN], Decimal("0.01")) == 990


@pytest.mark.asyncio
async def test_min_amount_out_never_below_one(dex, chain):
    set_result(chain, PANCAKE_TESTNET_ROUTER, "getAmountsOut", [10**16, 0])
    assert await dex.min_amount_out(10**16, [WBNB_TESTNET, TOKEN]) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("slippage", [Decimal("-0.1"), Decimal(1), Decimal("1.5")])
async def test_slippage_must_be_a_fraction(dex, slippage):
    with pytest.raises(ValidationError):
        await dex.min_amount_out(10**16, [WBNB_TESTNET, TOKEN], slippage)


@pytest.mark.asyncio
async def test_router_revert_propagates(dex, chain):
    set_result(chain, PANCAKE_TESTNET_ROUTER, "getAmountsOut",
               CallRevertedError("contract call reverted", payload="PancakeLibrary: INSUFFICIENT_LIQUIDITY"))
    with pytest.raises(CallRevertedError):
        await dex.get_amounts_out(10**16, [WBNB_TESTNET, TOKEN])


@pytest.mark.asyncio
async def test_token_helpers(dex, chain):
    set_result(chain, TOKEN, "balanceOf", 42)
    set_result(chain, TOKEN, "decimals", 6)
    assert await dex.token_balance(TOKEN, OWNER) == 42
    assert await dex.token_decimals(TOKEN) == 6


@pytest.mark.asyncio
async def test_min_amount_out_is_exact_for_large_quotes(dex, chain):
    quote = 2**200 + 12345
    set_result(chain, PANCAKE_TESTNET_ROUTER, "getAmountsOut", [10**16, quote])
    assert await dex.min_amount_out(10**16, [WBNB_TESTNET, TOKEN], Decimal("0.5")) == quote // 2
