import pytest

from bscswap.adapters.mock import MockChainClient
from bscswap.core.errors import ValidationError
from bscswap.core.gas_estimator import GasEstimator, calc_gas_cost

TO = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
SENDER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


@pytest.fixture
def chain():
    return MockChainClient(gas_price=5)


@pytest.mark.asyncio
async def test_gas_price_override_wins(chain):
    gas = GasEstimator(chain, 7_000_000)
    assert await gas.resolve_gas_price(42) == 42
    assert await gas.resolve_gas_price() == 5


@pytest.mark.asyncio
async def test_plain_transfer_uses_default_limit(chain):
    gas = GasEstimator(chain, 7_000_000)
    assert await gas.resolve_gas_limit(TO) == 7_000_000
    assert chain.estimates == []


@pytest.mark.asyncio
async def test_calldata_is_simulated(chain):
    chain.estimated_gas = 51_234
    gas = GasEstimator(chain, 7_000_000)
    limit = await gas.resolve_gas_limit(TO, b"\xa9\x05\x9c\xbb", sender=SENDER, value=3)
    assert limit == 51_234
    assert chain.estimates == [{"to": TO, "data": "0xa9059cbb", "value": 3, "from": SENDER}]


@pytest.mark.asyncio
async def test_failed_estimate_falls_back_to_default(chain):
    chain.estimate_error = "execution reverted"
    gas = GasEstimator(chain, 300_000)
    assert await gas.resolve_gas_limit(TO, b"\x01") == 300_000


@pytest.mark.asyncio
async def test_limit_override_skips_estimation(chain):
    gas = GasEstimator(chain, 7_000_000)
    assert await gas.resolve_gas_limit(TO, b"\x01", override=90_000) == 90_000
    assert chain.estimates == []


@pytest.mark.asyncio
@pytest.mark.parametrize("override", [-1, "100", 1.5, True])
async def test_invalid_overrides(chain, override):
    gas = GasEstimator(chain)
    with pytest.raises(ValidationError):
        await gas.resolve_gas_price(override)
    with pytest.raises(ValidationError):
        await gas.resolve_gas_limit(TO, override=override)


def test_calc_gas_cost():
    assert calc_gas_cost(21_000, 5 * 10**9) == 105_000 * 10**9
    assert calc_gas_cost(0, 10) == 0
    with pytest.raises(ValidationError):
        calc_gas_cost(-1, 1)
    with pytest.raises(ValidationError):
        calc_gas_cost(2**200, 2**100)
