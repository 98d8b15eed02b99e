# /bscswap/core/units.py
# Conversions between wei, gwei and ether.
#
# All arithmetic runs in a local decimal context wide enough to hold any
# uint256 value exactly (80 significant digits > 236 bits), so nothing in
# the 18-decimal range goes through binary floating point.
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN, localcontext

from bscswap.core.errors import ParseError

PRECISION = 80
WEI_DECIMALS = 18
GWEI_DECIMALS = 9
GWEI_IN_WEI = 10 ** GWEI_DECIMALS
ETHER_IN_WEI = 10 ** WEI_DECIMALS


def _parse(value) -> Decimal:
    if isinstance(value, bool):
        raise ParseError(f"not a number: {value!r}")
    if isinstance(value, float):
        # repr() gives the shortest round-tripping string, not the binary expansion
        value = repr(value)
    try:
        amount = Decimal(value) if not isinstance(value, Decimal) else value
    except (InvalidOperation, TypeError, ValueError) as e:
        raise ParseError(f"not a number: {value!r}") from e
    if not amount.is_finite():
        raise ParseError(f"not a finite number: {value!r}")
    return amount


def _divide(value: int, decimals: int) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ParseError(f"base units must be an integer, got {value!r}")
    with localcontext() as ctx:
        ctx.prec = PRECISION
        ctx.rounding = ROUND_HALF_EVEN
        return Decimal(value) / Decimal(10 ** decimals)


def _scale_up(value, decimals: int) -> int:
    """Splits *value* into integer and fractional parts and rebuilds it in base units.

    The fractional digits are rounded to *decimals* places, right-padded with
    zeros to exactly *decimals* characters and parsed as an integer.
    """
    amount = _parse(value)
    with localcontext() as ctx:
        ctx.prec = PRECISION
        ctx.rounding = ROUND_HALF_EVEN
        try:
            quantized = abs(amount).quantize(Decimal(1).scaleb(-decimals))
        except InvalidOperation as e:
            raise ParseError(f"amount out of range: {value!r}") from e
    int_part, _, frac_part = format(quantized, "f").partition(".")
    frac_part = frac_part.ljust(decimals, "0")
    base = int(int_part) * 10 ** decimals + int(frac_part or "0")
    return -base if amount < 0 else base


def wei_to_ether(wei: int) -> Decimal:
    return _divide(wei, WEI_DECIMALS)


def ether_to_wei(ether) -> int:
    return _scale_up(ether, WEI_DECIMALS)


def wei_to_gwei(wei: int) -> Decimal:
    return _divide(wei, GWEI_DECIMALS)


def gwei_to_wei(gwei) -> int:
    return _scale_up(gwei, GWEI_DECIMALS)


def gwei_to_ether(gwei) -> Decimal:
    amount = _parse(gwei)
    with localcontext() as ctx:
        ctx.prec = PRECISION
        ctx.rounding = ROUND_HALF_EVEN
        return amount / Decimal(GWEI_IN_WEI)


def ether_to_gwei(ether) -> int:
    return _scale_up(ether, GWEI_DECIMALS)


def to_decimal(value, decimals: int) -> Decimal:
    """Token base units to a human amount, for tokens with arbitrary decimals."""
    if isinstance(value, str):
        try:
            value = int(value, 10)
        except ValueError as e:
            raise ParseError(f"not an integer: {value!r}") from e
    return _divide(value, decimals)


def to_base_units(amount, decimals: int) -> int:
    return _scale_up(amount, decimals)
