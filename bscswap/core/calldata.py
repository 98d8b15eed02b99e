# /bscswap/core/calldata.py
# Raw calldata: 4-byte selector followed by 32-byte argument words.
from eth_abi import encode
from web3 import Web3

from bscswap.core.address import is_valid_address, to_checksum_address
from bscswap.core.errors import ValidationError

WORD_SIZE = 32
UINT256_MAX = 2 ** 256 - 1

TRANSFER_SIGNATURE = "transfer(address,uint256)"
SWAP_EXACT_ETH_SIGNATURE = "swapExactETHForTokensSupportingFeeOnTransferTokens(uint256,address[],address,uint256)"


def function_selector(signature: str) -> bytes:
    """First 4 bytes of keccak256 over the canonical signature, e.g. ``transfer(address,uint256)``."""
    return bytes(Web3.keccak(text=signature)[:4])


def left_pad(value: bytes, size: int = WORD_SIZE) -> bytes:
    if len(value) > size:
        raise ValidationError(f"argument is {len(value)} bytes, does not fit in {size}")
    return value.rjust(size, b"\x00")


def encode_static_arg(arg) -> bytes:
    if isinstance(arg, bool):
        return left_pad(b"\x01" if arg else b"\x00")
    if isinstance(arg, int):
        if arg < 0 or arg > UINT256_MAX:
            raise ValidationError(f"integer argument out of uint256 range: {arg}")
        return arg.to_bytes(WORD_SIZE, "big")
    if isinstance(arg, str):
        if not is_valid_address(arg):
            raise ValidationError(f"string arguments must be addresses, got {arg!r}")
        return left_pad(bytes.fromhex(arg[2:]))
    if isinstance(arg, (bytes, bytearray)):
        return left_pad(bytes(arg))
    raise ValidationError(f"unsupported static argument type: {type(arg).__name__}")


def build_tx_data(selector, *args) -> bytes:
    """Concatenates a selector with each argument right-aligned in its own 32-byte slot.

    Only static ABI types are handled here. Dynamic types (arrays, strings)
    need the full ABI encoder, see ``encode_swap_exact_eth_for_tokens``.
    """
    if isinstance(selector, str):
        selector = function_selector(selector)
    if len(selector) != 4:
        raise ValidationError(f"selector must be 4 bytes, got {len(selector)}")
    return bytes(selector) + b"".join(encode_static_arg(arg) for arg in args)


def encode_token_transfer(to: str, amount: int) -> bytes:
    return build_tx_data(TRANSFER_SIGNATURE, to_checksum_address(to), amount)


def generate_path(token_in: str, token_out: str) -> tuple[str, str]:
    """Single-hop swap path."""
    return to_checksum_address(token_in), to_checksum_address(token_out)


def encode_swap_exact_eth_for_tokens(amount_out_min: int, path, to: str, deadline: int) -> bytes:
    if len(path) != 2:
        raise ValidationError("only single-hop paths are supported")
    args = encode(
        ["uint256", "address[]", "address", "uint256"],
        [amount_out_min, [to_checksum_address(a) for a in path], to_checksum_address(to), deadline],
    )
    return function_selector(SWAP_EXACT_ETH_SIGNATURE) + args
