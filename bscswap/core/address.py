# /bscswap/core/address.py
import re

from web3 import Web3

from bscswap.core.errors import ValidationError

ADDRESS_RE = re.compile(r"0x[0-9a-fA-F]{40}")
ZERO_ADDRESS = "0x" + "00" * 20


def is_valid_address(address) -> bool:
    """True iff *address* is a 0x-prefixed string of exactly 40 hex characters."""
    if not isinstance(address, str):
        return False
    return ADDRESS_RE.fullmatch(address) is not None


def is_zero_address(address) -> bool:
    if isinstance(address, (bytes, bytearray)):
        return len(address) == 20 and not any(address)
    if not is_valid_address(address):
        return False
    return bytes.fromhex(address[2:]) == bytes(20)


def to_checksum_address(address) -> str:
    if not is_valid_address(address):
        raise ValidationError(f"invalid address: {address!r}")
    return Web3.to_checksum_address(address)
