# /bscswap/core/keys.py
import re

from eth_account import Account as EthAccount
from pydantic import BaseModel, ConfigDict, SecretStr

from bscswap.core.address import to_checksum_address
from bscswap.core.errors import InvalidKeyError
from bscswap.core.logger import get_logger

log = get_logger(__name__)

_PRIVATE_KEY_RE = re.compile(r"(0x)?[0-9a-fA-F]{64}")


class Account(BaseModel):
    model_config = ConfigDict(frozen=True)

    private_key: SecretStr
    address: str


def _normalize_key(plain_private_key: str) -> str:
    if not isinstance(plain_private_key, str) or not _PRIVATE_KEY_RE.fullmatch(plain_private_key.strip()):
        raise InvalidKeyError("private key must be 64 hex characters")
    key = plain_private_key.strip()
    return key if key.startswith("0x") else "0x" + key


def derive_address(plain_private_key: str) -> str:
    """Returns the checksum address controlled by a hex private key."""
    key = _normalize_key(plain_private_key)
    try:
        address = EthAccount.from_key(key).address
    except Exception as e:
        # zero key or a value outside the secp256k1 curve order
        raise InvalidKeyError(f"unusable private key: {e}") from e
    return to_checksum_address(address)


def load_account(plain_private_key: str) -> Account:
    address = derive_address(plain_private_key)
    return Account(private_key=SecretStr(_normalize_key(plain_private_key)), address=address)


class KeyManager:
    """Holds the single active account used for signing."""
    def __init__(self, plain_private_key: str):
        self._active = load_account(plain_private_key)
        log.info("ACCOUNT_LOADED", address=self._active.address)

    @property
    def active(self) -> Account:
        return self._active

    @property
    def address(self) -> str:
        return self._active.address

    def switch_account(self, plain_private_key: str) -> Account:
        """Replaces the active account. The old one stays active if the new key is malformed."""
        account = load_account(plain_private_key)
        previous = self._active.address
        self._active = account
        log.info("ACCOUNT_SWITCHED", previous=previous, address=account.address)
        return account
