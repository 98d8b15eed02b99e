# /bscswap/adapters/wallets.py
# Loads plaintext wallet files ({"PublicKey": ..., "PrivateKey": ...}) from a directory.
import json
from pathlib import Path

import aiofiles
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as ModelValidationError

from bscswap.core.errors import InvalidKeyError, WalletFileError
from bscswap.core.keys import derive_address
from bscswap.core.logger import get_logger

log = get_logger(__name__)


class Wallet(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    public_key: str = Field(alias="PublicKey")
    private_key: str = Field(alias="PrivateKey", repr=False)
    source: str | None = None

    def address(self) -> str:
        """Address derived from the private key; the stored PublicKey is informational."""
        return derive_address(self.private_key)


async def load_wallet(path) -> Wallet:
    path = Path(path)
    try:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            content = await f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise WalletFileError(str(path), f"unreadable: {e}") from e
    try:
        wallet = Wallet.model_validate({**json.loads(content), "source": str(path)})
    except (json.JSONDecodeError, TypeError) as e:
        raise WalletFileError(str(path), f"malformed JSON: {e}") from e
    except ModelValidationError as e:
        raise WalletFileError(str(path), f"missing or invalid fields: {e.error_count()} error(s)") from e

    try:
        address = wallet.address()
    except InvalidKeyError as e:
        raise WalletFileError(str(path), str(e)) from e
    if wallet.public_key.lower() != address.lower():
        log.warning("WALLET_PUBLIC_KEY_MISMATCH", path=str(path), stored=wallet.public_key, derived=address)
    return wallet


async def load_wallets(directory) -> list[Wallet]:
    """Every ``*.json`` in *directory*, sorted by file name. One bad file fails the whole load."""
    directory = Path(directory)
    if not directory.is_dir():
        raise WalletFileError(str(directory), "not a directory")
    wallets = [await load_wallet(path) for path in sorted(directory.glob("*.json"))]
    log.info("WALLETS_LOADED", directory=str(directory), count=len(wallets))
    return wallets
