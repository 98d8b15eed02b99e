# /bscswap/core/signer.py
import time

from eth_account import Account as EthAccount
from web3 import Web3

from bscswap.core.chain import ChainClient
from bscswap.core.errors import SigningError, ValidationError
from bscswap.core.keys import KeyManager
from bscswap.core.logger import get_logger
from bscswap.core.models import PendingTransaction, SignedTransaction

log = get_logger(__name__)

SIGNATURE_LENGTH = 65


def split_signature(signature) -> tuple[bytes, bytes, int]:
    """Splits a 65-byte r || s || v signature (bytes or 0x hex).

    A recovery id of 0 or 1 is shifted to the 27/28 form that ecrecover expects.
    """
    if isinstance(signature, str):
        try:
            signature = Web3.to_bytes(hexstr=signature)
        except ValueError as e:
            raise ValidationError(f"signature is not hex: {e}") from e
    signature = bytes(signature)
    if len(signature) != SIGNATURE_LENGTH:
        raise ValidationError(f"signature must be {SIGNATURE_LENGTH} bytes, got {len(signature)}")
    v = signature[64]
    return signature[:32], signature[32:64], (v + 27 if v < 27 else v)


class TransactionSigner:
    """Signs legacy transactions with EIP-155 replay protection."""
    def __init__(self, chain: ChainClient, keys: KeyManager, chain_id: int | None = None):
        self.chain = chain
        self.keys = keys
        self._chain_id = chain_id

    async def chain_id(self) -> int:
        # Fetched once per session; a concurrent first call just writes the same value twice.
        if self._chain_id is None:
            self._chain_id = await self.chain.chain_id()
            log.info("CHAIN_ID_CACHED", chain_id=self._chain_id)
        return self._chain_id

    async def sign(self, pending: PendingTransaction) -> SignedTransaction:
        chain_id = await self.chain_id()
        account = self.keys.active
        if pending.from_address.lower() != account.address.lower():
            raise SigningError(
                f"transaction is from {pending.from_address}, active account is {account.address}"
            )

        tx = {
            "nonce": pending.nonce,
            "gasPrice": pending.gas_price,
            "gas": pending.gas_limit,
            "to": Web3.to_checksum_address(pending.to_address),
            "value": pending.value,
            "data": Web3.to_hex(pending.data),
            "chainId": chain_id,
        }
        try:
            signed = EthAccount.sign_transaction(tx, account.private_key.get_secret_value())
        except Exception as e:
            log.error("TRANSACTION_SIGNING_FAILED", nonce=pending.nonce, error=str(e))
            raise SigningError(f"could not sign transaction: {e}") from e

        result = SignedTransaction(
            raw_transaction=bytes(signed.raw_transaction),
            tx_hash=Web3.to_hex(signed.hash),
            nonce=pending.nonce,
            gas_price=pending.gas_price,
            gas_limit=pending.gas_limit,
            signed_at=int(time.time()),
        )
        log.debug("TRANSACTION_SIGNED", tx_hash=result.tx_hash, nonce=result.nonce,
                  chain_id=chain_id, signed_at=result.signed_at)
        return result
