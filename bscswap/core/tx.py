# /bscswap/core/tx.py
# Transaction submission: build, resolve gas, reserve nonce, sign, broadcast.
import time

from web3 import Web3

from bscswap.core.address import to_checksum_address
from bscswap.core.calldata import (
    encode_swap_exact_eth_for_tokens,
    encode_token_transfer,
    generate_path,
)
from bscswap.core.chain import ChainClient
from bscswap.core.config import SubmitterConfig
from bscswap.core.errors import (
    BroadcastError,
    CallRevertedError,
    SigningError,
    SwapRejectedError,
    ValidationError,
)
from bscswap.core.gas_estimator import GasEstimator
from bscswap.core.keys import KeyManager
from bscswap.core.logger import TX_FAILED, TX_SUBMITTED, bind_account, get_logger
from bscswap.core.models import PendingTransaction, SubmissionResult
from bscswap.core.nonce_manager import NonceManager
from bscswap.core.signer import TransactionSigner

log = get_logger(__name__)

TRANSFER_GAS_LIMIT = 21_000
DEFAULT_REPLACEMENT_MULTIPLIER = 2
DEFAULT_BUMP_PERCENT = 10


def _check_amount(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{name} must be a non-negative integer in base units, got {value!r}")
    return value


class TransactionSubmitter:
    """Sends value, token transfers and swaps from a single active account.

    Submissions for the account are serialised by the nonce manager, so
    concurrent callers each get a distinct, gap-free nonce. Nothing is
    retried: broadcast failures reach the caller as BroadcastError.
    """
    def __init__(self, chain: ChainClient, keys: KeyManager, config: SubmitterConfig | None = None,
                 redis_client=None):
        self.chain = chain
        self.keys = keys
        self.config = config or SubmitterConfig()
        self.gas = GasEstimator(chain, self.config.default_gas_limit)
        self.signer = TransactionSigner(chain, keys, chain_id=self.config.chain_id)
        self.nonce_manager = NonceManager(chain, redis_client)
        bind_account(self.keys.address)

    @property
    def address(self) -> str:
        return self.keys.address

    async def chain_id(self) -> int:
        return await self.signer.chain_id()

    async def switch_account(self, plain_private_key: str) -> str:
        async with self.nonce_manager.hold():
            account = self.keys.switch_account(plain_private_key)
        bind_account(account.address)
        return account.address

    async def submit(self, to: str, value: int = 0, data: bytes = b"", *, gas_price: int | None = None,
                     gas_limit: int | None = None, nonce: int | None = None,
                     kind: str = "transaction") -> SubmissionResult:
        to = to_checksum_address(to)
        value = _check_amount("value", value)
        data = bytes(data)

        price = await self.gas.resolve_gas_price(gas_price)
        limit = await self.gas.resolve_gas_limit(to, data, gas_limit, sender=self.address, value=value)

        async with self.nonce_manager.reserve(self.address, nonce) as used_nonce:
            pending = PendingTransaction(
                from_address=self.address,
                to_address=to,
                value=value,
                data=data,
                nonce=used_nonce,
                gas_price=price,
                gas_limit=limit,
            )
            try:
                signed = await self.signer.sign(pending)
            except SigningError:
                TX_FAILED.labels("sign").inc()
                raise
            try:
                tx_hash = await self.chain.send_raw_transaction(signed)
            except BroadcastError as e:
                TX_FAILED.labels("broadcast").inc()
                log.error("TRANSACTION_BROADCAST_REJECTED", kind=kind, nonce=used_nonce, to=to, error=str(e))
                raise

        TX_SUBMITTED.labels(kind).inc()
        log.info("TRANSACTION_BROADCASTED", kind=kind, tx_hash=tx_hash, nonce=used_nonce, to=to,
                 value=value, gas_price=price, gas_limit=limit, signed_at=signed.signed_at)
        return SubmissionResult(tx_hash=tx_hash, nonce=used_nonce, gas_price=price, gas_limit=limit)

    async def send_value(self, to: str, amount_wei: int, *, gas_price: int | None = None,
                         gas_limit: int | None = None) -> SubmissionResult:
        return await self.submit(to, amount_wei, b"", gas_price=gas_price, gas_limit=gas_limit, kind="value")

    async def send_token(self, token: str, to: str, amount: int, *, gas_price: int | None = None,
                         gas_limit: int | None = None) -> SubmissionResult:
        """ERC-20 ``transfer``: the transaction goes to the token contract with zero value."""
        data = encode_token_transfer(to, _check_amount("amount", amount))
        return await self.submit(token, 0, data, gas_price=gas_price, gas_limit=gas_limit, kind="token_transfer")

    async def buy_swap(self, token: str, amount_in: int, *, min_amount_out: int | None = None,
                       deadline: int | None = None, gas_price: int | None = None,
                       gas_limit: int | None = None) -> SubmissionResult:
        """Swaps native currency for *token* through the router.

        Calls ``swapExactETHForTokensSupportingFeeOnTransferTokens`` with the
        path [wrapped native, token]. The call is simulated first so router
        reverts surface as SwapRejectedError before anything is signed.
        """
        if isinstance(amount_in, bool) or not isinstance(amount_in, int) or amount_in <= 0:
            raise ValidationError(f"swap amount must be a positive integer, got {amount_in!r}")
        floor = self.config.min_amount_out if min_amount_out is None else min_amount_out
        if isinstance(floor, bool) or not isinstance(floor, int) or floor < 1:
            raise ValidationError(f"minimum output must be at least 1 base unit, got {floor!r}")
        if floor == 1:
            log.warning("SWAP_WITHOUT_SLIPPAGE_PROTECTION", token=token, amount_in=amount_in)

        router = to_checksum_address(self.config.router_address)
        path = generate_path(self.config.wrapped_native_address, token)
        if deadline is None:
            deadline = int(time.time()) + self.config.swap_deadline_seconds
        data = encode_swap_exact_eth_for_tokens(floor, path, self.address, deadline)

        try:
            await self.chain.call({"from": self.address, "to": router, "value": amount_in,
                                   "data": Web3.to_hex(data)})
        except CallRevertedError as e:
            TX_FAILED.labels("swap_simulation").inc()
            log.error("SWAP_REJECTED_BY_ROUTER", token=path[1], amount_in=amount_in, payload=str(e.payload))
            raise SwapRejectedError(f"router rejected swap: {e}", payload=e.payload) from e

        try:
            return await self.submit(router, amount_in, data, gas_price=gas_price, gas_limit=gas_limit,
                                     kind="swap")
        except BroadcastError as e:
            if "revert" in str(e).lower():
                raise SwapRejectedError(f"router rejected swap: {e}", payload=str(e)) from e
            raise

    async def cancel_or_replace(self, to: str, nonce: int, multiplier: int = DEFAULT_REPLACEMENT_MULTIPLIER,
                                *, gas_limit: int | None = None) -> SubmissionResult:
        """Supersedes an unconfirmed transaction with a zero-value one at the same nonce.

        The gas price is the current suggestion times *multiplier*. Most nodes
        want a bump of at least 10% over the original, so a multiplier of 1 can
        be rejected as an underpriced replacement.
        """
        if isinstance(multiplier, bool) or not isinstance(multiplier, int) or multiplier < 1:
            raise ValidationError(f"multiplier must be an integer >= 1, got {multiplier!r}")
        nonce = _check_amount("nonce", nonce)
        suggested = await self.chain.gas_price()
        bumped = suggested * multiplier
        log.info("TRANSACTION_REPLACEMENT", nonce=nonce, suggested_gas_price=suggested, gas_price=bumped)
        return await self.submit(
            to, 0, b"",
            gas_price=bumped,
            gas_limit=TRANSFER_GAS_LIMIT if gas_limit is None else gas_limit,
            nonce=nonce,
            kind="cancel",
        )

    async def cancel_transaction(self, tx_hash: str, bump_percent: int = DEFAULT_BUMP_PERCENT) -> SubmissionResult:
        """Cancels a known pending transaction by sending zero value to ourselves at its nonce."""
        if isinstance(bump_percent, bool) or not isinstance(bump_percent, int) or bump_percent < 0:
            raise ValidationError(f"bump_percent must be a non-negative integer, got {bump_percent!r}")
        original = await self.chain.get_transaction(tx_hash)
        if original["from"].lower() != self.address.lower():
            raise ValidationError(f"transaction {tx_hash} was not sent by {self.address}")
        if original.get("blockNumber") is not None:
            raise ValidationError(f"transaction {tx_hash} is already mined")

        old_price = original["gasPrice"]
        new_price = old_price + old_price * bump_percent // 100
        log.info("TRANSACTION_CANCEL", replaced_tx_hash=tx_hash, nonce=original["nonce"],
                 old_gas_price=old_price, gas_price=new_price)
        return await self.submit(
            self.address, 0, b"",
            gas_price=new_price,
            gas_limit=original["gas"],
            nonce=original["nonce"],
            kind="cancel",
        )
