# /bscswap/core/models.py
# Immutable records passed between the pipeline stages.
from pydantic import BaseModel, ConfigDict, Field


class PendingTransaction(BaseModel):
    """A legacy transaction with every field resolved, ready to be signed."""
    model_config = ConfigDict(frozen=True)

    from_address: str
    to_address: str
    value: int = Field(ge=0)
    data: bytes = b""
    nonce: int = Field(ge=0)
    gas_price: int = Field(ge=0)
    gas_limit: int = Field(ge=0)


class SignedTransaction(BaseModel):
    model_config = ConfigDict(frozen=True)

    raw_transaction: bytes
    tx_hash: str
    nonce: int
    gas_price: int
    gas_limit: int
    # Wall-clock time of signing, for logs only; not part of the signature.
    signed_at: int


class SubmissionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    tx_hash: str
    nonce: int
    gas_price: int
    gas_limit: int


class Reserve(BaseModel):
    model_config = ConfigDict(frozen=True)

    reserve0: int
    reserve1: int
    block_timestamp_last: int


class LogEntry(BaseModel):
    """Raw log metadata as delivered by an ``eth_subscribe`` logs stream."""
    model_config = ConfigDict(frozen=True)

    address: str
    topics: list[str] = Field(default_factory=list)
    data: str = "0x"
    block_number: int | None = None
    transaction_hash: str | None = None
    log_index: int | None = None
    removed: bool = False

    @classmethod
    def from_rpc(cls, payload: dict) -> "LogEntry":
        def as_int(value):
            if value is None:
                return None
            return int(value, 16) if isinstance(value, str) else int(value)

        return cls(
            address=payload["address"],
            topics=list(payload.get("topics") or []),
            data=payload.get("data") or "0x",
            block_number=as_int(payload.get("blockNumber")),
            transaction_hash=payload.get("transactionHash"),
            log_index=as_int(payload.get("logIndex")),
            removed=bool(payload.get("removed", False)),
        )


class SubscriptionFailed(BaseModel):
    """Emitted once by a delivery loop right before it stops."""
    model_config = ConfigDict(frozen=True)

    address: str
    error: str
