# /bscswap/core/config.py
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from bscswap.core.errors import ConfigurationError

# PancakeSwap V2 on BSC testnet
PANCAKE_TESTNET_ROUTER = "0x9Ac64Cc6e4415144C455BD8E4837Fea55603e5c3"
PANCAKE_TESTNET_FACTORY = "0xB7926C0430Afb07AA7DEfDE6DA862aE0Bde767bc"
WBNB_TESTNET = "0xae13d989daC2f0dEbFf460aC112a837C89BAa7cd"

DEFAULT_GAS_LIMIT = 7_000_000
DEFAULT_SWAP_DEADLINE_SECONDS = 10_000


class SubmitterConfig(BaseModel):
    """Everything the transaction submitter needs, fixed at construction."""
    model_config = ConfigDict(frozen=True)

    router_address: str = PANCAKE_TESTNET_ROUTER
    wrapped_native_address: str = WBNB_TESTNET
    default_gas_limit: int = DEFAULT_GAS_LIMIT
    swap_deadline_seconds: int = DEFAULT_SWAP_DEADLINE_SECONDS
    # A floor of 1 base unit means no slippage protection at all.
    min_amount_out: int = 1
    chain_id: int | None = None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Account
    PRIVATE_KEY: SecretStr | None = None
    WALLETS_DIR: str = "./wallets"

    # RPC endpoints
    RPC_HTTP_URL: str | None = None
    RPC_WS_URL: str | None = None
    RPC_TIMEOUT_SECONDS: float = 30.0
    CHAIN_ID: int | None = None

    # Exchange contracts
    ROUTER_ADDRESS: str = PANCAKE_TESTNET_ROUTER
    FACTORY_ADDRESS: str = PANCAKE_TESTNET_FACTORY
    WRAPPED_NATIVE_ADDRESS: str = WBNB_TESTNET

    # Transaction policy
    DEFAULT_GAS_LIMIT: int = DEFAULT_GAS_LIMIT
    SWAP_DEADLINE_SECONDS: int = DEFAULT_SWAP_DEADLINE_SECONDS
    MIN_AMOUNT_OUT: int = 1

    # Subscriptions
    SUBSCRIPTION_QUEUE_SIZE: int = 1000
    SUBSCRIPTION_OVERFLOW: Literal["block", "drop"] = "block"

    # Operational
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "json"
    SENTRY_DSN: SecretStr | None = None
    REDIS_URL: str | None = None  # enables a cross-process nonce lock
    EXPLORER_TX_URL: str = "https://testnet.bscscan.com/tx/"

    def submitter_config(self) -> SubmitterConfig:
        return SubmitterConfig(
            router_address=self.ROUTER_ADDRESS,
            wrapped_native_address=self.WRAPPED_NATIVE_ADDRESS,
            default_gas_limit=self.DEFAULT_GAS_LIMIT,
            swap_deadline_seconds=self.SWAP_DEADLINE_SECONDS,
            min_amount_out=self.MIN_AMOUNT_OUT,
            chain_id=self.CHAIN_ID,
        )


def load_settings(env_file: str = ".env") -> Settings:
    """Loads settings from *env_file* and the process environment.

    A missing env file is fatal: the helper never runs against implicit
    defaults for keys and endpoints.
    """
    if not Path(env_file).is_file():
        raise ConfigurationError(f"Error loading {env_file} file: not found")
    try:
        return Settings(_env_file=env_file)
    except ValueError as e:
        raise ConfigurationError(f"Invalid settings in {env_file}: {e}") from e
