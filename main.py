# /main.py
# Command-line entry point: one subcommand per helper operation.
import argparse
import asyncio
import sys
from decimal import Decimal

import redis.asyncio as redis

from bscswap.adapters.dex import DexAdapter
from bscswap.adapters.events import EventSubscriber
from bscswap.adapters.wallets import load_wallet, load_wallets
from bscswap.core.calldata import generate_path
from bscswap.core.chain import ChainClient
from bscswap.core.config import Settings, load_settings
from bscswap.core.config_validator import validate as validate_config
from bscswap.core.errors import ConfigurationError, ConnectivityError, Web3HelperError
from bscswap.core.keys import KeyManager
from bscswap.core.logger import configure_logging, get_logger
from bscswap.core.models import SubmissionResult, SubscriptionFailed
from bscswap.core.tx import DEFAULT_REPLACEMENT_MULTIPLIER, TransactionSubmitter
from bscswap.core.units import ether_to_wei, gwei_to_wei, to_base_units, wei_to_ether, wei_to_gwei

log = get_logger("bscswap.cli")

# Commands that sign transactions need a private key.
SIGNING_COMMANDS = {"info", "send", "send-token", "buy", "cancel", "cancel-tx"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bscswap", description="BNB Smart Chain transaction and swap helper")
    parser.add_argument("--env-file", default=".env", help="Settings file (required)")
    parser.add_argument("--wallet", help="Use the private key from this wallet JSON file")
    parser.add_argument("--log-level", help="Override LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("info", help="Chain id, block number and active account balance")

    balance = sub.add_parser("balance", help="Native balance of an address")
    balance.add_argument("address", nargs="?")

    is_contract = sub.add_parser("is-contract", help="Whether an address holds bytecode")
    is_contract.add_argument("address")

    def add_gas_options(p):
        p.add_argument("--gas-price-gwei", type=Decimal, help="Gas price override in gwei")
        p.add_argument("--gas-limit", type=int, help="Gas limit override")

    send = sub.add_parser("send", help="Send native currency")
    send.add_argument("--to", required=True)
    send.add_argument("--amount", required=True, help="Amount in ether units")
    add_gas_options(send)

    send_token = sub.add_parser("send-token", help="Transfer an ERC-20 token")
    send_token.add_argument("--token", required=True)
    send_token.add_argument("--to", required=True)
    send_token.add_argument("--amount", required=True, help="Amount in token units")
    send_token.add_argument("--decimals", type=int, default=18)
    add_gas_options(send_token)

    buy = sub.add_parser("buy", help="Swap native currency for a token through the router")
    buy.add_argument("--token", required=True)
    buy.add_argument("--amount", required=True, help="Native amount to spend, in ether units")
    floor = buy.add_mutually_exclusive_group()
    floor.add_argument("--min-out", type=int, help="Minimum output in token base units")
    floor.add_argument("--slippage", type=Decimal, help="Derive the minimum output from a router quote, e.g. 0.01")
    add_gas_options(buy)

    cancel = sub.add_parser("cancel", help="Replace a pending nonce with a zero-value transaction")
    cancel.add_argument("--to", required=True)
    cancel.add_argument("--nonce", required=True, type=int)
    cancel.add_argument("--multiplier", type=int, default=DEFAULT_REPLACEMENT_MULTIPLIER)

    cancel_tx = sub.add_parser("cancel-tx", help="Cancel a pending transaction by hash (10%% gas bump)")
    cancel_tx.add_argument("tx_hash")
    cancel_tx.add_argument("--bump-percent", type=int, default=10)

    pair = sub.add_parser("pair", help="Pair address for wrapped native / token")
    pair.add_argument("--token", required=True)

    reserves = sub.add_parser("reserves", help="Reserves of a pair")
    reserves.add_argument("--pair", required=True)

    quote = sub.add_parser("quote", help="Router quote for buying a token with native currency")
    quote.add_argument("--token", required=True)
    quote.add_argument("--amount", required=True, help="Native amount in ether units")

    subscribe = sub.add_parser("subscribe", help="Print raw logs emitted by contracts")
    subscribe.add_argument("addresses", nargs="+")

    sub.add_parser("wallets", help="List wallet files and their derived addresses")
    return parser


def _gas_overrides(args) -> dict:
    price = getattr(args, "gas_price_gwei", None)
    return {
        "gas_price": gwei_to_wei(price) if price is not None else None,
        "gas_limit": getattr(args, "gas_limit", None),
    }


def _report(settings: Settings, result: SubmissionResult):
    print(f"Transaction Hash: {result.tx_hash}")
    print(f"Nonce: {result.nonce}")
    print(f"Gas: {result.gas_limit} @ {wei_to_gwei(result.gas_price)} gwei")
    print(f"Explorer: {settings.EXPLORER_TX_URL}{result.tx_hash}")


async def _private_key(args, settings: Settings) -> str:
    if args.wallet:
        wallet = await load_wallet(args.wallet)
        return wallet.private_key
    if settings.PRIVATE_KEY is None:
        raise ConfigurationError("Missing required configuration: PRIVATE_KEY")
    return settings.PRIVATE_KEY.get_secret_value()


async def run_command(args, settings: Settings, chain: ChainClient):
    dex = DexAdapter(chain, settings.ROUTER_ADDRESS, settings.FACTORY_ADDRESS, settings.WRAPPED_NATIVE_ADDRESS)

    if args.command == "wallets":
        for wallet in await load_wallets(settings.WALLETS_DIR):
            print(f"{wallet.source}: {wallet.address()}")
        return

    if args.command == "balance":
        address = args.address or KeyManager(await _private_key(args, settings)).address
        print(f"{address}: {wei_to_ether(await chain.get_balance(address))}")
        return

    if args.command == "is-contract":
        print(await chain.is_contract(args.address))
        return

    if args.command == "pair":
        print(await dex.get_pair(args.token))
        return

    if args.command == "reserves":
        print((await dex.get_reserves(args.pair)).model_dump_json())
        return

    if args.command == "quote":
        amounts = await dex.get_amounts_out(ether_to_wei(args.amount), generate_path(dex.wrapped_native_address, args.token))
        print(amounts[-1])
        return

    if args.command == "subscribe":
        subscriber = EventSubscriber.from_chain(
            chain, queue_size=settings.SUBSCRIPTION_QUEUE_SIZE, overflow=settings.SUBSCRIPTION_OVERFLOW
        )
        async with subscriber:
            await subscriber.subscribe(args.addresses)
            async for item in subscriber.stream():
                if isinstance(item, SubscriptionFailed):
                    print(f"subscription {item.address} ended: {item.error}", file=sys.stderr)
                else:
                    print(item.model_dump_json())
        return

    redis_client = redis.from_url(settings.REDIS_URL) if settings.REDIS_URL else None
    if settings.PRIVATE_KEY is not None:
        keys = KeyManager(settings.PRIVATE_KEY.get_secret_value())
    else:
        keys = KeyManager(await _private_key(args, settings))
    submitter = TransactionSubmitter(chain, keys, settings.submitter_config(), redis_client=redis_client)
    try:
        if args.wallet and settings.PRIVATE_KEY is not None:
            await submitter.switch_account(await _private_key(args, settings))

        if args.command == "info":
            print(f"Chain ID: {await submitter.chain_id()}")
            print(f"Block: {await chain.block_number()}")
            print(f"Account: {submitter.address}")
            print(f"Balance: {wei_to_ether(await chain.get_balance(submitter.address))}")
        elif args.command == "send":
            _report(settings, await submitter.send_value(args.to, ether_to_wei(args.amount), **_gas_overrides(args)))
        elif args.command == "send-token":
            amount = to_base_units(args.amount, args.decimals)
            _report(settings, await submitter.send_token(args.token, args.to, amount, **_gas_overrides(args)))
        elif args.command == "buy":
            amount_in = ether_to_wei(args.amount)
            min_out = args.min_out
            if args.slippage is not None:
                path = generate_path(dex.wrapped_native_address, args.token)
                min_out = await dex.min_amount_out(amount_in, path, args.slippage)
            _report(settings, await submitter.buy_swap(args.token, amount_in, min_amount_out=min_out,
                                                       **_gas_overrides(args)))
        elif args.command == "cancel":
            _report(settings, await submitter.cancel_or_replace(args.to, args.nonce, args.multiplier))
        elif args.command == "cancel-tx":
            _report(settings, await submitter.cancel_transaction(args.tx_hash, args.bump_percent))
    finally:
        if redis_client is not None:
            await redis_client.aclose()


async def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings(args.env_file)
    except ConfigurationError as e:
        configure_logging()
        log.critical("FAILED_TO_LOAD_SETTINGS", error=str(e))
        return 2

    configure_logging(
        args.log_level or settings.LOG_LEVEL,
        settings.LOG_FORMAT,
        settings.SENTRY_DSN.get_secret_value() if settings.SENTRY_DSN else None,
    )
    try:
        validate_config(
            settings,
            require_key=args.command in SIGNING_COMMANDS and not args.wallet,
            require_ws=args.command == "subscribe",
        )
        chain = await ChainClient.connect(settings.RPC_HTTP_URL, settings.RPC_WS_URL, settings.RPC_TIMEOUT_SECONDS)
    except (ConfigurationError, ConnectivityError) as e:
        log.critical("STARTUP_FAILED", error=str(e))
        return 2

    try:
        await run_command(args, settings, chain)
    except Web3HelperError as e:
        log.error("COMMAND_FAILED", command=args.command, error=str(e), error_type=type(e).__name__)
        return 1
    finally:
        await chain.close()
    return 0


def run():
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
