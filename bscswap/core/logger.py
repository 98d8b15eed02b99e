# /bscswap/core/logger.py
import logging
import re

import structlog
from structlog.contextvars import bind_contextvars
import sentry_sdk
from prometheus_client import Counter

# --- Prometheus Metrics ---
TX_SUBMITTED = Counter("bscswap_transactions_submitted_total", "Transactions accepted by the node", ["kind"])
TX_FAILED = Counter("bscswap_transactions_failed_total", "Transactions that never reached the mempool", ["stage"])
LOGS_DELIVERED = Counter("bscswap_logs_delivered_total", "Log entries forwarded to consumers")
LOGS_DROPPED = Counter("bscswap_logs_dropped_total", "Log entries discarded because the queue was full")
SUBSCRIPTION_FAILURES = Counter("bscswap_subscription_failures_total", "Log subscriptions that terminated")

# 32-byte hex strings that are not tx hashes are treated as private keys.
_PRIVATE_KEY_RE = re.compile(r"\b(0x)?[0-9a-fA-F]{64}\b")
_HASH_KEYS = {"tx_hash", "transaction_hash", "replaced_tx_hash", "block_hash", "topics"}
REDACTED = "<redacted>"


def redact_secrets(logger, method_name: str, event_dict: dict) -> dict:
    """Structlog processor that masks anything shaped like a private key.

    Follows the processor call signature expected by structlog:

        (logger, method_name, event_dict) -> event_dict

    Hash-valued fields are left alone since they share the same shape.
    """
    for key, value in event_dict.items():
        if key in _HASH_KEYS or not isinstance(value, str):
            continue
        event_dict[key] = _PRIVATE_KEY_RE.sub(REDACTED, value)
    return event_dict


def configure_logging(level: str = "INFO", fmt: str = "json", sentry_dsn: str | None = None):
    if sentry_dsn:
        sentry_sdk.init(dsn=sentry_dsn, traces_sample_rate=1.0)

    renderer = structlog.processors.JSONRenderer() if fmt == "json" else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_secrets,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level.upper())),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str):
    return structlog.get_logger(name)


def bind_account(address: str):
    bind_contextvars(account=address)
