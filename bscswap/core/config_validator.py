# /bscswap/core/config_validator.py
# Run at startup to make sure a command has what it needs before dialing.
from bscswap.core.config import Settings
from bscswap.core.errors import ConfigurationError
from bscswap.core.logger import get_logger

log = get_logger(__name__)


def validate(settings: Settings, require_key: bool = True, require_ws: bool = False):
    log.debug("CONFIG_VALIDATION_START", require_key=require_key, require_ws=require_ws)
    errors = []

    if not settings.RPC_HTTP_URL and not settings.RPC_WS_URL:
        errors.append("Missing required configuration: RPC_HTTP_URL or RPC_WS_URL")
    if require_ws and not settings.RPC_WS_URL:
        errors.append("Missing required configuration: RPC_WS_URL")
    if require_key and not settings.PRIVATE_KEY:
        errors.append("Missing required configuration: PRIVATE_KEY")
    if settings.DEFAULT_GAS_LIMIT <= 0:
        errors.append("DEFAULT_GAS_LIMIT must be positive")
    if settings.MIN_AMOUNT_OUT < 1:
        errors.append("MIN_AMOUNT_OUT must be at least 1")

    if errors:
        for error in errors:
            log.critical(error)
        raise ConfigurationError("System configuration is incomplete. Halting.")

    log.debug("CONFIG_VALIDATION_PASSED")
