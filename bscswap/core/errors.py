# /bscswap/core/errors.py
# Exception taxonomy shared by every layer of the helper.


class Web3HelperError(Exception):
    """Base class for all errors raised by bscswap."""


class ConfigurationError(Web3HelperError):
    """Required configuration is missing or unusable."""


class ConnectivityError(Web3HelperError):
    """An RPC dial or query failed at the transport level."""


class ValidationError(Web3HelperError):
    """Caller input was rejected before touching the network."""


class InvalidKeyError(ValidationError):
    pass


class ParseError(ValidationError):
    pass


class EstimationError(Web3HelperError):
    """The node rejected a gas estimation (simulated call reverted)."""


class SigningError(Web3HelperError):
    pass


class BroadcastError(Web3HelperError):
    """The node refused a signed transaction (underpriced, nonce too low, ...)."""


class CallRevertedError(Web3HelperError):
    def __init__(self, message: str, payload=None):
        super().__init__(message)
        self.payload = payload


class SwapRejectedError(Web3HelperError):
    def __init__(self, message: str, payload=None):
        super().__init__(message)
        self.payload = payload


class WalletFileError(Web3HelperError):
    def __init__(self, path: str, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path
