"""Error taxonomy shared by the gateways and the flow controller.

Every failure the bot reports to a user is one of the kinds below. Anything
else is unexpected and ends up in the top-level error handler.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Closed set of error kinds."""

    INVALID_INPUT_FORMAT = "invalid_input_format"
    INVALID_ADDRESS = "invalid_address"
    INVALID_SECRET_FORMAT = "invalid_secret_format"
    NO_WALLET_BOUND = "no_wallet_bound"
    GATEWAY_FAILURE = "gateway_failure"
    STALE_ACTION = "stale_action"


class BotError(Exception):
    """Base class for errors that are reported back to the chat."""

    kind: ErrorKind

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidInputFormat(BotError):
    """Malformed command arguments, wrong token count or bad amount."""

    kind = ErrorKind.INVALID_INPUT_FORMAT


class InvalidAddress(BotError):
    """A recipient address or token mint is not a valid public key."""

    kind = ErrorKind.INVALID_ADDRESS


class InvalidSecretFormat(BotError):
    """Input is neither a valid seed phrase nor a valid encoded private key."""

    kind = ErrorKind.INVALID_SECRET_FORMAT


class NoWalletBound(BotError):
    """The chat has not imported a wallet yet."""

    kind = ErrorKind.NO_WALLET_BOUND

    def __init__(self, message: str = "You need to import a wallet first. Use /importwallet"):
        super().__init__(message)


class GatewayFailure(BotError):
    """RPC/HTTP error, timeout or malformed response from an external service.

    ``signature`` is set when a transaction was submitted but its outcome is
    unknown (e.g. confirmation timed out).
    """

    kind = ErrorKind.GATEWAY_FAILURE

    def __init__(self, message: str, signature: Optional[str] = None):
        super().__init__(message)
        self.signature = signature


class StaleAction(BotError):
    """Confirm/cancel pressed with no matching pending action."""

    kind = ErrorKind.STALE_ACTION
