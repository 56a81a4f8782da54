"""Exception taxonomy for the marketplace harness.

Nothing here is recovered locally: every error aborts the running
scenario and reaches the caller unchanged.
"""

from typing import Any


class HarnessError(Exception):
    """Base class for every error raised by the harness."""


class LedgerConnectionError(HarnessError, ConnectionError):
    """The ledger node could not be reached."""


class RpcError(HarnessError, RuntimeError):
    """The node answered with a JSON-RPC error object."""

    def __init__(self, message: str, code: int | None = None, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.data = data


class RevertError(RpcError):
    """A contract-enforced precondition failed and the transaction reverted."""

    def __init__(
        self,
        reason: str,
        code: int | None = None,
        data: Any = None,
        tx_hash: str | None = None,
    ) -> None:
        super().__init__(reason, code=code, data=data)
        self.reason = reason
        self.tx_hash = tx_hash


class DeploymentError(HarnessError):
    """A contract could not be deployed."""


class NotFoundError(HarnessError, LookupError):
    """A queried artifact, token, or listing does not exist."""
