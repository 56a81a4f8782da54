"""Ethereum ledger client: web3.py over a lazily created httpx transport."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import httpx
from web3 import AsyncWeb3, Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3RPCError
from web3.providers.async_base import AsyncJSONBaseProvider
from web3.types import RPCEndpoint, RPCResponse, TxReceipt

from .errors import LedgerConnectionError, RevertError, RpcError

logger = logging.getLogger(__name__)

REVERT_PREFIX = "execution reverted: "


# ---------------------------------------------------------------------------
# Unit helpers
# ---------------------------------------------------------------------------


def parse_units(value: str | int | Decimal, unit: str = "ether") -> int:
    """Scale a human-readable decimal amount to the ledger's base unit (wei)."""
    return int(Web3.to_wei(Decimal(str(value)), unit))


def format_units(amount: int, unit: str = "ether") -> str:
    """Render a base-unit amount as a decimal string in ``unit``."""
    return str(Web3.from_wei(amount, unit))


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------


def translate_error(exc: Exception) -> RpcError:
    """Map a web3 contract or JSON-RPC error onto the harness hierarchy."""
    if isinstance(exc, ContractLogicError):
        message = exc.message or "execution reverted"
        if message.startswith(REVERT_PREFIX):
            message = message[len(REVERT_PREFIX) :]
        logger.error("Execution reverted: %s", message)
        return RevertError(message, data=exc.data)

    error: dict[str, Any] = {}
    if isinstance(exc, Web3RPCError) and exc.rpc_response:
        error = dict(exc.rpc_response.get("error") or {})
    message = str(error.get("message") or exc)
    code = error.get("code")
    logger.error("RPC error: %s", message)
    if "revert" in message.lower():
        return RevertError(message, code=code, data=error.get("data"))
    return RpcError(f"RPC error: {message}", code=code, data=error.get("data"))


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class HttpxProvider(AsyncJSONBaseProvider):
    """web3 provider that posts JSON-RPC through one httpx.AsyncClient.

    The client is created on the first request and released by
    ``disconnect()``.
    """

    def __init__(self, endpoint_uri: str, timeout: float = 30.0) -> None:
        super().__init__()
        self.endpoint_uri = endpoint_uri
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    def __str__(self) -> str:
        return f"HTTPX connection {self.endpoint_uri}"

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def make_request(self, method: RPCEndpoint, params: Any) -> RPCResponse:
        """Send one JSON-RPC request and return the decoded response object.

        Raises:
            LedgerConnectionError: when the node cannot be reached
            httpx.HTTPStatusError: on non-2xx HTTP response
        """
        logger.debug("RPC request: %s params=%s", method, params)

        client = self._ensure_client()
        try:
            response = await client.post(
                self.endpoint_uri,
                content=self.encode_rpc_request(method, params),
                headers={"Content-Type": "application/json"},
            )
        except httpx.RequestError as exc:
            raise LedgerConnectionError(
                f"Cannot reach ledger node at {self.endpoint_uri}: {exc}"
            ) from exc
        response.raise_for_status()

        logger.debug("RPC response: %s -> %d bytes", method, len(response.content))
        return self.decode_rpc_response(response.content)

    async def disconnect(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


# ---------------------------------------------------------------------------
# LedgerClient
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Account:
    """A node-managed account and its balance at the time it was read."""

    address: str
    balance: int


class LedgerClient:
    """Thin async client for an Ethereum development node.

    Holds a single AsyncWeb3 instance (lazy-initialized on first use) that
    every contract handle shares.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        poll_interval: float = 0.2,
        receipt_timeout: float = 120.0,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._poll_interval = poll_interval
        self._receipt_timeout = receipt_timeout
        self._w3: AsyncWeb3 | None = None
        self._accounts: list[str] | None = None

    @property
    def url(self) -> str:
        return self._url

    def _ensure_client(self) -> AsyncWeb3:
        if self._w3 is None:
            self._w3 = AsyncWeb3(HttpxProvider(self._url, timeout=self._timeout))
        return self._w3

    @property
    def w3(self) -> AsyncWeb3:
        return self._ensure_client()

    async def rpc(self, method: str, params: list[Any] | None = None) -> Any:
        """Send a raw JSON-RPC request through web3 and return the result value.

        Raises:
            LedgerConnectionError: when the node cannot be reached
            httpx.HTTPStatusError: on non-2xx HTTP response
            RevertError: when the node reports a reverted execution
            RpcError: on any other JSON-RPC-level error
        """
        try:
            return await self.w3.manager.coro_request(RPCEndpoint(method), params or [])
        except (ContractLogicError, Web3RPCError) as exc:
            raise translate_error(exc) from exc

    # -- Accounts ------------------------------------------------------------

    async def chain_id(self) -> int:
        return await self.w3.eth.chain_id

    async def account_addresses(self) -> list[str]:
        """Node-managed account addresses in the node's own stable order."""
        if self._accounts is None:
            self._accounts = [Web3.to_checksum_address(a) for a in await self.w3.eth.accounts]
        return list(self._accounts)

    async def list_accounts(self) -> list[Account]:
        """Accounts with freshly queried balances, in node order.

        The first account is the deployer/owner, the second the usual buyer.
        """
        return [
            Account(address=address, balance=await self.get_balance(address))
            for address in await self.account_addresses()
        ]

    async def get_balance(self, address: str) -> int:
        return await self.w3.eth.get_balance(Web3.to_checksum_address(address))

    # -- Transactions --------------------------------------------------------

    async def wait_for_receipt(self, tx_hash: Any) -> TxReceipt:
        """Wait until ``tx_hash`` is mined and return its receipt.

        Raises:
            TimeoutError: if no receipt shows up within ``receipt_timeout``
        """
        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout, poll_latency=self._poll_interval
            )
        except TimeExhausted as exc:
            raise TimeoutError(
                f"Transaction {tx_hex(tx_hash)} not mined after {self._receipt_timeout}s"
            ) from exc
        logger.debug(
            "Transaction mined: %s block=%s status=%s",
            tx_hex(tx_hash),
            receipt.get("blockNumber"),
            receipt.get("status"),
        )
        return receipt

    async def close(self) -> None:
        """Close the underlying HTTP client if it was created."""
        if self._w3 is not None:
            await self._w3.provider.disconnect()
            self._w3 = None


def tx_hex(tx_hash: Any) -> str:
    """Hex string form of a transaction hash given as bytes or str."""
    return tx_hash if isinstance(tx_hash, str) else Web3.to_hex(tx_hash)


def receipt_succeeded(receipt: Any) -> bool:
    """True unless the receipt carries a failing status."""
    return receipt.get("status", 1) == 1


async def connect(url: str, **kwargs: Any) -> LedgerClient:
    """Open a client and verify the node answers.

    Raises:
        LedgerConnectionError: if the endpoint is unreachable
    """
    client = LedgerClient(url, **kwargs)
    try:
        chain_id = await client.chain_id()
    except LedgerConnectionError:
        await client.close()
        raise
    except httpx.HTTPStatusError as exc:
        await client.close()
        raise LedgerConnectionError(
            f"Ledger node at {url} rejected the chain id request: {exc}"
        ) from exc
    logger.info("Connected to ledger %s (chain id %d)", url, chain_id)
    return client
