"""Compiled contract artifacts, deployment, and ABI-driven contract handles.

A ``Contract`` binds an ABI to a deployed address and a calling account on
top of a web3 contract object. Writes block until the receipt is mined.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from web3 import Web3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError, Web3RPCError
from web3.logs import DISCARD
from web3.types import EventData, TxReceipt

from .client import LedgerClient, receipt_succeeded, translate_error, tx_hex
from .errors import DeploymentError, NotFoundError, RevertError, RpcError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Artifacts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Artifact:
    """A compiled contract: its ABI and creation bytecode."""

    name: str
    abi: list[dict] = field(repr=False)
    bytecode: str = field(repr=False)
    path: Path | None = None

    @property
    def constructor(self) -> dict | None:
        return next((e for e in self.abi if e.get("type") == "constructor"), None)


def load_artifact(name: str, artifacts_dir: str | Path) -> Artifact:
    """Find ``<name>.json`` under ``artifacts_dir`` and load it.

    Accepts Hardhat artifacts (``bytecode`` as a hex string) and Foundry
    artifacts (``bytecode.object``).

    Raises:
        NotFoundError: if no artifact with that name exists
    """
    root = Path(artifacts_dir)
    if not root.is_dir():
        raise NotFoundError(f"Artifacts directory not found: {root}")

    matches = sorted(root.rglob(f"{name}.json"))
    if not matches:
        raise NotFoundError(f"No compiled artifact named {name!r} under {root}")
    if len(matches) > 1:
        logger.warning("Several artifacts named %s, using %s", name, matches[0])
    path = matches[0]

    with open(path) as f:
        data = json.load(f)
    if "abi" not in data:
        raise NotFoundError(f"{path} is not a contract artifact (no 'abi' key)")

    bytecode = data.get("bytecode") or "0x"
    if isinstance(bytecode, dict):
        bytecode = bytecode.get("object") or "0x"
    if not bytecode.startswith("0x"):
        bytecode = "0x" + bytecode

    return Artifact(
        name=data.get("contractName", name),
        abi=data["abi"],
        bytecode=bytecode,
        path=path,
    )


# ---------------------------------------------------------------------------
# Contract handle
# ---------------------------------------------------------------------------


class Contract:
    """A deployed contract bound to a caller account."""

    def __init__(
        self,
        client: LedgerClient,
        address: str,
        abi: list[dict],
        caller: str | None = None,
        name: str = "contract",
    ) -> None:
        self._client = client
        self._address = Web3.to_checksum_address(address)
        self._abi = abi
        self._caller = Web3.to_checksum_address(caller) if caller else None
        self._name = name
        self._contract = client.w3.eth.contract(
            address=self._address, abi=abi, decode_tuples=True
        )

    def __repr__(self) -> str:
        return f"<Contract {self._name} at {self._address}>"

    @property
    def address(self) -> str:
        return self._address

    @property
    def name(self) -> str:
        return self._name

    @property
    def caller(self) -> str | None:
        return self._caller

    @property
    def client(self) -> LedgerClient:
        return self._client

    def connect(self, caller: str) -> "Contract":
        """Same contract, transacting as ``caller``."""
        return Contract(self._client, self._address, self._abi, caller=caller, name=self._name)

    # -- ABI lookup ----------------------------------------------------------

    def has_function(self, fn_name: str) -> bool:
        return any(e.get("type") == "function" and e.get("name") == fn_name for e in self._abi)

    def has_event(self, event_name: str) -> bool:
        return any(e.get("type") == "event" and e.get("name") == event_name for e in self._abi)

    def _function(self, fn_name: str, nargs: int) -> Any:
        """The web3 contract function bound to ``nargs`` arguments' overload."""
        candidates = [
            e for e in self._abi if e.get("type") == "function" and e.get("name") == fn_name
        ]
        if not candidates:
            raise NotFoundError(f"{self._name} has no function {fn_name!r}")
        if not any(len(e.get("inputs", [])) == nargs for e in candidates):
            raise TypeError(f"{self._name}.{fn_name} takes no overload with {nargs} argument(s)")
        return getattr(self._contract.functions, fn_name)

    def encode_call(self, fn_name: str, *args: Any) -> str:
        """Selector plus ABI-encoded arguments, as hex call data."""
        self._function(fn_name, len(args))
        return self._contract.encode_abi(fn_name, args=list(args))

    async def _sender(self) -> str:
        if self._caller is not None:
            return self._caller
        return (await self._client.account_addresses())[0]

    # -- Calls ---------------------------------------------------------------

    async def call(self, fn_name: str, *args: Any) -> Any:
        """Run a read-only function; a single output is returned unwrapped.

        Struct outputs come back as named tuples.
        """
        fn = self._function(fn_name, len(args))
        try:
            return await fn(*args).call({"from": await self._sender()})
        except BadFunctionCallOutput as exc:
            raise RpcError(
                f"{self._name}.{fn_name} returned no data (no code at {self._address}?)"
            ) from exc
        except (ContractLogicError, Web3RPCError) as exc:
            raise translate_error(exc) from exc

    async def transact(self, fn_name: str, *args: Any, value: int = 0) -> TxReceipt:
        """Send a state-changing call and wait for it to be mined.

        Raises:
            RevertError: if the node rejects it or the receipt reports failure
        """
        fn = self._function(fn_name, len(args))
        tx: dict[str, Any] = {"from": await self._sender()}
        if value:
            tx["value"] = value

        try:
            tx_hash = await fn(*args).transact(tx)
        except (ContractLogicError, Web3RPCError) as exc:
            raise translate_error(exc) from exc
        logger.debug("Transaction submitted: %s.%s %s", self._name, fn_name, tx_hex(tx_hash))

        receipt = await self._client.wait_for_receipt(tx_hash)
        if not receipt_succeeded(receipt):
            raise RevertError(f"{self._name}.{fn_name} reverted", tx_hash=tx_hex(tx_hash))
        return receipt

    # -- Events --------------------------------------------------------------

    def decode_events(self, receipt: TxReceipt, event_name: str) -> list[EventData]:
        """Every ``event_name`` log this contract emitted in ``receipt``."""
        if not self.has_event(event_name):
            raise NotFoundError(f"{self._name} has no event {event_name!r}")
        event = getattr(self._contract.events, event_name)()
        return [
            e
            for e in event.process_receipt(receipt, errors=DISCARD)
            if e["address"] == self._address
        ]


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class ContractFactory:
    """Loads compiled artifacts by name and deploys them."""

    def __init__(self, client: LedgerClient, artifacts_dir: str | Path = "artifacts") -> None:
        self._client = client
        self._artifacts_dir = Path(artifacts_dir)

    @property
    def artifacts_dir(self) -> Path:
        return self._artifacts_dir

    def load(self, name: str) -> Artifact:
        return load_artifact(name, self._artifacts_dir)

    async def deploy(
        self,
        artifact: Artifact | str,
        *args: Any,
        deployer: str | None = None,
        value: int = 0,
    ) -> Contract:
        """Deploy ``artifact`` and wait until the deployment is mined.

        Raises:
            NotFoundError: if ``artifact`` is a name with no compiled artifact
            DeploymentError: if the bytecode is missing or the deployment reverts
        """
        if isinstance(artifact, str):
            artifact = self.load(artifact)
        if artifact.bytecode in ("", "0x"):
            raise DeploymentError(
                f"{artifact.name} has no creation bytecode (abstract or interface?)"
            )

        constructor = artifact.constructor
        ctor_inputs = constructor.get("inputs", []) if constructor else []
        if len(args) != len(ctor_inputs):
            raise DeploymentError(
                f"{artifact.name} constructor takes {len(ctor_inputs)} argument(s), got {len(args)}"
            )

        sender = Web3.to_checksum_address(
            deployer or (await self._client.account_addresses())[0]
        )
        tx: dict[str, Any] = {"from": sender}
        if value:
            tx["value"] = value

        logger.info("Deploying %s from %s", artifact.name, sender)
        pending = self._client.w3.eth.contract(abi=artifact.abi, bytecode=artifact.bytecode)
        try:
            tx_hash = await pending.constructor(*args).transact(tx)
        except (ContractLogicError, Web3RPCError) as exc:
            error = translate_error(exc)
            if not isinstance(error, RevertError):
                raise error from exc
            raise DeploymentError(
                f"Deployment of {artifact.name} reverted: {error.reason}"
            ) from exc
        receipt = await self._client.wait_for_receipt(tx_hash)

        address = receipt.get("contractAddress")
        if not receipt_succeeded(receipt) or not address:
            raise DeploymentError(f"Deployment of {artifact.name} failed (tx {tx_hex(tx_hash)})")

        logger.info("Deployed %s at %s", artifact.name, address)
        return Contract(self._client, address, artifact.abi, caller=deployer, name=artifact.name)
