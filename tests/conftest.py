"""Shared fixtures and response builders for the harness test suite."""

import json
import sys
from pathlib import Path
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio
import respx

# Lets test modules import the helper modules next to this file.
sys.path.insert(0, str(Path(__file__).parent))

from _fake_node import (  # noqa: E402
    ACCOUNTS,
    MARKET_ABI,
    MARKET_BYTECODE,
    NFT_ABI,
    NFT_BYTECODE,
    FakeDevNode,
)

from nft_market_harness.client import LedgerClient  # noqa: E402
from nft_market_harness.contracts import ContractFactory  # noqa: E402

RPC_URL = "http://127.0.0.1:8545"


def rpc_success(result, request_id=1):
    """Build an httpx.Response that looks like a JSON-RPC success."""
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": request_id, "result": result})


def rpc_error(code, message, data=None, request_id=1):
    """Build an httpx.Response that looks like a JSON-RPC error."""
    error = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": request_id, "error": error})


def write_artifact(root: Path, name: str, abi: list, bytecode) -> Path:
    """Write a Hardhat-layout artifact plus its debug sidecar."""
    folder = root / "contracts" / f"{name}.sol"
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / f"{name}.json"
    path.write_text(
        json.dumps(
            {
                "_format": "hh-sol-artifact-1",
                "contractName": name,
                "sourceName": f"contracts/{name}.sol",
                "abi": abi,
                "bytecode": bytecode,
                "deployedBytecode": "0x",
            }
        )
    )
    (folder / f"{name}.dbg.json").write_text(json.dumps({"buildInfo": "../build-info/x.json"}))
    return path


@pytest.fixture
def artifacts_dir(tmp_path):
    """Artifacts directory holding the marketplace and NFT used by the fake node."""
    root = tmp_path / "artifacts"
    write_artifact(root, "NFTMarket_royalty", MARKET_ABI, MARKET_BYTECODE)
    write_artifact(root, "NFT", NFT_ABI, NFT_BYTECODE)
    return root


@pytest.fixture
def fake_node():
    """FakeDevNode answering every POST to RPC_URL."""
    node = FakeDevNode()
    with respx.mock(assert_all_called=False) as router:
        router.post(RPC_URL).mock(side_effect=node.handle)
        yield node


@pytest_asyncio.fixture
async def ledger(fake_node):
    """LedgerClient wired to the fake node, polling without delay."""
    client = LedgerClient(RPC_URL, poll_interval=0)
    yield client
    await client.close()


@pytest.fixture
def factory(ledger, artifacts_dir):
    return ContractFactory(ledger, artifacts_dir)


@pytest.fixture
def mock_ledger():
    """LedgerClient with its account and receipt lookups replaced by AsyncMock.

    Nothing here reaches a node; tests use it where the code under test
    must fail before sending anything.
    """
    client = LedgerClient(RPC_URL)
    client.account_addresses = AsyncMock(return_value=list(ACCOUNTS))
    client.wait_for_receipt = AsyncMock(return_value={"status": 1, "logs": []})
    return client
