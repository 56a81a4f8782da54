"""Marketplace verification harness -- thin config and connection wiring."""

import os
from typing import Any

from .asset import AssetHandle
from .client import Account, LedgerClient, connect, format_units, parse_units
from .contracts import Artifact, Contract, ContractFactory, load_artifact
from .errors import (
    DeploymentError,
    HarnessError,
    LedgerConnectionError,
    NotFoundError,
    RevertError,
    RpcError,
)
from .market import Listing, MarketplaceHandle
from .scenario import (
    ReportItem,
    ScenarioConfig,
    ScenarioReport,
    format_report,
    run_scenario,
)

__all__ = [
    "Account",
    "Artifact",
    "AssetHandle",
    "Contract",
    "ContractFactory",
    "DeploymentError",
    "HarnessError",
    "LedgerClient",
    "LedgerConnectionError",
    "Listing",
    "MarketplaceHandle",
    "NotFoundError",
    "ReportItem",
    "RevertError",
    "RpcError",
    "ScenarioConfig",
    "ScenarioReport",
    "connect",
    "format_report",
    "format_units",
    "load_artifact",
    "load_config",
    "open_harness",
    "parse_units",
    "run_scenario",
]


def _setting(config: dict[str, Any], key: str, env: str, default: Any = None) -> Any:
    """``config[key]`` unless it is missing or None, then ``env``, then ``default``.

    Falsy explicit values such as a zero timeout are kept.
    """
    value = config.get(key)
    if value is None:
        value = os.environ.get(env, default)
    return value


def load_config(config: dict[str, Any] | None = None) -> dict[str, Any]:
    """Resolve settings from ``config``, then the environment, then defaults."""
    config = config or {}

    rpc_url = _setting(config, "rpc_url", "MARKET_RPC_URL")
    if not rpc_url:
        host = _setting(config, "rpc_host", "MARKET_RPC_HOST", "127.0.0.1")
        port = _setting(config, "rpc_port", "MARKET_RPC_PORT", "8545")
        rpc_url = f"http://{host}:{port}"

    artifacts_dir = _setting(config, "artifacts_dir", "MARKET_ARTIFACTS_DIR", "artifacts")
    receipt_timeout = _setting(config, "receipt_timeout", "MARKET_RECEIPT_TIMEOUT", "120")
    try:
        receipt_timeout = float(receipt_timeout)
    except ValueError:
        raise ValueError(
            f"Invalid receipt timeout {receipt_timeout!r} -- check MARKET_RECEIPT_TIMEOUT"
        ) from None
    if receipt_timeout < 0:
        raise ValueError(f"Receipt timeout must not be negative, got {receipt_timeout}")

    return {
        "rpc_url": rpc_url,
        "artifacts_dir": artifacts_dir,
        "receipt_timeout": receipt_timeout,
    }


async def open_harness(
    config: dict[str, Any] | None = None,
) -> tuple[LedgerClient, ContractFactory]:
    """Connect to the configured node and return a client plus factory.

    The caller owns the client and must ``await client.close()``.
    """
    settings = load_config(config)
    client = await connect(settings["rpc_url"], receipt_timeout=settings["receipt_timeout"])
    return client, ContractFactory(client, settings["artifacts_dir"])
