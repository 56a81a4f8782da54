"""Command line entry point: run the marketplace scenario and print the report."""

import argparse
import asyncio
import logging
import sys

from . import load_config, open_harness
from .errors import HarnessError
from .scenario import (
    FIRST_TOKEN_URI,
    SECOND_TOKEN_URI,
    ScenarioConfig,
    format_report,
    run_scenario,
)

logger = logging.getLogger("nft_market_harness")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nft-market-harness",
        description="Deploy a marketplace and NFT contract, mint, list, sell, and report.",
    )
    parser.add_argument("--rpc-url", help="JSON-RPC endpoint (env: MARKET_RPC_URL)")
    parser.add_argument("--rpc-host", help="Node host when no URL is given (env: MARKET_RPC_HOST)")
    parser.add_argument(
        "--rpc-port", type=int, help="Node port when no URL is given (env: MARKET_RPC_PORT)"
    )
    parser.add_argument(
        "--artifacts-dir", help="Compiled contract artifacts (env: MARKET_ARTIFACTS_DIR)"
    )
    parser.add_argument(
        "--receipt-timeout",
        type=float,
        help="Seconds to wait for each transaction to be mined (env: MARKET_RECEIPT_TIMEOUT)",
    )
    parser.add_argument("--market-contract", default="NFTMarket_royalty")
    parser.add_argument("--asset-contract", default="NFT")
    parser.add_argument("--price", default="100", help="Asking price per token, in --unit")
    parser.add_argument("--unit", default="ether")
    parser.add_argument(
        "--uri",
        dest="uris",
        action="append",
        help="Metadata URI to mint (repeatable). Defaults to two sample URIs.",
    )
    parser.add_argument(
        "--sell",
        dest="sell",
        type=int,
        action="append",
        help="Market item id the buyer purchases (repeatable). Defaults to 1.",
    )
    parser.add_argument("--buyer-index", type=int, default=1)
    parser.add_argument(
        "--listing-price",
        help="Override the listing fee via setListingPrice, if the contract supports it",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def _settings(args: argparse.Namespace) -> dict:
    """Connection settings given on the command line; None defers to the environment."""
    return {
        "rpc_url": args.rpc_url,
        "rpc_host": args.rpc_host,
        "rpc_port": args.rpc_port,
        "artifacts_dir": args.artifacts_dir,
        "receipt_timeout": args.receipt_timeout,
    }


async def _run(args: argparse.Namespace) -> int:
    client, factory = await open_harness(_settings(args))
    config = ScenarioConfig(
        market_contract=args.market_contract,
        asset_contract=args.asset_contract,
        token_uris=tuple(args.uris or (FIRST_TOKEN_URI, SECOND_TOKEN_URI)),
        price=args.price,
        unit=args.unit,
        sell_item_ids=tuple(args.sell or (1,)),
        buyer_index=args.buyer_index,
        listing_price=args.listing_price,
    )
    try:
        report = await run_scenario(client, factory, config)
    finally:
        await client.close()
    print(format_report(report, unit=args.unit))
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # settings are validated before anything touches the network
    try:
        load_config(_settings(args))
    except ValueError as exc:
        logger.error("%s", exc)
        return 2

    try:
        return asyncio.run(_run(args))
    except (HarnessError, TimeoutError) as exc:
        logger.error("Scenario failed: %s: %s", type(exc).__name__, exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
