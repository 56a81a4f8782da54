"""End-to-end marketplace scenario: deploy, mint, list, sell, report.

Every step waits for its transaction before the next one starts, and any
error aborts the run unchanged.
"""

import logging
from dataclasses import dataclass, field

from .asset import AssetHandle
from .client import LedgerClient, format_units, parse_units
from .contracts import ContractFactory
from .errors import NotFoundError
from .market import Listing, MarketplaceHandle

logger = logging.getLogger(__name__)

FIRST_TOKEN_URI = "https://www.firstNft.com"
SECOND_TOKEN_URI = "https://www.secondNft.com"


@dataclass(frozen=True)
class ScenarioConfig:
    """Parameters of one marketplace run.

    ``listing_price`` overrides the marketplace fee through
    ``setListingPrice`` and is only honoured by contracts that have it.
    """

    market_contract: str = "NFTMarket_royalty"
    asset_contract: str = "NFT"
    token_uris: tuple[str, ...] = (FIRST_TOKEN_URI, SECOND_TOKEN_URI)
    price: str = "100"
    unit: str = "ether"
    sell_item_ids: tuple[int, ...] = (1,)
    seller_index: int = 0
    buyer_index: int = 1
    listing_price: str | None = None


@dataclass(frozen=True)
class ReportItem:
    """A fetched listing flattened for display."""

    price: str
    token_id: str
    seller: str
    owner: str
    creator: str | None
    token_uri: str


@dataclass
class ScenarioReport:
    market_address: str
    asset_address: str
    seller: str
    buyer: str
    listing_price: int
    token_ids: list[int] = field(default_factory=list)
    listings: list[Listing | None] = field(default_factory=list)
    items: list[ReportItem] = field(default_factory=list)
    balances_before: dict[str, int] = field(default_factory=dict)
    balances_after: dict[str, int] = field(default_factory=dict)


async def _balances(client: LedgerClient, *addresses: str) -> dict[str, int]:
    return {address: await client.get_balance(address) for address in addresses}


async def run_scenario(
    client: LedgerClient,
    factory: ContractFactory,
    config: ScenarioConfig | None = None,
) -> ScenarioReport:
    """Run the marketplace scenario once and collect what the ledger reports."""
    config = config or ScenarioConfig()

    addresses = await client.account_addresses()
    needed = max(config.seller_index, config.buyer_index) + 1
    if len(addresses) < needed:
        raise NotFoundError(f"Scenario needs {needed} node accounts, node has {len(addresses)}")
    seller = addresses[config.seller_index]
    buyer = addresses[config.buyer_index]
    balances_before = await _balances(client, seller, buyer)

    market = MarketplaceHandle(await factory.deploy(config.market_contract, deployer=seller))
    asset = AssetHandle(
        await factory.deploy(config.asset_contract, market.address, deployer=seller)
    )

    if config.listing_price is not None:
        await market.set_listing_price(parse_units(config.listing_price, config.unit))
    listing_price = await market.get_listing_price()
    price = parse_units(config.price, config.unit)
    logger.info(
        "Listing price %s, asking price %s %s",
        format_units(listing_price, config.unit),
        config.price,
        config.unit,
    )

    report = ScenarioReport(
        market_address=market.address,
        asset_address=asset.address,
        seller=seller,
        buyer=buyer,
        listing_price=listing_price,
        balances_before=balances_before,
    )

    for uri in config.token_uris:
        report.token_ids.append(await asset.create_token(uri))

    for token_id in report.token_ids:
        report.listings.append(
            await market.create_market_item(asset.address, token_id, price, payment=listing_price)
        )

    for item_id in config.sell_item_ids:
        await market.create_market_sale(asset.address, item_id, payment=price, caller=buyer)

    for listing in await market.fetch_market_items():
        report.items.append(
            ReportItem(
                price=str(listing.price),
                token_id=str(listing.token_id),
                seller=listing.seller,
                owner=listing.owner,
                creator=listing.creator,
                token_uri=await asset.token_uri(listing.token_id),
            )
        )

    report.balances_after = await _balances(client, seller, buyer)
    logger.info("Scenario finished: %d item(s) still listed", len(report.items))
    return report


def _shorten(s: str | None, head: int = 6, tail: int = 4) -> str:
    """Shorten an address for display."""
    if not s:
        return "-"
    if len(s) > head + tail + 1:
        return f"{s[:head]}\u2026{s[-tail:]}"
    return s


def format_report(report: ScenarioReport, unit: str = "ether") -> str:
    """Render a scenario report as console-friendly markdown."""
    lines = [
        f"Marketplace:   {report.market_address}",
        f"NFT contract:  {report.asset_address}",
        f"Listing price: {format_units(report.listing_price, unit)} {unit} "
        f"({report.listing_price} wei)",
        f"Minted tokens: {', '.join(str(t) for t in report.token_ids) or 'none'}",
        "",
    ]

    if not report.items:
        lines.append("No unsold market items.")
    else:
        lines.append(f"Found {len(report.items)} unsold market item(s)\n")
        lines.append("| Token | Price (wei) | Seller | Owner | Creator | Token URI |")
        lines.append("|------:|------------:|--------|-------|---------|-----------|")
        for item in report.items:
            lines.append(
                f"| {item.token_id} | {item.price} | {_shorten(item.seller)} | "
                f"{_shorten(item.owner)} | {_shorten(item.creator)} | {item.token_uri} |"
            )

    lines.append("")
    lines.append("Balances:")
    for label, address in (("seller", report.seller), ("buyer", report.buyer)):
        before = report.balances_before.get(address, 0)
        after = report.balances_after.get(address, 0)
        lines.append(
            f"  {label:<6} {_shorten(address)}  "
            f"{format_units(before, unit)} -> {format_units(after, unit)} {unit}"
        )
    return "\n".join(lines)
