"""Marketplace contract handle and the Listing record it returns."""

import logging
from dataclasses import dataclass
from typing import Any

from web3.types import TxReceipt

from .client import format_units, tx_hex
from .contracts import Contract
from .errors import NotFoundError

logger = logging.getLogger(__name__)

ITEM_CREATED_EVENT = "MarketItemCreated"


@dataclass(frozen=True)
class Listing:
    """One marketplace record, as read from the ledger."""

    item_id: int
    token_id: int
    price: int
    seller: str
    owner: str
    creator: str | None
    sold: bool
    nft_contract: str | None = None

    @classmethod
    def from_struct(cls, struct: Any) -> "Listing":
        """Build from a decoded ``MarketItem`` struct or ``MarketItemCreated`` args.

        Both come back from web3 with attribute access to the ABI field names.
        """
        return cls(
            item_id=int(struct.itemId),
            token_id=int(struct.tokenId),
            price=int(struct.price),
            seller=struct.seller,
            owner=struct.owner,
            creator=getattr(struct, "creator", None),
            sold=bool(struct.sold),
            nft_contract=getattr(struct, "nftContract", None),
        )

    def display_price(self, unit: str = "ether") -> str:
        return format_units(self.price, unit)


class MarketplaceHandle:
    """Typed wrapper over the marketplace contract's call surface."""

    def __init__(self, contract: Contract) -> None:
        self._contract = contract

    @property
    def address(self) -> str:
        return self._contract.address

    @property
    def contract(self) -> Contract:
        return self._contract

    def connect(self, caller: str) -> "MarketplaceHandle":
        return MarketplaceHandle(self._contract.connect(caller))

    async def get_listing_price(self) -> int:
        return int(await self._contract.call("getListingPrice"))

    async def set_listing_price(self, amount: int) -> TxReceipt:
        """Change the listing fee, if this marketplace supports it at all.

        Raises:
            NotFoundError: if the deployed ABI has no ``setListingPrice``
        """
        if not self._contract.has_function("setListingPrice"):
            raise NotFoundError(f"{self._contract.name} does not support setListingPrice")
        logger.info("Setting listing price to %d wei", amount)
        return await self._contract.transact("setListingPrice", amount)

    async def create_market_item(
        self,
        nft_address: str,
        token_id: int,
        price: int,
        payment: int,
    ) -> Listing | None:
        """List ``token_id`` for sale at ``price``, paying the listing fee.

        The contract requires ``price > 0`` and ``payment`` equal to the
        current listing price; violations raise ``RevertError``.

        Returns the created listing when the marketplace emits
        ``MarketItemCreated``, otherwise None.
        """
        receipt = await self._contract.transact(
            "createMarketItem", nft_address, token_id, price, value=payment
        )

        if not self._contract.has_event(ITEM_CREATED_EVENT):
            logger.warning("%s emits no %s event", self._contract.name, ITEM_CREATED_EVENT)
            return None
        events = self._contract.decode_events(receipt, ITEM_CREATED_EVENT)
        if not events:
            logger.warning(
                "No %s log in receipt %s", ITEM_CREATED_EVENT, tx_hex(receipt["transactionHash"])
            )
            return None

        listing = Listing.from_struct(events[0]["args"])
        logger.info(
            "Listed token %d as item %d at %s", listing.token_id, listing.item_id, listing.price
        )
        return listing

    async def create_market_sale(
        self,
        nft_address: str,
        item_id: int,
        payment: int,
        caller: str | None = None,
    ) -> TxReceipt:
        """Buy listing ``item_id``, paying its asking price.

        Runs as ``caller`` when given, otherwise as this handle's caller.
        A wrong payment or an already sold item raises ``RevertError``.
        """
        contract = self._contract.connect(caller) if caller else self._contract
        receipt = await contract.transact("createMarketSale", nft_address, item_id, value=payment)
        logger.info("Item %d sold to %s", item_id, contract.caller or "default account")
        return receipt

    async def fetch_market_items(self) -> list[Listing]:
        """Listings the marketplace currently reports as for sale."""
        items = await self._contract.call("fetchMarketItems")
        return [Listing.from_struct(item) for item in items]
