"""Mintable NFT contract handle."""

import logging

from web3 import Web3

from .client import tx_hex
from .contracts import Contract
from .errors import NotFoundError, RevertError

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Revert reasons OpenZeppelin ERC721 versions use for unminted token ids
_NONEXISTENT_TOKEN_MARKERS = ("nonexistent token", "invalid token id", "ERC721NonexistentToken")

# OpenZeppelin 5 reverts with the ERC721NonexistentToken(uint256) custom error,
# which nodes report as raw revert data
NONEXISTENT_TOKEN_SELECTOR = Web3.to_hex(Web3.keccak(text="ERC721NonexistentToken(uint256)")[:4])


class AssetHandle:
    """Typed wrapper over the NFT contract's mint and metadata calls."""

    def __init__(self, contract: Contract) -> None:
        self._contract = contract

    @property
    def address(self) -> str:
        return self._contract.address

    @property
    def contract(self) -> Contract:
        return self._contract

    def connect(self, caller: str) -> "AssetHandle":
        return AssetHandle(self._contract.connect(caller))

    async def create_token(self, metadata_uri: str) -> int:
        """Mint a token carrying ``metadata_uri`` to the caller; returns its id.

        The id is read from the ERC-721 mint ``Transfer`` log.
        """
        receipt = await self._contract.transact("createToken", metadata_uri)
        transfers = self._contract.decode_events(receipt, "Transfer")
        mints = [e["args"] for e in transfers if e["args"]["from"] == ZERO_ADDRESS]
        if not mints:
            tx_hash = tx_hex(receipt["transactionHash"])
            raise NotFoundError(f"createToken mined without a mint Transfer log (tx {tx_hash})")
        token_id = int(mints[0]["tokenId"])
        logger.info("Minted token %d -> %s", token_id, metadata_uri)
        return token_id

    async def token_uri(self, token_id: int) -> str:
        """Metadata URI of ``token_id``.

        Raises:
            NotFoundError: if ``token_id`` was never minted
        """
        try:
            return await self._contract.call("tokenURI", token_id)
        except RevertError as exc:
            if _is_nonexistent_token(exc):
                raise NotFoundError(f"Token {token_id} does not exist") from exc
            raise


def _is_nonexistent_token(exc: RevertError) -> bool:
    data = exc.data if isinstance(exc.data, str) else ""
    if data.lower().startswith(NONEXISTENT_TOKEN_SELECTOR):
        return True
    reason = exc.reason.lower()
    if NONEXISTENT_TOKEN_SELECTOR in reason:
        return True
    return any(m.lower() in reason for m in _NONEXISTENT_TOKEN_MARKERS)
