"""
Holdings contract implementations.

- ERC721Token: basic NFT collection keyed by addresses (usable as a holder origin)
- ERC721HoldingsBasicToken: NFTs owned by composite holders
- ERC721HoldingsToken: holdings token with call-forwarding approve/transfer
"""

from .erc721 import ERC721Token
from .erc721_holdings import ERC721HoldingsBasicToken
from .erc721_holdings_calls import ERC721HoldingsToken
from .events import Approval, ApprovalForAll, HoldingsTransfer, Transfer
from .holder_key import NULL_HOLDER, HolderKey, HolderOrigin

__all__ = [
    # Token Standards
    "ERC721Token",
    "ERC721HoldingsBasicToken",
    "ERC721HoldingsToken",
    # Holder identity
    "HolderKey",
    "HolderOrigin",
    "NULL_HOLDER",
    # Events
    "Approval",
    "ApprovalForAll",
    "HoldingsTransfer",
    "Transfer",
]
