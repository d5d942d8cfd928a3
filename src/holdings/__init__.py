"""
Holdings - composable NFT ownership registry

Tokens are owned by composite holders (holder id, holder origin) so one
collection can be held by the entries of another.

Main Components:
- Contracts: basic ERC721 collection and the ERC721 Holdings token
- VM: world state, message calls and transactional rollback
"""

__version__ = "0.1.0"
__author__ = "Holdings Development Team"

__all__ = []
