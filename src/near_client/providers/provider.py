"""
Network client contract.

Everything the transaction pipeline needs from the network. Implementations
raise :class:`~near_client.runtime.errors.RpcError` tagged with an
:class:`~near_client.runtime.errors.RpcErrorKind` for every failure.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..crypto.ed25519 import PublicKey
from .types import AccessKeyInfo, AccessKeyView


class NetworkClient(ABC):
    """Abstract JSON-RPC collaborator."""

    @abstractmethod
    async def query_access_key(self, account_id: str, public_key: PublicKey) -> AccessKeyView:
        """
        Look up an access key.

        Raises:
            RpcError: ``ACCESS_KEY_NOT_FOUND`` if the key does not exist
        """

    @abstractmethod
    async def query_access_key_list(self, account_id: str) -> List[AccessKeyInfo]:
        """List every access key of an account."""

    @abstractmethod
    async def get_latest_block_hash(self, finality: str = "final") -> bytes:
        """Hash (32 bytes) of the latest block at the given finality."""

    @abstractmethod
    async def broadcast_transaction(self, signed_bytes: bytes) -> str:
        """
        Send a signed transaction without waiting for execution.

        Returns:
            Transaction hash in base58
        """

    @abstractmethod
    async def get_transaction_status(self, tx_hash: str, sender_id: str,
                                     wait_until: str = "EXECUTED_OPTIMISTIC") -> Optional[Dict[str, Any]]:
        """
        Fetch the final execution outcome of a transaction.

        Returns:
            The raw outcome, or None while the network does not know the
            transaction yet
        """

    async def close(self) -> None:
        """Release network resources."""

    async def __aenter__(self) -> NetworkClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
