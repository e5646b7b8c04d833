"""
Key storage interface.

Key pairs are stored per ``(network_id, account_id)``. Only the in-memory
backend ships here; persistent and browser backends implement the same
interface elsewhere.
"""

from __future__ import annotations
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..crypto.ed25519 import KeyPair
from ..runtime.errors import NearError

logger = logging.getLogger(__name__)


class KeyStoreError(NearError):
    """Key store specific errors."""

    error_type = "KeyStoreError"


class KeyStore(ABC):
    """
    Abstract key store interface.

    All methods are coroutines so that backends doing I/O fit the same shape.
    """

    @abstractmethod
    async def set_key(self, network_id: str, account_id: str, key_pair: KeyPair) -> None:
        """
        Store a key pair.

        Raises:
            KeyStoreError: If storage fails
        """

    @abstractmethod
    async def get_key(self, network_id: str, account_id: str) -> Optional[KeyPair]:
        """
        Retrieve the key pair for an account.

        Returns:
            Key pair if found, None otherwise
        """

    @abstractmethod
    async def remove_key(self, network_id: str, account_id: str) -> None:
        """Delete the key for an account, if any."""

    @abstractmethod
    async def clear(self) -> None:
        """Delete all keys."""

    @abstractmethod
    async def get_networks(self) -> List[str]:
        """Networks with at least one stored key."""

    @abstractmethod
    async def get_accounts(self, network_id: str) -> List[str]:
        """Accounts with a stored key on a network."""


class InMemoryKeyStore(KeyStore):
    """
    Key store holding key pairs in a dictionary.

    Entries are keyed ``"<account_id>:<network_id>"`` and stored in their
    text form, like the browser store the original wallet uses.
    """

    def __init__(self):
        self._keys: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _storage_key(network_id: str, account_id: str) -> str:
        return f"{account_id}:{network_id}"

    async def set_key(self, network_id: str, account_id: str, key_pair: KeyPair) -> None:
        async with self._lock:
            self._keys[self._storage_key(network_id, account_id)] = key_pair.to_string()
        logger.debug(f"Stored key {key_pair.public_key} for {account_id} on {network_id}")

    async def get_key(self, network_id: str, account_id: str) -> Optional[KeyPair]:
        value = self._keys.get(self._storage_key(network_id, account_id))
        if value is None:
            return None
        return KeyPair.from_string(value)

    async def remove_key(self, network_id: str, account_id: str) -> None:
        async with self._lock:
            self._keys.pop(self._storage_key(network_id, account_id), None)

    async def clear(self) -> None:
        async with self._lock:
            self._keys.clear()

    async def get_networks(self) -> List[str]:
        networks = {key.split(":", 1)[1] for key in self._keys}
        return sorted(networks)

    async def get_accounts(self, network_id: str) -> List[str]:
        accounts = []
        for key in self._keys:
            account_id, key_network = key.split(":", 1)
            if key_network == network_id:
                accounts.append(account_id)
        return sorted(accounts)

    def __repr__(self) -> str:
        return f"InMemoryKeyStore({len(self._keys)} keys)"
