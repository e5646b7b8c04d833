"""
Key provider interface.

A key provider holds (or can reach) the key pair for an account and signs
byte strings with it. The transaction pipeline only ever asks it to sign a
32-byte hash.
"""

from __future__ import annotations
import logging
from abc import ABC, abstractmethod
from typing import Optional

from ..crypto.ed25519 import KeyPair, PublicKey, Signature
from ..keys.keystore import InMemoryKeyStore, KeyStore
from ..runtime.errors import SigningError

logger = logging.getLogger(__name__)


class KeyProvider(ABC):
    """
    Base key provider interface.

    Implementations must raise :class:`SigningError` when they cannot sign.
    """

    @abstractmethod
    async def get_public_key(self, account_id: str, network_id: str) -> Optional[PublicKey]:
        """
        Get the public key of the account's signing key.

        Returns:
            Public key, or None if no key is available
        """

    @abstractmethod
    async def sign(self, message: bytes, account_id: str, network_id: str) -> Signature:
        """
        Sign a message with the account's key.

        Args:
            message: Bytes to sign (a transaction hash in the pipeline)
            account_id: Signing account
            network_id: Network the key belongs to

        Returns:
            Signature over ``message``

        Raises:
            SigningError: If the key is missing or the store is unavailable
        """


class InMemorySigner(KeyProvider):
    """Key provider backed by a :class:`KeyStore`."""

    def __init__(self, key_store: KeyStore):
        self.key_store = key_store

    @classmethod
    async def from_key_pair(cls, network_id: str, account_id: str, key_pair: KeyPair) -> InMemorySigner:
        """Create a signer with a single key already loaded."""
        key_store = InMemoryKeyStore()
        await key_store.set_key(network_id, account_id, key_pair)
        return cls(key_store)

    async def create_key(self, account_id: str, network_id: str) -> PublicKey:
        """Generate and store a fresh key pair for an account."""
        key_pair = KeyPair.from_random()
        await self.key_store.set_key(network_id, account_id, key_pair)
        return key_pair.public_key

    async def _get_key_pair(self, account_id: str, network_id: str) -> Optional[KeyPair]:
        try:
            return await self.key_store.get_key(network_id, account_id)
        except Exception as e:
            raise SigningError(f"Key store unavailable for {account_id}", cause=e)

    async def get_public_key(self, account_id: str, network_id: str) -> Optional[PublicKey]:
        key_pair = await self._get_key_pair(account_id, network_id)
        return key_pair.public_key if key_pair else None

    async def sign(self, message: bytes, account_id: str, network_id: str) -> Signature:
        if not account_id:
            raise SigningError("account_id is required to sign")
        key_pair = await self._get_key_pair(account_id, network_id)
        if key_pair is None:
            raise SigningError(
                f"Key for {account_id} not found in {network_id}",
                {"accountId": account_id, "networkId": network_id},
            )
        return key_pair.sign(message)

    def __repr__(self) -> str:
        return f"InMemorySigner({self.key_store!r})"
