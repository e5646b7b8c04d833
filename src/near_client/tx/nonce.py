"""
Per access key nonce cache.

Nonces are scoped to an (account, public key) pair. Each pair gets its own
lock so reservations on different keys never wait on each other, while
reservations on the same key are handed out strictly increasing.
"""

from __future__ import annotations
import asyncio
import logging
from typing import Dict, Optional, Tuple

from ..crypto.ed25519 import PublicKey

logger = logging.getLogger(__name__)

NonceKey = Tuple[str, str]


class NonceAllocator:
    """
    Hands out nonces for transactions.

    On a cache miss the on-chain nonce is fetched with
    ``network_client.query_access_key``; network failures propagate
    unchanged and leave the cache untouched.

    Locks live for the allocator's lifetime, one per (account, key) pair
    ever reserved for. :meth:`invalidate` drops the cached nonce but keeps
    the lock, so a reservation already waiting on it stays serialized with
    the next one.
    """

    def __init__(self, network_client):
        self.network_client = network_client
        self._nonces: Dict[NonceKey, int] = {}
        self._locks: Dict[NonceKey, asyncio.Lock] = {}

    @staticmethod
    def _key(account_id: str, public_key: PublicKey) -> NonceKey:
        return account_id, str(public_key)

    def _lock_for(self, key: NonceKey) -> asyncio.Lock:
        # Created on the event loop thread, so no race between lookup and insert.
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def reserve(self, account_id: str, public_key: PublicKey) -> int:
        """
        Reserve the next nonce for an access key.

        Returns:
            A nonce greater than every nonce previously reserved for the key
            and greater than the last nonce committed on chain at seeding time
        """
        key = self._key(account_id, public_key)
        async with self._lock_for(key):
            current = self._nonces.get(key)
            if current is None:
                view = await self.network_client.query_access_key(account_id, public_key)
                current = view.nonce
                logger.debug(f"Seeded nonce for {account_id}/{key[1]} at {current}")
            nonce = current + 1
            self._nonces[key] = nonce
            return nonce

    async def invalidate(self, account_id: str, public_key: PublicKey) -> None:
        """Drop the cached nonce so the next reservation re-reads it from the network."""
        key = self._key(account_id, public_key)
        async with self._lock_for(key):
            if self._nonces.pop(key, None) is not None:
                logger.debug(f"Invalidated nonce cache for {account_id}/{key[1]}")

    def peek(self, account_id: str, public_key: PublicKey) -> Optional[int]:
        """Last nonce handed out for the key, or None if not cached."""
        return self._nonces.get(self._key(account_id, public_key))
