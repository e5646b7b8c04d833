"""
Tests for the per access key nonce cache.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock

from near_client.providers.types import AccessKeyView
from near_client.runtime.errors import RpcError, RpcErrorKind
from near_client.tx.actions import FullAccessPermission
from near_client.tx.nonce import NonceAllocator

from helpers import MockNetworkClient, mk_key_pair

ACCOUNT = "alice.testnet"


class TestReserve:
    """Reservation order and caching."""

    @pytest.mark.asyncio
    async def test_first_reservation_seeds_from_chain(self, network, key_pair):
        allocator = NonceAllocator(network)

        assert await allocator.reserve(ACCOUNT, key_pair.public_key) == 6
        assert await allocator.reserve(ACCOUNT, key_pair.public_key) == 7
        assert network.access_key_queries == [(ACCOUNT, str(key_pair.public_key))]
        assert allocator.peek(ACCOUNT, key_pair.public_key) == 7

    @pytest.mark.asyncio
    async def test_concurrent_reservations_are_distinct(self, network, key_pair):
        """N concurrent reservations yield exactly base+1 .. base+N with one query."""
        allocator = NonceAllocator(network)

        nonces = await asyncio.gather(*[allocator.reserve(ACCOUNT, key_pair.public_key) for _ in range(20)])

        assert sorted(nonces) == list(range(6, 26))
        assert len(network.access_key_queries) == 1

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, network, key_pair):
        other = mk_key_pair("second").public_key
        network.set_nonce(ACCOUNT, other, 100)
        network.set_nonce("bob.testnet", key_pair.public_key, 40)
        allocator = NonceAllocator(network)

        assert await allocator.reserve(ACCOUNT, key_pair.public_key) == 6
        assert await allocator.reserve(ACCOUNT, other) == 101
        assert await allocator.reserve("bob.testnet", key_pair.public_key) == 41
        assert await allocator.reserve(ACCOUNT, key_pair.public_key) == 7

    @pytest.mark.asyncio
    async def test_slow_key_does_not_block_other_keys(self, key_pair):
        """A reservation waiting on the network for one key does not hold up another key."""
        other = mk_key_pair("second").public_key
        release = asyncio.Event()

        async def query(account_id, public_key):
            if public_key == key_pair.public_key:
                await release.wait()
            return AccessKeyView(nonce=1, permission=FullAccessPermission())

        client = MockNetworkClient()
        client.query_access_key = query
        allocator = NonceAllocator(client)

        slow = asyncio.ensure_future(allocator.reserve(ACCOUNT, key_pair.public_key))
        assert await asyncio.wait_for(allocator.reserve(ACCOUNT, other), timeout=1) == 2
        assert not slow.done()
        release.set()
        assert await slow == 2


class TestInvalidate:
    """Cache refresh."""

    @pytest.mark.asyncio
    async def test_invalidate_requeries(self, network, key_pair):
        allocator = NonceAllocator(network)
        assert await allocator.reserve(ACCOUNT, key_pair.public_key) == 6

        network.set_nonce(ACCOUNT, key_pair.public_key, 7)
        await allocator.invalidate(ACCOUNT, key_pair.public_key)

        assert allocator.peek(ACCOUNT, key_pair.public_key) is None
        assert await allocator.reserve(ACCOUNT, key_pair.public_key) == 8
        assert len(network.access_key_queries) == 2

    @pytest.mark.asyncio
    async def test_invalidate_unknown_key_is_noop(self, network, key_pair):
        allocator = NonceAllocator(network)
        await allocator.invalidate(ACCOUNT, key_pair.public_key)
        assert allocator.peek(ACCOUNT, key_pair.public_key) is None

    @pytest.mark.asyncio
    async def test_one_lock_per_key_across_invalidation(self, network, key_pair):
        """Invalidation clears the nonce, not the lock; entries grow only with distinct keys."""
        allocator = NonceAllocator(network)
        other = mk_key_pair("other")
        network.set_nonce(ACCOUNT, other.public_key, 0)

        await allocator.reserve(ACCOUNT, key_pair.public_key)
        lock = allocator._locks[(ACCOUNT, str(key_pair.public_key))]
        for _ in range(3):
            await allocator.invalidate(ACCOUNT, key_pair.public_key)
            await allocator.reserve(ACCOUNT, key_pair.public_key)
            await allocator.reserve(ACCOUNT, other.public_key)

        assert len(allocator._locks) == 2
        assert allocator._locks[(ACCOUNT, str(key_pair.public_key))] is lock

    @pytest.mark.asyncio
    async def test_network_error_leaves_cache_unchanged(self, key_pair):
        client = MockNetworkClient()
        client.query_access_key = AsyncMock(side_effect=RpcError("down", RpcErrorKind.SERVER_ERROR))
        allocator = NonceAllocator(client)

        with pytest.raises(RpcError) as exc_info:
            await allocator.reserve(ACCOUNT, key_pair.public_key)

        assert exc_info.value.kind is RpcErrorKind.SERVER_ERROR
        assert allocator.peek(ACCOUNT, key_pair.public_key) is None

    @pytest.mark.asyncio
    async def test_missing_access_key_propagates(self, key_pair):
        allocator = NonceAllocator(MockNetworkClient())
        with pytest.raises(RpcError) as exc_info:
            await allocator.reserve(ACCOUNT, key_pair.public_key)
        assert exc_info.value.kind is RpcErrorKind.ACCESS_KEY_NOT_FOUND
