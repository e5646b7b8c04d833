"""
Shared fixtures: a deterministic key pair, an in-memory network and an
account wired to both with instant backoff and polling.
"""

import pytest
import pytest_asyncio

from near_client.account import Account
from near_client.config import RetryConfig, WaitPolicy
from near_client.connection import Connection
from near_client.signers.signer import InMemorySigner

from helpers import MockNetworkClient, mk_key_pair

ACCOUNT_ID = "alice.testnet"
NETWORK_ID = "testnet"


@pytest.fixture
def key_pair():
    return mk_key_pair("alice")


@pytest.fixture
def network(key_pair):
    client = MockNetworkClient()
    client.set_nonce(ACCOUNT_ID, key_pair.public_key, 5)
    return client


@pytest.fixture
def fast_retry():
    return RetryConfig(max_attempts=5, base_delay=0.0, max_delay=0.0, jitter=False)


@pytest.fixture
def fast_wait():
    return WaitPolicy(timeout=1.0, poll_interval=0.0)


@pytest_asyncio.fixture
async def signer(key_pair):
    return await InMemorySigner.from_key_pair(NETWORK_ID, ACCOUNT_ID, key_pair)


@pytest_asyncio.fixture
async def connection(network, signer, fast_retry, fast_wait):
    return Connection(NETWORK_ID, network, signer, retry=fast_retry, wait=fast_wait)


@pytest_asyncio.fixture
async def account(connection):
    return Account(connection, ACCOUNT_ID)
