"""
Tests for the JSON-RPC provider.

HTTP is stubbed at ``_post`` (or with a mocked aiohttp session), so these
tests cover request shapes, response parsing, error tagging and endpoint
rotation without touching the network.
"""

import asyncio
import base64

import aiohttp
import base58
import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, MagicMock

from near_client.account import Account
from near_client.config import ProviderConfig
from near_client.connection import Connection
from near_client.providers.json_rpc import JsonRpcProvider
from near_client.runtime.errors import NetworkFatalError, NonceConflictError, RpcError, RpcErrorKind
from near_client.tx.actions import FullAccessPermission, FunctionCallPermission
from near_client.tx.codec import decode_signed_transaction, hash_transaction
from near_client.tx.transaction import SignedTransaction

from helpers import BLOCK_HASH, invalid_nonce_body, mk_final_result, mk_key_pair, mk_transaction, rpc_error_body


def ok(result):
    return 200, {"jsonrpc": "2.0", "id": 1, "result": result}


@pytest.fixture
def provider():
    provider = JsonRpcProvider(ProviderConfig(["https://rpc-a.example", "https://rpc-b.example"]))
    provider._post = AsyncMock()
    return provider


@pytest.fixture
def signed(key_pair):
    tx = mk_transaction(key_pair, nonce=6)
    return SignedTransaction(transaction=tx, signature=key_pair.sign(hash_transaction(tx)))


def sent(provider, call=-1):
    return provider._post.call_args_list[call][0][0]


class TestConfig:
    """Endpoint configuration."""

    def test_well_known_network_names(self):
        assert ProviderConfig.from_url("testnet").endpoints == ["https://rpc.testnet.near.org"]
        assert ProviderConfig("mainnet").endpoints == ["https://rpc.mainnet.near.org"]

    def test_empty_endpoints_rejected(self):
        with pytest.raises(ValueError):
            ProviderConfig([])

    def test_url_or_config_required(self):
        with pytest.raises(ValueError):
            JsonRpcProvider()

    @pytest.mark.asyncio
    async def test_external_session_not_closed(self):
        session = MagicMock(closed=False)
        session.close = AsyncMock()
        provider = JsonRpcProvider(url="http://localhost:3030", session=session)

        await provider.close()

        session.close.assert_not_called()


class TestQueries:
    """Request shapes and result parsing."""

    @pytest.mark.asyncio
    async def test_request_envelope(self, provider):
        provider._post.return_value = ok({"header": {"hash": base58.b58encode(BLOCK_HASH).decode()}})

        await provider.block()
        await provider.block("optimistic")

        first, second = sent(provider, 0), sent(provider, 1)
        assert first["jsonrpc"] == "2.0"
        assert first["method"] == "block"
        assert first["params"] == {"finality": "final"}
        assert second["params"] == {"finality": "optimistic"}
        assert first["id"] != second["id"]

    @pytest.mark.asyncio
    async def test_query_access_key(self, provider):
        public_key = mk_key_pair().public_key
        provider._post.return_value = ok({"nonce": 42, "permission": "FullAccess",
                                          "block_hash": "abc", "block_height": 7})

        view = await provider.query_access_key("alice.testnet", public_key)

        assert view.nonce == 42
        assert view.permission == FullAccessPermission()
        assert view.block_height == 7
        assert sent(provider)["params"] == {
            "request_type": "view_access_key",
            "finality": "optimistic",
            "account_id": "alice.testnet",
            "public_key": str(public_key),
        }

    @pytest.mark.asyncio
    async def test_query_access_key_list(self, provider):
        public_key = mk_key_pair().public_key
        provider._post.return_value = ok({"keys": [{
            "public_key": str(public_key),
            "access_key": {
                "nonce": 3,
                "permission": {"FunctionCall": {"allowance": "1000", "receiver_id": "app.testnet",
                                                "method_names": ["vote"]}},
            },
        }]})

        keys = await provider.query_access_key_list("alice.testnet")

        assert len(keys) == 1
        assert keys[0].public_key == public_key
        assert keys[0].access_key.nonce == 3
        assert keys[0].access_key.permission == FunctionCallPermission(
            allowance=1000, receiver_id="app.testnet", method_names=("vote",))

    @pytest.mark.asyncio
    async def test_legacy_query_error(self, provider):
        """Older nodes report a missing key as an error string inside the result."""
        provider._post.return_value = ok({"error": "access key ed25519:xyz does not exist while viewing",
                                          "logs": [], "block_height": 1})

        with pytest.raises(RpcError) as exc_info:
            await provider.query_access_key("alice.testnet", mk_key_pair().public_key)
        assert exc_info.value.kind is RpcErrorKind.ACCESS_KEY_NOT_FOUND

    @pytest.mark.asyncio
    async def test_latest_block_hash(self, provider):
        provider._post.return_value = ok({"header": {"hash": base58.b58encode(BLOCK_HASH).decode(), "height": 10}})
        assert await provider.get_latest_block_hash() == BLOCK_HASH

    @pytest.mark.asyncio
    async def test_malformed_block(self, provider):
        provider._post.return_value = ok({"header": {}})
        with pytest.raises(RpcError) as exc_info:
            await provider.get_latest_block_hash()
        assert exc_info.value.kind is RpcErrorKind.PARSE_ERROR

    @pytest.mark.asyncio
    async def test_broadcast_uses_send_tx(self, provider, signed):
        provider._post.return_value = ok({"final_execution_status": "INCLUDED"})

        assert await provider.broadcast_transaction(signed.encode()) == signed.hash_b58

        request = sent(provider)
        assert request["method"] == "send_tx"
        assert request["params"] == {
            "signed_tx_base64": base64.b64encode(signed.encode()).decode("ascii"),
            "wait_until": "INCLUDED",
        }

    @pytest.mark.asyncio
    async def test_broadcast_prefers_reported_hash(self, provider, signed):
        provider._post.return_value = ok({"final_execution_status": "INCLUDED", "transaction": {"hash": "9xYhash"}})
        assert await provider.broadcast_transaction(signed.encode()) == "9xYhash"

    @pytest.mark.asyncio
    async def test_transaction_status(self, provider):
        provider._post.return_value = ok(mk_final_result("HASH"))

        result = await provider.get_transaction_status("HASH", "alice.testnet", "FINAL")

        assert result["transaction"]["hash"] == "HASH"
        assert sent(provider)["params"] == {"tx_hash": "HASH", "sender_account_id": "alice.testnet",
                                            "wait_until": "FINAL"}

    @pytest.mark.asyncio
    async def test_unknown_transaction_is_none(self, provider):
        provider._post.return_value = (200, rpc_error_body("UNKNOWN_TRANSACTION"))
        assert await provider.get_transaction_status("HASH", "alice.testnet") is None


class TestErrors:
    """Error tagging and endpoint rotation."""

    @pytest.mark.asyncio
    async def test_timeout_rotates_endpoint(self, provider):
        provider._post.side_effect = asyncio.TimeoutError()

        with pytest.raises(RpcError) as exc_info:
            await provider.block()

        assert exc_info.value.kind is RpcErrorKind.TIMEOUT
        assert "rpc-a.example" in str(exc_info.value)
        assert provider.endpoint == "https://rpc-b.example"

    @pytest.mark.asyncio
    async def test_connection_error(self, provider):
        provider._post.side_effect = aiohttp.ClientConnectionError("refused")

        with pytest.raises(RpcError) as exc_info:
            await provider.block()

        assert exc_info.value.kind is RpcErrorKind.CONNECTION
        assert isinstance(exc_info.value.cause, aiohttp.ClientConnectionError)

    @pytest.mark.asyncio
    async def test_rotation_wraps_around(self, provider):
        provider._post.return_value = (503, {})
        for _ in range(2):
            with pytest.raises(RpcError):
                await provider.block()
        assert provider.endpoint == "https://rpc-a.example"

    @pytest.mark.asyncio
    async def test_request_errors_do_not_rotate(self, provider):
        provider._post.return_value = (200, invalid_nonce_body())

        with pytest.raises(RpcError) as exc_info:
            await provider.broadcast_transaction(b"\x00")

        assert exc_info.value.kind is RpcErrorKind.INVALID_NONCE
        assert provider.endpoint == "https://rpc-a.example"

    @pytest.mark.asyncio
    async def test_non_object_body(self, provider):
        provider._post.return_value = (200, ["not", "an", "object"])
        with pytest.raises(RpcError) as exc_info:
            await provider.block()
        assert exc_info.value.kind is RpcErrorKind.PARSE_ERROR

    @pytest.mark.asyncio
    async def test_non_json_gateway_error(self):
        """An HTML error page from a proxy is tagged by its HTTP status."""
        response = MagicMock(status=502, reason="Bad Gateway")
        response.text = AsyncMock(return_value="<html>bad gateway</html>")
        session = MagicMock(closed=False)
        session.post.return_value.__aenter__.return_value = response
        provider = JsonRpcProvider(url="http://localhost:3030", session=session)

        with pytest.raises(RpcError) as exc_info:
            await provider.block()

        assert exc_info.value.kind is RpcErrorKind.SERVER_ERROR
        assert session.post.call_args[0][0] == "http://localhost:3030"


class FakeNode:
    """
    Answers JSON-RPC requests the way a node does for one access key.

    ``send_tx`` validates the nonce before answering; a transaction that
    passes is executed and visible to ``tx`` afterwards.
    """

    def __init__(self, nonce=5):
        self.nonce = nonce
        self.bump_after_query = []
        self.rejection = None
        self.executed = {}
        self.sent = []
        self.methods = []

    async def __call__(self, request):
        method, params = request["method"], request["params"]
        self.methods.append(method)
        if method == "query":
            view = {"nonce": self.nonce, "permission": "FullAccess", "block_hash": "x", "block_height": 1}
            if self.bump_after_query:
                self.nonce += self.bump_after_query.pop(0)
            return ok(view)
        if method == "block":
            return ok({"header": {"hash": base58.b58encode(BLOCK_HASH).decode(), "height": 10}})
        if method == "send_tx":
            signed = decode_signed_transaction(base64.b64decode(params["signed_tx_base64"]))
            self.sent.append(signed.transaction.nonce)
            if self.rejection is not None:
                return 200, self.rejection
            if signed.transaction.nonce <= self.nonce:
                return 200, invalid_nonce_body(signed.transaction.nonce, self.nonce)
            self.nonce = signed.transaction.nonce
            self.executed[signed.hash_b58] = mk_final_result(signed.hash_b58)
            return ok({"final_execution_status": "INCLUDED"})
        if method == "tx":
            if params["tx_hash"] in self.executed:
                return ok(self.executed[params["tx_hash"]])
            return 200, rpc_error_body("UNKNOWN_TRANSACTION")
        return 200, rpc_error_body("METHOD_NOT_FOUND")


class TestAccountOverProvider:
    """Network rejections reach the pipeline through the JSON-RPC provider."""

    @pytest.fixture
    def node(self):
        return FakeNode()

    @pytest_asyncio.fixture
    async def account(self, node, signer, fast_retry, fast_wait):
        provider = JsonRpcProvider(url="http://localhost:3030")
        provider._post = AsyncMock(side_effect=node.__call__)
        return Account(Connection("testnet", provider, signer, retry=fast_retry, wait=fast_wait), "alice.testnet")

    @pytest.mark.asyncio
    async def test_success(self, account, node):
        outcome = await account.transfer("bob.testnet", 1)

        assert outcome.is_success
        assert node.sent == [6]
        assert node.methods == ["query", "block", "send_tx", "tx"]

    @pytest.mark.asyncio
    async def test_invalid_nonce_refreshes_and_resigns(self, account, node):
        """The key was used elsewhere after our lookup: the node rejects 6, the retry uses 8."""
        node.bump_after_query = [2]

        outcome = await account.transfer("bob.testnet", 1)

        assert outcome.is_success
        assert node.sent == [6, 8]
        assert node.methods.count("query") == 2

    @pytest.mark.asyncio
    async def test_repeated_invalid_nonce_is_a_conflict(self, account, node):
        node.bump_after_query = [2, 2]

        with pytest.raises(NonceConflictError):
            await account.transfer("bob.testnet", 1)

        assert node.sent == [6, 8]
        assert "tx" not in node.methods

    @pytest.mark.asyncio
    async def test_not_enough_balance_is_fatal_without_polling(self, account, node):
        node.rejection = rpc_error_body(
            "INVALID_TRANSACTION",
            data={"TxExecutionError": {"InvalidTxError": {"NotEnoughBalance": {
                "signer_id": "alice.testnet", "balance": "1", "cost": "2"}}}},
        )

        with pytest.raises(NetworkFatalError) as exc_info:
            await account.transfer("bob.testnet", 10**30)

        assert exc_info.value.kind is RpcErrorKind.NOT_ENOUGH_BALANCE
        assert node.sent == [6]
        assert "tx" not in node.methods
