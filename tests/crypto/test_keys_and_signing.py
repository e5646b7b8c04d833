"""
Tests for key pairs, the in-memory key store, the signer and transaction signing.
"""

import base58
import pytest
from unittest.mock import AsyncMock

from near_client.crypto.ed25519 import Ed25519Error, KeyPair, KeyType, PublicKey, Signature
from near_client.keys.keystore import InMemoryKeyStore
from near_client.runtime.errors import SigningError
from near_client.signers.signer import InMemorySigner
from near_client.tx.actions import DelegateAction
from near_client.tx.codec import hash_delegate_action, hash_transaction
from near_client.tx.signing import TransactionSigner

from helpers import mk_function_call, mk_key_pair, mk_transaction


class TestKeyPair:
    """Key pair text forms and signatures."""

    def test_secret_key_round_trip(self):
        key_pair = mk_key_pair()
        restored = KeyPair.from_string(key_pair.to_string())

        assert key_pair.to_string().startswith("ed25519:")
        assert restored.public_key == key_pair.public_key

    def test_seed_only_secret_accepted(self):
        key_pair = mk_key_pair()
        seed = base58.b58decode(key_pair.secret_key)[:32]
        assert KeyPair.from_string("ed25519:" + base58.b58encode(seed).decode()).public_key == key_pair.public_key

    def test_mismatched_embedded_public_key(self):
        secret = base58.b58decode(mk_key_pair("a").secret_key)
        forged = secret[:32] + base58.b58decode(mk_key_pair("b").secret_key)[32:]
        with pytest.raises(Ed25519Error):
            KeyPair.from_string("ed25519:" + base58.b58encode(forged).decode())

    def test_public_key_text_round_trip(self):
        public_key = mk_key_pair().public_key
        assert PublicKey.from_string(str(public_key)) == public_key
        assert PublicKey.from_string(str(public_key).split(":", 1)[1]) == public_key

    def test_public_key_hashable(self):
        a = mk_key_pair("a").public_key
        assert {a: 1}[PublicKey.from_string(str(a))] == 1

    def test_public_key_length_checked(self):
        with pytest.raises(Ed25519Error):
            PublicKey(b"\x00" * 31)
        with pytest.raises(Ed25519Error):
            PublicKey(b"\x00" * 32, KeyType.SECP256K1)

    def test_unknown_key_type(self):
        with pytest.raises(Ed25519Error):
            PublicKey.from_string("rsa:abc")

    def test_sign_and_verify(self):
        key_pair = mk_key_pair()
        signature = key_pair.sign(b"message")
        assert key_pair.verify(b"message", signature.data)
        assert not key_pair.verify(b"other", signature.data)
        assert Signature.from_string(signature.to_string()) == signature


class TestInMemoryKeyStore:
    """Key store behaviour."""

    @pytest.mark.asyncio
    async def test_set_get_remove(self):
        store = InMemoryKeyStore()
        key_pair = mk_key_pair()
        await store.set_key("testnet", "alice.testnet", key_pair)

        loaded = await store.get_key("testnet", "alice.testnet")
        assert loaded.public_key == key_pair.public_key
        assert await store.get_key("mainnet", "alice.testnet") is None

        await store.remove_key("testnet", "alice.testnet")
        assert await store.get_key("testnet", "alice.testnet") is None

    @pytest.mark.asyncio
    async def test_networks_and_accounts(self):
        store = InMemoryKeyStore()
        await store.set_key("testnet", "alice.testnet", mk_key_pair("a"))
        await store.set_key("testnet", "bob.testnet", mk_key_pair("b"))
        await store.set_key("mainnet", "alice.near", mk_key_pair("c"))

        assert await store.get_networks() == ["mainnet", "testnet"]
        assert await store.get_accounts("testnet") == ["alice.testnet", "bob.testnet"]

        await store.clear()
        assert await store.get_networks() == []


class TestInMemorySigner:
    """Signer over a key store."""

    @pytest.mark.asyncio
    async def test_sign_with_stored_key(self):
        key_pair = mk_key_pair()
        signer = await InMemorySigner.from_key_pair("testnet", "alice.testnet", key_pair)

        assert await signer.get_public_key("alice.testnet", "testnet") == key_pair.public_key
        signature = await signer.sign(b"hash", "alice.testnet", "testnet")
        assert key_pair.verify(b"hash", signature.data)

    @pytest.mark.asyncio
    async def test_missing_key(self):
        signer = InMemorySigner(InMemoryKeyStore())
        assert await signer.get_public_key("alice.testnet", "testnet") is None
        with pytest.raises(SigningError, match="not found"):
            await signer.sign(b"hash", "alice.testnet", "testnet")

    @pytest.mark.asyncio
    async def test_store_failure_is_signing_error(self):
        store = InMemoryKeyStore()
        store.get_key = AsyncMock(side_effect=OSError("disk gone"))
        signer = InMemorySigner(store)

        with pytest.raises(SigningError) as exc_info:
            await signer.sign(b"hash", "alice.testnet", "testnet")
        assert isinstance(exc_info.value.cause, OSError)

    @pytest.mark.asyncio
    async def test_create_key(self):
        signer = InMemorySigner(InMemoryKeyStore())
        public_key = await signer.create_key("alice.testnet", "testnet")
        assert await signer.get_public_key("alice.testnet", "testnet") == public_key


class TestTransactionSigner:
    """Signing transactions and delegate actions."""

    @pytest.mark.asyncio
    async def test_signature_covers_transaction_hash(self):
        key_pair = mk_key_pair()
        signer = TransactionSigner(await InMemorySigner.from_key_pair("testnet", "alice.testnet", key_pair), "testnet")
        tx = mk_transaction(key_pair)

        signed = await signer.sign(tx)

        assert signed.transaction == tx
        assert key_pair.verify(hash_transaction(tx), signed.signature.data)
        assert signed.verify()

    @pytest.mark.asyncio
    async def test_key_mismatch(self):
        """A signer holding a different key than the transaction names is rejected."""
        signer = TransactionSigner(
            await InMemorySigner.from_key_pair("testnet", "alice.testnet", mk_key_pair("wrong")), "testnet")

        with pytest.raises(SigningError, match="does not match"):
            await signer.sign(mk_transaction(mk_key_pair("alice")))

    @pytest.mark.asyncio
    async def test_missing_key(self):
        signer = TransactionSigner(InMemorySigner(InMemoryKeyStore()), "testnet")
        with pytest.raises(SigningError):
            await signer.sign(mk_transaction())

    @pytest.mark.asyncio
    async def test_sign_delegate_action(self):
        key_pair = mk_key_pair()
        signer = TransactionSigner(await InMemorySigner.from_key_pair("testnet", "alice.testnet", key_pair), "testnet")
        delegate = DelegateAction(
            sender_id="alice.testnet",
            receiver_id="app.testnet",
            actions=(mk_function_call(),),
            nonce=9,
            max_block_height=100,
            public_key=key_pair.public_key,
        )

        signed = await signer.sign_delegate_action(delegate)

        assert signed.delegate_action == delegate
        assert key_pair.verify(hash_delegate_action(delegate), signed.signature.data)
