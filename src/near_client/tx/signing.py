"""
Transaction signing.

Binds the transaction encoder to a key provider: hash the canonical
encoding, have the provider sign the hash, return the signed envelope.
"""

from __future__ import annotations
import logging

import base58

from ..crypto.ed25519 import KeyType, PublicKey, Signature
from ..runtime.errors import SigningError
from ..signers.signer import KeyProvider
from .actions import DelegateAction, SignedDelegateAction
from .codec import hash_delegate_action, hash_transaction
from .transaction import SignedTransaction, Transaction

logger = logging.getLogger(__name__)


class TransactionSigner:
    """
    Produces :class:`SignedTransaction` envelopes.

    Has no side effects beyond the key provider call. Every failure to sign
    is a :class:`SigningError`; encoding problems surface as
    :class:`~near_client.runtime.errors.EncodingError` before the provider
    is asked anything.
    """

    def __init__(self, key_provider: KeyProvider, network_id: str):
        self.key_provider = key_provider
        self.network_id = network_id

    async def _sign_digest(self, digest: bytes, account_id: str, public_key: PublicKey) -> Signature:
        signature = await self.key_provider.sign(digest, account_id, self.network_id)
        if signature is None:
            raise SigningError(f"Key provider returned no signature for {account_id}")
        if (public_key.key_type is KeyType.ED25519
                and (signature.key_type is not KeyType.ED25519 or not public_key.verify(digest, signature.data))):
            raise SigningError(
                f"Signature from key provider does not match {public_key} for {account_id}",
                {"accountId": account_id, "publicKey": str(public_key)},
            )
        return signature

    async def sign(self, transaction: Transaction) -> SignedTransaction:
        """
        Sign a transaction.

        Raises:
            EncodingError: If the transaction cannot be encoded
            SigningError: If the key provider cannot produce a matching signature
        """
        digest = hash_transaction(transaction)
        signature = await self._sign_digest(digest, transaction.signer_id, transaction.public_key)
        logger.debug(f"Signed transaction {base58.b58encode(digest).decode('ascii')} nonce={transaction.nonce} for {transaction.signer_id}")
        return SignedTransaction(transaction=transaction, signature=signature)

    async def sign_delegate_action(self, delegate_action: DelegateAction) -> SignedDelegateAction:
        """Sign a delegate action for submission by a relayer."""
        digest = hash_delegate_action(delegate_action)
        signature = await self._sign_digest(digest, delegate_action.sender_id, delegate_action.public_key)
        return SignedDelegateAction(delegate_action=delegate_action, signature=signature)
