"""
Transaction and signed-transaction types.

A :class:`Transaction` is immutable once constructed; its hash is derived
from the canonical binary encoding in :mod:`near_client.tx.codec`.
"""

from __future__ import annotations
from typing import Annotated, Any, Tuple

import base58
from pydantic import BaseModel, BeforeValidator

from ..crypto.ed25519 import PublicKey
from .actions import Action, PublicKeyField, SignatureField


def _coerce_block_hash(value: Any) -> Any:
    if isinstance(value, str):
        return base58.b58decode(value)
    return value


BlockHashField = Annotated[bytes, BeforeValidator(_coerce_block_hash)]


class Transaction(BaseModel):
    """
    Unsigned transaction.

    ``actions`` order is significant and preserved byte for byte by the
    encoder. ``block_hash`` accepts raw bytes or base58 text.
    """
    signer_id: str
    public_key: PublicKeyField
    nonce: int
    receiver_id: str
    block_hash: BlockHashField
    actions: Tuple[Action, ...]

    model_config = {
        "frozen": True,
        "arbitrary_types_allowed": True,
    }

    def encode(self) -> bytes:
        """Canonical binary encoding."""
        from .codec import encode_transaction
        return encode_transaction(self)

    def get_hash(self) -> bytes:
        """SHA-256 of the canonical encoding (32 bytes)."""
        from .codec import hash_transaction
        return hash_transaction(self)

    @property
    def hash_b58(self) -> str:
        return base58.b58encode(self.get_hash()).decode("ascii")


class SignedTransaction(BaseModel):
    """Transaction plus the signature over its hash."""
    transaction: Transaction
    signature: SignatureField

    model_config = {
        "frozen": True,
        "arbitrary_types_allowed": True,
    }

    def encode(self) -> bytes:
        from .codec import encode_signed_transaction
        return encode_signed_transaction(self)

    def get_hash(self) -> bytes:
        return self.transaction.get_hash()

    @property
    def hash_b58(self) -> str:
        return self.transaction.hash_b58

    @property
    def sender_id(self) -> str:
        return self.transaction.signer_id

    def verify(self) -> bool:
        """Check the signature against the transaction's own public key."""
        public_key: PublicKey = self.transaction.public_key
        return public_key.verify(self.get_hash(), self.signature.data)
