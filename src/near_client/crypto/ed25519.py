"""
Ed25519 cryptographic operations.

Provides the key types used by transactions (public keys, signatures) and an
Ed25519 key pair for signing. Text forms follow the network convention
``<curve>:<base58 bytes>``.
"""

from __future__ import annotations
import hashlib
from enum import IntEnum
from typing import Union

import base58
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey as CryptoEd25519PrivateKey,
    Ed25519PublicKey as CryptoEd25519PublicKey,
)



class Ed25519Error(Exception):
    """Base exception for key parsing and key operations."""
    pass


class KeyType(IntEnum):
    """Curve tag, also the discriminant byte in the binary encoding."""

    ED25519 = 0
    SECP256K1 = 1

    @property
    def prefix(self) -> str:
        return self.name.lower()

    @classmethod
    def from_prefix(cls, prefix: str) -> KeyType:
        try:
            return cls[prefix.upper()]
        except KeyError:
            raise Ed25519Error(f"Unknown key type: {prefix}")


PUBLIC_KEY_LENGTHS = {KeyType.ED25519: 32, KeyType.SECP256K1: 64}
SIGNATURE_LENGTHS = {KeyType.ED25519: 64, KeyType.SECP256K1: 65}


def _split_key_string(text: str) -> tuple:
    if ":" in text:
        prefix, body = text.split(":", 1)
        return KeyType.from_prefix(prefix), body
    return KeyType.ED25519, text


class PublicKey:
    """
    Public key of any supported curve.

    Hashable, so it can key caches and dictionaries.
    """

    def __init__(self, data: bytes, key_type: KeyType = KeyType.ED25519):
        """
        Initialize from raw key bytes.

        Raises:
            Ed25519Error: If the length does not match the key type
        """
        key_type = KeyType(key_type)
        expected = PUBLIC_KEY_LENGTHS[key_type]
        if len(data) != expected:
            raise Ed25519Error(f"{key_type.prefix} public key must be {expected} bytes, got {len(data)}")
        self.key_type = key_type
        self.data = bytes(data)

    @classmethod
    def from_string(cls, text: str) -> PublicKey:
        """Parse ``ed25519:<base58>``; a bare base58 string is taken as ed25519."""
        key_type, body = _split_key_string(text)
        try:
            data = base58.b58decode(body)
        except ValueError as e:
            raise Ed25519Error(f"Invalid public key string: {e}")
        return cls(data, key_type)

    @classmethod
    def from_bytes(cls, key_bytes: bytes) -> PublicKey:
        """Create an ed25519 public key from bytes."""
        return cls(key_bytes, KeyType.ED25519)

    def to_bytes(self) -> bytes:
        return self.data

    def to_string(self) -> str:
        return f"{self.key_type.prefix}:{base58.b58encode(self.data).decode('ascii')}"

    def verify(self, message: bytes, signature: bytes) -> bool:
        """
        Verify a signature over a message.

        Only ed25519 keys can be verified locally.
        """
        if self.key_type is not KeyType.ED25519:
            raise Ed25519Error(f"Cannot verify {self.key_type.prefix} signatures")
        if len(signature) != SIGNATURE_LENGTHS[KeyType.ED25519]:
            return False
        try:
            CryptoEd25519PublicKey.from_public_bytes(self.data).verify(signature, message)
            return True
        except InvalidSignature:
            return False

    def __eq__(self, other) -> bool:
        if not isinstance(other, PublicKey):
            return False
        return self.key_type == other.key_type and self.data == other.data

    def __hash__(self) -> int:
        return hash((int(self.key_type), self.data))

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"PublicKey.from_string('{self.to_string()}')"


class Signature:
    """Signature bytes tagged with the curve that produced them."""

    def __init__(self, data: bytes, key_type: KeyType = KeyType.ED25519):
        key_type = KeyType(key_type)
        expected = SIGNATURE_LENGTHS[key_type]
        if len(data) != expected:
            raise Ed25519Error(f"{key_type.prefix} signature must be {expected} bytes, got {len(data)}")
        self.key_type = key_type
        self.data = bytes(data)

    @classmethod
    def from_string(cls, text: str) -> Signature:
        key_type, body = _split_key_string(text)
        try:
            data = base58.b58decode(body)
        except ValueError as e:
            raise Ed25519Error(f"Invalid signature string: {e}")
        return cls(data, key_type)

    def to_string(self) -> str:
        return f"{self.key_type.prefix}:{base58.b58encode(self.data).decode('ascii')}"

    def __eq__(self, other) -> bool:
        if not isinstance(other, Signature):
            return False
        return self.key_type == other.key_type and self.data == other.data

    def __hash__(self) -> int:
        return hash((int(self.key_type), self.data))

    def __repr__(self) -> str:
        return f"Signature.from_string('{self.to_string()}')"


class KeyPair:
    """
    Ed25519 key pair.

    The secret key text form is ``ed25519:<base58 of seed || public key>``,
    64 bytes, as written by the network's wallets.
    """

    def __init__(self, seed: bytes):
        """
        Initialize from a 32-byte private key seed.

        Raises:
            Ed25519Error: If the seed is not 32 bytes
        """
        if len(seed) != 32:
            raise Ed25519Error(f"Ed25519 private key must be 32 bytes, got {len(seed)}")
        self._seed = bytes(seed)
        self._crypto_key = CryptoEd25519PrivateKey.from_private_bytes(self._seed)
        self._public_key = PublicKey(
            self._crypto_key.public_key().public_bytes(
                encoding=serialization.Encoding.Raw,
                format=serialization.PublicFormat.Raw,
            ),
            KeyType.ED25519,
        )

    @classmethod
    def from_random(cls) -> KeyPair:
        """Generate a new random key pair."""
        crypto_key = CryptoEd25519PrivateKey.generate()
        return cls(crypto_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        ))

    @classmethod
    def from_string(cls, text: str) -> KeyPair:
        """Parse ``ed25519:<base58 secret>`` (64-byte expanded or 32-byte seed)."""
        key_type, body = _split_key_string(text)
        if key_type is not KeyType.ED25519:
            raise Ed25519Error(f"Unsupported key pair type: {key_type.prefix}")
        try:
            secret = base58.b58decode(body)
        except ValueError as e:
            raise Ed25519Error(f"Invalid secret key string: {e}")
        if len(secret) == 64:
            pair = cls(secret[:32])
            if pair.public_key.data != secret[32:]:
                raise Ed25519Error("Secret key does not match its embedded public key")
            return pair
        return cls(secret)

    @classmethod
    def from_seed(cls, seed: Union[str, bytes]) -> KeyPair:
        """
        Derive a key pair from an arbitrary seed using SHA-256.

        For deterministic test keys.
        """
        if isinstance(seed, str):
            seed = seed.encode('utf-8')
        return cls(hashlib.sha256(seed).digest())

    @property
    def public_key(self) -> PublicKey:
        return self._public_key

    @property
    def secret_key(self) -> str:
        return base58.b58encode(self._seed + self._public_key.data).decode("ascii")

    def sign(self, message: bytes) -> Signature:
        """
        Sign a message.

        Returns:
            64-byte ed25519 signature
        """
        return Signature(self._crypto_key.sign(message), KeyType.ED25519)

    def verify(self, message: bytes, signature: bytes) -> bool:
        return self._public_key.verify(message, signature)

    def to_string(self) -> str:
        return f"ed25519:{self.secret_key}"

    def __repr__(self) -> str:
        return f"KeyPair(public_key='{self._public_key}')"
