"""
Cryptographic primitives: key types, signatures and Ed25519 key pairs.
"""

from .ed25519 import Ed25519Error, KeyPair, KeyType, PublicKey, Signature

__all__ = [
    "Ed25519Error",
    "KeyPair",
    "KeyType",
    "PublicKey",
    "Signature",
]
