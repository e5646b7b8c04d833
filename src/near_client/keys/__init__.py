"""
Key storage for account key pairs.
"""

from .keystore import InMemoryKeyStore, KeyStore, KeyStoreError

__all__ = [
    "InMemoryKeyStore",
    "KeyStore",
    "KeyStoreError",
]
