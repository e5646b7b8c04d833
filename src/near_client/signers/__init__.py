"""
Key providers used to sign transactions.
"""

from .signer import InMemorySigner, KeyProvider

__all__ = [
    "InMemorySigner",
    "KeyProvider",
]
