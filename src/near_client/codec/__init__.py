"""
Binary Codec Module

Canonical binary encoding primitives for transactions.

Key components:
- writer.py: Borsh writer (fixed-width little-endian integers, u32 length prefixes)
- reader.py: Borsh reader, the inverse of the writer
"""

from .reader import BinaryReader
from .writer import BinaryWriter

__all__ = [
    "BinaryReader",
    "BinaryWriter",
]
