"""
Binary Writer - Borsh primitives

Implements the canonical binary layout used for transactions: fixed-width
little-endian integers, u32 length prefixes for strings, blobs and sequences,
and a single tag byte ahead of enum variants and options.
"""

import struct
from typing import List, Optional

from ..runtime.errors import EncodingError

U8_MAX = 0xFF
U32_MAX = 0xFFFFFFFF
U64_MAX = 0xFFFFFFFFFFFFFFFF
U128_MAX = (1 << 128) - 1


def _check_range(name: str, v: int, maximum: int) -> None:
    if isinstance(v, bool) or not isinstance(v, int):
        raise EncodingError(f"{name} value must be an integer, got {type(v).__name__}")
    if v < 0 or v > maximum:
        raise EncodingError(f"{name} value out of range: {v}", {"max": maximum})


class BinaryWriter:
    """
    Binary writer for the Borsh layout.

    Integers are range-checked instead of masked: a value that does not fit
    its width is a caller bug and raises EncodingError.
    """

    def __init__(self):
        """Initialize writer with empty byte buffer."""
        self._bb: List[int] = []

    def u8(self, v: int) -> None:
        _check_range("u8", v, U8_MAX)
        self._bb.append(v)

    def u32le(self, v: int) -> None:
        """
        Write unsigned 32-bit integer in little-endian format.

        Args:
            v: Integer value to write as 32-bit little-endian
        """
        _check_range("u32", v, U32_MAX)
        self._bb.extend(struct.pack('<I', v))

    def u64le(self, v: int) -> None:
        _check_range("u64", v, U64_MAX)
        self._bb.extend(struct.pack('<Q', v))

    def u128le(self, v: int) -> None:
        """Nonces are u64; balances, deposits and allowances are u128."""
        _check_range("u128", v, U128_MAX)
        self._bb.extend(v.to_bytes(16, 'little'))

    def bytes(self, v: bytes) -> None:
        self._bb.extend(v)

    def fixed_bytes(self, v: bytes, length: int, name: str = "value") -> None:
        """Write exactly ``length`` bytes, e.g. a hash or a raw key."""
        if len(v) != length:
            raise EncodingError(f"{name} must be {length} bytes, got {len(v)}")
        self.bytes(v)

    def len_prefixed_bytes(self, v: bytes) -> None:
        """Blob with a u32 length prefix."""
        self.u32le(len(v))
        self.bytes(v)

    def string(self, s: str) -> None:
        """
        Write UTF-8 string with length prefix.

        Args:
            s: String to write with length prefix
        """
        self.len_prefixed_bytes(s.encode('utf-8'))

    def option_tag(self, present: bool) -> None:
        """Write the tag byte of an optional value."""
        self.u8(1 if present else 0)

    def optional_u128le(self, v: Optional[int]) -> None:
        self.option_tag(v is not None)
        if v is not None:
            self.u128le(v)

    def to_bytes(self) -> bytes:
        return bytes(self._bb)
