"""
Binary Reader - Borsh primitives

Decodes the layout produced by :class:`~near_client.codec.writer.BinaryWriter`.
Used to verify encodings and by the round-trip tests.
"""

import builtins
import struct
from typing import Optional

from ..runtime.errors import EncodingError


class BinaryReader:
    """
    Binary reader for the Borsh layout.

    Reading past the end of the buffer raises EncodingError.
    """

    def __init__(self, buf: builtins.bytes):
        """
        Initialize reader with byte buffer.

        Args:
            buf: Byte buffer to read from
        """
        self._buf = buf
        self._off = 0

    @property
    def eof(self) -> bool:
        return self._off >= len(self._buf)

    @property
    def offset(self) -> int:
        return self._off

    def _take(self, n: int, what: str) -> builtins.bytes:
        if self._off + n > len(self._buf):
            raise EncodingError(f"Buffer overflow: attempting to read {what} beyond end",
                                {"offset": self._off, "needed": n})
        out = self._buf[self._off : self._off + n]
        self._off += n
        return out

    def u8(self) -> int:
        return self._take(1, "u8")[0]

    def u32le(self) -> int:
        return struct.unpack("<I", self._take(4, "u32le"))[0]

    def u64le(self) -> int:
        return struct.unpack("<Q", self._take(8, "u64le"))[0]

    def u128le(self) -> int:
        """Read unsigned 128-bit integer in little-endian format."""
        return int.from_bytes(self._take(16, "u128le"), "little")

    def bytes(self, n: int) -> builtins.bytes:
        """Read exactly ``n`` raw bytes."""
        return builtins.bytes(self._take(n, f"{n} bytes"))

    def len_prefixed_bytes(self) -> builtins.bytes:
        n = self.u32le()
        return self.bytes(n)

    def string(self) -> str:
        """
        Read UTF-8 string with length prefix.

        Returns:
            Decoded string
        """
        raw = self.len_prefixed_bytes()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise EncodingError("Invalid UTF-8 in string field", cause=e)

    def option_tag(self) -> bool:
        tag = self.u8()
        if tag not in (0, 1):
            raise EncodingError(f"Invalid option tag: {tag}")
        return tag == 1

    def optional_u128le(self) -> Optional[int]:
        return self.u128le() if self.option_tag() else None

    def expect_eof(self) -> None:
        """Raise if unread bytes remain."""
        if not self.eof:
            raise EncodingError(f"{len(self._buf) - self._off} trailing bytes after decode")
