"""A fixed-size bitmap addressed by 16-bit offsets."""

from __future__ import annotations

MAX_SIZE = 65535


class Bitmap:
    """A set of bits addressed by offsets from 0 up to and including ``size``."""

    def __init__(self, size: int = MAX_SIZE) -> None:
        if size < 0:
            raise ValueError(f"bitmap size must not be negative: {size}")
        if size == 0 or size >= MAX_SIZE:
            size = MAX_SIZE
        elif size % 8:
            # The size is a 16-bit quantity; rounding up wraps like one.
            size = (size + 8 - size % 8) & 0xFFFF
        self._size = size
        self._bits = bytearray((size >> 3) + 1)

    @property
    def size(self) -> int:
        """The number of addressable bits (rounded up to a multiple of 8)."""
        return self._size

    def _locate(self, offset: int) -> tuple[int, int] | None:
        if offset < 0:
            raise ValueError(f"bitmap offset must not be negative: {offset}")
        if offset > self._size:
            return None
        return divmod(offset, 8)

    def set(self, offset: int, value: int) -> bool:
        """Set the bit at ``offset`` to 0 or 1; return False if out of range."""
        location = self._locate(offset)
        if location is None:
            return False
        index, pos = location
        if value:
            self._bits[index] |= 1 << pos
        else:
            self._bits[index] &= ~(1 << pos) & 0xFF
        return True

    def get(self, offset: int) -> int:
        """Return the bit at ``offset``; offsets out of range read as 0."""
        location = self._locate(offset)
        if location is None:
            return 0
        index, pos = location
        return (self._bits[index] >> pos) & 1