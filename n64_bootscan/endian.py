"""
Byte-order detection and normalisation for N64 cartridge images.

Dumps circulate in three layouts, told apart by the first word of the
header (the PI BSD domain 1 register, always 0x80371240):

  z64  80 37 12 40   big-endian, the console's native order
  n64  40 12 37 80   every 32-bit word byte-reversed
  v64  37 80 40 12   bytes swapped inside each 16-bit half

Everything downstream works on canonical (z64) bytes, so normalise
first and interpret afterwards.
"""

from enum import Enum

from .errors import UnrecognizedFormat


class Endian(Enum):
    BIG = "z64"
    LITTLE = "n64"
    BYTESWAPPED = "v64"

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DESCRIPTIONS = {
    Endian.BIG: "big-endian (native)",
    Endian.LITTLE: "little-endian (word byte-reversed)",
    Endian.BYTESWAPPED: "byte-swapped (half-word swapped)",
}

MAGIC = {
    b'\x80\x37\x12\x40': Endian.BIG,
    b'\x40\x12\x37\x80': Endian.LITTLE,
    b'\x37\x80\x40\x12': Endian.BYTESWAPPED,
}


def detect_endian(data: bytes) -> Endian:
    """Classify the first four bytes of a ROM image."""
    head = bytes(data[:4])
    try:
        return MAGIC[head]
    except KeyError:
        raise UnrecognizedFormat(
            f"Unrecognised header magic {head.hex(' ').upper() or '(empty)'}") from None


def normalize(buf: bytearray, endian: Endian) -> bytearray:
    """Rewrite ``buf`` in place into canonical big-endian order.

    LITTLE reverses every 4-byte group, BYTESWAPPED swaps each adjacent
    byte pair and leaves the half-word order alone. Returns ``buf``.
    """
    if endian is Endian.BIG:
        return buf
    if endian is Endian.LITTLE:
        if len(buf) % 4:
            raise ValueError(f"length {len(buf)} is not a multiple of 4")
        b0 = buf[0::4]
        b1 = buf[1::4]
        buf[0::4] = buf[3::4]
        buf[1::4] = buf[2::4]
        buf[2::4] = b1
        buf[3::4] = b0
        return buf
    if len(buf) % 2:
        raise ValueError(f"length {len(buf)} is not a multiple of 2")
    even = buf[0::2]
    buf[0::2] = buf[1::2]
    buf[1::2] = even
    return buf


def to_canonical(data: bytes, endian: Endian) -> bytes:
    """Copying variant of normalize()."""
    return bytes(normalize(bytearray(data), endian))


def read_word(chunk: bytes, endian: Endian) -> int:
    """Read one raw 4-byte group as a canonical instruction word."""
    if len(chunk) < 4:
        raise ValueError(f"need 4 bytes, got {len(chunk)}")
    if endian is Endian.BIG:
        return int.from_bytes(chunk[:4], 'big')
    if endian is Endian.LITTLE:
        return int.from_bytes(chunk[:4], 'little')
    return int.from_bytes(bytes((chunk[1], chunk[0], chunk[3], chunk[2])), 'big')
