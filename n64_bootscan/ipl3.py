"""
IPL3 (CIC boot code) identification.

The 0xFC0 bytes between the header and the entrypoint code (ROM offsets
0x40-0x1000) hold IPL3, the boot stage that pairs with the cartridge's
CIC lockout chip. Each CIC variant loads the game to a slightly different
place, so the entrypoint written in the header has to be corrected per
variant before the boot stub can be analysed.

The checksum is CRC-32/CKSUM (poly 0x04C11DB7, init 0, unreflected,
xorout 0xFFFFFFFF), without the length suffix the POSIX cksum utility
appends.
"""

import logging
from dataclasses import dataclass
from typing import Dict

from .errors import TruncatedRom, UnknownBootROM

log = logging.getLogger(__name__)

HEADER_SIZE = 0x40
IPL3_END = 0x1000
IPL3_SIZE = IPL3_END - HEADER_SIZE

_POLY = 0x04C11DB7


def _build_table():
    table = []
    for byte in range(256):
        crc = byte << 24
        for _ in range(8):
            if crc & 0x80000000:
                crc = ((crc << 1) ^ _POLY) & 0xFFFFFFFF
            else:
                crc = (crc << 1) & 0xFFFFFFFF
        table.append(crc)
    return table


_CRC_TABLE = _build_table()


def ipl3_checksum(data: bytes) -> int:
    """CRC-32/CKSUM of ``data``."""
    crc = 0
    for byte in data:
        crc = ((crc << 8) & 0xFFFFFFFF) ^ _CRC_TABLE[((crc >> 24) ^ byte) & 0xFF]
    return crc ^ 0xFFFFFFFF


@dataclass(frozen=True)
class CICInfo:
    """One known IPL3 build."""
    checksum: int
    ntsc_name: str
    pal_name: str
    entrypoint_offset: int

    @property
    def name(self) -> str:
        if self.ntsc_name == "-":
            return self.pal_name
        if self.pal_name == "-":
            return self.ntsc_name
        return f"{self.ntsc_name} / {self.pal_name}"

    @property
    def is_absolute(self) -> bool:
        """7102 hardcodes the load address instead of storing an offset."""
        return bool(self.entrypoint_offset & 0x80000000)

    def correct_entrypoint(self, header_entrypoint: int) -> int:
        if self.is_absolute:
            return self.entrypoint_offset
        return (header_entrypoint - self.entrypoint_offset) & 0xFFFFFFFF


CIC_TABLE: Dict[int, CICInfo] = {
    info.checksum: info for info in (
        CICInfo(0xD1F2D592, "6102", "7101", 0x000000),
        CICInfo(0x27DF61E2, "6103", "7103", 0x100000),
        CICInfo(0x229F516C, "6105", "7105", 0x000000),
        CICInfo(0xA0DD69F7, "6106", "7106", 0x200000),
        CICInfo(0x0013579C, "6101", "-",    0x000000),
        CICInfo(0xDAB442CD, "-",    "7102", 0x80000480),
    )
}


def lookup(checksum: int, table: Dict[int, CICInfo] = None) -> CICInfo:
    table = CIC_TABLE if table is None else table
    try:
        return table[checksum]
    except KeyError:
        raise UnknownBootROM(checksum) from None


def identify(rom: bytes, table: Dict[int, CICInfo] = None) -> CICInfo:
    """Identify the IPL3 of a normalised ROM image."""
    if len(rom) < IPL3_END:
        raise TruncatedRom(IPL3_END, len(rom), "IPL3 region", stage="ipl3")
    checksum = ipl3_checksum(rom[HEADER_SIZE:IPL3_END])
    log.debug("IPL3 checksum 0x%08X", checksum)
    cic = lookup(checksum, table)
    log.debug("IPL3 identified as CIC %s", cic.name)
    return cic
