"""
N64 ROM header (first 0x40 bytes, canonical byte order).

  0x00  4  PI BSD domain 1 register (also the endian magic)
  0x04  4  clock rate
  0x08  4  entrypoint (as claimed, before CIC correction)
  0x0C  4  revision; low byte is the libultra version letter
  0x10  4  checksum 1
  0x14  4  checksum 2
  0x18  8  reserved
  0x20 20  internal name, Shift-JIS
  0x34  4  reserved
  0x38  4  media format (ASCII letter in the low byte)
  0x3C  2  cartridge ID
  0x3E  1  country code
  0x3F  1  version
"""

import struct
from dataclasses import dataclass
from typing import Tuple

from .errors import TruncatedRom

HEADER_FORMAT = '>4sIIIII8s20s4sI2sBB'
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)   # 0x40

MEDIA_FORMATS = {
    'N': "cartridge",
    'D': "64DD disk",
    'C': "cartridge part of expandable game OR GameCube",
    'E': "64DD expansion for cart",
    'Z': "Aleck64 cartridge",
}

COUNTRY_CODES = {
    '7': "Beta",
    'A': "Asian (NTSC)",
    'B': "Brazilian",
    'C': "Chinese",
    'D': "German",
    'E': "North America",
    'F': "French",
    'G': "Gateway 64 (NTSC)",
    'H': "Dutch",
    'I': "Italian",
    'J': "Japanese",
    'K': "Korean",
    'L': "Gateway 64 (PAL)",
    'N': "Canadian",
    'P': "European (basic spec.)",
    'S': "Spanish",
    'U': "Australian",
    'W': "Scandinavian",
    'X': "European",
    'Y': "European",
    '\0': "iQue roms have zeros here",
}


def _char(value: int) -> str:
    return chr(value) if 0 <= value < 0x110000 else '?'


@dataclass
class N64Header:
    pi_bsd_dom1: bytes
    clock_rate: int
    entrypoint: int
    revision: int
    checksum1: int
    checksum2: int
    unk_18: bytes
    raw_image_name: bytes
    unk_34: bytes
    raw_media_format: int
    raw_cartridge_id: bytes
    raw_country_code: int
    version: int

    @property
    def libultra_version(self) -> str:
        return _char(self.revision & 0xFF)

    @property
    def image_name(self) -> str:
        name = self.raw_image_name.decode('shift_jis', errors='replace')
        return name.rstrip('\0 ')

    @property
    def media_format(self) -> str:
        return _char(self.raw_media_format)

    @property
    def cartridge_id(self) -> str:
        return self.raw_cartridge_id.decode('ascii', errors='replace')

    @property
    def country_code(self) -> str:
        return _char(self.raw_country_code)

    @property
    def checksum(self) -> Tuple[int, int]:
        return self.checksum1, self.checksum2

    @property
    def media_format_description(self) -> str:
        return MEDIA_FORMATS.get(self.media_format, "Unknown")

    @property
    def country_code_description(self) -> str:
        return COUNTRY_CODES.get(self.country_code, "Unknown")

    def summary(self) -> str:
        """clock, entrypoint, revision, checksums, name, media, id, country, version"""
        return (f"{self.clock_rate:08X}, {self.entrypoint:08X}, {self.revision:08X}, "
                f"{self.checksum1:08X} {self.checksum2:08X}, {self.image_name}, "
                f"{self.media_format}, {self.cartridge_id}, "
                f"{self.country_code!r}, {self.version:X}")

    def describe(self) -> str:
        return "\n".join([
            f"pi_bsd_dom1:            {self.pi_bsd_dom1.hex(' ').upper()}",
            f"clock_rate:             {self.clock_rate:08X}",
            f"reported_entrypoint:    {self.entrypoint:08X}",
            f"revision:               {self.revision:08X} (libultra {self.libultra_version})",
            f"checksum:               {self.checksum1:08X} {self.checksum2:08X}",
            f"unk_18:                 {self.unk_18.hex(' ').upper()}",
            f"image_name:             \"{self.image_name}\"",
            f"unk_34:                 {self.unk_34.hex(' ').upper()}",
            f"media_format:           {self.media_format} ({self.media_format_description})",
            f"cartridge_id:           {self.cartridge_id}",
            f"country_code:           {self.country_code!r} ({self.country_code_description})",
            f"version:                0x{self.version:02X}",
        ])


def read_header(data: bytes) -> N64Header:
    """Parse the header from the start of a normalised ROM."""
    if len(data) < HEADER_SIZE:
        raise TruncatedRom(HEADER_SIZE, len(data), "header", stage="header")
    return N64Header(*struct.unpack_from(HEADER_FORMAT, data, 0))
