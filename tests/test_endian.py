"""
Byte order detection and normalisation.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from n64_bootscan.endian import Endian, MAGIC, detect_endian, normalize, read_word, to_canonical
from n64_bootscan.errors import BootScanError, UnrecognizedFormat


CANONICAL = bytes.fromhex("80371240 0000000F 80000400 0000144B 3C088004 2508E940 01400008 0000FFFF")


def _as_little(data: bytes) -> bytes:
    return b"".join(data[i:i + 4][::-1] for i in range(0, len(data), 4))


def _as_byteswapped(data: bytes) -> bytes:
    out = bytearray()
    for i in range(0, len(data), 2):
        out += data[i:i + 2][::-1]
    return bytes(out)


class TestDetect:

    def test_known_magics(self):
        assert detect_endian(CANONICAL) is Endian.BIG
        assert detect_endian(_as_little(CANONICAL)) is Endian.LITTLE
        assert detect_endian(_as_byteswapped(CANONICAL)) is Endian.BYTESWAPPED

    def test_magic_table_is_total(self):
        assert set(MAGIC.values()) == set(Endian)

    def test_unknown_magic(self):
        with pytest.raises(UnrecognizedFormat) as exc:
            detect_endian(b"\x00\x01\x02\x03rest")
        assert exc.value.stage == "endian"
        assert "00 01 02 03" in str(exc.value)

    def test_short_input(self):
        with pytest.raises(BootScanError):
            detect_endian(b"\x80\x37")


class TestNormalize:

    def test_all_layouts_agree(self):
        for raw in (CANONICAL, _as_little(CANONICAL), _as_byteswapped(CANONICAL)):
            assert to_canonical(raw, detect_endian(raw)) == CANONICAL

    def test_in_place(self):
        buf = bytearray(_as_little(CANONICAL))
        result = normalize(buf, Endian.LITTLE)
        assert result is buf
        assert bytes(buf) == CANONICAL

    def test_big_is_untouched(self):
        buf = bytearray(CANONICAL)
        assert normalize(buf, Endian.BIG) == bytearray(CANONICAL)

    def test_byteswapped_is_an_involution(self):
        once = to_canonical(CANONICAL, Endian.BYTESWAPPED)
        assert once != CANONICAL
        assert to_canonical(once, Endian.BYTESWAPPED) == CANONICAL

    def test_misaligned_lengths(self):
        with pytest.raises(ValueError):
            normalize(bytearray(6), Endian.LITTLE)
        with pytest.raises(ValueError):
            normalize(bytearray(3), Endian.BYTESWAPPED)


class TestReadWord:

    def test_each_layout_reads_the_same_word(self):
        word = bytes.fromhex("3C088004")
        assert read_word(word, Endian.BIG) == 0x3C088004
        assert read_word(word[::-1], Endian.LITTLE) == 0x3C088004
        assert read_word(bytes.fromhex("083C0480"), Endian.BYTESWAPPED) == 0x3C088004

    def test_short_chunk(self):
        with pytest.raises(ValueError):
            read_word(b"\x3C\x08", Endian.BIG)
