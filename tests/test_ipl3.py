"""
IPL3 checksum and CIC table tests.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from n64_bootscan.errors import TruncatedRom, UnknownBootROM
from n64_bootscan.ipl3 import CIC_TABLE, IPL3_END, IPL3_SIZE, CICInfo, identify, ipl3_checksum, lookup


class TestChecksum:

    def test_check_value(self):
        # CRC-32/CKSUM catalogue check value
        assert ipl3_checksum(b"123456789") == 0x765E7680

    def test_empty(self):
        assert ipl3_checksum(b"") == 0xFFFFFFFF

    def test_deterministic(self):
        data = bytes(range(256)) * 16
        assert ipl3_checksum(data) == ipl3_checksum(bytes(data))
        assert ipl3_checksum(data) != ipl3_checksum(data[:-1] + b"\x00")

    def test_region_size(self):
        assert IPL3_SIZE == 0xFC0


class TestTable:

    def test_keys_match_entries(self):
        for checksum, info in CIC_TABLE.items():
            assert info.checksum == checksum

    def test_checksums_unique(self):
        assert len(CIC_TABLE) == 6
        assert len({info.checksum for info in CIC_TABLE.values()}) == len(CIC_TABLE)

    def test_known_entries(self):
        expected = {
            0xD1F2D592: ("6102 / 7101", 0x000000),
            0x27DF61E2: ("6103 / 7103", 0x100000),
            0x229F516C: ("6105 / 7105", 0x000000),
            0xA0DD69F7: ("6106 / 7106", 0x200000),
            0x0013579C: ("6101", 0x000000),
            0xDAB442CD: ("7102", 0x80000480),
        }
        for checksum, (name, offset) in expected.items():
            info = lookup(checksum)
            assert info.name == name
            assert info.entrypoint_offset == offset

    def test_unknown_checksum(self):
        with pytest.raises(UnknownBootROM) as exc:
            lookup(0x12345678)
        assert exc.value.checksum == 0x12345678
        assert exc.value.stage == "ipl3"
        assert "0x12345678" in str(exc.value)


class TestEntrypointCorrection:

    def test_offset_is_subtracted(self):
        assert lookup(0x27DF61E2).correct_entrypoint(0x80100400) == 0x80000400
        assert lookup(0xA0DD69F7).correct_entrypoint(0x80200400) == 0x80000400
        assert lookup(0xD1F2D592).correct_entrypoint(0x80000400) == 0x80000400

    def test_absolute_entry_ignores_header(self):
        cic = lookup(0xDAB442CD)
        assert cic.is_absolute
        assert cic.correct_entrypoint(0x80000400) == 0x80000480
        assert cic.correct_entrypoint(0x12345678) == 0x80000480

    def test_offset_entries_are_not_absolute(self):
        assert not any(info.is_absolute for info in CIC_TABLE.values()
                       if info.checksum != 0xDAB442CD)


class TestIdentify:

    def _rom(self):
        rom = bytearray(IPL3_END)
        rom[0:4] = b"\x80\x37\x12\x40"
        rom[0x40:0x48] = b"IPL3TEST"
        return bytes(rom)

    def test_injected_table(self):
        rom = self._rom()
        info = CICInfo(ipl3_checksum(rom[0x40:0x1000]), "6102", "7101", 0)
        assert identify(rom, {info.checksum: info}) is info

    def test_header_bytes_do_not_matter(self):
        rom = self._rom()
        info = CICInfo(ipl3_checksum(rom[0x40:0x1000]), "6102", "7101", 0)
        patched = b"\x80\x37\x12\x40" + b"\xFF" * 0x3C + rom[0x40:]
        assert identify(patched, {info.checksum: info}) is info

    def test_not_in_default_table(self):
        with pytest.raises(UnknownBootROM):
            identify(self._rom())

    def test_truncated(self):
        with pytest.raises(TruncatedRom) as exc:
            identify(self._rom()[:0x800])
        assert exc.value.stage == "ipl3"
        assert exc.value.needed == IPL3_END
