"""
Entrypoint data-flow analysis tests.

STUB is a libultra boot stub as found at ROM 0x1000:

    lui     t0, 0x8004
    addiu   t0, t0, -0x16C0
    addiu   t1, zero, 0x5D50
    addi    t1, t1, -0x8
    sw      zero, 0x0(t0)
    sw      zero, 0x4(t0)
    bnez    t1, -0x4
     addi   t0, t0, 0x8
    lui     t2, 0x8002
    lui     sp, 0x8004
    addiu   t2, t2, 0x5CC0
    jr      t2
     addiu  sp, sp, -0xCD0
    nop
    nop
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from n64_bootscan.classifier import Toolchain
from n64_bootscan.endian import Endian
from n64_bootscan.entrypoint import (DelaySlot, EntrypointAnalysis, EntrypointAnalyzer, StopRule,
                                     analyze_entrypoint, boot_segment_length)
from n64_bootscan.mips import Kind
from n64_bootscan.registers import Gpr, Provenance

STUB = [
    0x3C088004, 0x2508E940, 0x24095D50, 0x2129FFF8,
    0xAD000000, 0xAD000004, 0x1520FFFC, 0x21080008,
    0x3C0A8002, 0x3C1D8004, 0x254A5CC0, 0x01400008,
    0x27BDF330, 0x00000000, 0x00000000,
]

ENTRY = 0x80000400


def pack(words, endian=Endian.BIG) -> bytes:
    order = 'little' if endian is Endian.LITTLE else 'big'
    return b"".join(w.to_bytes(4, order) for w in words)


class TestBootStub:

    @pytest.mark.parametrize("rule", list(StopRule))
    def test_recovered_values(self, rule):
        a = analyze_entrypoint(pack(STUB), ENTRY, stop_rule=rule)
        assert a.jump_address == 0x80025CC0
        assert a.bss_start == 0x8003E940
        assert a.bss_size == 0x5D50
        assert a.initial_sp == 0x8003F330
        assert a.bss_end == 0x8003E940 + 0x5D50

    @pytest.mark.parametrize("rule", list(StopRule))
    def test_candidate_registers(self, rule):
        a = analyze_entrypoint(pack(STUB), ENTRY, stop_rule=rule)
        assert a.jump_register == Gpr.t2
        assert a.bss_pointer_register == Gpr.t0
        assert a.bss_size_register == Gpr.t1
        assert a.bss_sign == 0
        assert not a.size_guessed

    def test_delay_slot_rule_stops_after_jump(self):
        a = analyze_entrypoint(pack(STUB), ENTRY, stop_rule=StopRule.DELAY_SLOT)
        assert a.words == 13
        assert a.delay_slot is DelaySlot.FILLED
        assert a.stop_reason == "delay slot of final jump"
        assert a.delay_slot.suggested_toolchain is Toolchain.IDO
        assert a.trace[-1].instruction.kind is Kind.ADDIU

    def test_double_nop_rule_runs_to_padding(self):
        a = analyze_entrypoint(pack(STUB), ENTRY, stop_rule=StopRule.DOUBLE_NOP)
        assert a.words == 14
        assert a.stop_reason == "second nop"
        assert a.delay_slot is DelaySlot.FILLED

    def test_provenance(self):
        a = analyze_entrypoint(pack(STUB), ENTRY)
        assert a.provenance[Gpr.t2] is Provenance.ADDIU
        assert a.provenance[Gpr.sp] is Provenance.ADDIU
        assert a.provenance[Gpr.t1] is Provenance.ADDIU

    def test_trace_addresses(self):
        a = analyze_entrypoint(pack(STUB), ENTRY)
        first, bnez_slot = a.trace[0], a.trace[7]
        assert (first.ram_address, first.rom_offset, first.word) == (ENTRY, 0x1000, 0x3C088004)
        assert not first.in_delay_slot
        assert bnez_slot.ram_address == ENTRY + 0x1C
        assert bnez_slot.rom_offset == 0x101C
        assert bnez_slot.in_delay_slot

    def test_little_endian_window(self):
        a = analyze_entrypoint(pack(STUB, Endian.LITTLE), ENTRY, endian=Endian.LITTLE)
        assert (a.jump_address, a.bss_start, a.bss_size, a.initial_sp) == \
            (0x80025CC0, 0x8003E940, 0x5D50, 0x8003F330)

    def test_analyzer_can_be_rerun(self):
        analyzer = EntrypointAnalyzer(ENTRY)
        first = analyzer.run(pack(STUB))
        second = analyzer.run(pack(STUB))
        assert (first.jump_address, first.bss_size) == (second.jump_address, second.bss_size)
        assert second.bss_sign == 0


class TestRefinements:

    def test_second_low_half_patch_ignored(self):
        words = [0x3C088004, 0x25080010, 0x25080020, 0x01000008, 0, 0]
        refined = analyze_entrypoint(pack(words), ENTRY, stop_rule=StopRule.DELAY_SLOT)
        plain = analyze_entrypoint(pack(words), ENTRY, stop_rule=StopRule.DOUBLE_NOP)
        assert refined.jump_address == 0x80040010
        assert plain.jump_address == 0x80040030
        assert refined.delay_slot is DelaySlot.NOP
        assert refined.delay_slot.suggested_toolchain is Toolchain.GCC

    def test_ori_provenance(self):
        words = [0x3C0A8002, 0x354A5CC0, 0x01400008, 0, 0]
        a = analyze_entrypoint(pack(words), ENTRY)
        assert a.jump_address == 0x80025CC0
        assert a.provenance[Gpr.t2] is Provenance.ORI

    def test_fallback_size_guess(self):
        words = [
            0x3C088004, 0x25081000,     # t0 = 0x80041000
            0x24090400,                 # t1 = 0x400
            0xAD000000,                 # sw zero, 0(t0)
            0x3C0A8002, 0x3C1D8004, 0x254A5CC0,
            0x01400008, 0x27BDF330, 0, 0,
        ]
        a = analyze_entrypoint(pack(words), ENTRY)
        assert a.size_guessed
        assert a.bss_size_register == Gpr.t1
        assert a.bss_size == 0x400
        assert a.bss_start == 0x80041000

    def test_no_guess_without_refinement(self):
        words = [0x3C088004, 0x24090400, 0xAD000000, 0x01400008, 0, 0]
        a = analyze_entrypoint(pack(words), ENTRY, stop_rule=StopRule.DOUBLE_NOP)
        assert not a.size_guessed
        assert a.bss_size_register == Gpr.zero
        assert a.bss_size == 0

    def test_downward_clear_adjusts_start(self):
        words = [
            0x3C088004,                 # lui   t0, 0x8004
            0x24090100,                 # addiu t1, zero, 0x100
            0x2129FFF8,                 # addi  t1, t1, -0x8
            0xAD000000,                 # sw    zero, 0x0(t0)
            0x1520FFFD,                 # bnez  t1, -0x3
            0x2108FFF8,                 # addi  t0, t0, -0x8
            0x3C0A8002, 0x254A5CC0, 0x01400008, 0,
        ]
        a = analyze_entrypoint(pack(words), ENTRY)
        assert a.bss_sign == -2
        assert a.bss_size == 0x100
        assert a.bss_start == 0x80040000 - 0x100


class TestDegenerateInput:

    def test_unknown_instruction_stops(self):
        words = [0x3C0A8002, 0x8C080000, 0x254A5CC0, 0x01400008, 0]
        a = analyze_entrypoint(pack(words), ENTRY)
        assert a.words == 2
        assert a.trace[-1].instruction.is_error
        assert a.stop_reason == "unknown instruction"
        assert a.jump_register == Gpr.zero
        assert a.jump_address == 0

    def test_all_zero_window(self):
        a = analyze_entrypoint(bytes(0x100), ENTRY)
        assert a.delay_slot.suggested_toolchain is None
        assert (a.jump_address, a.bss_start, a.bss_size, a.initial_sp) == (0, 0, 0, 0)
        assert a.words == 1

    def test_window_is_bounded(self):
        a = analyze_entrypoint(pack([0x3C088004] * 0x800), ENTRY, stop_rule=StopRule.DOUBLE_NOP)
        assert a.words == 0x400
        assert a.stop_reason == "end of window"


class TestBootSegmentLength:

    def _analysis(self, bss_start):
        return EntrypointAnalysis(jump_address=0, bss_start=bss_start, bss_size=0, initial_sp=0)

    def test_distance_to_bss(self):
        assert boot_segment_length(self._analysis(0x8003E940), ENTRY, 0x800000) == 0x3E540

    def test_clamped_to_file(self):
        assert boot_segment_length(self._analysis(0x8003E940), ENTRY, 0x1000) == 0x1000

    def test_clamped_to_ipl3_copy(self):
        assert boot_segment_length(self._analysis(0x80400000), ENTRY, 0x2000000) == 0x100000

    def test_bss_below_entrypoint(self):
        assert boot_segment_length(self._analysis(0x80000000), ENTRY, 0x800000) == 0
