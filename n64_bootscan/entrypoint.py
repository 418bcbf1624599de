"""
Entrypoint data-flow analysis.

The first code IPL3 jumps to is a short libultra boot stub, typically:

    lui     t0, 0x8004
    addiu   t0, t0, -0x16C0        # t0 = BSS start
    addiu   t1, zero, 0x5D50       # t1 = BSS size
  loop:
    addi    t1, t1, -0x8
    sw      zero, 0x0(t0)
    sw      zero, 0x4(t0)
    bnez    t1, loop
     addi   t0, t0, 0x8
    lui     t2, 0x8002
    lui     sp, 0x8004
    addiu   t2, t2, 0x5CC0         # t2 = main
    jr      t2
     addiu  sp, sp, -0xCD0         # sp = boot stack

Walking it once in program order with a symbolic register file is
enough to read back where the game's main lives, where BSS starts,
how big it is and where the stack starts. The loop is not iterated;
the ADDI deltas only vote on whether the clear runs downwards.

Two stop rules are supported:

  DOUBLE_NOP   stop at the second consecutive all-zero word
  DELAY_SLOT   stop one instruction after the first jump (the delay
               slot still executes), also guarded against re-patching
               a constant's low half and with a fallback size guess
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .classifier import Toolchain
from .endian import Endian, read_word
from .mips import Instruction, Kind, decode, sign_extend16
from .registers import Gpr, Provenance, RegisterFile

log = logging.getLogger(__name__)

ENTRYPOINT_ROM_OFFSET = 0x1000     # IPL3 copies the game from here
ENTRYPOINT_WINDOW = 0x1000         # bytes handed to the analyzer
IPL3_LOAD_SIZE = 0x100000          # IPL3 copies 1 MiB to the entrypoint


class StopRule(Enum):
    DOUBLE_NOP = "double-nop"
    DELAY_SLOT = "delay-slot"


class DelaySlot(Enum):
    """What filled the delay slot of the stub's final jump."""
    NONE = "none"          # no jump seen
    NOP = "nop"
    FILLED = "filled"

    @property
    def suggested_toolchain(self) -> Optional[Toolchain]:
        """IDO fills the final delay slot, GCC leaves a nop. None without a jump."""
        return _DELAY_SLOT_HINTS.get(self)


_DELAY_SLOT_HINTS = {
    DelaySlot.NOP: Toolchain.GCC,
    DelaySlot.FILLED: Toolchain.IDO,
}


@dataclass
class TraceStep:
    ram_address: int
    rom_offset: int
    word: int
    instruction: Instruction
    in_delay_slot: bool = False


@dataclass
class EntrypointAnalysis:
    jump_address: int
    bss_start: int
    bss_size: int
    initial_sp: int

    jump_register: Gpr = Gpr.zero
    bss_pointer_register: Gpr = Gpr.zero
    bss_size_register: Gpr = Gpr.zero
    provenance: Dict[Gpr, Provenance] = field(default_factory=dict)
    bss_sign: int = 0
    size_guessed: bool = False
    delay_slot: DelaySlot = DelaySlot.NONE
    stop_reason: str = ""
    words: int = 0
    trace: List[TraceStep] = field(default_factory=list)

    @property
    def bss_end(self) -> int:
        return (self.bss_start + self.bss_size) & 0xFFFFFFFF


class EntrypointAnalyzer:
    """Symbolic walk over the boot stub. One instance per analysis pass."""

    def __init__(self, address: int, endian: Endian = Endian.BIG,
                 stop_rule: StopRule = StopRule.DELAY_SLOT,
                 rom_offset: int = ENTRYPOINT_ROM_OFFSET):
        self.address = address
        self.endian = endian
        self.stop_rule = stop_rule
        self.rom_offset = rom_offset

        self.regs = RegisterFile()
        self.jump_register = Gpr.zero
        self.bss_pointer_register = Gpr.zero
        self.branch_register: Optional[Gpr] = None
        self.addi_targets: List[Gpr] = []
        self.bss_sign = 0

    @property
    def refined(self) -> bool:
        return self.stop_rule is StopRule.DELAY_SLOT

    # --- Register tracking ---

    def _low_half_set(self, reg: Gpr) -> bool:
        return self.refined and (self.regs[reg] & 0xFFFF) != 0

    def track(self, instr: Instruction):
        """Apply one instruction to the register file and the candidates."""
        regs = self.regs
        kind = instr.kind

        if kind is Kind.LUI:
            regs[instr.rt] = instr.imm << 16
            regs.set_provenance(instr.rt, Provenance.NONE)

        elif kind is Kind.ADDIU:
            if self._low_half_set(instr.rt):
                log.debug("%s already patched, ignoring %s", instr.rt, instr)
                return
            regs[instr.rt] = regs[instr.rs] + sign_extend16(instr.imm)
            regs.set_provenance(instr.rt, Provenance.ADDIU)

        elif kind is Kind.ORI:
            if self._low_half_set(instr.rt):
                log.debug("%s already patched, ignoring %s", instr.rt, instr)
                return
            regs[instr.rt] = regs[instr.rs] | instr.imm
            regs.set_provenance(instr.rt, Provenance.ORI)

        elif kind is Kind.ADDI:
            # Trapping add: only its direction is used
            self.bss_sign += -1 if instr.imm >= 0x8000 else 1
            self.addi_targets.append(instr.rt)

        elif kind is Kind.SW:
            self.bss_pointer_register = instr.rs

        elif kind in (Kind.BNE, Kind.BNEZ):
            self.branch_register = instr.rs

        elif kind is Kind.JR:
            self.jump_register = instr.rs

    # --- Main loop ---

    def run(self, data: bytes) -> EntrypointAnalysis:
        self.regs.reset()
        self.jump_register = Gpr.zero
        self.bss_pointer_register = Gpr.zero
        self.branch_register = None
        self.addi_targets = []
        self.bss_sign = 0

        trace: List[TraceStep] = []
        consecutive_nops = 0
        prev_has_delay_slot = False
        final_jump_seen = False
        delay_slot = DelaySlot.NONE
        stop_reason = "end of window"

        ram_address = self.address
        rom_offset = self.rom_offset

        for pos in range(0, len(data) - len(data) % 4, 4):
            word = read_word(data[pos:pos + 4], self.endian)

            consecutive_nops = consecutive_nops + 1 if word == 0 else 0
            if consecutive_nops > 1:
                stop_reason = "second nop"
                log.debug("Second nop at ROM 0x%06X, stopping", rom_offset)
                break

            instr = decode(word)
            trace.append(TraceStep(ram_address, rom_offset, word, instr,
                                   prev_has_delay_slot))

            if instr.is_error:
                stop_reason = f"{instr.name} instruction"
                log.warning("Stopping at 0x%08X (ROM 0x%06X): %s",
                            ram_address, rom_offset, instr)
                break

            self.track(instr)

            if final_jump_seen and delay_slot is DelaySlot.NONE:
                delay_slot = DelaySlot.NOP if instr.is_nop else DelaySlot.FILLED
                if self.refined:
                    stop_reason = "delay slot of final jump"
                    break
            if instr.is_jump:
                final_jump_seen = True

            prev_has_delay_slot = instr.has_delay_slot
            ram_address = (ram_address + 4) & 0xFFFFFFFF
            rom_offset += 4

        log.debug("Registers at stop: %s", self.regs.display())
        result = self._result()
        result.delay_slot = delay_slot
        result.stop_reason = stop_reason
        result.words = len(trace)
        result.trace = trace
        return result

    # --- Read back ---

    def _size_register(self):
        """Pick the BSS size register. Returns (register, guessed)."""
        if not self.refined:
            if self.branch_register is None:
                return Gpr.zero, False
            return self.branch_register, False

        for reg in reversed(self.addi_targets):
            if reg != self.bss_pointer_register:
                return reg, False
        if self.branch_register is not None:
            return self.branch_register, False

        reg = self.regs.first_nonzero(
            exclude=(Gpr.zero, self.jump_register, Gpr.sp,
                     self.bss_pointer_register))
        log.info("No BSS size register observed, guessing %s", reg)
        return reg, True

    def _result(self) -> EntrypointAnalysis:
        regs = self.regs
        size_reg, guessed = self._size_register()

        jump_address = regs[self.jump_register]
        bss_size = regs[size_reg]
        bss_start = regs[self.bss_pointer_register]
        if self.bss_sign < 0:
            bss_start = (bss_start - bss_size) & 0xFFFFFFFF

        provenance = {reg: regs.provenance(reg)
                      for reg in (self.jump_register, self.bss_pointer_register,
                                  size_reg, Gpr.sp)}

        return EntrypointAnalysis(
            jump_address=jump_address,
            bss_start=bss_start,
            bss_size=bss_size,
            initial_sp=regs[Gpr.sp],
            jump_register=self.jump_register,
            bss_pointer_register=self.bss_pointer_register,
            bss_size_register=size_reg,
            provenance=provenance,
            bss_sign=self.bss_sign,
            size_guessed=guessed,
        )


def analyze_entrypoint(data: bytes, address: int, endian: Endian = Endian.BIG,
                       stop_rule: StopRule = StopRule.DELAY_SLOT) -> EntrypointAnalysis:
    """Run one analysis pass over ``data`` (starting at ROM 0x1000)."""
    analyzer = EntrypointAnalyzer(address, endian=endian, stop_rule=stop_rule)
    result = analyzer.run(data[:ENTRYPOINT_WINDOW])
    log.debug("Entrypoint 0x%08X: %d words, stopped on %s",
              address, result.words, result.stop_reason)
    return result


def boot_segment_length(analysis: EntrypointAnalysis, entrypoint: int,
                        available: int) -> int:
    """Bytes of code/data between the entrypoint and the start of BSS.

    Clamped to what IPL3 actually copies and to what the file holds.
    Zero when the recovered BSS does not lie above the entrypoint.
    """
    if analysis.bss_start <= entrypoint:
        return 0
    length = analysis.bss_start - entrypoint
    return max(0, min(length, IPL3_LOAD_SIZE, available)) & ~3
