"""
MIPS instruction decoder for N64 boot stubs.

Covers only the opcodes that show up in real entrypoint code: the boot
stub builds a few 32-bit constants (LUI + ADDIU/ORI), clears BSS in a
SW/ADDI/BNEZ loop, loads the stack pointer and jumps to the game's main
with JR. Anything else decodes to UNKNOWN and the caller decides what
to do with it.

Instruction formats (32-bit words, canonical big-endian):

  R  | op:6 | rs:5 | rt:5 | rd:5 | sa:5 | funct:6 |    op == 0 (SPECIAL)
  I  | op:6 | rs:5 | rt:5 |       imm:16          |
  J  | op:6 |          target:26                  |    op == 2, 3

Immediates and branch offsets are stored raw (unshifted, not sign
extended). Sign extension and scaling belong to whoever consumes them.

Pseudo-instructions are canonicalised at decode time:

  beq  rs, zero, off  ->  beqz rs, off
  beq  zero, zero, off ->  b    off
  bne  rs, zero, off  ->  bnez rs, off
  sll  zero, zero, 0  ->  nop          (the all-zero word)
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Dict, Optional

from .registers import Abi, Gpr


# ──────────────────────────────────────────────
# Opcode / function code tables
# ──────────────────────────────────────────────

class Op(IntEnum):
    SPECIAL = 0b000_000
    J       = 0b000_010
    JAL     = 0b000_011
    BEQ     = 0b000_100
    BNE     = 0b000_101
    ADDI    = 0b001_000
    ADDIU   = 0b001_001
    ORI     = 0b001_101
    LUI     = 0b001_111
    SW      = 0b101_011


class Func(IntEnum):
    JR = 0b001_000


_OPCODES = {op.value: op for op in Op}
_FUNCS = {fn.value: fn for fn in Func}


class Kind(Enum):
    J = "j"
    JAL = "jal"
    BEQ = "beq"
    BNE = "bne"
    ADDI = "addi"
    ADDIU = "addiu"
    ORI = "ori"
    LUI = "lui"
    SW = "sw"
    JR = "jr"

    # Pseudo-instructions
    B = "b"
    BEQZ = "beqz"
    BNEZ = "bnez"
    NOP = "nop"

    # Error forms
    UNKNOWN = "unknown"
    INVALID = "invalid"


# Operand layouts used by Instruction.format()
FMT_NONE = 'none'
FMT_TARGET = 'target'       # j 0x80000400
FMT_R = 'r'                 # jr ra
FMT_RRI = 'rri'             # addiu t0, t0, -0x16C0
FMT_RRU = 'rru'             # ori t0, t0, 0xFFF0
FMT_RU = 'ru'               # lui t0, 0x8004
FMT_RRB = 'rrb'             # bne t0, t1, -0x4
FMT_RB = 'rb'               # bnez t1, -0x4
FMT_B = 'b'                 # b 0x10
FMT_MEM = 'mem'             # sw zero, 0x4(t0)
FMT_ERROR = 'error'


@dataclass(frozen=True)
class KindInfo:
    name: str
    is_branch: bool
    is_jump: bool
    operands: str


INSTRUCTION_INFO: Dict[Kind, KindInfo] = {
    Kind.J:       KindInfo("j",       False, True,  FMT_TARGET),
    Kind.JAL:     KindInfo("jal",     False, True,  FMT_TARGET),
    Kind.BEQ:     KindInfo("beq",     True,  False, FMT_RRB),
    Kind.BNE:     KindInfo("bne",     True,  False, FMT_RRB),
    Kind.ADDI:    KindInfo("addi",    False, False, FMT_RRI),
    Kind.ADDIU:   KindInfo("addiu",   False, False, FMT_RRI),
    Kind.ORI:     KindInfo("ori",     False, False, FMT_RRU),
    Kind.LUI:     KindInfo("lui",     False, False, FMT_RU),
    Kind.SW:      KindInfo("sw",      False, False, FMT_MEM),
    Kind.JR:      KindInfo("jr",      False, True,  FMT_R),
    Kind.B:       KindInfo("b",       True,  False, FMT_B),
    Kind.BEQZ:    KindInfo("beqz",    True,  False, FMT_RB),
    Kind.BNEZ:    KindInfo("bnez",    True,  False, FMT_RB),
    Kind.NOP:     KindInfo("nop",     False, False, FMT_NONE),
    Kind.UNKNOWN: KindInfo("unknown", False, False, FMT_ERROR),
    Kind.INVALID: KindInfo("invalid", False, False, FMT_ERROR),
}


def sign_extend16(value: int) -> int:
    """16-bit two's complement -> Python int."""
    value &= 0xFFFF
    return value - 0x10000 if value & 0x8000 else value


def signed_hex(value: int) -> str:
    """Hex literal with a leading minus for negative values."""
    return f"-0x{-value:X}" if value < 0 else f"0x{value:X}"


# ──────────────────────────────────────────────
# Decoded instruction
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Instruction:
    """One decoded word.

    Field ownership per kind:
      J, JAL                 target
      JR                     rs
      LUI                    rt, imm
      ADDI, ADDIU, ORI       rs (source), rt (destination), imm
      SW                     rs (base), rt (source), imm (offset)
      BEQ, BNE               rs, rt, imm (offset)
      BEQZ, BNEZ             rs, imm (offset)
      B                      imm (offset)
      NOP                    nothing
      UNKNOWN, INVALID       opcode, word
    """
    kind: Kind
    rs: Optional[Gpr] = None
    rt: Optional[Gpr] = None
    imm: Optional[int] = None
    target: Optional[int] = None
    opcode: Optional[int] = None
    word: Optional[int] = None

    @property
    def info(self) -> KindInfo:
        return INSTRUCTION_INFO[self.kind]

    @property
    def name(self) -> str:
        return self.info.name

    @property
    def is_branch(self) -> bool:
        return self.info.is_branch

    @property
    def is_jump(self) -> bool:
        return self.info.is_jump

    @property
    def has_delay_slot(self) -> bool:
        return self.is_branch or self.is_jump

    @property
    def is_error(self) -> bool:
        return self.kind in (Kind.UNKNOWN, Kind.INVALID)

    @property
    def is_nop(self) -> bool:
        return self.kind is Kind.NOP

    def branch_target(self, pc: int) -> Optional[int]:
        """Destination address when this instruction sits at ``pc``."""
        if self.is_branch:
            return (pc + 4 + (sign_extend16(self.imm) << 2)) & 0xFFFFFFFF
        if self.kind in (Kind.J, Kind.JAL):
            return ((pc + 4) & 0xF0000000) | self.target
        return None

    def operands(self, abi: Abi = Abi.O32) -> str:
        fmt = self.info.operands
        if fmt == FMT_NONE:
            return ""
        if fmt == FMT_ERROR:
            return f"(op: 0b{self.opcode:06b}, word: {self.word:08X})"
        if fmt == FMT_TARGET:
            return f"0x{self.target:X}"

        rs = self.rs.name_for(abi) if self.rs is not None else ""
        rt = self.rt.name_for(abi) if self.rt is not None else ""
        if fmt == FMT_R:
            return rs
        if fmt == FMT_RRI:
            return f"{rt}, {rs}, {signed_hex(sign_extend16(self.imm))}"
        if fmt == FMT_RRU:
            return f"{rt}, {rs}, 0x{self.imm:X}"
        if fmt == FMT_RU:
            return f"{rt}, 0x{self.imm:X}"
        if fmt == FMT_RRB:
            return f"{rs}, {rt}, {signed_hex(sign_extend16(self.imm))}"
        if fmt == FMT_RB:
            return f"{rs}, {signed_hex(sign_extend16(self.imm))}"
        if fmt == FMT_B:
            return signed_hex(sign_extend16(self.imm))
        if fmt == FMT_MEM:
            return f"{rt}, {signed_hex(sign_extend16(self.imm))}({rs})"
        raise ValueError(f"no operand layout {fmt!r}")

    def format(self, width: int = 10, abi: Abi = Abi.O32) -> str:
        return f"{self.name:<{width}} {self.operands(abi)}".rstrip()

    def __str__(self):
        return self.format()


NOP = Instruction(Kind.NOP)


# ──────────────────────────────────────────────
# Decoder
# ──────────────────────────────────────────────

def decode(word: int) -> Instruction:
    """Decode one canonical-order 32-bit word.

    Never raises for a valid 32-bit value: unsupported opcodes come back
    as UNKNOWN and encodings that violate a must-be-zero field as INVALID,
    both carrying the opcode and the raw word.
    """
    if not 0 <= word <= 0xFFFFFFFF:
        raise ValueError(f"not a 32-bit word: {word:#x}")

    if word == 0:
        return NOP

    opcode = word >> 26
    op = _OPCODES.get(opcode)
    if op is None:
        return Instruction(Kind.UNKNOWN, opcode=opcode, word=word)

    if op is Op.SPECIAL:
        return _decode_special(opcode, word)
    if op in (Op.J, Op.JAL):
        target = (word & 0x3FFFFFF) << 2
        return Instruction(Kind.J if op is Op.J else Kind.JAL, target=target)
    return _decode_immediate(op, opcode, word)


def _decode_special(opcode: int, word: int) -> Instruction:
    funct = word & 0x3F
    rs = Gpr.from_field((word >> 21) & 0x1F)
    rt = Gpr.from_field((word >> 16) & 0x1F)
    rd = Gpr.from_field((word >> 11) & 0x1F)
    sa = (word >> 6) & 0x1F

    fn = _FUNCS.get(funct)
    if fn is None:
        return Instruction(Kind.UNKNOWN, opcode=opcode, word=word)

    # Func.JR is the only supported SPECIAL function
    if rt != Gpr.zero or rd != Gpr.zero or sa:
        return Instruction(Kind.INVALID, opcode=opcode, word=word)
    return Instruction(Kind.JR, rs=rs)


def _decode_immediate(op: Op, opcode: int, word: int) -> Instruction:
    rs = Gpr.from_field((word >> 21) & 0x1F)
    rt = Gpr.from_field((word >> 16) & 0x1F)
    imm = word & 0xFFFF

    if op is Op.LUI:
        if rs != Gpr.zero:
            return Instruction(Kind.INVALID, opcode=opcode, word=word)
        return Instruction(Kind.LUI, rt=rt, imm=imm)

    if op is Op.ADDI:
        return Instruction(Kind.ADDI, rs=rs, rt=rt, imm=imm)
    if op is Op.ADDIU:
        return Instruction(Kind.ADDIU, rs=rs, rt=rt, imm=imm)
    if op is Op.ORI:
        return Instruction(Kind.ORI, rs=rs, rt=rt, imm=imm)
    if op is Op.SW:
        return Instruction(Kind.SW, rs=rs, rt=rt, imm=imm)

    if op is Op.BEQ:
        if rt == Gpr.zero:
            if rs == Gpr.zero:
                return Instruction(Kind.B, imm=imm)
            return Instruction(Kind.BEQZ, rs=rs, imm=imm)
        return Instruction(Kind.BEQ, rs=rs, rt=rt, imm=imm)

    if op is Op.BNE:
        if rt == Gpr.zero:
            return Instruction(Kind.BNEZ, rs=rs, imm=imm)
        return Instruction(Kind.BNE, rs=rs, rt=rt, imm=imm)

    return Instruction(Kind.UNKNOWN, opcode=opcode, word=word)


def decode_words(data: bytes):
    """Yield decoded instructions for every whole word of a canonical buffer."""
    for offset in range(0, len(data) - len(data) % 4, 4):
        yield decode(int.from_bytes(data[offset:offset + 4], 'big'))
