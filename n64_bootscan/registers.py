"""
MIPS general-purpose registers and the symbolic register file.

Register model (VR4300, 32-bit view):
  $0        zero — hardwired to 0, writes are discarded
  $1        at   — assembler temporary
  $2-$3     v0-v1
  $4-$7     a0-a3
  $8-$15    t0-t7 under o32; a4-a7, t0-t3 under n32/n64
  $16-$23   s0-s7
  $24-$25   t8-t9
  $26-$27   k0-k1
  $28       gp
  $29       sp   — the boot stub sets this before jumping to main
  $30       fp
  $31       ra

The register file is 32 fixed slots indexed by register number. It is
created zeroed for each analysis pass and thrown away afterwards.
"""

from enum import Enum, IntEnum
from typing import List


class Abi(Enum):
    O32 = "o32"
    N32 = "n32"
    N64 = "n64"


class Gpr(IntEnum):
    zero = 0
    at = 1
    v0 = 2
    v1 = 3
    a0 = 4
    a1 = 5
    a2 = 6
    a3 = 7
    t0 = 8
    t1 = 9
    t2 = 10
    t3 = 11
    t4 = 12
    t5 = 13
    t6 = 14
    t7 = 15
    s0 = 16
    s1 = 17
    s2 = 18
    s3 = 19
    s4 = 20
    s5 = 21
    s6 = 22
    s7 = 23
    t8 = 24
    t9 = 25
    k0 = 26
    k1 = 27
    gp = 28
    sp = 29
    fp = 30
    ra = 31

    @classmethod
    def from_field(cls, value: int) -> "Gpr":
        """Checked conversion from a 5-bit instruction field."""
        if not 0 <= value < 32:
            raise ValueError(f"register field out of range: {value}")
        return cls(value)

    def name_for(self, abi: Abi = Abi.O32) -> str:
        if abi is not Abi.O32 and 8 <= self <= 15:
            return _NEW_ABI_TEMPS[self - 8]
        return self.name

    @property
    def clobbered_by_func(self) -> bool:
        """Caller-saved under o32: a call may change it."""
        return _CLOBBERED_BY_FUNC[self]

    def __str__(self):
        return self.name


_NEW_ABI_TEMPS = ("a4", "a5", "a6", "a7", "t0", "t1", "t2", "t3")

# Indexed by register number, zero..ra
_CLOBBERED_BY_FUNC = (
    False, True, True, True, True, True, True, True,         # zero at v0-v1 a0-a3
    True, True, True, True, True, True, True, True,          # t0-t7
    False, False, False, False, False, False, False, False,  # s0-s7
    True, True, False, False, False, True, True, False,      # t8 t9 k0 k1 gp sp fp ra
)


class Provenance(Enum):
    """Which immediate operation last completed a register's low half."""
    NONE = "none"
    ADDIU = "addiu"
    ORI = "ori"


class RegisterFile:
    """32 unsigned 32-bit slots plus per-register provenance."""

    __slots__ = ('_values', '_provenance')

    def __init__(self):
        self._values: List[int] = [0] * 32
        self._provenance: List[Provenance] = [Provenance.NONE] * 32

    def __getitem__(self, reg: Gpr) -> int:
        return self._values[reg]

    def __setitem__(self, reg: Gpr, value: int):
        if reg == Gpr.zero:
            return
        self._values[reg] = value & 0xFFFFFFFF

    def provenance(self, reg: Gpr) -> Provenance:
        return self._provenance[reg]

    def set_provenance(self, reg: Gpr, prov: Provenance):
        if reg != Gpr.zero:
            self._provenance[reg] = prov

    def first_nonzero(self, exclude=()) -> Gpr:
        """First register in index order holding a non-zero value.

        Returns Gpr.zero when every candidate is zero.
        """
        skip = set(exclude)
        for reg in Gpr:
            if reg in skip:
                continue
            if self._values[reg]:
                return reg
        return Gpr.zero

    def reset(self):
        self._values = [0] * 32
        self._provenance = [Provenance.NONE] * 32

    def display(self, abi: Abi = Abi.O32) -> str:
        """Non-zero registers as ``name=XXXXXXXX`` pairs."""
        parts = [f"{reg.name_for(abi)}={value:08X}"
                 for reg, value in zip(Gpr, self._values) if value]
        return " ".join(parts) if parts else "(all zero)"
