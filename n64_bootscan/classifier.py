"""
Compiler toolchain heuristic.

The two toolchains used for N64 games lower unconditional control flow
differently: SGI IDO prefers PC-relative branches (``b``, ``beqz``),
while KMC/GCC emits ``j`` far more often. Counting branches against
jumps inside code that looks like function bodies gives a usable guess.

Function bodies are found with the ``jr ra`` return:

  REVERSE  walk the window backwards; a ``jr ra`` means we just entered
           a function from its end.
  FORWARD  walk forwards; a function starts at the first real
           instruction at the window start or after the previous
           ``jr ra`` and its delay slot.

In both directions an UNKNOWN/INVALID word means we have walked into
data or padding, and counting stops until the next function boundary.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from .mips import Instruction, Kind, decode_words
from .registers import Gpr

log = logging.getLogger(__name__)

MIN_EVIDENCE = 8


class Direction(Enum):
    REVERSE = "reverse"
    FORWARD = "forward"


class Toolchain(Enum):
    IDO = "IDO"
    GCC = "GCC"
    INSUFFICIENT = "insufficient evidence"


@dataclass
class Classification:
    branches: int
    jumps: int
    verdict: Toolchain
    window_words: int = 0

    @property
    def total(self) -> int:
        return self.branches + self.jumps


def _is_return(instr: Instruction) -> bool:
    return instr.kind is Kind.JR and instr.rs == Gpr.ra


def _count_reverse(instrs):
    branches = jumps = 0
    in_function = False
    for instr in reversed(instrs):
        if instr.is_error:
            in_function = False
            continue
        if _is_return(instr):
            in_function = True
            continue
        if not in_function:
            continue
        if instr.is_branch:
            branches += 1
        elif instr.is_jump:
            jumps += 1
    return branches, jumps


def _count_forward(instrs):
    branches = jumps = 0
    in_function = False
    armed = True            # window start counts as a function boundary
    in_return_slot = False

    for instr in instrs:
        if instr.is_error:
            in_function = armed = in_return_slot = False
            continue

        # jr ra ends a function even when counting was suspended by an error
        if in_return_slot:
            counted = in_function
            in_function, in_return_slot, armed = False, False, True
            if not counted:
                continue
        elif _is_return(instr):
            in_return_slot = True
            continue
        elif not in_function:
            if armed and not instr.is_nop:
                in_function, armed = True, False
            else:
                continue

        if instr.is_branch:
            branches += 1
        elif instr.is_jump:
            jumps += 1
    return branches, jumps


def verdict_for(branches: int, jumps: int,
                min_evidence: int = MIN_EVIDENCE) -> Toolchain:
    if branches + jumps < min_evidence:
        return Toolchain.INSUFFICIENT
    if branches > jumps:
        return Toolchain.IDO
    return Toolchain.GCC


def classify(instructions: Iterable[Instruction],
             direction: Direction = Direction.REVERSE,
             min_evidence: int = MIN_EVIDENCE) -> Classification:
    instrs = list(instructions)
    if direction is Direction.REVERSE:
        branches, jumps = _count_reverse(instrs)
    else:
        branches, jumps = _count_forward(instrs)

    verdict = verdict_for(branches, jumps, min_evidence)
    log.debug("%s scan over %d words: %d branches, %d jumps -> %s",
              direction.value, len(instrs), branches, jumps, verdict.value)
    return Classification(branches, jumps, verdict, window_words=len(instrs))


def classify_window(data: bytes, direction: Direction = Direction.REVERSE,
                    min_evidence: int = MIN_EVIDENCE) -> Classification:
    """Decode a canonical-order byte window and classify it."""
    return classify(decode_words(data), direction, min_evidence)
