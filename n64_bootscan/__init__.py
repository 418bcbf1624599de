"""
n64_bootscan — N64 ROM boot sequence analyser
==============================================
Recovers what an N64 cartridge image does before its main(): the IPL3
variant, the real entrypoint, the address the boot stub finally jumps to,
the BSS segment and the initial stack pointer, plus a guess at the
compiler that built the boot segment.

Pipeline:
    ┌──────────┐    ┌──────────┐    ┌──────────┐    ┌────────────┐    ┌────────────┐
    │ raw ROM  │───>│  endian  │───>│   ipl3   │───>│ entrypoint │───>│ classifier │
    │ (bytes)  │    │ (z64)    │    │ (CIC,EP) │    │ (regs)     │    │ (IDO/GCC)  │
    └──────────┘    └──────────┘    └──────────┘    └────────────┘    └────────────┘
                                         ^                 ^                 ^
                         header.py ──────┘     mips.py ────┴─────────────────┘

    - endian.py:     magic detection, normalisation to big-endian
    - header.py:     the fixed 0x40-byte header
    - ipl3.py:       CRC of 0x40-0x1000, CIC table, entrypoint correction
    - mips.py:       instruction decoder for the boot-stub opcode subset
    - registers.py:  GPR identifiers and the symbolic register file
    - entrypoint.py: data-flow walk over the boot stub
    - classifier.py: branch vs. jump statistics over the boot segment
    - report.py:     text report, semicolon-delimited line, listing
"""

__version__ = "0.4.0"

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

from .classifier import MIN_EVIDENCE, Classification, Direction, Toolchain, classify, classify_window
from .endian import Endian, detect_endian, normalize, to_canonical
from .entrypoint import (ENTRYPOINT_ROM_OFFSET, ENTRYPOINT_WINDOW, DelaySlot, EntrypointAnalysis,
                         StopRule, analyze_entrypoint, boot_segment_length)
from .errors import BootScanError, TruncatedRom, UnknownBootROM, UnrecognizedFormat
from .header import N64Header, read_header
from .ipl3 import CIC_TABLE, CICInfo, identify, ipl3_checksum
from .mips import Instruction, Kind, decode
from .registers import Abi, Gpr, Provenance, RegisterFile

log = logging.getLogger(__name__)

MIN_ROM_SIZE = ENTRYPOINT_ROM_OFFSET + ENTRYPOINT_WINDOW   # 0x2000


@dataclass
class RomAnalysis:
    """Everything recovered from one ROM image."""
    filename: str
    size: int
    endian: Endian
    header: N64Header
    cic: CICInfo
    entrypoint: int
    boot_segment_length: int
    analysis: EntrypointAnalysis
    classification: Classification


def analyze_rom(data: bytes, filename: str = "<memory>", *,
                stop_rule: StopRule = StopRule.DELAY_SLOT,
                direction: Direction = Direction.REVERSE,
                min_evidence: int = MIN_EVIDENCE,
                cic_table: Optional[Dict[int, CICInfo]] = None) -> RomAnalysis:
    """Run the full pipeline over one raw ROM image.

    Full pipeline: endian -> header -> ipl3 -> entrypoint -> classifier.

    Args:
        data: Raw image in any of the three byte orders.
        filename: Name carried into the result and log messages.
        stop_rule: When the entrypoint walk stops (default DELAY_SLOT).
        direction: Scan order of the toolchain heuristic.
        min_evidence: Branches + jumps needed before a verdict is given.
        cic_table: Replacement CIC table (default: the built-in one).

    Raises:
        UnrecognizedFormat, TruncatedRom, UnknownBootROM; all BootScanError.
    """
    endian = detect_endian(data)
    if len(data) < MIN_ROM_SIZE:
        raise TruncatedRom(MIN_ROM_SIZE, len(data))
    log.debug("%s: %s", filename, endian.description)

    usable = len(data) - len(data) % 4
    rom = to_canonical(data[:usable], endian)

    header = read_header(rom)
    cic = identify(rom, cic_table)
    entrypoint = cic.correct_entrypoint(header.entrypoint)
    log.info("%s: CIC %s, entrypoint 0x%08X (header says 0x%08X)",
             filename, cic.name, entrypoint, header.entrypoint)

    window = rom[ENTRYPOINT_ROM_OFFSET:ENTRYPOINT_ROM_OFFSET + ENTRYPOINT_WINDOW]
    analysis = analyze_entrypoint(window, entrypoint, Endian.BIG, stop_rule)
    if analysis.size_guessed:
        log.warning("%s: BSS size is a fallback guess from %s, needs manual review",
                    filename, analysis.bss_size_register)

    seg_len = boot_segment_length(analysis, entrypoint,
                                  len(rom) - ENTRYPOINT_ROM_OFFSET)
    segment = rom[ENTRYPOINT_ROM_OFFSET:ENTRYPOINT_ROM_OFFSET + seg_len]
    classification = classify_window(segment, direction, min_evidence)

    return RomAnalysis(
        filename=filename,
        size=len(data),
        endian=endian,
        header=header,
        cic=cic,
        entrypoint=entrypoint,
        boot_segment_length=seg_len,
        analysis=analysis,
        classification=classification,
    )


def analyze_file(path: Union[str, Path], **kwargs) -> RomAnalysis:
    """Read a ROM from disk and analyse it. OSError propagates."""
    path = Path(path)
    data = path.read_bytes()
    return analyze_rom(data, filename=path.name, **kwargs)
