"""
Report formatting for analysed ROMs.

Three output shapes:
    format_report()   multi-line, human readable
    format_terse()    one semicolon-delimited line per ROM (spreadsheet import)
    format_listing()  the instructions the entrypoint analyser walked

Formatting options live in a ReportConfig that the caller builds once and
passes in; nothing in the analysis core reads it.
"""

from dataclasses import dataclass
from typing import List

from .entrypoint import EntrypointAnalysis
from .registers import Abi, Gpr, Provenance

_PROVENANCE_TAGS = {
    Provenance.NONE: "",
    Provenance.ADDIU: "addiu",
    Provenance.ORI: "ori",
}


@dataclass(frozen=True)
class ReportConfig:
    instruction_print_width: int = 10
    abi: Abi = Abi.O32
    verbosity: int = 0
    terse: bool = False
    listing: bool = False
    full_header: bool = False


def provenance_tag(analysis: EntrypointAnalysis, reg: Gpr) -> str:
    """'addiu', 'ori' or '' for the instruction that last set ``reg``."""
    return _PROVENANCE_TAGS[analysis.provenance.get(reg, Provenance.NONE)]


# ──────────────────────────────────────────────
# Listing
# ──────────────────────────────────────────────

def format_listing(analysis: EntrypointAnalysis, config: ReportConfig = ReportConfig()) -> str:
    lines = []
    for step in analysis.trace:
        indent = "      " if step.in_delay_slot else "     "
        text = step.instruction.format(config.instruction_print_width, config.abi)
        lines.append(f"/* {step.ram_address:08X} {step.rom_offset:06X} {step.word:08X} */"
                     f"{indent}{text}")
    return "\n".join(lines)


# ──────────────────────────────────────────────
# Multi-line report
# ──────────────────────────────────────────────

def _register_line(label: str, value: int, analysis: EntrypointAnalysis,
                   reg: Gpr, abi: Abi) -> str:
    tag = provenance_tag(analysis, reg)
    origin = f"{reg.name_for(abi)}, {tag}" if tag else reg.name_for(abi)
    return f"{label:<24}0x{value:08X}  ({origin})"


def _delay_slot_hint(analysis: EntrypointAnalysis) -> str:
    hint = analysis.delay_slot.suggested_toolchain
    return f" (suggests {hint.value})" if hint else ""


def format_report(result, config: ReportConfig = ReportConfig()) -> str:
    """Multi-line report for one RomAnalysis."""
    a = result.analysis
    c = result.classification
    abi = config.abi

    lines = [
        f"File:                   {result.filename}",
        f"Size:                   0x{result.size:X} ({result.size} bytes)",
        f"Format:                 {result.endian.value} ({result.endian.description})",
    ]
    if config.full_header:
        lines.append("Header:")
        lines.extend("  " + line for line in result.header.describe().splitlines())
    else:
        lines.append(f"Header:                 {result.header.summary()}")

    lines += [
        f"IPL3:                   {result.cic.name} (CRC 0x{result.cic.checksum:08X})",
        f"Entrypoint:             0x{result.entrypoint:08X}",
        f"Boot segment length:    0x{result.boot_segment_length:X}",
        _register_line("Initial sp:", a.initial_sp, a, Gpr.sp, abi),
        _register_line("BSS start:", a.bss_start, a, a.bss_pointer_register, abi),
        _register_line("BSS size:", a.bss_size, a, a.bss_size_register, abi),
        f"BSS end:                0x{a.bss_end:08X}",
        _register_line("Jump address:", a.jump_address, a, a.jump_register, abi),
        f"Delay slot:             {a.delay_slot.value}{_delay_slot_hint(a)}",
        f"Branches / jumps:       {c.branches} / {c.jumps} -> {c.verdict.value}",
    ]
    if a.size_guessed:
        lines.append(f"WARNING: BSS size guessed from {a.bss_size_register.name_for(abi)}, "
                     f"check by hand")
    if config.verbosity > 0:
        lines.append(f"Stopped:                {a.stop_reason} after {a.words} words")
        lines.append(f"Classified words:       {c.window_words}")
    if config.listing:
        lines.append("")
        lines.append(format_listing(a, config))
    return "\n".join(lines)


# ──────────────────────────────────────────────
# Terse (one line per ROM)
# ──────────────────────────────────────────────

TERSE_COLUMNS: List[str] = [
    "file", "size", "format",
    "clock_rate", "header_entrypoint", "revision", "checksum1", "checksum2",
    "image_name", "media_format", "cartridge_id", "country_code", "version",
    "ipl3", "entrypoint", "boot_segment_length",
    "sp", "sp_provenance",
    "bss_start", "bss_start_provenance",
    "bss_size", "bss_size_provenance",
    "jump", "jump_provenance",
    "delay_slot", "delay_slot_hint", "branches", "jumps", "toolchain", "bss_size_guessed",
]


def format_terse_header() -> str:
    return ";".join(TERSE_COLUMNS)


def format_terse(result) -> str:
    a = result.analysis
    hint = a.delay_slot.suggested_toolchain
    c = result.classification
    h = result.header
    fields = [
        result.filename,
        f"0x{result.size:X}",
        result.endian.value,
        f"0x{h.clock_rate:08X}",
        f"0x{h.entrypoint:08X}",
        f"0x{h.revision:08X}",
        f"0x{h.checksum1:08X}",
        f"0x{h.checksum2:08X}",
        h.image_name.replace(";", ","),
        h.media_format,
        h.cartridge_id,
        h.country_code.replace("\0", ""),
        f"0x{h.version:02X}",
        result.cic.name,
        f"0x{result.entrypoint:08X}",
        f"0x{result.boot_segment_length:X}",
        f"0x{a.initial_sp:08X}", provenance_tag(a, Gpr.sp),
        f"0x{a.bss_start:08X}", provenance_tag(a, a.bss_pointer_register),
        f"0x{a.bss_size:X}", provenance_tag(a, a.bss_size_register),
        f"0x{a.jump_address:08X}", provenance_tag(a, a.jump_register),
        a.delay_slot.value,
        hint.value if hint else "",
        str(c.branches),
        str(c.jumps),
        c.verdict.value,
        "yes" if a.size_guessed else "no",
    ]
    return ";".join(fields)
