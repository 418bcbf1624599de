#!/usr/bin/env python3
"""
bootscan — N64 ROM boot sequence analyser CLI

Usage:
    python bootscan.py <rom> [<rom> ...] [-t] [-l] [--header] [--abi o32|n32|n64]
                       [--width N] [--stop-rule delay-slot|double-nop]
                       [--classify-direction reverse|forward] [--min-evidence N]
                       [--fail-fast] [-v] [-q] [--log-file PATH]

Every ROM is analysed on its own. A ROM that cannot be analysed prints
``file: stage: message`` to stderr and the batch carries on, unless
--fail-fast is given. The exit status is 1 when any ROM failed.

Examples:
    python bootscan.py game.z64
    python bootscan.py roms/*.n64 --terse > boot.csv
    python bootscan.py game.v64 --listing --abi n32 -v
"""

import argparse
import logging
import os
import sys

# Allow running from project root without installing
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from n64_bootscan import __version__, analyze_file
from n64_bootscan.classifier import MIN_EVIDENCE, Direction
from n64_bootscan.entrypoint import StopRule
from n64_bootscan.errors import BootScanError
from n64_bootscan.logsetup import setup_logging
from n64_bootscan.registers import Abi
from n64_bootscan.report import ReportConfig, format_report, format_terse, format_terse_header

log = logging.getLogger("n64_bootscan.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bootscan",
        description="Recover entrypoint, BSS, stack and toolchain from N64 ROM boot code",
    )
    parser.add_argument("roms", nargs="+", metavar="ROM",
                        help="ROM image(s) in z64, n64 or v64 byte order")
    parser.add_argument("-t", "--terse", action="store_true",
                        help="One semicolon-delimited line per ROM")
    parser.add_argument("-l", "--listing", action="store_true",
                        help="Append the disassembly of the boot stub")
    parser.add_argument("--header", action="store_true",
                        help="Print every header field instead of the summary line")
    parser.add_argument("--abi", choices=[a.value for a in Abi], default=Abi.O32.value,
                        help="Register names used in the listing (default: o32)")
    parser.add_argument("--width", type=int, default=10,
                        help="Mnemonic column width in the listing (default: 10)")
    parser.add_argument("--stop-rule", choices=[r.value for r in StopRule],
                        default=StopRule.DELAY_SLOT.value,
                        help="When the entrypoint walk stops (default: delay-slot)")
    parser.add_argument("--classify-direction", choices=[d.value for d in Direction],
                        default=Direction.REVERSE.value,
                        help="Scan order of the toolchain heuristic (default: reverse)")
    parser.add_argument("--min-evidence", type=int, default=MIN_EVIDENCE,
                        help=f"Branches+jumps needed for a verdict (default: {MIN_EVIDENCE})")
    parser.add_argument("--fail-fast", action="store_true",
                        help="Stop the batch at the first ROM that fails")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="More log output (-vv for debug)")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Only log errors")
    parser.add_argument("--log-file", default=None,
                        help="Also write a debug log to this file")
    parser.add_argument("--version", action="version",
                        version=f"bootscan {__version__}")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose, args.quiet, args.log_file)

    config = ReportConfig(
        instruction_print_width=args.width,
        abi=Abi(args.abi),
        verbosity=args.verbose,
        terse=args.terse,
        listing=args.listing,
        full_header=args.header,
    )
    options = dict(
        stop_rule=StopRule(args.stop_rule),
        direction=Direction(args.classify_direction),
        min_evidence=args.min_evidence,
    )

    if config.terse:
        print(format_terse_header())

    failed = 0
    for index, rom in enumerate(args.roms):
        try:
            result = analyze_file(rom, **options)
        except OSError as e:
            print(f"{rom}: read: {e.strerror or e}", file=sys.stderr)
        except BootScanError as e:
            print(f"{rom}: {e.stage}: {e}", file=sys.stderr)
        else:
            if config.terse:
                print(format_terse(result))
            else:
                if index:
                    print()
                print(format_report(result, config))
            continue

        failed += 1
        if args.fail_fast:
            log.error("Stopping after %s (--fail-fast)", rom)
            break

    if failed:
        log.info("%d of %d ROM(s) failed", failed, len(args.roms))
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
