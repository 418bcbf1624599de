"""
Exception taxonomy for the boot scanner.

Every fatal condition for a single ROM derives from BootScanError and
names the pipeline stage that failed, so the CLI can report
``file: stage: message`` and move on to the next ROM.

Soft decode problems (unknown opcodes, invalid operand combinations) are
not exceptions; the decoder returns them as instruction values.
"""


class BootScanError(Exception):
    """Base class for errors that stop the analysis of one ROM."""
    stage = "analysis"

    def __init__(self, message: str, stage: str = ""):
        if stage:
            self.stage = stage
        super().__init__(message)


class UnrecognizedFormat(BootScanError):
    """Raised when the 4-byte magic matches none of the known byte orders."""
    stage = "endian"


class UnknownBootROM(BootScanError):
    """Raised when the IPL3 checksum is not in the CIC table."""
    stage = "ipl3"

    def __init__(self, checksum: int):
        self.checksum = checksum
        super().__init__(f"Unrecognised IPL3 checksum 0x{checksum:08X}")


class TruncatedRom(BootScanError):
    """Raised when a fixed-size read runs past the end of the image."""
    stage = "read"

    def __init__(self, needed: int, available: int, what: str = "ROM",
                 stage: str = ""):
        self.needed = needed
        self.available = available
        super().__init__(
            f"{what} needs 0x{needed:X} bytes, only 0x{available:X} available",
            stage)
