"""
Failure reporting for MultiMount.

Turns the attempt list of a failed MountResult into a table of what was
tried and a list of concrete remediation hints: install hints for every
missing tool, family-specific advice, and for Amiga hard disk images advice
based on the partition's DOS type.
"""

from typing import List

from rich.markup import escape
from rich.table import Table

from multimount.core.process import TOOLS
from multimount.imaging.image_formats import Family, Variant
from multimount.mounting.techniques import FailureKind, MountResult

FAMILY_HINTS = {
    Family.AMIGA: ["Install adf-util or amitools for better support (pip3 install amitools)"],
    Family.APPLE_II: ["Install AppleCommander or CiderPress"],
    Family.ATARI: ["Install Hatari tools or STeem (sudo apt install hatari)"],
    Family.TRS80: ["Install TRSTools or xtrs"],
    Family.COMMODORE: ["Install VICE for c1541: sudo apt install vice"],
    Family.GENERIC: ["Check that the kernel supports the image's filesystem type"],
    Family.UNKNOWN: ["Force a filesystem type with -t TYPE (e.g. -t vfat, -t adf)"],
}

FAILURE_LABELS = {
    FailureKind.TOOL_MISSING: "tool missing",
    FailureKind.PRECONDITION_NOT_MET: "precondition not met",
    FailureKind.TOOL_EXECUTION_FAILED: "tool failed",
    FailureKind.MOUNT_CALL_FAILED: "mount failed",
}


def hdf_hints(dos_type: str) -> List[str]:
    """
    Advice for an Amiga hard disk image that could not be mounted.

    SmartFileSystem partitions have no Linux driver, so only an emulator
    can read them.

    Example:
        >>> hdf_hints("SFS0")[0]
        'Use FS-UAE emulator: sudo apt install fs-uae'
    """
    if "SFS" in (dos_type or "").upper():
        return [
            "Use FS-UAE emulator: sudo apt install fs-uae",
            "Use UAE4ARM or WinUAE with this HDF",
        ]
    return [
        "Try loading AFFS kernel module: sudo modprobe affs",
        "Use FS-UAE emulator as fallback",
        "Check the image for corruption, or convert the partition to ADF with xdftool",
    ]


def remediation_hints(result: MountResult) -> List[str]:
    """
    Collect remediation hints for a failed dispatch.

    Args:
        result: Failed MountResult

    Returns:
        De-duplicated hints, install hints for missing tools first
    """
    hints: List[str] = []

    for failure in result.failures:
        if failure.kind is FailureKind.TOOL_MISSING and failure.tool in TOOLS:
            spec = TOOLS[failure.tool]
            hints.append(f"Install {spec.name}: {spec.install_hint}")

    classification = result.classification
    if classification.variant is Variant.HDF:
        dos_type = result.finding("partition_dos_type") or classification.filesystem or ""
        hints.extend(hdf_hints(dos_type))
    else:
        hints.extend(FAMILY_HINTS.get(classification.family, []))

    unique: List[str] = []
    for hint in hints:
        if hint not in unique:
            unique.append(hint)
    return unique


def format_failure_report(result: MountResult) -> Table:
    """
    Build a table of every attempted technique and why it failed.

    Example:
        >>> console.print(format_failure_report(result))
    """
    table = Table(title=f"Attempts for {result.image_path.name}", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Technique", style="cyan")
    table.add_column("Failure", style="yellow")
    table.add_column("Detail")

    for number, failure in enumerate(result.failures, start=1):
        detail = failure.detail
        if failure.command:
            detail = f"{detail}\n$ {' '.join(failure.command)}"
        table.add_row(str(number), failure.technique,
                      FAILURE_LABELS[failure.kind], escape(detail))

    return table
