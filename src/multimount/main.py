"""
Main entry point for MultiMount.

Classifies a disk or filesystem image and mounts or extracts it with the
technique chain of its format. Also unmounts, lists loop devices, creates
ramdisks and installs the retro platform tools.

Exit status: 0 on success (and for help, list and unmount display), 1 on
invalid input, an unsupported format in check-only mode, or a dispatch that
exhausted every technique.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from multimount import __version__
from multimount.core.errors import (
    AmbiguousOrUnknownFormat,
    ConfigError,
    InputNotFound,
    MountCallFailed,
    ToolExecutionFailed,
    ToolMissing,
)
from multimount.core.loop_devices import (
    LoopInventory,
    UnmountStatus,
    create_ramdisk,
    list_loop_devices,
    unmount_path,
)
from multimount.core.settings import DEFAULT_MOUNT_POINT, MountSettings, load_settings
from multimount.core.system import HostSystem
from multimount.imaging import classifier
from multimount.imaging.format_registry import extensions_by_family
from multimount.imaging.image_formats import FormatClassification, ImageFile
from multimount.mounting.dispatcher import MountDispatcher
from multimount.mounting.techniques import MountResult, OutcomeKind
from multimount.utils import admin_check
from multimount.utils.admin_check import RootRequired
from multimount.utils.dependencies import check_dependencies, install_retro_tools
from multimount.utils.error_handler import format_failure_report, remediation_hints
from multimount.utils.logging import setup_logging

logger = logging.getLogger(__name__)

PREVIEW_ENTRIES = 10

EXAMPLES = """\
examples:
  multimount /path/to/image.squashfs
  multimount -m /tmp/mount /path/to/image.iso
  multimount /path/to/game.adf
  multimount /path/to/workbench.hdf
  multimount /path/to/c64_disk.d64
  multimount -r 2G -m /tmp/ramdisk
  multimount -u /mnt/auto-mount
  multimount -c /path/to/unknown_image
  multimount -i
"""


class ArgumentParser(argparse.ArgumentParser):
    """argparse parser whose usage errors exit with status 1."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> ArgumentParser:
    formats = "\n".join(
        f"  {family.value}: {' '.join(ext.lstrip('.').upper() for ext in extensions)}"
        for family, extensions in extensions_by_family().items()
    )
    parser = ArgumentParser(
        prog="multimount",
        description="Universal filesystem image mounter for retro and modern formats.",
        epilog=f"supported formats:\n{formats}\n  Generic: SquashFS ISO9660 EXT2/3/4 XFS BTRFS\n\n{EXAMPLES}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("image", nargs="?", help="filesystem image (or mount point with -u)")
    parser.add_argument("target", nargs="?", metavar="mount_point",
                        help="mount point (same as -m)")
    parser.add_argument("-m", "--mount-point", type=Path,
                        help=f"mount point (default: {DEFAULT_MOUNT_POINT})")
    parser.add_argument("-r", "--ramdisk", metavar="SIZE",
                        help="create a ramdisk of SIZE (e.g. 2G, 512M)")
    parser.add_argument("-t", "--type", dest="forced_type", metavar="TYPE",
                        help="force image format (adf, hdf, d64, ...) or kernel filesystem type")
    parser.add_argument("-v", "--verbose", action="store_true", default=None,
                        help="verbose output")
    parser.add_argument("--config", type=Path, help="settings file (JSON)")
    parser.add_argument("--log-file", type=Path, help="write a debug log to this file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    modes = parser.add_mutually_exclusive_group()
    modes.add_argument("-u", "--umount", action="store_true", help="unmount the given path")
    modes.add_argument("-l", "--list", action="store_true", help="list loop devices")
    modes.add_argument("-c", "--check", action="store_true",
                       help="only check the file type, don't mount")
    modes.add_argument("-i", "--install-retro", action="store_true",
                       help="install retro computer filesystem tools")
    return parser


# =============================================================================
# Output
# =============================================================================

def show_detection_report(console: Console, image: ImageFile,
                          classification: FormatClassification) -> None:
    table = Table(show_header=False, box=None)
    table.add_column(style="bold")
    table.add_column()
    table.add_row("File", str(image.path))
    table.add_row("Size", f"{image.size:,} bytes")
    table.add_row("Type", escape(classifier.describe_file(image) or "unknown"))
    table.add_row("First bytes", classifier.hex_prefix(image))
    table.add_row("Detected", escape(str(classification)))
    if classification.description:
        table.add_row("Evidence", escape(classification.description))
    console.print(table)


def show_mount_summary(console: Console, result: MountResult, system: HostSystem) -> None:
    target = result.location
    if result.kind is OutcomeKind.MOUNTED:
        fs_type = system.mount_fstype(target) or "unknown"
    else:
        fs_type = "extracted"

    console.print("\n[bold green]Mount successful![/bold green]")
    console.print(f"Filesystem: {result.image_path}")
    console.print(f"Mount point: {target}")
    console.print(f"Technique: {result.technique_used}")
    console.print(f"Type: {fs_type}")
    if result.detail:
        console.print(f"Detail: {result.detail}")

    try:
        entries = sorted(target.iterdir())
    except OSError as e:
        logger.warning("Cannot list %s: %s", target, e)
        entries = []

    console.print("\n[bold blue]Contents preview:[/bold blue]")
    for entry in entries[:PREVIEW_ENTRIES]:
        console.print(f"  {entry.name}{'/' if entry.is_dir() else ''}")
    if len(entries) > PREVIEW_ENTRIES:
        console.print(f"  ... {len(entries) - PREVIEW_ENTRIES} more")

    console.print(f"\n[yellow]To unmount:[/yellow] multimount -u {target}")


def show_failure(console: Console, result: MountResult) -> None:
    console.print(f"[bold red]Failed to mount {result.image_path.name} "
                  f"({escape(str(result.classification))})[/bold red]")
    if result.failures:
        console.print(format_failure_report(result))

    findings = dict(result.findings)
    if findings:
        console.print("[yellow]Image analysis:[/yellow]")
        for key, value in findings.items():
            console.print(f"  - {key.replace('_', ' ')}: {value}")

    hints = remediation_hints(result)
    if hints:
        console.print("[yellow]Possible solutions:[/yellow]")
        for hint in hints:
            console.print(f"  - {hint}")


def show_loop_inventory(console: Console, inventory: LoopInventory) -> None:
    table = Table(title="Loop devices")
    table.add_column("Device", style="cyan")
    table.add_column("Backing file")
    table.add_column("Offset", justify="right")
    table.add_column("RO")
    table.add_column("Autoclear")
    for loop in inventory.devices:
        table.add_row(loop.device, loop.backing_file, str(loop.offset),
                      "yes" if loop.read_only else "no",
                      "yes" if loop.autoclear else "no")
    console.print(table)
    console.print(f"Next free loop device: {inventory.next_free or 'unknown'}")


# =============================================================================
# Modes
# =============================================================================

def mount_image(args: argparse.Namespace, settings: MountSettings,
                system: HostSystem, console: Console) -> int:
    if not args.image:
        console.print("[red]No filesystem image specified[/red]")
        build_parser().print_usage(sys.stderr)
        return 1

    try:
        image = ImageFile.open(args.image)
    except InputNotFound as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        return 1

    classification = classifier.classify(image)
    if settings.check_only or settings.verbose:
        show_detection_report(console, image, classification)

    if settings.check_only:
        if not classification.is_known:
            raise AmbiguousOrUnknownFormat(str(image.path))
        return 0

    if not classification.is_known and not settings.forced_type:
        console.print("[yellow]Unknown format. Attempting generic mount anyway...[/yellow]")

    admin_check.require_root("Mounting")

    report = check_dependencies(system)
    for warning in report.warnings:
        logger.warning(warning)
    if not report.ok:
        console.print(f"[red]Missing required tools: {', '.join(report.missing_required)}[/red]")
        return 1

    console.print("\n[blue]Mounting filesystem...[/blue]")
    result = MountDispatcher(settings, system).dispatch(image, classification)
    if not result.ok:
        show_failure(console, result)
        return 1

    show_mount_summary(console, result, system)
    return 0


def run(args: argparse.Namespace, settings: MountSettings,
        system: HostSystem, console: Console) -> int:
    """Run the selected mode and return the exit status."""
    if args.install_retro:
        admin_check.require_root("Installing packages")
        install_retro_tools(console)
        return 0

    if args.list:
        show_loop_inventory(console, list_loop_devices(system))
        return 0

    if args.umount:
        admin_check.require_root("Unmounting")
        path = Path(args.image) if args.image else settings.mount_point
        result = unmount_path(path, system)
        if result.status is UnmountStatus.NOT_MOUNTED:
            console.print(f"[yellow]{result.warning}[/yellow]")
        else:
            console.print(f"[green]Successfully unmounted: {result.path}[/green]")
            if result.detached_device:
                console.print(f"Cleaned up loop device: {result.detached_device}")
        return 0

    if args.ramdisk:
        admin_check.require_root("Creating a ramdisk")
        target = create_ramdisk(args.ramdisk, settings.mount_point, system)
        console.print(f"[green]Ramdisk of {args.ramdisk} created at {target}[/green]")
        return 0

    return mount_image(args, settings, system, console)


def main(argv: Optional[List[str]] = None, system: Optional[HostSystem] = None,
         console: Optional[Console] = None) -> int:
    """
    Main entry point for the multimount command.

    Args:
        argv: Command-line arguments (default: sys.argv[1:])
        system: Host capabilities (default: the real host)
        console: Output console

    Returns:
        Exit status
    """
    args = build_parser().parse_args(argv)
    console = console or Console()

    try:
        settings = load_settings(
            args.config,
            mount_point=args.target or args.mount_point,
            verbose=args.verbose,
            check_only=args.check or None,
            forced_type=args.forced_type,
            log_file=args.log_file,
        )
    except ConfigError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        return 1

    setup_logging(settings.verbose, settings.log_file)
    system = system or HostSystem(settings.tool_overrides)

    try:
        return run(args, settings, system, console)
    except AmbiguousOrUnknownFormat as e:
        console.print(f"[yellow]{escape(str(e))}[/yellow]")
        return 1
    except RootRequired as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        return 1
    except (ConfigError, ToolMissing, ToolExecutionFailed, MountCallFailed) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
