"""
External tool presence checks and the retro tool install helper.

Missing platform tools are a warning, not an error: the chains skip
techniques whose tools are absent. Only the core mount utilities are
required.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence

from rich.console import Console
from rich.prompt import Confirm

from multimount.core.process import TOOLS, ToolResult, run_command
from multimount.core.system import HostSystem

logger = logging.getLogger(__name__)

REQUIRED_TOOLS = ("mount", "umount", "losetup")

FAMILY_NAMES = {
    "Amiga": "Amiga ADF/HDF",
    "AppleII": "Apple II",
    "Atari": "Atari MSA",
    "TRS80": "TRS-80",
    "Commodore": "Commodore",
}

# Packages tried by the install helper, in install order
APT_PACKAGES = ("adf-util", "xdms", "vice", "hatari", "nulib2", "opencbm", "xxd")

INSTALL_GUIDE = {
    "Available in standard repos": [
        "adf-util: sudo apt install adf-util",
        "xdms: sudo apt install xdms",
        "VICE (c1541): sudo apt install vice",
        "Hatari: sudo apt install hatari",
        "nulib2: sudo apt install nulib2",
    ],
    "Amiga tools": [
        "amitools (xdftool, rdbtool): pip3 install amitools",
        "UAE4ARM/FS-UAE: Download from respective websites",
    ],
    "Apple II tools": [
        "AppleCommander: Download JAR from https://applecommander.github.io/",
        "CiderPress: Download from https://a2ciderpress.com/",
    ],
    "Atari tools": [
        "STeem: Download from http://steem.atari.st/",
        "Hatari MSA tools: Included with hatari package",
    ],
    "TRS-80 tools": [
        "TRSTools: Download from https://www.trs-80emulators.com/trstools/",
        "xtrs: Build from source (https://github.com/TimothyPMann/xtrs)",
    ],
    "Commodore tools": [
        "opencbm: sudo apt install opencbm (if available)",
        "Additional VICE tools: Included with vice package",
    ],
}

Runner = Callable[[Sequence[str]], ToolResult]


@dataclass
class DependencyReport:
    """
    Result of check_dependencies().

    Attributes:
        missing_required: Core tools that are not installed
        warnings: One message per platform family with no usable tool
    """
    missing_required: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.missing_required


def check_dependencies(system: HostSystem) -> DependencyReport:
    """
    Check required tools and warn for each family whose tools are all missing.

    Example:
        >>> report = check_dependencies(HostSystem())
        >>> for warning in report.warnings:
        ...     print(warning)
        TRS-80 tools not found. Install TRSTools or the xtrs utilities
    """
    report = DependencyReport()

    for name in REQUIRED_TOOLS:
        if system.which(name) is None:
            report.missing_required.append(name)

    by_family: Dict[str, List[str]] = {}
    for spec in TOOLS.values():
        if spec.family:
            by_family.setdefault(spec.family, []).append(spec.name)

    for family, names in by_family.items():
        if any(system.which(name) is not None for name in names):
            continue
        hints = sorted({TOOLS[name].install_hint for name in names})
        message = f"{FAMILY_NAMES[family]} tools not found. {'; '.join(hints)}"
        report.warnings.append(message)
        logger.debug(message)

    return report


def print_install_guide(console: Console) -> None:
    console.print("[bold blue]Retro computer filesystem tools[/bold blue]")
    for section, lines in INSTALL_GUIDE.items():
        console.print(f"\n[bold]{section}[/bold]")
        for line in lines:
            console.print(f"  - {line}")
    console.print()


def available_packages(packages: Sequence[str], run: Runner = run_command) -> List[str]:
    """Subset of packages known to apt (``apt-cache show`` succeeds)."""
    return [name for name in packages if run(("apt-cache", "show", name)).ok]


def install_retro_tools(console: Console, assume_yes: bool = False,
                        run: Runner = run_command) -> List[str]:
    """
    Show the install guide and apt-install the packaged tools.

    Args:
        console: Console for output and the confirmation prompt
        assume_yes: Skip the confirmation prompt
        run: Command runner (argv -> ToolResult)

    Returns:
        Packages passed to apt-get install (empty if declined or none found)

    Raises:
        ToolMissing: If apt is not available
    """
    print_install_guide(console)

    if not assume_yes and not Confirm.ask("Install available packages from repos now?",
                                          console=console, default=False):
        return []

    update = run(("apt-get", "update"))
    if not update.ok:
        logger.warning("apt-get update failed: %s", update.stderr.strip())

    packages = available_packages(APT_PACKAGES, run)
    if not packages:
        console.print("[yellow]No retro computing packages found in repositories[/yellow]")
        return []

    console.print(f"Installing: {' '.join(packages)}")
    result = run(("apt-get", "install", "-y", *packages))
    if result.ok:
        console.print("[green]Available packages installed![/green]")
    else:
        console.print("[yellow]Some packages failed to install[/yellow]")
        logger.warning("apt-get install exited with %d: %s",
                       result.returncode, result.stderr.strip())

    console.print("\n[yellow]Additional manual installations:[/yellow]")
    console.print("  Python tools: pip3 install amitools")
    return packages

