"""
External process invocation for MultiMount.

Every third-party utility the mount techniques depend on is described by a
ToolSpec in TOOLS. Tools are resolved to an argv prefix (PATH lookup, the
per-user ~/.local/bin used by pip installs, or a Python module entry point)
and run with stdout/stderr captured so failures can be reported.
"""

import importlib.util
import logging
import os
import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from multimount.core.errors import ToolMissing

logger = logging.getLogger(__name__)


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class ToolResult:
    """
    Outcome of one external command.

    Attributes:
        command: The argv that was executed
        returncode: Exit status (0 means success)
        stdout: Captured standard output
        stderr: Captured standard error
    """
    command: Tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass(frozen=True)
class ToolSpec:
    """
    Description of an external utility.

    Attributes:
        name: Registry key, also used in log and failure messages
        candidates: Executable names tried in order on PATH
        python_module: Module runnable with ``python -m`` as a last resort
        family: Platform family the tool serves (for dependency warnings)
        install_hint: Human readable install instruction
        apt_package: Debian/Ubuntu package name, if the tool is packaged
    """
    name: str
    candidates: Tuple[str, ...]
    python_module: Optional[str] = None
    family: Optional[str] = None
    install_hint: str = ""
    apt_package: Optional[str] = None


TOOLS: Dict[str, ToolSpec] = {spec.name: spec for spec in (
    ToolSpec("adf-util", ("adf-util",), family="Amiga",
             install_hint="sudo apt install adf-util", apt_package="adf-util"),
    ToolSpec("unadf", ("unadf",), family="Amiga",
             install_hint="sudo apt install unadf", apt_package="unadf"),
    ToolSpec("rdbtool", ("rdbtool",), python_module="amitools.tools.rdbtool",
             family="Amiga", install_hint="pip3 install amitools"),
    ToolSpec("xdftool", ("xdftool",), python_module="amitools.tools.xdftool",
             family="Amiga", install_hint="pip3 install amitools"),
    ToolSpec("xdms", ("xdms",), family="Amiga",
             install_hint="sudo apt install xdms", apt_package="xdms"),
    ToolSpec("ac", ("ac", "applecommander"), family="AppleII",
             install_hint="Install AppleCommander (https://applecommander.github.io/) or CiderPress"),
    ToolSpec("msa", ("msa", "hmsa"), family="Atari",
             install_hint="sudo apt install hatari", apt_package="hatari"),
    ToolSpec("trsread", ("trsread",), family="TRS80",
             install_hint="Install TRSTools or the xtrs utilities"),
    ToolSpec("c1541", ("c1541",), family="Commodore",
             install_hint="sudo apt install vice", apt_package="vice"),
    ToolSpec("losetup", ("losetup",), install_hint="sudo apt install util-linux",
             apt_package="util-linux"),
    ToolSpec("mount", ("mount",), install_hint="sudo apt install mount",
             apt_package="mount"),
    ToolSpec("umount", ("umount",), install_hint="sudo apt install mount",
             apt_package="mount"),
    ToolSpec("fdisk", ("fdisk",), install_hint="sudo apt install fdisk",
             apt_package="fdisk"),
    ToolSpec("findmnt", ("findmnt",), install_hint="sudo apt install util-linux",
             apt_package="util-linux"),
)}


# =============================================================================
# Tool Resolution
# =============================================================================

def _module_available(module: str) -> bool:
    try:
        return importlib.util.find_spec(module) is not None
    except (ImportError, ValueError):
        return False


def resolve_tool(name: str, overrides: Optional[Mapping[str, str]] = None) -> Optional[List[str]]:
    """
    Resolve a registered tool to the argv prefix that runs it.

    Args:
        name: Key in TOOLS
        overrides: Explicit tool name -> executable path mapping from settings

    Returns:
        argv prefix, or None if the tool is not installed

    Example:
        >>> resolve_tool("rdbtool")
        ['/usr/bin/python3', '-m', 'amitools.tools.rdbtool']
    """
    spec = TOOLS[name]

    if overrides and name in overrides:
        explicit = overrides[name]
        if os.access(explicit, os.X_OK):
            return [explicit]
        logger.warning("Configured path for %s is not executable: %s", name, explicit)

    local_bin = Path.home() / ".local" / "bin"
    for candidate in spec.candidates:
        found = shutil.which(candidate)
        if found:
            return [found]
        local = local_bin / candidate
        if local.is_file() and os.access(local, os.X_OK):
            return [str(local)]

    if spec.python_module and _module_available(spec.python_module):
        return [sys.executable, "-m", spec.python_module]

    return None


# =============================================================================
# Command Execution
# =============================================================================

def run_command(command: Sequence[str], cwd: Optional[Path] = None) -> ToolResult:
    """
    Run an external command, capturing its exit status and output.

    A non-zero exit status is returned, not raised; callers decide whether
    that is a failure.

    Args:
        command: Full argv
        cwd: Working directory for the child process

    Returns:
        ToolResult with exit status, stdout and stderr

    Raises:
        ToolMissing: If the executable does not exist
    """
    argv = tuple(str(part) for part in command)
    logger.debug("Running: %s", " ".join(argv))

    try:
        completed = subprocess.run(
            argv,
            cwd=str(cwd) if cwd else None,
            capture_output=True,
            text=True,
            errors="replace",
        )
    except FileNotFoundError as e:
        raise ToolMissing(argv[0]) from e
    except PermissionError as e:
        return ToolResult(argv, 126, "", str(e))

    result = ToolResult(argv, completed.returncode, completed.stdout, completed.stderr)
    if not result.ok:
        logger.debug("%s exited with %d: %s", argv[0], result.returncode,
                     result.stderr.strip())
    return result
