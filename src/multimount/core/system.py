"""
Host operating system capabilities used by the mount techniques.

HostSystem wraps the OS mount table, loop devices and external tools behind
one object so the mount chains can be exercised against a scripted fake.
All calls are blocking and have no internal timeout; exit statuses and
stderr are surfaced to the caller unchanged.
"""

import logging
import os
import stat
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

from multimount.core.errors import MountCallFailed, ToolExecutionFailed, ToolMissing
from multimount.core.process import ToolResult, resolve_tool, run_command

logger = logging.getLogger(__name__)

PROC_FILESYSTEMS = "/proc/filesystems"
SYS_BLOCK = "/sys/block"


class HostSystem:
    """
    Capability facade over the running Linux host.

    Attributes:
        tool_overrides: Explicit tool name -> executable path mapping
        proc_filesystems: Path of the kernel filesystem list
        sys_block: Root of the block device sysfs tree
    """

    def __init__(self, tool_overrides: Optional[Mapping[str, str]] = None,
                 proc_filesystems: str = PROC_FILESYSTEMS,
                 sys_block: str = SYS_BLOCK):
        self.tool_overrides = dict(tool_overrides or {})
        self.proc_filesystems = proc_filesystems
        self.sys_block = sys_block

    # -------------------------------------------------------------------------
    # External tools
    # -------------------------------------------------------------------------

    def which(self, tool: str) -> Optional[List[str]]:
        """Return the argv prefix for a registered tool, or None if missing."""
        return resolve_tool(tool, self.tool_overrides)

    def require(self, tool: str) -> List[str]:
        """
        Resolve a tool or raise.

        Raises:
            ToolMissing: If the tool is not installed
        """
        prefix = self.which(tool)
        if prefix is None:
            raise ToolMissing(tool)
        return prefix

    def run_tool(self, tool: str, *args, cwd: Optional[Path] = None) -> ToolResult:
        """Run a registered tool with arguments; the exit status is not checked."""
        return run_command(self.require(tool) + [str(a) for a in args], cwd=cwd)

    def check_tool(self, tool: str, *args, cwd: Optional[Path] = None) -> ToolResult:
        """
        Run a registered tool and require a zero exit status.

        Raises:
            ToolMissing: If the tool is not installed
            ToolExecutionFailed: If the tool exits non-zero
        """
        result = self.run_tool(tool, *args, cwd=cwd)
        if not result.ok:
            raise ToolExecutionFailed(result.command, result.returncode, result.stderr)
        return result

    # -------------------------------------------------------------------------
    # Mount table
    # -------------------------------------------------------------------------

    def mount(self, source: str, target: Path, fs_type: Optional[str] = None,
              options: Sequence[str] = ()) -> None:
        """
        Mount a file or block device.

        Args:
            source: Image file or block device
            target: Mount point directory
            fs_type: Kernel filesystem type, or None for auto-detection
            options: Mount options (e.g. ``("loop", "ro")``)

        Raises:
            ToolMissing: If mount(8) is not installed
            MountCallFailed: If the mount call fails
        """
        args: List[str] = []
        if fs_type:
            args += ["-t", fs_type]
        if options:
            args += ["-o", ",".join(options)]
        args += [str(source), str(target)]

        result = self.run_tool("mount", *args)
        if not result.ok:
            raise MountCallFailed(str(source), str(target), result.returncode,
                                  result.stderr, result.command)
        logger.info("Mounted %s on %s (type=%s, options=%s)",
                    source, target, fs_type or "auto", ",".join(options))

    def unmount(self, target: Path) -> None:
        """
        Unmount a mount point.

        Raises:
            ToolExecutionFailed: If umount(8) fails
        """
        self.check_tool("umount", target)
        logger.info("Unmounted %s", target)

    def is_mountpoint(self, path: Path) -> bool:
        return os.path.ismount(str(path))

    def mount_source(self, path: Path) -> Optional[str]:
        """Return the device mounted on path (``findmnt -n -o SOURCE``)."""
        return self._findmnt(path, "SOURCE")

    def mount_fstype(self, path: Path) -> Optional[str]:
        """Return the filesystem type mounted on path."""
        return self._findmnt(path, "FSTYPE")

    def _findmnt(self, path: Path, column: str) -> Optional[str]:
        try:
            result = self.run_tool("findmnt", "-n", "-o", column, path)
        except ToolMissing:
            return None
        value = result.stdout.strip()
        return value if result.ok and value else None

    # -------------------------------------------------------------------------
    # Loop devices
    # -------------------------------------------------------------------------

    def attach_loop_device(self, image: Path, read_only: bool = True,
                           partscan: bool = True) -> str:
        """
        Attach an image file to the next free loop device.

        Returns:
            Loop device path (e.g. '/dev/loop3')

        Raises:
            ToolMissing: If losetup is not installed
            ToolExecutionFailed: If no device could be attached
        """
        args = ["--find", "--show"]
        if read_only:
            args.append("--read-only")
        if partscan:
            args.append("--partscan")
        args.append(str(image))

        result = self.check_tool("losetup", *args)
        device = result.stdout.strip()
        if not device:
            raise ToolExecutionFailed(result.command, result.returncode,
                                      "losetup reported no device")
        logger.info("Attached %s to %s", image, device)
        return device

    def detach_loop_device(self, device: str) -> None:
        """
        Detach a loop device.

        A device still in use by a mount is flagged for auto-clear by the
        kernel and released on unmount.

        Raises:
            ToolExecutionFailed: If losetup -d fails
        """
        self.check_tool("losetup", "-d", device)
        logger.info("Detached %s", device)

    def next_free_loop_device(self) -> Optional[str]:
        try:
            result = self.run_tool("losetup", "--find")
        except ToolMissing:
            return None
        if not result.ok:
            return None
        return result.stdout.strip() or None

    def show_partition_table(self, device: str) -> str:
        """Return ``fdisk -l`` output for a device, or '' if unavailable."""
        try:
            result = self.run_tool("fdisk", "-l", device)
        except ToolMissing:
            return ""
        return result.stdout if result.ok else ""

    # -------------------------------------------------------------------------
    # Kernel / device queries
    # -------------------------------------------------------------------------

    def kernel_supports(self, fs_type: str) -> bool:
        """
        Check whether the running kernel lists a filesystem type.

        Reads /proc/filesystems; a module that is not loaded is not listed.
        """
        try:
            with open(self.proc_filesystems, "r") as f:
                for line in f:
                    fields = line.split()
                    if fields and fields[-1] == fs_type:
                        return True
        except OSError as e:
            logger.debug("Cannot read %s: %s", self.proc_filesystems, e)
        return False

    def is_block_device(self, path: str) -> bool:
        try:
            return stat.S_ISBLK(os.stat(path).st_mode)
        except OSError:
            return False
