"""
Unmount, loop device inventory and ramdisk helpers.

These are thin wrappers over the mount table and the loop device sysfs tree
and carry no format knowledge. Loop devices are queried, never allocated,
here: the device backing a mount point is found from the mount table and
detached after the unmount.

Sysfs layout read by list_loop_devices():
    /sys/block/loopN/ro
    /sys/block/loopN/loop/backing_file   (present only while attached)
    /sys/block/loopN/loop/offset
    /sys/block/loopN/loop/autoclear
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

from multimount.core.errors import ConfigError, ToolExecutionFailed
from multimount.core.system import HostSystem

logger = logging.getLogger(__name__)

_LOOP_SOURCE_RE = re.compile(r"^/dev/(loop\d+)(?:p\d+)?$")
_RAMDISK_SIZE_RE = re.compile(r"^[1-9]\d*[KkMmGg%]?$")


# =============================================================================
# Inventory
# =============================================================================

@dataclass(frozen=True)
class LoopDevice:
    """
    An attached loop device.

    Attributes:
        name: Kernel name (e.g. 'loop0')
        backing_file: Image file the device exposes
        offset: Byte offset into the backing file
        read_only: Device is read-only
        autoclear: Device is released automatically on last close
    """
    name: str
    backing_file: str
    offset: int = 0
    read_only: bool = False
    autoclear: bool = False

    @property
    def device(self) -> str:
        return f"/dev/{self.name}"


@dataclass(frozen=True)
class LoopInventory:
    """Attached loop devices plus the next free slot (None if unknown)."""
    devices: Tuple[LoopDevice, ...]
    next_free: Optional[str] = None

    def find(self, device: str) -> Optional[LoopDevice]:
        for loop in self.devices:
            if device in (loop.name, loop.device):
                return loop
        return None


def _read_attribute(path: Path) -> Optional[str]:
    try:
        return path.read_text().strip()
    except OSError:
        return None


def _loop_number(path: Path) -> int:
    digits = path.name[len("loop"):]
    return int(digits) if digits.isdigit() else -1


def list_loop_devices(system: HostSystem) -> LoopInventory:
    """
    Report attached loop devices and the next free loop device.

    Returns:
        LoopInventory sorted by device number
    """
    devices = []
    for entry in sorted(Path(system.sys_block).glob("loop*"), key=_loop_number):
        backing_file = _read_attribute(entry / "loop" / "backing_file")
        if not backing_file:
            continue

        offset = _read_attribute(entry / "loop" / "offset") or "0"
        devices.append(LoopDevice(
            name=entry.name,
            backing_file=backing_file,
            offset=int(offset) if offset.isdigit() else 0,
            read_only=_read_attribute(entry / "ro") == "1",
            autoclear=_read_attribute(entry / "loop" / "autoclear") == "1",
        ))

    inventory = LoopInventory(tuple(devices), system.next_free_loop_device())
    logger.debug("Found %d attached loop device(s), next free: %s",
                 len(inventory.devices), inventory.next_free)
    return inventory


# =============================================================================
# Unmount
# =============================================================================

class UnmountStatus(Enum):
    UNMOUNTED = "Unmounted"
    NOT_MOUNTED = "NotMounted"


@dataclass(frozen=True)
class UnmountResult:
    """
    Outcome of unmount_path().

    NOT_MOUNTED is a warning, not a failure.
    """
    status: UnmountStatus
    path: Path
    source: Optional[str] = None
    detached_device: Optional[str] = None
    warning: str = ""


def backing_loop_device(source: str) -> Optional[str]:
    """
    Map a mount source to its loop device.

    Example:
        >>> backing_loop_device("/dev/loop3p1")
        '/dev/loop3'
    """
    match = _LOOP_SOURCE_RE.match(source.strip())
    return f"/dev/{match.group(1)}" if match else None


def unmount_path(path: Path, system: HostSystem) -> UnmountResult:
    """
    Unmount a path and detach the loop device that backed it.

    Args:
        path: Mount point
        system: Host capabilities

    Returns:
        UnmountResult; NOT_MOUNTED with a warning if path is not a mount point

    Raises:
        ToolExecutionFailed: If umount fails (e.g. target busy)
    """
    path = Path(path)
    if not system.is_mountpoint(path):
        warning = f"{path} is not mounted"
        logger.warning(warning)
        return UnmountResult(UnmountStatus.NOT_MOUNTED, path, warning=warning)

    source = system.mount_source(path)
    system.unmount(path)

    device = backing_loop_device(source) if source else None
    detached = None
    if device:
        name = device[len("/dev/"):]
        # Mounts made with -o loop are auto-cleared by the kernel on unmount
        if (Path(system.sys_block) / name / "loop" / "backing_file").exists():
            try:
                system.detach_loop_device(device)
                detached = device
            except ToolExecutionFailed as e:
                logger.warning("Could not detach %s: %s", device, e)
        else:
            logger.debug("%s already released", device)

    return UnmountResult(UnmountStatus.UNMOUNTED, path, source=source,
                         detached_device=detached)


# =============================================================================
# Ramdisk
# =============================================================================

def create_ramdisk(size: str, target: Path, system: HostSystem) -> Path:
    """
    Mount a tmpfs ramdisk.

    Args:
        size: tmpfs size (e.g. '512M', '2G', '50%')
        target: Mount point, created if missing
        system: Host capabilities

    Returns:
        The mount point

    Raises:
        ConfigError: If size is not a valid tmpfs size
        MountCallFailed: If the mount fails

    Example:
        >>> create_ramdisk("512M", Path("/mnt/ram"), HostSystem())
        PosixPath('/mnt/ram')
    """
    if not _RAMDISK_SIZE_RE.match(size or ""):
        raise ConfigError(f"Invalid ramdisk size '{size}' (expected e.g. 512M, 2G)")

    target = Path(target)
    target.mkdir(parents=True, exist_ok=True)
    system.mount("tmpfs", target, "tmpfs", (f"size={size}",))
    logger.info("Created %s ramdisk at %s", size, target)
    return target
