"""
Context managers for MultiMount.

Provides safe resource management for loop devices and intermediate images
so they are released on every exit path, success or failure.
"""

import hashlib
import logging
from pathlib import Path

from multimount.core.errors import PreconditionNotMet, ToolExecutionFailed, ToolMissing
from multimount.core.system import HostSystem


class LoopDeviceContext:
    """
    Context manager for a temporarily attached loop device.

    The device is detached on exit even if the body raised. A device that
    is still in use by a mount is auto-cleared by the kernel on unmount.

    Attributes:
        system: Host capabilities
        image: Image file to attach
        read_only: Attach read-only
        device: Loop device path (set during context)

    Example:
        >>> with LoopDeviceContext(system, Path("disk.hdf")) as device:
        ...     system.mount(f"{device}p1", target, options=("ro",))
        >>> # Loop device automatically detached
    """

    def __init__(self, system: HostSystem, image: Path, read_only: bool = True):
        self.system = system
        self.image = image
        self.read_only = read_only
        self.device = None

    def __enter__(self) -> str:
        """
        Attach the image.

        Returns:
            Loop device path

        Raises:
            ToolMissing: If losetup is not installed
            ToolExecutionFailed: If the image could not be attached
        """
        logging.debug(f"Attaching {self.image} (read_only={self.read_only})")
        self.device = self.system.attach_loop_device(self.image, read_only=self.read_only)
        return self.device

    def __exit__(self, exc_type, exc_val, exc_tb):
        """
        Detach the device.

        Returns:
            False to not suppress exceptions
        """
        if self.device is not None:
            try:
                self.system.detach_loop_device(self.device)
                logging.debug(f"Loop device {self.device} detached")
            except (ToolMissing, ToolExecutionFailed) as e:
                logging.error(f"Failed to detach loop device {self.device}: {e}")
            finally:
                self.device = None

        # Don't suppress exceptions
        return False


class TemporaryImage:
    """
    Context manager for an intermediate decompressed image.

    The path is derived deterministically from the source image so two
    different sources never share a temporary file; the file is removed on
    exit whether or not the inner dispatch succeeded.

    Example:
        >>> with TemporaryImage(source, temp_dir, ".adf") as temp_adf:
        ...     decompress(source, temp_adf)
    """

    def __init__(self, source: Path, temp_dir: Path, suffix: str):
        self.path = intermediate_path(source, temp_dir, suffix)

    def __enter__(self) -> Path:
        """
        Create the temporary directory.

        Raises:
            PreconditionNotMet: If the directory cannot be created
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PreconditionNotMet(f"cannot create {self.path.parent}: {e.strerror}") from e
        return self.path

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            self.path.unlink()
            logging.debug(f"Removed intermediate image {self.path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logging.warning(f"Failed to remove intermediate image {self.path}: {e}")

        # Don't suppress exceptions
        return False


def intermediate_path(source: Path, temp_dir: Path, suffix: str) -> Path:
    """
    Name of the intermediate image for a source file.

    Example:
        >>> intermediate_path(Path("/games/turrican.dms"), Path("/tmp"), ".adf")
        PosixPath('/tmp/multimount-turrican-3f1c2a9b.adf')
    """
    digest = hashlib.sha1(str(Path(source).absolute()).encode("utf-8")).hexdigest()[:8]
    return Path(temp_dir) / f"multimount-{Path(source).stem}-{digest}{suffix}"
