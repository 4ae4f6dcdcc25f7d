"""
Root privilege checking.

Mounting, unmounting, attaching loop devices and installing packages all
require root on Linux.
"""

import os
import pwd

from multimount.core.errors import MultiMountError


class RootRequired(MultiMountError):
    """Raised when an operation needs root privileges."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"{operation} requires root privileges (use sudo)")


def is_admin() -> bool:
    """
    Check if the current process is running with root privileges.

    Returns:
        True if running as root (effective UID 0), False otherwise

    Example:
        >>> if not is_admin():
        ...     print("Please run as root (use sudo)")
    """
    return os.geteuid() == 0


def get_current_user() -> str:
    """
    Get the name of the current user.

    Example:
        >>> get_current_user()
        'root'
    """
    try:
        return pwd.getpwuid(os.getuid()).pw_name
    except KeyError:
        return str(os.getuid())


def require_root(operation: str) -> None:
    """
    Raises:
        RootRequired: If not running as root
    """
    if not is_admin():
        raise RootRequired(operation)
