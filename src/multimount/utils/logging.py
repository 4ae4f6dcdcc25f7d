"""
Logging configuration for MultiMount.

Console output goes through rich's RichHandler on stderr so it never mixes
with command output on stdout; an optional log file receives everything at
DEBUG level for troubleshooting.
"""

import logging
import platform
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None) -> None:
    """
    Configure logging for the application.

    Args:
        verbose: Show INFO/DEBUG progress on the console (default: warnings only)
        log_file: Optional path of a DEBUG-level log file

    Example:
        >>> setup_logging(verbose=True)
        >>> logging.info("Dispatching image")
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    console_handler = RichHandler(
        console=Console(stderr=True),
        level=logging.DEBUG if verbose else logging.WARNING,
        show_time=verbose,
        show_path=False,
        markup=False,
    )
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        root.addHandler(file_handler)

    log_system_info()


def log_system_info() -> None:
    """
    Log system information for debugging purposes.

    Captures the kernel, Python version and root status to aid in
    troubleshooting missing tools and kernel modules.
    """
    from multimount.utils.admin_check import get_current_user, is_admin

    logging.debug("=" * 60)
    logging.debug("MultiMount - System Information")
    logging.debug("=" * 60)
    logging.debug(f"Platform: {platform.system()} {platform.release()}")
    logging.debug(f"Machine: {platform.machine()}")
    logging.debug(f"Python version: {sys.version}")
    logging.debug(f"Python executable: {sys.executable}")
    logging.debug(f"User: {get_current_user()}")
    logging.debug(f"Running as root: {is_admin()}")
    logging.debug("=" * 60)
