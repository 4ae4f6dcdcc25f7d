"""
Utility functions for MultiMount.

This module provides root privilege checking, logging setup and resource
context managers. Tool checks live in multimount.utils.dependencies and
failure reporting in multimount.utils.error_handler.
"""

from multimount.utils.admin_check import (
    RootRequired,
    is_admin,
    get_current_user,
    require_root,
)

from multimount.utils.logging import (
    setup_logging,
    log_system_info,
)

from multimount.utils.context_managers import (
    LoopDeviceContext,
    TemporaryImage,
    intermediate_path,
)

__all__ = [
    # Admin utilities
    "RootRequired",
    "is_admin",
    "get_current_user",
    "require_root",

    # Logging
    "setup_logging",
    "log_system_info",

    # Context managers
    "LoopDeviceContext",
    "TemporaryImage",
    "intermediate_path",
]
