"""
Core functionality for MultiMount.

This module provides the error taxonomy, external tool invocation, the host
system capability facade, settings, and the unmount/loop device helpers.
"""

from multimount.core.errors import (
    MultiMountError,
    InputNotFound,
    ConfigError,
    AmbiguousOrUnknownFormat,
    TechniqueError,
    ToolMissing,
    PreconditionNotMet,
    ToolExecutionFailed,
    MountCallFailed,
    NestedDispatchFailed,
    AllTechniquesExhausted,
)

from multimount.core.process import (
    TOOLS,
    ToolResult,
    ToolSpec,
    resolve_tool,
    run_command,
)

from multimount.core.system import HostSystem

from multimount.core.settings import (
    DEFAULT_MOUNT_POINT,
    MountSettings,
    load_settings,
    get_settings_file,
)

from multimount.core.loop_devices import (
    LoopDevice,
    LoopInventory,
    UnmountResult,
    UnmountStatus,
    list_loop_devices,
    unmount_path,
    create_ramdisk,
)

__all__ = [
    # Errors
    "MultiMountError",
    "InputNotFound",
    "ConfigError",
    "AmbiguousOrUnknownFormat",
    "TechniqueError",
    "ToolMissing",
    "PreconditionNotMet",
    "ToolExecutionFailed",
    "MountCallFailed",
    "NestedDispatchFailed",
    "AllTechniquesExhausted",

    # External tools
    "TOOLS",
    "ToolResult",
    "ToolSpec",
    "resolve_tool",
    "run_command",

    # Host system
    "HostSystem",

    # Settings
    "DEFAULT_MOUNT_POINT",
    "MountSettings",
    "load_settings",
    "get_settings_file",

    # Unmount / inventory
    "LoopDevice",
    "LoopInventory",
    "UnmountResult",
    "UnmountStatus",
    "list_loop_devices",
    "unmount_path",
    "create_ramdisk",
]
