"""
Test fixtures for MultiMount.

Provides a scripted host system and image file helpers for testing without
root, external tools or loop devices.
"""

from tests.fixtures.mock_system import (
    ADF_DD_SIZE,
    CORE_TOOLS,
    RDB_REPORT,
    FakeSystem,
    MountEntry,
    ScriptedResponse,
    make_image,
    make_settings,
    write_file,
    write_output_file,
)

__all__ = [
    "ADF_DD_SIZE",
    "CORE_TOOLS",
    "RDB_REPORT",
    "FakeSystem",
    "MountEntry",
    "ScriptedResponse",
    "make_image",
    "make_settings",
    "write_file",
    "write_output_file",
]
