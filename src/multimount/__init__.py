"""
MultiMount - universal disk and filesystem image mounter.

Identifies retro computer disk images (Amiga, Apple II, Atari, TRS-80,
Commodore) and generic filesystem containers, then mounts or extracts them
by trying a chain of tools and kernel mounts in priority order.
"""

__version__ = "0.3.0"
__license__ = "MIT"

from multimount.core.errors import MultiMountError
from multimount.core.settings import MountSettings, load_settings
from multimount.imaging.classifier import classify
from multimount.imaging.image_formats import (
    DetectionMethod,
    Family,
    FormatClassification,
    ImageFile,
    Variant,
)
from multimount.mounting.dispatcher import MountDispatcher
from multimount.mounting.techniques import MountResult, OutcomeKind

# Re-export main entry point
from multimount.main import main

__all__ = [
    # Main entry point
    "main",
    "__version__",

    # Classification
    "classify",
    "ImageFile",
    "FormatClassification",
    "Family",
    "Variant",
    "DetectionMethod",

    # Dispatch
    "MountDispatcher",
    "MountResult",
    "OutcomeKind",
    "MountSettings",
    "load_settings",
    "MultiMountError",
]
