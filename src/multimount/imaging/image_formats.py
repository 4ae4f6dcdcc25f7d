"""
Image file handle and classification types for disk/filesystem images.

Platform families:
    - Amiga: ADF, HDF, DMS, ADZ
    - Apple II: DSK, DO, PO, 2MG, NIB, WOZ, HDV, D13
    - Atari: ST, MSA, STX, DIM, IPF, ATR
    - TRS-80: JV1, JV3, DMK
    - Commodore: D64, D71, D81, D80, D82, T64, PRG, P00, G64
    - Generic containers: SquashFS, ISO 9660, EXT2/3/4, XFS, BTRFS
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from multimount.core.errors import InputNotFound

logger = logging.getLogger(__name__)

# Number of leading bytes kept for signature checks (one Amiga boot block)
PREFIX_SIZE = 512


# =============================================================================
# Enums
# =============================================================================

class Family(Enum):
    """Platform family of an image format."""
    AMIGA = "Amiga"
    APPLE_II = "AppleII"
    ATARI = "Atari"
    TRS80 = "TRS80"
    COMMODORE = "Commodore"
    GENERIC = "Generic"
    UNKNOWN = "Unknown"


class Variant(Enum):
    """Specific image format within a family."""
    # Amiga
    ADF = "ADF"
    HDF = "HDF"
    DMS = "DMS"
    ADZ = "ADZ"
    # Apple II
    DSK = "DSK"          # 5.25" 140KB sector image
    DSK_35 = "DSK35"     # 3.5" 800KB sector image
    DO = "DO"
    PO = "PO"
    TWO_MG = "2MG"
    NIB = "NIB"
    WOZ = "WOZ"
    HDV = "HDV"
    D13 = "D13"
    # Atari
    ST = "ST"
    MSA = "MSA"
    STX = "STX"
    DIM = "DIM"
    IPF = "IPF"
    ATR = "ATR"
    # TRS-80
    JV1 = "JV1"
    JV3 = "JV3"
    DMK = "DMK"
    # Commodore
    D64 = "D64"
    D71 = "D71"
    D81 = "D81"
    D80 = "D80"
    D82 = "D82"
    T64 = "T64"
    PRG = "PRG"
    P00 = "P00"
    G64 = "G64"
    # Generic containers
    SQUASHFS = "SquashFS"
    ISO9660 = "ISO9660"
    EXT = "EXT"
    XFS = "XFS"
    BTRFS = "BTRFS"


class DetectionMethod(Enum):
    """Which rule produced a classification."""
    CONTENT_SIGNATURE = "ContentSignature"
    SIZE_HEURISTIC = "SizeHeuristic"
    EXTENSION_MATCH = "ExtensionMatch"
    FORCED = "Forced"


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class ImageFile:
    """
    Read-only handle to a candidate image file.

    Attributes:
        path: Absolute path of the file
        size: Length in bytes
        prefix: First PREFIX_SIZE bytes (shorter for small files)
    """
    path: Path
    size: int
    prefix: bytes

    @classmethod
    def open(cls, path) -> "ImageFile":
        """
        Stat the file and cache its leading bytes.

        Raises:
            InputNotFound: If the path does not exist or is not a regular file
        """
        file_path = Path(path).expanduser().absolute()

        if not file_path.exists():
            raise InputNotFound(str(path))
        if not file_path.is_file():
            raise InputNotFound(str(path), "Not a regular file")

        try:
            size = file_path.stat().st_size
            with open(file_path, "rb") as f:
                prefix = f.read(PREFIX_SIZE)
        except OSError as e:
            raise InputNotFound(str(path), f"Cannot read file ({e.strerror})") from e

        logger.debug("Opened %s (%d bytes)", file_path, size)
        return cls(path=file_path, size=size, prefix=prefix)

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def suffix(self) -> str:
        """Lower-cased filename extension including the dot."""
        return self.path.suffix.lower()


@dataclass(frozen=True)
class FormatClassification:
    """
    Classifier output.

    ``variant`` is None only when ``family`` is UNKNOWN.

    Attributes:
        family: Platform family
        variant: Format within the family
        detection_method: Rule that matched
        filesystem: Amiga DOS type from the boot block (e.g. "FFS", "SFS")
        description: Human readable summary of the evidence
    """
    family: Family
    variant: Optional[Variant]
    detection_method: DetectionMethod
    filesystem: Optional[str] = None
    description: str = ""

    def __post_init__(self):
        if (self.family is Family.UNKNOWN) != (self.variant is None):
            raise ValueError("variant must be set exactly when family is known")

    @property
    def is_known(self) -> bool:
        return self.family is not Family.UNKNOWN

    @classmethod
    def unknown(cls) -> "FormatClassification":
        return cls(Family.UNKNOWN, None, DetectionMethod.EXTENSION_MATCH,
                   description="Unknown or unsupported filesystem type")

    def __str__(self) -> str:
        if not self.is_known:
            return "Unknown"
        text = f"{self.family.value} {self.variant.value} ({self.detection_method.value})"
        if self.filesystem:
            text += f" [{self.filesystem}]"
        return text
