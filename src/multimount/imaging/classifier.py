"""
Format classifier for disk and filesystem images.

Rules are evaluated by strict priority and the first match wins:

    1. Content and size rules, family by family in a fixed order:
       Amiga, Apple II, Atari, TRS-80, Commodore, then generic containers
       (identified from the libmagic description of the file).
    2. Filename extension, only if no content or size rule matched.
    3. Otherwise the image is Unknown.

The family order resolves ambiguous byte patterns and sizes deterministically
(an 819,200 byte file is an Apple II 3.5" image, never a Commodore D81) and
must not be reordered.
"""

import logging
import re
from typing import Callable, Optional, Sequence, Tuple

import magic

from multimount.imaging.format_registry import (
    ADF_HD_SIZE,
    family_of,
    get_format,
    sizes_for_family,
    variant_for_extension,
)
from multimount.imaging.image_formats import (
    DetectionMethod,
    Family,
    FormatClassification,
    ImageFile,
    Variant,
)

logger = logging.getLogger(__name__)

Describe = Callable[[ImageFile], str]


# =============================================================================
# Signatures
# =============================================================================

# Amiga boot block DOS types (offset 0)
AMIGA_DOS_TYPES = {
    b"DOS\x00": "OFS",
    b"DOS\x01": "FFS",
    b"DOS\x02": "OFS-INTL",
    b"DOS\x03": "FFS-INTL",
    # flavour written as an ASCII digit
    b"DOS0": "OFS",
    b"DOS1": "FFS",
    b"DOS2": "OFS-INTL",
    b"DOS3": "FFS-INTL",
    b"PFS\x00": "PFS",
    b"SFS\x00": "SFS",
    b"AFFS": "AFFS",
}
AMIGA_DOS_PREFIX = b"DOS"
DMS_MAGIC = b"DMS!"
RDB_MAGIC = b"RDSK"

TWO_IMG_MAGIC = b"2IMG"
MSA_MAGIC = b"\x0e\x0f"

# DMK header layout (16 bytes)
DMK_HEADER_SIZE = 16
DMK_MAX_TRACKS = 96
DMK_MIN_TRACK_LENGTH = 0x0100
DMK_MAX_TRACK_LENGTH = 0x4000
DMK_FLAG_MASK = 0xD0          # single-sided, single-density, ignore-density
DMK_REAL_DISK = b"\x78\x56\x34\x12"

CONTAINER_PATTERNS: Sequence[Tuple[re.Pattern, Variant]] = (
    (re.compile(r"\bsquashfs\b"), Variant.SQUASHFS),
    (re.compile(r"\biso 9660\b"), Variant.ISO9660),
    (re.compile(r"\bext[234]\b"), Variant.EXT),
    (re.compile(r"\bxfs\b"), Variant.XFS),
    (re.compile(r"\bbtrfs\b"), Variant.BTRFS),
)


def describe_file(image: ImageFile) -> str:
    """
    Human readable file type from libmagic (as printed by file(1)).

    Returns '' if libmagic cannot inspect the file.
    """
    try:
        return magic.from_file(str(image.path))
    except (magic.MagicException, OSError) as e:
        logger.debug("libmagic failed on %s: %s", image.path, e)
        return ""


def _by_content(family: Family, variant: Variant, description: str,
                filesystem: Optional[str] = None) -> FormatClassification:
    return FormatClassification(family, variant, DetectionMethod.CONTENT_SIGNATURE,
                                filesystem=filesystem, description=description)


def _by_size(image: ImageFile, family: Family) -> Optional[FormatClassification]:
    for size, variant, note in sizes_for_family(family):
        if image.size == size:
            return FormatClassification(
                family, variant, DetectionMethod.SIZE_HEURISTIC,
                description=f"{get_format(variant).description}, {note}",
            )
    return None


# =============================================================================
# Family Checks
# =============================================================================

def check_amiga(image: ImageFile) -> Optional[FormatClassification]:
    """Amiga: DMS/RDB/boot-block signatures, then ADF sizes, then HDF."""
    head = image.prefix[:4]

    if head == DMS_MAGIC:
        return _by_content(Family.AMIGA, Variant.DMS, "Amiga DMS archive")
    if head == RDB_MAGIC:
        return _by_content(Family.AMIGA, Variant.HDF, "Amiga Rigid Disk Block")

    dos_type = AMIGA_DOS_TYPES.get(head)
    if dos_type:
        variant = Variant.HDF if image.size > ADF_HD_SIZE else Variant.ADF
        return _by_content(Family.AMIGA, variant,
                           f"Amiga {dos_type} boot block", filesystem=dos_type)

    by_size = _by_size(image, Family.AMIGA)
    if by_size:
        return by_size

    if image.size > ADF_HD_SIZE:
        index = image.prefix.find(AMIGA_DOS_PREFIX)
        if index >= 0:
            dos_type = AMIGA_DOS_TYPES.get(image.prefix[index:index + 4])
            return FormatClassification(
                Family.AMIGA, Variant.HDF, DetectionMethod.SIZE_HEURISTIC,
                filesystem=dos_type,
                description=f"Amiga hard disk image (DOS signature at offset {index})",
            )
    return None


def check_apple_ii(image: ImageFile) -> Optional[FormatClassification]:
    if image.prefix[:4] == TWO_IMG_MAGIC:
        return _by_content(Family.APPLE_II, Variant.TWO_MG, "Apple II 2IMG header")
    return _by_size(image, Family.APPLE_II)


def check_atari(image: ImageFile) -> Optional[FormatClassification]:
    if image.prefix[:2] == MSA_MAGIC:
        return _by_content(Family.ATARI, Variant.MSA, "Atari ST MSA header")
    return _by_size(image, Family.ATARI)


def looks_like_dmk(image: ImageFile) -> bool:
    """
    Best-effort test for a DMK header.

    Checks the write-protect byte, track count, track length, option flags,
    the reserved bytes and the real-disk marker, and that the file is large
    enough for one side of the declared tracks. Any 16-byte header that
    happens to satisfy all of these is taken to be DMK.
    """
    header = image.prefix[:DMK_HEADER_SIZE]
    if image.size <= DMK_HEADER_SIZE or len(header) < DMK_HEADER_SIZE:
        return False

    write_protect, tracks, flags = header[0], header[1], header[4]
    track_length = int.from_bytes(header[2:4], "little")

    if write_protect not in (0x00, 0xFF):
        return False
    if not 1 <= tracks <= DMK_MAX_TRACKS:
        return False
    if not DMK_MIN_TRACK_LENGTH <= track_length <= DMK_MAX_TRACK_LENGTH:
        return False
    if flags & ~DMK_FLAG_MASK:
        return False
    if any(header[5:12]):
        return False
    if header[12:16] not in (bytes(4), DMK_REAL_DISK):
        return False

    return image.size >= DMK_HEADER_SIZE + tracks * track_length


def check_trs80(image: ImageFile) -> Optional[FormatClassification]:
    if looks_like_dmk(image):
        tracks = image.prefix[1]
        return _by_content(Family.TRS80, Variant.DMK, f"TRS-80 DMK header ({tracks} tracks)")
    return _by_size(image, Family.TRS80)


def check_commodore(image: ImageFile) -> Optional[FormatClassification]:
    return _by_size(image, Family.COMMODORE)


def check_containers(image: ImageFile, describe: Describe) -> Optional[FormatClassification]:
    """Generic filesystem containers, from the libmagic description."""
    description = describe(image)
    lowered = description.lower()
    for pattern, variant in CONTAINER_PATTERNS:
        if pattern.search(lowered):
            return _by_content(Family.GENERIC, variant, description)
    return None


# Fixed evaluation order; see module docstring.
FAMILY_CHECKS: Sequence[Callable[[ImageFile], Optional[FormatClassification]]] = (
    check_amiga,
    check_apple_ii,
    check_atari,
    check_trs80,
    check_commodore,
)


# =============================================================================
# Classification
# =============================================================================

def classify_by_extension(image: ImageFile) -> FormatClassification:
    variant = variant_for_extension(image.suffix)
    if variant is None:
        return FormatClassification.unknown()
    return FormatClassification(
        family_of(variant), variant, DetectionMethod.EXTENSION_MATCH,
        description=f"{get_format(variant).description} by extension",
    )


def classify(image: ImageFile, describe: Optional[Describe] = None) -> FormatClassification:
    """
    Classify an image file.

    Never raises for unrecognised input and never writes to the file.

    Args:
        image: Opened image handle
        describe: File-type describer for generic containers
            (default: libmagic via describe_file)

    Returns:
        FormatClassification; family UNKNOWN if no rule matched

    Example:
        >>> classify(ImageFile.open("game.adf"))
        FormatClassification(family=<Family.AMIGA: 'Amiga'>, variant=<Variant.ADF: 'ADF'>, ...)
    """
    for check in FAMILY_CHECKS:
        result = check(image)
        if result is not None:
            logger.info("Detected %s: %s", result, result.description)
            return result

    result = check_containers(image, describe or describe_file)
    if result is not None:
        logger.info("Detected %s: %s", result, result.description)
        return result

    result = classify_by_extension(image)
    if result.is_known:
        logger.info("Detected %s: %s", result, result.description)
    else:
        logger.warning("Unknown or unsupported filesystem type: %s", image.name)
    return result


def hex_prefix(image: ImageFile, length: int = 16) -> str:
    """First bytes of the image as spaced hex, for detection reports."""
    return image.prefix[:length].hex(" ")
