"""
Image format registry.

Declarative catalog of every supported image format: its family, a
description, the filename extensions that identify it and the exact file
sizes that identify a raw sector image of it. The classifier reads its
size and extension rules from here.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from multimount.imaging.image_formats import Family, Variant


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class ImageFormatSpec:
    """
    Specification for one image format.

    Attributes:
        variant: Format identifier
        family: Platform family
        description: Human readable name
        extensions: Lower-case filename suffixes (with dot)
        sizes: (exact byte length, geometry note) pairs for raw images
    """
    variant: Variant
    family: Family
    description: str
    extensions: Tuple[str, ...] = ()
    sizes: Tuple[Tuple[int, str], ...] = ()


# =============================================================================
# Format Catalog
# =============================================================================

# Amiga DD/HD floppies: 80 cylinders x 2 heads x 11/22 sectors x 512 bytes
ADF_DD_SIZE = 901_120
ADF_HD_SIZE = 1_802_240

FORMATS: Tuple[ImageFormatSpec, ...] = (
    # Amiga
    ImageFormatSpec(Variant.ADF, Family.AMIGA, "Amiga Disk File", (".adf",),
                    ((ADF_DD_SIZE, "DD (880KB)"), (ADF_HD_SIZE, "HD (1760KB)"))),
    ImageFormatSpec(Variant.HDF, Family.AMIGA, "Amiga Hard Disk File", (".hdf",)),
    ImageFormatSpec(Variant.DMS, Family.AMIGA, "Amiga DMS (Disk Masher)", (".dms",)),
    ImageFormatSpec(Variant.ADZ, Family.AMIGA, "Amiga ADZ (gzip compressed ADF)", (".adz",)),

    # Apple II
    ImageFormatSpec(Variant.DSK, Family.APPLE_II, "Apple II 5.25\" disk image", (".dsk",),
                    ((143_360, "35 tracks x 16 sectors x 256 bytes (140KB)"),)),
    ImageFormatSpec(Variant.DSK_35, Family.APPLE_II, "Apple II 3.5\" disk image", (),
                    ((819_200, "800KB"),)),
    ImageFormatSpec(Variant.DO, Family.APPLE_II, "Apple II DOS-order disk image", (".do",)),
    ImageFormatSpec(Variant.PO, Family.APPLE_II, "Apple II ProDOS-order disk image", (".po",)),
    ImageFormatSpec(Variant.TWO_MG, Family.APPLE_II, "Apple II 2MG disk image", (".2mg", ".2img")),
    ImageFormatSpec(Variant.NIB, Family.APPLE_II, "Apple II NIB (nibble) image", (".nib",)),
    ImageFormatSpec(Variant.WOZ, Family.APPLE_II, "Apple II WOZ disk image", (".woz",)),
    ImageFormatSpec(Variant.HDV, Family.APPLE_II, "Apple II HDV hard disk image", (".hdv",)),
    ImageFormatSpec(Variant.D13, Family.APPLE_II, "Apple II 13-sector disk image", (".d13",)),

    # Atari
    ImageFormatSpec(Variant.ST, Family.ATARI, "Atari ST raw disk image", (".st",),
                    ((737_280, "720KB"), (1_474_560, "1.44MB"))),
    ImageFormatSpec(Variant.MSA, Family.ATARI, "Atari ST MSA (Magic Shadow Archiver)", (".msa",)),
    ImageFormatSpec(Variant.STX, Family.ATARI, "Atari ST STX (Pasti)", (".stx",)),
    ImageFormatSpec(Variant.DIM, Family.ATARI, "Atari ST DIM disk image", (".dim",)),
    ImageFormatSpec(Variant.IPF, Family.ATARI, "Atari ST IPF (SPS)", (".ipf",)),
    ImageFormatSpec(Variant.ATR, Family.ATARI, "Atari 8-bit ATR disk image", (".atr",)),

    # TRS-80
    ImageFormatSpec(Variant.JV1, Family.TRS80, "TRS-80 JV1 disk image", (".jv1",),
                    ((89_600, "35 tracks x 10 sectors x 256 bytes"),
                     (102_400, "40 tracks x 10 sectors x 256 bytes"))),
    ImageFormatSpec(Variant.JV3, Family.TRS80, "TRS-80 JV3 disk image", (".jv3",)),
    ImageFormatSpec(Variant.DMK, Family.TRS80, "TRS-80 DMK disk image", (".dmk",)),

    # Commodore
    ImageFormatSpec(Variant.D64, Family.COMMODORE, "Commodore 1541 D64 disk image", (".d64",),
                    ((174_848, "35 tracks"), (175_531, "35 tracks with error info"),
                     (196_608, "40 tracks"), (197_376, "40 tracks with error info"))),
    ImageFormatSpec(Variant.D71, Family.COMMODORE, "Commodore 1571 D71 disk image", (".d71",),
                    ((349_696, "70 tracks"), (351_062, "70 tracks with error info"))),
    # Same size as the Apple II 3.5" image; Apple II is checked first.
    ImageFormatSpec(Variant.D81, Family.COMMODORE, "Commodore 1581 D81 disk image", (".d81",),
                    ((819_200, "80 tracks"),)),
    ImageFormatSpec(Variant.D80, Family.COMMODORE, "Commodore 8050 D80 disk image", (".d80",)),
    ImageFormatSpec(Variant.D82, Family.COMMODORE, "Commodore 8250 D82 disk image", (".d82",)),
    ImageFormatSpec(Variant.T64, Family.COMMODORE, "Commodore 64 T64 tape image", (".t64",)),
    ImageFormatSpec(Variant.PRG, Family.COMMODORE, "Commodore PRG program file", (".prg",)),
    ImageFormatSpec(Variant.P00, Family.COMMODORE, "Commodore PC64 P00 file", (".p00",)),
    ImageFormatSpec(Variant.G64, Family.COMMODORE, "Commodore 64 G64 GCR image", (".g64",)),

    # Generic containers (content detection only)
    ImageFormatSpec(Variant.SQUASHFS, Family.GENERIC, "SquashFS", (".squashfs", ".sqfs")),
    ImageFormatSpec(Variant.ISO9660, Family.GENERIC, "ISO 9660", (".iso",)),
    ImageFormatSpec(Variant.EXT, Family.GENERIC, "EXT2/3/4 filesystem"),
    ImageFormatSpec(Variant.XFS, Family.GENERIC, "XFS filesystem"),
    ImageFormatSpec(Variant.BTRFS, Family.GENERIC, "BTRFS filesystem"),
)

FORMATS_BY_VARIANT: Dict[Variant, ImageFormatSpec] = {spec.variant: spec for spec in FORMATS}

# Retro family extensions; generic container suffixes are informational only
# and never used for extension matching.
EXTENSION_MAP: Dict[str, Variant] = {
    ext: spec.variant
    for spec in FORMATS if spec.family is not Family.GENERIC
    for ext in spec.extensions
}


# =============================================================================
# Lookup Functions
# =============================================================================

def get_format(variant: Variant) -> ImageFormatSpec:
    return FORMATS_BY_VARIANT[variant]


def family_of(variant: Variant) -> Family:
    return FORMATS_BY_VARIANT[variant].family


def sizes_for_family(family: Family) -> List[Tuple[int, Variant, str]]:
    """
    Exact-size rules of a family, in catalog order.

    Returns:
        List of (byte length, variant, geometry note)
    """
    return [
        (size, spec.variant, note)
        for spec in FORMATS if spec.family is family
        for size, note in spec.sizes
    ]


def variant_for_extension(suffix: str) -> Optional[Variant]:
    """Look up a filename suffix (case-insensitive, with or without dot)."""
    suffix = suffix.lower()
    if suffix and not suffix.startswith("."):
        suffix = "." + suffix
    return EXTENSION_MAP.get(suffix)


def lookup_variant(name: str) -> Optional[Variant]:
    """
    Resolve a user-supplied format name to a variant.

    Accepts variant values ("ADF", "2MG", "SquashFS"), enum names
    ("TWO_MG") and extensions ("adf", ".2img"), case-insensitively.

    Example:
        >>> lookup_variant("iso9660")
        <Variant.ISO9660: 'ISO9660'>
    """
    key = name.strip().lower()
    for variant in Variant:
        if key in (variant.value.lower(), variant.name.lower()):
            return variant
    for spec in FORMATS:
        if ("." + key.lstrip(".")) in spec.extensions:
            return spec.variant
    return None


def extensions_by_family() -> Dict[Family, List[str]]:
    """Extension table grouped by family, for help and check output."""
    table: Dict[Family, List[str]] = {}
    for spec in FORMATS:
        if spec.family is Family.GENERIC:
            continue
        table.setdefault(spec.family, []).extend(spec.extensions)
    return table
