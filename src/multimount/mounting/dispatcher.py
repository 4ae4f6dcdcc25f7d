"""
Mount Strategy Dispatcher.

Maps a classification (or a user-forced type) to the technique chain of its
variant and runs it. Decompression techniques call back into the dispatcher
with the intermediate image; the depth argument bounds that recursion.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple

from multimount.core.settings import MountSettings
from multimount.core.system import HostSystem
from multimount.imaging.classifier import classify
from multimount.imaging.format_registry import family_of, lookup_variant
from multimount.imaging.image_formats import (
    DetectionMethod,
    Family,
    FormatClassification,
    ImageFile,
    Variant,
)
from multimount.mounting import amiga, apple, atari, commodore, containers, trs80
from multimount.mounting.techniques import (
    FailureKind,
    MountContext,
    MountResult,
    MountTechnique,
    OutcomeKind,
    TechniqueFailure,
    run_chain,
)

logger = logging.getLogger(__name__)


CHAINS: Dict[Variant, Tuple[MountTechnique, ...]] = {
    # Amiga
    Variant.ADF: amiga.ADF_CHAIN,
    Variant.HDF: amiga.HDF_CHAIN,
    Variant.DMS: amiga.DMS_CHAIN,
    Variant.ADZ: amiga.ADZ_CHAIN,
    # Apple II
    Variant.DSK: apple.DSK_CHAIN,
    Variant.DSK_35: apple.DSK_CHAIN,
    Variant.DO: apple.DSK_CHAIN,
    Variant.PO: apple.DSK_CHAIN,
    Variant.TWO_MG: apple.CATALOG_CHAIN,
    Variant.NIB: apple.CATALOG_CHAIN,
    Variant.WOZ: apple.CATALOG_CHAIN,
    Variant.HDV: apple.CATALOG_CHAIN,
    Variant.D13: apple.CATALOG_CHAIN,
    # Atari
    Variant.ST: atari.ST_CHAIN,
    Variant.MSA: atari.MSA_CHAIN,
    Variant.ATR: atari.ATR_CHAIN,
    Variant.STX: atari.FALLBACK_CHAIN,
    Variant.DIM: atari.FALLBACK_CHAIN,
    Variant.IPF: atari.FALLBACK_CHAIN,
    # TRS-80
    Variant.JV1: trs80.TRS80_CHAIN,
    Variant.JV3: trs80.TRS80_CHAIN,
    Variant.DMK: trs80.TRS80_CHAIN,
    # Commodore
    Variant.D64: commodore.DISK_CHAIN,
    Variant.D71: commodore.DISK_CHAIN,
    Variant.D81: commodore.DISK_CHAIN,
    Variant.D80: commodore.DISK_CHAIN,
    Variant.D82: commodore.DISK_CHAIN,
    Variant.G64: commodore.DISK_CHAIN,
    Variant.T64: commodore.TAPE_CHAIN,
    Variant.PRG: commodore.PROGRAM_CHAIN,
    Variant.P00: commodore.PROGRAM_CHAIN,
    # Generic containers
    Variant.SQUASHFS: containers.SQUASHFS_CHAIN,
    Variant.ISO9660: containers.ISO9660_CHAIN,
    Variant.EXT: containers.EXT_CHAIN,
    Variant.XFS: containers.XFS_CHAIN,
    Variant.BTRFS: containers.BTRFS_CHAIN,
}


def resolve_forced_type(name: str) -> Tuple[FormatClassification, Optional[str]]:
    """
    Interpret a user-forced type.

    A known variant name or extension (``adf``, ``D64``, ``.st``,
    ``squashfs``) selects that variant's chain. Anything else is taken as a
    kernel filesystem type for the generic loop mount.

    Returns:
        (classification, kernel filesystem type or None)

    Example:
        >>> resolve_forced_type("hdf")[0].variant
        <Variant.HDF: 'HDF'>
        >>> resolve_forced_type("vfat")[1]
        'vfat'
    """
    variant = lookup_variant(name)
    if variant is not None:
        classification = FormatClassification(
            family_of(variant), variant, DetectionMethod.FORCED,
            description=f"forced type {name}",
        )
        return classification, None

    classification = FormatClassification(
        Family.UNKNOWN, None, DetectionMethod.FORCED,
        description=f"forced kernel filesystem type {name}",
    )
    return classification, name


class MountDispatcher:
    """
    Selects and runs the technique chain for an image.

    Attributes:
        settings: Invocation settings (mount point, forced type, temp dir)
        system: Host capabilities used by every technique

    Example:
        >>> dispatcher = MountDispatcher(load_settings())
        >>> result = dispatcher.dispatch(ImageFile.open("disk.d64"))
        >>> result.kind, result.location
        (<OutcomeKind.EXTRACTED: 'Extracted'>, PosixPath('/mnt/auto-mount'))
    """

    def __init__(self, settings: MountSettings, system: Optional[HostSystem] = None):
        self.settings = settings
        self.system = system or HostSystem(settings.tool_overrides)

    def chain_for(self, classification: FormatClassification) -> Sequence[MountTechnique]:
        """Technique chain for a classification; unknown images use the generic chain."""
        if classification.variant is None:
            return containers.GENERIC_CHAIN
        return CHAINS[classification.variant]

    def dispatch(self, image: ImageFile,
                 classification: Optional[FormatClassification] = None,
                 forced_type: Optional[str] = None,
                 target: Optional[Path] = None,
                 depth: int = 0) -> MountResult:
        """
        Mount or extract an image.

        Args:
            image: Image to process
            classification: Classifier output; classified here if omitted
            forced_type: Variant name or kernel filesystem type overriding
                the classification (top-level calls default to the
                settings' forced type)
            target: Mount point / output directory (default: settings)
            depth: Nesting level; non-zero for intermediate images

        Returns:
            MountResult; kind FAILED only when every technique failed
        """
        fs_type = None
        if forced_type is None and depth == 0:
            forced_type = self.settings.forced_type

        if forced_type:
            classification, fs_type = resolve_forced_type(forced_type)
            logger.info("Using forced type %s", forced_type)
        elif classification is None:
            classification = classify(image)

        target = Path(target) if target is not None else self.settings.mount_point
        chain = self.chain_for(classification)

        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Cannot create mount point %s: %s", target, e)
            failures = tuple(
                TechniqueFailure(technique.name, FailureKind.PRECONDITION_NOT_MET,
                                 f"cannot create {target}: {e.strerror}")
                for technique in sorted(chain, key=lambda t: t.priority))
            return MountResult(OutcomeKind.FAILED, image.path, classification,
                               failures=failures)

        logger.info("Dispatching %s as %s (%d technique(s), depth %d)",
                    image.name, classification, len(chain), depth)

        ctx = MountContext(
            image=image,
            classification=classification,
            target=target,
            settings=self.settings,
            system=self.system,
            dispatcher=self,
            depth=depth,
            fs_type=fs_type,
        )
        return run_chain(chain, ctx)
