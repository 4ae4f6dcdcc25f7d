"""
Atari technique chains.

ST images are FAT12 and loop-mount as msdos. MSA archives are expanded to a
temporary .st image first. ATR and the remaining Atari formats get a plain
read-only loop mount.
"""

import logging

from multimount.imaging.image_formats import Variant
from multimount.mounting.techniques import (
    MountContext,
    MountTechnique,
    OutcomeKind,
    TechniqueOutcome,
    loop_mount,
    redispatch,
    require_top_level,
)
from multimount.utils.context_managers import TemporaryImage

logger = logging.getLogger(__name__)


def decompress_msa(ctx: MountContext) -> TechniqueOutcome:
    with TemporaryImage(ctx.image.path, ctx.settings.temp_dir, ".st") as temp_st:
        ctx.system.check_tool("msa", "-d", ctx.image.path, temp_st)
        logger.info("Decompressed MSA to %s", temp_st)
        return redispatch(ctx, temp_st, Variant.ST, "msa")


ST_CHAIN = (
    loop_mount("msdos-loop", 1, "msdos", ("loop", "ro"),
               description="FAT12 read-only loop mount"),
)

MSA_CHAIN = (
    MountTechnique("msa", 1, OutcomeKind.INTERMEDIATE, decompress_msa,
                   requires=("msa",), precondition=require_top_level,
                   description="expand with msa, then mount as ST"),
)

ATR_CHAIN = (
    loop_mount("loop-ro", 1, options=("loop", "ro"),
               description="read-only loop mount of an Atari 8-bit image"),
)

FALLBACK_CHAIN = (
    loop_mount("loop-ro", 1, options=("loop", "ro"),
               description="read-only loop mount"),
)
