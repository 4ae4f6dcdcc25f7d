"""
Amiga technique chains: ADF, HDF, DMS and ADZ.

ADF:  adf-util mount -> unadf extraction -> AFFS loop mount
HDF:  RDB offset mount -> xdftool partition unpack -> AFFS loop mount
      -> loop device partition probe
DMS:  xdms decompression to a temporary ADF, then the ADF chain
ADZ:  gzip decompression to a temporary ADF, then the ADF chain
"""

import gzip
import logging
import shutil
import zlib

from multimount.core.errors import PreconditionNotMet, ToolExecutionFailed
from multimount.imaging.image_formats import Variant
from multimount.imaging.rdb import RdbParseError, first_data_partition
from multimount.mounting.techniques import (
    MountContext,
    MountTechnique,
    OutcomeKind,
    TechniqueOutcome,
    extracted,
    mounted,
    redispatch,
    require_kernel_filesystem,
    require_top_level,
)
from multimount.utils.context_managers import LoopDeviceContext, TemporaryImage

logger = logging.getLogger(__name__)

require_affs = require_kernel_filesystem("affs", "try: sudo modprobe affs")


# =============================================================================
# ADF
# =============================================================================

def mount_with_adf_util(ctx: MountContext) -> TechniqueOutcome:
    ctx.system.check_tool("adf-util", "-m", ctx.image.path, ctx.target)
    return mounted(ctx)


def extract_with_unadf(ctx: MountContext) -> TechniqueOutcome:
    ctx.system.check_tool("unadf", "-x", ctx.image.path, "-d", ctx.target)
    return extracted(ctx, "read-only extraction, not a mount")


def mount_affs(ctx: MountContext) -> TechniqueOutcome:
    ctx.system.mount(str(ctx.image.path), ctx.target, "affs", ("loop", "ro"))
    return mounted(ctx, "type=affs")


ADF_CHAIN = (
    MountTechnique("adf-util", 1, OutcomeKind.MOUNTED, mount_with_adf_util,
                   requires=("adf-util",), description="mount with adf-util"),
    MountTechnique("unadf", 2, OutcomeKind.EXTRACTED, extract_with_unadf,
                   requires=("unadf",), description="extract with unadf"),
    MountTechnique("affs-loop", 3, OutcomeKind.MOUNTED, mount_affs,
                   precondition=require_affs, description="kernel AFFS loop mount"),
)


# =============================================================================
# HDF
# =============================================================================

def mount_rdb_partition(ctx: MountContext) -> TechniqueOutcome:
    """
    Loop-mount the first data partition at the offset given by its RDB geometry.

    offset = low_cyl * surfaces * blocks_per_track * block_size
    """
    report = ctx.system.check_tool("rdbtool", ctx.image.path, "show").stdout
    logger.debug("Rigid Disk Block report:\n%s", report)

    try:
        partition = first_data_partition(report)
    except RdbParseError as e:
        raise PreconditionNotMet(f"RDB report: {e}") from e

    ctx.findings["partition_name"] = partition.drive_name
    if partition.dos_type:
        ctx.findings["partition_dos_type"] = partition.dos_type

    offset = partition.byte_offset
    if offset >= ctx.image.size:
        raise PreconditionNotMet(
            f"partition {partition.drive_name} offset {offset} lies beyond the image "
            f"({ctx.image.size} bytes)"
        )

    logger.info("Partition %s: low_cyl=%d, block_size=%d, offset=%d",
                partition.drive_name, partition.low_cyl, partition.block_size, offset)
    ctx.system.mount(str(ctx.image.path), ctx.target, None,
                     ("loop", f"offset={offset}", "ro"))
    return mounted(ctx, f"partition {partition.drive_name} at offset {offset}")


def unpack_with_xdftool(ctx: MountContext) -> TechniqueOutcome:
    ctx.system.check_tool("xdftool", ctx.image.path, "unpack", "0", ctx.target)
    return extracted(ctx, "partition 0 unpacked")


def mount_first_partition(ctx: MountContext) -> TechniqueOutcome:
    """Attach a loop device with partition scanning and mount its first partition."""
    with LoopDeviceContext(ctx.system, ctx.image.path) as device:
        table = ctx.system.show_partition_table(device)
        if table:
            logger.info("HDF partition table:\n%s", table)

        partition = f"{device}p1"
        if not ctx.system.is_block_device(partition):
            raise PreconditionNotMet(f"no partition device {partition}")

        ctx.system.mount(partition, ctx.target, None, ("ro",))
        return mounted(ctx, f"partition {partition}")


HDF_CHAIN = (
    MountTechnique("rdbtool-offset", 1, OutcomeKind.MOUNTED, mount_rdb_partition,
                   requires=("rdbtool",),
                   description="loop mount first RDB partition at its byte offset"),
    MountTechnique("xdftool-unpack", 2, OutcomeKind.EXTRACTED, unpack_with_xdftool,
                   requires=("xdftool",), description="unpack partition 0 with xdftool"),
    MountTechnique("affs-loop", 3, OutcomeKind.MOUNTED, mount_affs,
                   precondition=require_affs, description="kernel AFFS loop mount"),
    MountTechnique("loop-partition", 4, OutcomeKind.MOUNTED, mount_first_partition,
                   requires=("losetup",),
                   description="attach loop device and mount its first partition"),
)


# =============================================================================
# DMS / ADZ
# =============================================================================

def decompress_dms(ctx: MountContext) -> TechniqueOutcome:
    with TemporaryImage(ctx.image.path, ctx.settings.temp_dir, ".adf") as temp_adf:
        ctx.system.check_tool("xdms", "u", ctx.image.path, temp_adf)
        logger.info("Decompressed DMS to %s", temp_adf)
        return redispatch(ctx, temp_adf, Variant.ADF, "xdms")


def decompress_adz(ctx: MountContext) -> TechniqueOutcome:
    with TemporaryImage(ctx.image.path, ctx.settings.temp_dir, ".adf") as temp_adf:
        try:
            with gzip.open(ctx.image.path, "rb") as src, open(temp_adf, "wb") as dst:
                shutil.copyfileobj(src, dst)
        except (OSError, EOFError, zlib.error) as e:
            raise ToolExecutionFailed(("gzip", "-d", str(ctx.image.path)), 1, str(e)) from e
        logger.info("Decompressed ADZ to %s", temp_adf)
        return redispatch(ctx, temp_adf, Variant.ADF, "gunzip")


DMS_CHAIN = (
    MountTechnique("xdms", 1, OutcomeKind.INTERMEDIATE, decompress_dms,
                   requires=("xdms",), precondition=require_top_level,
                   description="decompress with xdms, then mount as ADF"),
)

ADZ_CHAIN = (
    MountTechnique("gunzip", 1, OutcomeKind.INTERMEDIATE, decompress_adz,
                   precondition=require_top_level,
                   description="gzip-decompress, then mount as ADF"),
)
