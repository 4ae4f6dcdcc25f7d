"""TRS-80 technique chain: trsread extraction, then a directory listing."""

import logging

from multimount.mounting.techniques import (
    MountContext,
    MountTechnique,
    OutcomeKind,
    TechniqueOutcome,
    extracted,
    write_listing,
)

logger = logging.getLogger(__name__)

DIRECTORY_FILE = "directory.txt"


def extract_files(ctx: MountContext) -> TechniqueOutcome:
    ctx.system.check_tool("trsread", "-e", ctx.image.path, ctx.target)
    return extracted(ctx, "files extracted with trsread")


def list_directory(ctx: MountContext) -> TechniqueOutcome:
    result = ctx.system.check_tool("trsread", "-v", ctx.image.path)
    listing = ctx.target / DIRECTORY_FILE
    write_listing(listing, result.stdout)
    logger.info("Directory saved to %s", listing)
    return extracted(ctx, f"directory saved to {listing}")


TRS80_CHAIN = (
    MountTechnique("trsread-extract", 1, OutcomeKind.EXTRACTED, extract_files,
                   requires=("trsread",), description="extract files with trsread"),
    MountTechnique("trsread-list", 2, OutcomeKind.EXTRACTED, list_directory,
                   requires=("trsread",), description="write the directory listing"),
)
