"""
Apple II technique chains.

Sector images (DSK/DO/PO) are first tried as a FAT-style loop mount, which
only succeeds for the rare image carrying an MS-DOS filesystem; otherwise
AppleCommander writes the disk catalog to catalog.txt in the target
directory. Container formats (2MG, NIB, WOZ, HDV, D13) go straight to the
catalog.
"""

import logging

from multimount.mounting.techniques import (
    MountContext,
    MountTechnique,
    OutcomeKind,
    TechniqueOutcome,
    extracted,
    loop_mount,
    write_listing,
)

logger = logging.getLogger(__name__)

CATALOG_FILE = "catalog.txt"


def list_catalog(ctx: MountContext) -> TechniqueOutcome:
    result = ctx.system.check_tool("ac", "-l", ctx.image.path)
    catalog = ctx.target / CATALOG_FILE
    write_listing(catalog, result.stdout)
    logger.info("Catalog saved to %s", catalog)
    return extracted(ctx, f"catalog saved to {catalog}")


catalog_technique = MountTechnique(
    "applecommander", 2, OutcomeKind.EXTRACTED, list_catalog,
    requires=("ac",), description="write the disk catalog with AppleCommander",
)

DSK_CHAIN = (
    loop_mount("msdos-loop", 1, "msdos", ("loop", "ro"),
               description="FAT-style read-only loop mount"),
    catalog_technique,
)

CATALOG_CHAIN = (catalog_technique,)
