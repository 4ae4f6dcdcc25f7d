"""
Commodore technique chains.

Disk images are handled with c1541 from the VICE emulator: the directory is
written to directory.txt, then every file is extracted and the program,
sequential and user files are moved into the target directory. A failed
extraction after a successful listing still counts as success, since the
listing alone is useful. Tape images are listed only; single program files
are copied as-is.
"""

import logging
import shutil
import tempfile
from pathlib import Path
from typing import List

from multimount.core.errors import PreconditionNotMet, ToolExecutionFailed
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
EXTRACTED_SUFFIXES = (".prg", ".seq", ".usr")


def write_directory(ctx: MountContext) -> Path:
    result = ctx.system.check_tool("c1541", ctx.image.path, "-list")
    listing = ctx.target / DIRECTORY_FILE
    write_listing(listing, result.stdout)
    logger.info("Directory saved to %s", listing)
    return listing


def collect_extracted(staging: Path, target: Path) -> List[str]:
    """Move recognised c1541 output files from staging into target."""
    moved = []
    for entry in sorted(staging.iterdir()):
        if entry.is_file() and entry.suffix.lower() in EXTRACTED_SUFFIXES:
            shutil.move(str(entry), str(target / entry.name))
            moved.append(entry.name)
    return moved


def list_and_extract(ctx: MountContext) -> TechniqueOutcome:
    listing = write_directory(ctx)

    try:
        ctx.settings.temp_dir.mkdir(parents=True, exist_ok=True)
        staging_dir = tempfile.TemporaryDirectory(prefix="multimount-c1541-",
                                                  dir=ctx.settings.temp_dir)
    except OSError as e:
        raise PreconditionNotMet(
            f"cannot create staging directory in {ctx.settings.temp_dir}: {e.strerror}") from e

    with staging_dir as staging:
        try:
            ctx.system.check_tool("c1541", ctx.image.path, "-extract", cwd=Path(staging))
        except ToolExecutionFailed as e:
            logger.warning("c1541 extraction failed, directory listing only: %s", e)
            return extracted(ctx, f"directory saved to {listing} (extraction failed)")

        try:
            moved = collect_extracted(Path(staging), ctx.target)
        except OSError as e:
            raise PreconditionNotMet(f"cannot move extracted files to {ctx.target}: {e}") from e

    logger.info("Extracted %d file(s) to %s", len(moved), ctx.target)
    return extracted(ctx, f"{len(moved)} file(s) extracted, directory saved to {listing}")


def list_only(ctx: MountContext) -> TechniqueOutcome:
    listing = write_directory(ctx)
    return extracted(ctx, f"directory saved to {listing}")


def copy_program(ctx: MountContext) -> TechniqueOutcome:
    destination = ctx.target / ctx.image.name
    try:
        shutil.copy2(ctx.image.path, destination)
    except OSError as e:
        raise PreconditionNotMet(f"cannot copy {ctx.image.name} to {ctx.target}: {e}") from e
    return extracted(ctx, f"program file copied to {destination}")


DISK_CHAIN = (
    MountTechnique("c1541-extract", 1, OutcomeKind.EXTRACTED, list_and_extract,
                   requires=("c1541",),
                   description="list the directory and extract files with c1541"),
)

TAPE_CHAIN = (
    MountTechnique("c1541-list", 1, OutcomeKind.EXTRACTED, list_only,
                   requires=("c1541",), description="list the tape directory with c1541"),
)

PROGRAM_CHAIN = (
    MountTechnique("copy", 1, OutcomeKind.EXTRACTED, copy_program,
                   description="copy the program file into the target directory"),
)
