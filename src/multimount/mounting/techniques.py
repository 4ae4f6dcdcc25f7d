"""
Mount techniques and the chain runner.

A technique chain is a static tuple of MountTechnique records. run_chain()
tries them in priority order: tool requirements and the precondition are
checked first, then the action runs. The first action that returns an
outcome ends the chain; every failure is recorded on the MountResult so the
caller can print what was tried and why it failed.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, Optional, Sequence, Tuple

from multimount.core.errors import (
    AllTechniquesExhausted,
    InputNotFound,
    MountCallFailed,
    NestedDispatchFailed,
    PreconditionNotMet,
    TechniqueError,
    ToolExecutionFailed,
    ToolMissing,
)
from multimount.core.settings import MountSettings
from multimount.core.system import HostSystem
from multimount.imaging.format_registry import family_of
from multimount.imaging.image_formats import (
    DetectionMethod,
    FormatClassification,
    ImageFile,
    Variant,
)

if TYPE_CHECKING:
    from multimount.mounting.dispatcher import MountDispatcher

logger = logging.getLogger(__name__)

# Decompress-then-dispatch may nest this many levels below the top-level call
MAX_NESTING_DEPTH = 1


# =============================================================================
# Enums
# =============================================================================

class OutcomeKind(Enum):
    """What a technique produces when it succeeds."""
    MOUNTED = "Mounted"
    EXTRACTED = "Extracted"
    INTERMEDIATE = "ProducedIntermediateImage"
    FAILED = "Failed"


class FailureKind(Enum):
    """Why a technique was skipped or failed."""
    TOOL_MISSING = "ToolMissing"
    PRECONDITION_NOT_MET = "PreconditionNotMet"
    TOOL_EXECUTION_FAILED = "ToolExecutionFailed"
    MOUNT_CALL_FAILED = "MountCallFailed"


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class MountContext:
    """
    Everything a technique action needs.

    Attributes:
        image: Image being mounted (may be an intermediate decompressed image)
        classification: Classification that selected the chain
        target: Mount point / extraction directory
        settings: Invocation settings
        system: Host capabilities
        dispatcher: Dispatcher, for re-dispatching intermediate images
        depth: Nesting level (0 for the user's image)
        fs_type: Kernel filesystem type forced by the user, if any
        findings: Facts discovered while trying techniques (e.g. the
            partition DOS type of an HDF), reported on failure
    """
    image: ImageFile
    classification: FormatClassification
    target: Path
    settings: MountSettings
    system: HostSystem
    dispatcher: "MountDispatcher"
    depth: int = 0
    fs_type: Optional[str] = None
    findings: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class TechniqueOutcome:
    """Successful technique result."""
    kind: OutcomeKind
    location: Path
    detail: str = ""
    technique: Optional[str] = None


@dataclass(frozen=True)
class MountTechnique:
    """
    One step of a family's strategy chain.

    Attributes:
        name: Short identifier shown in diagnostics
        priority: Position in the chain (lower runs first)
        outcome: Declared outcome kind of a successful action
        action: Performs the mount/extraction; raises TechniqueError on failure
        requires: Registered tools that must be installed
        precondition: Extra check run before the action; raises
            PreconditionNotMet when unmet
        description: One-line summary
    """
    name: str
    priority: int
    outcome: OutcomeKind
    action: Callable[[MountContext], TechniqueOutcome]
    requires: Tuple[str, ...] = ()
    precondition: Optional[Callable[[MountContext], None]] = None
    description: str = ""


@dataclass(frozen=True)
class TechniqueFailure:
    """
    Record of one failed technique.

    Attributes:
        technique: Technique name
        kind: Failure category
        detail: Human readable reason
        tool: Missing tool name (TOOL_MISSING only)
        command: argv of the failing command, if any
        returncode: Exit status of the failing command, if any
        stderr: Captured standard error, if any
    """
    technique: str
    kind: FailureKind
    detail: str
    tool: Optional[str] = None
    command: Tuple[str, ...] = ()
    returncode: Optional[int] = None
    stderr: str = ""


@dataclass(frozen=True)
class MountResult:
    """
    Outcome of dispatching one image.

    ``kind`` is FAILED only when every technique in the chain failed or was
    skipped; ``failures`` lists those attempts in order (also the ones that
    failed before a later technique succeeded).
    """
    kind: OutcomeKind
    image_path: Path
    classification: FormatClassification
    location: Optional[Path] = None
    technique_used: Optional[str] = None
    detail: str = ""
    failures: Tuple[TechniqueFailure, ...] = ()
    findings: Tuple[Tuple[str, str], ...] = ()

    @property
    def ok(self) -> bool:
        return self.kind is not OutcomeKind.FAILED

    def finding(self, key: str) -> Optional[str]:
        return dict(self.findings).get(key)

    def raise_for_failure(self) -> "MountResult":
        """
        Raises:
            AllTechniquesExhausted: If the dispatch failed
        """
        if not self.ok:
            raise AllTechniquesExhausted(self)
        return self


# =============================================================================
# Chain Runner
# =============================================================================

def failure_from_error(technique: str, error: TechniqueError) -> TechniqueFailure:
    """Convert a technique exception into a failure record."""
    if isinstance(error, ToolMissing):
        return TechniqueFailure(technique, FailureKind.TOOL_MISSING, str(error),
                                tool=error.tool)
    if isinstance(error, ToolExecutionFailed):
        return TechniqueFailure(technique, FailureKind.TOOL_EXECUTION_FAILED, str(error),
                                command=tuple(error.command), returncode=error.returncode,
                                stderr=error.stderr)
    if isinstance(error, MountCallFailed):
        return TechniqueFailure(technique, FailureKind.MOUNT_CALL_FAILED, str(error),
                                command=tuple(error.command), returncode=error.returncode,
                                stderr=error.stderr)
    return TechniqueFailure(technique, FailureKind.PRECONDITION_NOT_MET, str(error))


def run_chain(chain: Sequence[MountTechnique], ctx: MountContext) -> MountResult:
    """
    Try each technique in priority order and stop at the first success.

    Args:
        chain: Techniques for the selected format
        ctx: Mount context

    Returns:
        MountResult; FAILED with all attempts if no technique succeeded
    """
    failures = []

    for technique in sorted(chain, key=lambda t: t.priority):
        logger.info("Trying %s", technique.name)
        try:
            for tool in technique.requires:
                ctx.system.require(tool)
            if technique.precondition is not None:
                technique.precondition(ctx)
            outcome = technique.action(ctx)
        except NestedDispatchFailed as e:
            logger.info("%s: intermediate image could not be mounted", technique.name)
            failures.extend(
                TechniqueFailure(f"{technique.name} -> {inner.technique}", inner.kind,
                                 inner.detail, inner.tool, inner.command,
                                 inner.returncode, inner.stderr)
                for inner in e.result.failures
            )
        except TechniqueError as e:
            logger.info("%s failed: %s", technique.name, e)
            failures.append(failure_from_error(technique.name, e))
        else:
            used = outcome.technique or technique.name
            logger.info("%s succeeded (%s)", used, outcome.kind.value)
            return MountResult(
                kind=outcome.kind,
                image_path=ctx.image.path,
                classification=ctx.classification,
                location=outcome.location,
                technique_used=used,
                detail=outcome.detail,
                failures=tuple(failures),
                findings=tuple(ctx.findings.items()),
            )

    return MountResult(
        kind=OutcomeKind.FAILED,
        image_path=ctx.image.path,
        classification=ctx.classification,
        failures=tuple(failures),
        findings=tuple(ctx.findings.items()),
    )


# =============================================================================
# Shared Actions
# =============================================================================

def mounted(ctx: MountContext, detail: str = "") -> TechniqueOutcome:
    return TechniqueOutcome(OutcomeKind.MOUNTED, ctx.target, detail)


def extracted(ctx: MountContext, detail: str = "") -> TechniqueOutcome:
    return TechniqueOutcome(OutcomeKind.EXTRACTED, ctx.target, detail)


def loop_mount(name: str, priority: int, fs_type: Optional[str] = None,
               options: Tuple[str, ...] = ("loop",), description: str = "") -> MountTechnique:
    """
    Build a technique that loop-mounts the image with a fixed type and options.

    A None fs_type lets mount(8) auto-detect, or uses the user's forced
    kernel filesystem type when one was given.
    """
    def action(ctx: MountContext) -> TechniqueOutcome:
        chosen = fs_type or ctx.fs_type
        ctx.system.mount(str(ctx.image.path), ctx.target, chosen, options)
        return mounted(ctx, f"type={chosen or 'auto'}")

    return MountTechnique(
        name=name,
        priority=priority,
        outcome=OutcomeKind.MOUNTED,
        action=action,
        description=description or f"loop mount ({fs_type or 'auto'})",
    )


def require_kernel_filesystem(fs_type: str, hint: str = "") -> Callable[[MountContext], None]:
    """Precondition: the running kernel lists fs_type in /proc/filesystems."""
    def check(ctx: MountContext) -> None:
        if not ctx.system.kernel_supports(fs_type):
            reason = f"{fs_type.upper()} filesystem not supported by the running kernel"
            if hint:
                reason = f"{reason} ({hint})"
            raise PreconditionNotMet(reason)
    return check


def require_top_level(ctx: MountContext) -> None:
    """Precondition for decompression techniques: bound the recursion."""
    if ctx.depth >= MAX_NESTING_DEPTH:
        raise PreconditionNotMet("nested decompression is not supported")


def write_listing(path: Path, text: str) -> None:
    """Write a catalog/directory listing produced by a tool."""
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise PreconditionNotMet(f"cannot write {path}: {e.strerror}") from e


def redispatch(ctx: MountContext, path: Path, variant: Variant, via: str) -> TechniqueOutcome:
    """
    Dispatch an intermediate image produced by a decompression step.

    The intermediate image goes straight into the chain of ``variant``.

    Raises:
        PreconditionNotMet: If the decompressor produced no file
        NestedDispatchFailed: If every technique of the inner chain failed
    """
    try:
        inner_image = ImageFile.open(path)
    except InputNotFound as e:
        raise PreconditionNotMet(f"{via} produced no image ({e.reason})") from e

    classification = FormatClassification(
        family_of(variant), variant, DetectionMethod.FORCED,
        description=f"decompressed by {via}",
    )
    result = ctx.dispatcher.dispatch(inner_image, classification,
                                     target=ctx.target, depth=ctx.depth + 1)
    if not result.ok:
        raise NestedDispatchFailed(result)
    return TechniqueOutcome(result.kind, result.location, result.detail,
                            technique=f"{via} -> {result.technique_used}")
