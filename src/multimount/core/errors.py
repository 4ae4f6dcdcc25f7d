"""
Error taxonomy for MultiMount.

Fatal errors (missing input, bad configuration) propagate to the caller.
Technique errors are recoverable: the chain runner catches them, records
them on the MountResult and moves on to the next technique.
"""

from typing import Optional, Sequence


class MultiMountError(Exception):
    """Base exception for all MultiMount errors."""


class InputNotFound(MultiMountError):
    """Raised when the image path does not exist or is not a regular file."""

    def __init__(self, path: str, reason: str = "File not found"):
        self.path = path
        self.reason = reason
        super().__init__(f"{reason}: {path}")


class ConfigError(MultiMountError):
    """Raised when a settings file cannot be read or fails validation."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        if path:
            message = f"{message} [File: {path}]"
        super().__init__(message)


class AmbiguousOrUnknownFormat(MultiMountError):
    """Raised in check-only mode when no detection rule matched."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Unknown or unsupported filesystem type: {path}")


# =============================================================================
# Technique Errors (recoverable)
# =============================================================================

class TechniqueError(MultiMountError):
    """Base class for failures that skip to the next technique in a chain."""


class ToolMissing(TechniqueError):
    """An external tool required by a technique is not installed."""

    def __init__(self, tool: str):
        self.tool = tool
        super().__init__(f"{tool} not found")


class PreconditionNotMet(TechniqueError):
    """A technique's precondition (other than tool presence) is not satisfied."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class ToolExecutionFailed(TechniqueError):
    """An external tool ran but reported failure."""

    def __init__(self, command: Sequence[str], returncode: int, stderr: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr.strip()
        message = f"{self.command[0]} exited with status {returncode}"
        if self.stderr:
            message = f"{message}: {self.stderr.splitlines()[-1]}"
        super().__init__(message)


class MountCallFailed(TechniqueError):
    """The OS mount call failed."""

    def __init__(self, source: str, target: str, returncode: int,
                 stderr: str = "", command: Optional[Sequence[str]] = None):
        self.source = source
        self.target = target
        self.returncode = returncode
        self.stderr = stderr.strip()
        self.command = list(command) if command else []
        message = f"mount {source} on {target} failed (status {returncode})"
        if self.stderr:
            message = f"{message}: {self.stderr.splitlines()[-1]}"
        super().__init__(message)


class NestedDispatchFailed(TechniqueError):
    """A decompression step succeeded but dispatching the result failed."""

    def __init__(self, result):
        self.result = result
        super().__init__(
            f"all {len(result.failures)} technique(s) failed on intermediate image"
        )


class AllTechniquesExhausted(MultiMountError):
    """Every technique in the selected chain failed."""

    def __init__(self, result):
        self.result = result
        super().__init__(
            f"All mount techniques failed for {result.image_path} "
            f"({len(result.failures)} attempt(s))"
        )
