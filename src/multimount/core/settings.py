"""
Settings management for MultiMount.

A single immutable MountSettings value is built once per invocation (from
defaults, an optional JSON settings file and command-line flags) and passed
explicitly to the classifier and dispatcher.

Settings file locations:
    - $XDG_CONFIG_HOME/multimount/settings.json
    - ~/.config/multimount/settings.json (when XDG_CONFIG_HOME is unset)
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from multimount.core.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_MOUNT_POINT = Path("/mnt/auto-mount")


# =============================================================================
# Settings File Paths
# =============================================================================

def get_settings_dir() -> Path:
    """Get the settings directory (XDG config home on Linux)."""
    xdg_config = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(xdg_config) / "multimount"


def get_settings_file() -> Path:
    """Get the settings file path."""
    return get_settings_dir() / "settings.json"


# =============================================================================
# Settings Model
# =============================================================================

class MountSettings(BaseModel):
    """
    Configuration threaded through one classify/dispatch invocation.

    Attributes:
        mount_point: Target directory for mounts and extractions
        verbose: Emit INFO/DEBUG progress on the console
        check_only: Classify only; unknown formats are an error
        forced_type: Variant name or kernel filesystem type chosen by the user
        temp_dir: Directory for intermediate decompressed images
        tool_overrides: Tool name -> executable path
        log_file: Optional log file path
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    mount_point: Path = DEFAULT_MOUNT_POINT
    verbose: bool = False
    check_only: bool = False
    forced_type: Optional[str] = None
    temp_dir: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()))
    tool_overrides: Dict[str, str] = Field(default_factory=dict)
    log_file: Optional[Path] = None

    @field_validator("forced_type")
    @classmethod
    def _normalise_forced_type(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @field_validator("tool_overrides")
    @classmethod
    def _known_tools_only(cls, value: Dict[str, str]) -> Dict[str, str]:
        from multimount.core.process import TOOLS

        unknown = sorted(set(value) - set(TOOLS))
        if unknown:
            raise ValueError(f"unknown tool(s): {', '.join(unknown)}")
        return value


def load_settings(path: Optional[Path] = None, **overrides) -> MountSettings:
    """
    Load settings from a JSON file and apply overrides.

    Args:
        path: Settings file; defaults to get_settings_file(). A missing
            default file is not an error, a missing explicit file is.
        **overrides: Field values that take precedence over the file
            (None values are ignored)

    Returns:
        Validated MountSettings

    Raises:
        ConfigError: If the file cannot be parsed or fails validation

    Example:
        >>> settings = load_settings(verbose=True, mount_point=Path("/tmp/m"))
    """
    explicit = path is not None
    settings_path = Path(path) if explicit else get_settings_file()

    data: Dict[str, object] = {}
    if settings_path.is_file():
        try:
            with open(settings_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in settings file: {e}", str(settings_path)) from e
        except OSError as e:
            raise ConfigError(f"Cannot read settings file: {e}", str(settings_path)) from e
        if not isinstance(data, dict):
            raise ConfigError("Settings file must contain a JSON object", str(settings_path))
        logger.debug("Loaded settings from %s", settings_path)
    elif explicit:
        raise ConfigError("Settings file not found", str(settings_path))

    data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return MountSettings(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}", str(settings_path)) from e
