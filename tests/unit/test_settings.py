"""
Unit tests for settings loading.
"""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from multimount.core.errors import ConfigError
from multimount.core.settings import (
    DEFAULT_MOUNT_POINT,
    MountSettings,
    get_settings_file,
    load_settings,
)


def write_settings(data):
    path = get_settings_file()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data) if not isinstance(data, str) else data)
    return path


class TestLoadSettings:

    def test_defaults(self):
        settings = load_settings()

        assert settings.mount_point == DEFAULT_MOUNT_POINT
        assert not settings.verbose
        assert settings.forced_type is None

    def test_file_values(self, tmp_path):
        write_settings({"mount_point": str(tmp_path / "m"), "tool_overrides": {"xdms": "/opt/xdms"}})

        settings = load_settings()

        assert settings.mount_point == tmp_path / "m"
        assert settings.tool_overrides == {"xdms": "/opt/xdms"}

    def test_overrides_win_and_none_is_ignored(self, tmp_path):
        write_settings({"mount_point": str(tmp_path / "m"), "verbose": True})

        settings = load_settings(mount_point=tmp_path / "cli", verbose=None)

        assert settings.mount_point == tmp_path / "cli"
        assert settings.verbose

    def test_blank_forced_type_is_none(self):
        assert load_settings(forced_type="  ").forced_type is None

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_settings(tmp_path / "nope.json")

    @pytest.mark.parametrize("content", ["{not json", "[1, 2]"])
    def test_malformed_file(self, content):
        write_settings(content)

        with pytest.raises(ConfigError):
            load_settings()

    def test_unknown_key(self):
        write_settings({"mountpoint": "/mnt/x"})

        with pytest.raises(ConfigError, match="Invalid settings"):
            load_settings()

    def test_unknown_tool_override(self):
        with pytest.raises(ConfigError, match="unknown tool"):
            load_settings(tool_overrides={"frobnicate": "/bin/true"})


class TestMountSettings:

    def test_frozen(self):
        settings = MountSettings()

        with pytest.raises(ValidationError):
            settings.verbose = True

    def test_paths_are_paths(self):
        settings = MountSettings(mount_point="/mnt/x", temp_dir="/var/tmp")

        assert settings.mount_point == Path("/mnt/x")
        assert settings.temp_dir == Path("/var/tmp")
