"""
Integration tests for the multimount command line.

main() runs end to end against a FakeSystem: argument parsing, settings,
classification, dispatch and the console report. Root is simulated by
patching the admin check.
"""

import json
import sys

import pytest
from rich.console import Console

from multimount.main import main
from tests.fixtures import ADF_DD_SIZE, CORE_TOOLS, FakeSystem, MountEntry, make_image

C1541_LISTING = '0 "GAMES DISK      " 01 2a\n12   "ELITE"            prg\n'


@pytest.fixture(autouse=True)
def environment(tmp_path, monkeypatch):
    """Isolated settings file, no libmagic, no real logging setup."""
    config_home = tmp_path / "config"
    (config_home / "multimount").mkdir(parents=True)
    (config_home / "multimount" / "settings.json").write_text(
        json.dumps({"temp_dir": str(tmp_path / "tmp")}))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    monkeypatch.setattr("multimount.imaging.classifier.describe_file", lambda image: "data")
    monkeypatch.setattr(sys.modules["multimount.main"], "setup_logging",
                        lambda *args, **kwargs: None)


@pytest.fixture
def as_root(monkeypatch):
    monkeypatch.setattr("multimount.utils.admin_check.is_admin", lambda: True)


@pytest.fixture
def as_user(monkeypatch):
    monkeypatch.setattr("multimount.utils.admin_check.is_admin", lambda: False)


@pytest.fixture
def system(tmp_path):
    return FakeSystem(tmp_path)


@pytest.fixture
def mount_point(tmp_path):
    return tmp_path / "mnt"


def run_cli(argv, system):
    console = Console(record=True, width=160)
    status = main([str(arg) for arg in argv], system=system, console=console)
    return status, console.export_text()


class TestCheckMode:
    """Test -c (classify only)."""

    def test_unknown_image_fails(self, tmp_path, system):
        image = make_image(tmp_path, "mystery.bin", 1234)

        status, output = run_cli(["-c", image], system)

        assert status == 1
        assert "Unknown or unsupported filesystem type" in output
        assert system.calls == []

    def test_known_image_reports_detection(self, tmp_path, system):
        image = make_image(tmp_path, "games.d64", 174_848)

        status, output = run_cli(["-c", image], system)

        assert status == 0
        assert "Commodore D64 (SizeHeuristic)" in output
        assert "174,848 bytes" in output
        assert system.calls == []

    def test_missing_file(self, tmp_path, system):
        status, output = run_cli(["-c", tmp_path / "nope.adf"], system)

        assert status == 1
        assert "File not found" in output


class TestMountMode:
    """Test the default mount flow."""

    def test_d64_extracted(self, tmp_path, system, mount_point, as_root):
        image = make_image(tmp_path, "games.d64", 174_848)
        system.install("c1541")
        system.respond("c1541", stdout=C1541_LISTING, when=lambda argv: "-list" in argv)

        status, output = run_cli(["-m", mount_point, image], system)

        assert status == 0
        assert "Mount successful!" in output
        assert "Technique: c1541-extract" in output
        assert "Type: extracted" in output
        assert "directory.txt" in output
        assert f"multimount -u {mount_point}" in output

    def test_positional_mount_point(self, tmp_path, system, mount_point, as_root):
        image = make_image(tmp_path, "demo.st", 737_280)

        status, output = run_cli([image, mount_point], system)

        assert status == 0
        assert str(mount_point) in system.mounts
        assert "Type: msdos" in output

    def test_requires_root(self, tmp_path, system, mount_point, as_user):
        image = make_image(tmp_path, "demo.st", 737_280)

        status, output = run_cli(["-m", mount_point, image], system)

        assert status == 1
        assert "requires root privileges" in output
        assert system.calls_to("mount") == []

    def test_all_techniques_failed(self, tmp_path, system, mount_point, as_root):
        image = make_image(tmp_path, "game.adf", ADF_DD_SIZE, b"DOS\x00")

        status, output = run_cli(["-m", mount_point, image], system)

        assert status == 1
        assert "Failed to mount game.adf" in output
        assert "Possible solutions:" in output
        assert "Install adf-util: sudo apt install adf-util" in output

    def test_unknown_image_generic_mount(self, tmp_path, system, mount_point, as_root):
        image = make_image(tmp_path, "mystery.bin", 1234)

        status, output = run_cli(["-m", mount_point, image], system)

        assert status == 0
        assert "Attempting generic mount anyway" in output

    def test_forced_kernel_type(self, tmp_path, system, mount_point, as_root):
        image = make_image(tmp_path, "stick.img", 1234)

        status, _ = run_cli(["-t", "vfat", "-m", mount_point, image], system)

        assert status == 0
        assert system.mounts[str(mount_point)].fs_type == "vfat"

    def test_missing_required_tools(self, tmp_path, mount_point, as_root):
        system = FakeSystem(tmp_path, installed=[t for t in CORE_TOOLS if t != "mount"])
        image = make_image(tmp_path, "demo.st", 737_280)

        status, output = run_cli(["-m", mount_point, image], system)

        assert status == 1
        assert "Missing required tools: mount" in output

    def test_no_image(self, system, as_root):
        status, output = run_cli([], system)

        assert status == 1
        assert "No filesystem image specified" in output


class TestOtherModes:
    """Test unmount, list, ramdisk and argument errors."""

    def test_unmount_not_mounted(self, system, mount_point, as_root):
        status, output = run_cli(["-u", mount_point], system)

        assert status == 0
        assert "is not mounted" in output

    def test_unmount_detaches_loop_device(self, tmp_path, system, mount_point, as_root):
        image = make_image(tmp_path, "disk.hdf", 4096)
        device = system.attach(str(image))
        system.mounts[str(mount_point)] = MountEntry(f"{device}p1", None, ("ro",))

        status, output = run_cli(["-u", mount_point], system)

        assert status == 0
        assert "Successfully unmounted" in output
        assert "Cleaned up loop device: /dev/loop0" in output

    def test_unmount_defaults_to_configured_mount_point(self, tmp_path, system, as_root):
        config = tmp_path / "custom.json"
        config.write_text(json.dumps({"mount_point": str(tmp_path / "auto")}))
        system.mounts[str(tmp_path / "auto")] = MountEntry("tmpfs", "tmpfs", ())

        status, _ = run_cli(["--config", config, "-u"], system)

        assert status == 0
        assert system.calls_to("umount") == [("umount", str(tmp_path / "auto"))]

    def test_list_loop_devices(self, tmp_path, system, as_user):
        system.attach(str(make_image(tmp_path, "a.hdf", 4096)), offset=512)

        status, output = run_cli(["-l"], system)

        assert status == 0
        assert "/dev/loop0" in output
        assert "Next free loop device: /dev/loop1" in output

    def test_ramdisk(self, system, mount_point, as_root):
        status, output = run_cli(["-r", "512M", "-m", mount_point], system)

        assert status == 0
        assert system.mounts[str(mount_point)].fs_type == "tmpfs"
        assert "Ramdisk of 512M created" in output

    def test_ramdisk_invalid_size(self, system, mount_point, as_root):
        status, output = run_cli(["-r", "huge", "-m", mount_point], system)

        assert status == 1
        assert "Invalid ramdisk size" in output

    def test_missing_config_file(self, tmp_path, system):
        status, output = run_cli(["--config", tmp_path / "none.json", "-l"], system)

        assert status == 1
        assert "Settings file not found" in output

    @pytest.mark.parametrize("argv", [["--bogus"], ["-u", "-l"], ["-c", "-i"]])
    def test_usage_errors_exit_1(self, system, argv):
        with pytest.raises(SystemExit) as exc_info:
            main(argv, system=system, console=Console(record=True))

        assert exc_info.value.code == 1

    def test_help_exits_0(self, system, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["-h"], system=system)

        assert exc_info.value.code == 0
        assert "supported formats" in capsys.readouterr().out
