"""
Unit tests for resource context managers and logging setup.
"""

import logging

import pytest

from multimount.utils.context_managers import (
    LoopDeviceContext,
    TemporaryImage,
    intermediate_path,
)
from multimount.utils.logging import setup_logging
from tests.fixtures import FakeSystem, make_image


class TestTemporaryImage:

    def test_name_derived_from_source(self, tmp_path):
        first = intermediate_path(tmp_path / "a" / "game.dms", tmp_path / "tmp", ".adf")
        second = intermediate_path(tmp_path / "b" / "game.dms", tmp_path / "tmp", ".adf")

        assert first.name.startswith("multimount-game-")
        assert first.suffix == ".adf"
        assert first != second
        assert first == intermediate_path(tmp_path / "a" / "game.dms", tmp_path / "tmp", ".adf")

    def test_removed_after_error(self, tmp_path):
        with pytest.raises(RuntimeError):
            with TemporaryImage(tmp_path / "game.dms", tmp_path / "tmp", ".adf") as path:
                path.write_bytes(b"DOS\x00")
                raise RuntimeError("inner dispatch exploded")

        assert not path.exists()

    def test_missing_file_is_fine(self, tmp_path):
        with TemporaryImage(tmp_path / "game.dms", tmp_path / "tmp", ".adf") as path:
            assert path.parent.is_dir()

        assert not path.exists()


class TestLoopDeviceContext:

    def test_detached_on_error(self, tmp_path):
        system = FakeSystem(tmp_path)
        image = make_image(tmp_path, "disk.hdf", 4096)

        with pytest.raises(ValueError):
            with LoopDeviceContext(system, image) as device:
                assert system.attached_devices() == [device]
                raise ValueError("probe failed")

        assert system.attached_devices() == []

    def test_detach_failure_is_logged_not_raised(self, tmp_path, caplog):
        system = FakeSystem(tmp_path)
        system.respond("losetup", returncode=1, stderr="losetup: device busy",
                       when=lambda argv: "-d" in argv)

        with LoopDeviceContext(system, make_image(tmp_path, "disk.hdf", 4096)):
            pass

        assert "Failed to detach loop device /dev/loop0" in caplog.text


class TestSetupLogging:

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_log_file_receives_debug(self, tmp_path):
        log_file = tmp_path / "logs" / "multimount.log"

        setup_logging(verbose=False, log_file=log_file)
        logging.getLogger("multimount.test").debug("dispatching disk.adf")
        for handler in logging.getLogger().handlers:
            handler.flush()

        text = log_file.read_text()
        assert "MultiMount - System Information" in text
        assert "dispatching disk.adf" in text

    def test_console_level(self):
        setup_logging(verbose=True)

        levels = [handler.level for handler in logging.getLogger().handlers]
        assert levels == [logging.DEBUG]
