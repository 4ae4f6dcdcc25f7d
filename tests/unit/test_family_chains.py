"""
Unit tests for the Apple II, Atari, TRS-80, Commodore and container chains.
"""

import pytest

from multimount.imaging.format_registry import family_of
from multimount.imaging.image_formats import (
    DetectionMethod,
    Family,
    FormatClassification,
    ImageFile,
    Variant,
)
from multimount.mounting.dispatcher import MountDispatcher
from multimount.mounting.techniques import FailureKind, OutcomeKind
from tests.fixtures import FakeSystem, make_image, make_settings, write_output_file

C1541_LISTING = '0 "GAMES DISK      " 01 2a\n12   "ELITE"            prg\n652 blocks free.\n'


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


def dispatch(system, settings, path, classification=None):
    return MountDispatcher(settings, system).dispatch(ImageFile.open(path), classification)


def forced(variant):
    return FormatClassification(family_of(variant), variant, DetectionMethod.CONTENT_SIGNATURE)


class TestAppleChain:
    """Test the FAT loop mount and the AppleCommander catalog fallback."""

    def test_dsk_fat_loop_mount(self, tmp_path, settings):
        dsk = make_image(tmp_path, "prodos.dsk", 143_360)
        system = FakeSystem(tmp_path)

        result = dispatch(system, settings, dsk)

        assert result.kind is OutcomeKind.MOUNTED
        assert system.calls_to("mount")[0][1:5] == ("-t", "msdos", "-o", "loop,ro")

    def test_dsk_catalog_when_mount_fails(self, tmp_path, settings):
        dsk = make_image(tmp_path, "dos33.dsk", 143_360)
        system = FakeSystem(tmp_path).install("ac")
        system.fail_mount("msdos")
        system.respond("ac", stdout="DISK VOLUME 254\n A 002 HELLO\n")

        result = dispatch(system, settings, dsk)

        assert result.kind is OutcomeKind.EXTRACTED
        assert result.technique_used == "applecommander"
        assert result.failures[0].kind is FailureKind.MOUNT_CALL_FAILED
        catalog = settings.mount_point / "catalog.txt"
        assert "HELLO" in catalog.read_text()

    def test_2mg_without_applecommander(self, tmp_path, settings):
        image = make_image(tmp_path, "disk.2mg", 800_064, b"2IMG")
        system = FakeSystem(tmp_path)

        result = dispatch(system, settings, image)

        assert result.kind is OutcomeKind.FAILED
        assert [(f.technique, f.tool) for f in result.failures] == [("applecommander", "ac")]
        assert system.calls_to("mount") == []


class TestAtariChains:

    def test_st_msdos_mount(self, tmp_path, settings):
        st = make_image(tmp_path, "demo.st", 737_280)
        system = FakeSystem(tmp_path)

        result = dispatch(system, settings, st)

        assert result.technique_used == "msdos-loop"
        assert system.calls_to("mount")[0][1:5] == ("-t", "msdos", "-o", "loop,ro")

    def test_msa_expanded_then_mounted_as_st(self, tmp_path, settings):
        msa = make_image(tmp_path, "demo.msa", 400_000, b"\x0e\x0f\x00\x09")
        system = FakeSystem(tmp_path).install("msa")
        system.respond("msa", effect=write_output_file(737_280))

        result = dispatch(system, settings, msa)

        assert result.kind is OutcomeKind.MOUNTED
        assert result.technique_used == "msa -> msdos-loop"
        msa_call = system.calls_to("msa")[0]
        assert msa_call[:3] == ("msa", "-d", str(msa))
        assert msa_call[3].endswith(".st")
        assert list(settings.temp_dir.iterdir()) == []

    def test_atr_read_only_loop(self, tmp_path, settings):
        atr = make_image(tmp_path, "game.atr", 92_176, b"\x96\x02")
        system = FakeSystem(tmp_path)

        result = dispatch(system, settings, atr, forced(Variant.ATR))

        assert system.calls_to("mount") == [
            ("mount", "-o", "loop,ro", str(atr), str(settings.mount_point))
        ]
        assert result.kind is OutcomeKind.MOUNTED


class TestTrs80Chain:

    def test_extracts_files(self, tmp_path, settings):
        jv1 = make_image(tmp_path, "ldos.jv1", 89_600)
        system = FakeSystem(tmp_path).install("trsread")

        result = dispatch(system, settings, jv1)

        assert result.technique_used == "trsread-extract"
        assert system.calls_to("trsread") == [
            ("trsread", "-e", str(jv1), str(settings.mount_point))
        ]

    def test_listing_when_extraction_fails(self, tmp_path, settings):
        jv1 = make_image(tmp_path, "ldos.jv1", 89_600)
        system = FakeSystem(tmp_path).install("trsread")
        system.respond("trsread", returncode=1, when=lambda argv: argv[1] == "-e")
        system.respond("trsread", stdout="BASIC/CMD\nDIR/SYS\n", when=lambda argv: argv[1] == "-v")

        result = dispatch(system, settings, jv1)

        assert result.technique_used == "trsread-list"
        assert (settings.mount_point / "directory.txt").read_text() == "BASIC/CMD\nDIR/SYS\n"


class TestCommodoreChains:
    """Test c1541 listing, extraction and the program/tape chains."""

    @staticmethod
    def extract_into_cwd(*names):
        def effect(argv, cwd):
            for name in names:
                (cwd / name).write_bytes(b"\x01\x08")
        return effect

    def script_c1541(self, system, extract_effect=None, extract_returncode=0):
        system.install("c1541")
        system.respond("c1541", stdout=C1541_LISTING, when=lambda argv: "-list" in argv)
        system.respond("c1541", returncode=extract_returncode, effect=extract_effect,
                       stderr="c1541: cannot read disk" if extract_returncode else "",
                       when=lambda argv: "-extract" in argv)

    def test_d64_listing_and_extraction(self, tmp_path, settings):
        d64 = make_image(tmp_path, "games.d64", 174_848)
        system = FakeSystem(tmp_path)
        self.script_c1541(system, self.extract_into_cwd("elite.prg", "notes.SEQ", "readme.txt"))

        result = dispatch(system, settings, d64)

        assert result.kind is OutcomeKind.EXTRACTED
        target = settings.mount_point
        assert (target / "directory.txt").read_text() == C1541_LISTING
        assert sorted(p.name for p in target.iterdir()) == [
            "directory.txt", "elite.prg", "notes.SEQ"]
        assert "2 file(s) extracted" in result.detail

        extract_index = next(i for i, argv in enumerate(system.calls) if "-extract" in argv)
        staging = system.cwds[extract_index]
        assert staging != target
        assert staging.parent == settings.temp_dir
        assert not staging.exists()

    def test_failed_extraction_keeps_listing(self, tmp_path, settings):
        d64 = make_image(tmp_path, "damaged.d64", 174_848)
        system = FakeSystem(tmp_path)
        self.script_c1541(system, extract_returncode=1)

        result = dispatch(system, settings, d64)

        assert result.kind is OutcomeKind.EXTRACTED
        assert "extraction failed" in result.detail
        assert (settings.mount_point / "directory.txt").exists()

    def test_unusable_staging_directory(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("regular file")
        settings = make_settings(tmp_path, temp_dir=blocker / "tmp")
        d64 = make_image(tmp_path, "games.d64", 174_848)
        system = FakeSystem(tmp_path)
        self.script_c1541(system)

        result = dispatch(system, settings, d64)

        assert result.kind is OutcomeKind.FAILED
        assert result.failures[0].kind is FailureKind.PRECONDITION_NOT_MET
        assert "staging directory" in result.failures[0].detail
        assert not any("-extract" in argv for argv in system.calls)

    def test_failed_listing_fails_chain(self, tmp_path, settings):
        d64 = make_image(tmp_path, "bad.d64", 174_848)
        system = FakeSystem(tmp_path).install("c1541")
        system.respond("c1541", returncode=1, stderr="c1541: unknown image")

        result = dispatch(system, settings, d64)

        assert result.kind is OutcomeKind.FAILED
        assert result.failures[0].stderr == "c1541: unknown image"

    def test_tape_is_listed_only(self, tmp_path, settings):
        t64 = make_image(tmp_path, "tape.t64", 20_000, b"C64 tape image file")
        system = FakeSystem(tmp_path)
        self.script_c1541(system)

        result = dispatch(system, settings, t64, forced(Variant.T64))

        assert result.technique_used == "c1541-list"
        assert not any("-extract" in argv for argv in system.calls)

    def test_program_file_copied(self, tmp_path, settings):
        prg = make_image(tmp_path, "elite.prg", 3000, b"\x01\x08")
        system = FakeSystem(tmp_path)

        result = dispatch(system, settings, prg, forced(Variant.PRG))

        copied = settings.mount_point / "elite.prg"
        assert result.kind is OutcomeKind.EXTRACTED
        assert copied.read_bytes() == prg.read_bytes()


class TestContainerChains:

    def test_squashfs_falls_back_to_auto(self, tmp_path, settings):
        image = make_image(tmp_path, "root.sqfs", 8192, b"hsqs")
        system = FakeSystem(tmp_path)
        system.fail_mount("squashfs")

        result = dispatch(system, settings, image, forced(Variant.SQUASHFS))

        assert result.technique_used == "auto-loop"
        assert [argv[1:3] for argv in system.calls_to("mount")] == [
            ("-t", "squashfs"), ("-o", "loop")]

    def test_iso_read_only(self, tmp_path, settings):
        image = make_image(tmp_path, "cd.iso", 8192)
        system = FakeSystem(tmp_path)

        result = dispatch(system, settings, image, forced(Variant.ISO9660))

        assert result.technique_used == "iso9660-loop"
        assert system.mounts[str(settings.mount_point)].options == ("loop", "ro")

    def test_unknown_image_gets_generic_loop_mount(self, tmp_path, settings):
        image = make_image(tmp_path, "mystery.bin", 1234)
        system = FakeSystem(tmp_path)

        result = dispatch(system, settings, image, FormatClassification.unknown())

        assert result.technique_used == "loop"
        assert system.calls_to("mount") == [
            ("mount", "-o", "loop", str(image), str(settings.mount_point))
        ]

    def test_forced_kernel_type(self, tmp_path):
        settings = make_settings(tmp_path, forced_type="vfat")
        image = make_image(tmp_path, "stick.img", 1234)
        system = FakeSystem(tmp_path)

        result = dispatch(system, settings, image)

        assert result.classification.detection_method is DetectionMethod.FORCED
        assert result.classification.family is Family.UNKNOWN
        assert system.calls_to("mount")[0][1:3] == ("-t", "vfat")
