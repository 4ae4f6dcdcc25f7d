"""
Unit tests for the technique chain runner.
"""

import pytest

from multimount.core.errors import (
    AllTechniquesExhausted,
    PreconditionNotMet,
    ToolExecutionFailed,
)
from multimount.imaging.image_formats import (
    DetectionMethod,
    Family,
    FormatClassification,
    ImageFile,
    Variant,
)
from multimount.mounting.techniques import (
    FailureKind,
    MountContext,
    MountTechnique,
    OutcomeKind,
    loop_mount,
    mounted,
    require_kernel_filesystem,
    run_chain,
)
from tests.fixtures import FakeSystem, make_image, make_settings


@pytest.fixture
def system(tmp_path):
    return FakeSystem(tmp_path)


@pytest.fixture
def ctx(tmp_path, system):
    image = ImageFile.open(make_image(tmp_path, "disk.img", 4096))
    classification = FormatClassification(Family.GENERIC, Variant.EXT,
                                          DetectionMethod.FORCED)
    target = tmp_path / "mnt"
    target.mkdir()
    return MountContext(image, classification, target, make_settings(tmp_path),
                        system, dispatcher=None)


def succeed(ctx):
    return mounted(ctx, "ok")


def fail_with_tool(ctx):
    raise ToolExecutionFailed(("tool", "arg"), 2, "bad input\nreally bad")


def unmet(ctx):
    raise PreconditionNotMet("not today")


class TestRunChain:
    """Test ordering, stopping and failure recording."""

    def test_stops_at_first_success(self, ctx):
        calls = []

        def record(name):
            def action(c):
                calls.append(name)
                return mounted(c)
            return action

        chain = (
            MountTechnique("first", 1, OutcomeKind.MOUNTED, record("first")),
            MountTechnique("second", 2, OutcomeKind.MOUNTED, record("second")),
        )

        result = run_chain(chain, ctx)

        assert result.kind is OutcomeKind.MOUNTED
        assert result.technique_used == "first"
        assert calls == ["first"]
        assert result.failures == ()

    def test_priority_order_not_tuple_order(self, ctx):
        chain = (
            MountTechnique("late", 5, OutcomeKind.MOUNTED, succeed),
            MountTechnique("early", 1, OutcomeKind.MOUNTED, fail_with_tool),
        )

        result = run_chain(chain, ctx)

        assert result.technique_used == "late"
        assert [f.technique for f in result.failures] == ["early"]

    def test_missing_tool_skips_action(self, ctx):
        called = []
        chain = (
            MountTechnique("needs-xdms", 1, OutcomeKind.MOUNTED,
                           lambda c: called.append(1), requires=("xdms",)),
            MountTechnique("fallback", 2, OutcomeKind.MOUNTED, succeed),
        )

        result = run_chain(chain, ctx)

        assert called == []
        failure = result.failures[0]
        assert failure.kind is FailureKind.TOOL_MISSING
        assert failure.tool == "xdms"

    def test_failure_details_are_kept(self, ctx):
        chain = (MountTechnique("broken", 1, OutcomeKind.EXTRACTED, fail_with_tool),)

        result = run_chain(chain, ctx)

        failure = result.failures[0]
        assert failure.kind is FailureKind.TOOL_EXECUTION_FAILED
        assert failure.command == ("tool", "arg")
        assert failure.returncode == 2
        assert failure.stderr == "bad input\nreally bad"
        assert "really bad" in failure.detail

    def test_all_failed(self, ctx):
        chain = (
            MountTechnique("a", 1, OutcomeKind.MOUNTED, fail_with_tool),
            MountTechnique("b", 2, OutcomeKind.MOUNTED, succeed, precondition=unmet),
            MountTechnique("c", 3, OutcomeKind.MOUNTED, succeed, requires=("c1541",)),
        )

        result = run_chain(chain, ctx)

        assert result.kind is OutcomeKind.FAILED
        assert not result.ok
        assert result.location is None
        assert [f.kind for f in result.failures] == [
            FailureKind.TOOL_EXECUTION_FAILED,
            FailureKind.PRECONDITION_NOT_MET,
            FailureKind.TOOL_MISSING,
        ]
        with pytest.raises(AllTechniquesExhausted) as exc_info:
            result.raise_for_failure()
        assert exc_info.value.result is result

    def test_findings_reported(self, ctx):
        def analyse(c):
            c.findings["partition_name"] = "DH0"
            raise PreconditionNotMet("no luck")

        result = run_chain((MountTechnique("x", 1, OutcomeKind.MOUNTED, analyse),), ctx)

        assert result.finding("partition_name") == "DH0"


class TestSharedTechniques:

    def test_loop_mount_fixed_type(self, ctx, system):
        result = run_chain((loop_mount("iso", 1, "iso9660", ("loop", "ro")),), ctx)

        assert result.kind is OutcomeKind.MOUNTED
        assert system.calls_to("mount") == [
            ("mount", "-t", "iso9660", "-o", "loop,ro", str(ctx.image.path), str(ctx.target))
        ]

    def test_loop_mount_uses_forced_kernel_type(self, ctx, system):
        ctx.fs_type = "vfat"

        run_chain((loop_mount("loop", 1),), ctx)

        assert system.calls_to("mount")[0][1:3] == ("-t", "vfat")

    def test_loop_mount_failure_is_mount_call_failed(self, ctx, system):
        system.fail_mount()

        result = run_chain((loop_mount("loop", 1),), ctx)

        failure = result.failures[0]
        assert failure.kind is FailureKind.MOUNT_CALL_FAILED
        assert failure.returncode == 32
        assert "bad superblock" in failure.stderr

    def test_kernel_filesystem_precondition(self, ctx):
        require_kernel_filesystem("msdos")(ctx)

        with pytest.raises(PreconditionNotMet, match="AFFS"):
            require_kernel_filesystem("affs", "sudo modprobe affs")(ctx)
