"""Unit tests for MountOperator."""

from pathlib import Path
from unittest.mock import patch

import pytest
from cryptctl.core.errors import ExternalToolError, PreconditionError
from cryptctl.operators.mount import MountOperator, grow_command
from cryptctl.utils.shell import CommandResult

OK = CommandResult(stdout="", stderr="", returncode=0)
BUSY = CommandResult(stdout="", stderr="target is busy", returncode=32)


class TestMountOperator:
    """Tests for MountOperator class."""

    @pytest.fixture
    def mounts(self) -> MountOperator:
        return MountOperator()

    def test_mount_creates_directory(self, mounts: MountOperator, tmp_path: Path) -> None:
        target = tmp_path / "mnt" / "x"
        with patch("cryptctl.operators.base.run_command", return_value=OK) as mock_run:
            mounts.mount("/dev/mapper/c", str(target))

        assert target.is_dir()
        assert mock_run.call_args.args[0] == ["mount", "/dev/mapper/c", str(target)]

    def test_mount_options_and_readonly(self, mounts: MountOperator, tmp_path: Path) -> None:
        with patch("cryptctl.operators.base.run_command", return_value=OK) as mock_run:
            mounts.mount("/dev/mapper/c", str(tmp_path), readonly=True, options=["noatime"])

        assert mock_run.call_args.args[0] == ["mount", "-o", "noatime,ro", "/dev/mapper/c", str(tmp_path)]

    def test_unmount_without_force_fails_once(self, mounts: MountOperator) -> None:
        with patch("cryptctl.operators.base.run_command", return_value=BUSY) as mock_run:
            with pytest.raises(ExternalToolError, match="busy"):
                mounts.unmount("/mnt/x")

        assert mock_run.call_count == 1

    def test_forced_unmount_falls_back(self, mounts: MountOperator) -> None:
        """Force retries with -f and then lazily with -l."""
        with patch("cryptctl.operators.base.run_command", side_effect=[BUSY, BUSY, OK]) as mock_run:
            mounts.unmount("/mnt/x", force=True)

        assert [c.args[0] for c in mock_run.call_args_list] == [
            ["umount", "/mnt/x"],
            ["umount", "-f", "/mnt/x"],
            ["umount", "-l", "/mnt/x"],
        ]

    def test_forced_unmount_raises_last_failure(self, mounts: MountOperator) -> None:
        lazy_failure = CommandResult(stdout="", stderr="lazy umount failed", returncode=32)
        with patch("cryptctl.operators.base.run_command", side_effect=[BUSY, BUSY, lazy_failure]) as mock_run:
            with pytest.raises(ExternalToolError, match="lazy umount failed"):
                mounts.unmount("/mnt/x", force=True)

        assert mock_run.call_count == 3

    @pytest.mark.parametrize(
        ("filesystem", "expected"),
        [
            ("ext4", ["mkfs.ext4", "-q", "-L", "encrypted", "/dev/mapper/c"]),
            ("xfs", ["mkfs.xfs", "-L", "encrypted", "/dev/mapper/c"]),
            ("btrfs", ["mkfs.btrfs", "-L", "encrypted", "/dev/mapper/c"]),
        ],
    )
    def test_make_filesystem(self, mounts: MountOperator, filesystem: str, expected: list[str]) -> None:
        with patch("cryptctl.operators.base.run_command", return_value=OK) as mock_run:
            mounts.make_filesystem("/dev/mapper/c", filesystem)

        assert mock_run.call_args.args[0] == expected

    def test_make_filesystem_unsupported(self, mounts: MountOperator) -> None:
        with pytest.raises(PreconditionError, match="Unsupported filesystem"):
            mounts.make_filesystem("/dev/mapper/c", "ntfs")

    def test_resize_filesystem_runs_grow_command(self, mounts: MountOperator) -> None:
        with patch("cryptctl.operators.base.run_command", return_value=OK) as mock_run:
            mounts.resize_filesystem("/dev/mapper/c", "xfs", "/mnt/x")

        assert mock_run.call_args.args[0] == ["xfs_growfs", "/mnt/x"]


class TestGrowCommand:
    """Tests for grow_command."""

    def test_ext4_uses_device(self) -> None:
        assert grow_command("/dev/mapper/c", "ext4", "/mnt/x") == ["resize2fs", "/dev/mapper/c"]

    def test_btrfs_uses_mount_point(self) -> None:
        assert grow_command("/dev/mapper/c", "btrfs", "/mnt/x") == ["btrfs", "filesystem", "resize", "max", "/mnt/x"]

    def test_unknown(self) -> None:
        with pytest.raises(PreconditionError):
            grow_command("/dev/mapper/c", "", "/mnt/x")
