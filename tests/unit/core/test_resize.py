"""Unit tests for the resize orchestrator.

Container files are real sparse files under tmp_path; the discovery
engine and operators are mocks.
"""

import os
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from cryptctl.core.errors import (
    AuthenticationError,
    ContainerNotFoundError,
    ExternalToolError,
    PartialMutationError,
    PreconditionError,
)
from cryptctl.core.resize import ResizeError, ResizeOrchestrator
from cryptctl.core.secret import SecretBuffer
from cryptctl.models.auth import KeyfileAuth, PasswordAuth
from cryptctl.models.container import Container

MIB = 1024**2


@pytest.fixture
def container_file(tmp_path: Path) -> Path:
    """A 100 MiB sparse container file."""
    path = tmp_path / "c.img"
    with open(path, "wb") as f:
        f.truncate(100 * MIB)
    return path


@pytest.fixture
def active(container_file: Path) -> Container:
    """The container as discovery reports it while mounted."""
    return Container(
        mapper_name="c_img",
        path=str(container_file.resolve()),
        mount_point="/mnt/x",
        loop_device="/dev/loop7",
        filesystem="ext4",
        size=100 * MIB,
        used=20 * MIB,
    )


@pytest.fixture
def discovery(active: Container) -> MagicMock:
    mock = MagicMock()
    mock.find_by_path.return_value = active
    return mock


@pytest.fixture
def mounts() -> MagicMock:
    mock = MagicMock()
    mock.usage.side_effect = [(100 * MIB, 20 * MIB), (200 * MIB, 20 * MIB)]
    return mock


@pytest.fixture
def orchestrator(discovery: MagicMock, mounts: MagicMock) -> ResizeOrchestrator:
    return ResizeOrchestrator(discovery, MagicMock(), MagicMock(), mounts)


@pytest.fixture(autouse=True)
def _tools_installed() -> Iterator[MagicMock]:
    with patch("cryptctl.core.resize.command_exists", return_value=True) as mock_exists:
        yield mock_exists


@pytest.fixture(autouse=True)
def _plenty_of_space() -> Iterator[None]:
    with patch("cryptctl.core.resize.available_space", return_value=1024**4):
        yield


@pytest.fixture
def auth() -> KeyfileAuth:
    return KeyfileAuth("/root/c.key")


class TestPlan:
    """Tests for ResizeOrchestrator.plan."""

    def test_valid_plan(self, orchestrator: ResizeOrchestrator, container_file: Path, active: Container) -> None:
        with orchestrator.plan(str(container_file), 200 * MIB) as plan:
            assert plan.container == active
            assert plan.current_size == 100 * MIB
            assert plan.expansion == 100 * MIB
            assert (plan.fs_size, plan.fs_used) == (100 * MIB, 20 * MIB)
            assert plan.fd >= 0

        assert plan.fd == -1

    def test_missing_file(self, orchestrator: ResizeOrchestrator, tmp_path: Path) -> None:
        with pytest.raises(ContainerNotFoundError):
            orchestrator.plan(str(tmp_path / "absent.img"), 200 * MIB)

    def test_directory_rejected(self, orchestrator: ResizeOrchestrator, tmp_path: Path) -> None:
        """Directories cannot even be opened for writing."""
        with pytest.raises(PreconditionError):
            orchestrator.plan(str(tmp_path), 200 * MIB)

    def test_not_active(self, orchestrator: ResizeOrchestrator, discovery: MagicMock, container_file: Path) -> None:
        discovery.find_by_path.return_value = None

        with pytest.raises(PreconditionError, match="must be mounted"):
            orchestrator.plan(str(container_file), 200 * MIB)

    def test_open_but_unmounted(
        self,
        orchestrator: ResizeOrchestrator,
        discovery: MagicMock,
        active: Container,
        container_file: Path,
    ) -> None:
        discovery.find_by_path.return_value = Container(mapper_name="c_img", path=active.path)

        with pytest.raises(PreconditionError, match="not mounted"):
            orchestrator.plan(str(container_file), 200 * MIB)

    def test_unsupported_filesystem(
        self,
        orchestrator: ResizeOrchestrator,
        discovery: MagicMock,
        active: Container,
        container_file: Path,
    ) -> None:
        discovery.find_by_path.return_value = Container(
            mapper_name="c_img", path=active.path, mount_point="/mnt/x", filesystem="vfat"
        )

        with pytest.raises(PreconditionError, match="does not support online resize"):
            orchestrator.plan(str(container_file), 200 * MIB)

    def test_missing_grow_tool(
        self,
        orchestrator: ResizeOrchestrator,
        container_file: Path,
        _tools_installed: MagicMock,
    ) -> None:
        _tools_installed.side_effect = lambda name: name != "resize2fs"

        with pytest.raises(PreconditionError, match="install e2fsprogs"):
            orchestrator.plan(str(container_file), 200 * MIB)

    @pytest.mark.parametrize("new_size", [100 * MIB, 50 * MIB])
    def test_size_must_grow(
        self,
        orchestrator: ResizeOrchestrator,
        container_file: Path,
        mounts: MagicMock,
        new_size: int,
    ) -> None:
        """Equal or smaller sizes are rejected and the file is untouched."""
        with (
            patch("cryptctl.utils.shell.subprocess.run") as mock_run,
            pytest.raises(PreconditionError, match="must be larger"),
        ):
            orchestrator.plan(str(container_file), new_size)

        assert os.path.getsize(container_file) == 100 * MIB
        mock_run.assert_not_called()
        mounts.usage.assert_not_called()

    def test_insufficient_space(self, orchestrator: ResizeOrchestrator, container_file: Path) -> None:
        with (
            patch("cryptctl.core.resize.available_space", return_value=10 * MIB),
            pytest.raises(PreconditionError, match="Insufficient disk space"),
        ):
            orchestrator.plan(str(container_file), 200 * MIB)

    def test_space_query_failure_does_not_block(self, orchestrator: ResizeOrchestrator, container_file: Path) -> None:
        with patch("cryptctl.core.resize.available_space", side_effect=OSError("statvfs")):
            plan = orchestrator.plan(str(container_file), 200 * MIB)
        plan.close()

    def test_failed_check_closes_descriptor(
        self,
        orchestrator: ResizeOrchestrator,
        discovery: MagicMock,
        container_file: Path,
    ) -> None:
        discovery.find_by_path.return_value = None

        with patch("cryptctl.core.resize.os.close", wraps=os.close) as mock_close, pytest.raises(PreconditionError):
            orchestrator.plan(str(container_file), 200 * MIB)

        mock_close.assert_called_once()


class TestExecute:
    """Tests for ResizeOrchestrator.execute."""

    def test_grows_file_to_exact_size(
        self,
        orchestrator: ResizeOrchestrator,
        container_file: Path,
        auth: KeyfileAuth,
    ) -> None:
        """100 MiB -> 200 MiB: exact final length and all four steps in order."""
        with orchestrator.plan(str(container_file), 200 * MIB) as plan:
            result = orchestrator.execute(plan, auth)

        assert os.path.getsize(container_file) == 209715200
        assert result.file_size == 209715200
        assert result.fs_size_before == 100 * MIB
        assert result.fs_size_after == 200 * MIB
        assert result.grew is True
        assert result.loop_refreshed is True

        orchestrator._loops.refresh_size.assert_called_once_with("/dev/loop7")
        orchestrator._luks.resize.assert_called_once_with("c_img", auth)
        orchestrator._mounts.resize_filesystem.assert_called_once_with("/dev/mapper/c_img", "ext4", "/mnt/x")

    def test_truncate_goes_through_held_descriptor(
        self,
        orchestrator: ResizeOrchestrator,
        container_file: Path,
        auth: KeyfileAuth,
    ) -> None:
        """Swapping the path after planning does not redirect the write."""
        with orchestrator.plan(str(container_file), 200 * MIB) as plan:
            moved = container_file.with_name("moved.img")
            container_file.rename(moved)
            container_file.write_bytes(b"decoy")
            orchestrator.execute(plan, auth)

        assert os.path.getsize(moved) == 200 * MIB
        assert container_file.read_bytes() == b"decoy"

    def test_loop_refresh_failure_is_not_fatal(
        self,
        orchestrator: ResizeOrchestrator,
        container_file: Path,
        auth: KeyfileAuth,
    ) -> None:
        orchestrator._loops.refresh_size.side_effect = ExternalToolError("losetup -c failed")

        with orchestrator.plan(str(container_file), 200 * MIB) as plan:
            result = orchestrator.execute(plan, auth)

        assert result.loop_refreshed is False
        orchestrator._luks.resize.assert_called_once()

    def test_luks_failure_is_partial_mutation(
        self,
        orchestrator: ResizeOrchestrator,
        container_file: Path,
    ) -> None:
        """A wrong passphrase after the file grew tells the user how to finish."""
        orchestrator._luks.resize.side_effect = AuthenticationError("incorrect passphrase or keyfile")
        with (
            SecretBuffer.from_str("wrong") as secret,
            orchestrator.plan(str(container_file), 200 * MIB) as plan,
            pytest.raises(PartialMutationError) as exc_info,
        ):
            orchestrator.execute(plan, PasswordAuth(secret))

        error = exc_info.value
        assert os.path.getsize(container_file) == 200 * MIB
        assert "container file extended" in error.committed
        assert error.remedy.splitlines() == [
            "  sudo cryptsetup resize c_img",
            "  sudo resize2fs /dev/mapper/c_img",
        ]
        assert "LUKS has not" in str(error)
        orchestrator._mounts.resize_filesystem.assert_not_called()

    def test_luks_remedy_resumes_after_grown_file(
        self,
        orchestrator: ResizeOrchestrator,
        mounts: MagicMock,
        container_file: Path,
        auth: KeyfileAuth,
    ) -> None:
        """Re-running the whole resize is refused once the file grew, so the remedy skips it."""
        orchestrator._luks.resize.side_effect = ExternalToolError("resize failed", command="cryptsetup")

        with (
            orchestrator.plan(str(container_file), 200 * MIB) as plan,
            pytest.raises(PartialMutationError) as exc_info,
        ):
            orchestrator.execute(plan, auth)

        remedy = exc_info.value.remedy
        assert "cryptctl resize" not in remedy
        assert remedy.splitlines() == [
            "  sudo cryptsetup resize c_img --key-file /root/c.key",
            "  sudo resize2fs /dev/mapper/c_img",
        ]

        mounts.usage.side_effect = None
        mounts.usage.return_value = (100 * MIB, 20 * MIB)
        with pytest.raises(PreconditionError, match="must be larger than"):
            orchestrator.plan(str(container_file), 200 * MIB)

    def test_luks_remedy_includes_missed_loop_refresh(
        self,
        orchestrator: ResizeOrchestrator,
        container_file: Path,
        auth: KeyfileAuth,
    ) -> None:
        orchestrator._loops.refresh_size.side_effect = ExternalToolError("losetup -c failed")
        orchestrator._luks.resize.side_effect = ExternalToolError("resize failed", command="cryptsetup")

        with (
            orchestrator.plan(str(container_file), 200 * MIB) as plan,
            pytest.raises(PartialMutationError) as exc_info,
        ):
            orchestrator.execute(plan, auth)

        assert exc_info.value.remedy.splitlines()[0] == "  sudo losetup -c /dev/loop7"
        assert exc_info.value.committed == ["container file extended"]

    @pytest.mark.parametrize(
        ("filesystem", "command"),
        [
            ("ext4", "sudo resize2fs /dev/mapper/c_img"),
            ("xfs", "sudo xfs_growfs /mnt/x"),
            ("btrfs", "sudo btrfs filesystem resize max /mnt/x"),
        ],
    )
    def test_filesystem_failure_names_grow_command(
        self,
        orchestrator: ResizeOrchestrator,
        discovery: MagicMock,
        active: Container,
        container_file: Path,
        auth: KeyfileAuth,
        filesystem: str,
        command: str,
    ) -> None:
        discovery.find_by_path.return_value = Container(
            mapper_name="c_img",
            path=active.path,
            mount_point="/mnt/x",
            loop_device="/dev/loop7",
            filesystem=filesystem,
        )
        orchestrator._mounts.resize_filesystem.side_effect = ExternalToolError("grow failed")

        with (
            orchestrator.plan(str(container_file), 200 * MIB) as plan,
            pytest.raises(PartialMutationError) as exc_info,
        ):
            orchestrator.execute(plan, auth)

        assert command in exc_info.value.remedy
        assert "LUKS mapping expanded" in exc_info.value.committed

    def test_truncate_failure_commits_nothing(
        self,
        orchestrator: ResizeOrchestrator,
        container_file: Path,
        auth: KeyfileAuth,
    ) -> None:
        with orchestrator.plan(str(container_file), 200 * MIB) as plan:
            with patch("cryptctl.core.resize.os.ftruncate", side_effect=OSError(28, "No space left on device")):
                with pytest.raises(ResizeError, match="Failed to expand container file"):
                    orchestrator.execute(plan, auth)

        orchestrator._luks.resize.assert_not_called()
        assert os.path.getsize(container_file) == 100 * MIB

    def test_verification_failure_only_warns(
        self,
        orchestrator: ResizeOrchestrator,
        mounts: MagicMock,
        container_file: Path,
        auth: KeyfileAuth,
    ) -> None:
        mounts.usage.side_effect = [(100 * MIB, 20 * MIB), ExternalToolError("df failed")]

        with orchestrator.plan(str(container_file), 200 * MIB) as plan:
            result = orchestrator.execute(plan, auth)

        assert result.fs_size_after == 0
        assert result.file_size == 200 * MIB

    def test_closed_plan_rejected(
        self,
        orchestrator: ResizeOrchestrator,
        container_file: Path,
        auth: KeyfileAuth,
    ) -> None:
        plan = orchestrator.plan(str(container_file), 200 * MIB)
        plan.close()

        with pytest.raises(ValueError, match="closed"):
            orchestrator.execute(plan, auth)
