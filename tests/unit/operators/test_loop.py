"""Unit tests for LoopOperator."""

from unittest.mock import patch

import pytest
from cryptctl.core.errors import ExternalToolError
from cryptctl.operators.loop import LoopOperator
from cryptctl.utils.shell import CommandResult


class TestLoopOperator:
    """Tests for LoopOperator class."""

    @pytest.fixture
    def loops(self) -> LoopOperator:
        return LoopOperator()

    def test_attach_returns_device(self, loops: LoopOperator) -> None:
        with patch("cryptctl.operators.base.run_command") as mock_run:
            mock_run.return_value = CommandResult(stdout="/dev/loop3\n", stderr="", returncode=0)

            assert loops.attach("/srv/c.img") == "/dev/loop3"

        assert mock_run.call_args.args[0] == ["losetup", "-f", "--show", "/srv/c.img"]

    def test_attach_failure(self, loops: LoopOperator) -> None:
        with patch("cryptctl.operators.base.run_command") as mock_run:
            mock_run.return_value = CommandResult(stdout="", stderr="could not find any free loop device", returncode=1)

            with pytest.raises(ExternalToolError, match="free loop device"):
                loops.attach("/srv/c.img")

    def test_detach_and_refresh(self, loops: LoopOperator) -> None:
        with patch("cryptctl.operators.base.run_command") as mock_run:
            mock_run.return_value = CommandResult(stdout="", stderr="", returncode=0)
            loops.detach("/dev/loop3")
            loops.refresh_size("/dev/loop3")

        assert [c.args[0] for c in mock_run.call_args_list] == [
            ["losetup", "-d", "/dev/loop3"],
            ["losetup", "-c", "/dev/loop3"],
        ]

    def test_timeout_is_forwarded(self) -> None:
        with patch("cryptctl.operators.base.run_command") as mock_run:
            mock_run.return_value = CommandResult(stdout="", stderr="", returncode=0)
            LoopOperator(timeout=5.0).detach("/dev/loop1")

        assert mock_run.call_args.kwargs["timeout"] == 5.0
