"""Unit tests for the Operator base class."""

from unittest.mock import patch

import pytest
from cryptctl.core.errors import ExternalToolError
from cryptctl.operators.base import Operator
from cryptctl.utils.shell import CommandResult


class DummyOperator(Operator):
    """Minimal concrete operator."""

    required_commands = ("tool",)

    def poke(self) -> CommandResult:
        return self._run(["tool", "poke"], "poke the tool")


class TestOperatorBase:
    """Tests for Operator."""

    def test_is_available(self) -> None:
        with patch("cryptctl.operators.base.command_exists", return_value=False):
            assert DummyOperator().is_available() is False

    def test_run_success(self) -> None:
        with patch("cryptctl.operators.base.run_command") as mock_run:
            mock_run.return_value = CommandResult(stdout="done", stderr="", returncode=0)
            assert DummyOperator().poke().stdout == "done"

    def test_run_failure_message(self) -> None:
        with patch("cryptctl.operators.base.run_command") as mock_run:
            mock_run.return_value = CommandResult(stdout="", stderr="bad things", returncode=3)

            with pytest.raises(ExternalToolError) as exc_info:
                DummyOperator().poke()

        error = exc_info.value
        assert str(error) == "Failed to poke the tool: tool exited with status 3\nbad things"
        assert (error.command, error.returncode, error.stderr) == ("tool", 3, "bad things")

    def test_run_missing_program(self) -> None:
        with (
            patch("cryptctl.operators.base.run_command", side_effect=FileNotFoundError("tool")),
            pytest.raises(ExternalToolError) as exc_info,
        ):
            DummyOperator().poke()

        assert exc_info.value.returncode == -1
