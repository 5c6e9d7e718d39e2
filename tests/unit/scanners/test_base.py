"""Unit tests for the Scanner base class."""

from collections.abc import Iterator
from unittest.mock import patch

import pytest
from cryptctl.scanners.base import Scanner


class DummyScanner(Scanner[str]):
    """Minimal concrete scanner."""

    required_commands = ("alpha", "beta")

    @property
    def name(self) -> str:
        return "dummy"

    def scan(self) -> Iterator[str]:
        yield "row"


class TestScannerBase:
    """Tests for Scanner."""

    def test_cannot_instantiate_abstract(self) -> None:
        with pytest.raises(TypeError):
            Scanner()  # type: ignore[abstract]

    def test_is_available_requires_all_commands(self) -> None:
        scanner = DummyScanner()
        with patch("cryptctl.scanners.base.command_exists", side_effect=lambda c: c == "alpha"):
            assert scanner.is_available() is False
        with patch("cryptctl.scanners.base.command_exists", return_value=True):
            assert scanner.is_available() is True

    def test_scan_yields(self) -> None:
        assert list(DummyScanner().scan()) == ["row"]
