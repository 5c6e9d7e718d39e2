"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules. The sample
outputs mirror what dmsetup, losetup, df and /proc/mounts print on a host
with one container ``/abs/c.img`` open as ``c_img`` on ``/dev/loop7``
and mounted on ``/mnt/x``.
"""

import json
import logging
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _propagate_cryptctl_logs() -> None:
    """Let caplog see records even after the CLI installed its handler."""
    logging.getLogger("cryptctl").propagate = True


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG_CONFIG_HOME at an empty directory so no user config is read."""
    config_home = tmp_path / "xdg-config"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    return config_home


@pytest.fixture(autouse=True)
def _wide_console(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep Rich from wrapping long paths in captured CLI output."""
    monkeypatch.setenv("COLUMNS", "300")


@pytest.fixture
def mock_dmsetup_ls_output() -> str:
    """Sample dmsetup ls --target crypt output."""
    return "c_img\t(253:0)\n"


@pytest.fixture
def mock_dmsetup_table_output() -> str:
    """Sample dmsetup table row for a loop-backed crypt mapper."""
    return "0 200704 crypt aes-xts-plain64 :64:logon:cryptsetup:abc 0 7:7 32768\n"


@pytest.fixture
def mock_losetup_json() -> str:
    """Sample losetup -l -J output."""
    return json.dumps(
        {
            "loopdevices": [
                {
                    "name": "/dev/loop7",
                    "sizelimit": 0,
                    "offset": 0,
                    "autoclear": False,
                    "ro": False,
                    "back-file": "/abs/c.img",
                    "dio": False,
                    "log-sec": 512,
                },
                {
                    "name": "/dev/loop2",
                    "back-file": "/var/lib/snapd/snaps/core_1.snap",
                },
            ]
        }
    )


@pytest.fixture
def mock_df_output() -> str:
    """Sample df --block-size=1 output for /mnt/x."""
    return (
        "Filesystem            1B-blocks     Used Available Use% Mounted on\n"
        "/dev/mapper/c_img     104857600 20000000  84857600  20% /mnt/x\n"
    )


@pytest.fixture
def mount_table(tmp_path: Path) -> Path:
    """A /proc/mounts replacement with one mapper mount."""
    path = tmp_path / "mounts"
    path.write_text(
        "sysfs /sys sysfs rw,nosuid,nodev,noexec,relatime 0 0\n"
        "/dev/sda1 / ext4 rw,relatime 0 0\n"
        "/dev/mapper/c_img /mnt/x ext4 rw,relatime 0 0\n"
    )
    return path


@pytest.fixture
def empty_mount_table(tmp_path: Path) -> Path:
    """A mount table without mapper devices."""
    path = tmp_path / "mounts-empty"
    path.write_text("/dev/sda1 / ext4 rw,relatime 0 0\n")
    return path
