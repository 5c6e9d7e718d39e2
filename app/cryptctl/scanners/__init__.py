"""Scanners for live OS storage state.

This module exports the scanner classes queried during discovery.
"""

from cryptctl.scanners.base import Scanner
from cryptctl.scanners.loop import LoopScanner
from cryptctl.scanners.mapper import MapperScanner
from cryptctl.scanners.mounts import MountScanner

__all__ = ["LoopScanner", "MapperScanner", "MountScanner", "Scanner"]
