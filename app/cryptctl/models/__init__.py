"""Data models for cryptctl.

This module exports the core data structures used throughout the application.
"""

from cryptctl.models.auth import AuthMethod, CryptsetupRequest, KeyfileAuth, PasswordAuth
from cryptctl.models.container import (
    SUPPORTED_FILESYSTEMS,
    Container,
    LoopDevice,
    MountInfo,
    generate_mapper_name,
    mapper_device,
)

__all__ = [
    "SUPPORTED_FILESYSTEMS",
    "AuthMethod",
    "Container",
    "CryptsetupRequest",
    "KeyfileAuth",
    "LoopDevice",
    "MountInfo",
    "PasswordAuth",
    "generate_mapper_name",
    "mapper_device",
]
