"""Storage operators for acquiring and releasing OS resources.

This module provides the operators for loop devices, LUKS mappers and
filesystems.
"""

from cryptctl.operators.base import Operator
from cryptctl.operators.loop import LoopOperator
from cryptctl.operators.luks import LuksOperator
from cryptctl.operators.mount import MountOperator

__all__ = ["LoopOperator", "LuksOperator", "MountOperator", "Operator"]
