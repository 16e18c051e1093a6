"""Hyper-V VM and checkpoint records."""

from .models import Snapshot, VirtualMachine, VMState, latest_snapshot

__all__ = [
    "Snapshot",
    "VirtualMachine",
    "VMState",
    "latest_snapshot",
]
