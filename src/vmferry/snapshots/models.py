#!/usr/bin/env python3
"""Data models for Hyper-V VMs and their checkpoints."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Optional


class VMState(Enum):
    """Power state of a VM as reported by Hyper-V."""

    RUNNING = "running"
    OFF = "off"
    SAVED = "saved"
    PAUSED = "paused"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> "VMState":
        """Map a Hyper-V state string (``Running``, ``Off``, ...) to a VMState."""
        text = str(value or "").strip().lower()
        for state in cls:
            if state.value == text:
                return state
        return cls.OTHER


@dataclass
class VirtualMachine:
    """A VM on the local hypervisor. Read-only to vmferry."""

    name: str
    state: VMState
    memory_bytes: int = 0
    generation: Optional[int] = None
    version: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self.state == VMState.RUNNING

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VirtualMachine":
        """Create from a ``Get-VM`` JSON object."""
        return cls(
            name=data["Name"],
            state=VMState.parse(data.get("State")),
            memory_bytes=int(data.get("MemoryStartup") or 0),
            generation=data.get("Generation"),
            version=data.get("Version"),
        )


@dataclass
class Snapshot:
    """A Hyper-V checkpoint of exactly one VM."""

    name: str
    vm_name: str
    created_at: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Snapshot":
        """Create from a ``Get-VMSnapshot`` JSON object."""
        return cls(
            name=data["Name"],
            vm_name=data["VMName"],
            created_at=datetime.fromisoformat(data["CreationTime"]),
            metadata={k: v for k, v in data.items() if k not in ("Name", "VMName", "CreationTime")},
        )


def latest_snapshot(snapshots: Iterable[Snapshot]) -> Optional[Snapshot]:
    """Return the most recently created snapshot, or None.

    Snapshots with identical creation times are ordered by name, so the
    lexicographically greatest name wins the tie.
    """
    return max(snapshots, key=lambda snap: (snap.created_at, snap.name), default=None)
