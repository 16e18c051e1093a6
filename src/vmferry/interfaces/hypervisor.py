"""Interface for the hypervisor side of the export workflow."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from vmferry.snapshots.models import Snapshot, VirtualMachine

RUNNING_JOB_STATES = (
    "new",
    "starting",
    "running",
    "suspended",
    "shutting_down",
    "service",
    "query_pending",
)
SUCCEEDED_JOB_STATES = ("completed", "completed_with_warnings")
FAILED_JOB_STATES = ("terminated", "killed", "exception")


@dataclass
class JobStatus:
    """State of an asynchronous export job.

    A state that is neither running nor succeeded counts as failed, so an
    unrecognised state ends the wait with an error instead of a success.
    """

    job_id: str
    state: str
    result: str = ""

    @property
    def is_running(self) -> bool:
        return self.state in RUNNING_JOB_STATES

    @property
    def is_succeeded(self) -> bool:
        return self.state in SUCCEEDED_JOB_STATES

    @property
    def is_failed(self) -> bool:
        return not (self.is_running or self.is_succeeded)


class HypervisorBackend(ABC):
    """Abstract interface for hypervisor operations used by the exporter."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name (e.g., 'hyperv')."""
        pass

    @abstractmethod
    def check_preconditions(self) -> None:
        """Raise PreconditionFailed unless privileges and tooling are present."""
        pass

    @abstractmethod
    def get_vm(self, name: str) -> Optional[VirtualMachine]:
        """Look a VM up by name; None when it does not exist."""
        pass

    @abstractmethod
    def list_snapshots(self, vm_name: str) -> List[Snapshot]:
        """List all checkpoints of a VM."""
        pass

    @abstractmethod
    def export_snapshot(self, vm_name: str, snapshot_name: str, path: Path) -> None:
        """Export a checkpoint into *path* (blocking)."""
        pass

    @abstractmethod
    def export_vm(self, vm_name: str, path: Path) -> None:
        """Export a VM into *path* (blocking)."""
        pass

    @abstractmethod
    def start_live_export(self, vm_name: str, path: Path) -> Optional[str]:
        """Start a shadow-copy consistent export of a running VM.

        Returns the job id to poll, or None when the export completed
        synchronously.
        """
        pass

    @abstractmethod
    def get_job_status(self, job_id: str) -> JobStatus:
        """Poll an export job."""
        pass
