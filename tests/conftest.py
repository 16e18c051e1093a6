"""
Pytest fixtures and fakes for vmferry tests.
"""
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from vmferry.backups.models import BackupLocation, BackupRecord, BackupVM
from vmferry.interfaces.backup import BackupBackend
from vmferry.interfaces.hypervisor import HypervisorBackend, JobStatus
from vmferry.interfaces.process import ProcessResult, ProcessRunner
from vmferry.snapshots.models import Snapshot, VirtualMachine, VMState


class FakeRunner(ProcessRunner):
    """ProcessRunner answering from scripted rules and recording every call.

    A rule matches when its fragment occurs in the space-joined command
    line; the first matching rule wins. Rules queued with several results
    hand them out in order and repeat the last one.
    """

    def __init__(self):
        self.calls: List[List[str]] = []
        self.rules = []

    def on(self, fragment: str, stdout: str = "", stderr: str = "", returncode: int = 0):
        self.rules.append((fragment, [(returncode, stdout, stderr)]))
        return self

    def on_sequence(self, fragment: str, results):
        self.rules.append((fragment, list(results)))
        return self

    def run(self, command, timeout=None, cwd=None, env=None) -> ProcessResult:
        self.calls.append(list(command))
        text = " ".join(command)
        for fragment, results in self.rules:
            if fragment in text:
                returncode, stdout, stderr = results.pop(0) if len(results) > 1 else results[0]
                return ProcessResult(returncode, stdout, stderr, list(command))
        return ProcessResult(0, "", "", list(command))

    def commands_containing(self, fragment: str) -> List[List[str]]:
        return [call for call in self.calls if fragment in " ".join(call)]


class FakeHypervisor(HypervisorBackend):
    """In-memory hypervisor whose exports write a small disk image."""

    name = "fake"

    def __init__(
        self,
        vms: Optional[List[VirtualMachine]] = None,
        snapshots: Optional[Dict[str, List[Snapshot]]] = None,
        job_states: Optional[List[JobStatus]] = None,
        live_job_id: Optional[str] = "job-1",
        precondition_error: Optional[Exception] = None,
    ):
        self.vms = {vm.name: vm for vm in vms or []}
        self.snapshots = snapshots or {}
        self.job_states = list(job_states or [])
        self.live_job_id = live_job_id
        self.precondition_error = precondition_error
        self.calls = []

    def check_preconditions(self):
        self.calls.append(("check_preconditions",))
        if self.precondition_error is not None:
            raise self.precondition_error

    def get_vm(self, name):
        self.calls.append(("get_vm", name))
        return self.vms.get(name)

    def list_snapshots(self, vm_name):
        return list(self.snapshots.get(vm_name, []))

    def _write_disk(self, vm_name: str, path: Path) -> None:
        disks = path / vm_name / "Virtual Hard Disks"
        disks.mkdir(parents=True, exist_ok=True)
        (disks / f"{vm_name}.vhdx").write_bytes(b"\0" * 2048)
        (path / vm_name / "Virtual Machines").mkdir(exist_ok=True)

    def export_snapshot(self, vm_name, snapshot_name, path):
        self.calls.append(("export_snapshot", vm_name, snapshot_name, path))
        self._write_disk(vm_name, path)

    def export_vm(self, vm_name, path):
        self.calls.append(("export_vm", vm_name, path))
        self._write_disk(vm_name, path)

    def start_live_export(self, vm_name, path):
        self.calls.append(("start_live_export", vm_name, path))
        self._write_disk(vm_name, path)
        return self.live_job_id

    def get_job_status(self, job_id):
        self.calls.append(("get_job_status", job_id))
        if len(self.job_states) > 1:
            return self.job_states.pop(0)
        return self.job_states[0]


class FakeBackupBackend(BackupBackend):
    """In-memory backup product API."""

    def __init__(
        self,
        vms: Optional[List[BackupVM]] = None,
        history: Optional[Dict[str, List[BackupRecord]]] = None,
        locations: Optional[List[BackupLocation]] = None,
        fail_on: Optional[Dict[str, Exception]] = None,
    ):
        self.vms = list(vms or [])
        self.history = history or {}
        self.locations = list(locations or [])
        self.fail_on = fail_on or {}
        self.calls = []

    def _record(self, operation, *args):
        self.calls.append((operation, *args))
        if operation in self.fail_on:
            raise self.fail_on[operation]

    def start_session(self, credentials, server, port):
        self._record("start_session", credentials.username, server, port)
        return "token-1"

    def end_session(self, token):
        self._record("end_session", token)

    def list_vms(self, token):
        self._record("list_vms", token)
        return list(self.vms)

    def backup_history(self, token, vm):
        self._record("backup_history", token, vm.vm_ref)
        return list(self.history.get(vm.vm_ref, []))

    def backup_locations(self, token):
        self._record("backup_locations", token)
        return list(self.locations)

    def count(self, operation: str) -> int:
        return sum(1 for call in self.calls if call[0] == operation)


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def make_hypervisor():
    return FakeHypervisor


@pytest.fixture
def make_backup_backend():
    return FakeBackupBackend


@pytest.fixture
def fixed_clock():
    """Clock returning 2024-01-03 10:15:00.250000, one second later on each call."""
    moments = iter(datetime(2024, 1, 3, 10, 15, 0, 250000) + timedelta(seconds=n) for n in range(1000))
    return lambda: next(moments)


@pytest.fixture
def off_vm():
    return VirtualMachine(name="Alice", state=VMState.OFF, memory_bytes=4 * 1024**3, generation=2)


@pytest.fixture
def running_vm():
    return VirtualMachine(name="Bob", state=VMState.RUNNING, memory_bytes=8 * 1024**3, generation=2)


@pytest.fixture
def alice_snapshots():
    return [
        Snapshot("before-update", "Alice", datetime(2024, 1, 1, 9, 0)),
        Snapshot("after-update", "Alice", datetime(2024, 1, 2, 18, 30)),
    ]


@pytest.fixture
def backup_tree(tmp_path):
    """A backup storage root holding one restore point of VM ref ``vm-42``."""
    root = tmp_path / "backups"
    source = root / "vm-42"
    (source / "Virtual Hard Disks").mkdir(parents=True)
    (source / "Virtual Hard Disks" / "Carol.vhdx").write_bytes(b"\1" * 4096)
    (source / "Carol.vmcx").write_text("<config/>")
    return root


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "slow: Slow tests")
