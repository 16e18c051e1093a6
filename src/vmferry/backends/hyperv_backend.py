"""Hyper-V hypervisor backend driven through PowerShell."""

from pathlib import Path
from typing import List, Optional

import structlog

from vmferry.errors import ExternalCommandFailed, ModuleUnavailable, NotElevated
from vmferry.snapshots.models import Snapshot, VirtualMachine

from ..interfaces.hypervisor import HypervisorBackend, JobStatus
from ..interfaces.process import ProcessRunner
from .powershell import PowerShell, ps_quote

log = structlog.get_logger(__name__)

VIRTUALIZATION_NAMESPACE = r"root\virtualization\v2"

# Msvm_ConcreteJob.JobState values
JOB_STATES = {
    2: "new",
    3: "starting",
    4: "running",
    5: "suspended",
    6: "shutting_down",
    7: "completed",
    8: "terminated",
    9: "killed",
    10: "exception",
    11: "service",
    12: "query_pending",
    32768: "completed_with_warnings",
}

# Msvm_VirtualSystemExportSettingData values
EXPORT_NO_SNAPSHOTS = 1
CAPTURE_DATA_CONSISTENT_STATE = 2
# ExportSystemDefinition returns this when the work continues as a job.
METHOD_JOB_STARTED = 4096

IS_ADMIN_SCRIPT = (
    "([Security.Principal.WindowsPrincipal][Security.Principal.WindowsIdentity]::GetCurrent())"
    ".IsInRole([Security.Principal.WindowsBuiltInRole]::Administrator)"
)


def wql_string(value: str) -> str:
    """Quote *value* as a WQL string literal."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


class HyperVBackend(HypervisorBackend):
    """Hyper-V backend using the Hyper-V module cmdlets and the WMI v2 API."""

    name = "hyperv"

    def __init__(self, runner: ProcessRunner):
        self.ps = PowerShell(runner)

    def check_preconditions(self) -> None:
        """Require an elevated session and the Hyper-V PowerShell module."""
        elevated = self.ps.invoke(IS_ADMIN_SCRIPT, "Cannot determine privilege level")
        if elevated.strip().lower() != "true":
            raise NotElevated("Administrator privileges are required to export Hyper-V VMs")

        available = self.ps.invoke(
            "[bool](Get-Module -ListAvailable -Name Hyper-V)",
            "Cannot query PowerShell modules",
        )
        if available.strip().lower() != "true":
            raise ModuleUnavailable("The Hyper-V PowerShell module is not installed")

    def get_vm(self, name: str) -> Optional[VirtualMachine]:
        rows = self.ps.invoke_json(
            f"Get-VM -Name {ps_quote(name)} -ErrorAction SilentlyContinue | "
            "Select-Object Name, @{n='State';e={$_.State.ToString()}}, "
            "MemoryStartup, Generation, @{n='Version';e={[string]$_.Version}}",
            f"Failed to look up VM '{name}'",
        )
        if not rows:
            return None
        return VirtualMachine.from_dict(rows[0])

    def list_snapshots(self, vm_name: str) -> List[Snapshot]:
        rows = self.ps.invoke_json(
            f"Get-VMSnapshot -VMName {ps_quote(vm_name)} | "
            "Select-Object Name, VMName, "
            "@{n='CreationTime';e={$_.CreationTime.ToString('yyyy-MM-ddTHH:mm:ss')}}, "
            "@{n='SnapshotType';e={$_.SnapshotType.ToString()}}",
            f"Failed to list checkpoints of '{vm_name}'",
        )
        return [Snapshot.from_dict(row) for row in rows]

    def export_snapshot(self, vm_name: str, snapshot_name: str, path: Path) -> None:
        log.info("hyperv.export_snapshot", vm=vm_name, snapshot=snapshot_name, path=str(path))
        self.ps.invoke(
            f"Export-VMSnapshot -VMName {ps_quote(vm_name)} "
            f"-Name {ps_quote(snapshot_name)} -Path {ps_quote(path)}",
            f"Export of checkpoint '{snapshot_name}' failed",
        )

    def export_vm(self, vm_name: str, path: Path) -> None:
        log.info("hyperv.export_vm", vm=vm_name, path=str(path))
        self.ps.invoke(
            f"Export-VM -Name {ps_quote(vm_name)} -Path {ps_quote(path)}",
            f"Export of VM '{vm_name}' failed",
        )

    def start_live_export(self, vm_name: str, path: Path) -> Optional[str]:
        """Export a running VM with a data-consistent (VSS) capture of its live state."""
        log.info("hyperv.start_live_export", vm=vm_name, path=str(path))
        vm_filter = f"ElementName={wql_string(vm_name)}"
        script = "; ".join(
            [
                f"$ns = {ps_quote(VIRTUALIZATION_NAMESPACE)}",
                "$svc = Get-WmiObject -Namespace $ns -Class Msvm_VirtualSystemManagementService",
                f"$vm = Get-WmiObject -Namespace $ns -Class Msvm_ComputerSystem -Filter {ps_quote(vm_filter)}",
                "if (-not $vm) { throw 'VM not found' }",
                "$esd = $vm.GetRelated('Msvm_VirtualSystemExportSettingData') | Select-Object -First 1",
                f"$esd.CopySnapshotConfiguration = {EXPORT_NO_SNAPSHOTS}",
                "$esd.CopyVmRuntimeInformation = $true",
                "$esd.CopyVmStorage = $true",
                "$esd.CreateVmExportSubdirectory = $true",
                f"$esd.CaptureLiveState = {CAPTURE_DATA_CONSISTENT_STATE}",
                f"$r = $svc.ExportSystemDefinition($vm, {ps_quote(path)}, $esd.GetText(1))",
                f"if ($r.ReturnValue -eq {METHOD_JOB_STARTED}) {{ ([wmi]$r.Job).InstanceID }} "
                "elseif ($r.ReturnValue -ne 0) { throw \"ExportSystemDefinition returned $($r.ReturnValue)\" }",
            ]
        )
        job_id = self.ps.invoke(script, f"Live export of VM '{vm_name}' failed").strip()
        return job_id or None

    def get_job_status(self, job_id: str) -> JobStatus:
        rows = self.ps.invoke_json(
            f"Get-WmiObject -Namespace {ps_quote(VIRTUALIZATION_NAMESPACE)} -Class Msvm_ConcreteJob "
            f"-Filter {ps_quote('InstanceID=' + wql_string(job_id))} | "
            "Select-Object InstanceID, JobState, ErrorCode, ErrorDescription",
            f"Failed to poll export job {job_id}",
        )
        if not rows:
            raise ExternalCommandFailed(f"Export job {job_id} disappeared before completion")
        row = rows[0]
        code = int(row.get("JobState") or 0)
        state = JOB_STATES.get(code, f"unknown({code})")
        return JobStatus(
            job_id=job_id,
            state=state,
            result=(row.get("ErrorDescription") or "").strip(),
        )
