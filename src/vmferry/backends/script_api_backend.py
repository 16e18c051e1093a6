"""Backup-product backend built on the vendor's PowerShell API scripts.

Each API call is a ``.ps1`` file in the vendor's sample-scripts folder,
invoked with named parameters. Scripts answer with a JSON document, either
the bare objects or an envelope such as ``{"Success": true, "VirtualMachines": [...]}``.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

from vmferry.backups.models import BackupLocation, BackupRecord, BackupVM
from vmferry.errors import ExternalCommandFailed, ModuleUnavailable
from vmferry.models import Credentials

from ..interfaces.backup import BackupBackend
from ..interfaces.process import ProcessRunner
from .powershell import PowerShell

log = structlog.get_logger(__name__)

DEFAULT_SCRIPTS = {
    "start_session": "StartSessionPasswordHidden",
    "end_session": "EndSession",
    "list_vms": "GetVirtualMachines",
    "backup_history": "GetBackupHistory",
    "backup_locations": "GetBackupLocations",
}

ERROR_KEYS = ("ErrorMessage", "Message", "Error")


def unwrap(rows: List[Any], key: str) -> List[Dict[str, Any]]:
    """Strip the optional ``{"Success": ..., key: [...]}`` envelope."""
    if len(rows) == 1 and isinstance(rows[0], dict):
        envelope = rows[0]
        if envelope.get("Success") is False:
            message = next((envelope[k] for k in ERROR_KEYS if envelope.get(k)), "unknown error")
            raise ExternalCommandFailed(f"Backup API reported failure: {message}")
        if key in envelope:
            inner = envelope[key]
            if inner is None:
                return []
            return inner if isinstance(inner, list) else [inner]
    return [row for row in rows if isinstance(row, dict)]


class ScriptApiBackupBackend(BackupBackend):
    """Backup backend invoking the vendor's ``.ps1`` API scripts."""

    def __init__(
        self,
        runner: ProcessRunner,
        scripts_dir: Path,
        scripts: Optional[Dict[str, str]] = None,
    ):
        self.ps = PowerShell(runner)
        self.scripts_dir = Path(scripts_dir)
        self.scripts = {**DEFAULT_SCRIPTS, **(scripts or {})}

    def _script(self, operation: str) -> Path:
        path = self.scripts_dir / f"{self.scripts[operation]}.ps1"
        if not path.is_file():
            raise ModuleUnavailable(f"Backup API script not found: {path}")
        return path

    def _call(self, operation: str, params: Dict[str, Any], error_message: str) -> List[Any]:
        return self.ps.run_file(self._script(operation), params, error_message)

    def start_session(self, credentials: Credentials, server: str, port: int) -> str:
        rows = self._call(
            "start_session",
            {
                "ServerAddress": server,
                "ServerPort": port,
                "Username": credentials.username,
                "Password": credentials.password,
                "Domain": credentials.domain,
            },
            f"Could not start a backup API session on {server}",
        )
        token = None
        if len(rows) == 1 and isinstance(rows[0], str):
            token = rows[0]
        elif rows and isinstance(rows[0], dict):
            unwrap(rows, "SessionToken")
            token = rows[0].get("SessionToken") or rows[0].get("Data")
        if not isinstance(token, str) or not token:
            raise ExternalCommandFailed(f"Backup API on {server} returned no session token")
        return token

    def end_session(self, token: str) -> None:
        rows = self._call("end_session", {"SessionToken": token}, "Could not end the backup API session")
        unwrap(rows, "Data")

    def list_vms(self, token: str) -> List[BackupVM]:
        rows = self._call("list_vms", {"SessionToken": token}, "Could not list backed-up VMs")
        return [BackupVM.from_dict(row) for row in unwrap(rows, "VirtualMachines")]

    def backup_history(self, token: str, vm: BackupVM) -> List[BackupRecord]:
        rows = self._call(
            "backup_history",
            {"SessionToken": token, "VirtualMachineRef": vm.vm_ref},
            f"Could not read the backup history of '{vm.name}'",
        )
        return [BackupRecord.from_dict(row, vm_ref=vm.vm_ref) for row in unwrap(rows, "BackupHistory")]

    def backup_locations(self, token: str) -> List[BackupLocation]:
        rows = self._call(
            "backup_locations", {"SessionToken": token}, "Could not list backup locations"
        )
        return [BackupLocation.from_dict(row) for row in unwrap(rows, "BackupLocations")]
