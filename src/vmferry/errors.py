"""
Error taxonomy for vmferry workflows.

Every workflow error derives from :class:`VMFerryError` and carries the exit
code the CLI terminates with. Nothing in vmferry retries automatically.
"""

from typing import List, Optional


class VMFerryError(Exception):
    """Base error for all vmferry workflows."""

    exit_code = 1


# ── preconditions ────────────────────────────────────────────────────────────


class PreconditionFailed(VMFerryError):
    """A required precondition does not hold (privilege, module, object)."""

    exit_code = 3


class NotElevated(PreconditionFailed):
    """The process is not running with administrative privileges."""


class ModuleUnavailable(PreconditionFailed):
    """A vendor module, script or executable is not available."""


class VMNotFound(PreconditionFailed):
    """The named VM does not exist on the hypervisor or in the backup product."""

    def __init__(self, vm_name: str, where: str = "hypervisor"):
        self.vm_name = vm_name
        super().__init__(f"VM '{vm_name}' not found on {where}")


class SourceFileMissing(PreconditionFailed):
    """A disk image or backup source does not exist or is empty."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"File {path} does not exist or is empty")


class InvalidSelection(PreconditionFailed):
    """Operator input does not select a valid item."""


class ConfigError(PreconditionFailed):
    """Configuration file or option values are invalid."""

    exit_code = 2


# ── selection ────────────────────────────────────────────────────────────────


class SelectionExhausted(VMFerryError):
    """No eligible item exists to work on."""

    exit_code = 4


class NoSuccessfulBackup(SelectionExhausted):
    """The backup history holds no successful record for the VM."""

    def __init__(self, vm_name: str):
        self.vm_name = vm_name
        super().__init__(f"No successful backup found for VM '{vm_name}'")


class BackupLocationMissing(SelectionExhausted):
    """The backup product reports no usable storage root."""


# ── external commands ────────────────────────────────────────────────────────


class ExternalCommandFailed(VMFerryError):
    """A vendor cmdlet, script or CLI returned an error."""

    exit_code = 5

    def __init__(
        self,
        message: str,
        command: Optional[List[str]] = None,
        returncode: Optional[int] = None,
        stderr: str = "",
    ):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)


class ExportJobFailed(ExternalCommandFailed):
    """The asynchronous export job finished with a non-empty result payload."""

    def __init__(self, detail: str, job_id: Optional[str] = None):
        self.detail = detail
        self.job_id = job_id
        super().__init__(f"Export job {job_id} failed: {detail}")


class ExportJobTimeout(ExternalCommandFailed):
    """The export job was still running when the configured timeout elapsed."""


class ShareMountFailed(ExternalCommandFailed):
    """Mounting the network share with explicit credentials failed."""


class DiskIdNotFound(ExternalCommandFailed):
    """The disk import output does not name the new unused disk."""


class ArtifactWriteFailed(ExternalCommandFailed):
    """An artifact folder, copy or archive on the destination could not be written or read back."""


# ── warnings ─────────────────────────────────────────────────────────────────


class ResourceCleanupWarning(UserWarning):
    """Share unmount or stale-artifact deletion failed; the run continues."""
