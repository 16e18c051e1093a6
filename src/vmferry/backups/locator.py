#!/usr/bin/env python3
"""
Backup Locator - resolve a VM's latest successful backup and copy it to the share.
"""

from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterable, List, Optional, Sequence

from vmferry.artifacts import (
    copy_tree,
    create_archive,
    directory_size,
    find_disk_images,
    timestamp,
)
from vmferry.errors import (
    BackupLocationMissing,
    ConfigError,
    InvalidSelection,
    NoSuccessfulBackup,
    SourceFileMissing,
    VMNotFound,
)
from vmferry.logging import get_logger, log_operation
from vmferry.models import DEFAULT_DISK_EXTENSIONS, BackupSettings

from .models import BackupCopyResult, BackupLocation, BackupRecord, BackupVM
from .session import BackupApiSession

if TYPE_CHECKING:
    from vmferry.interfaces.backup import BackupBackend

log = get_logger(__name__)


def select_vm_by_name(vms: Sequence[BackupVM], name: str) -> BackupVM:
    """Exact, case-sensitive match on the VM name."""
    for vm in vms:
        if vm.name == name:
            return vm
    raise VMNotFound(name, where="the backup server")


def select_vm_by_index(vms: Sequence[BackupVM], index: int) -> BackupVM:
    """Pick from the zero-indexed list shown to the operator."""
    if not 0 <= index < len(vms):
        raise InvalidSelection(
            f"Selection {index} is out of range; choose 0-{len(vms) - 1}"
            if vms
            else "No VMs are registered on the backup server"
        )
    return vms[index]


def latest_successful_backup(records: Iterable[BackupRecord], vm_name: str) -> BackupRecord:
    """The successful record with the latest capture time."""
    eligible = [record for record in records if record.is_success]
    if not eligible:
        raise NoSuccessfulBackup(vm_name)
    return max(eligible, key=lambda record: record.captured_at)


def resolve_backup_source(locations: Sequence[BackupLocation], vm: BackupVM) -> Path:
    """Directory holding *vm*'s backups under the first storage root.

    Only the first root the product reports is considered.
    """
    if not locations:
        raise BackupLocationMissing("The backup server reports no backup location")
    root = locations[0].path
    for candidate in (root / vm.vm_ref, root / vm.name):
        if candidate.is_dir():
            return candidate
    raise SourceFileMissing(root / vm.vm_ref)


class BackupLocator:
    """Copy the latest successful backup of one VM to a destination folder.

    Usage:
        locator = BackupLocator(ScriptApiBackupBackend(runner, scripts_dir), settings)
        result = locator.run()
    """

    def __init__(
        self,
        backend: "BackupBackend",
        settings: BackupSettings,
        chooser: Optional[Callable[[List[BackupVM]], Optional[int]]] = None,
        clock: Callable[[], datetime] = datetime.now,
        disk_extensions: Sequence[str] = tuple(DEFAULT_DISK_EXTENSIONS),
    ):
        if not settings.destination:
            raise ConfigError("No backup copy destination specified")
        self.backend = backend
        self.settings = settings
        self.chooser = chooser
        self.clock = clock
        self.disk_extensions = disk_extensions

    def choose_vm(self, vms: List[BackupVM]) -> BackupVM:
        """Operator mode matches by name, interactive mode by list index."""
        if self.settings.automatic_selection:
            if not self.settings.vm_name:
                raise ConfigError("No VM name specified for automatic selection")
            return select_vm_by_name(vms, self.settings.vm_name)

        index = self.settings.vm_index
        if index is None and self.chooser is not None:
            index = self.chooser(vms)
        if index is None:
            raise InvalidSelection("No VM selected")
        return select_vm_by_index(vms, index)

    def run(self) -> BackupCopyResult:
        with log_operation(log, "backup_copy", server=self.settings.server) as op_log:
            with BackupApiSession(
                self.backend,
                self.settings.credentials(),
                self.settings.server,
                self.settings.port,
            ) as session:
                vms = session.list_vms()
                vm = self.choose_vm(vms)
                record = latest_successful_backup(session.backup_history(vm), vm.name)
                source = resolve_backup_source(session.backup_locations(), vm)

            op_log.info(
                "backup.selected",
                vm=vm.name,
                captured_at=record.captured_at.isoformat(),
                source=str(source),
            )
            return self.transfer(vm, record, source)

    def transfer(self, vm: BackupVM, record: BackupRecord, source: Path) -> BackupCopyResult:
        """Copy (or archive) *source* into a timestamped entry under the destination."""
        destination_root = Path(self.settings.destination)
        name = f"{vm.name}_{timestamp(self.clock())}"

        if self.settings.create_archive:
            destination = create_archive(source, destination_root / f"{name}.zip")
            disk_images: List[Path] = []
        else:
            destination = copy_tree(source, destination_root / name)
            disk_images = find_disk_images(destination, self.disk_extensions)

        return BackupCopyResult(
            vm_name=vm.name,
            record=record,
            source=source,
            destination=destination,
            archived=self.settings.create_archive,
            size_bytes=directory_size(destination),
            disk_images=disk_images,
        )
