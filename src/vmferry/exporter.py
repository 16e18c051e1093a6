#!/usr/bin/env python3
"""
VM Exporter - Export a Hyper-V VM from its latest checkpoint, a VSS-consistent
live capture, or a plain export, onto the destination share.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Callable, List, Optional, Sequence, Tuple

from vmferry.artifacts import (
    directory_size,
    export_folder_name,
    find_disk_images,
    find_prior_exports,
    make_folder,
    purge_paths,
)
from vmferry.errors import (
    ArtifactWriteFailed,
    ConfigError,
    ExportJobFailed,
    ExportJobTimeout,
    VMFerryError,
    VMNotFound,
)
from vmferry.interfaces.hypervisor import HypervisorBackend, JobStatus
from vmferry.logging import get_logger, log_operation
from vmferry.models import ExportSettings
from vmferry.share import ShareSession
from vmferry.snapshots.models import Snapshot, VirtualMachine, latest_snapshot

log = get_logger(__name__)


class ExportStrategy(Enum):
    """How the export source is captured."""

    SNAPSHOT = "snapshot"  # Export-VMSnapshot of the latest checkpoint
    RUNNING_VSS = "running-vss"  # live export with a data-consistent capture
    STANDARD = "standard"  # Export-VM of a stopped/saved VM, or running without VSS


@dataclass
class ExportOutcome:
    """Result of one export run. Either fully successful or a failure."""

    success: bool
    vm_name: str
    export_path: Optional[Path] = None
    disk_images: List[Path] = field(default_factory=list)
    used_snapshot: bool = False
    snapshot_name: Optional[str] = None
    strategy: Optional[ExportStrategy] = None
    size_bytes: int = 0
    purged: List[Path] = field(default_factory=list)
    error_detail: Optional[str] = None
    error: Optional[VMFerryError] = None

    @classmethod
    def failed(cls, vm_name: str, error: VMFerryError) -> "ExportOutcome":
        return cls(success=False, vm_name=vm_name, error_detail=str(error), error=error)

    @property
    def exit_code(self) -> int:
        if self.success:
            return 0
        return self.error.exit_code if self.error is not None else 1


def select_strategy(
    vm: VirtualMachine,
    snapshots: Sequence[Snapshot],
    prefer_snapshot: bool,
    use_vss: bool,
) -> Tuple[ExportStrategy, Optional[Snapshot]]:
    """Pick the export strategy in strict priority order.

    1. checkpoints exist and prefer_snapshot -> latest checkpoint
    2. VM running and use_vss -> VSS live export
    3. otherwise -> standard export
    """
    if snapshots and prefer_snapshot:
        return ExportStrategy.SNAPSHOT, latest_snapshot(snapshots)
    if vm.is_running and use_vss:
        return ExportStrategy.RUNNING_VSS, None
    return ExportStrategy.STANDARD, None


class ExportSelector:
    """Export one Hyper-V VM to the destination share.

    Usage:
        selector = ExportSelector(HyperVBackend(SubprocessRunner()), settings)
        outcome = selector.run()
    """

    def __init__(
        self,
        backend: HypervisorBackend,
        settings: ExportSettings,
        clock: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
        on_poll: Optional[Callable[[JobStatus, float], None]] = None,
    ):
        if not settings.vm_name:
            raise ConfigError("No VM name specified for export")
        if not settings.destination:
            raise ConfigError("No export destination specified")
        self.backend = backend
        self.settings = settings
        self.clock = clock
        self.sleep = sleep
        self.monotonic = monotonic
        self.on_poll = on_poll

    @property
    def vm_name(self) -> str:
        return self.settings.vm_name

    @property
    def destination(self) -> Path:
        return Path(self.settings.destination)

    def run(self) -> ExportOutcome:
        """Run the export. Raises VMFerryError subclasses on failure."""
        with log_operation(log, "export", vm=self.vm_name) as op_log:
            self.backend.check_preconditions()

            vm = self.backend.get_vm(self.vm_name)
            if vm is None:
                raise VMNotFound(self.vm_name)

            snapshots = self.backend.list_snapshots(self.vm_name)
            strategy, snapshot = select_strategy(
                vm,
                snapshots,
                prefer_snapshot=self.settings.prefer_snapshot,
                use_vss=self.settings.use_vss,
            )
            op_log.info(
                "export.strategy",
                strategy=strategy.value,
                state=vm.state.value,
                snapshots=len(snapshots),
                snapshot=snapshot.name if snapshot else None,
            )

            captured_at = self.clock().replace(microsecond=0)
            export_path = self.destination / export_folder_name(
                self.settings.prefix, self.vm_name, captured_at
            )

            prior: List[Path] = []
            purged: List[Path] = []
            if self.settings.purge_prior_exports:
                prior = find_prior_exports(self.destination, self.settings.prefix, self.vm_name)
                if prior and self.settings.purge_timing == "before":
                    purged = purge_paths(prior)

            make_folder(export_path)
            self._export(strategy, snapshot, export_path)

            if prior and self.settings.purge_timing == "after":
                purged = purge_paths([p for p in prior if p != export_path])

            try:
                size_bytes = directory_size(export_path)
                disk_images = find_disk_images(export_path, self.settings.disk_extensions)
            except OSError as e:
                raise ArtifactWriteFailed(f"Cannot read back export folder {export_path}: {e}") from e
            op_log.info(
                "export.artifact",
                path=str(export_path),
                size_bytes=size_bytes,
                disk_images=len(disk_images),
            )

            return ExportOutcome(
                success=True,
                vm_name=self.vm_name,
                export_path=export_path,
                disk_images=disk_images,
                used_snapshot=strategy == ExportStrategy.SNAPSHOT,
                snapshot_name=snapshot.name if snapshot else None,
                strategy=strategy,
                size_bytes=size_bytes,
                purged=purged,
            )

    def _export(
        self, strategy: ExportStrategy, snapshot: Optional[Snapshot], export_path: Path
    ) -> None:
        if strategy == ExportStrategy.SNAPSHOT:
            self.backend.export_snapshot(self.vm_name, snapshot.name, export_path)
        elif strategy == ExportStrategy.RUNNING_VSS:
            job_id = self.backend.start_live_export(self.vm_name, export_path)
            if job_id is not None:
                self.wait_for_job(job_id)
        else:
            self.backend.export_vm(self.vm_name, export_path)

    def wait_for_job(self, job_id: str) -> JobStatus:
        """Poll the export job at a fixed interval until it stops running.

        Waits indefinitely unless ``job_timeout`` is configured.
        """
        started = self.monotonic()
        while True:
            status = self.backend.get_job_status(job_id)
            elapsed = self.monotonic() - started
            if self.on_poll is not None:
                self.on_poll(status, elapsed)
            if not status.is_running:
                break
            timeout = self.settings.job_timeout
            if timeout is not None and elapsed >= timeout:
                raise ExportJobTimeout(
                    f"Export job {job_id} still {status.state} after {elapsed:.0f}s"
                )
            self.sleep(self.settings.poll_interval)

        log.debug("export.job_finished", job_id=job_id, state=status.state)
        if status.result:
            raise ExportJobFailed(status.result, job_id=job_id)
        if status.is_failed:
            raise ExportJobFailed(f"job ended in state '{status.state}'", job_id=job_id)
        return status


def run_export(selector: ExportSelector, share: Optional[ShareSession] = None) -> ExportOutcome:
    """Run *selector* inside the optional share scope and fold errors into the outcome."""
    try:
        if share is None:
            return selector.run()
        with share:
            return selector.run()
    except VMFerryError as e:
        return ExportOutcome.failed(selector.vm_name, e)


def import_hint(
    disk_image: Path,
    destination: Path,
    vm_id: Optional[int] = None,
    storage: str = "local-lvm",
    mount_point: str = "<NAS_MOUNT>",
) -> str:
    """The ``vmferry import`` command an operator runs next on the Proxmox node."""
    try:
        relative = disk_image.relative_to(destination)
    except ValueError:
        relative = Path(disk_image.name)
    remote_path = PurePosixPath(mount_point, *relative.parts)
    target = str(vm_id) if vm_id is not None else "<VMID>"
    return f'vmferry import {target} "{remote_path}" --storage {storage}'
