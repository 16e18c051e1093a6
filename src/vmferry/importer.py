#!/usr/bin/env python3
"""
Storage Importer - replace the primary disk of a Proxmox VE VM with an
imported disk image.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from vmferry.errors import DiskIdNotFound, SourceFileMissing
from vmferry.interfaces.process import ProcessResult, ProcessRunner
from vmferry.logging import get_logger, log_operation

log = get_logger(__name__)

UNUSED_DISK_PATTERN = re.compile(r"unused\d+")


def parse_unused_disk_id(output: str) -> str:
    """The first ``unusedN`` token in ``qm importdisk`` output.

    >>> parse_unused_disk_id("Successfully imported disk as 'unused0:local-lvm:vm-100-disk-1'")
    'unused0'
    """
    match = UNUSED_DISK_PATTERN.search(output)
    if match is None:
        raise DiskIdNotFound(
            "Disk import output does not name the new unused disk",
            stderr=output[-500:],
        )
    return match.group(0)


def parse_slot_volume(qm_config_output: str, slot: str) -> Optional[str]:
    """Volume id attached at *slot* in ``qm config`` output, if any.

    >>> parse_slot_volume("scsi0: local-lvm:vm-100-disk-1,size=32G", "scsi0")
    'local-lvm:vm-100-disk-1'
    """
    prefix = f"{slot}:"
    for line in qm_config_output.splitlines():
        if not line.startswith(prefix):
            continue
        volume = line[len(prefix):].strip().split(",", 1)[0]
        if volume and volume != "none":
            return volume
        return None
    return None


def volume_listed(pvesm_output: str, volume: str) -> bool:
    """Whether *volume* is a Volid row of ``pvesm list`` output."""
    return any(line.split()[:1] == [volume] for line in pvesm_output.splitlines())


def verify_source(path: Path) -> Path:
    """The disk image must exist and be non-empty."""
    if not path.is_file() or path.stat().st_size == 0:
        raise SourceFileMissing(path)
    return path


@dataclass
class ImportResult:
    """Outcome of a successful disk import."""

    vm_id: int
    storage: str
    slot: str
    disk_id: str
    disk_path: Path
    freed_volumes: List[str] = field(default_factory=list)
    commands: List[List[str]] = field(default_factory=list)


class StorageImporter:
    """Swap the disk at a fixed slot of a Proxmox VM for an imported image.

    Usage:
        importer = StorageImporter(SubprocessRunner(), vm_id=100, storage="local-lvm")
        result = importer.run(Path("/mnt/nas/Alice/Virtual Hard Disks/Alice.vhdx"))
    """

    def __init__(
        self,
        runner: ProcessRunner,
        vm_id: int,
        storage: str = "local-lvm",
        slot: str = "scsi0",
        dry_run: bool = False,
    ):
        self.runner = runner
        self.vm_id = vm_id
        self.storage = storage
        self.slot = slot
        self.dry_run = dry_run
        self.planned: List[List[str]] = []

    def _run(self, command: List[str]) -> ProcessResult:
        self.planned.append(command)
        if self.dry_run:
            log.info("import.dry_run", command=" ".join(command))
            return ProcessResult(returncode=0, stdout="", stderr="", command=command)
        return self.runner.run(command)

    def run(self, disk_path: Path) -> ImportResult:
        with log_operation(log, "import", vm_id=self.vm_id, storage=self.storage) as op_log:
            verify_source(disk_path)

            freed = self.detach_existing()
            disk_id = self.import_disk(disk_path)
            self.attach_disk(disk_id)

            op_log.info("import.attached", disk_id=disk_id, slot=self.slot)
            return ImportResult(
                vm_id=self.vm_id,
                storage=self.storage,
                slot=self.slot,
                disk_id=disk_id,
                disk_path=disk_path,
                freed_volumes=freed,
                commands=list(self.planned),
            )

    def detach_existing(self) -> List[str]:
        """Drop the disk at the slot and free the volume it pointed to.

        Only the slot's own volume is touched; other disks of the VM stay.
        Every failure here is logged and ignored; the slot may be empty.
        """
        config = self._run(["qm", "config", str(self.vm_id)])
        volume = parse_slot_volume(config.stdout, self.slot) if config.success else None
        if not config.success:
            log.info("import.config_unreadable", vm_id=self.vm_id, rc=config.returncode)

        result = self._run(["qm", "set", str(self.vm_id), "--delete", self.slot, "--force"])
        if not result.success:
            log.info("import.detach_skipped", slot=self.slot, rc=result.returncode)

        if self.dry_run or volume is None:
            return []

        # --force normally destroys the volume; free it only if it is still there
        volume_storage = volume.split(":", 1)[0]
        listing = self._run(["pvesm", "list", volume_storage])
        if not listing.success:
            log.info("import.list_failed", storage=volume_storage, rc=listing.returncode)
            return []
        if not volume_listed(listing.stdout, volume):
            return [volume] if result.success else []

        freed = self._run(["pvesm", "free", volume])
        if not freed.success:
            log.info("import.free_failed", volume=volume, rc=freed.returncode)
            return []
        log.info("import.volume_freed", volume=volume)
        return [volume]

    def import_disk(self, disk_path: Path) -> str:
        result = self._run(["qm", "importdisk", str(self.vm_id), str(disk_path), self.storage])
        if self.dry_run:
            return "unused0"
        result.raise_for_status(f"Import of {disk_path} into {self.storage} failed")
        return parse_unused_disk_id(result.output)

    def attach_disk(self, disk_id: str) -> None:
        self._run(
            ["qm", "set", str(self.vm_id), f"--{self.slot}", f"{self.storage}:{disk_id}"]
        ).raise_for_status(f"Attaching {disk_id} as {self.slot} failed")
        self._run(
            ["qm", "set", str(self.vm_id), "--boot", f"order={self.slot}"]
        ).raise_for_status(f"Setting boot order to {self.slot} failed")


def run_import(
    runner: ProcessRunner,
    vm_id: int,
    disk_path: Path,
    storage: str = "local-lvm",
    slot: str = "scsi0",
    dry_run: bool = False,
) -> ImportResult:
    return StorageImporter(runner, vm_id, storage=storage, slot=slot, dry_run=dry_run).run(disk_path)
