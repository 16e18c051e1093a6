"""Backup-product workflow: locate the latest good backup of a VM and copy it."""

from .locator import (
    BackupLocator,
    latest_successful_backup,
    resolve_backup_source,
    select_vm_by_index,
    select_vm_by_name,
)
from .models import BackupCopyResult, BackupLocation, BackupRecord, BackupVM
from .session import BackupApiSession, SessionState

__all__ = [
    "BackupApiSession",
    "BackupCopyResult",
    "BackupLocation",
    "BackupLocator",
    "BackupRecord",
    "BackupVM",
    "SessionState",
    "latest_successful_backup",
    "resolve_backup_source",
    "select_vm_by_index",
    "select_vm_by_name",
]
