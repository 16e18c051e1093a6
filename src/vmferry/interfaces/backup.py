"""Interface for the backup product's management API."""

from abc import ABC, abstractmethod
from typing import List

from vmferry.backups.models import BackupLocation, BackupRecord, BackupVM
from vmferry.models import Credentials


class BackupBackend(ABC):
    """Abstract interface for backup-product operations."""

    @abstractmethod
    def start_session(self, credentials: Credentials, server: str, port: int) -> str:
        """Authenticate and return a session token."""
        pass

    @abstractmethod
    def end_session(self, token: str) -> None:
        """Release a session token."""
        pass

    @abstractmethod
    def list_vms(self, token: str) -> List[BackupVM]:
        """List the VMs registered for backup."""
        pass

    @abstractmethod
    def backup_history(self, token: str, vm: BackupVM) -> List[BackupRecord]:
        """List the backup history of one VM."""
        pass

    @abstractmethod
    def backup_locations(self, token: str) -> List[BackupLocation]:
        """List the configured storage roots, in the product's order."""
        pass
