"""Scoped backup-API session: the token is always released on exit."""

from enum import Enum
from typing import TYPE_CHECKING, List, Optional

import structlog

from vmferry.errors import VMFerryError
from vmferry.logging import cleanup_warning
from vmferry.models import Credentials

from .models import BackupLocation, BackupRecord, BackupVM

if TYPE_CHECKING:
    from vmferry.interfaces.backup import BackupBackend

log = structlog.get_logger(__name__)


class SessionState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


class BackupApiSession:
    """Context manager around one backup-API session token.

    Usage:
        with BackupApiSession(backend, credentials, "backup01", 35113) as session:
            vms = session.list_vms()

    The end-session call runs exactly once on every exit path, including
    propagated errors. A failure to end the session is reported as a cleanup
    warning and never masks the original error.
    """

    def __init__(self, backend: "BackupBackend", credentials: Credentials, server: str, port: int):
        self.backend = backend
        self.credentials = credentials
        self.server = server
        self.port = port
        self.state = SessionState.UNAUTHENTICATED
        self._token: Optional[str] = None

    @property
    def token(self) -> str:
        if self.state != SessionState.AUTHENTICATED or self._token is None:
            raise RuntimeError(f"Backup API session is {self.state.value}")
        return self._token

    def __enter__(self) -> "BackupApiSession":
        if self.state != SessionState.UNAUTHENTICATED:
            raise RuntimeError("A backup API session cannot be reopened")
        log.info("backup.session_start", server=self.server, user=self.credentials.qualified_username)
        self._token = self.backend.start_session(self.credentials, self.server, self.port)
        self.state = SessionState.AUTHENTICATED
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    def close(self) -> None:
        if self.state != SessionState.AUTHENTICATED:
            self.state = SessionState.CLOSED
            return
        token, self._token = self._token, None
        self.state = SessionState.CLOSED
        try:
            self.backend.end_session(token)
        except VMFerryError as e:
            cleanup_warning(log, "backup.session_end_failed", server=self.server, error=str(e))
        else:
            log.info("backup.session_end", server=self.server)

    def list_vms(self) -> List[BackupVM]:
        return self.backend.list_vms(self.token)

    def backup_history(self, vm: BackupVM) -> List[BackupRecord]:
        return self.backend.backup_history(self.token, vm)

    def backup_locations(self) -> List[BackupLocation]:
        return self.backend.backup_locations(self.token)
