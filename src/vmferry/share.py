"""
Network share access for the export and backup workflows.

A share is either already reachable under the operator's identity, or it is
mounted with ``net use`` and an explicit credential pair for the duration of
a workflow. Unmounting is keyed by path only, so two workflows must not use
the same share path concurrently.
"""

from pathlib import Path
from typing import Optional

import structlog

from vmferry.errors import PreconditionFailed, ShareMountFailed
from vmferry.interfaces.process import ProcessRunner
from vmferry.logging import cleanup_warning
from vmferry.models import Credentials, ShareSettings

log = structlog.get_logger(__name__)


def mount_command(path: str, credentials: Credentials):
    return [
        "net",
        "use",
        path,
        f"/user:{credentials.qualified_username}",
        credentials.password,
        "/persistent:no",
    ]


def unmount_command(path: str):
    return ["net", "use", path, "/delete", "/y"]


class ShareSession:
    """Context manager giving a workflow access to a network share.

    Usage:
        with ShareSession(settings, runner):
            ...  # write below settings.path
    """

    def __init__(self, settings: ShareSettings, runner: ProcessRunner):
        self.settings = settings
        self.runner = runner
        self.mounted = False

    @property
    def path(self) -> Optional[Path]:
        return Path(self.settings.path) if self.settings.path else None

    def __enter__(self) -> "ShareSession":
        credentials = self.settings.credentials()
        if credentials is None:
            self._check_reachable()
            return self

        log.info("share.mount", path=self.settings.path, user=credentials.qualified_username)
        result = self.runner.run(mount_command(self.settings.path, credentials))
        if not result.success:
            detail = (result.stderr or result.stdout).strip()
            raise ShareMountFailed(
                f"Failed to mount {self.settings.path}: {detail}",
                command=["net", "use", self.settings.path],
                returncode=result.returncode,
                stderr=result.stderr,
            )
        self.mounted = True
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if self.mounted:
            self.unmount()
        return False

    def unmount(self) -> None:
        """Disconnect the share once; failures are reported, never raised."""
        if not self.mounted:
            return
        self.mounted = False
        log.info("share.unmount", path=self.settings.path)
        result = self.runner.run(unmount_command(self.settings.path))
        if not result.success:
            cleanup_warning(
                log,
                "share.unmount_failed",
                path=self.settings.path,
                error=(result.stderr or result.stdout).strip(),
            )

    def _check_reachable(self) -> None:
        if self.path is None:
            return
        if not self.path.exists():
            raise PreconditionFailed(
                f"Share {self.settings.path} is not reachable under the current identity"
            )
        log.debug("share.reachable", path=self.settings.path)
