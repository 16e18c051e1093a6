"""Abstract interface for process execution."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from vmferry.errors import ExternalCommandFailed


@dataclass
class ProcessResult:
    """Result of process execution."""

    returncode: int
    stdout: str
    stderr: str
    command: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr, the way ``2>&1`` would capture it."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)

    def raise_for_status(self, message: Optional[str] = None) -> "ProcessResult":
        """Raise ExternalCommandFailed unless the command exited with status 0."""
        if self.success:
            return self
        detail = (self.stderr or self.stdout).strip()
        text = message or f"Command failed with exit status {self.returncode}"
        if detail:
            text = f"{text}: {detail}"
        raise ExternalCommandFailed(
            text,
            command=self.command,
            returncode=self.returncode,
            stderr=self.stderr,
        )


class ProcessRunner(ABC):
    """Abstract interface for process execution."""

    @abstractmethod
    def run(
        self,
        command: List[str],
        timeout: Optional[int] = None,
        cwd: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> ProcessResult:
        """Run a command and capture its output. Never raises on non-zero exit."""
        pass
