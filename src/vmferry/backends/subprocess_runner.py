"""Subprocess process runner implementation."""

import subprocess
from pathlib import Path
from typing import Dict, List, Optional

import structlog

from ..interfaces.process import ProcessResult, ProcessRunner

log = structlog.get_logger(__name__)

# Exit status reported when the executable itself cannot be started.
COMMAND_NOT_FOUND = 127


class SubprocessRunner(ProcessRunner):
    """Run processes using the subprocess module."""

    def __init__(self, redact: Optional[List[str]] = None):
        self._redact = [value for value in (redact or []) if value]

    def run(
        self,
        command: List[str],
        timeout: Optional[int] = None,
        cwd: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> ProcessResult:
        """Run a command."""
        log.debug("process.run", command=self._printable(command), timeout=timeout)
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                timeout=timeout,
                check=False,
                cwd=str(cwd) if cwd else None,
                env=env,
                text=True,
            )
        except FileNotFoundError as e:
            log.debug("process.not_found", executable=command[0])
            return ProcessResult(
                returncode=COMMAND_NOT_FOUND,
                stdout="",
                stderr=str(e),
                command=list(command),
            )
        except subprocess.TimeoutExpired as e:
            log.debug("process.timeout", command=self._printable(command), timeout=timeout)
            return ProcessResult(
                returncode=-1,
                stdout=e.stdout if isinstance(e.stdout, str) else "",
                stderr=f"Timed out after {timeout}s",
                command=list(command),
            )
        log.debug("process.exited", rc=result.returncode, stderr=(result.stderr or "").strip()[:120])
        return ProcessResult(
            returncode=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
            command=list(command),
        )

    def add_redaction(self, value: Optional[str]) -> None:
        """Hide *value* (e.g. a password) from logged command lines."""
        if value:
            self._redact.append(value)

    def _printable(self, command: List[str]) -> str:
        text = " ".join(command)
        for secret in self._redact:
            text = text.replace(secret, "***")
        return text
