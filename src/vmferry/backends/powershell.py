"""
PowerShell invocation helpers.

Hyper-V cmdlets and the backup vendor's API scripts are only reachable
through PowerShell. Every call goes through :class:`PowerShell`, which builds
a non-interactive ``powershell.exe -Command`` line, hands it to a
:class:`ProcessRunner`, and optionally decodes ``ConvertTo-Json`` output.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

from vmferry.errors import ExternalCommandFailed
from vmferry.interfaces.process import ProcessResult, ProcessRunner

log = structlog.get_logger(__name__)

POWERSHELL_EXE = "powershell.exe"

BASE_ARGS: List[str] = [
    "-NoProfile",
    "-NonInteractive",
    "-ExecutionPolicy", "Bypass",
]


def ps_quote(value: Any) -> str:
    """Quote *value* as a PowerShell single-quoted string literal.

    >>> ps_quote("it's")
    "'it''s'"
    """
    return "'" + str(value).replace("'", "''") + "'"


def ps_arguments(params: Dict[str, Any]) -> str:
    """Render named parameters as ``-Name 'value'`` pairs.

    ``True`` renders as a bare switch, ``False`` and ``None`` are omitted.
    """
    parts: List[str] = []
    for name, value in params.items():
        if value is None or value is False:
            continue
        if value is True:
            parts.append(f"-{name}")
        elif isinstance(value, int):
            parts.append(f"-{name} {value}")
        else:
            parts.append(f"-{name} {ps_quote(value)}")
    return " ".join(parts)


def parse_json_output(stdout: str) -> List[Dict[str, Any]]:
    """Decode ``ConvertTo-Json`` output into a list of objects.

    PowerShell emits nothing for an empty pipeline and a bare object (not an
    array) for a single result; both are normalized to a list.
    """
    text = stdout.strip()
    if not text:
        return []
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ExternalCommandFailed(f"Unparseable PowerShell output: {e}: {text[:200]}") from e
    if data is None:
        return []
    if isinstance(data, list):
        return data
    return [data]


class PowerShell:
    """Run PowerShell script blocks through a ProcessRunner."""

    def __init__(self, runner: ProcessRunner, executable: str = POWERSHELL_EXE):
        self.runner = runner
        self.executable = executable

    def command(self, script: str) -> List[str]:
        return [self.executable, *BASE_ARGS, "-Command", script]

    def run(self, script: str, timeout: Optional[int] = None) -> ProcessResult:
        """Run *script*; the result is returned even on failure."""
        return self.runner.run(self.command(script), timeout=timeout)

    def invoke(self, script: str, error_message: str, timeout: Optional[int] = None) -> str:
        """Run *script* and return stdout, raising ExternalCommandFailed on error."""
        script = f"$ErrorActionPreference = 'Stop'; {script}"
        result = self.run(script, timeout=timeout)
        result.raise_for_status(error_message)
        return result.stdout

    def invoke_json(
        self,
        script: str,
        error_message: str,
        depth: int = 4,
        timeout: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Run *script*, pipe it through ConvertTo-Json and decode the objects."""
        stdout = self.invoke(
            f"{script} | ConvertTo-Json -Depth {depth} -Compress",
            error_message,
            timeout=timeout,
        )
        return parse_json_output(stdout)

    def run_file(
        self,
        script_path: Path,
        params: Dict[str, Any],
        error_message: str,
        as_json: bool = True,
    ) -> Any:
        """Invoke a ``.ps1`` file with named parameters."""
        call = f"& {ps_quote(script_path)} {ps_arguments(params)}".rstrip()
        log.debug("powershell.script", script=script_path.name, params=sorted(params))
        if as_json:
            return self.invoke_json(call, error_message)
        return self.invoke(call, error_message)
