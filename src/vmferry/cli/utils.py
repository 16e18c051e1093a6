#!/usr/bin/env python3
"""
Shared utilities for the vmferry CLI.
"""

import argparse
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from questionary import Style
from rich.console import Console
from rich.panel import Panel

from vmferry import __version__
from vmferry.backends.subprocess_runner import SubprocessRunner
from vmferry.models import VMFERRY_CONFIG_FILE, VMFerryConfig

custom_style = Style(
    [
        ("qmark", "fg:cyan bold"),
        ("question", "bold"),
        ("answer", "fg:green"),
        ("pointer", "fg:cyan bold"),
        ("highlighted", "fg:cyan bold"),
        ("selected", "fg:green"),
        ("separator", "fg:gray"),
        ("instruction", "fg:gray italic"),
    ]
)

console = Console()


def print_banner(title: str) -> None:
    console.print(f"[bold cyan]vmferry {__version__}[/] [dim]·[/] {title}")


def success_banner(message: str) -> None:
    console.print(Panel(f"[bold green]SUCCESS[/]: {message}", border_style="green", expand=False))


def error_banner(message: str) -> None:
    console.print(Panel(f"[bold red]ERROR[/]: {message}", border_style="red", expand=False))


def status(message: str) -> None:
    console.print(f"[cyan]»[/] {message}")


def warn(message: str) -> None:
    console.print(f"[yellow]⚠ {message}[/]")


def _set(data: Dict[str, Any], section: str, key: str, value: Any) -> None:
    if value is not None:
        if not isinstance(data.get(section), dict):
            data[section] = {}
        data[section][key] = value


def resolve_config(
    args: argparse.Namespace, overrides: Optional[Dict[Tuple[str, str], Any]] = None
) -> VMFerryConfig:
    """Load the YAML config (explicit, or ./.vmferry.yaml) and apply CLI overrides."""
    config_path: Optional[Path] = Path(args.config) if getattr(args, "config", None) else None
    if config_path is None and (Path.cwd() / VMFERRY_CONFIG_FILE).exists():
        config_path = Path.cwd() / VMFERRY_CONFIG_FILE

    data: Dict[str, Any] = VMFerryConfig.read_raw(config_path) if config_path else {}

    _set(data, "share", "path", getattr(args, "share", None))
    _set(data, "share", "require_credentials", getattr(args, "share_credentials", None))
    _set(data, "share", "username", getattr(args, "share_user", None))
    _set(data, "share", "password", getattr(args, "share_password", None))

    for (section, key), value in (overrides or {}).items():
        _set(data, section, key, value)

    return VMFerryConfig.from_dict(data)


def make_runner(config: VMFerryConfig) -> SubprocessRunner:
    """Process runner that keeps configured passwords out of the logs."""
    return SubprocessRunner(redact=[config.share.password, config.backup.password])


def add_share_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("network share")
    group.add_argument("--share", help="UNC path of the destination share")
    group.add_argument(
        "--share-credentials",
        action="store_true",
        default=None,
        help="Mount the share with explicit credentials (net use) and unmount afterwards",
    )
    group.add_argument("--share-user", help="Username for the credentialed mount")
    group.add_argument(
        "--share-password",
        help="Password for the credentialed mount (or set VMFERRY_SHARE_PASSWORD)",
    )
