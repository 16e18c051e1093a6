#!/usr/bin/env python3
"""
Miscellaneous commands for the vmferry CLI.
"""

from pathlib import Path

from vmferry.cli.utils import console
from vmferry.models import VMFERRY_CONFIG_FILE, VMFerryConfig


def cmd_init(args) -> int:
    """Write a starter .vmferry.yaml."""
    config_path = Path(args.path) if args.path else Path.cwd() / VMFERRY_CONFIG_FILE

    if config_path.is_dir():
        config_path = config_path / VMFERRY_CONFIG_FILE

    if config_path.exists() and not args.force:
        console.print(f"[red]❌ Configuration already exists: {config_path}[/]")
        console.print("[dim]Use --force to overwrite[/]")
        return 1

    config = VMFerryConfig.from_dict(
        {
            "share": {"path": r"\\nas\vm-exports"},
            "export": {"vm_name": args.vm_name or "MyVM", "destination": r"\\nas\vm-exports"},
            "backup": {"destination": r"\\nas\vm-backups"},
            "import": {"storage": "local-lvm"},
        }
    )
    config.save(config_path)

    console.print(f"[green]✅ Created {config_path}[/]")
    console.print(
        "[dim]Passwords are never written to the file; "
        "set VMFERRY_SHARE_PASSWORD / VMFERRY_BACKUP_PASSWORD instead.[/]"
    )
    return 0
