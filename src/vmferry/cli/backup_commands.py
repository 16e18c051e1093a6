#!/usr/bin/env python3
"""
Backup copy command for the vmferry CLI.
"""

from pathlib import Path

from rich.table import Table

from vmferry.artifacts import describe_size
from vmferry.backends.script_api_backend import ScriptApiBackupBackend
from vmferry.backups import BackupLocator
from vmferry.cli.interactive import choose_vm_index
from vmferry.cli.utils import (
    console,
    make_runner,
    print_banner,
    resolve_config,
    success_banner,
)
from vmferry.errors import ConfigError
from vmferry.share import ShareSession


def cmd_backup(args) -> int:
    """Copy the latest successful backup of a VM to the destination."""
    interactive = args.interactive or args.index is not None
    config = resolve_config(
        args,
        {
            ("backup", "vm_name"): args.vm_name,
            ("backup", "vm_index"): args.index,
            ("backup", "automatic_selection"): False if interactive else None,
            ("backup", "destination"): args.dest,
            ("backup", "create_archive"): True if args.archive else None,
            ("backup", "server"): args.server,
            ("backup", "port"): args.port,
            ("backup", "username"): args.username,
            ("backup", "password"): args.password,
            ("backup", "domain"): args.domain,
            ("backup", "scripts_dir"): args.scripts_dir,
        },
    )
    settings = config.backup
    if not settings.scripts_dir:
        raise ConfigError("No backup API scripts folder specified (--scripts-dir)")

    print_banner(f"Backup copy from [bold]{settings.server}[/]")

    runner = make_runner(config)
    backend = ScriptApiBackupBackend(runner, Path(settings.scripts_dir))
    locator = BackupLocator(
        backend,
        settings,
        chooser=choose_vm_index,
        disk_extensions=config.export.disk_extensions,
    )

    if config.share.path:
        with ShareSession(config.share, runner):
            result = locator.run()
    else:
        result = locator.run()

    table = Table(title=f"Backup of {result.vm_name}", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Backup time", result.record.captured_at.isoformat(sep=" "))
    table.add_row("Source", str(result.source))
    table.add_row("Destination", str(result.destination))
    table.add_row("Archive", "yes" if result.archived else "no")
    table.add_row("Size", describe_size(result.size_bytes))
    for disk in result.disk_images:
        table.add_row("Disk image", disk.name)
    console.print(table)

    success_banner(f"Backup of {result.vm_name} copied to {result.destination}")
    return 0
