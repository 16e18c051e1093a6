#!/usr/bin/env python3
"""
Proxmox disk import command for the vmferry CLI.
"""

from pathlib import Path

from vmferry.cli.utils import console, make_runner, print_banner, resolve_config, status, success_banner
from vmferry.errors import ConfigError
from vmferry.importer import StorageImporter


def cmd_import(args) -> int:
    """Replace the primary disk of a Proxmox VM with an imported image."""
    config = resolve_config(
        args,
        {
            ("import", "vm_id"): args.vm_id,
            ("import", "disk_path"): args.disk,
            ("import", "storage"): args.storage,
            ("import", "slot"): args.slot,
        },
    )
    settings = config.import_
    if settings.vm_id is None:
        raise ConfigError("No Proxmox VM id specified")
    if not settings.disk_path:
        raise ConfigError("No disk image specified")

    print_banner(f"Disk import into Proxmox VM [bold]{settings.vm_id}[/]")

    importer = StorageImporter(
        make_runner(config),
        settings.vm_id,
        storage=settings.storage,
        slot=settings.slot,
        dry_run=args.dry_run,
    )
    result = importer.run(Path(settings.disk_path))

    if args.dry_run:
        console.print("[yellow]Dry run, commands not executed:[/]")
        for command in result.commands:
            console.print(f"  [dim]{' '.join(command)}[/]")
        return 0

    for volume in result.freed_volumes:
        status(f"Freed old volume {volume}")
    status(f"Attached {result.storage}:{result.disk_id} as {result.slot}")
    success_banner(f"Machine {result.vm_id} updated and ready to start on Proxmox.")
    return 0
