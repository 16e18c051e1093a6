#!/usr/bin/env python3
"""
Export command for the vmferry CLI.
"""

from pathlib import Path

from rich.table import Table

from vmferry.artifacts import describe_size
from vmferry.backends.hyperv_backend import HyperVBackend
from vmferry.cli.utils import (
    console,
    error_banner,
    make_runner,
    print_banner,
    resolve_config,
    status,
    success_banner,
    warn,
)
from vmferry.exporter import ExportOutcome, ExportSelector, import_hint, run_export
from vmferry.share import ShareSession


def cmd_export(args) -> int:
    """Export a Hyper-V VM to the destination share."""
    config = resolve_config(
        args,
        {
            ("export", "vm_name"): args.vm_name,
            ("export", "destination"): args.dest,
            ("export", "prefix"): args.prefix,
            ("export", "prefer_snapshot"): False if args.no_snapshot else None,
            ("export", "use_vss"): False if args.no_vss else None,
            ("export", "purge_prior_exports"): False if args.no_purge else None,
            ("export", "purge_timing"): "after" if args.purge_after else None,
            ("export", "poll_interval"): args.poll_interval,
            ("export", "job_timeout"): args.job_timeout,
        },
    )
    settings = config.export
    print_banner(f"Hyper-V export of [bold]{settings.vm_name}[/]")

    runner = make_runner(config)
    with console.status("Preparing export...") as spinner:

        def on_poll(job, elapsed):
            spinner.update(f"Export job {job.state} ({elapsed:.0f}s elapsed)")

        selector = ExportSelector(HyperVBackend(runner), settings, on_poll=on_poll)
        share = ShareSession(config.share, runner) if config.share.path else None
        spinner.update(f"Exporting {settings.vm_name}...")
        outcome = run_export(selector, share)

    if not outcome.success:
        error_banner(outcome.error_detail)
        return outcome.exit_code

    _print_outcome(outcome)
    success_banner(f"VM {outcome.vm_name} exported to {outcome.export_path}")

    if not outcome.disk_images:
        warn("No disk image files were found in the export")
        return 0

    console.print("\n[dim]Next step, on the Proxmox node:[/]")
    for disk in outcome.disk_images:
        hint = import_hint(
            disk,
            Path(settings.destination),
            vm_id=config.import_.vm_id,
            storage=config.import_.storage,
        )
        console.print(f"  [cyan]{hint}[/]")
    return 0


def _print_outcome(outcome: ExportOutcome) -> None:
    table = Table(title=f"Export of {outcome.vm_name}", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Strategy", outcome.strategy.value)
    if outcome.used_snapshot:
        table.add_row("Checkpoint", outcome.snapshot_name)
    table.add_row("Folder", str(outcome.export_path))
    table.add_row("Size", describe_size(outcome.size_bytes))
    for disk in outcome.disk_images:
        table.add_row("Disk image", disk.name)
    for path in outcome.purged:
        table.add_row("Purged", path.name)
    console.print(table)
    for path in outcome.purged:
        status(f"Removed previous export {path.name}")
