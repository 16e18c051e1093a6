#!/usr/bin/env python3
"""
Argument parsers for the vmferry CLI.
"""

import argparse
from pathlib import Path
from typing import List, Optional

from vmferry import __version__
from vmferry.cli.backup_commands import cmd_backup
from vmferry.cli.export_commands import cmd_export
from vmferry.cli.import_commands import cmd_import
from vmferry.cli.misc_commands import cmd_init
from vmferry.cli.utils import add_share_arguments, console, error_banner
from vmferry.errors import VMFerryError
from vmferry.logging import configure_logging, get_logger

log = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vmferry",
        description="Move VM disk images from Hyper-V or a backup product into Proxmox VE",
    )
    parser.add_argument("--version", action="version", version=f"vmferry {__version__}")
    parser.add_argument("--config", "-c", help="Config file (default: ./.vmferry.yaml)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--json-logs", action="store_true", help="Render logs as JSON")
    parser.add_argument("--log-file", type=Path, help="Also write a JSON log to this file")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Export command
    export_parser = subparsers.add_parser("export", help="Export a Hyper-V VM to the share")
    export_parser.add_argument("vm_name", nargs="?", default=None, help="Hyper-V VM name")
    export_parser.add_argument("--dest", "-d", help="Destination root folder")
    export_parser.add_argument("--prefix", help="Export folder prefix (default: HyperV_Export)")
    export_parser.add_argument(
        "--no-snapshot", action="store_true", help="Ignore existing checkpoints"
    )
    export_parser.add_argument(
        "--no-vss", action="store_true", help="Plain export even when the VM is running"
    )
    export_parser.add_argument(
        "--no-purge", action="store_true", help="Keep exports from earlier runs"
    )
    export_parser.add_argument(
        "--purge-after",
        action="store_true",
        help="Delete earlier exports only after the new one succeeded",
    )
    export_parser.add_argument(
        "--poll-interval", type=float, help="Seconds between export job polls (default: 2)"
    )
    export_parser.add_argument(
        "--job-timeout", type=float, help="Give up waiting on the export job after N seconds"
    )
    add_share_arguments(export_parser)
    export_parser.set_defaults(func=cmd_export)

    # Backup command
    backup_parser = subparsers.add_parser(
        "backup", help="Copy the latest successful backup of a VM to the share"
    )
    backup_parser.add_argument("vm_name", nargs="?", default=None, help="VM name on the backup server")
    selection = backup_parser.add_mutually_exclusive_group()
    selection.add_argument("--index", type=int, help="Pick the VM by its list index")
    selection.add_argument(
        "--interactive", "-i", action="store_true", help="Choose the VM from a numbered list"
    )
    backup_parser.add_argument("--dest", "-d", help="Destination root folder")
    backup_parser.add_argument(
        "--archive", action="store_true", help="Pack the backup into a single .zip"
    )
    backup_parser.add_argument("--server", help="Backup management server (default: localhost)")
    backup_parser.add_argument("--port", type=int, help="Backup API port (default: 35113)")
    backup_parser.add_argument("--username", "-u", help="Backup API username")
    backup_parser.add_argument(
        "--password", help="Backup API password (or set VMFERRY_BACKUP_PASSWORD)"
    )
    backup_parser.add_argument("--domain", help="Backup API login domain")
    backup_parser.add_argument("--scripts-dir", help="Folder holding the backup API .ps1 scripts")
    add_share_arguments(backup_parser)
    backup_parser.set_defaults(func=cmd_backup)

    # Import command
    import_parser = subparsers.add_parser(
        "import", help="Import a disk image into Proxmox storage and attach it"
    )
    import_parser.add_argument("vm_id", nargs="?", type=int, default=None, help="Proxmox VM id")
    import_parser.add_argument("disk", nargs="?", default=None, help="Disk image (.vhdx, .qcow2, ...)")
    import_parser.add_argument("--storage", "-s", help="Proxmox storage (default: local-lvm)")
    import_parser.add_argument("--slot", help="Attachment slot (default: scsi0)")
    import_parser.add_argument(
        "--dry-run", action="store_true", help="Print the commands instead of running them"
    )
    import_parser.set_defaults(func=cmd_import)

    # Init command
    init_parser = subparsers.add_parser("init", help="Write a starter .vmferry.yaml")
    init_parser.add_argument(
        "path", nargs="?", default=None, help="Path for config file (default: ./.vmferry.yaml)"
    )
    init_parser.add_argument("--vm-name", "-n", help="Hyper-V VM name to prefill")
    init_parser.add_argument("--force", "-f", action="store_true", help="Overwrite existing config")
    init_parser.set_defaults(func=cmd_init)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point. Returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        level="DEBUG" if args.verbose else "INFO",
        json_output=args.json_logs,
        log_file=args.log_file,
    )

    if not hasattr(args, "func"):
        parser.print_help()
        return 2

    try:
        return args.func(args)
    except VMFerryError as e:
        log.error("command.failed", command=args.command, error=str(e), exit_code=e.exit_code)
        error_banner(str(e))
        return e.exit_code
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/]")
        return 130
    except Exception as e:
        log.exception("command.crashed", command=args.command)
        error_banner(f"Unexpected error: {e}")
        return 1
