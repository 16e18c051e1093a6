#!/usr/bin/env python3
"""
Interactive VM selection for the backup command.
"""

from typing import List, Optional

import questionary
from rich.table import Table

from vmferry.backups.models import BackupVM
from vmferry.cli.utils import console, custom_style
from vmferry.errors import InvalidSelection


def show_vm_table(vms: List[BackupVM]) -> None:
    table = Table(title="Backed-up virtual machines")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Host", style="dim")
    for index, vm in enumerate(vms):
        table.add_row(str(index), vm.name, vm.host or "")
    console.print(table)


def choose_vm_index(vms: List[BackupVM]) -> Optional[int]:
    """Show the numbered VM list and ask for an index.

    Returns None when the prompt is cancelled.
    """
    if not vms:
        raise InvalidSelection("No VMs are registered on the backup server")

    show_vm_table(vms)
    answer = questionary.text(
        f"VM number (0-{len(vms) - 1}):",
        style=custom_style,
    ).ask()
    if answer is None:
        return None
    try:
        return int(answer.strip())
    except ValueError:
        raise InvalidSelection(f"'{answer}' is not a number")
