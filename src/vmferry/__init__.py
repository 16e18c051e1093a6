"""
vmferry - Ferry VM disk images from Windows backup sources into Proxmox VE.

Exports Hyper-V VMs (or copies the latest backup-product restore point) onto
a network share, then imports the resulting disk image into Proxmox storage
and attaches it to a target VM.
"""

__version__ = "0.3.1"
__author__ = "vmferry maintainers"

from vmferry.exporter import ExportSelector, run_export
from vmferry.importer import StorageImporter

__all__ = ["ExportSelector", "StorageImporter", "run_export", "__version__"]
