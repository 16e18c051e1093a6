"""
Filesystem helpers for export and backup artifacts on the destination share.
"""

import glob
import shutil
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

import structlog

from vmferry.errors import ArtifactWriteFailed
from vmferry.logging import cleanup_warning

log = structlog.get_logger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


def timestamp(moment: datetime) -> str:
    """Seconds-granularity timestamp used in artifact names."""
    return moment.strftime(TIMESTAMP_FORMAT)


def export_folder_name(prefix: str, vm_name: str, captured_at: datetime) -> str:
    """``{prefix}_{vm}_{timestamp}``, e.g. ``HyperV_Export_Alice_20240103_101500``."""
    return f"{prefix}_{vm_name}_{timestamp(captured_at)}"


def find_prior_exports(root: Path, prefix: str, vm_name: str) -> List[Path]:
    """Entries under *root* that a previous run with the same prefix and VM created."""
    if not root.is_dir():
        return []
    pattern = f"{glob.escape(prefix)}_{glob.escape(vm_name)}_*"
    return sorted(root.glob(pattern))


def remove_path(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


def purge_paths(paths: Iterable[Path]) -> List[Path]:
    """Delete every path recursively; failures are reported and skipped.

    Returns the paths that were actually removed.
    """
    removed: List[Path] = []
    for path in paths:
        try:
            remove_path(path)
        except OSError as e:
            cleanup_warning(log, "artifact.purge_failed", path=str(path), error=str(e))
            continue
        log.info("artifact.purged", path=str(path))
        removed.append(path)
    return removed


def directory_size(path: Path) -> int:
    """Total size in bytes of all files below *path*."""
    if path.is_file():
        return path.stat().st_size
    return sum(entry.stat().st_size for entry in path.rglob("*") if entry.is_file())


def find_disk_images(path: Path, extensions: Iterable[str]) -> List[Path]:
    """All disk image files below *path* whose suffix is in *extensions*."""
    wanted = {ext.lower() for ext in extensions}
    return sorted(
        entry for entry in path.rglob("*") if entry.is_file() and entry.suffix.lower() in wanted
    )


def make_folder(path: Path) -> Path:
    """Create *path* and its parents; an existing folder is fine."""
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ArtifactWriteFailed(f"Cannot create folder {path}: {e}") from e
    return path


def copy_tree(source: Path, destination: Path) -> Path:
    """Recursively copy *source* into the new folder *destination*."""
    log.info("artifact.copy", source=str(source), destination=str(destination))
    make_folder(destination.parent)
    try:
        shutil.copytree(source, destination)
    except OSError as e:
        raise ArtifactWriteFailed(f"Copying {source} to {destination} failed: {e}") from e
    return destination


def create_archive(source: Path, archive_path: Path) -> Path:
    """Pack the contents of *source* into a single ``.zip`` at *archive_path*."""
    log.info("artifact.archive", source=str(source), archive=str(archive_path))
    make_folder(archive_path.parent)
    base_name = archive_path.with_suffix("")
    try:
        created = shutil.make_archive(str(base_name), "zip", root_dir=str(source))
    except OSError as e:
        raise ArtifactWriteFailed(f"Packing {source} into {archive_path} failed: {e}") from e
    return Path(created)


def describe_size(size_bytes: int, precision: Optional[int] = 2) -> str:
    """Human readable size, e.g. ``12.50 GB``."""
    size = float(size_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024:
            return f"{size:.{precision}f} {unit}" if unit != "B" else f"{int(size)} B"
        size /= 1024
    return f"{size:.{precision}f} TB"
