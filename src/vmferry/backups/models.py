#!/usr/bin/env python3
"""Data models for backup-product records."""

import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from vmferry.errors import ExternalCommandFailed

SUCCESS_RESULT = "success"

JSON_DATE_PATTERN = re.compile(r"/Date\((-?\d+)(?:[+-]\d{4})?\)/")


def _first(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if data.get(key) not in (None, ""):
            return data[key]
    return default


def parse_timestamp(value: Any) -> datetime:
    """Backup time as a naive local datetime.

    Accepts ISO 8601 text and the ``/Date(<ms>)/`` form that Windows
    PowerShell 5.1 ``ConvertTo-Json`` emits for ``DateTime`` values.
    """
    if isinstance(value, datetime):
        moment = value
    else:
        text = str(value or "").strip()
        match = JSON_DATE_PATTERN.fullmatch(text)
        try:
            if match:
                return datetime.fromtimestamp(int(match.group(1)) / 1000)
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            moment = datetime.fromisoformat(text)
        except (ValueError, OverflowError, OSError) as e:
            raise ExternalCommandFailed(f"Unparseable backup time {value!r}") from e
    if moment.tzinfo is not None:
        moment = moment.astimezone().replace(tzinfo=None)
    return moment


@dataclass
class BackupVM:
    """A VM registered in the backup product."""

    vm_ref: str
    name: str
    host: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BackupVM":
        return cls(
            vm_ref=str(_first(data, "VirtualMachineRef", "VmRef", "Id")),
            name=_first(data, "VirtualMachineName", "Name"),
            host=_first(data, "HostName", "Host"),
        )


@dataclass
class BackupRecord:
    """One entry of a VM's backup history."""

    vm_ref: str
    result: str
    captured_at: datetime
    location_id: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.result.strip().lower() == SUCCESS_RESULT

    @classmethod
    def from_dict(cls, data: Dict[str, Any], vm_ref: Optional[str] = None) -> "BackupRecord":
        location = _first(data, "BackupLocationId", "LocationId")
        return cls(
            vm_ref=str(_first(data, "VirtualMachineRef", "VmRef", default=vm_ref)),
            result=str(_first(data, "Result", "Status", default="")),
            captured_at=parse_timestamp(_first(data, "BackupTime", "StartTime", "Date")),
            location_id=str(location) if location is not None else None,
        )


@dataclass
class BackupLocation:
    """A storage root the backup product writes into."""

    location_id: str
    path: Path
    name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BackupLocation":
        return cls(
            location_id=str(_first(data, "BackupLocationId", "Id", default="")),
            path=Path(_first(data, "Path", "LocationPath")),
            name=_first(data, "Name", "FriendlyName"),
        )


@dataclass
class BackupCopyResult:
    """What a backup transfer produced on the destination."""

    vm_name: str
    record: BackupRecord
    source: Path
    destination: Path
    archived: bool = False
    size_bytes: int = 0
    disk_images: List[Path] = field(default_factory=list)
