#!/usr/bin/env python3
"""
Pydantic models for vmferry configuration validation.
"""

import os
import re
from pathlib import Path
from typing import Any, List, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from vmferry.errors import ConfigError

VMFERRY_CONFIG_FILE = ".vmferry.yaml"

DEFAULT_DISK_EXTENSIONS = [".vhdx", ".vhd", ".avhdx"]


class Credentials(BaseModel):
    """Username/password pair for a share mount or backup API session."""

    username: str
    password: str = Field(repr=False)
    domain: Optional[str] = None

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, domain={self.domain!r}, password=***)"

    __str__ = __repr__

    @property
    def qualified_username(self) -> str:
        if self.domain:
            return f"{self.domain}\\{self.username}"
        return self.username


class ShareSettings(BaseModel):
    """Network share the artifacts are written to."""

    path: str = Field(default="", description="UNC path or mount point of the share")
    require_credentials: bool = Field(
        default=False, description="Mount explicitly with username/password"
    )
    username: Optional[str] = None
    password: Optional[str] = Field(default=None, repr=False)

    @model_validator(mode="after")
    def credentials_when_required(self) -> "ShareSettings":
        if self.require_credentials and not self.path:
            raise ValueError("share.path is required when require_credentials is set")
        if self.require_credentials and not (self.username and self.password):
            raise ValueError("share.username and share.password are required for a credentialed mount")
        return self

    def credentials(self) -> Optional[Credentials]:
        if not self.require_credentials:
            return None
        return Credentials(username=self.username, password=self.password)


class ExportSettings(BaseModel):
    """Hyper-V export workflow settings."""

    vm_name: Optional[str] = Field(default=None, description="Hyper-V VM name")
    destination: Optional[str] = Field(default=None, description="Destination root folder")
    prefix: str = Field(default="HyperV_Export", description="Export folder name prefix")
    prefer_snapshot: bool = True
    use_vss: bool = True
    purge_prior_exports: bool = True
    purge_timing: Literal["before", "after"] = "before"
    poll_interval: float = Field(default=2.0, gt=0)
    job_timeout: Optional[float] = Field(default=None, gt=0)
    disk_extensions: List[str] = Field(default_factory=lambda: list(DEFAULT_DISK_EXTENSIONS))

    @field_validator("prefix")
    @classmethod
    def prefix_must_be_valid(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("prefix cannot be empty")
        if any(ch in v for ch in '\\/:*?"<>|'):
            raise ValueError("prefix must be usable as a folder name")
        return v

    @field_validator("disk_extensions")
    @classmethod
    def normalize_extensions(cls, v: List[str]) -> List[str]:
        return [ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in v]


class BackupSettings(BaseModel):
    """Backup-product workflow settings."""

    server: str = Field(default="localhost", description="Backup management server")
    port: int = Field(default=35113, ge=1, le=65535)
    username: Optional[str] = None
    password: Optional[str] = Field(default=None, repr=False)
    domain: Optional[str] = None
    scripts_dir: Optional[str] = Field(
        default=None, description="Folder holding the vendor's API .ps1 scripts"
    )
    vm_name: Optional[str] = None
    vm_index: Optional[int] = Field(default=None, ge=0)
    automatic_selection: bool = True
    destination: Optional[str] = None
    create_archive: bool = False

    def credentials(self) -> Credentials:
        if not self.username or self.password is None:
            raise ConfigError("backup.username and backup.password are required")
        return Credentials(username=self.username, password=self.password, domain=self.domain)


class ImportSettings(BaseModel):
    """Proxmox storage import settings."""

    vm_id: Optional[int] = Field(default=None, ge=100)
    storage: str = Field(default="local-lvm", description="Proxmox storage pool id")
    disk_path: Optional[str] = None
    slot: str = Field(default="scsi0", description="Disk attachment slot")

    @field_validator("slot")
    @classmethod
    def slot_must_be_valid(cls, v: str) -> str:
        if not re.fullmatch(r"(scsi|sata|virtio|ide)\d+", v):
            raise ValueError(f"invalid attachment slot: {v}")
        return v


class VMFerryConfig(BaseModel):
    """Complete vmferry configuration with validation."""

    model_config = ConfigDict(populate_by_name=True)

    version: str = Field(default="1", description="Config version")
    share: ShareSettings = Field(default_factory=ShareSettings)
    export: ExportSettings = Field(default_factory=ExportSettings)
    backup: BackupSettings = Field(default_factory=BackupSettings)
    import_: ImportSettings = Field(default_factory=ImportSettings, alias="import")

    @model_validator(mode="before")
    @classmethod
    def secrets_from_environment(cls, data: Any) -> Any:
        """Fill passwords from VMFERRY_* environment variables when absent."""
        if not isinstance(data, dict):
            return data
        env_map = {
            "share": "VMFERRY_SHARE_PASSWORD",
            "backup": "VMFERRY_BACKUP_PASSWORD",
        }
        for section, env_var in env_map.items():
            value = os.environ.get(env_var)
            if not value:
                continue
            section_data = dict(data.get(section) or {})
            if not section_data.get("password"):
                section_data["password"] = value
                data = {**data, section: section_data}
        return data

    def save(self, path: Path) -> None:
        """Save configuration to YAML file."""
        config_dict = self.model_dump(by_alias=True, exclude_none=True)
        for section in ("share", "backup"):
            config_dict.get(section, {}).pop("password", None)
        path.write_text(yaml.dump(config_dict, default_flow_style=False, sort_keys=False))

    @classmethod
    def load(cls, path: Path) -> "VMFerryConfig":
        """Load configuration from YAML file."""
        return cls.from_dict(cls.read_raw(path))

    @staticmethod
    def read_raw(path: Path) -> dict:
        """Read the YAML file without validating it."""
        if path.is_dir():
            path = path / VMFERRY_CONFIG_FILE
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        try:
            data = yaml.safe_load(path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "VMFerryConfig":
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e
