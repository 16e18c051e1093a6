#!/usr/bin/env python3
"""Tests for the CLI module."""

import argparse
from unittest.mock import MagicMock, patch

import pytest
import yaml

from vmferry.backups.models import BackupVM
from vmferry.cli import build_parser, main, resolve_config
from vmferry.cli.interactive import choose_vm_index
from vmferry.errors import ArtifactWriteFailed, InvalidSelection
from vmferry.models import VMFERRY_CONFIG_FILE


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("VMFERRY_SHARE_PASSWORD", raising=False)
    monkeypatch.delenv("VMFERRY_BACKUP_PASSWORD", raising=False)
    return tmp_path


class TestParser:
    def test_export_flags(self):
        args = build_parser().parse_args(
            ["export", "Alice", "--dest", "E:/exp", "--no-vss", "--purge-after", "--job-timeout", "600"]
        )
        assert args.vm_name == "Alice"
        assert args.no_vss is True
        assert args.no_snapshot is False
        assert args.purge_after is True
        assert args.job_timeout == 600.0
        assert args.share_credentials is None

    def test_backup_selection_is_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["backup", "--index", "1", "--interactive"])

    def test_import_positionals(self):
        args = build_parser().parse_args(["import", "100", "/mnt/nas/disk.vhdx", "--storage", "ceph"])
        assert args.vm_id == 100
        assert args.disk == "/mnt/nas/disk.vhdx"
        assert args.storage == "ceph"


class TestResolveConfig:
    def test_cli_overrides_file(self, workdir):
        (workdir / VMFERRY_CONFIG_FILE).write_text(
            yaml.dump({"export": {"vm_name": "FromFile", "prefix": "Nightly"}})
        )
        args = build_parser().parse_args(["export", "Alice", "--dest", str(workdir)])
        config = resolve_config(args, {("export", "vm_name"): args.vm_name})
        assert config.export.vm_name == "Alice"
        assert config.export.prefix == "Nightly"

    def test_none_values_do_not_override(self, workdir):
        (workdir / VMFERRY_CONFIG_FILE).write_text(yaml.dump({"import": {"storage": "ceph"}}))
        args = argparse.Namespace(config=None)
        config = resolve_config(args, {("import", "storage"): None})
        assert config.import_.storage == "ceph"

    def test_share_arguments(self, workdir):
        args = build_parser().parse_args(
            ["export", "Alice", "--share", r"\\nas\x", "--share-credentials",
             "--share-user", "svc", "--share-password", "pw"]
        )
        config = resolve_config(args)
        assert config.share.require_credentials is True
        assert config.share.credentials().username == "svc"


class TestMain:
    def test_no_command_prints_help(self, workdir):
        assert main([]) == 2

    def test_init_writes_config(self, workdir):
        assert main(["init", "--vm-name", "Alice"]) == 0
        data = yaml.safe_load((workdir / VMFERRY_CONFIG_FILE).read_text())
        assert data["export"]["vm_name"] == "Alice"
        assert main(["init"]) == 1
        assert main(["init", "--force"]) == 0

    def test_import_missing_disk(self, workdir):
        assert main(["import", "100", str(workdir / "missing.vhdx")]) == 3

    def test_import_dry_run(self, workdir):
        disk = workdir / "Alice.vhdx"
        disk.write_bytes(b"\0" * 512)
        with patch("vmferry.backends.subprocess_runner.subprocess.run") as mock_run:
            assert main(["import", "100", str(disk), "--dry-run"]) == 0
        mock_run.assert_not_called()

    def test_import_without_vm_id(self, workdir):
        assert main(["import"]) == 2

    def test_backup_requires_scripts_dir(self, workdir):
        assert main(["backup", "Carol", "--dest", str(workdir), "-u", "svc", "--password", "pw"]) == 2

    def test_invalid_config_file(self, workdir):
        (workdir / VMFERRY_CONFIG_FILE).write_text("export: [broken")
        assert main(["import", "100", "x.vhdx"]) == 2

    def test_export_success(self, workdir, make_hypervisor, off_vm, alice_snapshots):
        backend = make_hypervisor(vms=[off_vm], snapshots={"Alice": alice_snapshots})
        dest = workdir / "exports"
        with patch("vmferry.cli.export_commands.HyperVBackend", return_value=backend):
            assert main(["export", "Alice", "--dest", str(dest)]) == 0
        folders = list(dest.iterdir())
        assert len(folders) == 1
        assert folders[0].name.startswith("HyperV_Export_Alice_")

    def test_export_unknown_vm(self, workdir, make_hypervisor):
        with patch("vmferry.cli.export_commands.HyperVBackend", return_value=make_hypervisor()):
            assert main(["export", "Ghost", "--dest", str(workdir)]) == 3

    def test_unexpected_error(self, workdir):
        with patch("vmferry.cli.misc_commands.VMFerryConfig.from_dict", side_effect=RuntimeError("boom")):
            assert main(["init"]) == 1
        assert not (workdir / VMFERRY_CONFIG_FILE).exists()

    def test_unexpected_error_uses_error_banner(self, workdir):
        with patch("vmferry.cli.misc_commands.VMFerryConfig.save", side_effect=PermissionError("read-only share")):
            with patch("vmferry.cli.parsers.error_banner") as banner:
                assert main(["init"]) == 1
        banner.assert_called_once()
        assert "read-only share" in banner.call_args[0][0]

    def test_unwritable_backup_destination(self, workdir):
        with patch("vmferry.cli.backup_commands.BackupLocator") as locator:
            locator.return_value.run.side_effect = ArtifactWriteFailed("Copying x to y failed")
            with patch("vmferry.cli.parsers.error_banner") as banner:
                code = main(["backup", "Carol", "--dest", str(workdir), "--scripts-dir", str(workdir),
                             "-u", "svc", "--password", "pw"])
        assert code == 5
        banner.assert_called_once_with("Copying x to y failed")

    def test_keyboard_interrupt(self, workdir):
        with patch("vmferry.cli.import_commands.StorageImporter") as importer:
            importer.return_value.run.side_effect = KeyboardInterrupt
            assert main(["import", "100", "disk.vhdx"]) == 130


class TestChooseVmIndex:
    VMS = [BackupVM("vm-42", "Carol"), BackupVM("vm-43", "Dave")]

    def ask(self, answer):
        prompt = MagicMock()
        prompt.ask.return_value = answer
        return prompt

    def test_valid_answer(self):
        with patch("vmferry.cli.interactive.questionary.text", return_value=self.ask(" 1 ")):
            assert choose_vm_index(self.VMS) == 1

    def test_non_numeric_answer(self):
        with patch("vmferry.cli.interactive.questionary.text", return_value=self.ask("Dave")):
            with pytest.raises(InvalidSelection):
                choose_vm_index(self.VMS)

    def test_cancelled(self):
        with patch("vmferry.cli.interactive.questionary.text", return_value=self.ask(None)):
            assert choose_vm_index(self.VMS) is None

    def test_empty_list(self):
        with pytest.raises(InvalidSelection):
            choose_vm_index([])
