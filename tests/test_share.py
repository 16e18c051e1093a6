#!/usr/bin/env python3
"""Tests for network share sessions."""

import pytest

from vmferry.errors import PreconditionFailed, ResourceCleanupWarning, ShareMountFailed
from vmferry.models import ShareSettings
from vmferry.share import ShareSession, mount_command, unmount_command

SHARE = r"\\nas01\vm-exports"


@pytest.fixture
def credentialed():
    return ShareSettings(path=SHARE, require_credentials=True, username="svc", password="pa55")


class TestCommands:
    def test_mount_command(self, credentialed):
        assert mount_command(SHARE, credentialed.credentials()) == [
            "net", "use", SHARE, "/user:svc", "pa55", "/persistent:no",
        ]

    def test_unmount_command(self):
        assert unmount_command(SHARE) == ["net", "use", SHARE, "/delete", "/y"]


class TestShareSession:
    def test_ambient_identity_checks_reachability(self, tmp_path, fake_runner):
        with ShareSession(ShareSettings(path=str(tmp_path)), fake_runner) as session:
            assert session.mounted is False
        assert fake_runner.calls == []

    def test_ambient_identity_unreachable(self, tmp_path, fake_runner):
        settings = ShareSettings(path=str(tmp_path / "offline"))
        with pytest.raises(PreconditionFailed, match="not reachable"):
            with ShareSession(settings, fake_runner):
                pass

    def test_mount_and_unmount(self, credentialed, fake_runner):
        with ShareSession(credentialed, fake_runner) as session:
            assert session.mounted is True
        assert fake_runner.calls == [
            mount_command(SHARE, credentialed.credentials()),
            unmount_command(SHARE),
        ]

    def test_unmount_on_error(self, credentialed, fake_runner):
        with pytest.raises(RuntimeError):
            with ShareSession(credentialed, fake_runner):
                raise RuntimeError("export failed")
        assert fake_runner.calls[-1] == unmount_command(SHARE)
        assert len(fake_runner.commands_containing("/delete")) == 1

    def test_mount_failure(self, credentialed, fake_runner):
        fake_runner.on("/persistent:no", stderr="System error 86 has occurred.", returncode=2)
        with pytest.raises(ShareMountFailed, match="System error 86") as exc_info:
            with ShareSession(credentialed, fake_runner):
                pass
        assert "pa55" not in exc_info.value.command
        assert not fake_runner.commands_containing("/delete")

    def test_unmount_failure_is_a_warning(self, credentialed, fake_runner):
        fake_runner.on("/delete", stderr="The network connection could not be found.", returncode=2)
        with pytest.warns(ResourceCleanupWarning):
            with ShareSession(credentialed, fake_runner):
                pass

    def test_unmount_runs_once(self, credentialed, fake_runner):
        session = ShareSession(credentialed, fake_runner)
        with session:
            session.unmount()
        assert len(fake_runner.commands_containing("/delete")) == 1
