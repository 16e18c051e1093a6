#!/usr/bin/env python3
"""Tests for PowerShell invocation helpers."""

from pathlib import Path

import pytest

from vmferry.backends.powershell import (
    POWERSHELL_EXE,
    PowerShell,
    parse_json_output,
    ps_arguments,
    ps_quote,
)
from vmferry.errors import ExternalCommandFailed


class TestQuoting:
    @pytest.mark.parametrize("value,expected", [
        ("Alice", "'Alice'"),
        ("it's", "'it''s'"),
        (Path("D:/Exports"), "'D:/Exports'"),
        ("", "''"),
    ])
    def test_ps_quote(self, value, expected):
        assert ps_quote(value) == expected

    def test_ps_arguments(self):
        rendered = ps_arguments({
            "ServerAddress": "backup01",
            "ServerPort": 35113,
            "Domain": None,
            "Force": True,
            "WhatIf": False,
        })
        assert rendered == "-ServerAddress 'backup01' -ServerPort 35113 -Force"


class TestParseJsonOutput:
    def test_empty(self):
        assert parse_json_output("  \r\n") == []

    def test_single_object(self):
        assert parse_json_output('{"Name":"Alice"}') == [{"Name": "Alice"}]

    def test_array(self):
        assert parse_json_output('[{"Name":"a"},{"Name":"b"}]') == [{"Name": "a"}, {"Name": "b"}]

    def test_null(self):
        assert parse_json_output("null") == []

    def test_garbage(self):
        with pytest.raises(ExternalCommandFailed, match="Unparseable"):
            parse_json_output("WARNING: something odd")


class TestPowerShell:
    def test_command_line(self, fake_runner):
        command = PowerShell(fake_runner).command("Get-VM")
        assert command[0] == POWERSHELL_EXE
        assert "-NonInteractive" in command
        assert command[-2:] == ["-Command", "Get-VM"]

    def test_invoke_stops_on_errors(self, fake_runner):
        fake_runner.on("Get-Date", stdout="today\r\n")
        assert PowerShell(fake_runner).invoke("Get-Date", "no date") == "today\r\n"
        assert fake_runner.calls[0][-1] == "$ErrorActionPreference = 'Stop'; Get-Date"

    def test_invoke_failure(self, fake_runner):
        fake_runner.on("Get-VM", stderr="Hyper-V was unable to find a virtual machine", returncode=1)
        with pytest.raises(ExternalCommandFailed, match="Lookup failed: Hyper-V was unable") as exc_info:
            PowerShell(fake_runner).invoke("Get-VM -Name 'x'", "Lookup failed")
        assert exc_info.value.returncode == 1

    def test_invoke_json(self, fake_runner):
        fake_runner.on("Get-VM", stdout='{"Name":"Alice","State":"Off"}')
        rows = PowerShell(fake_runner).invoke_json("Get-VM", "failed")
        assert rows == [{"Name": "Alice", "State": "Off"}]
        assert fake_runner.calls[0][-1].endswith("Get-VM | ConvertTo-Json -Depth 4 -Compress")

    def test_run_file(self, fake_runner):
        fake_runner.on("GetVirtualMachines.ps1", stdout="[]")
        script = Path("C:/Scripts/GetVirtualMachines.ps1")
        rows = PowerShell(fake_runner).run_file(script, {"SessionToken": "t'1"}, "failed")
        assert rows == []
        assert f"& '{script}' -SessionToken 't''1'" in fake_runner.calls[0][-1]

    def test_run_file_plain(self, fake_runner):
        fake_runner.on("EndSession.ps1", stdout="ok")
        out = PowerShell(fake_runner).run_file(Path("EndSession.ps1"), {}, "failed", as_json=False)
        assert out == "ok"
