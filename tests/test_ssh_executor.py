"""
Tests for the SSH executor.

A stand-in `ssh` script runs the remote command locally with sh, so the
subprocess, timeout and cancellation paths are exercised for real.
"""

import asyncio
import stat
import time
from pathlib import Path

import pytest

from fleet_harness.errors import ExecError
from fleet_harness.remote import SSHExecutor
from fleet_harness.runtime import Ticker

FAKE_SSH = """#!/bin/sh
# Runs the last argument (the remote command) locally
for last; do :; done
exec sh -c "$last"
"""


@pytest.fixture
def fake_ssh(tmp_path: Path) -> str:
    path = tmp_path / "ssh"
    path.write_text(FAKE_SSH)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


class TestBuildArgv:
    """Tests for the ssh argument vector."""

    def test_default_options(self) -> None:
        executor = SSHExecutor(user="root", connect_timeout=5)

        argv = executor.build_argv("10.0.0.1", "uptime")

        assert argv[0] == "ssh"
        assert "BatchMode=yes" in argv
        assert "StrictHostKeyChecking=no" in argv
        assert "ConnectTimeout=5" in argv
        assert argv[-2:] == ["root@10.0.0.1", "uptime"]
        assert "-i" not in argv

    def test_identity_file(self) -> None:
        executor = SSHExecutor(user="ops", identity_file=Path("/keys/fleet"))

        argv = executor.build_argv("host", "true")

        assert argv[argv.index("-i") + 1] == "/keys/fleet"
        assert "ops@host" in argv


class TestExecute:
    """Tests for command execution through a stand-in ssh binary."""

    @pytest.mark.asyncio
    async def test_success_returns_output(self, fake_ssh: str) -> None:
        executor = SSHExecutor(ssh_binary=fake_ssh)

        result = await executor.execute("host", "echo 3; echo 4")

        assert result.exit_status == 0
        assert result.lines == ["3", "4"]

    @pytest.mark.asyncio
    async def test_non_zero_exit_raises(self, fake_ssh: str) -> None:
        executor = SSHExecutor(ssh_binary=fake_ssh)

        with pytest.raises(ExecError) as exc_info:
            await executor.execute("host", "echo partial; echo boom >&2; exit 3")

        err = exc_info.value
        assert err.exit_status == 3
        assert err.address == "host"
        assert err.output.strip() == "partial"
        assert "boom" in str(err)
        assert "Command failed" in str(err)

    @pytest.mark.asyncio
    async def test_exit_255_reported_as_connection_failure(self, fake_ssh: str) -> None:
        executor = SSHExecutor(ssh_binary=fake_ssh)

        with pytest.raises(ExecError, match="Connection failed") as exc_info:
            await executor.execute("host", "exit 255")

        assert exc_info.value.exit_status == 255

    @pytest.mark.asyncio
    async def test_timeout_kills_command(self, fake_ssh: str) -> None:
        executor = SSHExecutor(ssh_binary=fake_ssh)

        started = time.monotonic()
        with pytest.raises(ExecError, match="Timed out"):
            await executor.execute("host", "exec sleep 30", timeout=0.2)

        assert time.monotonic() - started < 10

    @pytest.mark.asyncio
    async def test_default_timeout_applies(self, fake_ssh: str) -> None:
        executor = SSHExecutor(ssh_binary=fake_ssh, default_timeout=0.2)

        with pytest.raises(ExecError, match="Timed out"):
            await executor.execute("host", "exec sleep 30")

    @pytest.mark.asyncio
    async def test_cancel_kills_in_flight_command(self, fake_ssh: str) -> None:
        ticker = Ticker()
        executor = SSHExecutor(ssh_binary=fake_ssh, ticker=ticker)

        async def _cancel_soon() -> None:
            await asyncio.sleep(0.1)
            ticker.cancel("test")

        started = time.monotonic()
        with pytest.raises(ExecError, match="Cancelled"):
            await asyncio.gather(
                executor.execute("host", "exec sleep 30", timeout=60),
                _cancel_soon(),
            )

        assert time.monotonic() - started < 10

    @pytest.mark.asyncio
    async def test_commands_after_cancel_still_run(self, fake_ssh: str) -> None:
        """The end-of-run restore is issued after cancellation."""
        ticker = Ticker()
        ticker.cancel("test")
        executor = SSHExecutor(ssh_binary=fake_ssh, ticker=ticker)

        result = await executor.execute("host", "echo restored")

        assert result.lines == ["restored"]

    @pytest.mark.asyncio
    async def test_missing_ssh_binary(self, tmp_path: Path) -> None:
        executor = SSHExecutor(ssh_binary=str(tmp_path / "no-such-ssh"))

        with pytest.raises(ExecError, match="Failed to launch"):
            await executor.execute("host", "true")
