"""
SSH implementation of RemoteExecutor.

Shells out to the system `ssh` client. Every call is bounded by the
connect timeout (ssh option) and an overall timeout, and is raced against
the run's Ticker so a stop request kills in-flight commands. Commands
started after cancellation (the end-of-run restore) run with the timeout
bound only.
"""

import asyncio
from pathlib import Path

from fleet_harness.errors import ExecError
from fleet_harness.interfaces import ExecResult, RemoteExecutor
from fleet_harness.logging import get_logger
from fleet_harness.runtime.ticker import Ticker

logger = get_logger(__name__)

# Keep error messages readable when a command dumps a lot to stderr
MAX_ERROR_OUTPUT = 500


class SSHExecutor(RemoteExecutor):
    """Run commands on workers with the OpenSSH client."""

    def __init__(
        self,
        user: str = "root",
        connect_timeout: int = 5,
        default_timeout: float = 30.0,
        identity_file: Path | None = None,
        ticker: Ticker | None = None,
        ssh_binary: str = "ssh",
    ):
        """
        Initialize the executor.

        Args:
            user: Login user on every worker
            connect_timeout: Seconds allowed for the TCP/SSH handshake
            default_timeout: Overall bound when execute() gets no timeout
            identity_file: Optional private key
            ticker: Cancellation source; cancelling it kills commands in flight
            ssh_binary: ssh client executable
        """
        self._user = user
        self._connect_timeout = connect_timeout
        self._default_timeout = default_timeout
        self._identity_file = identity_file
        self._ticker = ticker
        self._ssh_binary = ssh_binary

    def build_argv(self, address: str, command: str) -> list[str]:
        """Build the ssh argument vector for one command."""
        argv = [
            self._ssh_binary,
            "-o", "BatchMode=yes",
            "-o", "StrictHostKeyChecking=no",
            "-o", f"ConnectTimeout={self._connect_timeout}",
        ]
        if self._identity_file is not None:
            argv += ["-i", str(self._identity_file)]
        argv += [f"{self._user}@{address}", command]
        return argv

    async def execute(
        self,
        address: str,
        command: str,
        timeout: float | None = None,
    ) -> ExecResult:
        limit = timeout if timeout is not None else self._default_timeout

        logger.debug("ssh %s: %s", address, command)

        try:
            proc = await asyncio.create_subprocess_exec(
                *self.build_argv(address, command),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ExecError(
                f"Failed to launch ssh: {e}",
                address=address,
                command=command,
            ) from e

        communicate = asyncio.ensure_future(proc.communicate())
        waiters: set[asyncio.Future] = {communicate}
        cancel_wait: asyncio.Future | None = None
        if self._ticker is not None and not self._ticker.cancelled:
            cancel_wait = asyncio.ensure_future(self._ticker.wait_cancelled())
            waiters.add(cancel_wait)

        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout=limit,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            if cancel_wait is not None:
                cancel_wait.cancel()

        if communicate not in done:
            await self._kill(proc, communicate)
            if cancel_wait is not None and cancel_wait in done:
                raise ExecError("Cancelled", address=address, command=command)
            raise ExecError(
                f"Timed out after {limit:g}s",
                address=address,
                command=command,
            )

        stdout, stderr = communicate.result()
        output = stdout.decode("utf-8", errors="replace")
        exit_status = proc.returncode if proc.returncode is not None else -1

        if exit_status != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()[:MAX_ERROR_OUTPUT]
            # ssh itself exits 255 on connection failures
            kind = "Connection failed" if exit_status == 255 else "Command failed"
            message = f"{kind} (exit {exit_status})"
            if detail:
                message = f"{message}: {detail}"
            raise ExecError(
                message,
                address=address,
                command=command,
                exit_status=exit_status,
                output=output,
            )

        return ExecResult(output=output, exit_status=exit_status)

    @staticmethod
    async def _kill(proc: asyncio.subprocess.Process, communicate: asyncio.Future) -> None:
        if proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
        # Drain pipes so the child is reaped
        try:
            await communicate
        except OSError as e:
            logger.debug("Error draining killed ssh process: %s", e)
