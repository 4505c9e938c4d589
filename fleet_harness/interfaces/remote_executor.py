"""
RemoteExecutor interface.

Defines the contract for running a shell command on a worker host.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict


class ExecResult(BaseModel):
    """Output of a successful remote command."""

    model_config = ConfigDict(frozen=True)

    output: str = ""
    exit_status: int = 0

    @property
    def lines(self) -> list[str]:
        """Non-empty, stripped output lines."""
        return [line.strip() for line in self.output.splitlines() if line.strip()]


class RemoteExecutor(ABC):
    """
    Abstract base class for remote command execution.

    Implementations must not retry internally; retries, if any, are the
    caller's decision.
    """

    @abstractmethod
    async def execute(
        self,
        address: str,
        command: str,
        timeout: float | None = None,
    ) -> ExecResult:
        """
        Run a command on a worker.

        Args:
            address: Worker host address
            command: Shell command line to run remotely
            timeout: Overall bound in seconds (implementation default if None)

        Returns:
            ExecResult for a zero exit status.

        Raises:
            ExecError: connect failure, timeout, cancellation or non-zero exit.
        """
        pass
