"""
Verification probes.

- CommandVerificationProbe: runs a local retrieval client per address
- HttpVerificationProbe: fetches the address from an HTTP gateway
"""

import asyncio
import os
import shlex
from collections.abc import Sequence

import httpx

from fleet_harness.interfaces import VerificationProbe
from fleet_harness.logging import get_logger

logger = get_logger(__name__)

BOOTSTRAP_ENV_VAR = "FLEET_BOOTSTRAP_PEERS"


class CommandVerificationProbe(VerificationProbe):
    """
    Retrieval through a local client command.

    The command template is split shell-style and `{address}` is
    substituted in each argument; exit status 0 means retrieved.
    """

    def __init__(
        self,
        command_template: str,
        timeout: float = 60.0,
        bootstrap_peers: Sequence[str] = (),
        env_var: str = BOOTSTRAP_ENV_VAR,
    ):
        if "{address}" not in command_template:
            raise ValueError("command_template must contain '{address}'")
        self._argv_template = shlex.split(command_template)
        self._timeout = timeout
        self._env = dict(os.environ)
        if bootstrap_peers:
            self._env[env_var] = ",".join(bootstrap_peers)

    def build_argv(self, address: str) -> list[str]:
        return [arg.replace("{address}", address) for arg in self._argv_template]

    async def retrieve(self, address: str) -> bool:
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.build_argv(address),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                env=self._env,
            )
        except OSError as e:
            logger.error("Cannot launch retrieval command: %s", e)
            return False

        try:
            output, _ = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning("Retrieval of %s timed out after %.0fs", address, self._timeout)
            return False

        if proc.returncode != 0:
            tail = output.decode("utf-8", errors="replace").strip().splitlines()[-3:]
            logger.debug("Retrieval of %s failed (exit %s): %s", address, proc.returncode, tail)
            return False
        return True


class HttpVerificationProbe(VerificationProbe):
    """Retrieval through an HTTP gateway: GET {gateway}/{address}, 200 = retrieved."""

    def __init__(self, gateway_url: str, timeout: float = 60.0):
        self._base_url = gateway_url.rstrip("/")
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def retrieve(self, address: str) -> bool:
        client = await self._get_client()
        try:
            response = await client.get(f"{self._base_url}/{address}")
        except httpx.TimeoutException:
            logger.warning("Retrieval of %s timed out", address)
            return False
        except httpx.RequestError as e:
            logger.warning("Retrieval of %s failed: %s", address, e)
            return False
        return response.status_code == 200
